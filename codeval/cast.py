"""Checking evaluated values against the caller's requested type."""

from __future__ import annotations

from typing import Any, Type, TypeVar, Union, get_origin, overload

from pydantic import ConfigDict, PydanticSchemaGenerationError, TypeAdapter, ValidationError

from codeval.errors import CastError

T = TypeVar("T")

_ADAPTER_CONFIG = ConfigDict(arbitrary_types_allowed=True)


@overload
def cast_result(value: Any, expected_type: Type[T]) -> T: ...


@overload
def cast_result(value: Any, expected_type: Any) -> Any: ...


def cast_result(value: Any, expected_type: Union[Type[T], Any]) -> Any:
    """Return ``value`` if it matches ``expected_type``, otherwise raise CastError.

    ``object`` and ``typing.Any`` accept every value. Plain classes are checked with
    ``isinstance``. Any other annotation (``List[int]``, ``Optional[Config]``,
    ``Dict[str, int]``, ``Literal["a", "b"]``...) is validated strictly by pydantic, so no
    coercion takes place; the validated value is returned.

    Parameters
    ----------
    value : Any
        The evaluated value.
    expected_type : Union[Type[T], Any]
        The requested type.

    Returns
    -------
    T
        The value, typed as requested.

    Raises
    ------
    CastError
        If the value's runtime type does not match.
    """
    if expected_type is object or expected_type is Any:
        return value
    if get_origin(expected_type) is None and isinstance(expected_type, type):
        if isinstance(value, expected_type):
            return value
        raise CastError(expected_type, type(value))

    try:
        adapter = TypeAdapter(expected_type, config=_ADAPTER_CONFIG)
    except PydanticSchemaGenerationError as e:
        raise CastError(expected_type, type(value), f"unsupported type: {e}") from e
    try:
        return adapter.validate_python(value, strict=True)
    except ValidationError as e:
        raise CastError(expected_type, type(value), str(e)) from e
