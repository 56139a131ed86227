"""
Argument validation shared by the public library methods.

Every helper raises InvalidDataError, so callers can validate all of their
arguments before any network or connection work starts.
"""

from typing import Any, Iterable, Optional

from impcentral.errors import InvalidDataError


def validate_non_empty(param: Any, param_name: str = "id"):
    if not param:
        raise InvalidDataError(f'Non empty "{param_name}" parameter required')


def validate_callable(param: Any, param_name: str, required: bool = True):
    """Check that a handler is callable; None passes when not required."""
    if param is None and not required:
        return
    if not callable(param):
        raise InvalidDataError(f'Callable "{param_name}" parameter required')


def validate_enum(param: Any, valid_values: Iterable[Any], param_name: str):
    if param not in list(valid_values):
        raise InvalidDataError(f'Wrong "{param_name}" parameter value: "{param}"')


def validate_pagination(page_number: Optional[int], page_size: Optional[int]):
    _validate_null_or_positive_integer(page_number, "page_number")
    _validate_null_or_positive_integer(page_size, "page_size")


def _validate_null_or_positive_integer(param: Any, param_name: str):
    if param is None:
        return
    # bool is an int subclass, but True is not a page number
    if isinstance(param, bool) or not isinstance(param, int) or param <= 0:
        raise InvalidDataError(
            f'Invalid parameter "{param_name}": positive integer required')
