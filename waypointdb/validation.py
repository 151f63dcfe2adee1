"""Boundary validation for repository inputs.

Pydantic does the field checking; this module turns its errors into the
store's own :class:`~waypointdb.errors.ValidationError` so callers get a
field-addressable issue list without depending on pydantic.

Example:
    >>> from waypointdb.models import ItemCreate
    >>> validate_input(ItemCreate, {"text": "", "kind": "step"}, entity="item")
    Traceback (most recent call last):
    ...
    waypointdb.errors.ValidationError: Invalid item: text: String should have at least 1 character
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from waypointdb.errors import FieldIssue, ValidationError
from waypointdb.utils import to_calendar_date

M = TypeVar("M", bound=BaseModel)


def issues_from_pydantic(error: PydanticValidationError) -> list[FieldIssue]:
    """Convert a pydantic error into field issues.

    Args:
        error: Pydantic validation error

    Returns:
        One issue per failed constraint; model-level failures use ``"__root__"``
    """
    issues = []
    for detail in error.errors():
        loc = ".".join(str(part) for part in detail.get("loc", ()))
        issues.append(
            FieldIssue(
                field=loc or "__root__",
                constraint=detail.get("type", "invalid"),
                message=detail.get("msg", "Invalid value"),
            )
        )
    return issues


def validate_input(model: type[M], data: Mapping[str, Any] | M, entity: str) -> M:
    """Validate raw input against an input model.

    Args:
        model: Pydantic model class
        data: Raw mapping or an already-built instance
        entity: Entity name used in the error message

    Returns:
        Validated model instance

    Raises:
        ValidationError: If any field constraint fails
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(entity, issues_from_pydantic(e)) from e


def field_error(entity: str, field: str, constraint: str, message: str) -> ValidationError:
    """Build a single-issue validation error for checks pydantic cannot express."""
    return ValidationError(entity, [FieldIssue(field=field, constraint=constraint, message=message)])


def validate_day(value: date | datetime | str, field: str = "date", entity: str = "date") -> date:
    """Coerce a query date, rejecting strings that are not real dates.

    Example:
        >>> validate_day("2024-02-30", field="start")
        Traceback (most recent call last):
        ...
        waypointdb.errors.ValidationError: Invalid date: start: Date must be a real calendar date

    Raises:
        ValidationError: If ``value`` is neither a calendar date nor an ISO8601 timestamp
    """
    try:
        return to_calendar_date(value)
    except (ValueError, OverflowError, TypeError) as e:
        raise field_error(entity, field, "calendar_date", "Date must be a real calendar date") from e


__all__ = ["issues_from_pydantic", "validate_input", "field_error", "validate_day"]
