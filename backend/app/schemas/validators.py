"""Validation helpers for the account-creation flow.

Provides:
- validate_payload: schema validation that reports instead of raising
- validate_plan_selection / validate_branch_count: business predicates
  run before a plan assignment is attempted
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from app.schemas.subscription import Plan

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class FieldError:
    field: str
    message: str


@dataclass
class ValidationResult(Generic[ModelT]):
    """Outcome of validate_payload.  `data` is set only when valid."""
    is_valid: bool
    data: Optional[ModelT] = None
    errors: list[FieldError] = field(default_factory=list)

    def error_summary(self) -> str:
        """Comma-joined `field: message` pairs."""
        return ", ".join(f"{e.field}: {e.message}" for e in self.errors)


@dataclass
class PredicateResult:
    is_valid: bool
    message: Optional[str] = None


def validate_payload(
    payload: dict[str, Any],
    schema: type[ModelT],
    label: str = "Payload",
) -> ValidationResult[ModelT]:
    """Validate a payload against a pydantic schema.

    Args:
        payload: Raw data to validate
        schema: Pydantic model class
        label: Human-readable name used in log messages

    Returns:
        ValidationResult with the parsed model, or the per-field errors
    """
    try:
        data = schema.model_validate(payload)
    except ValidationError as exc:
        errors = [
            FieldError(
                field=".".join(str(loc) for loc in error["loc"]) or "__root__",
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        logger.warning(
            f"{label} failed validation ({len(errors)} errors)",
            extra={"label": label, "errors": [e.__dict__ for e in errors]},
        )
        return ValidationResult(is_valid=False, errors=errors)

    return ValidationResult(is_valid=True, data=data)


def validate_plan_selection(plan: Optional[Plan]) -> PredicateResult:
    """A plan must be selected before anything can be assigned."""
    if plan is None:
        return PredicateResult(is_valid=False, message="Please select a plan to continue")
    return PredicateResult(is_valid=True)


def validate_branch_count(count: float, max_branches: Optional[int] = None) -> PredicateResult:
    """Branch count must be at least 1 and, when a max is given, within it.

    A falsy max (None or 0) disables the upper bound.
    """
    if count < 1:
        return PredicateResult(is_valid=False, message="Branch count must be at least 1")
    if max_branches and count > max_branches:
        return PredicateResult(
            is_valid=False,
            message=f"Branch count cannot exceed {max_branches}",
        )
    return PredicateResult(is_valid=True)
