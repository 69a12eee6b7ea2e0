"""Validation utilities for the supplier import workflow."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from import_engine.imports.constants import REQUIRED_COMMIT_FIELDS, SPEC_FIELD_PREFIXES, ImportStep
from import_engine.imports.exceptions import InvalidStepTransitionError, ValidationError
from import_engine.intelligence.canonical_fields import (
    get_canonical_field,
    is_canonical_field,
    validate_custom_field_name,
)

logger = logging.getLogger(__name__)

# Valid step transitions
VALID_STEP_TRANSITIONS = {
    ImportStep.UPLOAD: {ImportStep.CHOOSE_SHEET, ImportStep.MAP, ImportStep.APPEND},
    ImportStep.CHOOSE_SHEET: {ImportStep.MAP, ImportStep.APPEND, ImportStep.UPLOAD},
    ImportStep.MAP: {ImportStep.NORMALIZE, ImportStep.PREVIEW, ImportStep.UPLOAD},
    ImportStep.NORMALIZE: {ImportStep.PREVIEW, ImportStep.MAP, ImportStep.UPLOAD},
    ImportStep.PREVIEW: {ImportStep.COMPLETE, ImportStep.MAP, ImportStep.UPLOAD},
    ImportStep.APPEND: {ImportStep.COMPLETE, ImportStep.UPLOAD},
    ImportStep.COMPLETE: set(),  # Terminal state
}


def validate_step_transition(current_step: str, new_step: str) -> None:
    """
    Validate that a step transition is allowed.

    Args:
        current_step: Current session step
        new_step: Desired new step

    Raises:
        InvalidStepTransitionError: If transition is not allowed
    """
    allowed_transitions = VALID_STEP_TRANSITIONS.get(current_step, set())

    if new_step not in allowed_transitions:
        raise InvalidStepTransitionError(
            f"Cannot transition from '{current_step}' to '{new_step}'. "
            f"Allowed transitions: {sorted(allowed_transitions)}"
        )


def require_step(current_step: str, *allowed_steps: str) -> None:
    """Raise unless the session is in one of allowed_steps."""
    if current_step not in allowed_steps:
        raise InvalidStepTransitionError(
            f"Operation not allowed in step '{current_step}'. "
            f"Expected one of: {list(allowed_steps)}"
        )


def validate_mapping_target(system_field: Optional[str]) -> None:
    """
    Validate a field a column is being mapped to.

    Canonical fields are always accepted; anything else must be a valid
    custom specifications.<name> field.

    Raises:
        ValidationError: If the target is not usable
    """
    if not system_field or is_canonical_field(system_field):
        return

    result = validate_custom_field_name(system_field)
    if not result.valid:
        raise ValidationError(
            f"Invalid field '{system_field}': {result.error}",
            hint=f'Use "{result.suggestion.field_name}"' if result.suggestion else None,
        )
    if result.warning:
        logger.info(f"Custom field '{system_field}': {result.warning}")


def validate_exchange_rate(exchange_rate: float) -> None:
    """
    Raises:
        ValidationError: If the rate is not strictly positive
    """
    if exchange_rate is None or exchange_rate <= 0:
        raise ValidationError(
            f"Invalid exchange rate: {exchange_rate}",
            hint="Enter an exchange rate greater than 0",
        )


def missing_required_mappings(mapped_fields: Iterable[str]) -> List[str]:
    """Required commit fields that no column is mapped to, in required order."""
    mapped = set(mapped_fields)
    return [name for name in REQUIRED_COMMIT_FIELDS if name not in mapped]


def validate_required_mappings(mapped_fields: Iterable[str]) -> None:
    """
    Raises:
        ValidationError: Naming the first required field that has no column
    """
    missing = missing_required_mappings(mapped_fields)
    if missing:
        canonical = get_canonical_field(missing[0])
        display = canonical.display_name if canonical else missing[0]
        raise ValidationError(
            f"{display} column is not mapped",
            hint=f'Please map a column to "{display}"',
        )


def find_duplicate_mappings(mapped_fields: Iterable[Tuple[str, Optional[str]]]) -> Dict[str, List[str]]:
    """
    Fields mapped from more than one column.

    Args:
        mapped_fields: (supplier column, system field) pairs

    Returns:
        system field -> the columns mapped to it, for fields with two or more columns
    """
    columns_by_field: Dict[str, List[str]] = {}
    for column, system_field in mapped_fields:
        if system_field:
            columns_by_field.setdefault(system_field, []).append(column)
    return {f: cols for f, cols in columns_by_field.items() if len(cols) > 1}


def spec_key(system_field: str) -> Optional[str]:
    """Bare spec key for a specifications.* / specs.* field, else None."""
    for prefix in SPEC_FIELD_PREFIXES:
        if system_field.startswith(prefix):
            return system_field[len(prefix):]
    return None
