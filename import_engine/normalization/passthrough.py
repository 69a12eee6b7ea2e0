"""
Pass-through fields keep the supplier's exact text: they are never
normalized, grouped, auto-resolved or learned from.
"""

PASSTHROUGH_FIELDS = {
    "cosmetic_notes",
    "specifications.cosmetic_notes",
    "specs.cosmetic_notes",
}


def is_passthrough_field(field_name: str) -> bool:
    return field_name in PASSTHROUGH_FIELDS


def is_passthrough_spec(spec_key: str) -> bool:
    """Check a bare specification key (e.g. "cosmetic_notes")."""
    return (
        f"specifications.{spec_key}" in PASSTHROUGH_FIELDS
        or f"specs.{spec_key}" in PASSTHROUGH_FIELDS
        or spec_key == "cosmetic_notes"
    )
