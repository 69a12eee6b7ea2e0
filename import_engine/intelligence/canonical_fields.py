"""
Canonical Fields Definition

Defines the standard line-item schema that supplier columns are mapped to.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

SPEC_PREFIX = "specifications."

_CUSTOM_SPEC_NAME = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass
class CanonicalField:
    """Definition of a canonical field"""

    field_name: str
    display_name: str
    description: str
    field_type: str  # direct, specification
    required: bool
    sort_order: int
    keywords: List[str] = field(default_factory=list)
    validation_hint: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            "field_name": self.field_name,
            "display_name": self.display_name,
            "description": self.description,
            "field_type": self.field_type,
            "required": self.required,
            "sort_order": self.sort_order,
            "keywords": list(self.keywords),
            "validation_hint": self.validation_hint,
        }


CANONICAL_FIELDS = [
    CanonicalField(
        field_name="serial_number",
        display_name="Serial Number",
        description="Unique identifier for each item",
        field_type="direct",
        required=True,
        sort_order=1,
        keywords=["serial number", "serial#", "service tag", "s/n", "sn", "serial"],
        validation_hint="Must be unique across inventory",
    ),
    CanonicalField(
        field_name="product_type",
        display_name="Product Type",
        description="Category like Laptop, Desktop, Monitor",
        field_type="direct",
        required=True,
        sort_order=2,
        keywords=["product type", "product category", "item type", "device type", "category", "type"],
        validation_hint="Must match existing Product Type or create new",
    ),
    CanonicalField(
        field_name="brand",
        display_name="Brand",
        description="Manufacturer name",
        field_type="direct",
        required=True,
        sort_order=3,
        keywords=["brand", "manufacturer", "mfr", "make", "vendor name", "oem"],
        validation_hint="Will be normalized (e.g., HP = Hewlett-Packard)",
    ),
    CanonicalField(
        field_name="model",
        display_name="Model",
        description="Model name or number",
        field_type="direct",
        required=True,
        sort_order=4,
        keywords=["model", "model number", "model name", "part number", "part#",
                  "partnumber", "product name", "item"],
        validation_hint="Will be normalized using model aliases",
    ),
    CanonicalField(
        field_name="unit_cost",
        display_name="Unit Cost",
        description="Price per unit",
        field_type="direct",
        required=True,
        sort_order=5,
        keywords=["unit price", "unit cost", "per unit", "price", "cost", "each", "amount", "value"],
        validation_hint="Must be a positive number",
    ),
    CanonicalField(
        field_name="quantity_ordered",
        display_name="Quantity",
        description="Number of items",
        field_type="direct",
        required=False,
        sort_order=6,
        keywords=["quantity", "qty", "available", "avail", "stock", "count", "units", "amount"],
        validation_hint="Must be a positive integer",
    ),
    CanonicalField(
        field_name="supplier_sku",
        display_name="Supplier SKU",
        description="Supplier part number",
        field_type="direct",
        required=False,
        sort_order=7,
        keywords=["supplier sku", "vendor sku", "item number", "item#", "sku", "part code"],
        validation_hint="Supplier-specific identifier",
    ),
    CanonicalField(
        field_name="description",
        display_name="Description",
        description="Item description",
        field_type="direct",
        required=False,
        sort_order=8,
        keywords=["description", "item description", "product description", "desc", "details", "name"],
        validation_hint="Free text description",
    ),
    CanonicalField(
        field_name="expected_condition",
        display_name="Grade / Condition",
        description="Cosmetic or functional grade",
        field_type="direct",
        required=False,
        sort_order=9,
        keywords=["cosmetic grade", "grade", "condition", "cosmetic", "quality", "rating"],
        validation_hint="Use existing grades (A, B, C, etc.)",
    ),
    CanonicalField(
        field_name="specifications.cpu",
        display_name="CPU",
        description="Processor model",
        field_type="specification",
        required=False,
        sort_order=10,
        keywords=["processor type", "processor model", "cpu type", "cpu model",
                  "processor", "cpu", "proc", "chip"],
        validation_hint="e.g., Intel i7-8650U",
    ),
    CanonicalField(
        field_name="specifications.ram",
        display_name="RAM",
        description="Memory size",
        field_type="specification",
        required=False,
        sort_order=11,
        keywords=["memory type", "ram type", "memory size", "ram size", "ram", "memory", "mem"],
        validation_hint="e.g., 16GB DDR4",
    ),
    CanonicalField(
        field_name="specifications.storage",
        display_name="Storage",
        description="HDD/SSD capacity and type",
        field_type="specification",
        required=False,
        sort_order=12,
        keywords=["storage type", "storage capacity", "hard drive", "storage",
                  "hdd", "ssd", "drive", "disk", "hd"],
        validation_hint="e.g., 512GB SSD",
    ),
    CanonicalField(
        field_name="specifications.screen_size",
        display_name="Screen Size",
        description="Display size",
        field_type="specification",
        required=False,
        sort_order=13,
        keywords=["screen size", "display size", "screen", "display", "lcd", "monitor", "panel"],
        validation_hint="e.g., 15.6 inch",
    ),
    CanonicalField(
        field_name="specifications.graphics",
        display_name="Graphics",
        description="GPU model",
        field_type="specification",
        required=False,
        sort_order=14,
        keywords=["graphics card", "video card", "graphics", "gpu", "video", "vga"],
        validation_hint="e.g., Intel Iris Xe",
    ),
    CanonicalField(
        field_name="specifications.os",
        display_name="Operating System",
        description="OS version",
        field_type="specification",
        required=False,
        sort_order=15,
        keywords=["operating system", "os", "software", "windows", "macos", "linux"],
        validation_hint="e.g., Windows 11 Pro",
    ),
]

CORE_FIELDS = [f for f in CANONICAL_FIELDS if f.field_type == "direct"]
SPEC_FIELDS = [f for f in CANONICAL_FIELDS if f.field_type == "specification"]


@dataclass
class FieldNameValidation:
    """Outcome of validating a user-proposed custom field name."""

    valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None
    suggestion: Optional[CanonicalField] = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "error": self.error,
            "warning": self.warning,
            "suggestion": self.suggestion.field_name if self.suggestion else None,
        }


def is_canonical_field(field_name: str) -> bool:
    return any(f.field_name == field_name for f in CANONICAL_FIELDS)


def get_canonical_field(field_name: str) -> Optional[CanonicalField]:
    return next((f for f in CANONICAL_FIELDS if f.field_name == field_name), None)


def get_canonical_fields_metadata() -> List[dict]:
    """
    Get canonical field metadata for UI/configuration use.

    Returns:
        List of dictionaries sorted by sort_order.
    """
    return [f.to_dict() for f in sorted(CANONICAL_FIELDS, key=lambda f: f.sort_order)]


def suggest_canonical_field(user_input: str) -> Optional[CanonicalField]:
    """
    Find the first canonical field that looks like what the user typed.

    A field matches on its exact name, on name containment in either
    direction, or on a keyword that equals or contains (or is contained in)
    the input.
    """
    normalized = user_input.strip().lower()
    if not normalized:
        return None

    for canonical in CANONICAL_FIELDS:
        if canonical.field_name == normalized:
            return canonical

        bare_name = canonical.field_name.replace(SPEC_PREFIX, "")
        if normalized in canonical.field_name or bare_name in normalized:
            return canonical

        for keyword in (k.lower() for k in canonical.keywords):
            if keyword == normalized or normalized in keyword or keyword in normalized:
                return canonical

    return None


def validate_custom_field_name(field_name: str) -> FieldNameValidation:
    """
    Validate a user-defined field name.

    Custom fields must be specifications.<snake_case>. Canonical names are
    rejected in favour of the standard field, and near-misses are accepted
    with a "did you mean" warning.
    """
    if not field_name or not field_name.strip():
        return FieldNameValidation(valid=False, error="Field name is required")

    trimmed = field_name.strip()

    if is_canonical_field(trimmed):
        return FieldNameValidation(
            valid=False,
            error="This is a standard field. Please use the suggested field instead.",
            suggestion=get_canonical_field(trimmed),
        )

    suggested = suggest_canonical_field(trimmed)
    if suggested:
        return FieldNameValidation(
            valid=True,
            warning=(
                f'Did you mean "{suggested.field_name}"? '
                "This is a standard field used by the system."
            ),
            suggestion=suggested,
        )

    if not trimmed.startswith(SPEC_PREFIX):
        return FieldNameValidation(
            valid=False,
            error=(
                'Custom fields must start with "specifications." '
                "(e.g., specifications.warranty_length)"
            ),
        )

    spec_name = trimmed[len(SPEC_PREFIX):]
    if not _CUSTOM_SPEC_NAME.match(spec_name):
        return FieldNameValidation(
            valid=False,
            error=(
                "Field name must use lowercase letters, numbers, and underscores only "
                "(e.g., specifications.my_custom_field)"
            ),
        )

    return FieldNameValidation(valid=True)
