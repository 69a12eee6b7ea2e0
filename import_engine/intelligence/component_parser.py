"""
Parsing of compound hardware spec strings ("2x8GB", "1TB Hynix/2TB Samsung")
into structured component lists.

Nothing in this module raises for unparseable text: the fallback always
returns the input as a single component.
"""

import logging
import re
from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple

from import_engine.intelligence.model import (
    PARSE_COMPONENT_PATTERN,
    ComponentParseResult,
    ComponentSpec,
    IntelligenceRule,
    RuleType,
)

logger = logging.getLogger(__name__)

# "2x8GB", "2 x 8GB" (anchored at the start)
PREFIX_MULTIPLIER = re.compile(r"^(\d+)\s*[X×x]\s*(\d+)\s*(GB|TB|MHz)", re.IGNORECASE)

# "8GB X2", "8GB * 2", "8 X 2"; the trailing count must be a bare number
SUFFIX_MULTIPLIER = re.compile(
    r"(\d+)\s*(GB|TB|MHz)?\s*[X×x*]\s*(\d+)(?![\d.]|\s*(?:GB|TB|MHz))",
    re.IGNORECASE,
)

# "16GB (2x8GB)"
PARENTHETICAL_BREAKDOWN = re.compile(r"\((\d+)\s*[X×x*]\s*(\d+)\s*(GB|TB|MHz)\)", re.IGNORECASE)

# "256GB/1TB", "8GB + 8GB", "1TB Hynix/2TB Samsung"
HETEROGENEOUS_PAIR = re.compile(
    r"(\d+\s*(?:GB|TB)(?:\s+[A-Za-z]+)?)\s*[/+&,]\s*(\d+\s*(?:GB|TB)(?:\s+[A-Za-z]+)?)",
    re.IGNORECASE,
)
_CAPACITY_ONLY = re.compile(r"\d+\s*(?:GB|TB)", re.IGNORECASE)

# "16GB", "512GB SSD"
SIMPLE_VALUE = re.compile(r"\d+\s*(GB|TB|MHz)", re.IGNORECASE)

_MEASURABLE = re.compile(r"(\d+)\s*(GB|TB)", re.IGNORECASE)
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Checked in order, first hit wins
TECHNOLOGY_TOKENS = [
    ("ddr5", "DDR5"),
    ("ddr4", "DDR4"),
    ("ddr3", "DDR3"),
    ("ddr2", "DDR2"),
    ("nvme", "NVMe"),
    ("m.2", "M.2"),
    ("ssd", "SSD"),
    ("hdd", "HDD"),
]


def _repeat(capacity: str, count: int, original: str) -> List[ComponentSpec]:
    return [ComponentSpec(capacity=capacity, quantity=1, original_text=original) for _ in range(count)]


def parse_component_pattern(text: Optional[str]) -> List[ComponentSpec]:
    """
    Parse a spec string into one entry per physical component.

    Patterns are tried in priority order: prefix multiplier, suffix or
    asterisk multiplier, parenthetical breakdown, heterogeneous pair (brand
    words dropped), simple value, verbatim fallback.

    Args:
        text: Raw cell value

    Returns:
        Parsed components; [] only for empty or blank input
    """
    if text is None or not str(text).strip():
        return []

    cleaned = str(text).strip()

    match = PREFIX_MULTIPLIER.search(cleaned)
    if match:
        capacity = f"{match.group(2)}{match.group(3)}".upper()
        return _repeat(capacity, int(match.group(1)), cleaned)

    match = SUFFIX_MULTIPLIER.search(cleaned)
    if match:
        capacity = f"{match.group(1)}{match.group(2) or ''}".upper()
        return _repeat(capacity, int(match.group(3)), cleaned)

    match = PARENTHETICAL_BREAKDOWN.search(cleaned)
    if match:
        capacity = f"{match.group(2)}{match.group(3)}".upper()
        return _repeat(capacity, int(match.group(1)), cleaned)

    match = HETEROGENEOUS_PAIR.search(cleaned)
    if match:
        components = []
        for part in (match.group(1), match.group(2)):
            capacity_match = _CAPACITY_ONLY.search(part)
            capacity = capacity_match.group(0) if capacity_match else part
            components.append(
                ComponentSpec(capacity=capacity.strip().upper(), quantity=1, original_text=cleaned)
            )
        return components

    if SIMPLE_VALUE.search(cleaned):
        return [ComponentSpec(capacity=cleaned.upper(), quantity=1, original_text=cleaned)]

    return [ComponentSpec(capacity=cleaned, quantity=1, original_text=cleaned)]


def _leading_int(text: str) -> Optional[int]:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def get_component_type(capacity: str) -> str:
    """
    Classify a capacity string as RAM, SSD, HDD, NVMe or Other.

    Drive keywords win; otherwise up to 64GB is RAM and 128GB or any TB is
    storage.
    """
    lower = capacity.lower()

    if "ssd" in lower or "nvme" in lower or "m.2" in lower:
        return "NVMe" if "nvme" in lower else "SSD"

    if "hdd" in lower or "hard drive" in lower:
        return "HDD"

    size = _leading_int(lower)
    if "gb" in lower and "tb" not in lower and size is not None and size <= 64:
        return "RAM"

    if "tb" in lower or ("gb" in lower and size is not None and size >= 128):
        return "HDD"

    return "Other"


def extract_technology_type(text: str) -> Optional[str]:
    """Return the first technology token (DDR5..DDR2, NVMe, M.2, SSD, HDD) found in text."""
    lower = text.lower()
    for token, label in TECHNOLOGY_TOKENS:
        if token in lower:
            return label
    return None


def format_component_display(components: Iterable[ComponentSpec]) -> str:
    """
    Render components compactly, e.g. "2x 8GB + 1TB".

    Components with the same capacity are grouped in first-seen order.
    """
    grouped: "OrderedDict[str, int]" = OrderedDict()
    for component in components:
        grouped[component.capacity] = grouped.get(component.capacity, 0) + component.quantity

    parts = [f"{qty}x {capacity}" if qty > 1 else capacity for capacity, qty in grouped.items()]
    return " + ".join(parts)


def calculate_total_capacity(components: Iterable[ComponentSpec]) -> Optional[Tuple[float, str]]:
    """
    Sum the measurable capacity of components.

    Returns:
        (value, "TB") when the total reaches 1024GB, (value, "GB") below that,
        None when nothing measurable was found
    """
    total_gb = 0
    for component in components:
        match = _MEASURABLE.search(component.capacity)
        if not match:
            continue
        value = int(match.group(1))
        total_gb += value * 1024 if match.group(2).upper() == "TB" else value

    if total_gb == 0:
        return None
    if total_gb >= 1024:
        return total_gb / 1024, "TB"
    return total_gb, "GB"


class ComponentParser:
    """Applies a company's component-pattern rules to spec cell values."""

    def __init__(self, rules: Iterable[IntelligenceRule]):
        """
        Initialize parser.

        Args:
            rules: Active rules for one company; only component-pattern rules are used
        """
        self.rules_by_field = {}
        pattern_rules = [
            r for r in rules if r.rule_type == RuleType.COMPONENT_PATTERN and r.is_active
        ]
        for rule in sorted(pattern_rules, key=lambda r: -r.priority):
            self.rules_by_field.setdefault(rule.applies_to_field, []).append(rule)

    @property
    def fields(self) -> List[str]:
        """Fields that have component parsing configured."""
        return list(self.rules_by_field)

    def parse_value(self, field_name: str, value: str) -> ComponentParseResult:
        """
        Parse one cell value for a field.

        The first rule for the field whose parse function is the component
        pattern parser is applied; its metadata may request technology
        extraction and pin the component type. Without such a rule the value
        comes back as a single verbatim component.
        """
        for rule in self.rules_by_field.get(field_name, []):
            if rule.parse_with_function != PARSE_COMPONENT_PATTERN:
                continue

            metadata = rule.metadata or {}
            components = []
            for parsed in parse_component_pattern(value):
                component = ComponentSpec(capacity=parsed.capacity, quantity=parsed.quantity)
                if metadata.get("extract_technology"):
                    component.technology = extract_technology_type(parsed.capacity)
                component.component_type = metadata.get("component_type") or get_component_type(
                    parsed.capacity
                )
                components.append(component)

            return ComponentParseResult(
                original_value=value,
                components=components,
                parse_function=rule.parse_with_function,
            )

        return ComponentParseResult(
            original_value=value,
            components=[ComponentSpec(capacity=value, quantity=1)],
        )
