import pytest

from import_engine.intelligence.component_parser import (
    ComponentParser,
    calculate_total_capacity,
    extract_technology_type,
    format_component_display,
    get_component_type,
    parse_component_pattern,
)
from import_engine.intelligence.model import (
    PARSE_COMPONENT_PATTERN,
    ComponentSpec,
    IntelligenceRule,
    RuleType,
)


def capacities(text):
    return [c.capacity for c in parse_component_pattern(text)]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("2x8GB", ["8GB", "8GB"]),
        ("2 x 8GB", ["8GB", "8GB"]),
        ("4X4gb", ["4GB"] * 4),
        ("8GB*2", ["8GB", "8GB"]),
        ("8GB x2", ["8GB", "8GB"]),
        ("16GB (2x8GB)", ["8GB", "8GB"]),
        ("1TB Hynix/2TB Samsung", ["1TB", "2TB"]),
        ("256GB/1TB", ["256GB", "1TB"]),
        ("8GB + 8GB", ["8GB", "8GB"]),
        ("16GB", ["16GB"]),
        ("512gb ssd", ["512GB SSD"]),
        ("Varies", ["Varies"]),
    ],
)
def test_parse_component_pattern(text, expected):
    assert capacities(text) == expected


def test_multiplier_entries_have_quantity_one():
    components = parse_component_pattern("3x4GB")
    assert len(components) == 3
    assert all(c.quantity == 1 for c in components)
    assert all(c.original_text == "3x4GB" for c in components)


def test_blank_input_returns_nothing():
    assert parse_component_pattern("") == []
    assert parse_component_pattern("   ") == []
    assert parse_component_pattern(None) == []


def test_fallback_keeps_text_verbatim():
    components = parse_component_pattern("  see notes  ")
    assert len(components) == 1
    assert components[0].capacity == "see notes"


@pytest.mark.parametrize(
    "capacity,expected",
    [
        ("8GB", "RAM"),
        ("64GB", "RAM"),
        ("512GB SSD", "SSD"),
        ("1TB NVMe", "NVMe"),
        ("256GB M.2", "SSD"),
        ("500GB HDD", "HDD"),
        ("1TB", "HDD"),
        ("128GB", "HDD"),
        ("96GB", "Other"),
        ("Varies", "Other"),
    ],
)
def test_get_component_type(capacity, expected):
    assert get_component_type(capacity) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("16GB DDR4 2666MHz", "DDR4"),
        ("8GB ddr3", "DDR3"),
        ("512GB NVMe SSD", "NVMe"),
        ("256GB M.2 SATA", "M.2"),
        ("1TB HDD", "HDD"),
        ("Varies", None),
    ],
)
def test_extract_technology_type(text, expected):
    assert extract_technology_type(text) == expected


def test_format_component_display_groups_same_capacity():
    components = parse_component_pattern("2x8GB") + [ComponentSpec(capacity="1TB")]
    assert format_component_display(components) == "2x 8GB + 1TB"


def test_calculate_total_capacity():
    assert calculate_total_capacity(parse_component_pattern("2x8GB")) == (16, "GB")
    assert calculate_total_capacity(parse_component_pattern("512GB/512GB")) == (1.0, "TB")
    assert calculate_total_capacity(parse_component_pattern("Varies")) is None


def test_component_parser_applies_rule_metadata():
    rule = IntelligenceRule(
        company_id="acme",
        rule_type=RuleType.COMPONENT_PATTERN,
        applies_to_field="specifications.storage",
        parse_with_function=PARSE_COMPONENT_PATTERN,
        metadata={"extract_technology": True},
    )
    parser = ComponentParser([rule])

    assert parser.fields == ["specifications.storage"]
    result = parser.parse_value("specifications.storage", "512gb nvme")
    assert result.parse_function == PARSE_COMPONENT_PATTERN
    assert len(result.components) == 1
    assert result.components[0].technology == "NVMe"
    assert result.components[0].component_type == "NVMe"


def test_component_parser_pins_component_type():
    rule = IntelligenceRule(
        company_id="acme",
        rule_type=RuleType.COMPONENT_PATTERN,
        applies_to_field="specifications.ram",
        parse_with_function=PARSE_COMPONENT_PATTERN,
        metadata={"component_type": "RAM"},
    )
    result = ComponentParser([rule]).parse_value("specifications.ram", "2x32GB")
    assert [c.component_type for c in result.components] == ["RAM", "RAM"]


def test_component_parser_without_rule_returns_value_verbatim():
    result = ComponentParser([]).parse_value("specifications.ram", "2x8GB")
    assert result.parse_function is None
    assert [c.capacity for c in result.components] == ["2x8GB"]
