import pytest

from import_engine.intelligence.canonical_fields import (
    CANONICAL_FIELDS,
    CORE_FIELDS,
    SPEC_FIELDS,
    get_canonical_fields_metadata,
    validate_custom_field_name,
)
from import_engine.intelligence.column_mapper import ColumnMapper, score_header
from import_engine.intelligence.model import IntelligenceRule, RuleType


def column_rule(field_name, keywords, priority=10, is_active=True):
    return IntelligenceRule(
        company_id="acme",
        rule_type=RuleType.COLUMN_MAPPING,
        applies_to_field=field_name,
        input_keywords=keywords,
        priority=priority,
        is_active=is_active,
    )


@pytest.fixture()
def mapper():
    return ColumnMapper(
        [
            column_rule("serial_number", ["serial number", "serial", "sn"], priority=49),
            column_rule("brand", ["brand", "manufacturer"], priority=47),
            column_rule("model", ["model", "model number"], priority=46),
            column_rule("unit_cost", ["unit price", "price", "amount"], priority=45),
            column_rule("quantity_ordered", ["qty", "amount"], priority=44),
        ]
    )


def test_score_header():
    assert score_header("price", "price") == 1.0
    assert score_header("model code", "model") == 0.5
    assert score_header("model num", "model number") == pytest.approx(9 / 12 * 0.8)
    assert score_header("warehouse", "price") == 0.0
    assert score_header("", "price") == 0.0


def test_exact_match_is_full_confidence(mapper):
    suggestion = mapper.suggest("Serial Number")
    assert suggestion.suggested_field == "serial_number"
    assert suggestion.confidence == 1.0
    assert suggestion.matched_keyword == "serial number"


def test_header_is_trimmed_and_lowercased(mapper):
    suggestion = mapper.suggest("  BRAND ")
    assert suggestion.suggested_field == "brand"
    assert suggestion.confidence == 1.0
    assert suggestion.column_name == "  BRAND "


def test_header_containing_keyword(mapper):
    suggestion = mapper.suggest("Manufacturer Name")
    assert suggestion.suggested_field == "brand"
    assert suggestion.confidence == pytest.approx(12 / 17)


def test_keyword_containing_header_beats_weaker_match(mapper):
    suggestion = mapper.suggest("Model Num")
    assert suggestion.suggested_field == "model"
    assert suggestion.matched_keyword == "model number"
    assert suggestion.confidence == pytest.approx(0.6)


def test_exact_match_follows_priority(mapper):
    assert mapper.suggest("Amount").suggested_field == "unit_cost"


def test_unknown_header(mapper):
    suggestion = mapper.suggest("Warehouse Bin")
    assert suggestion.suggested_field == ""
    assert suggestion.confidence == 0
    assert suggestion.matched_keyword is None


def test_equal_scores_keep_higher_priority_rule():
    mapper = ColumnMapper(
        [
            column_rule("model", ["name"], priority=10),
            column_rule("description", ["name"], priority=20),
        ]
    )
    suggestion = mapper.suggest("item name")
    assert suggestion.suggested_field == "description"
    assert suggestion.confidence == pytest.approx(4 / 9)


def test_inactive_and_other_rule_types_are_ignored():
    lookup = IntelligenceRule(
        company_id="acme",
        rule_type=RuleType.VALUE_LOOKUP,
        applies_to_field="brand",
        input_keywords=["brand"],
    )
    mapper = ColumnMapper([lookup, column_rule("brand", ["brand"], is_active=False)])
    assert mapper.suggest("Brand").suggested_field == ""


def test_no_rules_means_no_suggestions():
    mapper = ColumnMapper([])
    suggestions = mapper.suggest_many(["Serial Number", "Brand", "Price"])
    assert [s.suggested_field for s in suggestions] == ["", "", ""]
    assert all(s.confidence == 0 for s in suggestions)


def test_seeded_rules_cover_common_headers(seeded_repository):
    mapper = ColumnMapper(seeded_repository.get_column_mapping_rules("acme"))
    fields = [s.suggested_field for s in mapper.suggest_many(["S/N", "Unit Cost", "Qty", "Processor"])]
    assert fields == ["serial_number", "unit_cost", "quantity_ordered", "specifications.cpu"]

    # "amount" is a keyword of both unit cost and quantity
    assert mapper.suggest("Amount").suggested_field == "unit_cost"


def test_canonical_field_catalog():
    assert len(CANONICAL_FIELDS) == 15
    assert len(CORE_FIELDS) == 9
    assert len(SPEC_FIELDS) == 6
    names = [f["field_name"] for f in get_canonical_fields_metadata()]
    assert names[0] == "serial_number"
    assert names[-1] == "specifications.os"


def test_validate_custom_field_name():
    standard = validate_custom_field_name("brand")
    assert not standard.valid
    assert standard.suggestion.field_name == "brand"

    near_miss = validate_custom_field_name("processor speed")
    assert near_miss.valid
    assert near_miss.suggestion.field_name == "specifications.cpu"
    assert "Did you mean" in near_miss.warning

    assert validate_custom_field_name("specifications.warranty_length").valid
    assert not validate_custom_field_name("warranty").valid
    assert not validate_custom_field_name("specifications.Warranty Years").valid
    assert not validate_custom_field_name("  ").valid
