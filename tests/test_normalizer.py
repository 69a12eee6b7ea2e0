import pytest

from import_engine.normalization.model import (
    CreateNewDecision,
    EntityVariant,
    LinkExistingDecision,
    SkipDecision,
)
from import_engine.normalization.normalizer import (
    EntityNormalizer,
    normalize_model_name,
    normalize_value,
)
from import_engine.normalization.resolver import AutoNormalizationResolver
from import_engine.normalization.similarity import calculate_similarity, rank_candidates

COMPANY = "acme"


@pytest.fixture()
def normalizer(entity_store, rule_repository):
    return EntityNormalizer(COMPANY, entity_store, rule_repository)


@pytest.fixture()
def resolver(entity_store, rule_repository):
    return AutoNormalizationResolver(COMPANY, entity_store, rule_repository)


@pytest.fixture()
def product_types(entity_store):
    return {
        name: entity_store.find_or_create_entity(COMPANY, "product_type", name)
        for name in ("Laptop", "Desktop", "Monitor")
    }


def test_normalize_value():
    assert normalize_value("  hEWLETT   packard ") == "Hewlett Packard"
    assert normalize_value("DELL") == "Dell"
    assert normalize_value(normalize_value("lenovo THINKPAD")) == normalize_value("lenovo THINKPAD")


def test_normalize_model_name_only_trims():
    assert normalize_model_name("  ThinkPad T480s ") == "ThinkPad T480s"
    assert normalize_model_name("EliteBook 840-G5") == "EliteBook 840-G5"


def test_similarity():
    assert calculate_similarity("Dell", "dell") == 1.0
    assert calculate_similarity("Laptop", "Laptops") == 0.8
    assert calculate_similarity("Latitude", "Latitdue") == pytest.approx(0.75)
    assert calculate_similarity("Lenovo", "Dell") == calculate_similarity("Dell", "Lenovo")


def test_rank_candidates_keeps_best_three_per_entity():
    candidates = [(1, "Laptop"), (2, "Laptops"), (3, "Lapto"), (4, "Laptop Pro"), (5, "Desktop")]
    ranked = rank_candidates(["laptop", "Laptop"], candidates)

    assert len(ranked) == 3
    assert ranked[0] == (1, "Laptop", 1.0)
    assert [m[2] for m in ranked] == sorted((m[2] for m in ranked), reverse=True)
    assert len({m[0] for m in ranked}) == 3


def test_analyze_entity_field_groups_spellings(normalizer):
    rows = [{"brand": "dell"}, {"brand": "DELL"}, {"brand": "hp"}, {"brand": ""}, {"brand": "Dell"}]
    group = normalizer.analyze_entity_field("brand", rows)

    assert group.suggested_canonical == "Dell"
    dell, hp = group.variants
    assert dell.normalized_value == "Dell"
    assert dell.count == 3
    assert dell.row_indices == [0, 1, 4]
    assert dell.original_values == ["dell", "DELL", "Dell"]
    assert hp.normalized_value == "Hp"
    assert hp.row_indices == [2]


def test_canonical_tie_prefers_alphabetical(normalizer):
    group = normalizer.analyze_entity_field("brand", [{"brand": "lenovo"}, {"brand": "acer"}])
    assert group.suggested_canonical == "Acer"


def test_model_and_passthrough_fields_are_not_grouped(normalizer):
    assert normalizer.analyze_entity_field("model", [{"model": "T480"}, {"model": "t480"}]) is None
    assert normalizer.analyze_entity_field("cosmetic_notes", [{"cosmetic_notes": "scratch"}]) is None


def test_model_field_groups_repeated_values(normalizer):
    rows = [
        {"model": "Latitude 7490"},
        {"model": "Latitude 7490 "},
        {"model": "T480"},
        {"model": "latitude 7490"},
    ]
    groups = normalizer.analyze_model_field(rows)

    assert len(groups) == 1
    assert groups[0].suggested_canonical == "Latitude 7490"
    assert groups[0].variants[0].count == 2
    assert groups[0].variants[0].row_indices == [0, 1]


def test_cpu_field_is_model_like(normalizer):
    rows = [{"specifications.cpu": "i7-8650U"}, {"specifications.cpu": "i7-8650U"}]
    groups = normalizer.analyze_field("specifications.cpu", rows)
    assert [g.suggested_canonical for g in groups] == ["i7-8650U"]


def test_check_existing_entities(normalizer, product_types):
    matches = normalizer.check_existing_entities(
        "product_type", [EntityVariant(normalized_value="Laptops", count=1)]
    )
    assert [(m.name, m.similarity) for m in matches] == [("Laptop", 0.8)]
    assert matches[0].id == product_types["Laptop"].id


def test_check_existing_entities_skips_non_catalog_fields(normalizer):
    assert normalizer.check_existing_entities("brand", [EntityVariant(normalized_value="Dell")]) == []


def test_skip_decision_passes_values_through(normalizer):
    mappings = normalizer.apply_decision(SkipDecision(field="brand", variants=["dell", "DELL"]))
    assert [(m.original_value, m.resolved_value, m.resolved_id) for m in mappings] == [
        ("dell", "dell", None),
        ("DELL", "DELL", None),
    ]


def test_create_new_is_idempotent(normalizer, entity_store):
    decision = CreateNewDecision(field="product_type", variants=["tablet"], canonical_name="Tablet")
    first = normalizer.apply_decision(decision)
    second = normalizer.apply_decision(decision)

    assert first[0].resolved_id == second[0].resolved_id
    assert [e.name for e in entity_store.list_active_entities(COMPANY, "product_type")] == ["Tablet"]


def test_create_new_requires_a_name(normalizer):
    with pytest.raises(ValueError):
        normalizer.apply_decision(CreateNewDecision(field="brand", variants=["x"], canonical_name=" "))


def test_link_existing_uses_stored_name(normalizer, product_types):
    laptop = product_types["Laptop"]
    decision = LinkExistingDecision(
        field="product_type",
        variants=["notebook", "NB"],
        existing_id=laptop.id,
        canonical_name="Notebook Computer",
    )
    mappings = normalizer.apply_decision(decision)
    assert {m.resolved_value for m in mappings} == {"Laptop"}
    assert {m.resolved_id for m in mappings} == {laptop.id}


def test_link_existing_missing_entity_falls_back_to_typed_name(normalizer):
    decision = LinkExistingDecision(
        field="product_type", variants=["notebook"], existing_id=999, canonical_name="Notebook"
    )
    mapping = normalizer.apply_decision(decision)[0]
    assert mapping.resolved_value == "Notebook"
    assert mapping.resolved_id is None


def test_decisions_teach_the_resolver(normalizer, resolver, entity_store, product_types):
    laptop = product_types["Laptop"]
    normalizer.apply_decision(
        LinkExistingDecision(
            field="product_type",
            variants=["Notebook", "Laptop"],
            existing_id=laptop.id,
            save_as_aliases=True,
        )
    )
    normalizer.apply_decision(
        CreateNewDecision(
            field="model",
            variants=["Lat 7490"],
            canonical_name="Latitude 7490",
            save_as_aliases=True,
        )
    )
    normalizer.apply_decision(
        CreateNewDecision(
            field="brand",
            variants=["hewlett packard", "H.P."],
            canonical_name="HP",
            create_intelligence_rules=True,
        )
    )

    # The canonical spelling itself is not stored as an alias
    assert entity_store.list_product_type_aliases(COMPANY, laptop.id) == ["Notebook"]
    assert entity_store.list_model_aliases(COMPANY, "Latitude 7490") == ["Lat 7490"]

    product_type = resolver.check_auto_normalization("product_type", "NOTEBOOK")
    assert product_type.auto_applied
    assert (product_type.resolved_value, product_type.resolved_id) == ("Laptop", laptop.id)

    model = resolver.check_auto_normalization("model", "lat 7490")
    assert model.auto_applied
    assert model.resolved_value == "Latitude 7490"

    brand = resolver.check_auto_normalization("brand", "  HEWLETT   packard")
    assert brand.auto_applied
    assert brand.resolved_value == "HP"


def test_resolver_leaves_unknown_values_for_review(resolver):
    result = resolver.check_auto_normalization("brand", "acer")
    assert not result.auto_applied
    assert result.resolved_value == "Acer"


def test_resolver_never_resolves_passthrough_fields(resolver, rule_repository):
    rule_repository.save_value_lookup_rule(COMPANY, "cosmetic_notes", "scratch", "Scratched")
    result = resolver.check_auto_normalization("cosmetic_notes", "scratch")
    assert not result.auto_applied
    assert result.resolved_value == "scratch"
