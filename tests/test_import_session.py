import io

import pandas as pd
import pytest
from sqlalchemy.exc import SQLAlchemyError

from import_engine.imports.constants import ImportStep
from import_engine.imports.exceptions import (
    ConflictError,
    InvalidStepTransitionError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from import_engine.imports.model import ParsedSheet, SheetSource
from import_engine.imports.session import ImportSession
from import_engine.normalization.model import CreateNewDecision, SkipDecision

COMPANY = "acme"


@pytest.fixture()
def new_session(entity_store, seeded_repository, app_config):
    def factory(company_id=COMPANY):
        return ImportSession(company_id, entity_store, seeded_repository, config=app_config)

    return factory


def mapped(session):
    return {m.supplier_column: m.system_field for m in session.mappings}


def decide(session, field_name, canonical, **flags):
    group = next(g for g in session.entity_groups if g.field == field_name)
    return CreateNewDecision(
        field=field_name,
        variants=group.variants[0].original_values,
        canonical_name=canonical,
        **flags,
    )


def test_upload_suggests_mappings(new_session, po_sheet):
    session = new_session()
    assert session.upload(po_sheet) == ImportStep.MAP

    assert mapped(session) == {
        "Serial Number": "serial_number",
        "Type": "product_type",
        "Brand": "brand",
        "Model": "model",
        "Unit Price": "unit_cost",
        "Qty": "quantity_ordered",
        "CPU": "specifications.cpu",
        "RAM": "specifications.ram",
    }
    brand = session.mappings[2]
    assert brand.confidence == 1.0
    assert brand.sample_values == ["dell", "DELL", "hp", "Lenovo"]


def test_half_confidence_is_not_auto_applied(new_session):
    session = new_session()
    session.upload(ParsedSheet(headers=["Model Code", "Brand"], rows=[["T480", "Lenovo"]]))
    assert mapped(session) == {"Model Code": None, "Brand": "brand"}


def test_company_without_rules_gets_no_suggestions(new_session, po_sheet):
    session = new_session("globex")
    session.upload(po_sheet)
    assert session.mapped_fields == []


def test_update_mapping(new_session, po_sheet):
    session = new_session()
    session.upload(po_sheet)

    session.update_mapping("Qty", "unit_cost")
    assert session.duplicate_mappings() == {"unit_cost": ["Unit Price", "Qty"]}

    session.update_mapping("Qty", None)
    assert mapped(session)["Qty"] is None

    with pytest.raises(ValidationError):
        session.update_mapping("Warehouse", "brand")
    with pytest.raises(ValidationError):
        session.update_mapping("Qty", "Warranty Years")


def test_full_import_flow(new_session, po_sheet, entity_store):
    session = new_session()
    session.upload(po_sheet)

    groups = session.proceed_to_normalization()
    assert session.step == ImportStep.NORMALIZE
    assert {g.field: g.suggested_canonical for g in groups} == {
        "product_type": "Laptop",
        "brand": "Dell",
        "model": "Latitude 7490",
        "specifications.cpu": "i7-8650U",
    }
    product_type = next(g for g in groups if g.field == "product_type")
    assert product_type.variants[0].row_indices == [0, 1, 3]

    report = session.apply_decisions(
        [
            decide(session, "product_type", "Laptop", create_intelligence_rules=True),
            decide(session, "brand", "Dell", create_intelligence_rules=True),
            SkipDecision(field="model", variants=["Latitude 7490"]),
        ]
    )
    assert report.succeeded == 3 and report.ok
    assert session.step == ImportStep.PREVIEW

    preview = session.preview(1.0)
    assert [item.serial_number for item in preview.items] == ["SN001", "SN002", "SN004"]
    assert [item.brand for item in preview.items] == ["Dell", "Dell", "Lenovo"]

    result = session.commit(1.25, source_currency="EUR", purchase_order_ref="PO-1")
    assert session.step == ImportStep.COMPLETE
    assert result.persisted_items == 3
    assert result.items[0].unit_cost == 1500.63

    laptop = entity_store.find_entity_by_name(COMPANY, "product_type", "Laptop")
    expected = entity_store.list_expected_items(COMPANY, "PO-1")
    assert [item.serial_number for item in expected] == ["SN001", "SN002", "SN004"]
    assert expected[0].product_type_id == laptop.id
    assert expected[2].product_type_id == laptop.id


def test_failed_decisions_do_not_undo_the_others(
    new_session, po_sheet, entity_store, seeded_repository, monkeypatch
):
    session = new_session()
    session.upload(po_sheet)
    session.proceed_to_normalization()

    save_rule = seeded_repository.save_value_lookup_rule

    def save_rule_or_fail(company_id, field_name, variant, **kwargs):
        if field_name == "model":
            raise SQLAlchemyError("disk I/O error")
        return save_rule(company_id, field_name, variant, **kwargs)

    monkeypatch.setattr(seeded_repository, "save_value_lookup_rule", save_rule_or_fail)
    report = session.apply_decisions(
        [
            decide(session, "product_type", "Laptop", create_intelligence_rules=True),
            CreateNewDecision(field="brand", variants=["hp"], canonical_name="  "),
            CreateNewDecision(
                field="model",
                variants=["Latitude 7490"],
                canonical_name="Latitude 7490",
                create_intelligence_rules=True,
            ),
        ]
    )

    assert report.succeeded == 1
    assert all(isinstance(failure, PersistenceError) for failure in report.failures)
    assert [failure.item for failure in report.failures] == ["hp", "Latitude 7490"]
    assert "disk I/O error" in report.failures[1].message
    assert session.step == ImportStep.PREVIEW
    assert session.last_batch_report is report

    assert entity_store.find_entity_by_name(COMPANY, "product_type", "Laptop") is not None
    assert seeded_repository.lookup_value(COMPANY, "product_type", "laptop").output_value == "Laptop"
    assert session.preview(1.0).items[0].product_type == "Laptop"


def test_learned_values_skip_review_next_time(new_session, po_sheet):
    first = new_session()
    first.upload(po_sheet)
    first.proceed_to_normalization()
    first.apply_decisions(
        [
            decide(first, "product_type", "Laptop", create_intelligence_rules=True),
            decide(first, "brand", "Dell", create_intelligence_rules=True),
        ]
    )

    second = new_session()
    second.upload(po_sheet)
    groups = second.proceed_to_normalization()

    # laptop, Laptop, dell and DELL resolve without review
    assert second.auto_normalized_count == 4
    remaining = {g.field: [v.normalized_value for v in g.variants] for g in groups}
    assert remaining == {
        "product_type": ["Desktop"],
        "brand": ["Hp", "Lenovo"],
        "model": ["Latitude 7490"],
        "specifications.cpu": ["i7-8650U"],
    }


def test_no_pending_values_goes_straight_to_preview(new_session, seeded_repository):
    seeded_repository.save_value_lookup_rule(COMPANY, "brand", "dell", "Dell")
    session = new_session()
    session.upload(
        ParsedSheet(
            headers=["Brand", "Model", "Unit Price"],
            rows=[["dell", "T480", "10"], ["DELL", "T490", "12"]],
        )
    )

    assert session.proceed_to_normalization() == []
    assert session.step == ImportStep.PREVIEW
    assert session.auto_normalized_count == 2
    assert [item.brand for item in session.preview(1.0).items] == ["Dell", "Dell"]


def test_commit_rejects_bad_input(new_session, po_sheet):
    session = new_session()
    session.upload(po_sheet)

    with pytest.raises(ValidationError, match="Invalid exchange rate"):
        session.commit(0)

    session.update_mapping("Brand", None)
    with pytest.raises(ValidationError, match="Brand column is not mapped"):
        session.commit(1.0)
    assert session.step == ImportStep.MAP


def test_commit_with_no_valid_rows(new_session):
    session = new_session()
    session.upload(ParsedSheet(headers=["Brand", "Unit Price"], rows=[["Dell", "0"], ["HP", "free"]]))

    with pytest.raises(ValidationError, match="All 2 rows failed validation"):
        session.commit(1.0)


def test_duplicate_serials_block_the_whole_commit(new_session, po_sheet, entity_store):
    entity_store.add_inventory_asset(COMPANY, "SN002", brand="Dell")
    session = new_session()
    session.upload(po_sheet)

    with pytest.raises(ConflictError) as exc_info:
        session.commit(1.0, purchase_order_ref="PO-2")
    assert exc_info.value.serials == ["SN002"]
    assert "1 serial(s) already exist" in exc_info.value.message
    assert entity_store.list_expected_items(COMPANY, "PO-2") == []


def test_commit_learns_header_aliases(new_session, po_sheet):
    session = new_session()
    session.upload(po_sheet)
    session.set_column_aliases("Unit Price", ["Landed Cost", " net price ", "landed cost"])

    result = session.commit(1.0)
    assert result.learned_keywords == {"unit_cost": ["landed cost", "net price"]}

    follow_up = new_session()
    follow_up.upload(ParsedSheet(headers=["Landed Cost", "Brand"], rows=[["10", "Dell"]]))
    assert follow_up.mappings[0].system_field == "unit_cost"
    assert follow_up.mappings[0].confidence == 1.0


def test_step_guards(new_session, po_sheet):
    session = new_session()
    with pytest.raises(InvalidStepTransitionError):
        session.proceed_to_normalization()

    session.upload(po_sheet)
    with pytest.raises(InvalidStepTransitionError):
        session.apply_decisions([])
    with pytest.raises(InvalidStepTransitionError):
        session.apply_append("PO-1")

    session.commit(1.0)
    with pytest.raises(InvalidStepTransitionError):
        session.commit(1.0)
    with pytest.raises(InvalidStepTransitionError):
        session.upload(po_sheet)


def test_reupload_starts_over(new_session, po_sheet):
    session = new_session()
    session.upload(po_sheet)
    session.proceed_to_normalization()

    session.upload(ParsedSheet(headers=["Brand"], rows=[["HP"]]))
    assert session.step == ImportStep.MAP
    assert session.entity_groups == []
    assert mapped(session) == {"Brand": "brand"}


def test_upload_file_and_choose_sheet(new_session):
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame({"Note": ["n/a"]}).to_excel(writer, sheet_name="Cover", index=False)
        pd.DataFrame({"Brand": ["Dell"], "Price": [99]}).to_excel(writer, sheet_name="Items", index=False)

    session = new_session()
    assert session.upload(SheetSource(content=buffer.getvalue(), filename="po.xlsx")) == ImportStep.CHOOSE_SHEET
    assert [s.name for s in session.sheets] == ["Cover", "Items"]

    with pytest.raises(ParseError):
        session.choose_sheet("Missing")
    assert session.step == ImportStep.CHOOSE_SHEET

    assert session.choose_sheet("Items") == ImportStep.MAP
    assert mapped(session) == {"Brand": "brand", "Price": "unit_cost"}


def test_unreadable_upload_raises_before_mapping(new_session):
    session = new_session()
    with pytest.raises(ParseError):
        session.upload(SheetSource(content=b"Brand,Price\n", filename="po.csv"))
    assert session.step == ImportStep.UPLOAD
