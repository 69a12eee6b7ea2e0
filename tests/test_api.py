import pytest

COMPANY = "acme"

PO_CSV = (
    b"Serial Number,Type,Brand,Model,Unit Price,Qty,CPU,RAM\n"
    b'SN001,laptop,dell,Latitude 7490,"$1,200.50",1,i7-8650U,2x8GB\n'
    b"SN002,Laptop,DELL,Latitude 7490,1100,2,i7-8650U,16GB\n"
    b"SN003,desktop,hp,EliteDesk 800,0,1,i5-8500,8GB\n"
    b"SN004,laptop,Lenovo,T480,950,,i5-8350U,16GB (2x8GB)\n"
)


def upload(client, content=PO_CSV, filename="po.csv", **form):
    return client.post(
        "/api/v1/imports",
        files={"file": (filename, content, "text/csv")},
        data=form,
    )


@pytest.fixture()
def session_id(client):
    response = upload(client)
    assert response.status_code == 201
    return response.json()["session_id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_upload_returns_suggested_mappings(client):
    response = upload(client)
    assert response.status_code == 201

    body = response.json()
    assert body["step"] == "map"
    assert body["company_id"] == COMPANY
    assert body["total_rows"] == 4
    assert {m["supplier_column"]: m["system_field"] for m in body["mappings"]}["Unit Price"] == "unit_cost"
    assert body["duplicate_mappings"] == {}


def test_unreadable_upload_is_a_bad_request(client, session_registry):
    response = upload(client, content=b"", filename="po.csv")
    assert response.status_code == 400
    assert response.json()["error_type"] == "ParseError"
    assert len(session_registry) == 0


def test_full_purchase_order_import(client, session_id, entity_store):
    base = f"/api/v1/imports/{session_id}"

    response = client.put(
        f"{base}/mappings", json={"mappings": [{"supplier_column": "Qty", "system_field": "unit_cost"}]}
    )
    assert response.json()["duplicate_mappings"] == {"unit_cost": ["Unit Price", "Qty"]}
    client.put(
        f"{base}/mappings",
        json={"mappings": [{"supplier_column": "Qty", "system_field": "quantity_ordered"}]},
    )

    response = client.put(
        f"{base}/aliases", json={"supplier_column": "Unit Price", "aliases": "Landed Cost, Net Price"}
    )
    assert response.json()["aliases"] == ["Landed Cost", "Net Price"]

    response = client.post(f"{base}/normalize")
    body = response.json()
    assert body["step"] == "normalize"
    assert len(body["entity_groups"]) == 4

    response = client.post(
        f"{base}/decisions",
        json={
            "decisions": [
                {
                    "action": "create_new",
                    "field": "product_type",
                    "variants": ["laptop", "Laptop"],
                    "canonical_name": "Laptop",
                },
                {"action": "skip", "field": "brand", "variants": ["hp"]},
                {
                    "action": "link_existing",
                    "field": "product_type",
                    "variants": ["desktop"],
                    "existing_id": 999,
                    "canonical_name": "Desktop",
                },
                {"action": "create_new", "field": "brand", "variants": ["dell"], "canonical_name": " "},
            ]
        },
    )
    report = response.json()
    assert report["step"] == "preview"
    assert report["succeeded"] == 3
    assert report["failed"] == 1
    assert report["errors"][0]["item"] == "dell"

    response = client.post(f"{base}/preview", json={"exchange_rate": 2})
    preview = response.json()
    assert preview["valid_rows"] == 3
    assert preview["skipped_rows"] == [3]
    first = preview["items"][0]
    assert first["unit_cost"] == 2401.0
    assert first["product_type"] == "Laptop"
    assert first["components"]["ram"][0]["capacity"] == "8GB"

    response = client.post(
        f"{base}/commit", json={"exchange_rate": 1, "source_currency": "USD", "purchase_order_ref": "PO-1"}
    )
    assert response.status_code == 200
    result = response.json()
    assert result["imported"] == 3
    assert result["persisted_items"] == 3
    assert result["learned_keywords"] == {"unit_cost": ["landed cost", "net price"]}
    assert len(entity_store.list_expected_items(COMPANY, "PO-1")) == 3

    assert client.get(base).json()["step"] == "complete"
    response = client.post(f"{base}/commit", json={"exchange_rate": 1})
    assert response.status_code == 409
    assert response.json()["error_type"] == "InvalidStepTransitionError"


def test_sessions_are_scoped_to_the_company(client, session_id):
    assert client.get(f"/api/v1/imports/{session_id}").status_code == 200

    response = client.get(f"/api/v1/imports/{session_id}", headers={"X-Company-Id": "globex"})
    assert response.status_code == 404
    assert response.json()["error_type"] == "SessionNotFoundError"

    assert client.get("/api/v1/imports/missing").status_code == 404


def test_discard_session(client, session_id):
    assert client.delete(f"/api/v1/imports/{session_id}").status_code == 204
    assert client.get(f"/api/v1/imports/{session_id}").status_code == 404


def test_existing_serial_blocks_commit(client, session_id, entity_store):
    entity_store.add_inventory_asset(COMPANY, "SN001")

    response = client.post(f"/api/v1/imports/{session_id}/commit", json={"exchange_rate": 1})
    assert response.status_code == 409
    body = response.json()
    assert body["error_type"] == "ConflictError"
    assert body["serials"] == ["SN001"]


def test_invalid_exchange_rate_includes_hint(client, session_id):
    response = client.post(f"/api/v1/imports/{session_id}/commit", json={"exchange_rate": 0})
    assert response.status_code == 422
    body = response.json()
    assert body["error_type"] == "ValidationError"
    assert body["hint"] == "Enter an exchange rate greater than 0"


def test_unknown_decision_action_is_rejected(client, session_id):
    client.post(f"/api/v1/imports/{session_id}/normalize")
    response = client.post(
        f"/api/v1/imports/{session_id}/decisions",
        json={"decisions": [{"action": "merge", "field": "brand", "variants": ["dell"]}]},
    )
    assert response.status_code == 422
    assert response.json()["error_type"] == "RequestValidationError"


def test_append_through_the_api(client, entity_store):
    entity_store.save_expected_items(
        COMPANY, "PO-7", [{"line_number": 1, "serial_number": "SN001", "brand": "Dell"}]
    )
    response = upload(client, content=b"S/N,RAM\nSN001,32GB\nSN404,8GB\n", mode="append")
    body = response.json()
    assert body["step"] == "append"
    assert body["mode"] == "append"

    response = client.post(
        f"/api/v1/imports/{body['session_id']}/append", json={"purchase_order_ref": "PO-7"}
    )
    report = response.json()
    assert report["updated"] == 1
    assert report["not_found_serials"] == ["SN404"]
    assert report["step"] == "complete"
    assert entity_store.list_expected_items(COMPANY, "PO-7")[0].expected_specs == {"ram": "32GB"}


def test_rule_lifecycle(client):
    rules = client.get("/api/v1/intelligence/rules").json()
    assert len(rules) == 15
    assert {r["rule_type"] for r in rules} == {"column_mapping"}

    assert client.get("/api/v1/intelligence/rules", params={"rule_type": "regex"}).status_code == 400

    response = client.post(
        "/api/v1/intelligence/rules",
        json={
            "rule_type": "value_lookup",
            "applies_to_field": "brand",
            "input_keywords": ["hewlett packard"],
            "output_value": "HP",
        },
    )
    assert response.status_code == 201
    rule_id = response.json()["id"]

    response = client.post(
        "/api/v1/intelligence/rules",
        json={"rule_type": "value_lookup", "applies_to_field": "brand"},
    )
    assert response.status_code == 400

    response = client.put(f"/api/v1/intelligence/rules/{rule_id}/priority", json={"priority": 80})
    assert response.json() == {"id": rule_id, "priority": 80}
    assert client.put("/api/v1/intelligence/rules/9999/priority", json={"priority": 1}).status_code == 404

    assert client.delete(f"/api/v1/intelligence/rules/{rule_id}").status_code == 204
    assert client.delete(f"/api/v1/intelligence/rules/{rule_id}").status_code == 404

    listed = client.get(
        "/api/v1/intelligence/rules", params={"rule_type": "value_lookup", "include_inactive": True}
    ).json()
    assert [(r["id"], r["is_active"]) for r in listed] == [(rule_id, False)]


def test_seed_export_and_import_rules(client):
    assert client.post("/api/v1/intelligence/rules/seed").json() == {"created": 0}

    exported = client.get("/api/v1/intelligence/rules/export")
    assert exported.status_code == 200
    assert "column_mapping" in exported.text

    other = {"X-Company-Id": "globex"}
    response = client.post(
        "/api/v1/intelligence/rules/import", json={"content": exported.text}, headers=other
    )
    assert response.status_code == 201
    assert response.json()["imported"] == 15
    assert len(client.get("/api/v1/intelligence/rules", headers=other).json()) == 15

    response = client.post("/api/v1/intelligence/rules/import", json={"content": "rule_type: ["})
    assert response.status_code == 400


def test_suggest_and_field_catalog(client):
    suggestions = client.post("/api/v1/intelligence/suggest", json={"headers": ["S/N", "Mystery"]}).json()
    assert suggestions[0]["suggested_field"] == "serial_number"
    assert suggestions[0]["confidence"] == 1.0
    assert suggestions[1]["suggested_field"] == ""

    fields = client.get("/api/v1/intelligence/fields").json()
    assert len(fields) == 15
    assert fields[0]["field_name"] == "serial_number"

    valid = client.post(
        "/api/v1/intelligence/fields/validate", json={"field_name": "specifications.warranty_length"}
    ).json()
    assert valid == {"valid": True, "error": None, "warning": None, "suggestion": None}

    standard = client.post("/api/v1/intelligence/fields/validate", json={"field_name": "brand"}).json()
    assert standard["valid"] is False
    assert standard["suggestion"] == "brand"
