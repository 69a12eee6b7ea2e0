from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from import_engine.config import AppConfig
from import_engine.database.entity_store import EntityStore
from import_engine.database.rule_repository import RuleRepository
from import_engine.database.schema import get_session_factory, init_database
from import_engine.imports.model import ParsedSheet

COMPANY = "acme"


@pytest.fixture()
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(DATABASE_PATH=str(tmp_path / "config.db"), MAX_WORKERS=2)


@pytest.fixture()
def session_factory(tmp_path: Path):
    engine = init_database(tmp_path / "import_intelligence.db")
    yield get_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def entity_store(session_factory) -> EntityStore:
    return EntityStore(session_factory)


@pytest.fixture()
def rule_repository(session_factory) -> RuleRepository:
    return RuleRepository(session_factory)


@pytest.fixture()
def seeded_repository(rule_repository: RuleRepository) -> RuleRepository:
    rule_repository.seed_default_column_rules(COMPANY)
    return rule_repository


@pytest.fixture()
def po_sheet() -> ParsedSheet:
    return ParsedSheet(
        headers=["Serial Number", "Type", "Brand", "Model", "Unit Price", "Qty", "CPU", "RAM"],
        rows=[
            ["SN001", "laptop", "dell", "Latitude 7490", "$1,200.50", "1", "i7-8650U", "2x8GB"],
            ["SN002", "Laptop", "DELL", "Latitude 7490", "1100", "2", "i7-8650U", "16GB"],
            ["SN003", "desktop", "hp", "EliteDesk 800", "0", "1", "i5-8500", "8GB"],
            ["SN004", "laptop", "Lenovo", "T480", "950", "", "i5-8350U", "16GB (2x8GB)"],
        ],
    )


@pytest.fixture()
def session_registry():
    from api.services.session_registry import SessionRegistry

    return SessionRegistry(max_sessions=3)


@pytest.fixture()
def client(entity_store, seeded_repository, app_config, session_registry):
    from api.dependencies import (
        get_app_config,
        get_entity_store,
        get_rule_repository,
        get_session_registry,
    )
    from api.main import app

    app.dependency_overrides[get_entity_store] = lambda: entity_store
    app.dependency_overrides[get_rule_repository] = lambda: seeded_repository
    app.dependency_overrides[get_session_registry] = lambda: session_registry
    app.dependency_overrides[get_app_config] = lambda: app_config
    with TestClient(app) as test_client:
        test_client.headers.update({"X-Company-Id": COMPANY})
        yield test_client
    app.dependency_overrides.clear()
