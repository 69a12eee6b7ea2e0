"""Database module for catalog entities, aliases and intelligence rules."""

from import_engine.database.entity_store import (
    AssetRecord,
    CatalogEntity,
    EntityStore,
    ExpectedItemRecord,
    catalog_table_name,
    is_catalog_field,
)
from import_engine.database.rule_repository import RuleRepository
from import_engine.database.schema import get_session_factory, init_database

__all__ = [
    "AssetRecord",
    "CatalogEntity",
    "EntityStore",
    "ExpectedItemRecord",
    "RuleRepository",
    "catalog_table_name",
    "get_session_factory",
    "init_database",
    "is_catalog_field",
]
