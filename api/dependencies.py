"""FastAPI dependencies for stores, the session registry and the calling company."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from api.services.session_registry import SessionRegistry
from import_engine.config import AppConfig, get_config
from import_engine.database.entity_store import EntityStore
from import_engine.database.rule_repository import RuleRepository
from import_engine.database.schema import get_session_factory, init_database


@lru_cache()
def get_database_engine():
    """Get cached database engine."""
    config = get_config()
    return init_database(config.database_path)


@lru_cache()
def get_session_factory_cached():
    """Get cached session factory."""
    engine = get_database_engine()
    return get_session_factory(engine)


def get_app_config() -> AppConfig:
    return get_config()


@lru_cache()
def get_entity_store() -> EntityStore:
    return EntityStore(get_session_factory_cached())


@lru_cache()
def get_rule_repository() -> RuleRepository:
    """
    Get the shared rule repository.

    One instance per process so every request sees the same rule cache.
    """
    config = get_config()
    return RuleRepository(get_session_factory_cached(), cache_size=config.rule_cache_size)


@lru_cache()
def get_session_registry() -> SessionRegistry:
    return SessionRegistry(max_sessions=get_config().max_import_sessions)


def get_company_id(
    x_company_id: Optional[str] = Header(None, description="Company the request acts for"),
    config: AppConfig = Depends(get_app_config),
) -> str:
    """Company from the X-Company-Id header, else the configured default."""
    company_id = (x_company_id or "").strip()
    return company_id or config.default_company_id
