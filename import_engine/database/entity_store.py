"""Catalog, alias and inventory access for the import engine."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError

from import_engine.database.base_store import BaseStore
from import_engine.database.models import (
    CATALOG_MODELS,
    ExpectedReceivingItem,
    InventoryAsset,
    ModelAlias,
    ProductType,
    ProductTypeAlias,
)
from import_engine.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement
_IN_CHUNK_SIZE = 500

# Columns on the asset row that mirror an expected spec of the same name
ASSET_SPEC_COLUMNS = ("cpu", "ram", "storage", "screen_size")

EXPECTED_ITEM_COLUMNS = (
    "serial_number",
    "product_type_id",
    "brand",
    "model",
    "supplier_sku",
    "description",
    "expected_condition",
    "unit_cost",
    "unit_cost_source",
    "quantity_ordered",
)


@dataclass
class CatalogEntity:
    """A catalog row (product type, supplier or location)."""

    id: int
    name: str


@dataclass
class ExpectedItemRecord:
    """Expected receiving item as seen by the append path."""

    id: int
    purchase_order_ref: str
    line_number: int
    serial_number: Optional[str]
    product_type_id: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    unit_cost: Optional[float] = None
    quantity_ordered: int = 1
    expected_specs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AssetRecord:
    """Already-received inventory asset."""

    id: int
    serial_number: str
    product_type_id: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    cpu: Optional[str] = None
    ram: Optional[str] = None
    storage: Optional[str] = None
    screen_size: Optional[str] = None
    other_specs: Dict[str, Any] = field(default_factory=dict)


def is_catalog_field(field_name: str) -> bool:
    """Whether a field is backed by a catalog table."""
    return field_name in CATALOG_MODELS


def catalog_table_name(field_name: str) -> Optional[str]:
    model = CATALOG_MODELS.get(field_name)
    return model.__tablename__ if model is not None else None


class EntityStore(BaseStore):
    """
    Reads and writes catalog entities, aliases, inventory assets and
    expected receiving items for one database.

    All writes are idempotent: find-or-create keyed by (company, name) and
    alias inserts that skip existing case-insensitive duplicates.
    """

    # ------------------------------------------------------------------
    # Catalog entities
    # ------------------------------------------------------------------

    def _catalog_model(self, field_name: str):
        model = CATALOG_MODELS.get(field_name)
        if model is None:
            raise ValueError(f"Field '{field_name}' is not backed by a catalog table")
        return model

    def list_active_entities(self, company_id: str, field_name: str) -> List[CatalogEntity]:
        """
        List the company's active entities for a catalog-backed field.

        Non-catalog fields (brand, model, cpu...) have no table and return [].
        """
        if not is_catalog_field(field_name):
            return []

        model = self._catalog_model(field_name)
        with self._get_session(commit=False) as session:
            rows = (
                session.query(model)
                .filter(model.company_id == company_id, model.is_active.is_(True))
                .order_by(model.name)
                .all()
            )
            return [CatalogEntity(id=row.id, name=row.name) for row in rows]

    def get_entity(
        self, company_id: str, field_name: str, entity_id: int
    ) -> Optional[CatalogEntity]:
        """Fetch a catalog entity by id, scoped to the company."""
        model = self._catalog_model(field_name)
        with self._get_session(commit=False) as session:
            row = (
                session.query(model)
                .filter(model.company_id == company_id, model.id == entity_id)
                .first()
            )
            return CatalogEntity(id=row.id, name=row.name) if row else None

    def find_entity_by_name(
        self, company_id: str, field_name: str, name: str, case_sensitive: bool = True
    ) -> Optional[CatalogEntity]:
        """Find a catalog entity by name (exact, or case-insensitive on request)."""
        model = self._catalog_model(field_name)
        with self._get_session(commit=False) as session:
            query = session.query(model).filter(model.company_id == company_id)
            if case_sensitive:
                query = query.filter(model.name == name)
            else:
                query = query.filter(func.lower(model.name) == name.strip().lower())
            row = query.order_by(model.id).first()
            return CatalogEntity(id=row.id, name=row.name) if row else None

    @retry_with_backoff(exceptions=(OperationalError,))
    def find_or_create_entity(self, company_id: str, field_name: str, name: str) -> CatalogEntity:
        """
        Return the entity with this exact name, creating it when missing.

        Product types are appended at the end of the company's sort order.
        A concurrent insert of the same name is resolved by re-reading the
        winner's row.

        Args:
            company_id: Owning company
            field_name: Catalog-backed field (product_type, supplier, location)
            name: Exact entity name

        Returns:
            The existing or newly created entity
        """
        model = self._catalog_model(field_name)
        try:
            with self._get_session() as session:
                existing = (
                    session.query(model)
                    .filter(model.company_id == company_id, model.name == name)
                    .first()
                )
                if existing:
                    return CatalogEntity(id=existing.id, name=existing.name)

                entity = model(company_id=company_id, name=name, is_active=True)
                if model is ProductType:
                    max_order = (
                        session.query(func.max(ProductType.sort_order))
                        .filter(ProductType.company_id == company_id)
                        .scalar()
                    )
                    entity.sort_order = (max_order or 0) + 1
                session.add(entity)
                session.flush()
                logger.info(f"Created {field_name} '{name}' (id={entity.id}) for company {company_id}")
                return CatalogEntity(id=entity.id, name=entity.name)
        except IntegrityError:
            found = self.find_entity_by_name(company_id, field_name, name)
            if found is None:
                raise
            logger.debug(f"{field_name} '{name}' was created concurrently, reusing id={found.id}")
            return found

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    @retry_with_backoff(exceptions=(OperationalError,))
    def save_product_type_alias(self, company_id: str, product_type_id: int, alias: str) -> bool:
        """
        Bind an alias to a product type.

        Returns:
            True if a new alias row was written, False if it already existed
        """
        normalized = alias.strip().lower()
        try:
            with self._get_session() as session:
                exists = (
                    session.query(ProductTypeAlias.id)
                    .filter(
                        ProductTypeAlias.product_type_id == product_type_id,
                        ProductTypeAlias.alias_normalized == normalized,
                    )
                    .first()
                )
                if exists:
                    return False
                session.add(
                    ProductTypeAlias(
                        company_id=company_id,
                        product_type_id=product_type_id,
                        alias=alias.strip(),
                        alias_normalized=normalized,
                    )
                )
                return True
        except IntegrityError:
            return False

    @retry_with_backoff(exceptions=(OperationalError,))
    def save_model_alias(self, company_id: str, variant: str, canonical_name: str) -> bool:
        """
        Bind a model-name variant to its canonical spelling.

        Returns:
            True if a new alias row was written, False if it already existed
        """
        normalized = variant.strip().lower()
        try:
            with self._get_session() as session:
                exists = (
                    session.query(ModelAlias.id)
                    .filter(
                        ModelAlias.company_id == company_id,
                        ModelAlias.canonical_name == canonical_name,
                        ModelAlias.variant_normalized == normalized,
                    )
                    .first()
                )
                if exists:
                    return False
                session.add(
                    ModelAlias(
                        company_id=company_id,
                        brand="Unknown",
                        variant_name=variant.strip(),
                        variant_normalized=normalized,
                        canonical_name=canonical_name,
                        full_model_name=f"Unknown {canonical_name}",
                    )
                )
                return True
        except IntegrityError:
            return False

    def find_product_type_by_alias(self, company_id: str, value: str) -> Optional[CatalogEntity]:
        """Resolve a product type through its alias table (case-insensitive)."""
        normalized = value.strip().lower()
        with self._get_session(commit=False) as session:
            row = (
                session.query(ProductType)
                .join(ProductTypeAlias, ProductTypeAlias.product_type_id == ProductType.id)
                .filter(
                    ProductTypeAlias.company_id == company_id,
                    ProductTypeAlias.alias_normalized == normalized,
                )
                .order_by(ProductTypeAlias.id)
                .first()
            )
            return CatalogEntity(id=row.id, name=row.name) if row else None

    def find_model_by_alias(self, company_id: str, value: str) -> Optional[str]:
        """Resolve a model variant to its canonical name (case-insensitive)."""
        normalized = value.strip().lower()
        with self._get_session(commit=False) as session:
            row = (
                session.query(ModelAlias.canonical_name)
                .filter(
                    ModelAlias.company_id == company_id,
                    ModelAlias.variant_normalized == normalized,
                )
                .order_by(ModelAlias.id)
                .first()
            )
            return row[0] if row else None

    def list_product_type_aliases(self, company_id: str, product_type_id: int) -> List[str]:
        with self._get_session(commit=False) as session:
            rows = (
                session.query(ProductTypeAlias.alias)
                .filter(
                    ProductTypeAlias.company_id == company_id,
                    ProductTypeAlias.product_type_id == product_type_id,
                )
                .order_by(ProductTypeAlias.id)
                .all()
            )
            return [row[0] for row in rows]

    def list_model_aliases(self, company_id: str, canonical_name: str) -> List[str]:
        with self._get_session(commit=False) as session:
            rows = (
                session.query(ModelAlias.variant_name)
                .filter(
                    ModelAlias.company_id == company_id,
                    ModelAlias.canonical_name == canonical_name,
                )
                .order_by(ModelAlias.id)
                .all()
            )
            return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Inventory assets
    # ------------------------------------------------------------------

    def find_existing_serials(self, company_id: str, serials: List[str]) -> List[str]:
        """
        Return the serials that already exist in the company's inventory.

        Args:
            company_id: Owning company
            serials: Candidate serial numbers (blanks ignored)

        Returns:
            Matching serials in the order they were first requested
        """
        unique = list(dict.fromkeys(s for s in serials if s))
        if not unique:
            return []

        found = set()
        with self._get_session(commit=False) as session:
            for start in range(0, len(unique), _IN_CHUNK_SIZE):
                chunk = unique[start:start + _IN_CHUNK_SIZE]
                rows = (
                    session.query(InventoryAsset.serial_number)
                    .filter(
                        InventoryAsset.company_id == company_id,
                        InventoryAsset.serial_number.in_(chunk),
                    )
                    .all()
                )
                found.update(row[0] for row in rows)

        return [s for s in unique if s in found]

    @retry_with_backoff(exceptions=(OperationalError,))
    def add_inventory_asset(self, company_id: str, serial_number: str, **fields) -> AssetRecord:
        """Record a received asset. Used by receiving flows and fixtures."""
        with self._get_session() as session:
            asset = InventoryAsset(company_id=company_id, serial_number=serial_number, **fields)
            session.add(asset)
            session.flush()
            return self._to_asset_record(asset)

    def get_asset_by_serial(self, company_id: str, serial_number: str) -> Optional[AssetRecord]:
        with self._get_session(commit=False) as session:
            asset = (
                session.query(InventoryAsset)
                .filter(
                    InventoryAsset.company_id == company_id,
                    InventoryAsset.serial_number == serial_number,
                )
                .first()
            )
            return self._to_asset_record(asset) if asset else None

    @retry_with_backoff(exceptions=(OperationalError,))
    def mirror_to_asset(self, company_id: str, serial_number: str, updates: Dict[str, Any]) -> bool:
        """
        Copy appended item fields onto an already-received asset.

        Only product_type_id, brand, model and expected_specs are mirrored;
        the known spec keys also land in their own asset columns.

        Returns:
            True if an asset with this serial existed and was updated
        """
        asset_updates: Dict[str, Any] = {}
        for key in ("product_type_id", "brand", "model"):
            if key in updates:
                asset_updates[key] = updates[key]

        specs = updates.get("expected_specs")
        if specs is not None:
            for key in ASSET_SPEC_COLUMNS:
                if key in specs:
                    asset_updates[key] = specs[key]
            asset_updates["other_specs"] = dict(specs)

        if not asset_updates:
            return False

        with self._get_session() as session:
            asset = (
                session.query(InventoryAsset)
                .filter(
                    InventoryAsset.company_id == company_id,
                    InventoryAsset.serial_number == serial_number,
                )
                .first()
            )
            if asset is None:
                return False
            for key, value in asset_updates.items():
                setattr(asset, key, value)
            return True

    # ------------------------------------------------------------------
    # Expected receiving items
    # ------------------------------------------------------------------

    @retry_with_backoff(exceptions=(OperationalError,))
    def save_expected_items(
        self, company_id: str, purchase_order_ref: str, records: List[Dict[str, Any]]
    ) -> int:
        """
        Persist committed line items as expected receiving items.

        Args:
            company_id: Owning company
            purchase_order_ref: Purchase order the items belong to
            records: Dicts with line_number, expected_specs and EXPECTED_ITEM_COLUMNS keys

        Returns:
            Number of items written
        """
        with self._get_session() as session:
            for record in records:
                values = {key: record.get(key) for key in EXPECTED_ITEM_COLUMNS}
                values["quantity_ordered"] = values["quantity_ordered"] or 1
                session.add(
                    ExpectedReceivingItem(
                        company_id=company_id,
                        purchase_order_ref=purchase_order_ref,
                        line_number=record["line_number"],
                        expected_specs=record.get("expected_specs") or {},
                        **values,
                    )
                )
        logger.info(
            f"Saved {len(records)} expected items for PO {purchase_order_ref} (company {company_id})"
        )
        return len(records)

    def list_expected_items(self, company_id: str, purchase_order_ref: str) -> List[ExpectedItemRecord]:
        with self._get_session(commit=False) as session:
            rows = (
                session.query(ExpectedReceivingItem)
                .filter(
                    ExpectedReceivingItem.company_id == company_id,
                    ExpectedReceivingItem.purchase_order_ref == purchase_order_ref,
                )
                .order_by(ExpectedReceivingItem.line_number, ExpectedReceivingItem.id)
                .all()
            )
            return [self._to_expected_record(row) for row in rows]

    @retry_with_backoff(exceptions=(OperationalError,))
    def update_expected_item(self, item_id: int, updates: Dict[str, Any]) -> ExpectedItemRecord:
        """
        Apply column updates to one expected item.

        Raises:
            LookupError: If the item does not exist
            ValueError: If an update names an unknown column
        """
        with self._get_session() as session:
            item = session.get(ExpectedReceivingItem, item_id)
            if item is None:
                raise LookupError(f"Expected item {item_id} not found")
            for key, value in updates.items():
                if key == "expected_specs":
                    item.expected_specs = dict(value)
                elif key in EXPECTED_ITEM_COLUMNS:
                    setattr(item, key, value)
                else:
                    raise ValueError(f"Unknown expected item column: {key}")
            session.flush()
            return self._to_expected_record(item)

    def _to_expected_record(self, row: ExpectedReceivingItem) -> ExpectedItemRecord:
        return ExpectedItemRecord(
            id=row.id,
            purchase_order_ref=row.purchase_order_ref,
            line_number=row.line_number,
            serial_number=row.serial_number,
            product_type_id=row.product_type_id,
            brand=row.brand,
            model=row.model,
            unit_cost=row.unit_cost,
            quantity_ordered=row.quantity_ordered,
            expected_specs=dict(row.expected_specs or {}),
        )

    def _to_asset_record(self, asset: InventoryAsset) -> AssetRecord:
        return AssetRecord(
            id=asset.id,
            serial_number=asset.serial_number,
            product_type_id=asset.product_type_id,
            brand=asset.brand,
            model=asset.model,
            cpu=asset.cpu,
            ram=asset.ram,
            storage=asset.storage,
            screen_size=asset.screen_size,
            other_specs=dict(asset.other_specs or {}),
        )
