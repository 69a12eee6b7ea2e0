"""SQLAlchemy models for the catalog, alias and intelligence-rule store."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ProductType(Base):
    """Catalog entry for a product category (Laptop, Desktop, Monitor...)."""

    __tablename__ = "product_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_product_type_name"),
    )

    def __repr__(self):
        return f"<ProductType(id={self.id}, name={self.name})>"


class Supplier(Base):
    """Catalog entry for a supplier."""

    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_supplier_name"),
    )

    def __repr__(self):
        return f"<Supplier(id={self.id}, name={self.name})>"


class Location(Base):
    """Catalog entry for a stock location."""

    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_location_name"),
    )

    def __repr__(self):
        return f"<Location(id={self.id}, name={self.name})>"


class ProductTypeAlias(Base):
    """Alternative spelling bound to a product type."""

    __tablename__ = "product_type_aliases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False)
    alias = Column(String(255), nullable=False)
    alias_normalized = Column(String(255), nullable=False)  # lowercased alias
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("product_type_id", "alias_normalized", name="uq_product_type_alias"),
        Index("idx_product_type_alias_lookup", "company_id", "alias_normalized"),
    )

    def __repr__(self):
        return f"<ProductTypeAlias(alias={self.alias}, product_type_id={self.product_type_id})>"


class ModelAlias(Base):
    """Alternative spelling of a model name bound to its canonical spelling."""

    __tablename__ = "model_aliases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False)
    brand = Column(String(255), nullable=False, default="Unknown")
    variant_name = Column(String(255), nullable=False)
    variant_normalized = Column(String(255), nullable=False)  # lowercased variant
    canonical_name = Column(String(255), nullable=False)
    full_model_name = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "company_id", "canonical_name", "variant_normalized", name="uq_model_alias"
        ),
        Index("idx_model_alias_lookup", "company_id", "variant_normalized"),
    )

    def __repr__(self):
        return f"<ModelAlias(variant={self.variant_name}, canonical={self.canonical_name})>"


class ImportIntelligenceRule(Base):
    """
    Learned rule driving column-mapping suggestions, value lookups and
    component parsing.

    Rules are only ever added or deactivated, never rewritten in place,
    except for merging new keywords into a column-mapping rule.
    """

    __tablename__ = "import_intelligence_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False)
    rule_type = Column(String(32), nullable=False)  # column_mapping | value_lookup | component_pattern
    applies_to_field = Column(String(255), nullable=False)
    input_keywords = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, default=10, nullable=False)  # Higher priority = checked first
    output_value = Column(String(255), nullable=True)
    output_reference_id = Column(Integer, nullable=True)
    output_reference_table = Column(String(64), nullable=True)
    parse_with_function = Column(String(64), nullable=True)
    rule_metadata = Column("metadata", JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_rules_company_type", "company_id", "rule_type", "is_active"),
        Index("idx_rules_field", "company_id", "applies_to_field"),
    )

    def __repr__(self):
        return f"<ImportIntelligenceRule(id={self.id}, type={self.rule_type}, field={self.applies_to_field})>"


class InventoryAsset(Base):
    """Already-received inventory item. Serial numbers are unique per company."""

    __tablename__ = "inventory_assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False)
    serial_number = Column(String(255), nullable=False)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=True)
    brand = Column(String(255), nullable=True)
    model = Column(String(255), nullable=True)
    cpu = Column(String(255), nullable=True)
    ram = Column(String(255), nullable=True)
    storage = Column(String(255), nullable=True)
    screen_size = Column(String(255), nullable=True)
    other_specs = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "serial_number", name="uq_asset_serial"),
    )

    def __repr__(self):
        return f"<InventoryAsset(id={self.id}, serial={self.serial_number})>"


class ExpectedReceivingItem(Base):
    """Line item committed from a supplier import, waiting to be received."""

    __tablename__ = "expected_receiving_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(64), nullable=False)
    purchase_order_ref = Column(String(255), nullable=False)
    line_number = Column(Integer, nullable=False)
    serial_number = Column(String(255), nullable=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=True)
    brand = Column(String(255), nullable=True)
    model = Column(String(255), nullable=True)
    supplier_sku = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    expected_condition = Column(String(64), nullable=True)
    unit_cost = Column(Float, nullable=True)
    unit_cost_source = Column(Float, nullable=True)
    quantity_ordered = Column(Integer, default=1, nullable=False)
    expected_specs = Column(JSON, nullable=True)
    received = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_expected_items_po", "company_id", "purchase_order_ref"),
    )

    def __repr__(self):
        return f"<ExpectedReceivingItem(id={self.id}, serial={self.serial_number})>"


# Catalog-backed fields and the table that stores them
CATALOG_MODELS = {
    "product_type": ProductType,
    "supplier": Supplier,
    "location": Location,
}
