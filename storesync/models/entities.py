"""
Synced Entity Models

Local copies of the remote store's products, customers and orders.
Rows are created and updated by sync jobs only; the pull path never deletes.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Boolean, Text, BigInteger, UniqueConstraint
from datetime import datetime

from storesync.models.base import Base


class SyncMetadataMixin:
    """Scope and sync tracking columns shared by every synced entity"""

    id = Column(Integer, primary_key=True, index=True)

    # Tenant scope
    store_id = Column(String, index=True, nullable=False)
    organization_id = Column(String, index=True, nullable=True)
    user_id = Column(String, nullable=True)  # Actor that last synced the row

    # Remote platform's numeric id, primary match key
    external_id = Column(BigInteger, index=True, nullable=True)

    # Full remote payload as last seen
    data = Column(JSON, nullable=True)

    # Sync tracking
    last_synced_at = Column(DateTime, nullable=True)
    sync_status = Column(String, index=True, nullable=True)  # synced, failed
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Product(SyncMetadataMixin, Base):
    """
    Inventory products

    Synced from GET /wp-json/wc/v3/products
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("store_id", "external_id", name="uq_products_store_external"),
    )

    product_ref = Column(String, index=True, nullable=True)  # Legacy id (remote id as string)
    sku = Column(String, index=True, nullable=True)

    name = Column(String, nullable=False, default="N/A")
    slug = Column(String, nullable=True)
    permalink = Column(String, nullable=True)
    type = Column(String, nullable=True)  # simple, variable, grouped, external
    status = Column(String, index=True, nullable=True)  # publish, draft, pending, private
    description = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)

    # Pricing
    price = Column(Float, default=0)
    regular_price = Column(Float, default=0)
    sale_price = Column(Float, default=0)
    on_sale = Column(Boolean, default=False)

    # Stock
    manage_stock = Column(Boolean, default=False)
    stock_quantity = Column(Integer, default=0)
    stock_status = Column(String, nullable=True)  # instock, outofstock, onbackorder

    categories = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    images = Column(JSON, nullable=True)

    date_created = Column(DateTime, nullable=True)
    date_modified = Column(DateTime, nullable=True)


class Customer(SyncMetadataMixin, Base):
    """
    Store customers

    Synced from GET /wp-json/wc/v3/customers
    """
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("store_id", "external_id", name="uq_customers_store_external"),
    )

    customer_ref = Column(String, index=True, nullable=True)  # Legacy id (remote id as string)
    email = Column(String, index=True, nullable=True)

    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    username = Column(String, nullable=True)
    role = Column(String, nullable=True)
    is_paying_customer = Column(Boolean, default=False)
    avatar_url = Column(String, nullable=True)

    billing = Column(JSON, nullable=True)
    shipping = Column(JSON, nullable=True)

    date_created = Column(DateTime, nullable=True)
    date_modified = Column(DateTime, nullable=True)


class Order(SyncMetadataMixin, Base):
    """
    Store orders

    Synced from GET /wp-json/wc/v3/orders. Line items carry the local
    product id (inventory_id) when the product has been synced.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("store_id", "external_id", name="uq_orders_store_external"),
    )

    order_ref = Column(String, index=True, nullable=True)  # Legacy id (remote id as string)
    order_key = Column(String, index=True, nullable=True)
    number = Column(String, nullable=True)

    # Customer link
    customer_external_id = Column(BigInteger, nullable=True)  # Remote customer id (0 = guest)
    customer_id = Column(Integer, index=True, nullable=True)  # Local customers.id

    status = Column(String, index=True, nullable=True)
    currency = Column(String, nullable=True)
    prices_include_tax = Column(Boolean, default=False)

    # Amounts
    total = Column(Float, default=0)
    total_tax = Column(Float, default=0)
    discount_total = Column(Float, default=0)
    shipping_total = Column(Float, default=0)

    payment_method = Column(String, nullable=True)
    payment_method_title = Column(String, nullable=True)
    transaction_id = Column(String, nullable=True)
    customer_note = Column(Text, nullable=True)

    billing = Column(JSON, nullable=True)
    shipping = Column(JSON, nullable=True)
    line_items = Column(JSON, nullable=True)  # [{product_id, sku, quantity, total, inventory_id}, ...]
    shipping_lines = Column(JSON, nullable=True)

    date_created = Column(DateTime, nullable=True)
    date_modified = Column(DateTime, nullable=True)
    date_paid = Column(DateTime, nullable=True)
    date_completed = Column(DateTime, nullable=True)


# entity type -> model
ENTITY_MODELS = {
    "product": Product,
    "customer": Customer,
    "order": Order,
}
