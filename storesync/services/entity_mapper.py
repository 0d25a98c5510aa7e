"""
Entity field mapping between local records and the WooCommerce REST API.

Pure functions only. Push direction (`*_to_remote`) builds the payload
for POST/PUT, substituting defaults for anything missing locally. Pull
direction (`*_from_remote`) turns a remote record into local column values.
Neither validates; rejecting bad responses is the caller's job.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from dateutil import parser as date_parser


def _money(value: Any) -> str:
    """Remote money fields are decimal strings; missing means '0'."""
    return str(value) if value else "0"


def _price(value: Any) -> str:
    return str(value) if value else ""


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_datetime(val) -> Optional[datetime]:
    """Parse a remote timestamp to naive UTC, None when absent or unparseable"""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        dt = val
    else:
        try:
            dt = date_parser.parse(str(val))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


# ────────────────────────────────────────────
# PUSH: local -> remote
# ────────────────────────────────────────────


def product_to_remote(product: Dict[str, Any]) -> Dict[str, Any]:
    """Map a local product to a WooCommerce product payload"""
    dimensions = product.get("dimensions") or {}
    return {
        "name": product.get("name"),
        "type": product.get("type") or "simple",
        "regular_price": _price(product.get("regular_price") or product.get("price")),
        "sale_price": _price(product.get("sale_price")),
        "description": product.get("description") or "",
        "short_description": product.get("short_description") or "",
        "sku": product.get("sku") or "",
        "manage_stock": product.get("manage_stock") or False,
        "stock_quantity": product.get("stock_quantity") or None,
        "stock_status": product.get("stock_status") or "instock",
        "status": product.get("status") or "publish",
        "featured": product.get("featured") or False,
        "catalog_visibility": product.get("catalog_visibility") or "visible",
        "virtual": product.get("virtual") or False,
        "downloadable": product.get("downloadable") or False,
        "weight": product.get("weight") or "",
        "dimensions": {
            "length": dimensions.get("length") or "",
            "width": dimensions.get("width") or "",
            "height": dimensions.get("height") or "",
        },
        "shipping_class": product.get("shipping_class") or "",
        "categories": product.get("categories") or [],
        "tags": product.get("tags") or [],
        "images": product.get("images") or [],
        "attributes": product.get("attributes") or [],
        "upsell_ids": product.get("upsell_ids") or [],
        "cross_sell_ids": product.get("cross_sell_ids") or [],
        "purchase_note": product.get("purchase_note") or "",
        "reviews_allowed": product.get("reviews_allowed") is not False,
        "meta_data": product.get("meta_data") or [],
        "date_on_sale_from": product.get("date_on_sale_from"),
        "date_on_sale_to": product.get("date_on_sale_to"),
        "backorders": product.get("backorders") or "no",
        "sold_individually": product.get("sold_individually") or False,
        "menu_order": product.get("menu_order") or 0,
    }


def customer_to_remote(customer: Dict[str, Any]) -> Dict[str, Any]:
    """Map a local customer to a WooCommerce customer payload"""
    return {
        "email": customer.get("email"),
        "first_name": customer.get("first_name") or "",
        "last_name": customer.get("last_name") or "",
        "username": customer.get("username") or "",
        "role": customer.get("role") or "customer",
        "billing": customer.get("billing") or {},
        "shipping": customer.get("shipping") or {},
        "meta_data": customer.get("meta_data") or [],
    }


def order_to_remote(order: Dict[str, Any]) -> Dict[str, Any]:
    """Map a local order to a WooCommerce order payload"""
    return {
        "customer_id": order.get("customer_external_id") or 0,
        "status": order.get("status") or "pending",
        "currency": order.get("currency") or "USD",
        "prices_include_tax": order.get("prices_include_tax") or False,
        "discount_total": _money(order.get("discount_total")),
        "shipping_total": _money(order.get("shipping_total")),
        "total": _money(order.get("total")),
        "total_tax": _money(order.get("total_tax")),
        "customer_note": order.get("customer_note") or "",
        "billing": order.get("billing") or {},
        "shipping": order.get("shipping") or {},
        "payment_method": order.get("payment_method") or "",
        "payment_method_title": order.get("payment_method_title") or "",
        "transaction_id": order.get("transaction_id") or "",
        "created_via": order.get("created_via") or "rest-api",
        "line_items": _line_items_to_remote(order.get("line_items") or []),
        "shipping_lines": order.get("shipping_lines") or [],
        "meta_data": order.get("meta_data") or [],
    }


def _line_items_to_remote(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # inventory_id is a local link only
    return [{k: v for k, v in item.items() if k != "inventory_id"} for item in items]


# ────────────────────────────────────────────
# PULL: remote -> local
# ────────────────────────────────────────────


def product_from_remote(remote: Dict[str, Any]) -> Dict[str, Any]:
    """Map a WooCommerce product to local product columns"""
    return {
        "external_id": remote.get("id"),
        "product_ref": str(remote["id"]) if remote.get("id") is not None else None,
        "sku": remote.get("sku") or None,
        "name": remote.get("name") or "N/A",
        "slug": remote.get("slug"),
        "permalink": remote.get("permalink"),
        "type": remote.get("type"),
        "status": remote.get("status"),
        "description": remote.get("description"),
        "short_description": remote.get("short_description"),
        "price": _to_float(remote.get("price")),
        "regular_price": _to_float(remote.get("regular_price")),
        "sale_price": _to_float(remote.get("sale_price")),
        "on_sale": bool(remote.get("on_sale")),
        "manage_stock": bool(remote.get("manage_stock")),
        "stock_quantity": _to_int(remote.get("stock_quantity")),
        "stock_status": remote.get("stock_status") or "instock",
        "categories": remote.get("categories") or [],
        "tags": remote.get("tags") or [],
        "images": remote.get("images") or [],
        "date_created": parse_datetime(remote.get("date_created")),
        "date_modified": parse_datetime(remote.get("date_modified")),
        "data": remote,
    }


def customer_from_remote(remote: Dict[str, Any]) -> Dict[str, Any]:
    """Map a WooCommerce customer to local customer columns"""
    return {
        "external_id": remote.get("id"),
        "customer_ref": str(remote["id"]) if remote.get("id") is not None else None,
        "email": remote.get("email") or None,
        "first_name": remote.get("first_name"),
        "last_name": remote.get("last_name"),
        "username": remote.get("username"),
        "role": remote.get("role"),
        "is_paying_customer": bool(remote.get("is_paying_customer")),
        "avatar_url": remote.get("avatar_url"),
        "billing": remote.get("billing") or {},
        "shipping": remote.get("shipping") or {},
        "date_created": parse_datetime(remote.get("date_created")),
        "date_modified": parse_datetime(remote.get("date_modified")),
        "data": remote,
    }


def order_from_remote(
    remote: Dict[str, Any],
    customer_id: Optional[int] = None,
    line_items: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """
    Map a WooCommerce order to local order columns.

    Args:
        remote: Order as returned by the API
        customer_id: Local customers.id of the buyer, if synced
        line_items: Line items already linked to local products;
            defaults to the remote line items unchanged
    """
    return {
        "external_id": remote.get("id"),
        "order_ref": str(remote["id"]) if remote.get("id") is not None else None,
        "order_key": remote.get("order_key") or None,
        "number": str(remote.get("number") or remote.get("id") or ""),
        "customer_external_id": remote.get("customer_id"),
        "customer_id": customer_id,
        "status": remote.get("status"),
        "currency": remote.get("currency"),
        "prices_include_tax": bool(remote.get("prices_include_tax")),
        "total": _to_float(remote.get("total")),
        "total_tax": _to_float(remote.get("total_tax")),
        "discount_total": _to_float(remote.get("discount_total")),
        "shipping_total": _to_float(remote.get("shipping_total")),
        "payment_method": remote.get("payment_method"),
        "payment_method_title": remote.get("payment_method_title"),
        "transaction_id": remote.get("transaction_id"),
        "customer_note": remote.get("customer_note"),
        "billing": remote.get("billing") or {},
        "shipping": remote.get("shipping") or {},
        "line_items": line_items if line_items is not None else (remote.get("line_items") or []),
        "shipping_lines": remote.get("shipping_lines") or [],
        "date_created": parse_datetime(remote.get("date_created")),
        "date_modified": parse_datetime(remote.get("date_modified")),
        "date_paid": parse_datetime(remote.get("date_paid")),
        "date_completed": parse_datetime(remote.get("date_completed")),
        "data": remote,
    }


TO_REMOTE = {
    "product": product_to_remote,
    "customer": customer_to_remote,
    "order": order_to_remote,
}

FROM_REMOTE = {
    "product": product_from_remote,
    "customer": customer_from_remote,
    "order": order_from_remote,
}
