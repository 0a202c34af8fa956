# services/inventory.py
"""
Seller inventory library (inventory_products) and per-show products.

Inventory items are reusable templates; copying one to a show creates a
``products`` row (quantity 1) plus a ``show_products`` link.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from supabase import Client

from services.validators import is_valid_price
from supabase_client import clean_payload, first_row, to_array, update_row

logger = logging.getLogger(__name__)

PRODUCT_STATUSES = ["active", "sold_out", "hidden", "deleted"]


class InventoryError(Exception):
    pass


def clamp_qty01(n) -> Optional[int]:
    """Binary inventory: None -> None, unparseable -> 1, <=0 -> 0, otherwise 1."""
    if n is None:
        return None
    try:
        num = float(n)
    except (TypeError, ValueError):
        return 1
    if math.isnan(num):
        return 1
    return 0 if num <= 0 else 1


def _validate(title, price):
    if not (title or "").strip():
        raise InventoryError("Title is required")
    if not is_valid_price(price):
        raise InventoryError("Price must be a number >= 0")


# ---------------- inventory library ----------------

def inventory_for_seller(client: Client, seller_id: Optional[str]) -> List[Dict[str, Any]]:
    if not seller_id:
        return []
    return (
        client.table("inventory_products").select("*")
        .eq("seller_id", seller_id).eq("status", "active")
        .order("created_at", desc=True).execute().data
        or []
    )


def create_inventory_product(
    client: Client,
    seller_id: str,
    title: str,
    price,
    description: Optional[str] = None,
    image_urls=None,
    category: Optional[str] = None,
) -> Dict[str, Any]:
    _validate(title, price)
    payload = clean_payload({
        "seller_id": seller_id,
        "title": title.strip(),
        "description": description,
        "price": float(price),
        "category": category,
        "status": "active",
    })
    payload["image_urls"] = to_array(image_urls) or []
    res = client.table("inventory_products").insert(payload).execute()
    if not res.data:
        raise InventoryError("Failed to create inventory product")
    return res.data[0]


def update_inventory_product(client: Client, inventory_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    payload = clean_payload(fields, array_fields=("image_urls",))
    payload.pop("id", None)
    payload.pop("created_at", None)
    if "price" in payload and not is_valid_price(payload["price"]):
        raise InventoryError("Price must be a number >= 0")
    return update_row(client, "inventory_products", inventory_id, payload)


def archive_inventory_product(client: Client, inventory_id: str) -> Dict[str, Any]:
    return update_inventory_product(client, inventory_id, {"status": "archived"})


def copy_inventory_to_show(client: Client, inventory_id: str, show_id: str, seller_id: str) -> str:
    inventory = first_row(client.table("inventory_products").select("*").eq("id", inventory_id))
    if not inventory:
        raise InventoryError("Inventory product not found")
    if inventory.get("seller_id") != seller_id:
        raise InventoryError("Seller mismatch: inventory does not belong to this seller")

    images = inventory.get("image_urls")
    if images is not None and not isinstance(images, list):
        logger.error("inventory %s image_urls is %s, not a list", inventory_id, type(images).__name__)
        images = to_array(images) if isinstance(images, str) else []

    product = create_product(
        client,
        seller_id=seller_id,
        title=inventory["title"],
        price=inventory.get("price") or 0,
        description=inventory.get("description"),
        quantity=1,
        image_urls=images or [],
        category=inventory.get("category"),
        show_id=show_id,
    )

    link = client.table("show_products").insert({
        "show_id": show_id,
        "product_id": product["id"],
        "seller_id": seller_id,
        "is_featured": False,
        "is_givi": False,
    }).execute()
    if not link.data:
        raise InventoryError("Failed to link product to show")

    logger.info("inventory %s copied to show %s as product %s", inventory_id, show_id, product["id"])
    return product["id"]


# ---------------- show products ----------------

def products_for_show(client: Client, show_id: Optional[str]) -> List[Dict[str, Any]]:
    if not show_id:
        return []
    return (
        client.table("products").select("*").eq("show_id", show_id)
        .neq("status", "deleted").order("created_at", desc=False).execute().data
        or []
    )


def products_for_seller(client: Client, seller_id: Optional[str]) -> List[Dict[str, Any]]:
    if not seller_id:
        return []
    return (
        client.table("products").select("*").eq("seller_id", seller_id)
        .neq("status", "deleted").order("created_at", desc=True).execute().data
        or []
    )


def create_product(
    client: Client,
    seller_id: str,
    title: str,
    price,
    description: Optional[str] = None,
    quantity=1,
    image_urls=None,
    category: Optional[str] = None,
    show_id: Optional[str] = None,
    is_givey: bool = False,
    status: str = "active",
) -> Dict[str, Any]:
    _validate(title, price)
    if status not in PRODUCT_STATUSES:
        raise InventoryError(f"Unknown product status: {status}")
    qty = clamp_qty01(quantity)
    payload = clean_payload({
        "seller_id": seller_id,
        "show_id": show_id,
        "title": title.strip(),
        "description": description,
        "price": float(price),
        "quantity": 1 if qty is None else qty,
        "category": category,
        "is_givey": bool(is_givey),
        "status": status,
    })
    payload["image_urls"] = to_array(image_urls) or []
    res = client.table("products").insert(payload).execute()
    if not res.data:
        raise InventoryError("Failed to create product")
    return res.data[0]


def update_product(client: Client, product_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    payload = clean_payload(fields, array_fields=("image_urls",))
    if "quantity" in payload:
        payload["quantity"] = clamp_qty01(payload["quantity"])
    if "price" in payload and not is_valid_price(payload["price"]):
        raise InventoryError("Price must be a number >= 0")
    if "status" in payload and payload["status"] not in PRODUCT_STATUSES:
        raise InventoryError(f"Unknown product status: {payload['status']}")
    return update_row(client, "products", product_id, payload)


def delete_product(client: Client, product_id: str) -> Dict[str, Any]:
    # soft delete keeps order history pointing at a real row
    return update_row(client, "products", product_id, {"status": "deleted", "quantity": 0})


def givi_products(client: Client, seller_id: Optional[str]) -> List[Dict[str, Any]]:
    if not seller_id:
        return []
    return (
        client.table("products").select("*")
        .eq("seller_id", seller_id).eq("is_givey", True).neq("status", "deleted")
        .execute().data
        or []
    )
