"""
Page Renderer - resolves a page's blocks into storefront payloads

Each visible block is dispatched by type to a handler that attaches the
data the storefront needs to draw it (products with sale prices, the
collection being showcased, category tiles, countdown state). Blocks of
an unknown type are logged and skipped so one bad block never takes the
page down.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from storefront.domain.collection import Collection
from storefront.domain.discount import Discount
from storefront.domain.page import PageBlock
from storefront.domain.product import Category
from storefront.repositories.category_repository import CategoryRepository
from storefront.repositories.collection_repository import CollectionRepository
from storefront.repositories.discount_repository import DiscountRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.services.block_registry import BLOCK_REGISTRY
from storefront.services.discount_service import calculate_sale_price, match_sales

logger = logging.getLogger(__name__)

PRODUCT_BLOCKS = {"featured-products", "product-grid"}
CATALOG_PRODUCT_LIMIT = 200


@dataclass
class RenderContext:
    """Everything a page needs from the catalog, loaded once per request"""
    tenant_id: str
    currency: str = "USD"
    products: List[dict] = field(default_factory=list)
    picked_products: Dict[str, dict] = field(default_factory=dict)
    collections: List[Collection] = field(default_factory=list)
    collection_products: Dict[str, List[dict]] = field(default_factory=dict)
    categories: List[Category] = field(default_factory=list)
    sales: List[Discount] = field(default_factory=list)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def find_collection(self, collection_id: str) -> Optional[Collection]:
        for collection in self.collections:
            if collection.id == collection_id:
                return collection
        return None


def _iter_blocks(blocks: List[PageBlock]):
    for block in blocks:
        yield block
        if block.children:
            yield from _iter_blocks(block.children)


def referenced_collection_ids(blocks: List[PageBlock]) -> List[str]:
    ids = []
    for block in _iter_blocks(blocks):
        collection_id = block.content.get("collectionId")
        wants_collection = (
            block.type == "collection-showcase"
            or (block.type in PRODUCT_BLOCKS and block.content.get("source") == "collection")
        )
        if wants_collection and collection_id and collection_id not in ids:
            ids.append(collection_id)
    return ids


def _product_source(block: PageBlock) -> str:
    return block.content.get("source") or "latest"


def referenced_product_ids(blocks: List[PageBlock]) -> List[str]:
    """Product ids hand-picked by manual product blocks, first mention first"""
    ids = []
    for block in _iter_blocks(blocks):
        if block.type not in PRODUCT_BLOCKS or _product_source(block) != "manual":
            continue
        for product_id in block.content.get("productIds") or []:
            if product_id not in ids:
                ids.append(product_id)
    return ids


def load_render_context(
    tenant_id: str,
    blocks: List[PageBlock],
    currency: str = "USD",
    products: Optional[ProductRepository] = None,
    collections: Optional[CollectionRepository] = None,
    categories: Optional[CategoryRepository] = None,
    discounts: Optional[DiscountRepository] = None,
    now: Optional[datetime] = None
) -> RenderContext:
    """Load only the catalog data the given blocks reference"""
    products = products or ProductRepository()
    collections = collections or CollectionRepository()
    categories = categories or CategoryRepository()
    discounts = discounts or DiscountRepository()

    types = {block.type for block in _iter_blocks(blocks)}
    context = RenderContext(tenant_id=tenant_id, currency=currency, now=now or datetime.now(timezone.utc))

    wants_latest = any(
        block.type in PRODUCT_BLOCKS and _product_source(block) == "latest"
        for block in _iter_blocks(blocks)
    )
    if wants_latest:
        active, _ = products.find_all(tenant_id, status="active", limit=CATALOG_PRODUCT_LIMIT)
        context.products = [p.to_dict() for p in active]

    # Hand-picked products are fetched by id, however old they are
    picked_ids = referenced_product_ids(blocks)
    if picked_ids:
        context.picked_products = {
            p.id: p.to_dict()
            for p in products.find_by_ids(tenant_id, picked_ids)
            if p.status == "active"
        }

    collection_ids = referenced_collection_ids(blocks)
    if collection_ids:
        context.collections = collections.find_active(tenant_id)
        for collection_id in collection_ids:
            context.collection_products[collection_id] = collections.get_products(
                tenant_id, collection_id, active_only=True
            )

    if "category-grid" in types:
        context.categories = categories.find_all(tenant_id)

    if types & (PRODUCT_BLOCKS | {"collection-showcase"}):
        try:
            context.sales = discounts.find_active_sales(tenant_id)
        except Exception as e:
            logger.error(f"Failed to load sales for tenant {tenant_id}: {e}")

    return context


class PageRenderer:
    """Turns stored blocks into the JSON the storefront draws"""

    def __init__(self, context: RenderContext):
        self.context = context
        self._handlers: Dict[str, Callable[[PageBlock], Dict[str, Any]]] = {
            "featured-products": self._render_products,
            "product-grid": self._render_products,
            "collection-showcase": self._render_collection_showcase,
            "category-grid": self._render_category_grid,
            "countdown": self._render_countdown,
        }

    def render(self, blocks: List[PageBlock]) -> List[Dict[str, Any]]:
        rendered = []
        for block in sorted((b for b in blocks if b.visible), key=lambda b: b.order):
            payload = self.render_block(block)
            if payload is not None:
                rendered.append(payload)
        return rendered

    def render_block(self, block: PageBlock) -> Optional[Dict[str, Any]]:
        if block.type not in BLOCK_REGISTRY:
            logger.warning(f"Skipping unknown block type '{block.type}' (block {block.id})")
            return None

        handler = self._handlers.get(block.type)
        try:
            data = handler(block) if handler else {}
        except Exception as e:
            logger.error(f"Failed to render block {block.id} ({block.type}): {e}")
            return None

        payload = {
            "id": block.id,
            "type": block.type,
            "variant": block.variant,
            "content": block.content,
            "settings": block.settings,
            "data": data,
        }
        if block.children is not None:
            payload["children"] = self.render(block.children)
        return payload

    # ------------------------------------------------------------------
    # commerce
    # ------------------------------------------------------------------

    def _with_sale_price(self, product: dict) -> dict:
        product = dict(product)
        category_ids = [product["category_id"]] if product.get("category_id") else []
        matches = match_sales(
            self.context.sales,
            [product["id"]],
            category_ids=category_ids,
            collection_ids=product.get("collection_ids") or [],
            now=self.context.now,
        )
        match = matches.get(product["id"])
        if match:
            product["sale_price"] = str(calculate_sale_price(product["price"], match.type, match.value))
            product["sale_id"] = match.sale_id
        else:
            product["sale_price"] = None
            product["sale_id"] = None
        return product

    def _select_products(self, content: Dict[str, Any]) -> List[dict]:
        source = content.get("source") or "latest"

        if source == "collection":
            products = list(self.context.collection_products.get(content.get("collectionId") or "", []))
        elif source == "manual":
            by_id = {p["id"]: p for p in self.context.products}
            by_id.update(self.context.picked_products)
            products = [by_id[pid] for pid in content.get("productIds") or [] if pid in by_id]
        else:
            products = sorted(
                self.context.products,
                key=lambda p: p.get("created_at") or "",
                reverse=True,
            )

        limit = content.get("limit")
        if isinstance(limit, int) and limit > 0:
            products = products[:limit]
        return products

    def _render_products(self, block: PageBlock) -> Dict[str, Any]:
        products = [self._with_sale_price(p) for p in self._select_products(block.content)]
        return {"products": products, "currency": self.context.currency}

    def _render_collection_showcase(self, block: PageBlock) -> Dict[str, Any]:
        collection_id = block.content.get("collectionId") or ""
        collection = self.context.find_collection(collection_id)
        if collection is None:
            return {"collection": None, "products": []}

        products = self.context.collection_products.get(collection_id, [])
        limit = block.content.get("productLimit")
        if isinstance(limit, int) and limit > 0:
            products = products[:limit]

        return {
            "collection": collection.model_dump(mode="json"),
            "products": [self._with_sale_price(p) for p in products],
            "currency": self.context.currency,
        }

    def _render_category_grid(self, block: PageBlock) -> Dict[str, Any]:
        categories = self.context.categories
        selected = block.content.get("categoryIds") or []
        if not block.content.get("showAll", True) and selected:
            by_id = {c.id: c for c in categories}
            categories = [by_id[cid] for cid in selected if cid in by_id]

        limit = block.content.get("limit")
        if isinstance(limit, int) and limit > 0:
            categories = categories[:limit]

        return {"categories": [c.model_dump(mode="json") for c in categories]}

    # ------------------------------------------------------------------
    # marketing
    # ------------------------------------------------------------------

    def _render_countdown(self, block: PageBlock) -> Dict[str, Any]:
        end_date = block.content.get("endDate")
        if not end_date:
            return {"expired": False, "end_date": None, "seconds_remaining": None}

        ends_at = datetime.fromisoformat(str(end_date).replace("Z", "+00:00"))
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)

        remaining = int((ends_at - self.context.now).total_seconds())
        return {
            "expired": remaining <= 0,
            "end_date": ends_at.isoformat(),
            "seconds_remaining": max(0, remaining),
        }
