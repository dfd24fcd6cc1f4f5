"""
Bulk Action Service

Applies one action to many dashboard records. Each id is processed on its
own: a failure is recorded for that id and the rest carry on. Exports
produce a downloadable file in csv, json or xlsx.
"""
import csv
import io
import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from storefront.core.errors import NotFoundError, ValidationError
from storefront.domain.bulk import BulkActionError, BulkActionResult
from storefront.domain.product import (
    PRODUCT_STATUSES, ProductUpdate, VariantStockUpdate, apply_price_change,
)
from storefront.repositories.customer_repository import CustomerRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.services.audit_logger import AuditLogger, get_audit_logger

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("products", "orders", "customers")

EXPORT_MIME_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _singular(entity_type: str) -> str:
    return entity_type[:-1] if entity_type.endswith("s") else entity_type


def _summarize(
    verb: str,
    entity_type: str,
    total: int,
    success_count: int,
    errors: List[BulkActionError],
    suffix: str = ""
) -> BulkActionResult:
    if errors:
        message = f"{verb.capitalize()} {success_count} of {total} {entity_type}"
    else:
        message = f"Successfully {verb.lower()} {success_count} {entity_type}{suffix}"

    return BulkActionResult(
        success=not errors,
        success_count=success_count,
        failed_count=len(errors),
        total_count=total,
        errors=errors,
        message=message,
    )


def to_csv(rows: List[Dict[str, Any]]) -> str:
    """CSV with a header row; fields holding commas, quotes or newlines are quoted"""
    if not rows:
        return ""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=list(rows[0].keys()), lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: "" if v is None else v for k, v in row.items()})
    return output.getvalue().rstrip("\n")


def to_xlsx(rows: List[Dict[str, Any]], sheet_title: str) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    header_fill = PatternFill(start_color="18181B", end_color="18181B", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)

    headers = list(rows[0].keys()) if rows else []
    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row_num, row in enumerate(rows, 2):
        for col_num, header in enumerate(headers, 1):
            value = row.get(header)
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            ws.cell(row=row_num, column=col_num, value=value)

    for col_num, header in enumerate(headers, 1):
        ws.column_dimensions[ws.cell(row=1, column=col_num).column_letter].width = max(12, len(header) + 4)

    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class BulkActionService:
    def __init__(
        self,
        products: Optional[ProductRepository] = None,
        orders: Optional[OrderRepository] = None,
        customers: Optional[CustomerRepository] = None,
        audit: Optional[AuditLogger] = None
    ):
        self.products = products or ProductRepository()
        self.orders = orders or OrderRepository()
        self.customers = customers or CustomerRepository()
        self.audit = audit or get_audit_logger()

    def _check_type(self, entity_type: str):
        if entity_type not in ENTITY_TYPES:
            raise ValidationError(f"Unknown entity type: {entity_type}", details={"type": entity_type})

    def _run(
        self,
        items: List[Any],
        action: Callable[[Any], None],
        error_code: str,
        key: Callable[[Any], str] = str
    ) -> Tuple[int, List[BulkActionError]]:
        success_count = 0
        errors: List[BulkActionError] = []

        for item in items:
            try:
                action(item)
                success_count += 1
            except Exception as e:
                message = getattr(e, "message", None) or str(e) or "Unknown error"
                errors.append(BulkActionError(item_id=key(item), message=message, code=error_code))

        return success_count, errors

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def bulk_delete(
        self,
        tenant_id: str,
        entity_type: str,
        ids: List[str],
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        self._check_type(entity_type)
        repository = {
            "products": self.products,
            "orders": self.orders,
            "customers": self.customers,
        }[entity_type]

        def delete_one(item_id: str):
            if not repository.delete(tenant_id, item_id):
                raise NotFoundError(f"{_singular(entity_type).capitalize()} not found")
            self.audit.log_delete(tenant_id, _singular(entity_type), item_id, user_id=user_id)

        success_count, errors = self._run(ids, delete_one, "DELETE_FAILED")
        logger.info(f"Bulk delete {entity_type} for tenant {tenant_id}: {success_count}/{len(ids)} succeeded")
        return _summarize("deleted", entity_type, len(ids), success_count, errors)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def bulk_update_status(
        self,
        tenant_id: str,
        entity_type: str,
        ids: List[str],
        status: str,
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        self._check_type(entity_type)

        def update_one(item_id: str):
            if entity_type == "products":
                if status not in PRODUCT_STATUSES:
                    raise ValidationError(f"Invalid product status: {status}")
                if not self.products.update_status(tenant_id, item_id, status):
                    raise NotFoundError("Product not found")
            elif entity_type == "orders":
                self.orders.update_status(
                    tenant_id, item_id, status,
                    note=f"Bulk status update to {status}",
                    changed_by=user_id,
                )
            else:
                raise ValidationError(f"Status update not supported for type: {entity_type}")
            self.audit.log_update(
                tenant_id, _singular(entity_type), item_id,
                new_values={"status": status}, user_id=user_id,
            )

        success_count, errors = self._run(ids, update_one, "UPDATE_FAILED")
        return _summarize("updated", entity_type, len(ids), success_count, errors, suffix=f" to {status}")

    def bulk_archive(
        self,
        tenant_id: str,
        entity_type: str,
        ids: List[str],
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        return self.bulk_update_status(tenant_id, entity_type, ids, "archived", user_id)

    # ------------------------------------------------------------------
    # Products: category, price, stock
    # ------------------------------------------------------------------

    def bulk_assign_category(
        self,
        tenant_id: str,
        ids: List[str],
        category_id: Optional[str],
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        """Move products into a category (None clears it)"""

        def assign_one(item_id: str):
            if not self.products.update(tenant_id, item_id, ProductUpdate(category_id=category_id)):
                raise NotFoundError("Product not found")
            self.audit.log_update(
                tenant_id, "product", item_id,
                new_values={"category_id": category_id}, user_id=user_id,
            )

        success_count, errors = self._run(ids, assign_one, "UPDATE_FAILED")
        return _summarize("assigned", "products", len(ids), success_count, errors, suffix=" to category")

    def bulk_update_price(
        self,
        tenant_id: str,
        ids: List[str],
        change_type: str,
        value: Decimal,
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        """Set, raise or lower prices by an amount or a percentage"""

        def reprice_one(item_id: str):
            product = self.products.find_by_id(tenant_id, item_id)
            if not product:
                raise NotFoundError("Product not found")
            new_price = apply_price_change(product.price, change_type, value)
            self.products.update(tenant_id, item_id, ProductUpdate(price=new_price))
            self.audit.log_update(
                tenant_id, "product", item_id,
                old_values={"price": str(product.price)},
                new_values={"price": str(new_price)},
                user_id=user_id,
            )

        success_count, errors = self._run(ids, reprice_one, "UPDATE_FAILED")
        logger.info(f"Bulk price {change_type} {value} for tenant {tenant_id}: {success_count}/{len(ids)} succeeded")
        return _summarize("repriced", "products", len(ids), success_count, errors)

    def bulk_update_stock(
        self,
        tenant_id: str,
        updates: List[VariantStockUpdate],
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        """Apply set/add/subtract stock changes to variants; errors are keyed by variant id"""

        def restock_one(update: VariantStockUpdate):
            variant = self.products.adjust_variant_stock(
                tenant_id, update.variant_id, update.quantity, update.action
            )
            if not variant:
                raise NotFoundError("Variant not found")
            self.audit.log_update(
                tenant_id, "product_variant", update.variant_id,
                new_values={"quantity": variant.quantity, "action": update.action},
                user_id=user_id,
            )

        success_count, errors = self._run(
            updates, restock_one, "UPDATE_FAILED", key=lambda update: update.variant_id
        )
        return _summarize("restocked", "variants", len(updates), success_count, errors)

    # ------------------------------------------------------------------
    # Customers: tags
    # ------------------------------------------------------------------

    def bulk_add_tag(
        self,
        tenant_id: str,
        ids: List[str],
        tag: str,
        user_id: Optional[str] = None
    ) -> BulkActionResult:
        tag = tag.strip()
        if not tag:
            raise ValidationError("Tag is required", details={"tag": ["Tag cannot be blank"]})

        def tag_one(item_id: str):
            if not self.customers.add_tag(tenant_id, item_id, tag):
                raise NotFoundError("Customer not found")
            self.audit.log_update(tenant_id, "customer", item_id, new_values={"tag_added": tag}, user_id=user_id)

        success_count, errors = self._run(ids, tag_one, "UPDATE_FAILED")
        return _summarize("tagged", "customers", len(ids), success_count, errors, suffix=f" with \"{tag}\"")

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _export_rows(self, tenant_id: str, entity_type: str, ids: List[str]) -> List[Dict[str, Any]]:
        if entity_type == "products":
            return [{
                "id": p.id,
                "name": p.name,
                "sku": p.sku or "",
                "price": str(p.price),
                "quantity": p.quantity,
                "status": p.status,
                "created_at": p.created_at.isoformat() if p.created_at else "",
                "updated_at": p.updated_at.isoformat() if p.updated_at else "",
            } for p in self.products.find_by_ids(tenant_id, ids)]

        if entity_type == "orders":
            return [{
                "id": o.id,
                "order_number": o.order_number,
                "customer_name": o.customer_name or "",
                "customer_email": o.customer_email or "",
                "status": o.status,
                "payment_status": o.payment_status,
                "total": str(o.total),
                "currency": o.currency,
                "items_count": o.items_count,
                "created_at": o.created_at.isoformat() if o.created_at else "",
            } for o in self.orders.find_by_ids(tenant_id, ids)]

        return [{
            "id": c.id,
            "email": c.email,
            "first_name": c.first_name or "",
            "last_name": c.last_name or "",
            "phone": c.phone or "",
            "accepts_marketing": c.accepts_marketing,
            "tags": ", ".join(c.tags),
            "created_at": c.created_at.isoformat() if c.created_at else "",
        } for c in self.customers.find_by_ids(tenant_id, ids)]

    def bulk_export(
        self,
        tenant_id: str,
        entity_type: str,
        ids: List[str],
        export_format: str = "csv",
        user_id: Optional[str] = None,
        today: Optional[date] = None
    ) -> Tuple[bytes, str, str]:
        """
        Export the selected records

        Returns:
            (file content, filename "<type>-export-YYYY-MM-DD.<ext>", mime type)
        """
        self._check_type(entity_type)
        if export_format not in EXPORT_MIME_TYPES:
            raise ValidationError(f"Unsupported export format: {export_format}")

        rows = self._export_rows(tenant_id, entity_type, ids)
        if not rows:
            raise ValidationError("No items found to export", code="NOTHING_TO_EXPORT")

        if export_format == "json":
            content = json.dumps(rows, indent=2).encode("utf-8")
        elif export_format == "csv":
            content = to_csv(rows).encode("utf-8")
        else:
            content = to_xlsx(rows, sheet_title=entity_type.capitalize())

        stamp = (today or date.today()).isoformat()
        filename = f"{entity_type}-export-{stamp}.{export_format}"

        self.audit.log(
            tenant_id, "bulk_export", entity_type, "bulk",
            new_values={"format": export_format, "item_count": len(rows), "item_ids": ids},
            user_id=user_id,
        )
        return content, filename, EXPORT_MIME_TYPES[export_format]


_bulk_action_service: Optional[BulkActionService] = None


def get_bulk_action_service() -> BulkActionService:
    global _bulk_action_service
    if _bulk_action_service is None:
        _bulk_action_service = BulkActionService()
    return _bulk_action_service
