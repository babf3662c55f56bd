# Overview: Product catalog and restocking.

from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import Product, StockRegistryEntry
from erpmini.time_utils import today
from erpmini.validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    parse_date,
    parse_id,
    parse_quantity,
    validate_payload,
)
from .balance_service import adjust_stock, require_branch, require_products
from .concurrency import run_atomic
from .document_service import next_memo_number


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"product_name", "quantity"},
    required_on_create={"product_name"},
)


def create_product(branch_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    if patch.get("quantity") is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")

    def _op() -> Product:
        require_branch(branch_id)
        exists = (
            db.session.query(Product.id)
            .filter_by(branch_id=branch_id, product_name=patch["product_name"])
            .first()
        )
        if exists:
            raise ConflictError("Product already exists", details={"product_name": patch["product_name"]})
        product = Product(branch_id=branch_id, **patch)
        db.session.add(product)
        db.session.flush()
        return product

    return run_atomic(_op)


def list_products(branch_id: int, *, in_stock_only: bool = False) -> list[Product]:
    query = db.session.query(Product).filter(Product.branch_id == branch_id)
    if in_stock_only:
        query = query.filter(Product.quantity > 0)
    return query.order_by(Product.product_name.asc()).all()


def restock_products(branch_id: int, payload: Any) -> tuple[str, list[StockRegistryEntry]]:
    """
    Add stock for several products under one restock memo.

    Stock levels move by additive deltas; each line is also appended to the
    stock registry.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    quantities: dict[int, int] = {}
    for idx, entry in enumerate(raw_items):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        product_id = parse_id(entry.get("product_id"), f"items[{idx}].product_id")
        qty = parse_quantity(entry.get("quantity"), f"items[{idx}].quantity")
        quantities[product_id] = quantities.get(product_id, 0) + qty

    stock_date = parse_date(payload.get("stock_date"), "stock_date", required=False) or today()
    memo_no = payload.get("memo_no")

    def _op():
        require_branch(branch_id)
        require_products(branch_id, quantities.keys())
        memo = str(memo_no).strip() if memo_no else next_memo_number(branch_id=branch_id, document_type="RESTOCK")

        entries = []
        for product_id, qty in quantities.items():
            adjust_stock(product_id, qty)
            entry = StockRegistryEntry(
                memo_no=memo,
                stock_date=stock_date,
                branch_id=branch_id,
                product_id=product_id,
                quantity=qty,
            )
            db.session.add(entry)
            entries.append(entry)
        db.session.flush()
        return memo, entries

    return run_atomic(_op)


def list_stock_registry(branch_id: int, *, memo_no: str | None = None) -> list[StockRegistryEntry]:
    query = db.session.query(StockRegistryEntry).filter(StockRegistryEntry.branch_id == branch_id)
    if memo_no:
        query = query.filter(StockRegistryEntry.memo_no == memo_no)
    return query.order_by(StockRegistryEntry.id.desc()).all()
