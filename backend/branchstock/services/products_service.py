# backend/branchstock/services/products_service.py
"""
Catalog service: categories and products.

Products are chain-wide. Creating a product opens a BranchStock row in
every active branch (with an `initial` movement when an opening quantity is
given), so stock screens list the product everywhere from day one.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Branch, Category, Product
from ..time_utils import Clock
from ..validation import optional_str, require_int, require_money, require_str
from .concurrency import lock_for_update, run_in_transaction
from .stock_service import set_initial_stock

PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "description", "price", "is_active"}


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(name: str, description: str | None = None) -> Category:
    name = require_str(name, "name", max_length=120)
    description = optional_str(description, "description")

    def _op():
        if db.session.query(Category.id).filter_by(name=name).first() is not None:
            raise ValidationError(f"Category {name} already exists", field="name", value=name)
        category = Category(name=name, description=description)
        db.session.add(category)
        db.session.flush()
        return category

    return run_in_transaction(_op)


def _require_category(category_id) -> Category:
    category_id = require_int(category_id, "category_id", minimum=1)
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category", category_id)
    return category


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def list_products(
    search: str | None = None,
    category_id: int | None = None,
    active_only: bool = False,
    limit: int = 100,
) -> list[Product]:
    query = db.session.query(Product)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).limit(limit).all()


def initialize_product_stock(
    product_id: int,
    actor_id: int | None,
    initial_quantity: int = 0,
    min_stock: int | None = None,
    clock: Clock | None = None,
) -> list:
    """Open a stock row for the product in every active branch (caller's transaction)."""
    branches = (
        db.session.query(Branch)
        .filter(Branch.is_active.is_(True))
        .order_by(Branch.id.asc())
        .all()
    )
    return [
        set_initial_stock(branch.id, product_id, initial_quantity, actor_id, min_stock=min_stock, clock=clock)
        for branch in branches
    ]


def create_product(
    sku: str,
    name: str,
    category_id: int,
    price,
    actor_id: int | None = None,
    description: str | None = None,
    initial_quantity: int = 0,
    min_stock: int | None = None,
    clock: Clock | None = None,
) -> Product:
    """
    Create a product and initialize its stock in all active branches.

    Raises:
        ValidationError: missing/invalid fields, duplicate SKU
        NotFoundError: unknown category
    """
    sku = require_str(sku, "sku", max_length=50)
    name = require_str(name, "name", max_length=255)
    price = require_money(price, "price")
    description = optional_str(description, "description")
    initial_quantity = require_int(initial_quantity or 0, "initial_quantity", minimum=0)
    if min_stock is not None:
        min_stock = require_int(min_stock, "min_stock", minimum=0)

    def _op():
        category = _require_category(category_id)
        if db.session.query(Product.id).filter_by(sku=sku).first() is not None:
            raise ValidationError(f"SKU {sku} already exists", field="sku", value=sku)

        product = Product(
            sku=sku,
            name=name,
            category_id=category.id,
            description=description,
            price=price,
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()  # product.id for the stock rows

        initialize_product_stock(product.id, actor_id, initial_quantity, min_stock, clock)
        return product

    return run_in_transaction(_op)


def update_product(product_id: int, patch: dict) -> Product:
    """Partial update. The SKU and stock quantities are not editable here."""
    if "sku" in patch:
        raise ValidationError("sku cannot be changed", field="sku", value=patch.get("sku"))

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product", product_id)

        for key, value in patch.items():
            if key not in PRODUCT_MUTABLE_FIELDS:
                continue
            if key == "name":
                value = require_str(value, "name", max_length=255)
            elif key == "price":
                value = require_money(value, "price")
            elif key == "category_id":
                value = _require_category(value).id
            elif key == "description":
                value = optional_str(value, "description")
            elif key == "is_active" and not isinstance(value, bool):
                raise ValidationError("is_active must be a boolean", field="is_active", value=value)
            setattr(product, key, value)
        return product

    return run_in_transaction(_op)


def deactivate_product(product_id: int) -> Product:
    """Soft delete: history (sales, movements) keeps pointing at the product."""
    return update_product(product_id, {"is_active": False})
