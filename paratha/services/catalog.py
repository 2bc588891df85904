import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import db, errors, models, schemas
from ..access import RequestContext
from .accounts import business_for

logger = logging.getLogger(__name__)

SORTABLE = {
    "created_at": models.Product.created_at,
    "price": models.Product.price,
    "name": models.Product.name,
    "average_rating": models.Product.average_rating,
    "calories": models.Product.calories,
}


def _live():
    return models.Product.deleted_at.is_(None)


def _order_by(sort_by: str, sort_order: str):
    column = SORTABLE.get(sort_by)
    if column is None:
        raise errors.ValidationError(f"Cannot sort by '{sort_by}'")
    return column.desc() if sort_order == "desc" else column.asc()


def paginate(page: int, limit: int, total: int, returned: int) -> schemas.Pagination:
    skip = (page - 1) * limit
    return schemas.Pagination(
        current_page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
        total=total,
        has_next_page=skip + returned < total,
        has_prev_page=page > 1,
    )


def get_product(db_sess: Session, product_id: int) -> models.Product:
    product = db_sess.get(models.Product, product_id)
    if product is None or product.deleted_at is not None:
        raise errors.NotFound("Product not found")
    return product


def list_products(
    db_sess: Session,
    *,
    page: int = 1,
    limit: int = 10,
    category: Optional[str] = None,
    business_id: Optional[int] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_available: Optional[bool] = None,
    is_vegetarian: Optional[bool] = None,
    is_vegan: Optional[bool] = None,
    is_spicy: Optional[bool] = None,
    min_calories: Optional[float] = None,
    max_calories: Optional[float] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    q = db_sess.query(models.Product).filter(_live())
    if category:
        q = q.filter(models.Product.category == category)
    if business_id is not None:
        q = q.filter(models.Product.business_id == business_id)
    for column, flag in (
        (models.Product.is_available, is_available),
        (models.Product.is_vegetarian, is_vegetarian),
        (models.Product.is_vegan, is_vegan),
        (models.Product.is_spicy, is_spicy),
    ):
        if flag is not None:
            q = q.filter(column.is_(flag))
    if min_price is not None:
        q = q.filter(models.Product.price >= min_price)
    if max_price is not None:
        q = q.filter(models.Product.price <= max_price)
    if min_calories is not None:
        q = q.filter(models.Product.calories >= min_calories)
    if max_calories is not None:
        q = q.filter(models.Product.calories <= max_calories)
    if search:
        q = q.filter(_matches(search))

    total = q.count()
    products = (
        q.order_by(_order_by(sort_by, sort_order), models.Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return products, paginate(page, limit, total, len(products))


def _matches(term: str):
    pattern = f"%{term}%"
    return or_(models.Product.name.ilike(pattern), models.Product.description.ilike(pattern))


def search_products(
    db_sess: Session,
    q: str,
    business_id: Optional[int] = None,
    category: Optional[str] = None,
    limit: int = 10,
):
    if not q or not q.strip():
        raise errors.ValidationError("Search query is required")
    query = db_sess.query(models.Product).filter(_live(), _matches(q.strip()))
    if business_id is not None:
        query = query.filter(models.Product.business_id == business_id)
    if category:
        query = query.filter(models.Product.category == category)
    return query.order_by(models.Product.average_rating.desc(), models.Product.id).limit(limit).all()


def products_by_business(
    db_sess: Session,
    business_id: int,
    category: Optional[str] = None,
    is_available: Optional[bool] = None,
    sort_by: str = "name",
    sort_order: str = "asc",
):
    q = db_sess.query(models.Product).filter(_live(), models.Product.business_id == business_id)
    if category:
        q = q.filter(models.Product.category == category)
    if is_available is not None:
        q = q.filter(models.Product.is_available.is_(is_available))
    return q.order_by(_order_by(sort_by, sort_order), models.Product.id).all()


def categories(db_sess: Session):
    rows = (
        db_sess.query(models.Product.category)
        .filter(_live())
        .distinct()
        .order_by(models.Product.category)
        .all()
    )
    return [row[0] for row in rows]


# ----- Owner scoped writes -----

def _owned_product(db_sess: Session, ctx: RequestContext, product_id: int) -> models.Product:
    business = business_for(db_sess, ctx)
    product = db_sess.get(models.Product, product_id)
    # foreign products are reported exactly like missing ones
    if product is None or product.deleted_at is not None or product.business_id != business.id:
        raise errors.NotFound("Product not found")
    return product


def add_product(db_sess: Session, ctx: RequestContext, payload: schemas.ProductCreate) -> models.Product:
    business = business_for(db_sess, ctx)
    product = models.Product(business_id=business.id, **payload.model_dump())
    db_sess.add(product)
    db.commit(db_sess)
    db_sess.refresh(product)
    logger.info(f"Product {product.id} added by business {business.id}", extra=ctx.log_extra)
    return product


def update_product(db_sess: Session, ctx: RequestContext, product_id: int, payload: schemas.ProductUpdate) -> models.Product:
    product = _owned_product(db_sess, ctx, product_id)
    nullable = {"subcategory", "image_url", "calories", "protein", "carbohydrates", "fat", "fiber", "sugar", "sodium"}
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field not in nullable:
            raise errors.ValidationError(f"'{field}' cannot be null")
        setattr(product, field, value)
    db.commit(db_sess)
    db_sess.refresh(product)
    logger.info(f"Product {product.id} updated", extra=ctx.log_extra)
    return product


def delete_product(db_sess: Session, ctx: RequestContext, product_id: int):
    """Tombstone the product; order lines and ratings keep pointing at it."""
    product = _owned_product(db_sess, ctx, product_id)
    product.deleted_at = datetime.utcnow()
    product.is_available = False
    db.commit(db_sess)
    logger.info(f"Product {product.id} removed", extra=ctx.log_extra)
