"""Product ratings and the cached aggregate kept on each product.

Every write locks the product row first (``SELECT ... FOR UPDATE``), then
changes the rating and recomputes the aggregate from the live rating set in
the same transaction. Concurrent raters of one product therefore queue on
the product row and none of them can publish an aggregate computed from a
stale rating set.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import db, errors, models, schemas
from ..access import RequestContext
from ..metrics import RATINGS_WRITTEN
from .catalog import paginate

logger = logging.getLogger(__name__)

RATING_SORTABLE = {
    "created_at": models.ProductRating.created_at,
    "rating": models.ProductRating.rating,
    "helpful": models.ProductRating.helpful,
}


def _lock_product(db_sess: Session, product_id: int, include_deleted: bool = False) -> models.Product:
    q = db_sess.query(models.Product).filter(models.Product.id == product_id)
    if not include_deleted:
        q = q.filter(models.Product.deleted_at.is_(None))
    product = q.with_for_update().first()
    if product is None:
        raise errors.NotFound("Product not found")
    return product


def _flush(db_sess: Session):
    try:
        db_sess.flush()
    except IntegrityError as e:
        db_sess.rollback()
        raise errors.Conflict("Rating was written concurrently, retry the request") from e


def _half_up(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def average(total_score: int, count: int) -> float:
    """Mean rounded half-up to one decimal."""
    if not count:
        return 0.0
    return _half_up(Decimal(total_score) / Decimal(count))


def percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return _half_up(Decimal(part) * 100 / Decimal(whole))


def recompute_aggregate(db_sess: Session, product: models.Product):
    """Rewrite the product's cached stats from its current ratings.

    Caller must hold the product row lock and have flushed its rating write.
    """
    rows = (
        db_sess.query(models.ProductRating.rating, func.count(models.ProductRating.id))
        .filter(models.ProductRating.product_id == product.id)
        .group_by(models.ProductRating.rating)
        .all()
    )
    distribution = models.empty_distribution()
    for stars, count in rows:
        distribution[str(stars)] = count
    total = sum(distribution.values())
    product.total_ratings = total
    product.average_rating = average(sum(int(k) * v for k, v in distribution.items()), total)
    product.rating_distribution = distribution


def _verified_purchase(db_sess: Session, ctx: RequestContext, product_id: int, order_id: Optional[int]) -> bool:
    q = (
        db_sess.query(models.Order.order_id)
        .join(models.Order.items)
        .filter(
            models.Order.customer_id == ctx.user_id,
            models.OrderItem.product_id == product_id,
        )
    )
    if order_id is not None:
        q = q.filter(models.Order.order_id == order_id)
    return q.first() is not None


def _find_rating(db_sess: Session, ctx: RequestContext, product_id: int) -> Optional[models.ProductRating]:
    return (
        db_sess.query(models.ProductRating)
        .filter(
            models.ProductRating.product_id == product_id,
            models.ProductRating.user_id == ctx.user_id,
        )
        .first()
    )


def rate_product(db_sess: Session, ctx: RequestContext, product_id: int, payload: schemas.RateProductRequest) -> models.ProductRating:
    """Create or replace the caller's rating for a product."""
    product = _lock_product(db_sess, product_id)
    verified = _verified_purchase(db_sess, ctx, product_id, payload.order_id)
    order_id = payload.order_id if verified and payload.order_id is not None else None

    rating = _find_rating(db_sess, ctx, product_id)
    if rating is not None:
        action = "updated"
        rating.rating = payload.rating
        if payload.review is not None:
            rating.review = payload.review
        if order_id is not None:
            rating.order_id = order_id
        rating.is_verified = rating.is_verified or verified
    else:
        action = "created"
        rating = models.ProductRating(
            product_id=product_id,
            user_id=ctx.user_id,
            rating=payload.rating,
            review=payload.review,
            order_id=order_id,
            is_verified=verified,
        )
        db_sess.add(rating)

    _flush(db_sess)
    recompute_aggregate(db_sess, product)
    db.commit(db_sess, "Rating was written concurrently, retry the request")
    db_sess.refresh(rating)

    RATINGS_WRITTEN.labels(action).inc()
    logger.info(f"Rating {rating.id} {action} for product {product_id}", extra=ctx.log_extra)
    return rating


def get_my_rating(db_sess: Session, ctx: RequestContext, product_id: int) -> models.ProductRating:
    rating = _find_rating(db_sess, ctx, product_id)
    if rating is None:
        raise errors.NotFound("You haven't rated this product yet")
    return rating


def update_my_rating(db_sess: Session, ctx: RequestContext, product_id: int, payload: schemas.UpdateRatingRequest) -> models.ProductRating:
    product = _lock_product(db_sess, product_id, include_deleted=True)
    rating = get_my_rating(db_sess, ctx, product_id)
    rating.rating = payload.rating
    if payload.review is not None:
        rating.review = payload.review

    _flush(db_sess)
    recompute_aggregate(db_sess, product)
    db.commit(db_sess, "Rating was written concurrently, retry the request")
    db_sess.refresh(rating)
    RATINGS_WRITTEN.labels("updated").inc()
    return rating


def delete_my_rating(db_sess: Session, ctx: RequestContext, product_id: int):
    product = _lock_product(db_sess, product_id, include_deleted=True)
    rating = _find_rating(db_sess, ctx, product_id)
    if rating is None:
        raise errors.NotFound("Rating not found")
    db_sess.delete(rating)

    _flush(db_sess)
    recompute_aggregate(db_sess, product)
    db.commit(db_sess, "Rating was written concurrently, retry the request")
    RATINGS_WRITTEN.labels("deleted").inc()
    logger.info(f"Rating removed for product {product_id}", extra=ctx.log_extra)


def mark_helpful(db_sess: Session, product_id: int, rating_id: int) -> int:
    updated = (
        db_sess.query(models.ProductRating)
        .filter(
            models.ProductRating.id == rating_id,
            models.ProductRating.product_id == product_id,
        )
        .update({models.ProductRating.helpful: models.ProductRating.helpful + 1}, synchronize_session=False)
    )
    if not updated:
        raise errors.NotFound("Rating not found")
    db.commit(db_sess)
    return db_sess.query(models.ProductRating.helpful).filter(models.ProductRating.id == rating_id).scalar()


def list_ratings(
    db_sess: Session,
    product: models.Product,
    *,
    page: int = 1,
    limit: int = 10,
    rating: Optional[int] = None,
    verified: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    column = RATING_SORTABLE.get(sort_by)
    if column is None:
        raise errors.ValidationError(f"Cannot sort by '{sort_by}'")

    q = db_sess.query(models.ProductRating).filter(models.ProductRating.product_id == product.id)
    if rating is not None:
        q = q.filter(models.ProductRating.rating == rating)
    if verified is not None:
        q = q.filter(models.ProductRating.is_verified.is_(verified))

    total = q.count()
    ratings = (
        q.order_by(column.desc() if sort_order == "desc" else column.asc(), models.ProductRating.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return ratings, paginate(page, limit, total, len(ratings))


def rating_stats(db_sess: Session, product: models.Product) -> schemas.RatingStats:
    total = (
        db_sess.query(func.count(models.ProductRating.id))
        .filter(models.ProductRating.product_id == product.id)
        .scalar()
    )
    verified = (
        db_sess.query(func.count(models.ProductRating.id))
        .filter(
            models.ProductRating.product_id == product.id,
            models.ProductRating.is_verified.is_(True),
        )
        .scalar()
    )
    return schemas.RatingStats(
        average_rating=product.average_rating,
        total_ratings=product.total_ratings,
        rating_distribution=product.rating_distribution,
        verified_ratings=verified,
        percentage_verified=percentage(verified, total),
    )
