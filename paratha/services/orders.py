"""Order placement and the role specific ways an order moves through its lifecycle.

Every mutation loads the order, applies a ``lifecycle`` transition and
commits through ``db.commit``; the order's version column turns a
concurrent read-modify-write into ``Conflict`` rather than a silent
overwrite.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from .. import db, errors, lifecycle, models, schemas
from ..access import Capability, RequestContext
from ..metrics import ORDER_TRANSITIONS, ORDERS_CREATED
from .accounts import business_for, partner_for

logger = logging.getLogger(__name__)


def _get_order(db_sess: Session, order_id: int) -> models.Order:
    order = db_sess.get(models.Order, order_id)
    if order is None:
        raise errors.NotFound("Order not found")
    return order


def _record_transition(ctx: RequestContext, order: models.Order, previous: models.OrderStatus):
    ORDER_TRANSITIONS.labels(previous.value, order.status.value).inc()
    logger.info(
        f"Order {order.order_id} {previous.value} -> {order.status.value} by user {ctx.user_id}",
        extra=ctx.log_extra,
    )


# ----- Customer -----

def place_order(db_sess: Session, ctx: RequestContext, payload: schemas.CreateOrderRequest) -> models.Order:
    """
    1. Check the business and every product line against the catalog.
    2. Check the delivery address belongs to the customer.
    3. Store the order as ``pending`` with a name/price snapshot per line.

    ``total_price`` is stored as submitted and never recomputed.
    """
    business = db_sess.get(models.Business, payload.business_id)
    if business is None:
        raise errors.ValidationError("Unknown business")

    product_ids = {item.product_id for item in payload.items}
    products = {
        p.id: p
        for p in db_sess.query(models.Product).filter(models.Product.id.in_(product_ids)).all()
    }
    for item in payload.items:
        product = products.get(item.product_id)
        if product is None or product.deleted_at is not None or product.business_id != business.id:
            raise errors.ValidationError(f"Product {item.product_id} is not on this business's menu")
        if not product.is_available:
            raise errors.ValidationError(f"Product {item.product_id} is currently unavailable")

    if payload.delivery_address_id is not None:
        address = db_sess.get(models.Address, payload.delivery_address_id)
        if address is None or address.user_id != ctx.user_id:
            raise errors.ValidationError("Unknown delivery address")

    order = models.Order(
        customer_id=ctx.user_id,
        business_id=business.id,
        delivery_address_id=payload.delivery_address_id,
        status=models.OrderStatus.pending,
        total_price=payload.total_price,
    )
    for item in payload.items:
        product = products[item.product_id]
        order.items.append(models.OrderItem(
            product_id=product.id,
            quantity=item.quantity,
            product_name=product.name,
            unit_price=product.price,
        ))
    db_sess.add(order)
    db.commit(db_sess)
    db_sess.refresh(order)

    ORDERS_CREATED.labels(order.status.value).inc()
    logger.info(
        f"Order {order.order_id} placed by customer {ctx.user_id} at business {business.id}",
        extra=ctx.log_extra,
    )
    return order


def order_history(db_sess: Session, ctx: RequestContext) -> List[models.Order]:
    return (
        db_sess.query(models.Order)
        .filter(models.Order.customer_id == ctx.user_id)
        .order_by(models.Order.created_at.desc(), models.Order.order_id.desc())
        .all()
    )


def track_order(db_sess: Session, ctx: RequestContext, order_id: int) -> models.Order:
    order = _get_order(db_sess, order_id)
    if order.customer_id != ctx.user_id:
        raise errors.NotFound("Order not found")
    return order


def cancel_order(db_sess: Session, ctx: RequestContext, order_id: int) -> models.Order:
    """Customers may withdraw an order only before the business confirms it."""
    order = track_order(db_sess, ctx, order_id)
    if order.status != models.OrderStatus.pending:
        raise errors.InvalidTransition(order.status, models.OrderStatus.cancelled)
    previous = lifecycle.advance(order, models.OrderStatus.cancelled)
    db.commit(db_sess)
    db_sess.refresh(order)
    _record_transition(ctx, order, previous)
    return order


# ----- Business -----

def business_orders(db_sess: Session, ctx: RequestContext, history: bool = False) -> List[models.Order]:
    business = business_for(db_sess, ctx)
    statuses = lifecycle.TERMINAL if history else lifecycle.ACTIVE
    return (
        db_sess.query(models.Order)
        .filter(models.Order.business_id == business.id, models.Order.status.in_(statuses))
        .order_by(models.Order.created_at.desc(), models.Order.order_id.desc())
        .all()
    )


# ----- Delivery partner -----

def _partner_orders(db_sess: Session, ctx: RequestContext, status: models.OrderStatus):
    partner = partner_for(db_sess, ctx)
    return (
        db_sess.query(models.Order)
        .filter(models.Order.delivery_partner_id == partner.id, models.Order.status == status)
        .order_by(models.Order.created_at.desc(), models.Order.order_id.desc())
        .all()
    )


def assigned_orders(db_sess: Session, ctx: RequestContext) -> List[models.Order]:
    return _partner_orders(db_sess, ctx, models.OrderStatus.out_for_delivery)


def delivery_history(db_sess: Session, ctx: RequestContext) -> List[models.Order]:
    return _partner_orders(db_sess, ctx, models.OrderStatus.delivered)


def update_status(db_sess: Session, ctx: RequestContext, order_id: int, status: models.OrderStatus) -> models.Order:
    """Apply a regular transition on behalf of the assigned partner or an admin."""
    if ctx.can(Capability.override_order_status):
        order = _get_order(db_sess, order_id)
    else:
        partner = partner_for(db_sess, ctx)
        order = _get_order(db_sess, order_id)
        if order.delivery_partner_id != partner.id:
            raise errors.Forbidden("Order is not assigned to you")

    previous = lifecycle.advance(order, status)
    db.commit(db_sess)
    db_sess.refresh(order)
    _record_transition(ctx, order, previous)
    return order


# ----- Admin -----

def list_orders(db_sess: Session) -> List[models.Order]:
    return db_sess.query(models.Order).order_by(models.Order.order_id).all()


def assign_order(db_sess: Session, ctx: RequestContext, order_id: int, delivery_partner_id: int) -> models.Order:
    """Forced assignment: any live order goes straight to ``out_for_delivery``."""
    order = _get_order(db_sess, order_id)
    if db_sess.get(models.DeliveryPartner, delivery_partner_id) is None:
        raise errors.NotFound("Delivery partner not found")

    previous = lifecycle.force_assign(order, delivery_partner_id)
    db.commit(db_sess)
    db_sess.refresh(order)
    _record_transition(ctx, order, previous)
    logger.info(
        f"Order {order.order_id} assigned to partner {delivery_partner_id}",
        extra=ctx.log_extra,
    )
    return order
