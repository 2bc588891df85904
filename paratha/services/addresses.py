import logging
from typing import List

from sqlalchemy.orm import Session

from .. import db, errors, models, schemas
from ..access import RequestContext

logger = logging.getLogger(__name__)


def _clear_defaults(db_sess: Session, user_id: int, keep_id: int | None = None):
    # must run before the new default is flushed, or the partial unique index trips
    q = db_sess.query(models.Address).filter(
        models.Address.user_id == user_id,
        models.Address.is_default.is_(True),
    )
    if keep_id is not None:
        q = q.filter(models.Address.id != keep_id)
    q.update({models.Address.is_default: False}, synchronize_session="fetch")


def list_addresses(db_sess: Session, ctx: RequestContext) -> List[models.Address]:
    return (
        db_sess.query(models.Address)
        .filter(models.Address.user_id == ctx.user_id)
        .order_by(models.Address.is_default.desc(), models.Address.created_at.desc(), models.Address.id.desc())
        .all()
    )


def get_address(db_sess: Session, ctx: RequestContext, address_id: int) -> models.Address:
    address = db_sess.get(models.Address, address_id)
    if address is None or address.user_id != ctx.user_id:
        raise errors.NotFound("Address not found")
    return address


def get_default_address(db_sess: Session, ctx: RequestContext) -> models.Address:
    address = (
        db_sess.query(models.Address)
        .filter(models.Address.user_id == ctx.user_id, models.Address.is_default.is_(True))
        .first()
    )
    if address is None:
        raise errors.NotFound("No default address found")
    return address


def add_address(db_sess: Session, ctx: RequestContext, payload: schemas.AddressCreate) -> models.Address:
    if payload.is_default:
        _clear_defaults(db_sess, ctx.user_id)
    address = models.Address(user_id=ctx.user_id, **payload.model_dump())
    db_sess.add(address)
    db.commit(db_sess, "Default address changed concurrently, retry the request")
    db_sess.refresh(address)
    logger.info(f"Address {address.id} added for user {ctx.user_id}", extra=ctx.log_extra)
    return address


def update_address(db_sess: Session, ctx: RequestContext, address_id: int, payload: schemas.AddressUpdate) -> models.Address:
    address = get_address(db_sess, ctx, address_id)
    fields = payload.model_dump(exclude_unset=True)
    for name in ("label", "country", "is_default", "is_business_address"):
        if name in fields and fields[name] is None:
            raise errors.ValidationError(f"'{name}' cannot be null")

    if fields.get("is_default") and not address.is_default:
        _clear_defaults(db_sess, ctx.user_id, keep_id=address.id)
    for name, value in fields.items():
        setattr(address, name, value)
    db.commit(db_sess, "Default address changed concurrently, retry the request")
    db_sess.refresh(address)
    return address


def set_default(db_sess: Session, ctx: RequestContext, address_id: int) -> models.Address:
    """Make one address the user's only default, in a single transaction."""
    address = get_address(db_sess, ctx, address_id)
    _clear_defaults(db_sess, ctx.user_id, keep_id=address.id)
    address.is_default = True
    db.commit(db_sess, "Default address changed concurrently, retry the request")
    db_sess.refresh(address)
    logger.info(f"Address {address.id} is now default for user {ctx.user_id}", extra=ctx.log_extra)
    return address


def delete_address(db_sess: Session, ctx: RequestContext, address_id: int):
    address = get_address(db_sess, ctx, address_id)
    db_sess.delete(address)
    db.commit(db_sess)
