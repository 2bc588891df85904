"""Identity: signup per role, login, profile and password changes."""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import config, db, errors, models, schemas, security
from ..access import RequestContext

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(db_sess: Session, ctx: RequestContext) -> models.User:
    user = db_sess.get(models.User, ctx.user_id)
    if user is None:
        raise errors.NotFound("User not found")
    return user


def register(db_sess: Session, role: models.Role, payload: schemas.SignupRequest, cid: str = "-"):
    """Create a user and, for business/delivery roles, its profile row.

    Both rows go out in one commit, so a failing profile insert leaves no
    orphaned user behind. Returns ``(user, token)``.
    """
    if role == models.Role.admin and not config.ALLOW_ADMIN_SIGNUP:
        raise errors.Forbidden("Admin signup is disabled")

    email = _normalize_email(payload.email)
    if db_sess.query(models.User.id).filter(models.User.email == email).first():
        raise errors.DuplicateIdentity("User already exists")

    user = models.User(
        name=payload.name,
        email=email,
        password_hash=security.hash_password(payload.password),
        phone=payload.phone,
        role=role,
        token_version=1,
    )
    db_sess.add(user)

    try:
        db_sess.flush()  # get user.id for the profile row
        if role == models.Role.business:
            db_sess.add(models.Business(
                user_id=user.id,
                name=payload.business_name or payload.name,
                address=payload.address,
                phone=payload.phone,
                cuisine=payload.cuisine,
                opening_hours=payload.opening_hours,
                description=payload.description,
            ))
        elif role == models.Role.delivery:
            db_sess.add(models.DeliveryPartner(
                user_id=user.id,
                phone=payload.phone,
                vehicle=payload.vehicle,
                license_number=(payload.license_number or "").strip().upper() or None,
            ))
        db_sess.commit()
    except IntegrityError as e:
        # lost a race with a concurrent signup for the same email
        db_sess.rollback()
        raise errors.DuplicateIdentity("User already exists") from e

    db_sess.refresh(user)
    logger.info(f"Registered user {user.id} as {role.value}", extra={"correlation_id": cid})
    return user, security.create_access_token(user)


def login(db_sess: Session, email: str, password: str):
    user = (
        db_sess.query(models.User)
        .filter(models.User.email == _normalize_email(email))
        .first()
    )
    if not user or not security.verify_password(password, user.password_hash):
        raise errors.Unauthenticated("Invalid credentials")
    return user, security.create_access_token(user)


def update_profile(db_sess: Session, ctx: RequestContext, payload: schemas.ProfileUpdate) -> models.User:
    user = get_user(db_sess, ctx)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, field, value)
    db.commit(db_sess)
    db_sess.refresh(user)
    return user


def change_password(db_sess: Session, ctx: RequestContext, payload: schemas.ChangePasswordRequest) -> str:
    """Swap the password hash and revoke every token issued so far.

    Returns a fresh token for the caller.
    """
    user = get_user(db_sess, ctx)
    if not security.verify_password(payload.current_password, user.password_hash):
        raise errors.ValidationError("Current password is incorrect")

    user.password_hash = security.hash_password(payload.new_password)
    user.token_version = user.token_version + 1
    db.commit(db_sess)
    db_sess.refresh(user)
    logger.info(f"Password changed for user {user.id}", extra=ctx.log_extra)
    return security.create_access_token(user)


# ----- Role profiles -----

def business_for(db_sess: Session, ctx: RequestContext) -> models.Business:
    business = (
        db_sess.query(models.Business)
        .filter(models.Business.user_id == ctx.user_id)
        .first()
    )
    if not business:
        raise errors.NotFound("Business profile not found")
    return business


def partner_for(db_sess: Session, ctx: RequestContext) -> models.DeliveryPartner:
    partner = (
        db_sess.query(models.DeliveryPartner)
        .filter(models.DeliveryPartner.user_id == ctx.user_id)
        .first()
    )
    if not partner:
        raise errors.NotFound("Delivery partner profile not found")
    return partner


def update_business_profile(db_sess: Session, ctx: RequestContext, payload: schemas.BusinessUpdate) -> models.Business:
    business = business_for(db_sess, ctx)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "cuisine"):
            raise errors.ValidationError(f"'{field}' cannot be null")
        setattr(business, field, value)
    db.commit(db_sess)
    db_sess.refresh(business)
    return business


# ----- Admin listings -----

def list_users(db_sess: Session):
    return db_sess.query(models.User).order_by(models.User.id).all()


def list_businesses(db_sess: Session):
    return db_sess.query(models.Business).order_by(models.Business.id).all()


def list_delivery_partners(db_sess: Session):
    return db_sess.query(models.DeliveryPartner).order_by(models.DeliveryPartner.id).all()
