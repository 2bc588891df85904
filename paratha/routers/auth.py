from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import RequestContext
from ..deps import get_context, get_correlation_id, get_db
from ..models import Role
from ..services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user, token):
    return schemas.AuthResponse(token=token, user=schemas.UserSummary.model_validate(user))


@router.post("/signup", response_model=schemas.AuthResponse, status_code=201)
def signup(
    payload: schemas.SignupRequest,
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
):
    return _auth_response(*accounts.register(db_sess, Role.customer, payload, cid))


@router.post("/business/signup", response_model=schemas.AuthResponse, status_code=201)
def business_signup(
    payload: schemas.BusinessSignupRequest,
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
):
    return _auth_response(*accounts.register(db_sess, Role.business, payload, cid))


@router.post("/delivery/signup", response_model=schemas.AuthResponse, status_code=201)
def delivery_signup(
    payload: schemas.DeliverySignupRequest,
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
):
    return _auth_response(*accounts.register(db_sess, Role.delivery, payload, cid))


@router.post("/admin/signup", response_model=schemas.AuthResponse, status_code=201)
def admin_signup(
    payload: schemas.SignupRequest,
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
):
    return _auth_response(*accounts.register(db_sess, Role.admin, payload, cid))


@router.post("/login", response_model=schemas.AuthResponse)
def login(payload: schemas.LoginRequest, db_sess: Session = Depends(get_db)):
    return _auth_response(*accounts.login(db_sess, payload.email, payload.password))


@router.get("/me", response_model=schemas.UserRead)
def me(ctx: RequestContext = Depends(get_context), db_sess: Session = Depends(get_db)):
    return accounts.get_user(db_sess, ctx)
