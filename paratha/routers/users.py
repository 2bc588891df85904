from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import accounts

router = APIRouter(prefix="/user", tags=["user"])

can_manage_profile = require(Capability.manage_profile)


@router.get("/profile", response_model=schemas.UserRead)
def get_profile(ctx: RequestContext = Depends(can_manage_profile), db_sess: Session = Depends(get_db)):
    return accounts.get_user(db_sess, ctx)


@router.put("/profile", response_model=schemas.UserRead)
def update_profile(
    payload: schemas.ProfileUpdate,
    ctx: RequestContext = Depends(can_manage_profile),
    db_sess: Session = Depends(get_db),
):
    return accounts.update_profile(db_sess, ctx, payload)


@router.put("/change-password", response_model=schemas.PasswordChanged)
def change_password(
    payload: schemas.ChangePasswordRequest,
    ctx: RequestContext = Depends(can_manage_profile),
    db_sess: Session = Depends(get_db),
):
    token = accounts.change_password(db_sess, ctx, payload)
    return schemas.PasswordChanged(message="Password changed successfully", token=token)
