from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import accounts, orders

router = APIRouter(prefix="/admin", tags=["admin"])

can_administer = require(Capability.administer)
can_assign = require(Capability.assign_orders)
can_override_status = require(Capability.override_order_status)


@router.get("/users", response_model=List[schemas.UserRead])
def list_users(ctx: RequestContext = Depends(can_administer), db_sess: Session = Depends(get_db)):
    return accounts.list_users(db_sess)


@router.get("/businesses", response_model=List[schemas.BusinessAdminRead])
def list_businesses(ctx: RequestContext = Depends(can_administer), db_sess: Session = Depends(get_db)):
    return accounts.list_businesses(db_sess)


@router.get("/delivery-partners", response_model=List[schemas.DeliveryPartnerRead])
def list_delivery_partners(ctx: RequestContext = Depends(can_administer), db_sess: Session = Depends(get_db)):
    return accounts.list_delivery_partners(db_sess)


@router.get("/orders", response_model=List[schemas.OrderAdminRead])
def list_orders(ctx: RequestContext = Depends(can_administer), db_sess: Session = Depends(get_db)):
    return orders.list_orders(db_sess)


@router.post("/orders/assign", response_model=schemas.OrderRead)
def assign_order(
    payload: schemas.AssignOrderRequest,
    ctx: RequestContext = Depends(can_assign),
    db_sess: Session = Depends(get_db),
):
    return orders.assign_order(db_sess, ctx, payload.order_id, payload.delivery_partner_id)


@router.put("/orders/{order_id}/status", response_model=schemas.OrderRead)
def override_order_status(
    order_id: int,
    payload: schemas.StatusUpdateRequest,
    ctx: RequestContext = Depends(can_override_status),
    db_sess: Session = Depends(get_db),
):
    return orders.update_status(db_sess, ctx, order_id, payload.status)
