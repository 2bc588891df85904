from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import orders

router = APIRouter(prefix="/delivery", tags=["delivery"])

can_deliver = require(Capability.deliver_orders)


@router.get("/assigned-orders", response_model=List[schemas.OrderAdminRead])
def assigned_orders(ctx: RequestContext = Depends(can_deliver), db_sess: Session = Depends(get_db)):
    return orders.assigned_orders(db_sess, ctx)


@router.put("/orders/{order_id}/status", response_model=schemas.OrderRead)
def update_order_status(
    order_id: int,
    payload: schemas.StatusUpdateRequest,
    ctx: RequestContext = Depends(can_deliver),
    db_sess: Session = Depends(get_db),
):
    return orders.update_status(db_sess, ctx, order_id, payload.status)


@router.get("/history", response_model=List[schemas.OrderAdminRead])
def delivery_history(ctx: RequestContext = Depends(can_deliver), db_sess: Session = Depends(get_db)):
    return orders.delivery_history(db_sess, ctx)
