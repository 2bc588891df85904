from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import orders

router = APIRouter(prefix="/orders", tags=["orders"])

can_place_orders = require(Capability.place_orders)


@router.post("", response_model=schemas.OrderRead, status_code=201)
def place_order(
    payload: schemas.CreateOrderRequest,
    ctx: RequestContext = Depends(can_place_orders),
    db_sess: Session = Depends(get_db),
):
    return orders.place_order(db_sess, ctx, payload)


@router.get("/history", response_model=List[schemas.OrderRead])
def order_history(ctx: RequestContext = Depends(can_place_orders), db_sess: Session = Depends(get_db)):
    return orders.order_history(db_sess, ctx)


@router.get("/{order_id}/track", response_model=schemas.OrderRead)
def track_order(
    order_id: int,
    ctx: RequestContext = Depends(can_place_orders),
    db_sess: Session = Depends(get_db),
):
    return orders.track_order(db_sess, ctx, order_id)


@router.post("/{order_id}/cancel", response_model=schemas.OrderRead)
def cancel_order(
    order_id: int,
    ctx: RequestContext = Depends(can_place_orders),
    db_sess: Session = Depends(get_db),
):
    return orders.cancel_order(db_sess, ctx, order_id)
