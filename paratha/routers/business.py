from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import accounts, catalog, orders

router = APIRouter(prefix="/business", tags=["business"])

can_manage_catalog = require(Capability.manage_catalog)
can_view_orders = require(Capability.view_business_orders)


@router.get("/profile", response_model=schemas.BusinessRead)
def get_profile(ctx: RequestContext = Depends(can_manage_catalog), db_sess: Session = Depends(get_db)):
    return accounts.business_for(db_sess, ctx)


@router.put("/profile", response_model=schemas.BusinessRead)
def update_profile(
    payload: schemas.BusinessUpdate,
    ctx: RequestContext = Depends(can_manage_catalog),
    db_sess: Session = Depends(get_db),
):
    return accounts.update_business_profile(db_sess, ctx, payload)


@router.post("/products", response_model=schemas.ProductRead, status_code=201)
def add_product(
    payload: schemas.ProductCreate,
    ctx: RequestContext = Depends(can_manage_catalog),
    db_sess: Session = Depends(get_db),
):
    return catalog.add_product(db_sess, ctx, payload)


@router.put("/products/{product_id}", response_model=schemas.ProductRead)
def edit_product(
    product_id: int,
    payload: schemas.ProductUpdate,
    ctx: RequestContext = Depends(can_manage_catalog),
    db_sess: Session = Depends(get_db),
):
    return catalog.update_product(db_sess, ctx, product_id, payload)


@router.get("/orders", response_model=List[schemas.OrderAdminRead])
def active_orders(ctx: RequestContext = Depends(can_view_orders), db_sess: Session = Depends(get_db)):
    return orders.business_orders(db_sess, ctx)


@router.get("/orders/history", response_model=List[schemas.OrderAdminRead])
def order_history(ctx: RequestContext = Depends(can_view_orders), db_sess: Session = Depends(get_db)):
    return orders.business_orders(db_sess, ctx, history=True)
