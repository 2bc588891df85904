from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import addresses

router = APIRouter(prefix="/addresses", tags=["addresses"])

can_manage_addresses = require(Capability.manage_addresses)


@router.post("", response_model=schemas.AddressRead, status_code=201)
def add_address(
    payload: schemas.AddressCreate,
    ctx: RequestContext = Depends(can_manage_addresses),
    db_sess: Session = Depends(get_db),
):
    return addresses.add_address(db_sess, ctx, payload)


@router.get("", response_model=schemas.AddressList)
def list_addresses(ctx: RequestContext = Depends(can_manage_addresses), db_sess: Session = Depends(get_db)):
    items = addresses.list_addresses(db_sess, ctx)
    return schemas.AddressList(addresses=items, total=len(items))


@router.get("/default", response_model=schemas.AddressRead)
def get_default_address(ctx: RequestContext = Depends(can_manage_addresses), db_sess: Session = Depends(get_db)):
    return addresses.get_default_address(db_sess, ctx)


@router.get("/{address_id}", response_model=schemas.AddressRead)
def get_address(
    address_id: int,
    ctx: RequestContext = Depends(can_manage_addresses),
    db_sess: Session = Depends(get_db),
):
    return addresses.get_address(db_sess, ctx, address_id)


@router.put("/{address_id}", response_model=schemas.AddressRead)
def update_address(
    address_id: int,
    payload: schemas.AddressUpdate,
    ctx: RequestContext = Depends(can_manage_addresses),
    db_sess: Session = Depends(get_db),
):
    return addresses.update_address(db_sess, ctx, address_id, payload)


@router.put("/{address_id}/set-default", response_model=schemas.AddressRead)
def set_default_address(
    address_id: int,
    ctx: RequestContext = Depends(can_manage_addresses),
    db_sess: Session = Depends(get_db),
):
    return addresses.set_default(db_sess, ctx, address_id)


@router.delete("/{address_id}", response_model=schemas.MessageResponse)
def delete_address(
    address_id: int,
    ctx: RequestContext = Depends(can_manage_addresses),
    db_sess: Session = Depends(get_db),
):
    addresses.delete_address(db_sess, ctx, address_id)
    return schemas.MessageResponse(message="Address removed successfully")
