from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.customers import CustomerIdRequest, CustomerPrefixCreate
from ..services import customer_ids


router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/prefixes")
def list_prefixes(db: Session = Depends(get_db)):
    return {"success": True, "data": customer_ids.list_active_prefixes(db)}


@router.post("/prefixes", status_code=201)
def add_prefix(payload: CustomerPrefixCreate, db: Session = Depends(get_db)):
    config = customer_ids.add_custom_prefix(db, payload.prefix)
    return {
        "success": True,
        "message": "Customer ID prefix added successfully",
        "data": {"prefix": config.prefix, "next_sequence": config.next_sequence, "is_active": config.is_active},
    }


@router.post("/ids", status_code=201)
def generate_customer_id(payload: Optional[CustomerIdRequest] = Body(default=None), db: Session = Depends(get_db)):
    prefix = payload.prefix if payload else None
    return {"success": True, "data": {"customer_id": customer_ids.generate_customer_id(db, prefix)}}
