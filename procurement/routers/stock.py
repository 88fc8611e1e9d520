"""Stock ledger endpoints."""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import User
from ..schemas import StockBatch, StockBatchResult, StockDeductBatch, StockRowResponse
from ..use_cases.stock_use_cases import (
    deduct_stock_use_case,
    edit_stock_row_use_case,
    list_stock_use_case,
    receive_stock_use_case,
    stock_balances_use_case,
)

router = APIRouter(prefix="/stock", tags=["stock"])


def _rows(batch: StockBatch) -> list[dict[str, Any]]:
    return [row.model_dump() for row in batch.items]


@router.get("", response_model=list[StockRowResponse])
def get_stock(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Full ledger, newest first."""
    return list_stock_use_case(db=db)


@router.get("/balances")
def get_stock_balances(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return stock_balances_use_case(db=db)


@router.post("", response_model=StockBatchResult, status_code=201)
def receive_stock(
    batch: StockBatch,
    current_user: User = Depends(PermissionChecker("canManageStock")),
    db: Session = Depends(get_db),
):
    count = receive_stock_use_case(items=_rows(batch), current_user=current_user, db=db)
    return StockBatchResult(count=count)


@router.post("/deduct", response_model=StockBatchResult, status_code=201)
def deduct_stock(
    batch: StockDeductBatch,
    current_user: User = Depends(PermissionChecker("canManageStock")),
    db: Session = Depends(get_db),
):
    count = deduct_stock_use_case(
        items=_rows(batch),
        request_id=batch.request_id,
        current_user=current_user,
        db=db,
    )
    return StockBatchResult(count=count)


@router.patch("/{row_id}", response_model=StockRowResponse)
def edit_stock_row(
    row_id: UUID,
    patch: dict[str, Any] = Body(...),
    current_user: User = Depends(PermissionChecker("canManageStock")),
    db: Session = Depends(get_db),
):
    """Correct descriptive fields of a ledger row; quantities are immutable."""
    return edit_stock_row_use_case(row_id=row_id, patch=patch, current_user=current_user, db=db)
