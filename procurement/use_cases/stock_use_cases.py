"""Stock ledger use-cases: receipts, issues and descriptive corrections."""
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain_errors import BackendError
from ..models import AuditEvent, MaterialRequest, StockItem, User
from ..security import require_entity
from ..services.stock_ledger import DEDUCT, RECEIVE, build_ledger_rows, compute_balances, validate_row_patch

logger = logging.getLogger(__name__)


def stock_row_to_dict(row: StockItem) -> dict[str, Any]:
    return {
        "id": row.id,
        "date": row.date,
        "item": row.item,
        "description": row.description,
        "qty": row.qty,
        "unit": row.unit,
        "category": row.category,
        "request_id": row.request_id,
        "created_by": row.created_by,
        "created_at": row.created_at,
    }


def list_stock_use_case(*, db: Session) -> list[StockItem]:
    return db.query(StockItem).order_by(StockItem.created_at.desc(), StockItem.date.desc()).all()


def stock_balances_use_case(*, db: Session) -> list[dict[str, Any]]:
    return [entry.to_dict() for entry in compute_balances(db.query(StockItem).all())]


def _insert_rows(
    db: Session,
    *,
    rows: Iterable[dict[str, Any]],
    current_user: User,
    action: str,
    request_id: UUID | None = None,
) -> int:
    rows = list(rows)
    try:
        for row in rows:
            db.add(
                StockItem(
                    date=row["date"],
                    item=row["item"],
                    description=row["description"],
                    qty=row["qty"],
                    unit=row["unit"],
                    category=row["category"],
                    request_id=UUID(row["request_id"]) if row["request_id"] else None,
                    created_by=current_user.id,
                )
            )
        db.add(
            AuditEvent(
                action=action,
                entity_type="stock",
                entity_id=request_id,
                entity_name=f"stock:{len(rows)}",
                user_id=current_user.id,
                user_name=current_user.full_name,
                details={"rows": len(rows), "request_id": str(request_id) if request_id else None},
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("stock.%s failed rows=%d", action, len(rows))
        raise BackendError(code="STOCK_PERSISTENCE_FAILED", message="Failed to save stock rows") from exc
    return len(rows)


def receive_stock_use_case(*, items: Any, current_user: User, db: Session) -> int:
    """Append one positive ledger row per receipt line (GRN)."""
    rows = build_ledger_rows(items, direction=RECEIVE, created_by=current_user.id)
    count = _insert_rows(db, rows=rows, current_user=current_user, action="stock_received")
    logger.info("stock.received rows=%d by=%s", count, current_user.email)
    return count


def deduct_stock_use_case(
    *,
    items: Any,
    request_id: UUID | None,
    current_user: User,
    db: Session,
) -> int:
    """Append one negative ledger row per issued line, optionally tagged with a request."""
    if request_id is not None:
        require_entity(
            db,
            MaterialRequest,
            entity_id=request_id,
            code="REQUEST_NOT_FOUND",
            not_found="Request not found",
        )
    rows = build_ledger_rows(items, direction=DEDUCT, created_by=current_user.id, request_id=request_id)
    count = _insert_rows(db, rows=rows, current_user=current_user, action="stock_deducted", request_id=request_id)
    logger.info("stock.deducted rows=%d request=%s by=%s", count, request_id, current_user.email)
    return count


def edit_stock_row_use_case(
    *,
    row_id: UUID,
    patch: dict[str, Any],
    current_user: User,
    db: Session,
) -> StockItem:
    cleaned = validate_row_patch(patch)
    row = require_entity(db, StockItem, entity_id=row_id, code="STOCK_ROW_NOT_FOUND", not_found="Stock row not found")
    for key, value in cleaned.items():
        setattr(row, key, value)
    db.add(
        AuditEvent(
            action="stock_row_edited",
            entity_type="stock",
            entity_id=row.id,
            entity_name=row.item or row.description,
            user_id=current_user.id,
            user_name=current_user.full_name,
            details={"fields": sorted(cleaned)},
        )
    )
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("stock.edit failed row=%s", row_id)
        raise BackendError(code="STOCK_PERSISTENCE_FAILED", message="Failed to update stock row") from exc
    db.refresh(row)
    return row
