"""SQLAlchemy models for the self-hosted backend."""
from sqlalchemy import (
    Boolean, Column, String, Integer, Date, DateTime, Float, Text, JSON, Uuid,
    ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from .database import Base

USER_ROLES = ("admin", "user")
PROJECT_STATUSES = ("active", "completed")
REQUEST_STATUSES = ("draft", "submitted", "approved", "rejected", "closed")
REQUEST_PRIORITIES = ("normal", "urgent")
ITEM_UNITS = ("nos", "bags", "kg", "ton", "m3")
APPROVAL_ACTIONS = ("approved", "rejected")


class User(Base):
    """User account with its profile fields and role."""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    designation = Column(String(255), nullable=False, default="")
    phone = Column(String(50), nullable=True, default="")
    role = Column(String(20), nullable=False, default="user", index=True)
    must_change_password = Column(Boolean, default=False, nullable=False)  # Force password change on first login
    # Monotonically increasing version used to revoke previously issued tokens.
    token_version = Column(Integer, nullable=False, default=0)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(role.in_(USER_ROLES), name="chk_user_role"),
    )

    requests = relationship("MaterialRequest", back_populates="requester")


class Project(Base):
    """Construction project that material requests are raised against."""
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(PROJECT_STATUSES), name="chk_project_status"),
    )

    requests = relationship("MaterialRequest", back_populates="project")


class MaterialCategory(Base):
    __tablename__ = "material_categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Counter(Base):
    """Named monotonic counter (backs request numbers)."""
    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)


class MaterialRequest(Base):
    """Material request header."""
    __tablename__ = "material_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_number = Column(String(32), nullable=False, unique=True, index=True)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    request_type = Column(String(50), nullable=False, default="stock_request")
    priority = Column(String(20), nullable=False, default="normal")
    required_date = Column(Date, nullable=True)
    remarks = Column(Text, nullable=True, default="")
    requester_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(REQUEST_STATUSES), name="chk_material_request_status"),
        CheckConstraint(priority.in_(REQUEST_PRIORITIES), name="chk_material_request_priority"),
    )

    project = relationship("Project", back_populates="requests")
    requester = relationship("User", back_populates="requests")
    items = relationship(
        "MaterialRequestItem",
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    approvals = relationship("Approval", back_populates="request", cascade="all, delete-orphan")


class MaterialRequestItem(Base):
    """Line item of a material request."""
    __tablename__ = "material_request_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("material_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    specification = Column(Text, nullable=True)
    quantity = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False)
    preferred_brand = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(quantity > 0, name="chk_request_item_quantity_positive"),
        CheckConstraint(unit.in_(ITEM_UNITS), name="chk_request_item_unit"),
    )

    request = relationship("MaterialRequest", back_populates="items")


class Approval(Base):
    """Approval/rejection decision (append-only)."""
    __tablename__ = "approvals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("material_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    action = Column(String(20), nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(action.in_(APPROVAL_ACTIONS), name="chk_approval_action"),
    )

    request = relationship("MaterialRequest", back_populates="approvals")
    user = relationship("User")


class StockItem(Base):
    """Stock ledger row: positive qty is a receipt, negative an issue."""
    __tablename__ = "stock_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(String(32), nullable=False, default="")
    item = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    qty = Column(Float, nullable=False, default=0)
    unit = Column(String(50), nullable=False, default="")
    category = Column(String(255), nullable=True)
    request_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("material_requests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint("request_id IS NULL OR qty <= 0", name="ck_stock_items_request_on_issue_only"),
    )


class AuditEvent(Base):
    """Audit event model."""
    __tablename__ = "audit_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=True)
    entity_name = Column(String(255), nullable=True)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    user_name = Column(String(255), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(
            action.in_([
                "user_login", "user_logout", "password_changed",
                "user_created", "user_updated", "user_deleted",
                "request_created", "request_updated", "request_submitted",
                "request_approved", "request_rejected", "request_closed", "request_deleted",
                "stock_received", "stock_deducted", "stock_row_edited",
            ]),
            name="chk_audit_action",
        ),
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )
