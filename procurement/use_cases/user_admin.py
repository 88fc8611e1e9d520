"""User administration and password use-cases."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import hash_password, normalize_email, validate_new_password, verify_password
from ..domain_errors import AuthenticationError, AuthorizationError, BackendError, ValidationError
from ..models import USER_ROLES, AuditEvent, User
from ..schemas import UserCreate, UserUpdate
from ..security import require_entity

logger = logging.getLogger(__name__)


def _validate_password(password: str, *, email: str | None) -> None:
    try:
        validate_new_password(new_password=password, email=email)
    except HTTPException as exc:
        raise ValidationError(code="PASSWORD_POLICY_VIOLATION", message=str(exc.detail)) from exc


def _validate_role(role: str | None) -> str:
    value = (role or "user").strip().lower()
    if value not in USER_ROLES:
        raise ValidationError(code="USER_INVALID_ROLE", message="Role must be 'admin' or 'user'")
    return value


def _audit(db: Session, *, action: str, target: User, current_user: User, details: dict | None = None) -> None:
    db.add(
        AuditEvent(
            action=action,
            entity_type="user",
            entity_id=target.id,
            entity_name=target.email,
            user_id=current_user.id,
            user_name=current_user.full_name,
            details=details or {},
        )
    )


def _commit(db: Session, *, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("user.%s conflict: %s", action, exc.orig)
        raise BackendError(
            code="USER_CONFLICT",
            http_status=409,
            message="User already exists or is still referenced",
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("user.%s failed", action)
        raise BackendError(code="USER_PERSISTENCE_FAILED", message=f"Failed to {action} user") from exc


def create_user_use_case(*, data: UserCreate, current_user: User, db: Session) -> User:
    email = normalize_email(data.email)
    full_name = (data.full_name or "").strip()
    if not email or not full_name:
        raise ValidationError(code="USER_FIELDS_REQUIRED", message="Email and name are required")
    _validate_password(data.password, email=email)
    if db.query(User).filter(User.email == email).first():
        raise BackendError(code="USER_EMAIL_TAKEN", http_status=409, message="Email already exists")

    user = User(
        email=email,
        password_hash=hash_password(data.password),
        full_name=full_name,
        designation=(data.designation or "").strip(),
        phone=(data.phone or "").strip(),
        role=_validate_role(data.role),
        must_change_password=True,
    )
    db.add(user)
    db.flush()
    _audit(db, action="user_created", target=user, current_user=current_user, details={"role": user.role})
    _commit(db, action="create")
    db.refresh(user)
    logger.info("user.created email=%s role=%s by=%s", user.email, user.role, current_user.email)
    return user


def update_user_use_case(*, user_id: UUID, data: UserUpdate, current_user: User, db: Session) -> User:
    user = require_entity(db, User, entity_id=user_id, code="USER_NOT_FOUND", not_found="User not found")
    fields = data.model_dump(exclude_unset=True)
    password = fields.pop("password", None)

    if "role" in fields:
        fields["role"] = _validate_role(fields["role"])
        if user.id == current_user.id and fields["role"] != "admin":
            raise AuthorizationError(code="USER_SELF_DEMOTION", message="You cannot remove your own admin role")
    for key in ("full_name", "designation", "phone"):
        if key in fields:
            fields[key] = (fields[key] or "").strip()
    if "full_name" in fields and not fields["full_name"]:
        raise ValidationError(code="USER_FIELDS_REQUIRED", message="Name is required")

    for key, value in fields.items():
        setattr(user, key, value)
    if password:
        _validate_password(password, email=user.email)
        user.password_hash = hash_password(password)
        user.must_change_password = True
        user.token_version = int(user.token_version or 0) + 1

    _audit(
        db,
        action="user_updated",
        target=user,
        current_user=current_user,
        details={"fields": sorted(fields), "password_reset": bool(password)},
    )
    _commit(db, action="update")
    db.refresh(user)
    return user


def delete_user_use_case(*, user_id: UUID, current_user: User, db: Session) -> None:
    if user_id == current_user.id:
        raise AuthorizationError(code="USER_SELF_DELETE", message="Cannot delete yourself")
    user = require_entity(db, User, entity_id=user_id, code="USER_NOT_FOUND", not_found="User not found")
    _audit(db, action="user_deleted", target=user, current_user=current_user)
    db.delete(user)
    _commit(db, action="delete")
    logger.info("user.deleted email=%s by=%s", user.email, current_user.email)


def authenticate_user_use_case(*, email: str, password: str, db: Session) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError(code="INVALID_CREDENTIALS", message="Invalid credentials")
    db.add(
        AuditEvent(
            action="user_login",
            entity_type="user",
            entity_id=user.id,
            entity_name=user.email,
            user_id=user.id,
            user_name=user.full_name,
            details={},
        )
    )
    _commit(db, action="login")
    return user


def change_password_use_case(*, current_password: str, new_password: str, current_user: User, db: Session) -> User:
    if not verify_password(current_password, current_user.password_hash):
        raise ValidationError(code="PASSWORD_MISMATCH", message="Current password is incorrect")
    if current_password == new_password:
        raise ValidationError(code="PASSWORD_UNCHANGED", message="New password must differ from the current one")
    _validate_password(new_password, email=current_user.email)

    current_user.password_hash = hash_password(new_password)
    current_user.must_change_password = False
    current_user.password_changed_at = datetime.now(timezone.utc)
    current_user.token_version = int(current_user.token_version or 0) + 1
    _audit(db, action="password_changed", target=current_user, current_user=current_user)
    _commit(db, action="change password for")
    db.refresh(current_user)
    return current_user


def logout_use_case(*, current_user: User, db: Session) -> None:
    """Revoke every token issued to the user so far."""
    current_user.token_version = int(current_user.token_version or 0) + 1
    _audit(db, action="user_logout", target=current_user, current_user=current_user)
    _commit(db, action="logout")


def ensure_seed_admin(db: Session, *, email: str, password: str, full_name: str) -> User | None:
    """Create the default admin when the user table is empty."""
    if db.query(User).first() is not None:
        return None
    admin = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        full_name=full_name,
        designation="Administrator",
        role="admin",
        must_change_password=True,
    )
    db.add(admin)
    db.commit()
    logger.warning("Seeded default admin %s; change its password on first login", admin.email)
    return admin
