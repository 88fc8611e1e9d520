from __future__ import annotations

from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from procurement.auth import create_user_token, hash_password
from procurement.database import Base, create_db_engine, get_db
from procurement.main import app
from procurement.models import Project, User


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    def _make_user(
        email: str,
        *,
        role: str = "user",
        password: str = "password123",
        full_name: str | None = None,
        must_change_password: bool = False,
        **extra,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password),
            full_name=full_name or email.split("@")[0].title(),
            role=role,
            must_change_password=must_change_password,
            **extra,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin@company.com", role="admin", full_name="Site Admin", designation="Procurement Manager")


@pytest.fixture
def requester(make_user) -> User:
    return make_user("ravi@company.com", full_name="Ravi Kumar", designation="Site Engineer", phone="98450 00001")


@pytest.fixture
def other_requester(make_user) -> User:
    return make_user("anita@company.com", full_name="Anita Rao", designation="Supervisor")


@pytest.fixture
def project(db) -> Project:
    project = Project(name="Green Valley Apartments", location="Whitefield")
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


def request_payload(project_id, *, as_draft: bool = False, items=None, **extra) -> dict:
    payload = {
        "project_id": str(project_id),
        "priority": "normal",
        "as_draft": as_draft,
        "items": items
        if items is not None
        else [
            {"category": "Cement", "name": "OPC 53 grade", "quantity": 120, "unit": "bags", "preferred_brand": "UltraTech"},
            {"category": "Steel", "name": "TMT 12mm", "quantity": "2.5", "unit": "ton"},
        ],
    }
    payload.update(extra)
    return payload
