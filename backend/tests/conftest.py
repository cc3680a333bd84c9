"""
Shared pytest fixtures for the CareBridge test suite.

Settings are read once at import time, so the environment below is set
before anything from ``carebridge`` is imported.

Fixture overview
----------------
db              - fresh in-memory SQLite schema per test
client          - FastAPI TestClient sharing the ``db`` session
make_user       - factory for users of any role
parent          - parent with a profile and one child
therapist       - therapist user with a TherapistProfile
other_therapist - second therapist, not assigned to anything
admin           - admin user
case            - active case for ``parent``'s child, primary ``therapist``
auth_headers    - builds a Bearer header for a user
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("AI_API_KEY", "")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("PUSH_ENABLED", "false")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from datetime import date

import pytest
from fastapi.testclient import TestClient

from carebridge import models  # noqa: F401
from carebridge.core.database import Base, SessionLocal, engine, get_db
from carebridge.core.security import create_access_token, hash_password
from carebridge.main import app
from carebridge.models import (
    Child, Gender, TherapistProfile, User, UserProfile, UserRole,
)
from carebridge.services.cases import CaseService


PASSWORD = "Sup3rSecret!"


# ── Database / app ───────────────────────────────────────────────────────────


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Users ────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.PARENT, name: str = None, email: str = None) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role.value}{counter['n']}@example.com",
            password_hash=hash_password(PASSWORD),
            name=name or f"{role.value.title()} {counter['n']}",
            role=role,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_therapist(db, make_user):
    def _make(**profile_fields) -> User:
        user = make_user(UserRole.THERAPIST)
        profile_fields.setdefault("title", "Speech-Language Pathologist")
        profile_fields.setdefault("specialties", ["Speech Therapy"])
        db.add(TherapistProfile(user_id=user.id, **profile_fields))
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def parent(db, make_user):
    user = make_user(UserRole.PARENT, name="Amina Otieno")
    profile = UserProfile(user_id=user.id, full_name=user.name, email=user.email)
    profile.children = [
        Child(first_name="Zuri", date_of_birth=date(2019, 4, 12), gender=Gender.FEMALE),
    ]
    db.add(profile)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def child(db, parent):
    return parent.profile.children[0]


@pytest.fixture
def therapist(make_therapist):
    return make_therapist()


@pytest.fixture
def other_therapist(make_therapist):
    return make_therapist(title="Occupational Therapist", specialties=["Occupational Therapy"])


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def moderator(make_user):
    return make_user(UserRole.MODERATOR)


@pytest.fixture
def case(db, therapist, child):
    return CaseService(db).create_case(therapist, child.id, diagnosis="Autism Spectrum Disorder")
