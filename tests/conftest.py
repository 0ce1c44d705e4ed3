"""
pytest configuration and shared fixtures.

Settings are read at import time, so the environment is prepared before any
`app` module is imported.
"""
import os
import tempfile
import uuid
from datetime import datetime, timedelta

os.environ["SECRET_KEY"] = "cuptrace-test-secret-key-0123456789abcdef"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "cuptrace-tests.log")
os.environ.pop("NOTARY_RELAY_URL", None)

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.core.config import settings
from app.core.dependencies import get_notarizer
from app.core.exceptions import NotarizationError
from app.db.core import get_session
from app.db.schema import (
    User, UserRole, ProductBatch, ProductType, SupplyChainStage
)
from app.main import app
from app.services.notarization import LedgerNotarizer


# In-memory SQLite shared across threads (TestClient runs the app in a worker thread)
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

FAKE_TX_HASH = "ab" * 32


class RecordingNotarizer:
    """Stands in for the ledger; remembers every call."""

    def __init__(self):
        self.calls = []

    def notarize(self, batch_id, new_stage, old_stage, actor_id, supplied_tx_hash=None):
        self.calls.append({
            "batch_id": batch_id,
            "new_stage": new_stage,
            "old_stage": old_stage,
            "actor_id": actor_id,
            "supplied_tx_hash": supplied_tx_hash,
        })
        return FAKE_TX_HASH


class FailingNotarizer:
    """A ledger that is always down."""

    def __init__(self):
        self.attempts = 0

    def notarize(self, batch_id, new_stage, old_stage, actor_id, supplied_tx_hash=None):
        self.attempts += 1
        raise NotarizationError("ledger unreachable")


def run_background_tasks(background_tasks):
    for task in background_tasks.tasks:
        task.func(*task.args, **task.kwargs)


def make_batch(
    session,
    farmer,
    stage=SupplyChainStage.FARMER,
    product_type=ProductType.COFFEE,
    **kwargs
):
    batch = ProductBatch(
        farmer_id=farmer.id,
        product_type=product_type,
        current_stage=stage,
        lot_code=kwargs.pop("lot_code", f"LOT-{uuid.uuid4().hex[:8]}"),
        **kwargs
    )
    session.add(batch)
    session.commit()
    session.refresh(batch)
    return batch


def make_token(user, token_type="access"):
    payload = {
        "sub": str(user.id),
        "exp": datetime.utcnow() + timedelta(minutes=15),
        "type": token_type,
    }
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


@pytest.fixture(scope="function")
def db_session():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def participants(db_session):
    """One participant per supply chain role."""
    users = {}
    for role in UserRole:
        if role == UserRole.ADMIN:
            continue
        user = User(
            name=f"{role.value.replace('_', ' ').title()} Ltd",
            email=f"{role.value}@cuptrace.test",
            role=role,
        )
        db_session.add(user)
        users[role] = user
    db_session.commit()
    for user in users.values():
        db_session.refresh(user)
    return users


@pytest.fixture
def farmer(participants):
    return participants[UserRole.FARMER]


@pytest.fixture
def coffee_batch(db_session, farmer):
    return make_batch(db_session, farmer)


@pytest.fixture
def tea_batch(db_session, farmer):
    return make_batch(db_session, farmer, product_type=ProductType.TEA)


@pytest.fixture
def ledger_notarizer():
    return LedgerNotarizer(engine=engine, network="preprod")


@pytest.fixture
def client(db_session, ledger_notarizer):
    def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notarizer] = lambda: ledger_notarizer

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user)}"}
