import fnmatch
import os
import time

# Must be set before orderflow.database / app are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from authlib.jose import jwt
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orderflow.cache_store import CacheError
from orderflow.database import init_db
from orderflow.order_service import OrderService
from orderflow.order_store import OrderStore


class MemoryCache:
    """In-memory CacheStore double with call counters and failure switches."""

    def __init__(self):
        self.entries = {}
        self.failing = set()
        self.calls = {"get": 0, "set_with_ttl": 0, "keys_matching": 0, "delete_many": 0}

    def _enter(self, operation):
        self.calls[operation] += 1
        if operation in self.failing:
            raise CacheError(f"{operation} unavailable")

    def get(self, key):
        self._enter("get")
        item = self.entries.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at <= time.time():
            del self.entries[key]
            return None
        return value

    def set_with_ttl(self, key, value, ttl):
        self._enter("set_with_ttl")
        self.entries[key] = (value, time.time() + ttl)

    def keys_matching(self, pattern):
        self._enter("keys_matching")
        return [key for key in self.entries if fnmatch.fnmatchcase(key, pattern)]

    def delete_many(self, keys):
        self._enter("delete_many")
        for key in keys:
            self.entries.pop(key, None)


class CountingOrderStore(OrderStore):
    """OrderStore that counts read queries."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.reads = 0

    def select_range(self, offset, limit):
        self.reads += 1
        return super().select_range(offset, limit)

    def select_one(self, order_id):
        self.reads += 1
        return super().select_one(order_id)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return CountingOrderStore(session_factory)


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def service(store, cache):
    return OrderService(store, cache)


@pytest.fixture
def client(service):
    from app import app, get_order_service

    app.dependency_overrides[get_order_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_token(user_id=7, secret=None, **claims):
    payload = {"user_id": user_id, "name": "budi", "role": "owner"}
    payload.update(claims)
    token = jwt.encode({"alg": "HS256"}, payload, secret or os.environ["JWT_SECRET"])
    return token.decode("ascii")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {_make_token()}"}


@pytest.fixture
def order_payload():
    return {
        "order_name": "Kemeja batik",
        "order_type": "tailoring",
        "quantity": 12,
        "note": "Blue thread",
        "start_date": "2026-10-01",
        "due_date": "2026-10-20",
    }


@pytest.fixture
def token_for():
    return _make_token
