import os

# Settings are read at import time: pin a local store and header auth before anything imports ubconnect
os.environ["STORE_BACKEND"] = "memory"
os.environ["ALLOW_HEADER_AUTH"] = "true"
os.environ.setdefault("REDIS_HOST", "127.0.0.1")
os.environ.setdefault("FIREBASE_SERVICE_ACCOUNT_JSON", "./missing-service-account.json")

import pytest
from sqlalchemy.orm import sessionmaker

from ubconnect.crud import (
    CommentsCRUD, EventsCRUD, FriendsCRUD, NotificationsCRUD, RsvpCRUD, UserProfilesCRUD,
)
from ubconnect.database import create_db_engine, init_db
from ubconnect.store.memory import MemoryDocumentStore
from ubconnect.store.sql import SqlDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def sql_store(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'documents.db'}")
    init_db(engine)
    yield SqlDocumentStore(sessionmaker(bind=engine, expire_on_commit=False))
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield MemoryDocumentStore()
        return
    engine = create_db_engine(f"sqlite:///{tmp_path / 'documents.db'}")
    init_db(engine)
    yield SqlDocumentStore(sessionmaker(bind=engine, expire_on_commit=False))
    engine.dispose()


@pytest.fixture
def notifications(store):
    return NotificationsCRUD(store)


@pytest.fixture
def profiles(store):
    return UserProfilesCRUD(store)


@pytest.fixture
def friends(store, notifications):
    return FriendsCRUD(store, notifications)


@pytest.fixture
def events(store, notifications):
    return EventsCRUD(store, notifications)


@pytest.fixture
def comments(store, notifications):
    return CommentsCRUD(store, notifications)


@pytest.fixture
def rsvps(store):
    return RsvpCRUD(store)
