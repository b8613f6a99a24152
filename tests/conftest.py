import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from zapdesk.db import get_db, get_session_factory
from zapdesk.dependencies import get_ai_responder
from zapdesk.main import app
from zapdesk.models import Base
from zapdesk.outbound.factory import get_provider_selector
from tests.fakes import FakeProvider, FakeResponder, FakeSelector


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def selector(provider):
    return FakeSelector(provider)


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def client(session_factory, selector, responder):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_provider_selector] = lambda: selector
    app.dependency_overrides[get_ai_responder] = lambda: responder

    yield TestClient(app)

    app.dependency_overrides.clear()
