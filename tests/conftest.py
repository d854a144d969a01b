import os

# Keep the app module off the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base, make_engine
from models import Category
from app.services.events import EventBus
from app.services.onboarding import ensure_user_initialized
from app.services.sms_rules import build_rules

OWNER = 1
OTHER_OWNER = 2


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def owner(db):
    ensure_user_initialized(db, OWNER)
    return OWNER


@pytest.fixture
def rules():
    return build_rules()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def category_ids(db, owner):
    return {c.name: c.id for c in db.query(Category).filter(Category.owner_id == owner).all()}


@pytest.fixture
def client(engine, bus):
    from fastapi.testclient import TestClient

    from main import app
    from app.deps import get_db, get_event_bus

    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_event_bus] = lambda: bus
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-User-Id": str(OWNER)}
