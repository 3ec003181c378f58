import os
import tempfile
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from ledgerly.auth import AuthContext
from ledgerly.backend import SqlTableBackend
from ledgerly.core.database import Base, create_db_engine
from ledgerly.core.deps import get_backend
from ledgerly.main import app
from ledgerly.models import User
from ledgerly.schemas import UserOut
from ledgerly.seed import DEMO_EMAIL
from ledgerly.store import FinanceStore

# Every store built by the fixtures sees this as "today"
TODAY = date(2024, 6, 15)


@pytest.fixture(scope="session")
def test_db_url():
    fd, path = tempfile.mkstemp(prefix="ledgerly_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url):
    eng = create_db_engine(test_db_url)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture(scope="session")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        if not db.query(User).filter_by(email=DEMO_EMAIL).first():
            db.add(User(email=DEMO_EMAIL, full_name="Demo", is_active=True))
            db.commit()
        yield db
    finally:
        db.close()
        # Clean all tables between tests to ensure isolation
        cleanup = session_factory()
        try:
            cleanup.execute(text("PRAGMA foreign_keys=OFF"))
            for table in reversed(Base.metadata.sorted_tables):
                cleanup.execute(table.delete())
            cleanup.commit()
        finally:
            cleanup.execute(text("PRAGMA foreign_keys=ON"))
            cleanup.close()


@pytest.fixture()
def backend(db_session, session_factory):
    return SqlTableBackend(session_factory)


@pytest.fixture()
def demo_user(backend) -> UserOut:
    return UserOut.model_validate(backend.find_user(DEMO_EMAIL))


@pytest.fixture()
def make_store(backend, demo_user):
    def _make(user=demo_user, clock=lambda: TODAY) -> FinanceStore:
        return FinanceStore(backend, AuthContext(backend, user), clock=clock, default_currency="USD")

    return _make


@pytest.fixture()
def store(make_store) -> FinanceStore:
    return make_store()


@pytest.fixture()
def client(backend):
    app.dependency_overrides[get_backend] = lambda: backend
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
