from collections.abc import Callable, Generator
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.api.deps import get_db
from app.core.db import init_db
from app.core.security import create_access_token
from app.main import app
from app.nucleus.rate_limit import get_rate_limiter


@pytest.fixture(name="session")
def session_fixture() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with Session(engine) as session:
        init_db(session)
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session) -> Generator[TestClient, None, None]:
    def get_db_override() -> Session:
        return session

    app.dependency_overrides[get_db] = get_db_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> Generator[None, None, None]:
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture(name="auth_headers")
def auth_headers_fixture() -> Callable[..., dict[str, str]]:
    def _make(sub: str = "user-1", email: str = "user@example.com") -> dict[str, str]:
        token = create_access_token(sub, email, expires_delta=timedelta(minutes=5))
        return {"Authorization": f"Bearer {token}"}

    return _make
