"""
Pytest configuration and fixtures for the cadastro API tests.

No database is needed: ``db.execute`` is replaced by FakeDatabase, which
records every statement and answers from scripted handlers.
"""
import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

# Settings are read at import time of the app module.
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-at-least-32-chars-long")

from src.cadastro_api import db  # noqa: E402
from src.cadastro_api.auth_utils import TokenService  # noqa: E402
from src.cadastro_api.config import Settings  # noqa: E402
from src.cadastro_api.exceptions import StorageError  # noqa: E402
from src.cadastro_api.main import app  # noqa: E402

Handler = Callable[[str, List[Any]], db.QueryResult]


class FakeDatabase:
    """Stand-in for ``db.execute``: first handler whose prefix matches answers."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, List[Any]]] = []
        self._handlers: List[Tuple[str, Handler]] = []

    def on(self, prefix: str, handler: Handler) -> None:
        self._handlers.append((prefix, handler))

    def returns(self, prefix: str, rows: List[Dict[str, Any]], row_count: Optional[int] = None) -> None:
        count = len(rows) if row_count is None else row_count
        self.on(prefix, lambda query, params: db.QueryResult(rows=[dict(r) for r in rows], row_count=count))

    def raises(self, prefix: str, error: Exception) -> None:
        def _raise(query: str, params: List[Any]) -> db.QueryResult:
            raise error

        self.on(prefix, _raise)

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> db.QueryResult:
        params = list(params or [])
        self.calls.append((query, params))
        for prefix, handler in self._handlers:
            if query.startswith(prefix):
                return handler(query, params)
        return db.QueryResult(rows=[], row_count=0)


@pytest.fixture
def fake_db(monkeypatch) -> FakeDatabase:
    fake = FakeDatabase()
    monkeypatch.setattr(db, "execute", fake.execute)
    return fake


@pytest.fixture
def test_settings() -> Settings:
    return Settings(jwt_secret=os.environ["JWT_SECRET"])


@pytest.fixture
def token_service(test_settings: Settings) -> TokenService:
    return TokenService(test_settings)


@pytest.fixture
def client(token_service: TokenService) -> TestClient:
    app.state.token_service = token_service
    yield TestClient(app)
    app.state.token_service = None


@pytest.fixture
def auth_headers(token_service: TokenService) -> Dict[str, str]:
    token = token_service.issue(1, "ana@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def unique_violation() -> StorageError:
    return StorageError("duplicate key value violates unique constraint", unique_violation=True, code="23505")
