"""Unit tests for the storage execution contract, with a mocked pool."""

from unittest.mock import MagicMock

import psycopg2.errors
import pytest

from src.cadastro_api import db
from src.cadastro_api.exceptions import StorageError


@pytest.fixture
def pool(monkeypatch):
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    mock_pool = MagicMock()
    mock_pool.getconn.return_value = conn
    monkeypatch.setattr(db, "_POOL", mock_pool)
    return mock_pool, conn, cursor


class TestExecute:
    def test_returns_rows_and_rowcount(self, pool):
        mock_pool, conn, cursor = pool
        cursor.description = [("id",)]
        cursor.fetchall.return_value = [{"id": 1}, {"id": 2}]
        cursor.rowcount = 2

        result = db.execute("SELECT * FROM departamento WHERE nome ILIKE %s", ["%a%"])

        assert result == db.QueryResult(rows=[{"id": 1}, {"id": 2}], row_count=2)
        cursor.execute.assert_called_once_with("SELECT * FROM departamento WHERE nome ILIKE %s", ["%a%"])
        conn.commit.assert_called_once()
        mock_pool.putconn.assert_called_once_with(conn)

    def test_statement_without_result_set(self, pool):
        _, _, cursor = pool
        cursor.description = None
        cursor.rowcount = 0

        assert db.execute("DELETE FROM empresa WHERE id = %s", [1]) == db.QueryResult(rows=[], row_count=0)
        cursor.fetchall.assert_not_called()

    def test_unique_violation_flagged_and_connection_released(self, pool):
        mock_pool, conn, cursor = pool
        cursor.execute.side_effect = psycopg2.errors.UniqueViolation("duplicate key")

        with pytest.raises(StorageError) as info:
            db.execute("INSERT INTO usuario (nome, email, senha) VALUES (%s, %s, %s)", ["a", "b", "c"])

        assert info.value.unique_violation is True
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        mock_pool.putconn.assert_called_once_with(conn)

    def test_other_errors_not_flagged(self, pool):
        _, _, cursor = pool
        cursor.execute.side_effect = psycopg2.errors.UndefinedTable("no such table")

        with pytest.raises(StorageError) as info:
            db.execute("SELECT * FROM nowhere")

        assert info.value.unique_violation is False


def test_fetch_one_returns_none_when_empty(pool):
    _, _, cursor = pool
    cursor.description = [("id",)]
    cursor.fetchall.return_value = []
    cursor.rowcount = 0

    assert db.fetch_one("SELECT id FROM usuario WHERE email = %s", ["x"]) is None


def test_fetch_all_returns_rows(pool):
    _, _, cursor = pool
    cursor.description = [("id",)]
    cursor.fetchall.return_value = [{"id": 1}, {"id": 2}]
    cursor.rowcount = 2

    assert db.fetch_all("SELECT * FROM departamento") == [{"id": 1}, {"id": 2}]
