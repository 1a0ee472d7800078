"""
Runtime construction of parameterized SELECT filters and partial UPDATEs.

Caller-supplied values only ever travel through the parameter list. Column and
table identifiers cannot be bound, so they are checked against the ``Table``
description before they reach the statement text.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from src.cadastro_api.exceptions import ValidationError


class ParamStyle(str, Enum):
    """Placeholder syntax of the target driver."""

    NUMERIC = "numeric"  # $1, $2, ... (libpq / asyncpg)
    FORMAT = "format"  # %s, positional (psycopg2)

    def render(self, position: int) -> str:
        if self is ParamStyle.NUMERIC:
            return f"${position}"
        return "%s"


class Match(str, Enum):
    EXACT = "exact"
    CONTAINS_CASE_INSENSITIVE = "contains_ci"


@dataclass(frozen=True)
class Predicate:
    column: str
    value: Any
    match: Match = Match.EXACT


@dataclass(frozen=True)
class Table:
    """A resource table: its name, key column and which columns may be touched."""

    name: str
    columns: Tuple[str, ...]
    mutable: Tuple[str, ...]
    key: str = "id"

    def check_column(self, column: str) -> str:
        if column != self.key and column not in self.columns:
            raise ValidationError(f"Campo desconhecido: {column}", details={"column": column})
        return column

    def check_mutable(self, column: str) -> str:
        if column not in self.mutable:
            raise ValidationError(f"Campo não pode ser atualizado: {column}", details={"column": column})
        return column


Query = Tuple[str, List[Any]]

_LIKE_SPECIALS = ("\\", "%", "_")


# PUBLIC_INTERFACE
def escape_like(value: str, escape_char: str = "\\") -> str:
    """Escape LIKE/ILIKE metacharacters so ``value`` matches literally."""
    out: List[str] = []
    for ch in value:
        if ch in _LIKE_SPECIALS:
            out.append(escape_char)
        out.append(ch)
    return "".join(out)


def filters_from(pairs: Iterable[Tuple[str, Any, Match]]) -> List[Predicate]:
    """Build a filter list from (column, value, match) triples, skipping absent values."""
    return [Predicate(column, value, match) for column, value, match in pairs if value is not None and value != ""]


# PUBLIC_INTERFACE
def build_filter_query(
    table: Table,
    filters: Iterable[Predicate],
    select: Optional[str] = None,
    style: ParamStyle = ParamStyle.NUMERIC,
) -> Query:
    """
    Build ``SELECT ... [WHERE p1 AND p2 ...]`` from the supplied predicates.

    The WHERE clause is only added when at least one predicate is present.
    Placeholder i always refers to params[i - 1].
    """
    query = select or f"SELECT * FROM {table.name}"
    params: List[Any] = []
    clauses: List[str] = []

    for predicate in filters:
        column = table.check_column(predicate.column)
        if predicate.match is Match.CONTAINS_CASE_INSENSITIVE:
            params.append(f"%{escape_like(str(predicate.value))}%")
            clauses.append(f"{column} ILIKE {style.render(len(params))}")
        else:
            params.append(predicate.value)
            clauses.append(f"{column} = {style.render(len(params))}")

    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    return query, params


# PUBLIC_INTERFACE
def build_update_query(
    table: Table,
    updates: Mapping[str, Any],
    key_value: Any,
    style: ParamStyle = ParamStyle.NUMERIC,
    returning: Optional[str] = "*",
) -> Query:
    """
    Build ``UPDATE <table> SET c = ph, ... WHERE <key> = ph [RETURNING ...]``.

    Columns keep the iteration order of ``updates``; the key value is always
    the last parameter. Raises ValidationError for an empty mapping or for a
    column outside the table's mutable allow-list.
    """
    if not updates:
        raise ValidationError("Nenhum campo para atualizar foi enviado.")

    params: List[Any] = []
    assignments: List[str] = []
    for column, value in updates.items():
        table.check_mutable(column)
        params.append(value)
        assignments.append(f"{column} = {style.render(len(params))}")

    params.append(key_value)
    query = f"UPDATE {table.name} SET {', '.join(assignments)} WHERE {table.key} = {style.render(len(params))}"
    if returning:
        query += f" RETURNING {returning}"
    return query, params
