"""
Resource operations for departamentos, empresas and usuarios.

Each function composes the query builder with ``db.execute`` and turns
storage outcomes into application errors: zero affected rows becomes
NotFoundError and a unique violation becomes ConflictError. Everything else
propagates unchanged.
"""
from typing import Any, Dict, List, Mapping, Optional

from src.cadastro_api import db
from src.cadastro_api.auth_utils import TokenService, dummy_verify, hash_password, verify_password
from src.cadastro_api.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from src.cadastro_api.logging import get_logger
from src.cadastro_api.query_builder import Match, Table, build_filter_query, build_update_query, filters_from

logger = get_logger(__name__)

_EMPRESA_FIELDS = (
    "nome",
    "email",
    "cnpj",
    "telefone1",
    "telefone2",
    "celular1",
    "celular2",
    "cep",
    "logradouro",
    "numero",
    "complemento",
    "bairro",
    "cidade",
    "uf",
)

DEPARTAMENTO = Table(name="departamento", columns=("nome",), mutable=("nome",))
EMPRESA = Table(name="empresa", columns=_EMPRESA_FIELDS, mutable=_EMPRESA_FIELDS)

_DUPLICATE_EMAIL = "Email já cadastrado"
_DUPLICATE_DEPARTAMENTO = "Departamento já cadastrado"
_BAD_CREDENTIALS = "Email ou senha inválidos"


def _insert_returning(query: str, params: List[Any], conflict_message: str) -> Dict[str, Any]:
    try:
        result = db.execute(query, params)
    except StorageError as exc:
        if exc.unique_violation:
            raise ConflictError(conflict_message) from exc
        raise
    return result.rows[0]


def _update_or_404(
    table: Table, updates: Mapping[str, Any], key_value: Any, not_found: str, conflict_message: str
) -> Dict[str, Any]:
    query, params = build_update_query(table, updates, key_value, style=db.PARAMSTYLE)
    try:
        result = db.execute(query, params)
    except StorageError as exc:
        if exc.unique_violation:
            raise ConflictError(conflict_message) from exc
        raise
    if result.row_count == 0:
        raise NotFoundError(not_found, details={"id": key_value})
    return result.rows[0]


def _delete_or_404(table: Table, key_value: Any, not_found: str) -> None:
    result = db.execute(f"DELETE FROM {table.name} WHERE {table.key} = %s RETURNING *", [key_value])
    if result.row_count == 0:
        raise NotFoundError(not_found, details={"id": key_value})


# =========================
# Departamentos
# =========================

# PUBLIC_INTERFACE
def list_departamentos(id: Optional[int] = None, nome: Optional[str] = None) -> List[Dict[str, Any]]:
    """List departments, optionally filtered by exact id and/or name substring."""
    filters = filters_from([("id", id, Match.EXACT), ("nome", nome, Match.CONTAINS_CASE_INSENSITIVE)])
    query, params = build_filter_query(DEPARTAMENTO, filters, style=db.PARAMSTYLE)
    return db.fetch_all(query, params)


# PUBLIC_INTERFACE
def create_departamento(nome: Optional[str]) -> Dict[str, Any]:
    """Create a department."""
    if not nome:
        raise ValidationError("Nome é obrigatório.")
    return _insert_returning(
        "INSERT INTO departamento (nome) VALUES (%s) RETURNING *",
        [nome],
        _DUPLICATE_DEPARTAMENTO,
    )


# PUBLIC_INTERFACE
def update_departamento(id: int, nome: Optional[str]) -> Dict[str, Any]:
    """Rename a department."""
    if not nome:
        raise ValidationError("Nome é obrigatório para atualização.")
    return _update_or_404(
        DEPARTAMENTO, {"nome": nome}, id, "Departamento não encontrado", _DUPLICATE_DEPARTAMENTO
    )


# PUBLIC_INTERFACE
def delete_departamento(id: int) -> Dict[str, str]:
    """Delete a department."""
    _delete_or_404(DEPARTAMENTO, id, "Departamento não encontrado")
    logger.info("departamento_deleted", departamento_id=id)
    return {"mensagem": "Departamento deletado com sucesso"}


# =========================
# Empresas
# =========================

# PUBLIC_INTERFACE
def list_empresas(
    id: Optional[int] = None, nome: Optional[str] = None, cnpj: Optional[str] = None
) -> List[Dict[str, Any]]:
    """List companies filtered by exact id, name substring (case-insensitive) and exact CNPJ."""
    filters = filters_from(
        [
            ("id", id, Match.EXACT),
            ("nome", nome, Match.CONTAINS_CASE_INSENSITIVE),
            ("cnpj", cnpj, Match.EXACT),
        ]
    )
    query, params = build_filter_query(EMPRESA, filters, style=db.PARAMSTYLE)
    return db.fetch_all(query, params)


# PUBLIC_INTERFACE
def create_empresa(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Create a company. Every known column is inserted, absent ones as NULL."""
    if not fields.get("nome"):
        raise ValidationError("Nome é obrigatório.")
    unknown = [k for k in fields if k not in _EMPRESA_FIELDS]
    if unknown:
        raise ValidationError(f"Campo desconhecido: {unknown[0]}", details={"column": unknown[0]})

    columns = ", ".join(_EMPRESA_FIELDS)
    placeholders = ", ".join(["%s"] * len(_EMPRESA_FIELDS))
    row = _insert_returning(
        f"INSERT INTO empresa ({columns}) VALUES ({placeholders}) RETURNING id, {columns}",
        [fields.get(col) for col in _EMPRESA_FIELDS],
        _DUPLICATE_EMAIL,
    )
    logger.info("empresa_created", empresa_id=row.get("id"))
    return row


# PUBLIC_INTERFACE
def update_empresa(id: int, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply a partial update; only allow-listed columns are accepted."""
    return _update_or_404(EMPRESA, fields, id, "Empresa não encontrada", _DUPLICATE_EMAIL)


# PUBLIC_INTERFACE
def delete_empresa(id: int) -> Dict[str, str]:
    """Delete a company."""
    _delete_or_404(EMPRESA, id, "Empresa não encontrada")
    logger.info("empresa_deleted", empresa_id=id)
    return {"mensagem": "Empresa deletada com sucesso"}


# =========================
# Usuarios / login
# =========================

# PUBLIC_INTERFACE
def create_usuario(nome: str, email: str, senha: str) -> Dict[str, Any]:
    """Create an account. The returned row never carries the password hash."""
    row = _insert_returning(
        "INSERT INTO usuario (nome, email, senha) VALUES (%s, %s, %s) RETURNING id, nome, email",
        [nome, email, hash_password(senha)],
        _DUPLICATE_EMAIL,
    )
    logger.info("usuario_created", user_id=row.get("id"))
    return row


# PUBLIC_INTERFACE
def login(email: str, senha: str, tokens: TokenService) -> Dict[str, Any]:
    """
    Exchange email + password for a session token.

    Unknown email and wrong password raise the same InvalidCredentialsError,
    and both pay for one bcrypt verification.
    """
    usuario = db.fetch_one("SELECT id, nome, email, senha FROM usuario WHERE email = %s", [email])
    if usuario is None:
        dummy_verify()
        logger.info("login_failed")
        raise InvalidCredentialsError(_BAD_CREDENTIALS)
    if not verify_password(senha, usuario["senha"]):
        logger.info("login_failed", user_id=usuario["id"])
        raise InvalidCredentialsError(_BAD_CREDENTIALS)

    token = tokens.issue(usuario["id"], usuario["email"])
    logger.info("login_succeeded", user_id=usuario["id"])
    return {
        "token": token,
        "usuario": {"id": usuario["id"], "nome": usuario["nome"], "email": usuario["email"]},
    }
