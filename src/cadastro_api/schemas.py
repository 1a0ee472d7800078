from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.networks import validate_email


class APIMessage(BaseModel):
    mensagem: str = Field(..., description="Human readable confirmation")


class ErrorResponse(BaseModel):
    error: str


# ----- Departamentos -----


class Departamento(BaseModel):
    id: int
    nome: Optional[str] = None


class DepartamentoCreate(BaseModel):
    nome: str = Field(..., min_length=1, description="Nome do departamento")


class DepartamentoUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    nome: Optional[str] = Field(None, description="Novo nome do departamento")


# ----- Empresas -----


class EmpresaFields(BaseModel):
    email: Optional[str] = None
    cnpj: Optional[str] = None
    telefone1: Optional[str] = None
    telefone2: Optional[str] = None
    celular1: Optional[str] = None
    celular2: Optional[str] = None
    cep: Optional[str] = None
    logradouro: Optional[str] = None
    numero: Optional[str] = None
    complemento: Optional[str] = None
    bairro: Optional[str] = None
    cidade: Optional[str] = None
    uf: Optional[str] = None


class Empresa(EmpresaFields):
    id: int
    nome: Optional[str] = None


class EmpresaCreate(EmpresaFields):
    nome: str = Field(..., min_length=1)
    uf: Optional[str] = Field(None, max_length=2)


class EmpresaUpdate(EmpresaFields):
    """Partial update. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    nome: Optional[str] = None
    uf: Optional[str] = Field(None, max_length=2)


# ----- Usuários / auth -----


class Usuario(BaseModel):
    id: int
    nome: Optional[str] = None
    email: str


class UsuarioCreate(BaseModel):
    nome: str = Field(..., min_length=1, description="Nome completo")
    email: str = Field(..., description="Email, único por usuário; gravado exatamente como enviado")
    senha: str = Field(..., min_length=1, description="Senha em texto puro; só o hash é gravado")

    @field_validator("email")
    @classmethod
    def _email_well_formed(cls, value: str) -> str:
        # Stored verbatim; login compares emails exactly.
        validate_email(value)
        return value


class LoginRequest(BaseModel):
    email: str = Field(..., description="Email do usuário")
    senha: str = Field(..., description="Senha")


class LoginResponse(BaseModel):
    token: str = Field(..., description="JWT bearer token, valid for 2 hours")
    usuario: Usuario


class TokenClaims(BaseModel):
    user_id: int
    email: str
    issued_at: datetime
    expires_at: datetime
