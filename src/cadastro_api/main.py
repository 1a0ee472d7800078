import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.cadastro_api import db, services
from src.cadastro_api.auth_utils import BearerGatedRoute, TokenService, get_current_user, get_token_service
from src.cadastro_api.config import get_settings
from src.cadastro_api.exceptions import (
    CadastroError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    TokenInvalidError,
    UnauthenticatedError,
    ValidationError,
)
from src.cadastro_api.logging import get_logger, setup_logging
from src.cadastro_api.schemas import (
    APIMessage,
    Departamento,
    DepartamentoCreate,
    DepartamentoUpdate,
    Empresa,
    EmpresaCreate,
    EmpresaUpdate,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    TokenClaims,
    Usuario,
    UsuarioCreate,
)

logger = get_logger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Departamentos", "description": "Department CRUD."},
    {"name": "Empresas", "description": "Company CRUD (bearer token required)."},
    {"name": "Usuarios", "description": "Account creation and login."},
]

app = FastAPI(
    title="API Departamentos e Usuários",
    description=(
        "CRUD for departamentos and empresas plus user accounts.\n\n"
        "Auth: Use the `Authorization: Bearer <token>` header returned by `/login` for protected routes."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes registered here check the bearer token before the body is parsed.
protected = APIRouter(route_class=BearerGatedRoute)


@app.middleware("http")
async def _bind_request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.debug("request_completed", status_code=response.status_code)
    return response


_ERROR_STATUS = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (InvalidCredentialsError, status.HTTP_401_UNAUTHORIZED),
    (TokenInvalidError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
]

_ERROR_RESPONSES: Dict[Any, Dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}
_AUTH_RESPONSES: Dict[Any, Dict[str, Any]] = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
}


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@app.exception_handler(CadastroError)
async def _cadastro_error_handler(request: Request, exc: CadastroError) -> JSONResponse:
    for kind, status_code in _ERROR_STATUS:
        if isinstance(exc, kind):
            headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
            return _error(status_code, exc.message, headers)

    logger.error(
        "unhandled_error",
        error_type=type(exc).__name__,
        method=request.method,
        path=request.url.path,
        details=exc.details,
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erro interno do servidor")


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Requisição inválida"))
    return _error(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", method=request.method, path=request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erro interno do servidor")


@app.on_event("startup")
def _startup() -> None:
    settings = get_settings()
    setup_logging(settings)
    app.state.token_service = TokenService(settings)
    db.init_db_pool()


@app.on_event("shutdown")
def _shutdown() -> None:
    db.close_db_pool()


@app.get("/", tags=["Health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Health check endpoint used by clients to verify backend availability."""
    return {"message": "Healthy"}


# =========================
# Departamentos
# =========================

@app.get("/departamentos", response_model=List[Departamento], tags=["Departamentos"], summary="List departments")
def list_departamentos(
    id: Optional[int] = Query(None, description="ID do departamento"),
    nome: Optional[str] = Query(None, description="Parte do nome (case-insensitive)"),
) -> List[Dict[str, Any]]:
    """List departments with optional id/name filters."""
    return services.list_departamentos(id=id, nome=nome)


@app.post(
    "/departamentos",
    response_model=Departamento,
    status_code=status.HTTP_201_CREATED,
    tags=["Departamentos"],
    summary="Create department",
    responses=_ERROR_RESPONSES,
)
def create_departamento(payload: DepartamentoCreate) -> Dict[str, Any]:
    """Create a department."""
    return services.create_departamento(payload.nome)


@protected.put(
    "/departamentos/{departamento_id}",
    response_model=Departamento,
    tags=["Departamentos"],
    summary="Update department",
    responses={**_ERROR_RESPONSES, **_AUTH_RESPONSES},
)
def update_departamento(
    departamento_id: int,
    payload: DepartamentoUpdate,
    _: TokenClaims = Depends(get_current_user),
) -> Dict[str, Any]:
    """Rename a department (bearer token required)."""
    return services.update_departamento(departamento_id, payload.nome)


@app.delete(
    "/departamentos/{departamento_id}",
    response_model=APIMessage,
    tags=["Departamentos"],
    summary="Delete department",
    responses=_ERROR_RESPONSES,
)
def delete_departamento(departamento_id: int) -> Dict[str, str]:
    """Delete a department."""
    return services.delete_departamento(departamento_id)


# =========================
# Empresas
# =========================

@protected.get(
    "/empresas",
    response_model=List[Empresa],
    tags=["Empresas"],
    summary="List companies",
    responses=_AUTH_RESPONSES,
)
def list_empresas(
    id: Optional[int] = Query(None, description="ID da empresa"),
    nome: Optional[str] = Query(None, description="Parte do nome (case-insensitive)"),
    cnpj: Optional[str] = Query(None, description="CNPJ exato"),
    _: TokenClaims = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    """List companies with optional id/name/CNPJ filters."""
    return services.list_empresas(id=id, nome=nome, cnpj=cnpj)


@protected.post(
    "/empresas",
    response_model=Empresa,
    status_code=status.HTTP_201_CREATED,
    tags=["Empresas"],
    summary="Create company",
    responses={**_ERROR_RESPONSES, **_AUTH_RESPONSES, 409: {"model": ErrorResponse}},
)
def create_empresa(payload: EmpresaCreate, _: TokenClaims = Depends(get_current_user)) -> Dict[str, Any]:
    """Create a company."""
    return services.create_empresa(payload.model_dump())


@protected.put(
    "/empresas/{empresa_id}",
    response_model=Empresa,
    tags=["Empresas"],
    summary="Update company",
    responses={**_ERROR_RESPONSES, **_AUTH_RESPONSES},
)
def update_empresa(
    empresa_id: int,
    payload: EmpresaUpdate,
    _: TokenClaims = Depends(get_current_user),
) -> Dict[str, Any]:
    """Partially update a company; only the fields sent are changed."""
    return services.update_empresa(empresa_id, payload.model_dump(exclude_unset=True))


@protected.delete(
    "/empresas/{empresa_id}",
    response_model=APIMessage,
    tags=["Empresas"],
    summary="Delete company",
    responses={**_ERROR_RESPONSES, **_AUTH_RESPONSES},
)
def delete_empresa(empresa_id: int, _: TokenClaims = Depends(get_current_user)) -> Dict[str, str]:
    """Delete a company."""
    return services.delete_empresa(empresa_id)


# =========================
# Usuarios / Auth
# =========================

@app.post(
    "/usuarios",
    response_model=Usuario,
    status_code=status.HTTP_201_CREATED,
    tags=["Usuarios"],
    summary="Create account",
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def create_usuario(payload: UsuarioCreate) -> Dict[str, Any]:
    """Create a user account. The password is stored only as a bcrypt hash."""
    return services.create_usuario(payload.nome, payload.email, payload.senha)


@app.post(
    "/login",
    response_model=LoginResponse,
    tags=["Usuarios"],
    summary="Login",
    responses={401: {"model": ErrorResponse}},
)
def login(payload: LoginRequest, tokens: TokenService = Depends(get_token_service)) -> Dict[str, Any]:
    """Authenticate and return a bearer token valid for 2 hours."""
    return services.login(payload.email, payload.senha, tokens)


app.include_router(protected)
