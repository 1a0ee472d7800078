from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Coroutine, Dict, Optional

from fastapi import Depends, Request, Response
from fastapi.routing import APIRoute
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from src.cadastro_api.config import Settings, get_settings
from src.cadastro_api.exceptions import TokenInvalidError, UnauthenticatedError
from src.cadastro_api.logging import get_logger
from src.cadastro_api.schemas import TokenClaims

logger = get_logger(__name__)

BCRYPT_ROUNDS = 12
TOKEN_TTL = timedelta(hours=2)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
_bearer = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password (salted bcrypt, 12 rounds)."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    return _pwd_context.verify(password, password_hash)


# PUBLIC_INTERFACE
def dummy_verify() -> None:
    """Spend the same time as a real verify when there is no stored hash."""
    _pwd_context.dummy_verify()


class TokenService:
    """Issues and verifies stateless HS256 session tokens."""

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm

    def issue(self, user_id: int, email: str, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "id": user_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + TOKEN_TTL,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode ``token``; raise TokenInvalidError if it is unusable for any reason."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise TokenInvalidError("Token inválido ou expirado") from exc

        user_id = payload.get("id")
        email = payload.get("email")
        if user_id is None or not email or "iat" not in payload or "exp" not in payload:
            raise TokenInvalidError("Token inválido ou expirado")

        try:
            claims = TokenClaims(
                user_id=user_id,
                email=email,
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (TypeError, ValueError) as exc:
            raise TokenInvalidError("Token inválido ou expirado") from exc

        # jose still accepts a token in the second where now == exp.
        if claims.expires_at <= datetime.now(timezone.utc):
            raise TokenInvalidError("Token inválido ou expirado")
        return claims


# PUBLIC_INTERFACE
def get_token_service(request: Request) -> TokenService:
    """Return the app-wide TokenService, building it on first use."""
    service = getattr(request.app.state, "token_service", None)
    if service is None:
        service = TokenService(get_settings())
        request.app.state.token_service = service
    return service


def _authenticate(request: Request, tokens: TokenService, token: Optional[str]) -> TokenClaims:
    if not token:
        logger.info("token_missing", method=request.method, path=request.url.path)
        raise UnauthenticatedError("Token não fornecido")

    try:
        claims = tokens.verify(token)
    except TokenInvalidError:
        logger.info("token_rejected", method=request.method, path=request.url.path)
        raise

    request.state.usuario = claims
    return claims


def _bearer_token(request: Request) -> Optional[str]:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class BearerGatedRoute(APIRoute):
    """
    Route that authenticates before the request body is read.

    FastAPI decodes JSON ahead of dependencies, so a malformed body must not
    be reported before a missing (401) or bad (403) token.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def gated_handler(request: Request) -> Response:
            _authenticate(request, get_token_service(request), _bearer_token(request))
            return await handler(request)

        return gated_handler


# PUBLIC_INTERFACE
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """
    Gate a route behind a bearer token.

    No token: 401. Token present but unusable: 403. Otherwise the decoded
    claims are stored on ``request.state.usuario`` and returned. Claims
    already attached by BearerGatedRoute are reused.
    """
    claims = getattr(request.state, "usuario", None)
    if isinstance(claims, TokenClaims):
        return claims
    return _authenticate(request, tokens, credentials.credentials if credentials else None)
