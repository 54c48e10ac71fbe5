import logging

import httpx
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

import config
from errors import AuthenticationError

logger = logging.getLogger("shortlinks.auth")

REQUIRED_FIELDS = ("email", "name", "rollNo", "accessCode", "clientID", "clientSecret")

# Tokens are issued by the external provider; this service never verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


class AuthServiceError(Exception):
    """The authentication provider could not be reached or answered garbage."""


class AuthClient:
    def __init__(self, url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def authenticate(self, credentials: dict) -> tuple[int, dict]:
        """Forward credentials to the provider, return its status and JSON body."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=credentials)
                data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise AuthServiceError(str(exc)) from exc
        if not isinstance(data, dict):
            raise AuthServiceError(f"Unexpected response from authentication service: {data!r}")
        return response.status_code, data


def missing_fields(credentials: dict) -> list[str]:
    return [key for key in REQUIRED_FIELDS if not credentials.get(key)]


def is_bearer(data: dict) -> bool:
    return data.get("token_type") == "Bearer"


def get_auth_client(request: Request) -> AuthClient:
    return request.app.state.auth_client


def user_from_token(token: str | None) -> str | None:
    """Best-effort identity for log lines, read from unverified JWT claims."""
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    return claims.get("sub") or claims.get("email")


def get_current_user(token: str | None = Depends(oauth2_scheme)) -> str | None:
    if token is None and config.REQUIRE_AUTH:
        raise AuthenticationError("Not authenticated")
    return user_from_token(token)
