# app/api/deps.py
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.schemas.token import TokenPayload


# This tells FastAPI where to look for the token.
# The `tokenUrl` doesn't have to be a real endpoint in this service,
# it's just for the OpenAPI documentation.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")
# Optional version that doesn't raise an error when token is missing
oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def _decode_token(token: str) -> TokenPayload:
    try:
        # Decode the token using the secret key
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        # Validate the payload against our schema
        return TokenPayload(**payload)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise AuthenticationError()


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    return _decode_token(token)


def get_current_user_optional(
    token: str | None = Depends(oauth2_scheme_optional),
) -> TokenPayload | None:
    """
    Anonymous callers get None. A token that is present but malformed or
    expired is still rejected with 401 rather than downgraded to anonymous.
    """
    if token is None:
        return None
    return _decode_token(token)
