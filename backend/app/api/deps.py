"""Shared API dependencies."""
from datetime import datetime
import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.services.deadlines import utc_now
from app.services.email_transport import EmailTransport, SmtpEmailTransport

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = [
    "get_current_user",
    "get_db",
    "get_email_transport",
    "get_now",
    "verify_cron_secret",
]


def get_now() -> datetime:
    """Evaluation instant for the request."""
    return utc_now()


def get_email_transport() -> EmailTransport:
    """Outbound transport built from settings."""
    return SmtpEmailTransport(get_settings())


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the session token issued by the identity provider.

    The user row is created on first sight and its email kept in sync with
    the token's claim.
    """
    settings = get_settings()
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        raise unauthorized

    user_id: str | None = payload.get("sub")
    email: str | None = payload.get("email")
    if not user_id:
        raise unauthorized

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        if not email:
            raise unauthorized
        user = User(id=user_id, email=email.strip().lower())
        db.add(user)
        db.commit()
        db.refresh(user)
    elif email and user.email != email.strip().lower():
        user.email = email.strip().lower()
        db.commit()

    return user


def verify_cron_secret(request: Request) -> None:
    """Require the scheduler's bearer secret when one is configured."""
    secret = get_settings().cron_secret
    if not secret:
        return

    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )
