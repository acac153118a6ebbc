from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.core.security import decode_token
from app.db.repository import ItemRepository
from app.rules.approval_rules import RuleBook, get_rule_book
from app.rules.types import Actor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=True)


async def get_current_actor(
    token: Annotated[str, Depends(oauth2_scheme)],
) -> Actor:
    """Read the actor (name + role) from the identity provider's JWT.

    The engine only authorizes by role; it never looks users up.
    """
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise credentials_exc
        name: str | None = payload.get("sub")
        role: str | None = payload.get("role")
        if not name or not role:
            raise credentials_exc
    except JWTError:
        raise credentials_exc
    return Actor(name=name, role=role)


def get_repository() -> ItemRepository:
    """Item repository for request handlers (overridden in tests)."""
    from app.db.session import SessionLocal
    from app.db.sql_repository import SqlItemRepository

    return SqlItemRepository(SessionLocal)


def get_rules() -> RuleBook:
    return get_rule_book()
