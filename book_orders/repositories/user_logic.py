import os
from typing import Annotated

import jwt
from dotenv import load_dotenv
from fastapi import (
    Depends,
    HTTPException,
    status,
    Security,
)
from fastapi.security import OAuth2PasswordBearer, SecurityScopes
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from book_orders.db.db_connection import get_async_db
from book_orders.models.app_models import User
from book_orders.schemas import user_schemas

load_dotenv()

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/user/sign-in",
    scopes={
        user_schemas.ScopesEnum.USER.value: "Place orders and list your own orders",
        user_schemas.ScopesEnum.ADMIN.value: "List every order",
    },
)


async def get_current_user(
    security_scopes: SecurityScopes,
    token: Annotated[str, Depends(oauth2_scheme)],
    async_session: AsyncSession = Depends(get_async_db),
) -> User:
    """
    Retrieve and validate the currently authenticated user using the provided JWT token.

    - Decodes the token and validates its signature and expiration.
    - Extracts the username (`sub`) and scopes from the payload.
    - Fetches the user from the database by name.
    - Ensures the token carries every scope the route asks for.

    Raises:
        HTTPException 401: If the token is invalid or expired, the user does
        not exist, or a required scope is missing.
    """

    if security_scopes.scopes:
        authenticate_value = f'Bearer scope="{security_scopes.scope_str}"'
    else:
        authenticate_value = "Bearer"
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": authenticate_value},
    )
    try:
        payload = jwt.decode(
            token, os.getenv("SECRET"), algorithms=[os.getenv("ALGORITHM")]
        )
        username = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = user_schemas.TokenData(
            scopes=payload.get("scopes", []), username=username
        )
    except (InvalidTokenError, ValidationError):
        raise credentials_exception
    user_from_db = (
        await async_session.execute(
            select(User).where(User.name == token_data.username)
        )
    ).scalar_one_or_none()
    if user_from_db is None:
        raise credentials_exception
    for scope in security_scopes.scopes:
        if scope not in token_data.scopes:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not enough permissions",
                headers={"WWW-Authenticate": authenticate_value},
            )
    return user_from_db


async def get_current_active_user(
    current_user: Annotated[User, Security(get_current_user)],
) -> User:
    """
    Ensures the currently authenticated user is active.

    Raises:
        HTTPException 400: If the user is not active.
    """

    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user
