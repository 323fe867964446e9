from enum import Enum

from pydantic import BaseModel


class ScopesEnum(str, Enum):
    USER = "user"
    ADMIN = "admin"


class TokenData(BaseModel):
    username: str | None = None
    scopes: list[str] = []
