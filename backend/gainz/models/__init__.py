from gainz.models.user import User
from gainz.models.token import TOKEN_TYPE_REFRESH, TOKEN_TYPE_RESET, Token

__all__ = [
    "User",
    "Token",
    "TOKEN_TYPE_REFRESH",
    "TOKEN_TYPE_RESET",
]
