"""
users/mapping.py -- Field-by-field mapping between DTOs and the User entity.

input_to_user() is the only place a raw password is turned into a hash.
user_to_dto() copies the public fields and drops hashed_password.
"""

from __future__ import annotations

from collections.abc import Callable

from auth.models import User
from auth.tokens import hash_password
from users.dto import UserDto, UserInputDto


def input_to_user(input_dto: UserInputDto, hasher: Callable[[str], str] = hash_password) -> User:
    """Build an unsaved User from registration input.

    The username is lowercased so it can serve as a case-insensitive primary key.
    The email keeps the caller's spelling; its uniqueness is checked case-insensitively.
    """
    return User(
        username=input_dto.username.lower(),
        hashed_password=hasher(input_dto.password),
        email=input_dto.email,
    )


def user_to_dto(user: User) -> UserDto:
    return UserDto(
        username=user.username,
        email=user.email,
        authorities=user.authority_names(),
    )
