"""
users/service.py -- Account CRUD and authority assignment.

UserService owns every business rule around accounts:
  - username and email are unique, compared case-insensitively
  - every new account starts with the default authority (ROLE_USER)
  - the protected account can never be deleted
  - an authority name can only be removed while another user still holds it,
    so every authority in use stays held by at least one account

Dependencies are passed to the constructor; nothing here knows about HTTP.
Failures raise users.exceptions errors, which the API layer maps to responses.

Concurrency: each store call is its own transaction. The holder count in
remove_authority() is read separately from the delete, so two concurrent
removals of the last two holders can both pass the check.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError

from auth.models import Authority, User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password, password_too_long
from core.config import Settings, get_settings
from users.dto import UserDto, UserInputDto
from users.exceptions import BadRequest, InvalidInput, NotFound
from users.mapping import input_to_user, user_to_dto

logger = logging.getLogger("backendtemplate.users")


class UserService:
    """Usage:
    service = UserService(UserStore())
    dto = service.create_user(UserInputDto(username="bob", password="pw123", email="bob@x.com"))
    """

    def __init__(
        self,
        store: UserStore,
        settings: Settings | None = None,
        hasher: Callable[[str], str] = hash_password,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_users(self) -> list[UserDto]:
        dtos = [user_to_dto(u) for u in self.store.list_users()]
        if not dtos:
            raise NotFound("No users found")
        return sorted(dtos, key=lambda d: d.username)

    def get_user(self, username: str) -> UserDto:
        return user_to_dto(self._require_user(username))

    def filter_users(self, username: str | None = None, email: str | None = None) -> list[UserDto]:
        """Case-insensitive "contains" search on username and/or email.

        Both filters are optional and combine with AND. Raises NotFound when
        nothing matches.
        """
        dtos = [user_to_dto(u) for u in self.store.filter_users(username=username, email=email)]
        if not dtos:
            raise NotFound("No users found with the specified filters")
        return sorted(dtos, key=lambda d: d.username)

    def get_user_authorities(self, username: str) -> set[str]:
        return self._require_user(username).authority_names()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, input_dto: UserInputDto) -> UserDto:
        """Register a new account with the default authority.

        Raises InvalidInput naming every conflicting field (username, email,
        or both) when either is already taken, ignoring case.
        """
        username = input_dto.username.lower()
        email = input_dto.email.lower()
        username_exists = self.store.exists_by_username(username)
        email_exists = self.store.exists_by_email(email)

        if username_exists and email_exists:
            raise InvalidInput(f"Username: {username} and email: {email} are already taken")
        if username_exists:
            raise InvalidInput(f"Username: {username} is already taken")
        if email_exists:
            raise InvalidInput(f"Email: {email} is already taken")

        _check_password(input_dto.password)
        user = input_to_user(input_dto, self.hasher)
        user.add_authority(Authority(user.username, self.settings.default_authority))
        try:
            self.store.create_user(user)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same username.
            raise InvalidInput(f"Username: {username} is already taken") from exc

        logger.info("Created user %s", user.username)
        return user_to_dto(user)

    def delete_user(self, username: str) -> str:
        user = self._require_user(username)
        if user.username.lower() == self.settings.protected_username.lower():
            logger.warning("Refused to delete protected user %s", user.username)
            raise BadRequest(f"Can't remove user: {user.username}")

        self.store.delete_user(user.username)
        logger.info("Deleted user %s", user.username)
        return f"User: {username} is deleted"

    def assign_authority(self, username: str, authority: str) -> UserDto:
        """Grant an authority to a user and return the updated DTO.

        The name is normalised to upper case. Raises InvalidInput if the user
        already holds it (compared case-insensitively).
        """
        user = self._require_user(username)
        name = _normalise_authority(authority)
        if user.has_authority(name):
            raise InvalidInput(f"user: {user.username} already has authority {name}")

        granted = Authority(user.username, name)
        try:
            self.store.add_authority(granted)
        except IntegrityError as exc:
            raise InvalidInput(f"user: {user.username} already has authority {name}") from exc
        user.add_authority(granted)

        logger.info("Assigned %s to %s", name, user.username)
        return user_to_dto(user)

    def remove_authority(self, username: str, authority: str) -> str:
        """Revoke an authority from a user.

        Raises InvalidInput if the user does not hold it, and BadRequest if the
        user is its only holder across all accounts.
        """
        user = self._require_user(username)
        wanted = authority.lower()
        to_remove = next((a for a in user.authorities if a.authority.lower() == wanted), None)
        if to_remove is None:
            raise InvalidInput(f"user: {user.username} does not have authority {authority.upper()}")

        holders = self.store.count_authority_holders(authority)
        if holders <= 1:
            logger.warning("Refused to remove %s from %s: last holder", to_remove.authority, user.username)
            raise BadRequest(f"At least 1 user must have the authority: {authority.upper()}")

        self.store.remove_authority(to_remove)
        user.remove_authority(to_remove)
        logger.info("Removed %s from %s", to_remove.authority, user.username)
        return f"Authority {authority.upper()} is removed from user: {user.username}"

    def ensure_admin(self, username: str, password: str, email: str, authority: str | None = None) -> bool:
        """Seed the first account with the default and admin authorities.

        authority defaults to the configured admin authority. Only acts on an
        empty store. Returns True if the account was created.
        """
        if self.store.has_users():
            return False
        _check_password(password)
        admin_authority = _normalise_authority(authority or self.settings.admin_authority)
        user = input_to_user(UserInputDto(username=username, password=password, email=email), self.hasher)
        user.add_authority(Authority(user.username, self.settings.default_authority))
        user.add_authority(Authority(user.username, admin_authority))
        self.store.create_user(user)
        logger.info("Bootstrapped admin user %s", user.username)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_user(self, username: str) -> User:
        user = self.store.get_by_username(username)
        if user is None:
            raise NotFound(f"Cannot find user {username}")
        return user


def _check_password(password: str) -> None:
    if password_too_long(password):
        raise InvalidInput(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def _normalise_authority(authority: str) -> str:
    name = authority.strip().upper()
    if not name:
        raise InvalidInput("Authority name must not be empty")
    return name
