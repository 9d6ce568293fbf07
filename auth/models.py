"""
auth/models.py -- Domain dataclasses for credential entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and the user service do the work.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Authority:
    """A named permission bound to exactly one user.

    Identity is the (username, authority) pair, matching the composite primary
    key of the authorities table. Authorities have no lifecycle of their own:
    they are written and removed only through the owning User.
    """

    username: str
    authority: str  # e.g. "ROLE_USER", "ROLE_ADMIN"


@dataclass
class User:
    """A stored account.

    username is the primary identifier and is stored lowercased, so two
    accounts can never differ only by case. hashed_password is a bcrypt hash;
    the plaintext never reaches this object.
    """

    username: str
    hashed_password: str
    email: str
    authorities: set[Authority] = field(default_factory=set)
    created_at: str | None = None

    def add_authority(self, authority: Authority) -> None:
        self.authorities.add(authority)

    def remove_authority(self, authority: Authority) -> None:
        self.authorities.discard(authority)

    def authority_names(self) -> set[str]:
        return {a.authority for a in self.authorities}

    def has_authority(self, name: str) -> bool:
        """Case-insensitive membership test on authority names."""
        wanted = name.lower()
        return any(a.authority.lower() == wanted for a in self.authorities)
