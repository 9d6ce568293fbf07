"""
users/dto.py -- Transfer objects crossing the user service boundary.

UserInputDto carries the raw password and never leaves the service; UserDto is
the only shape handed back to callers and has no password field at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class UserInputDto:
    username: str
    password: str
    email: str


@dataclass
class UserDto:
    username: str
    email: str
    authorities: set[str] = field(default_factory=set)
