"""Persistence for identities and refresh generations.

Learn: The stores never open, commit or roll back a transaction. Every
method takes the caller's AsyncSession (already inside ``session.begin()``)
so the session service can group several store calls into one atomic unit.
"""

from jwtauth.storage.refresh import RefreshStore
from jwtauth.storage.users import UserStore, UserWithGeneration

__all__ = ["RefreshStore", "UserStore", "UserWithGeneration"]
