# storefront/domain/identity.py
from dataclasses import dataclass


@dataclass(frozen=True)
class UserIdentity:
    id: int
    is_admin: bool = False
