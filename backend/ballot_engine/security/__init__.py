from __future__ import annotations

from typing import Callable, Dict, FrozenSet, Optional, Set

from ballot_engine import events
from ballot_engine.exceptions import AuthorizationError, StateConflictError, ValidationError
from ballot_engine.security.logger import ballot_logger as logger

Emit = Callable[[str, Dict[str, object]], None]


def normalize_identity(identity: str) -> str:
    if not isinstance(identity, str):
        raise ValidationError("invalid_identity", "identity must be a string")
    value = identity.strip().lower()
    if not value:
        raise ValidationError("invalid_identity", "identity must not be empty")
    return value


class AdminAuthority:
    """Owner plus admin set gating every mutating ballot operation.

    The owner is fixed at construction and is always an admin; only the owner
    may add or remove admins and the owner itself can never be removed.
    """

    def __init__(self, owner: str, emit: Optional[Emit] = None) -> None:
        self._owner = normalize_identity(owner)
        self._admins: Set[str] = {self._owner}
        self._emit = emit

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def admins(self) -> FrozenSet[str]:
        return frozenset(self._admins)

    def is_admin(self, identity: str) -> bool:
        try:
            who = normalize_identity(identity)
        except ValidationError:
            return False
        return who == self._owner or who in self._admins

    def require_admin(self, caller: str) -> str:
        who = normalize_identity(caller)
        if not self.is_admin(who):
            raise AuthorizationError("not_admin", "Only admin can call this function")
        return who

    def _require_owner(self, caller: str) -> str:
        who = normalize_identity(caller)
        if who != self._owner:
            raise AuthorizationError("not_owner", "Only owner can call this function")
        return who

    def add_admin(self, caller: str, target: str) -> None:
        self._require_owner(caller)
        admin = normalize_identity(target)
        if admin in self._admins:
            raise StateConflictError("already_admin", "Address is already an admin")
        self._admins.add(admin)
        logger.info("admin added: %s", admin)
        if self._emit is not None:
            self._emit(events.ADMIN_ADDED, {"admin": admin})

    def remove_admin(self, caller: str, target: str) -> None:
        self._require_owner(caller)
        admin = normalize_identity(target)
        if admin == self._owner:
            raise StateConflictError("cannot_remove_owner", "Cannot remove owner as admin")
        if admin not in self._admins:
            raise StateConflictError("not_admin", "Address is not an admin")
        self._admins.discard(admin)
        logger.info("admin removed: %s", admin)
        if self._emit is not None:
            self._emit(events.ADMIN_REMOVED, {"admin": admin})


__all__ = ["AdminAuthority", "normalize_identity"]
