# slotbook/services/member_directory.py
"""Member lookup collaborator. Membership itself is owned elsewhere."""

import threading
from typing import Iterable, Optional, Protocol


class MemberDirectory(Protocol):
    def exists(self, member_id: str) -> bool:
        ...


class StaticMemberDirectory:
    """
    Set-backed directory.

    With ``allow_any=True`` every non-empty id is accepted, which is what a
    deployment without its own membership store uses.
    """

    def __init__(self, member_ids: Optional[Iterable[str]] = None, *, allow_any: bool = False) -> None:
        self._members = set(member_ids or ())
        self._allow_any = allow_any
        self._lock = threading.Lock()

    def exists(self, member_id: str) -> bool:
        if not member_id:
            return False
        if self._allow_any:
            return True
        with self._lock:
            return member_id in self._members

    def add(self, member_id: str) -> None:
        with self._lock:
            self._members.add(member_id)

    def remove(self, member_id: str) -> None:
        with self._lock:
            self._members.discard(member_id)
