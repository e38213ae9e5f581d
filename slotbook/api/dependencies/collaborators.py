# slotbook/api/dependencies/collaborators.py
"""
External collaborators: clock, member directory and payment provider.

Each is a process-wide singleton; tests replace them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from ...core.clock import Clock, SystemClock
from ...core.config import settings
from ...services.member_directory import MemberDirectory, StaticMemberDirectory
from ...services.payment_provider import PaymentProvider, build_payment_provider


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return SystemClock(settings.timezone)


@lru_cache(maxsize=1)
def get_member_directory() -> MemberDirectory:
    """Membership is owned upstream; every authenticated id is accepted."""
    return StaticMemberDirectory(allow_any=True)


@lru_cache(maxsize=1)
def get_payment_provider() -> PaymentProvider:
    return build_payment_provider(settings)
