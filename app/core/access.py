"""
Dashboard authorization.

Routers depend on ``AccessGate`` only; the default gate knows the listing owner
and nobody else. Deployments with page sharing / role delegation override the
``get_access_gate`` dependency with their own gate.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Access:
    can_view: bool
    can_edit: bool
    can_manage_attendees: bool
    can_view_financials: bool
    role: str


OWNER_ACCESS = Access(
    can_view=True,
    can_edit=True,
    can_manage_attendees=True,
    can_view_financials=True,
    role="owner",
)

NO_ACCESS = Access(
    can_view=False,
    can_edit=False,
    can_manage_attendees=False,
    can_view_financials=False,
    role="unauthorized",
)


class AccessGate(ABC):
    @abstractmethod
    def check_access(self, listing, user_id: Optional[str]) -> Access:
        ...


class OwnerAccessGate(AccessGate):
    """The listing's creator gets full access; everyone else none."""

    def check_access(self, listing, user_id: Optional[str]) -> Access:
        if user_id and listing.created_by and str(listing.created_by) == str(user_id):
            return OWNER_ACCESS
        return NO_ACCESS
