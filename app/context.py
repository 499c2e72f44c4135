"""
Request-scoped context passed explicitly through the check-in call chain
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, FrozenSet

ROLE_STAFF = "staff"
ROLE_ADMIN = "admin"

STAFF_CAPABILITIES = (
    "can_view_members",
    "can_manage_members",
    "can_access_ledger",
    "can_access_payments",
    "can_access_analytics",
    "can_change_settings",
)
ADMIN_CAPABILITY = "admin"


@dataclass(frozen=True)
class AuthContext:
    role: str
    user_id: str
    staff_id: Optional[int] = None
    tenant_id: Optional[int] = None
    # None means unrestricted (super admin)
    branch_ids: Optional[List[int]] = None
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    is_super_admin: bool = False
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role == ROLE_STAFF

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def can_access_branch(self, branch_id: Optional[int]) -> bool:
        if branch_id is None or self.branch_ids is None:
            return True
        return branch_id in self.branch_ids


@dataclass
class RequestContext:
    """Everything a check-in handler needs, carried explicitly."""

    conn: object
    branch_id: Optional[int] = None
    body: dict = field(default_factory=dict)
    params: dict = field(default_factory=dict)
    authorization: Optional[str] = None
    auth: Optional[AuthContext] = None
    now: datetime = field(default_factory=datetime.now)
