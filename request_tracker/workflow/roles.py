from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from request_tracker.workflow.states import RequestKind, Role, parse_kind


class RoleBasis(str, Enum):
    DECLARED = "declared"
    ASSUMED_FROM_KIND = "assumed_from_kind"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class EffectiveRole:
    """Role the gate acts on, tagged with how it was obtained."""

    role: Role | None
    basis: RoleBasis
    raw_role: str = ""

    @property
    def is_assumed(self) -> bool:
        return self.basis == RoleBasis.ASSUMED_FROM_KIND

    def is_role(self, role: Role) -> bool:
        return self.role == role

    def to_dict(self) -> Dict[str, object]:
        return {
            "role": self.role.value if self.role else None,
            "basis": self.basis.value,
            "raw_role": self.raw_role,
        }


# Server role names plus the UI vocabulary used by the request views.
_DECLARED_ROLES: Dict[str, Role] = {
    "user": Role.REQUESTER,
    "requester": Role.REQUESTER,
    "direct_manager": Role.DIRECT_MANAGER,
    "accountant": Role.ACCOUNTANT,
    "final_manager": Role.FINAL_MANAGER,
    "admin": Role.ADMIN,
    "super_admin": Role.ADMIN,
    "sales": Role.SALES,
    "sales_rep": Role.SALES,
}

_BROAD_MANAGER_ROLES = {"manager"}


def _normalize_raw_role(raw_role: object) -> str:
    if isinstance(raw_role, Role):
        return raw_role.value
    return str(raw_role or "").strip().lower().replace("-", "_").replace(" ", "_")


def resolve_effective_role(raw_role: object, kind: RequestKind | str) -> EffectiveRole:
    """Total mapping from a raw role to the role the gate evaluates.

    A broad ``manager`` without a precise sub-role acts as Direct Manager on
    purchases and as Final Manager on projects. Anything unknown gets no role,
    never an elevated one.
    """
    normalized = _normalize_raw_role(raw_role)
    declared = _DECLARED_ROLES.get(normalized)
    if declared is not None:
        return EffectiveRole(role=declared, basis=RoleBasis.DECLARED, raw_role=normalized)

    if normalized in _BROAD_MANAGER_ROLES:
        request_kind = parse_kind(kind)
        assumed = Role.FINAL_MANAGER if request_kind == RequestKind.PROJECT else Role.DIRECT_MANAGER
        return EffectiveRole(role=assumed, basis=RoleBasis.ASSUMED_FROM_KIND, raw_role=normalized)

    return EffectiveRole(role=None, basis=RoleBasis.UNRECOGNIZED, raw_role=normalized)
