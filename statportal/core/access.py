"""Role to category authorization for indicator data."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional

from structlog import get_logger

from statportal.database.models import Category
from statportal.exceptions import AuthorizationError

logger = get_logger()


class Role(str, Enum):
    """User roles known to the data core."""
    SUPERADMIN = "superadmin"
    ADMIN_DEMOGRAFI = "admin_demografi"
    ADMIN_EKONOMI = "admin_ekonomi"
    ADMIN_LINGKUNGAN = "admin_lingkungan"
    VIEWER = "viewer"


class Capability(str, Enum):
    """Actions a role may perform on a category's data."""
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VERIFY = "verify"
    IMPORT = "import"


@dataclass(frozen=True)
class RolePermissions:
    categories: FrozenSet[str]
    capabilities: FrozenSet[Capability]


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as seen by the data core."""
    user_id: str
    role: str


ALL_CATEGORIES = frozenset(c.value for c in Category)
ADMIN_CAPABILITIES = frozenset(Capability)
MUTATING_CAPABILITIES = frozenset({Capability.CREATE, Capability.UPDATE, Capability.DELETE})

ROLE_PERMISSIONS: Dict[str, RolePermissions] = {
    Role.SUPERADMIN.value: RolePermissions(ALL_CATEGORIES, ADMIN_CAPABILITIES),
    Role.ADMIN_DEMOGRAFI.value: RolePermissions(frozenset({Category.DEMOGRAFI.value}), ADMIN_CAPABILITIES),
    Role.ADMIN_EKONOMI.value: RolePermissions(frozenset({Category.EKONOMI.value}), ADMIN_CAPABILITIES),
    Role.ADMIN_LINGKUNGAN.value: RolePermissions(frozenset({Category.LINGKUNGAN.value}), ADMIN_CAPABILITIES),
    Role.VIEWER.value: RolePermissions(ALL_CATEGORIES, frozenset({Capability.READ})),
}

NO_PERMISSIONS = RolePermissions(frozenset(), frozenset())


class AccessGate:
    """Answer authorization questions from a role permission table."""

    def __init__(self, permissions: Optional[Mapping[str, RolePermissions]] = None):
        self.permissions = dict(permissions if permissions is not None else ROLE_PERMISSIONS)

    def permissions_for(self, role: str) -> RolePermissions:
        return self.permissions.get(role, NO_PERMISSIONS)

    def allows(self, role: str, capability: Capability, category: Optional[str] = None) -> bool:
        perms = self.permissions_for(role)
        if capability not in perms.capabilities:
            return False
        if category is None:
            return True
        return category in perms.categories

    def can_mutate(self, role: str, category: str) -> bool:
        perms = self.permissions_for(role)
        return MUTATING_CAPABILITIES <= perms.capabilities and category in perms.categories

    def can_verify(self, role: str, category: str) -> bool:
        return self.allows(role, Capability.VERIFY, category)

    def allowed_categories(self, role: str, capability: Capability = Capability.READ) -> FrozenSet[str]:
        perms = self.permissions_for(role)
        if capability not in perms.capabilities:
            return frozenset()
        return perms.categories

    def require(self, principal: Principal, capability: Capability, category: Optional[str] = None) -> None:
        """Raise AuthorizationError unless the principal may act on the category."""
        if not self.allows(principal.role, capability, category):
            logger.warning(
                "access_denied",
                user_id=principal.user_id,
                role=principal.role,
                capability=capability.value,
                category=category,
            )
            raise AuthorizationError(principal.role, capability.value, category)
