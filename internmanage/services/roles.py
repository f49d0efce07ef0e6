"""Role table for project rosters.

Every roster decision goes through ``ROLE_RULES`` so that adding a new role
kind means adding one entry here rather than touching each transition.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from internmanage.models import RoleKind, UserType


@dataclass(frozen=True)
class RoleRule:
    user_type: UserType
    label: str
    # Role the same user may not hold on the same project at the same time
    excludes: Optional[RoleKind] = None
    # Whether holding the role on one project blocks holding it on any other
    platform_unique: bool = False


ROLE_RULES: Dict[RoleKind, RoleRule] = {
    RoleKind.MENTOR: RoleRule(
        user_type=UserType.DEVELOPER,
        label="Mentor",
        excludes=RoleKind.PANELIST,
        platform_unique=True,
    ),
    RoleKind.INTERN: RoleRule(user_type=UserType.INTERN, label="Intern"),
    RoleKind.PANELIST: RoleRule(
        user_type=UserType.DEVELOPER,
        label="Panelist",
        excludes=RoleKind.MENTOR,
    ),
}


def rule_for(role: RoleKind) -> RoleRule:
    return ROLE_RULES[role]


def role_label(role: RoleKind) -> str:
    return ROLE_RULES[role].label
