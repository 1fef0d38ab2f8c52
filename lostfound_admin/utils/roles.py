"""Admin role hierarchy (higher level → more permissions):
    super_admin (3) > moderator (2) > analyst (1)
"""

ANALYST = "analyst"
MODERATOR = "moderator"
SUPER_ADMIN = "super_admin"

ROLE_HIERARCHY: dict[str, int] = {
    SUPER_ADMIN: 3,
    MODERATOR: 2,
    ANALYST: 1,
}


def role_level(role: str) -> int:
    """Numeric rank of a role; unknown roles rank below every real one"""
    return ROLE_HIERARCHY.get(role, 0)


def has_role(role: str, required_role: str) -> bool:
    """True when ``role`` is at least as privileged as ``required_role``"""
    return role_level(role) >= role_level(required_role) > 0


def is_role(role: str, expected_role: str) -> bool:
    """Exact-match check for endpoints reserved to a single role"""
    return role == expected_role and role in ROLE_HIERARCHY
