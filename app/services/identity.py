"""
Identity Resolver - who is scanning, and which branches may they act on
"""
import logging
from typing import Optional

from app.context import (
    AuthContext,
    ROLE_STAFF,
    ROLE_ADMIN,
    STAFF_CAPABILITIES,
    ADMIN_CAPABILITY,
)
from app.errors import NoProfile
from app.middleware import extract_bearer_token, validate_token
from app.utils.helpers import normalize_phone

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("admin", "tenant_admin", "super_admin")


def resolve_credential(conn, authorization: Optional[str]) -> AuthContext:
    """
    Resolve a bearer credential to exactly one trusted role.

    Staff is checked first; only when no active staff record is linked to
    the credential are admin roles consulted.

    Raises:
        Unauthenticated: header missing or token invalid
        NoProfile: token valid but matches neither staff nor admin
    """
    token = extract_bearer_token(authorization)
    user_id = validate_token(token)

    cursor = conn.cursor(dictionary=True)
    try:
        staff = _find_staff(cursor, user_id)
        if staff:
            return staff

        admin = _find_admin(cursor, user_id)
        if admin:
            return admin
    finally:
        cursor.close()

    logger.info(f"Credential {user_id} has no staff or admin profile")
    raise NoProfile("No member or staff profile found for this user", "NO_PROFILE")


def _find_staff(cursor, user_id: str) -> Optional[AuthContext]:
    cursor.execute(
        """
        SELECT id, full_name, phone
        FROM staff
        WHERE auth_user_id = %s AND is_active = 1
        LIMIT 1
        """,
        (user_id,),
    )
    staff = cursor.fetchone()
    if not staff:
        return None

    cursor.execute(
        """
        SELECT branch_id
        FROM staff_branch_assignments
        WHERE staff_id = %s
        ORDER BY is_primary DESC, branch_id ASC
        """,
        (staff["id"],),
    )
    branch_ids = [row["branch_id"] for row in cursor.fetchall()]

    columns = ", ".join(STAFF_CAPABILITIES)
    cursor.execute(
        f"SELECT {columns} FROM staff_permissions WHERE staff_id = %s",
        (staff["id"],),
    )
    permissions = cursor.fetchone() or {}
    capabilities = frozenset(name for name in STAFF_CAPABILITIES if permissions.get(name))

    return AuthContext(
        role=ROLE_STAFF,
        user_id=user_id,
        staff_id=staff["id"],
        branch_ids=branch_ids,
        capabilities=capabilities,
        name=staff["full_name"],
        phone=staff["phone"],
    )


def _find_admin(cursor, user_id: str) -> Optional[AuthContext]:
    placeholders = ", ".join(["%s"] * len(ADMIN_ROLES))
    cursor.execute(
        f"SELECT role FROM user_roles WHERE user_id = %s AND role IN ({placeholders})",
        (user_id,) + ADMIN_ROLES,
    )
    roles = [row["role"] for row in cursor.fetchall()]
    if not roles:
        return None

    capabilities = frozenset(STAFF_CAPABILITIES + (ADMIN_CAPABILITY,))

    if "super_admin" in roles:
        return AuthContext(
            role=ROLE_ADMIN,
            user_id=user_id,
            branch_ids=None,
            capabilities=capabilities,
            is_super_admin=True,
        )

    cursor.execute(
        "SELECT tenant_id FROM tenant_members WHERE user_id = %s ORDER BY id ASC LIMIT 1",
        (user_id,),
    )
    membership = cursor.fetchone()
    tenant_id = membership["tenant_id"] if membership else None

    branch_ids = []
    if tenant_id is not None:
        cursor.execute(
            "SELECT id FROM branches WHERE tenant_id = %s AND is_active = 1 ORDER BY id ASC",
            (tenant_id,),
        )
        branch_ids = [row["id"] for row in cursor.fetchall()]

    return AuthContext(
        role=ROLE_ADMIN,
        user_id=user_id,
        tenant_id=tenant_id,
        branch_ids=branch_ids,
        capabilities=capabilities,
    )


def find_member_by_phone(conn, raw_phone: str, branch_id: int) -> Optional[dict]:
    """
    Look up a member by phone within a branch.

    Returns the member row or None; the caller decides what a miss means.
    """
    phone = normalize_phone(raw_phone)
    if not phone:
        return None

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT id, name, phone, branch_id
            FROM members
            WHERE phone = %s AND branch_id = %s
            LIMIT 1
            """,
            (phone, branch_id),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def get_member(conn, member_id: int) -> Optional[dict]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            "SELECT id, name, phone, branch_id FROM members WHERE id = %s",
            (member_id,),
        )
        return cursor.fetchone()
    finally:
        cursor.close()
