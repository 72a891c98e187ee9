"""
Admin audit trail.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.admin import AdminAuditLog, AuditAction, AuditTargetType
from infrastructure.database.models.user import User


def add_audit_log(
    db: AsyncSession,
    admin_user: User,
    action: AuditAction,
    target_type: AuditTargetType,
    target_id: Optional[str],
    description: str,
    metadata: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> AdminAuditLog:
    """
    Stage an audit entry in the caller's transaction.

    The entry commits together with the change it describes, so a rolled
    back action leaves no trace in the log.
    """
    details = dict(metadata) if metadata else {}
    if description:
        details["description"] = description

    audit_log = AdminAuditLog(
        admin_user_id=admin_user.id,
        action=action.value,
        target_type=target_type.value,
        target_id=target_id,
        details=details or None,
        ip_address=ip_address,
    )
    db.add(audit_log)
    return audit_log
