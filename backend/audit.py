# audit.py — Append-only audit trail
import json
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import AuditLog

logger = logging.getLogger("taskscope.audit")


class AuditService:
    """Writes audit entries after the primary operation has committed.

    Entries go through their own session on the caller's engine, so a failed
    audit write never rolls back (or expires) what the caller already
    committed. The failure is logged and the caller carries on.
    """

    @staticmethod
    async def log_action(
        db: AsyncSession,
        user_id: str,
        action: str,
        resource_type: str,
        resource_id: Optional[str],
        details: Any = None,
    ) -> Optional[AuditLog]:
        action = str(getattr(action, "value", action))
        async with AsyncSession(db.bind, expire_on_commit=False) as audit_db:
            try:
                entry = AuditLog(
                    user_id=user_id,
                    action=action,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    details=json.dumps(details, default=str) if details is not None else None,
                )
                audit_db.add(entry)
                await audit_db.commit()
            except Exception:
                await audit_db.rollback()
                logger.exception(
                    f"Audit write failed: {action} by user {user_id} on {resource_type} {resource_id}"
                )
                return None

        logger.info(f"[AUDIT] {action} by user {user_id} on {resource_type} {resource_id}")
        return entry
