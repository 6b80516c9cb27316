"""
Commission audit logging utilities.

Every change to a commission figure must be logged for compliance.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit import CommissionAuditAction, CommissionAuditLog


def log_commission_audit(
    db: AsyncSession,
    transaction_id: int,
    agent_id: int,
    action: CommissionAuditAction,
    changed_by: int,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    change_reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> CommissionAuditLog:
    """
    Add a commission audit entry to the session.

    Args:
        db: Database session
        transaction_id: Transaction whose commission changed
        agent_id: Agent the commission belongs to
        action: Type of change
        changed_by: ID of the agent making the change
        old_values: JSON-safe figures before the change
        new_values: JSON-safe figures after the change
        change_reason: Free-text reason
        ip_address: Client IP address
        user_agent: Client user agent

    Returns:
        Created CommissionAuditLog entry
    """
    entry = CommissionAuditLog(
        transaction_id=transaction_id,
        agent_id=agent_id,
        action=action,
        old_values=old_values,
        new_values=new_values,
        changed_by=changed_by,
        change_reason=change_reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    # Note: commit should happen in the calling context
    return entry


def get_client_ip(request) -> Optional[str]:
    """
    Extract client IP from request.

    Handles X-Forwarded-For header for reverse proxy setups.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First IP in the list is the client
        return forwarded_for.split(",")[0].strip()

    if hasattr(request, "client") and request.client:
        return request.client.host

    return None


def get_user_agent(request) -> Optional[str]:
    user_agent = request.headers.get("User-Agent")
    return user_agent[:512] if user_agent else None
