"""
FastAPI dependencies for authentication.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.context import AuthContext
from src.auth.jwt import get_token_from_request, verify_token
from src.db import get_db
from src.models import PRIVILEGED_ROLES, Agent
from src.utils.audit import get_client_ip, get_user_agent


async def get_auth_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """
    Build the caller's AuthContext for this request.

    The role is read from the database, not from the token, so a
    demoted reviewer loses access immediately.

    Raises 401 if not authenticated, 403 if the account is disabled.
    """
    token = get_token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    payload = verify_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    result = await db.execute(
        select(Agent.role, Agent.is_active).where(Agent.id == payload["agent_id"])
    )
    row = result.one_or_none()

    if row is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Agent not found",
        )

    role, is_active = row
    if not is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent account is disabled",
        )

    return AuthContext(
        caller_id=payload["agent_id"],
        role=role,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )


async def require_admin(
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Raises 403 unless the caller is an admin."""
    if not ctx.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return ctx


async def require_reviewer(
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Raises 403 unless the caller is an admin or team lead."""
    if ctx.role not in PRIVILEGED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Reviewer access required",
        )
    return ctx
