"""
Caller identity passed into every authorized engine operation.
"""

from dataclasses import dataclass
from typing import Optional

from src.models.agent import AgentRole


@dataclass(frozen=True)
class AuthContext:
    """
    Who is calling, built fresh for each request.

    Never stored on a session or reused between requests, so a role
    change takes effect on the next call.
    """

    caller_id: int
    role: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == AgentRole.ADMIN.value

    @property
    def is_team_lead(self) -> bool:
        return self.role == AgentRole.TEAM_LEAD.value
