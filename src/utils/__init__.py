"""Utility functions."""

from src.utils.audit import get_client_ip, get_user_agent, log_commission_audit

__all__ = [
    "log_commission_audit",
    "get_client_ip",
    "get_user_agent",
]
