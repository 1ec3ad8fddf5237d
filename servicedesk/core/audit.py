# servicedesk/core/audit.py
"""
Security audit trail.
Destructive actions (ticket, user, service deletion) are written as JSON
lines to a dedicated file, separate from the per-ticket history table.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request

from ..models.user import User
from .config import get_settings

# Dedicated audit logger, never duplicated to the root logger
audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False

logger = logging.getLogger(__name__)


def configure_audit_log(path: Optional[str] = None) -> None:
    """Attaches the JSON-lines file handler. Safe to call more than once."""
    path = path or get_settings().audit_log_file
    for handler in list(audit_logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path):
            return
        audit_logger.removeHandler(handler)
        handler.close()

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(file_handler)


def _client_ip(request: Optional[Request]) -> str:
    if not request:
        return "unknown"
    # Reverse proxy first
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def log_action(
    action: str,
    resource_type: str,
    resource_id: str,
    user: Optional[User] = None,
    request: Optional[Request] = None,
    details: Optional[dict] = None,
    status: str = "success",
) -> None:
    """
    Log a security-relevant action to the audit log.

    Args:
        action: The action performed (e.g., "DELETE", "UPDATE")
        resource_type: Type of resource affected (e.g., "ticket", "user", "service")
        resource_id: Identifier of the affected resource
        user: The User who performed the action (optional)
        request: FastAPI Request to extract the client IP (optional)
        details: Additional context dictionary (optional)
        status: "success" or "failure"
    """
    if not audit_logger.handlers:
        configure_audit_log()

    client_ip = _client_ip(request)
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.upper(),
        "resource_type": resource_type,
        "resource_id": str(resource_id),
        "user": user.username if user else "anonymous",
        "user_role": user.role if user else "unknown",
        "ip_address": client_ip,
        "status": status,
    }
    if details:
        log_entry["details"] = details

    audit_logger.info(json.dumps(log_entry, ensure_ascii=False, default=str))
    logger.info(f"📝 [AUDIT] {action.upper()} {resource_type}/{resource_id} by {log_entry['user']} from {client_ip}")
