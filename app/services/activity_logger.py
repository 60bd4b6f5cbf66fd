"""
User action logging for InfoRx Interpreter.

The hosting application passes an explicit ActionContext into the
pipeline triggers; anonymous actions are skipped.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.utils.logger import get_logger

logger = get_logger("activity")


class Actions:
    """Standard action names."""
    AI_INTERPRET = "used_ai_interpreter"
    TEXT_TO_SPEECH = "text_to_speech"


@dataclass(frozen=True)
class ActionContext:
    """Identity of whoever triggered a pipeline action."""

    user_id: Optional[str] = None
    request_id: Optional[str] = None
    client_ip: Optional[str] = None


def log_action(
    context: Optional[ActionContext],
    action: str,
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """
    Record a user action against the current user.

    Args:
        context: Caller identity; nothing is recorded without a user
        action: One of the Actions names
        metadata: Extra fields (lengths, outcomes; never medical text)
    """
    if context is None or not context.user_id:
        logger.debug("No user for action", action=action)
        return

    logger.info(
        "User action",
        action=action,
        user_id=context.user_id,
        request_id=context.request_id,
        **(metadata or {})
    )
