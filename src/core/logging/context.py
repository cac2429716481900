"""Context variables injected into every log record."""

from contextvars import ContextVar
from typing import Dict, Optional

_command: ContextVar[Optional[str]] = ContextVar("command", default=None)
_topic: ContextVar[Optional[str]] = ContextVar("topic", default=None)
_consumer_group: ContextVar[Optional[str]] = ContextVar("consumer_group", default=None)


def set_log_context(
    command: Optional[str] = None,
    topic: Optional[str] = None,
    consumer_group: Optional[str] = None,
) -> None:
    """Set logging context. Only non-None values are updated."""
    if command is not None:
        _command.set(command)
    if topic is not None:
        _topic.set(topic)
    if consumer_group is not None:
        _consumer_group.set(consumer_group)


def get_log_context() -> Dict[str, Optional[str]]:
    """Get current logging context."""
    return {
        "command": _command.get(),
        "topic": _topic.get(),
        "consumer_group": _consumer_group.get(),
    }


def clear_log_context() -> None:
    """Reset all context variables."""
    _command.set(None)
    _topic.set(None)
    _consumer_group.set(None)
