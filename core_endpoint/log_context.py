"""Per-request structured logging.

A :class:`ContextLogger` wraps a standard library logger and carries a nested
dictionary of request, session and user values. Every record it emits has
those values attached under ``extra["context"]`` so that a JSON formatter (or
a test's ``caplog``) can read them back.
"""

from typing import Any, Dict, Optional
import copy
import logging


def _default_values() -> Dict[str, Any]:
    return {
        "request": {},
        "session": {"token": {}},
        "user": {},
    }


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter with nested, assignable context values.

    Example:
        .. code-block:: python

            logger = ContextLogger(logging.getLogger("core_endpoint.endpoint"))
            logger.assign("session.token.flags", ["system"])
            logger.assign("user.userId", "123")
            logger.info("Session validated")  # record.context has both values
    """

    def __init__(self, logger: logging.Logger, values: Optional[Dict[str, Any]] = None):
        super().__init__(logger, {})
        self.values: Dict[str, Any] = _default_values()
        if values:
            for key, value in values.items():
                self.assign(key, value)

    def assign(self, path: str, value: Any) -> None:
        """Set a nested value using a dotted path, creating parents as needed."""
        keys = path.split(".")
        node = self.values
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[keys[-1]] = value

    def get(self, path: str, default: Any = None) -> Any:
        node: Any = self.values
        for key in path.split("."):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = copy.deepcopy(self.values)
        kwargs["extra"] = extra
        return msg, kwargs
