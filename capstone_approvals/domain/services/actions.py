"""Resolution actions for approval requests.

Each request carries an ``action_key``. Once the request resolves and the
vote transaction has committed, the handler registered for that key is
invoked with the resolved request. The workflow engine never interprets
``action_payload``; only the handler does.

Handlers are configured as ``action_key -> "package.module.ClassName"`` in
``Settings.approval_actions`` or registered programmatically.
"""

import importlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from capstone_approvals.domain.models import Decision
from capstone_approvals.infra.observability.metrics import record_action_run

logger = logging.getLogger(__name__)


class ApprovalAction(ABC):
    """Contract for handlers run when a request resolves."""

    @abstractmethod
    async def handle_approval(self, request: Any) -> None:
        """Apply the effect of an approved request."""

    @abstractmethod
    async def handle_rejection(self, request: Any) -> None:
        """Apply the effect of a rejected request."""


class NoOpAction(ApprovalAction):
    """Handler for requests that need no follow-up."""

    async def handle_approval(self, request: Any) -> None:
        return None

    async def handle_rejection(self, request: Any) -> None:
        return None


def _import_handler(path: str) -> Any:
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ImportError(f"Not a dotted path: {path}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class ActionRunner:
    """Resolve and run the handler registered for an action key."""

    def __init__(self, handlers: Mapping[str, str | ApprovalAction] | None = None) -> None:
        """Initialize the runner.

        Args:
            handlers: Mapping of action key to a dotted class path or a handler instance
        """
        self._configured: dict[str, str | ApprovalAction] = dict(handlers or {})
        self._instances: dict[str, ApprovalAction] = {}

    @property
    def action_keys(self) -> list[str]:
        return sorted(self._configured)

    def is_registered(self, action_key: str) -> bool:
        return action_key in self._configured

    def register(self, action_key: str, handler: str | ApprovalAction) -> None:
        """Register or replace the handler for ``action_key``."""
        self._configured[action_key] = handler
        self._instances.pop(action_key, None)

    def resolve_handler(self, action_key: str) -> ApprovalAction | None:
        """Return the handler for ``action_key``, or None if it cannot be used."""
        if action_key in self._instances:
            return self._instances[action_key]

        target = self._configured.get(action_key)
        if target is None:
            logger.warning(
                "Unknown approval request action handler",
                extra={"action_key": action_key},
            )
            return None

        if isinstance(target, ApprovalAction):
            handler = target
        else:
            try:
                handler_class = _import_handler(target)
            except (ImportError, AttributeError) as e:
                logger.warning(
                    f"Approval request action handler could not be imported: {e}",
                    extra={"action_key": action_key},
                )
                return None

            handler = handler_class() if isinstance(handler_class, type) else handler_class
            if not isinstance(handler, ApprovalAction):
                logger.warning(
                    "Configured approval request handler does not implement ApprovalAction",
                    extra={"action_key": action_key},
                )
                return None

        self._instances[action_key] = handler
        return handler

    async def run(self, request: Any, decision: Decision) -> bool:
        """Run the handler of a resolved request.

        Must only be called after the resolving transaction committed. A failing
        handler is logged; the committed resolution is not affected.

        Args:
            request: The resolved approval request
            decision: Winning decision

        Returns:
            True if a handler ran successfully
        """
        handler = self.resolve_handler(request.action_key)
        if handler is None:
            record_action_run(request.action_key, None)
            return False

        try:
            if decision is Decision.APPROVED:
                await handler.handle_approval(request)
            else:
                await handler.handle_rejection(request)
        except Exception:
            logger.exception(
                "Approval request action handler failed",
                extra={
                    "approval_request_id": request.id,
                    "action_key": request.action_key,
                    "decision": decision.value,
                },
            )
            record_action_run(request.action_key, False)
            return False

        logger.info(
            "Approval request action handler ran",
            extra={
                "approval_request_id": request.id,
                "action_key": request.action_key,
                "decision": decision.value,
            },
        )
        record_action_run(request.action_key, True)
        return True
