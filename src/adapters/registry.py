"""
Handler registry — step kind → handler dispatch.

The executor never imports handlers directly; it asks the registry for
the handler of a step's kind. Tests swap in MockHandlers through the
same interface.
"""

from __future__ import annotations

import logging

from src.adapters.base import StepHandler
from src.core.models.step import StepKind
from src.core.services.package_managers import PackageManager

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Central registry of step handlers, one per kind."""

    def __init__(self) -> None:
        self._handlers: dict[StepKind, StepHandler] = {}

    @classmethod
    def with_defaults(cls, manager: PackageManager) -> HandlerRegistry:
        """Registry with a real handler for every step kind.

        Args:
            manager: Package manager of the host's family.
        """
        from src.adapters.config.patch import BlockAppendedHandler, LinePatchedHandler
        from src.adapters.shell.command import CommandRunHandler
        from src.adapters.shell.filesystem import FileWrittenHandler
        from src.adapters.system.packages import PackagesPresentHandler
        from src.adapters.system.services import ServiceEnabledHandler
        from src.adapters.system.users import GroupMemberHandler, LoginShellSetHandler
        from src.adapters.vcs.git import DirectoryClonedHandler

        registry = cls()
        for handler in (
            PackagesPresentHandler(manager),
            DirectoryClonedHandler(),
            FileWrittenHandler(),
            ServiceEnabledHandler(),
            LinePatchedHandler(),
            BlockAppendedHandler(),
            CommandRunHandler(),
            LoginShellSetHandler(),
            GroupMemberHandler(),
        ):
            registry.register(handler)
        return registry

    def register(self, handler: StepHandler) -> None:
        kind = handler.kind
        if kind in self._handlers:
            logger.warning("Overwriting existing handler: %s", kind.value)
        self._handlers[kind] = handler
        logger.debug("Registered handler: %s", kind.value)

    def unregister(self, kind: StepKind) -> None:
        self._handlers.pop(kind, None)

    def get(self, kind: StepKind) -> StepHandler | None:
        return self._handlers.get(kind)

    def list_kinds(self) -> list[StepKind]:
        return list(self._handlers.keys())

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers
