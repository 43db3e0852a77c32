"""Optimistic rule edits that roll back when persisting them fails."""

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from typing import Protocol

from .exceptions import PersistenceFailure
from .models import Rule
from .rules import RuleStore
from .rules import RulesSnapshot

logger = logging.getLogger(__name__)


class Command(Protocol):
    description: str

    def apply(self) -> None: ...

    def rollback(self) -> None: ...


class RuleCommand(ABC):
    """Base for edits against a RuleStore.

    The pre-command snapshot is taken on ``apply`` and kept until the runner
    either confirms the edit or rolls it back.
    """

    description = "edit rules"

    def __init__(self, store: RuleStore):
        self.store = store
        self._snapshot: RulesSnapshot | None = None

    def apply(self) -> None:
        self._snapshot = self.store.snapshot()
        self._mutate()

    def rollback(self) -> None:
        if self._snapshot is not None:
            self.store.restore(self._snapshot)
            self._snapshot = None

    @abstractmethod
    def _mutate(self) -> None:
        """Perform the edit against the store."""


class UpsertRuleCommand(RuleCommand):
    def __init__(self, store: RuleStore, rule: Rule, create: bool = False):
        super().__init__(store)
        self.rule = rule
        self.create = create
        self.description = f"{'add' if create else 'update'} rule '{rule.app_path}'"

    def _mutate(self) -> None:
        self.store.upsert(self.rule, create=self.create)


class RemoveRuleCommand(RuleCommand):
    def __init__(self, store: RuleStore, app_path: str):
        super().__init__(store)
        self.app_path = app_path
        self.description = f"remove rule '{app_path}'"

    def _mutate(self) -> None:
        self.store.remove(self.app_path)


class SetRuleEnabledCommand(RuleCommand):
    def __init__(self, store: RuleStore, app_path: str, enabled: bool | None = None):
        super().__init__(store)
        self.app_path = app_path
        self.enabled = enabled
        self.description = f"{'toggle' if enabled is None else 'enable' if enabled else 'disable'} rule '{app_path}'"

    def _mutate(self) -> None:
        if self.enabled is None:
            self.store.toggle(self.app_path)
        else:
            self.store.set_enabled(self.app_path, self.enabled)


class SetDefaultProfilesCommand(RuleCommand):
    def __init__(self, store: RuleStore, keyboard: str | None, mouse: str | None):
        super().__init__(store)
        self.keyboard = keyboard
        self.mouse = mouse
        self.description = "set default profiles"

    def _mutate(self) -> None:
        self.store.set_default_profiles(self.keyboard, self.mouse)


class CommandRunner:
    """Applies a command optimistically, then confirms it.

    Args:
        confirm: Persists the applied state; raises PersistenceFailure on error
    """

    def __init__(self, confirm: Callable[[], None]):
        self.confirm = confirm

    def execute(self, command: Command) -> None:
        """Apply and confirm ``command``.

        Validation errors from ``apply`` propagate before anything changes.
        If confirmation fails the command is rolled back and the failure is
        re-raised, leaving the last confirmed state in place.
        """
        command.apply()
        try:
            self.confirm()
        except PersistenceFailure:
            command.rollback()
            logger.warning(f"Rolled back '{command.description}': could not persist")
            raise
        logger.info(f"Applied '{command.description}'")
