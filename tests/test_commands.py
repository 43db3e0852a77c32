"""Tests for optimistic rule commands."""

import pytest
from keysounds_engine import DuplicateKeyError
from keysounds_engine import PersistenceFailure
from keysounds_engine import Rule
from keysounds_engine import RuleStore
from keysounds_engine.commands import CommandRunner
from keysounds_engine.commands import RemoveRuleCommand
from keysounds_engine.commands import RuleCommand
from keysounds_engine.commands import SetDefaultProfilesCommand
from keysounds_engine.commands import SetRuleEnabledCommand
from keysounds_engine.commands import UpsertRuleCommand


class TestCommandRunner:
    """Test CommandRunner with rule commands."""

    @pytest.fixture
    def store(self):
        return RuleStore(rules=[Rule(app_path="C:\\Games\\*.exe", keyboard_profile="alps")])

    @pytest.fixture
    def confirmations(self):
        return []

    @pytest.fixture
    def runner(self, confirmations):
        return CommandRunner(lambda: confirmations.append(True))

    @pytest.fixture
    def failing_runner(self):
        def fail():
            raise PersistenceFailure("disk full")

        return CommandRunner(fail)

    def test_confirmed_edit_kept(self, store, runner, confirmations):
        """Test a confirmed command stays applied."""
        runner.execute(SetRuleEnabledCommand(store, "C:\\Games\\*.exe", False))
        assert store.get("C:\\Games\\*.exe").enabled is False
        assert confirmations == [True]

    def test_failed_toggle_rolled_back(self, store, failing_runner):
        """Test an optimistic toggle reverts when persisting fails."""
        with pytest.raises(PersistenceFailure):
            failing_runner.execute(SetRuleEnabledCommand(store, "C:\\Games\\*.exe"))
        assert store.get("C:\\Games\\*.exe").enabled is True

    def test_failed_remove_rolled_back(self, store, failing_runner):
        """Test a removed rule returns to its original position."""
        store.upsert(Rule(app_path="C:\\Tools\\*.exe"))
        before = store.snapshot()
        with pytest.raises(PersistenceFailure):
            failing_runner.execute(RemoveRuleCommand(store, "C:\\Games\\*.exe"))
        assert store.snapshot() == before

    def test_failed_default_change_rolled_back(self, store, failing_runner):
        """Test default profile edits revert on failure."""
        default = store.default()
        with pytest.raises(PersistenceFailure):
            failing_runner.execute(SetDefaultProfilesCommand(store, None, None))
        assert store.default() == default

    def test_validation_error_skips_confirm(self, store, runner, confirmations):
        """Test a rejected command changes nothing and is never confirmed."""
        before = store.snapshot()
        with pytest.raises(DuplicateKeyError):
            runner.execute(UpsertRuleCommand(store, Rule(app_path="C:\\Games\\*.exe"), create=True))
        assert store.snapshot() == before
        assert confirmations == []

    def test_description(self, store):
        """Test commands describe themselves for logging."""
        assert UpsertRuleCommand(store, Rule(app_path="a.exe"), create=True).description == "add rule 'a.exe'"
        assert SetRuleEnabledCommand(store, "a.exe", False).description == "disable rule 'a.exe'"

    def test_rule_command_requires_mutation(self, store):
        """Test the base command cannot be used without an edit."""
        with pytest.raises(TypeError):
            RuleCommand(store)
