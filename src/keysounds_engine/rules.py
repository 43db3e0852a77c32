"""Application rules: ordered per-application profile overrides."""

import logging
import re
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import replace
from typing import Any

from .debounce import Debouncer
from .exceptions import ConfigValidationError
from .exceptions import DuplicateKeyError
from .exceptions import InvalidPatternError
from .exceptions import RuleNotFoundError
from .models import DefaultRule
from .models import Rule
from .models import normalize_profile

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Use ``/`` as the only separator so Windows and POSIX paths compare alike."""
    return path.replace("\\", "/")


def _translate(pattern: str) -> str:
    """Translate a normalized glob pattern into a regular expression body.

    ``*`` and ``?`` never cross a separator, ``**`` does. Backslashes are
    separators, not escapes, so literal Windows paths are valid patterns.
    """
    i, n = 0, len(pattern)
    parts = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    # "**/" also matches zero directories
                    parts.append("(?:.*/)?")
                    i += 1
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                raise InvalidPatternError(pattern, "unterminated '['")
            body = pattern[i + 1 : end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            if not body:
                raise InvalidPatternError(pattern, "empty character class")
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            parts.append(f"[{'^' if negate else ''}{body}]")
            i = end
        elif c == "]":
            raise InvalidPatternError(pattern, "unbalanced ']'")
        else:
            parts.append(re.escape(c))
        i += 1
    return "".join(parts)


def compile_pattern(pattern: str) -> re.Pattern:
    """Compile an application path or glob pattern into a matcher.

    A pattern containing ``[`` also matches its own literal text, so an exact
    path such as ``C:\\Games\\[Steam]\\game.exe`` matches that executable
    even though the brackets read as a character class.

    Raises:
        InvalidPatternError: If the pattern is empty or malformed
    """
    if not pattern or not pattern.strip():
        raise InvalidPatternError(pattern, "pattern is empty")

    normalized = normalize_path(pattern)
    body = _translate(normalized)
    if "[" in normalized:
        body = f"{body}|{re.escape(normalized)}"
    try:
        return re.compile(rf"(?s:{body})\Z", re.IGNORECASE)
    except re.error as e:
        raise InvalidPatternError(pattern, str(e)) from e


def validate_pattern(pattern: str) -> bool:
    """Check whether ``pattern`` is usable as a rule's application path."""
    try:
        compile_pattern(pattern)
    except InvalidPatternError:
        return False
    return True


@dataclass(frozen=True)
class RulesSnapshot:
    """Point-in-time copy of a RuleStore, used to roll back failed edits."""

    rules: tuple[Rule, ...]
    default: DefaultRule


class RuleStore:
    """Ordered collection of application rules plus the default rule.

    Rules keep their insertion order; editing an existing rule keeps its
    position. Resolution is first-match-wins over that order.
    """

    def __init__(self, rules: Iterable[Rule] = (), default: DefaultRule | None = None):
        self._rules: dict[str, Rule] = {}
        self._default = default or DefaultRule()
        self._compiled: dict[str, re.Pattern] = {}
        for rule in rules:
            self.upsert(rule)

    # ===== Queries =====

    def rules(self) -> tuple[Rule, ...]:
        """All rules in resolution order."""
        return tuple(self._rules.values())

    def get(self, app_path: str) -> Rule | None:
        """Rule stored under ``app_path``, or None."""
        return self._rules.get(app_path)

    def default(self) -> DefaultRule:
        """Profiles used when no rule matches."""
        return self._default

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, app_path: object) -> bool:
        return app_path in self._rules

    def matcher(self, rule: Rule) -> re.Pattern:
        """Compiled pattern for a stored rule, cached until the rule changes."""
        compiled = self._compiled.get(rule.app_path)
        if compiled is None:
            compiled = compile_pattern(rule.app_path)
            self._compiled[rule.app_path] = compiled
        return compiled

    # ===== Mutations =====

    def upsert(self, rule: Rule, create: bool = False) -> None:
        """Add a rule, or replace the rule with the same application path.

        Args:
            rule: Rule to store
            create: Caller is adding a new rule, so an existing key is an error

        Raises:
            InvalidPatternError: If the application path is malformed
            DuplicateKeyError: If ``create`` is set and the key exists
        """
        compile_pattern(rule.app_path)
        if create and rule.app_path in self._rules:
            raise DuplicateKeyError(f"A rule for '{rule.app_path}' already exists")

        self._rules[rule.app_path] = rule
        self._compiled.pop(rule.app_path, None)

    def remove(self, app_path: str) -> Rule:
        """Remove and return the rule for ``app_path``.

        Raises:
            RuleNotFoundError: If no rule exists for the path
        """
        try:
            rule = self._rules.pop(app_path)
        except KeyError:
            raise RuleNotFoundError(f"No rule for '{app_path}'") from None
        self._compiled.pop(app_path, None)
        return rule

    def set_enabled(self, app_path: str, enabled: bool) -> Rule:
        """Enable or disable a rule in place.

        Args:
            app_path: Key of the rule
            enabled: New enabled flag

        Returns:
            The updated rule

        Raises:
            RuleNotFoundError: If no rule exists for the path
        """
        rule = self._require(app_path)
        updated = replace(rule, enabled=enabled)
        self._rules[app_path] = updated
        self._compiled.pop(app_path, None)
        return updated

    def toggle(self, app_path: str) -> Rule:
        """Flip a rule's enabled flag. Raises RuleNotFoundError if absent."""
        return self.set_enabled(app_path, not self._require(app_path).enabled)

    def set_default_profiles(self, keyboard: str | None, mouse: str | None) -> None:
        """Replace the default rule.

        Args:
            keyboard: Default keyboard profile, or None for no sound
            mouse: Default mouse profile, or None for no sound
        """
        self._default = DefaultRule(keyboard_profile=keyboard, mouse_profile=mouse)

    # ===== Snapshots =====

    def snapshot(self) -> RulesSnapshot:
        """Copy of the current rules and default, for rollback."""
        return RulesSnapshot(rules=self.rules(), default=self._default)

    def restore(self, snapshot: RulesSnapshot) -> None:
        """Replace all state with ``snapshot``."""
        self._rules = {rule.app_path: rule for rule in snapshot.rules}
        self._default = snapshot.default
        self._compiled.clear()

    # ===== Records =====

    def to_record(self) -> dict[str, Any]:
        """Persisted form: the default rule plus the ordered rule list."""
        return {
            "default": {
                "keyboard": self._default.keyboard_profile,
                "mouse": self._default.mouse_profile,
            },
            "rules": [
                {
                    "app_path": rule.app_path,
                    "keyboard_profile": rule.keyboard_profile,
                    "mouse_profile": rule.mouse_profile,
                    "enabled": rule.enabled,
                }
                for rule in self._rules.values()
            ],
        }

    @classmethod
    def from_record(cls, record: Any) -> "RuleStore":
        """Build a store from a persisted record.

        Rules with malformed patterns are skipped with a warning so one bad
        entry does not discard the rest of the file.

        Raises:
            ConfigValidationError: If the record does not have the rules shape
        """
        if not isinstance(record, dict):
            raise ConfigValidationError("Rules record must be a mapping")

        store = cls()
        default = record.get("default") or {}
        if not isinstance(default, dict):
            raise ConfigValidationError("Default rule must be a mapping")
        store.set_default_profiles(
            normalize_profile(default.get("keyboard")),
            normalize_profile(default.get("mouse")),
        )

        entries = record.get("rules") or []
        if not isinstance(entries, list):
            raise ConfigValidationError("Rules must be a list")

        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("app_path"), str):
                raise ConfigValidationError(f"Malformed rule entry: {entry!r}")
            rule = Rule(
                app_path=entry["app_path"],
                keyboard_profile=normalize_profile(entry.get("keyboard_profile")),
                mouse_profile=normalize_profile(entry.get("mouse_profile")),
                enabled=bool(entry.get("enabled", True)),
            )
            try:
                store.upsert(rule)
            except InvalidPatternError as e:
                logger.warning(f"Skipping stored rule: {e}")

        return store

    def _require(self, app_path: str) -> Rule:
        rule = self._rules.get(app_path)
        if rule is None:
            raise RuleNotFoundError(f"No rule for '{app_path}'")
        return rule


class PatternValidator:
    """Debounced validation for a pattern being typed into the UI.

    Only the most recent request is validated once input has been quiet for
    the debouncer's interval. The store is never touched.

    Args:
        debouncer: Queue polled by the host event loop
        on_result: Called with ``(pattern, is_valid)``
    """

    def __init__(self, debouncer: Debouncer, on_result: Callable[[str, bool], None]):
        self._debouncer = debouncer
        self._on_result = on_result

    def request(self, pattern: str) -> None:
        self._debouncer.submit("pattern", lambda: self._on_result(pattern, validate_pattern(pattern)))

    def cancel(self) -> None:
        self._debouncer.cancel("pattern")
