"""Tests for RuleResolver."""

import pytest
from keysounds_engine import DefaultRule
from keysounds_engine import Device
from keysounds_engine import ProfileRegistry
from keysounds_engine import ResolvedProfiles
from keysounds_engine import Rule
from keysounds_engine import RuleResolver
from keysounds_engine import RuleStore

CHROME = "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe"


class TestRuleResolver:
    """Test RuleResolver class."""

    @pytest.fixture
    def store(self):
        """Store with a mx-brown default for both devices."""
        return RuleStore(default=DefaultRule(keyboard_profile="mx-brown", mouse_profile="mx-brown"))

    @pytest.fixture
    def resolver(self, store):
        return RuleResolver(store)

    # ===== Matching =====

    def test_no_rules_uses_default(self, resolver):
        """Test the default applies when no rule exists."""
        assert resolver.resolve(CHROME) == ResolvedProfiles("mx-brown", "mx-brown", is_default=True)

    def test_explicit_silence_overrides_default(self, store, resolver):
        """Test a rule's None profile silences that device instead of falling back."""
        store.upsert(Rule(app_path="C:\\...\\chrome.exe", keyboard_profile="cherry-red", mouse_profile=None))
        resolved = resolver.resolve("C:\\...\\chrome.exe")
        assert resolved.keyboard == "cherry-red"
        assert resolved.mouse is None
        assert resolved.is_default is False

    def test_first_match_wins(self, store, resolver):
        """Test the earliest inserted matching rule wins."""
        store.upsert(Rule(app_path="C:\\Program Files\\**\\*.exe", keyboard_profile="first"))
        store.upsert(Rule(app_path=CHROME, keyboard_profile="second"))
        assert resolver.resolve(CHROME).keyboard == "first"

    def test_order_survives_edit(self, store, resolver):
        """Test editing the first rule does not move it behind the second."""
        store.upsert(Rule(app_path="C:\\Program Files\\**\\*.exe", keyboard_profile="first"))
        store.upsert(Rule(app_path=CHROME, keyboard_profile="second"))
        store.upsert(Rule(app_path="C:\\Program Files\\**\\*.exe", keyboard_profile="edited"))
        assert resolver.resolve(CHROME).keyboard == "edited"

    def test_disabled_rule_falls_through(self, store, resolver):
        """Test a disabled match is skipped in favour of later rules."""
        store.upsert(Rule(app_path=CHROME, keyboard_profile="disabled", enabled=False))
        store.upsert(Rule(app_path="C:\\**\\chrome.exe", keyboard_profile="fallback"))
        assert resolver.resolve(CHROME).keyboard == "fallback"

    def test_only_disabled_match_uses_default(self, store, resolver):
        """Test a lone disabled match resolves to the default."""
        store.upsert(Rule(app_path=CHROME, keyboard_profile="disabled", enabled=False))
        assert resolver.resolve(CHROME).is_default is True

    def test_case_insensitive(self, store, resolver):
        """Test matching ignores case and separator style."""
        store.upsert(Rule(app_path=CHROME, keyboard_profile="cherry-red", mouse_profile="g502"))
        assert resolver.resolve(CHROME.upper().replace("\\", "/")).keyboard == "cherry-red"

    def test_deterministic(self, store, resolver):
        """Test resolving twice with unchanged state gives identical results."""
        store.upsert(Rule(app_path="C:\\**\\*.exe", keyboard_profile="topre"))
        assert resolver.resolve(CHROME) == resolver.resolve(CHROME)

    # ===== Fail-open =====

    @pytest.mark.parametrize("path", [None, ""])
    def test_unknown_foreground_uses_default(self, store, resolver, path):
        """Test an undeterminable foreground resolves to the default."""
        store.upsert(Rule(app_path="**", keyboard_profile=None, mouse_profile=None))
        assert resolver.resolve(path) == ResolvedProfiles("mx-brown", "mx-brown", is_default=True)

    # ===== Registry =====

    def test_unknown_profile_ignores_rule(self, store):
        """Test a rule naming a deleted profile falls back to the default."""
        registry = ProfileRegistry(keyboard=["mx-brown", "alps"], mouse=["mx-brown"])
        resolver = RuleResolver(store, registry)
        store.upsert(Rule(app_path=CHROME, keyboard_profile="deleted", mouse_profile="mx-brown"))
        assert resolver.resolve(CHROME).is_default is True

    def test_known_profile_accepted(self, store):
        """Test a rule naming registered profiles applies."""
        registry = ProfileRegistry(keyboard=["alps"], mouse=["g502"])
        resolver = RuleResolver(store, registry)
        store.upsert(Rule(app_path=CHROME, keyboard_profile="alps", mouse_profile="g502"))
        assert resolver.resolve(CHROME) == ResolvedProfiles("alps", "g502")

    def test_unloaded_registry_skips_check(self, store, resolver):
        """Test profiles are not checked before the library is loaded."""
        store.upsert(Rule(app_path=CHROME, keyboard_profile="anything"))
        assert resolver.resolve(CHROME).keyboard == "anything"

    def test_registry_from_library(self):
        """Test filling the registry from the library collaborator."""
        library = {Device.KEYBOARD: ["alps", "alps", "topre"], Device.MOUSE: ["g502"]}
        registry = ProfileRegistry.from_library(lambda device: library[device])
        assert registry.list(Device.KEYBOARD) == ("alps", "topre")
        assert registry.contains(Device.MOUSE, "g502")
        assert not registry.contains(Device.MOUSE, "alps")

    # ===== Switching =====

    def test_switch_reports_changed_devices(self, store, resolver):
        """Test focus switches report which devices need reloading."""
        store.upsert(Rule(app_path=CHROME, keyboard_profile="cherry-red", mouse_profile="mx-brown"))

        first = resolver.switch("C:\\Windows\\explorer.exe")
        assert first.update_keyboard and first.update_mouse

        diff = resolver.switch(CHROME)
        assert diff.update_keyboard is True
        assert diff.update_mouse is False

        assert resolver.switch(CHROME).changed is False
        assert resolver.current.keyboard == "cherry-red"

    def test_diff_detects_silence_transitions(self):
        """Test switching to or from no profile counts as a change."""
        silent = ResolvedProfiles(keyboard=None, mouse="a")
        audible = ResolvedProfiles(keyboard="k", mouse="a")
        assert silent.diff(audible).update_keyboard is True
        assert audible.diff(silent).update_keyboard is True
        assert silent.diff(audible).update_mouse is False
