"""Foreground application to sound profile resolution."""

import logging

from .models import Device
from .models import ProfilesDiff
from .models import ResolvedProfiles
from .models import Rule
from .profiles import ProfileRegistry
from .rules import RuleStore
from .rules import normalize_path

logger = logging.getLogger(__name__)


class RuleResolver:
    """Chooses keyboard and mouse profiles for the foreground application.

    Resolution order:
    1. First enabled rule, in insertion order, whose pattern matches
    2. Default rule

    A matched rule supplies both devices, so a rule's ``None`` profile
    silences that device rather than falling back to the default.

    Args:
        store: Rules to match against
        registry: Known profiles, used to ignore rules naming deleted profiles
    """

    def __init__(self, store: RuleStore, registry: ProfileRegistry | None = None):
        self.store = store
        self.registry = registry or ProfileRegistry()
        self._current: ResolvedProfiles | None = None

    def resolve(self, path: str | None) -> ResolvedProfiles:
        """Resolve profiles for a foreground executable path.

        Args:
            path: Executable path, or None when it could not be determined

        Returns:
            Profiles from the first matching rule, otherwise the default
        """
        if not path:
            return self._default()

        rule = self.match(path)
        if rule is None:
            return self._default()

        for device in Device:
            profile = rule.profile_for(device)
            if profile is not None and not self._is_known(device, profile):
                logger.error(
                    f"Application rule '{rule.app_path}' ignored: unknown {device.value} profile '{profile}'"
                )
                return self._default()

        return ResolvedProfiles(keyboard=rule.keyboard_profile, mouse=rule.mouse_profile)

    def match(self, path: str) -> Rule | None:
        """First enabled rule whose pattern matches ``path``."""
        target = normalize_path(path)
        for rule in self.store.rules():
            if rule.enabled and self.store.matcher(rule).fullmatch(target):
                return rule
        return None

    def switch(self, path: str | None) -> ProfilesDiff:
        """Resolve ``path`` as the new foreground application.

        Returns:
            Devices whose profile differs from the previous switch
        """
        resolved = self.resolve(path)
        if self._current is None:
            diff = ProfilesDiff(update_keyboard=True, update_mouse=True)
        else:
            diff = self._current.diff(resolved)
        self._current = resolved
        if diff.changed:
            logger.info(f"Foreground '{path}' switched profiles to {resolved}")
        return diff

    @property
    def current(self) -> ResolvedProfiles | None:
        return self._current

    def _default(self) -> ResolvedProfiles:
        default = self.store.default()
        return ResolvedProfiles(
            keyboard=default.keyboard_profile,
            mouse=default.mouse_profile,
            is_default=True,
        )

    def _is_known(self, device: Device, profile: str) -> bool:
        if not self.registry.is_loaded(device):
            return True
        return self.registry.contains(device, profile)
