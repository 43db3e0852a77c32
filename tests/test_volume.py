"""Tests for VolumeManager."""

import math
import threading

import pytest
from keysounds_engine import ConfigValidationError
from keysounds_engine import Device
from keysounds_engine import VolumeManager
from keysounds_engine import VolumeSnapshot
from keysounds_engine.volume import DeviceLevel


class TestVolumeManager:
    """Test VolumeManager class."""

    @pytest.fixture
    def volume(self):
        return VolumeManager()

    # ===== Volume and mute =====

    @pytest.mark.parametrize("device", list(Device))
    def test_volume_clamped(self, volume, device):
        """Test volumes are clamped to 0-100."""
        assert volume.set_volume(device, -5).level(device).volume == 0
        assert volume.set_volume(device, 150).level(device).volume == 100

    def test_zero_volume_does_not_mute(self, volume):
        """Test volume 0 leaves the mute flag clear."""
        state = volume.set_volume(Device.KEYBOARD, 0)
        assert state.keyboard_volume == 0
        assert state.keyboard_muted is False

    def test_mute_preserves_volume(self, volume):
        """Test muting keeps the stored volume for restoration."""
        volume.set_volume(Device.MOUSE, 70)
        state = volume.set_muted(Device.MOUSE, True)
        assert state.mouse_volume == 70
        assert state.mouse_muted is True
        assert state.mouse.effective_volume == 0

        state = volume.set_muted(Device.MOUSE, False)
        assert state.mouse.effective_volume == 70

    def test_positive_volume_unmutes(self, volume):
        """Test setting a positive volume while muted unmutes."""
        volume.set_muted(Device.KEYBOARD, True)
        state = volume.set_volume(Device.KEYBOARD, 30)
        assert state.keyboard_muted is False
        assert state.keyboard_volume == 30

    def test_zero_volume_keeps_mute(self, volume):
        """Test setting volume 0 while muted stays muted."""
        volume.set_muted(Device.KEYBOARD, True)
        assert volume.set_volume(Device.KEYBOARD, 0).keyboard_muted is True

    def test_devices_independent_when_unlocked(self, volume):
        """Test changes stay on one device when unlocked."""
        volume.set_volume(Device.KEYBOARD, 40)
        volume.set_muted(Device.KEYBOARD, True)
        state = volume.get_state()
        assert state.mouse == DeviceLevel(volume=100, muted=False)

    # ===== Lock =====

    def test_lock_mirrors_volume(self, volume):
        """Test a locked volume change reaches both devices without toggling mute."""
        volume.set_locked(True)
        state = volume.set_volume(Device.KEYBOARD, 40)
        assert state.mouse_volume == 40
        assert state.keyboard_muted is False
        assert state.mouse_muted is False

    def test_lock_mirrors_mute(self, volume):
        """Test a locked mute applies to both devices."""
        volume.set_locked(True)
        state = volume.set_muted(Device.MOUSE, True)
        assert state.keyboard_muted is True
        assert state.mouse_muted is True

    def test_lock_zero_volume_keeps_each_mute_flag(self, volume):
        """Test mirroring a zero volume does not copy the mute bit across."""
        volume.set_muted(Device.KEYBOARD, True)
        volume.set_locked(True)
        state = volume.set_volume(Device.KEYBOARD, 0)
        assert state.keyboard_muted is True
        assert state.mouse_muted is False
        assert state.mouse_volume == 0

    def test_lock_positive_volume_unmutes_both(self, volume):
        """Test a locked positive volume unmutes the linked device too."""
        volume.set_muted(Device.MOUSE, True)
        volume.set_locked(True)
        state = volume.set_volume(Device.KEYBOARD, 55)
        assert state.mouse_muted is False
        assert state.mouse_volume == 55

    def test_locked_adjust_uses_primary_device(self, volume):
        """Test a locked step is computed from the first device and mirrored."""
        volume.set_volume(Device.KEYBOARD, 50)
        volume.set_volume(Device.MOUSE, 30)
        volume.set_locked(True)
        state = volume.adjust_volume([Device.KEYBOARD, Device.MOUSE], 10)
        assert (state.keyboard_volume, state.mouse_volume) == (60, 60)

    def test_unlocked_adjust_each_device(self, volume):
        """Test an unlocked step applies to each device separately."""
        volume.set_volume(Device.KEYBOARD, 50)
        volume.set_volume(Device.MOUSE, 30)
        state = volume.adjust_volume([Device.KEYBOARD, Device.MOUSE], -40)
        assert (state.keyboard_volume, state.mouse_volume) == (10, 0)

    def test_locked_toggle(self, volume):
        """Test a locked toggle sets both devices from the first device's flag."""
        volume.set_muted(Device.MOUSE, True)
        volume.set_locked(True)
        state = volume.toggle_muted([Device.KEYBOARD])
        assert state.keyboard_muted is True
        assert state.mouse_muted is True

    def test_unlock_stops_mirroring(self, volume):
        """Test unlocking returns to independent devices."""
        volume.set_locked(True)
        volume.set_locked(False)
        state = volume.set_volume(Device.KEYBOARD, 20)
        assert state.mouse_volume == 100

    def test_nan_volume_rejected(self, volume):
        """Test NaN is rejected instead of becoming full volume."""
        volume.set_volume(Device.KEYBOARD, 30)
        with pytest.raises(ConfigValidationError):
            volume.set_volume(Device.KEYBOARD, math.nan)
        with pytest.raises(ConfigValidationError):
            volume.adjust_volume([Device.KEYBOARD], math.nan)
        assert volume.get_state().keyboard_volume == 30

    def test_infinite_volume_clamped(self, volume):
        """Test infinite volumes clamp to the range bounds."""
        assert volume.set_volume(Device.KEYBOARD, math.inf).keyboard_volume == 100
        assert volume.set_volume(Device.KEYBOARD, -math.inf).keyboard_volume == 0

    # ===== Listeners and ordering =====

    def test_listeners_see_every_transition(self, volume):
        """Test listeners receive each snapshot in order."""
        seen = []
        volume.subscribe(seen.append)
        volume.set_volume(Device.KEYBOARD, 10)
        volume.set_volume(Device.KEYBOARD, 20)
        assert [state.keyboard_volume for state in seen] == [10, 20]

    def test_unsubscribe(self, volume):
        """Test unsubscribed listeners are no longer called."""
        seen = []
        unsubscribe = volume.subscribe(seen.append)
        unsubscribe()
        volume.set_volume(Device.KEYBOARD, 10)
        assert seen == []

    def test_failing_listener_does_not_block_others(self, volume):
        """Test a raising listener is logged and the change still lands."""
        seen = []

        def broken(state):
            raise RuntimeError("listener bug")

        volume.subscribe(broken)
        volume.subscribe(seen.append)
        state = volume.set_volume(Device.KEYBOARD, 10)
        assert state.keyboard_volume == 10
        assert [s.keyboard_volume for s in seen] == [10]

    def test_concurrent_locked_steps_stay_consistent(self, volume):
        """Test concurrent locked steps are applied atomically and totally ordered."""
        volume.set_locked(True)
        volume.set_volume(Device.KEYBOARD, 0)
        mismatches = []
        volume.subscribe(
            lambda state: mismatches.append(state) if state.keyboard_volume != state.mouse_volume else None
        )

        def step():
            for _ in range(20):
                volume.adjust_volume([Device.KEYBOARD], 1)

        threads = [threading.Thread(target=step) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        state = volume.get_state()
        assert (state.keyboard_volume, state.mouse_volume) == (80, 80)
        assert mismatches == []

    # ===== Records =====

    def test_record_round_trip(self, volume):
        """Test state survives conversion to and from a record."""
        volume.set_volume(Device.KEYBOARD, 35)
        volume.set_muted(Device.MOUSE, True)
        volume.set_locked(True)
        assert VolumeManager.from_record(volume.to_record()).get_state() == volume.get_state()

    def test_record_clamps_volume(self):
        """Test stored volumes are clamped on read."""
        state = VolumeManager.state_from_record({"keyboard": {"volume": 400}, "mouse": {"volume": -1}})
        assert state == VolumeSnapshot(keyboard=DeviceLevel(100), mouse=DeviceLevel(0))

    def test_record_wrong_type_rejected(self):
        """Test a non-numeric stored volume is a validation error."""
        with pytest.raises(ConfigValidationError):
            VolumeManager.state_from_record({"keyboard": {"volume": "loud"}})
