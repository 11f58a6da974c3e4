"""
Channel Model

In-memory mirror of the console's per-channel state. Owned by the UI layer:
entries are created once at startup and updated from commands that were
sent successfully and from messages the console sends back.

Usage:
    model = ConsoleModel(channel_count=32)
    model.attach(controller)            # follow data_received
    model.channel_changed += refresh_strip

    if controller.set_fader_level(5, 64):
        model.record_fader(5, 64)
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import List, Optional, TYPE_CHECKING

from .events import EventSource
from .protocol import (
    AutomationMode, SwitchType, Message,
    FaderUpdate, SwitchUpdate, ModeUpdate
)
from .exceptions import ParameterError

if TYPE_CHECKING:
    from .controller import ConsoleController

logger = logging.getLogger(__name__)


SWITCH_FIELDS = {
    SwitchType.MUTE: 'muted',
    SwitchType.SOLO: 'soloed',
    SwitchType.EQ: 'eq_enabled',
    SwitchType.INSERT: 'insert_enabled',
    SwitchType.DYNAMICS: 'dynamics_enabled',
}


@dataclass(frozen=True)
class ChannelState:
    """Snapshot of one channel strip"""
    channel: int
    label: str = ''
    fader_level: int = 0
    muted: bool = False
    soloed: bool = False
    eq_enabled: bool = False
    insert_enabled: bool = False
    dynamics_enabled: bool = False
    automation_mode: AutomationMode = AutomationMode.READ
    selected: bool = False
    vca_group: int = 0  # 0 = none, 1-8 = group

    def switch(self, switch_type: SwitchType) -> bool:
        return getattr(self, SWITCH_FIELDS[switch_type])

    def __str__(self) -> str:
        flags = ''.join(
            name[0].upper() for name in ('muted', 'soloed') if getattr(self, name)
        )
        return f"CH{self.channel:02d} {self.fader_level:4d} {flags or '-'} {self.automation_mode.name}"


class ConsoleModel:
    """
    All channel strips plus the console-wide automation mode

    Events:
        channel_changed(state: ChannelState)
        mode_changed(mode: AutomationMode)
    """

    def __init__(self, channel_count: int = 32):
        if channel_count < 1:
            raise ParameterError(f"Channel count must be >= 1, got {channel_count}")

        self.channel_count = channel_count
        self.channel_changed = EventSource('channel_changed')
        self.mode_changed = EventSource('mode_changed')

        self._lock = threading.Lock()
        self._channels = [ChannelState(channel=n, label=f'CH {n}') for n in range(1, channel_count + 1)]
        self._mode = AutomationMode.READ
        self._controller: Optional['ConsoleController'] = None

    @property
    def automation_mode(self) -> AutomationMode:
        return self._mode

    @property
    def channels(self) -> List[ChannelState]:
        with self._lock:
            return list(self._channels)

    def channel(self, number: int) -> ChannelState:
        """
        Raises:
            ParameterError: channel out of range
        """
        self._check_channel(number)
        with self._lock:
            return self._channels[number - 1]

    # -- Updates ------------------------------------------------------------

    def record_fader(self, channel: int, level: int) -> ChannelState:
        return self._update(channel, fader_level=level)

    def record_switch(self, channel: int, switch_type: SwitchType, on: bool) -> ChannelState:
        return self._update(channel, **{SWITCH_FIELDS[switch_type]: on})

    def set_label(self, channel: int, label: str) -> ChannelState:
        return self._update(channel, label=label)

    def set_selected(self, channel: int, selected: bool) -> ChannelState:
        return self._update(channel, selected=selected)

    def set_vca_group(self, channel: int, group: int) -> ChannelState:
        if not (0 <= group <= 8):
            raise ParameterError(f"VCA group must be 0-8, got {group}")
        return self._update(channel, vca_group=group)

    def record_automation_mode(self, mode: AutomationMode) -> None:
        """Console-wide; mirrored onto every strip for display"""
        with self._lock:
            if mode is self._mode:
                return
            self._mode = mode
            self._channels = [replace(c, automation_mode=mode) for c in self._channels]
            changed = list(self._channels)

        logger.info(f"Automation mode changed to {mode.name}")
        self.mode_changed.fire(mode)
        for state in changed:
            self.channel_changed.fire(state)

    def apply_message(self, message: Message) -> bool:
        """
        Apply a console message

        Returns:
            True if the message changed model state
        """
        if isinstance(message, FaderUpdate):
            if not self._valid(message.channel):
                return False
            self.record_fader(message.channel, message.level)
            return True

        if isinstance(message, SwitchUpdate):
            if not self._valid(message.channel):
                return False
            self.record_switch(message.channel, message.switch_type, message.on)
            return True

        if isinstance(message, ModeUpdate):
            self.record_automation_mode(message.mode)
            return True

        return False

    def _update(self, channel: int, **changes) -> ChannelState:
        self._check_channel(channel)
        with self._lock:
            current = self._channels[channel - 1]
            state = replace(current, **changes)
            if state == current:
                return current
            self._channels[channel - 1] = state

        self.channel_changed.fire(state)
        return state

    def _valid(self, channel: int) -> bool:
        if 1 <= channel <= self.channel_count:
            return True
        logger.warning(f"Console reported channel {channel}, outside 1-{self.channel_count}")
        return False

    def _check_channel(self, channel: int) -> None:
        if not (1 <= channel <= self.channel_count):
            raise ParameterError(f"Channel must be 1-{self.channel_count}, got {channel}")

    # -- Controller wiring --------------------------------------------------

    def attach(self, controller: 'ConsoleController') -> None:
        """Follow the controller's data_received events"""
        self.detach()
        controller.data_received += self.apply_message
        self._controller = controller

    def detach(self) -> None:
        if self._controller is not None:
            self._controller.data_received -= self.apply_message
            self._controller = None
