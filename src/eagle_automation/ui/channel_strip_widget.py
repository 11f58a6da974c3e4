"""
Channel Strip Widget

One console channel: vertical fader, MUTE/SOLO/EQ switches and the current
automation mode. Sends through the controller and shows the mirrored state
from the ConsoleModel.
"""

import logging
from typing import TYPE_CHECKING

from PyQt5.QtWidgets import (
    QVBoxLayout, QPushButton, QLabel, QSlider, QFrame
)
from PyQt5.QtCore import Qt, pyqtSignal

from ..channel_model import ChannelState
from ..protocol import SwitchType

if TYPE_CHECKING:
    from ..controller import ConsoleController
    from ..channel_model import ConsoleModel

logger = logging.getLogger(__name__)


SWITCH_STYLE = """
    QPushButton {{
        background-color: #424242;
        color: white;
        font-weight: bold;
        border-radius: 3px;
        padding: 4px;
    }}
    QPushButton:checked {{
        background-color: {color};
    }}
"""

SWITCH_COLORS = {
    SwitchType.MUTE: '#F44336',   # Red
    SwitchType.SOLO: '#FFC107',   # Amber
    SwitchType.EQ: '#2196F3',     # Blue
}

MODE_COLORS = {
    'READ': '#4CAF50',
    'WRITE': '#F44336',
    'UPDATE': '#FF9800',
    'TOUCH': '#9C27B0',
    'ISOLATE': '#9E9E9E',
    'GLIDE': '#03A9F4',
}


class ChannelStripWidget(QFrame):
    """
    Channel strip

    Signals:
        error: Emitted when a command could not be sent
    """

    error = pyqtSignal(str)

    def __init__(
        self,
        channel: int,
        controller: 'ConsoleController',
        model: 'ConsoleModel',
        parent=None
    ):
        super().__init__(parent)

        self.channel = channel
        self.controller = controller
        self.model = model
        self._updating = False

        self._setup_ui()
        self.show_state(model.channel(channel))

    def _setup_ui(self):
        self.setFrameStyle(QFrame.StyledPanel | QFrame.Raised)
        self.setFixedWidth(100)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(4)

        self.name_label = QLabel()
        self.name_label.setAlignment(Qt.AlignCenter)
        self.name_label.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.name_label)

        self.mode_label = QLabel()
        self.mode_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(self.mode_label)

        self.switch_buttons = {}
        for switch_type, color in SWITCH_COLORS.items():
            button = QPushButton(switch_type.name)
            button.setCheckable(True)
            button.setStyleSheet(SWITCH_STYLE.format(color=color))
            button.toggled.connect(
                lambda on, st=switch_type: self._on_switch_toggled(st, on)
            )
            layout.addWidget(button)
            self.switch_buttons[switch_type] = button

        self.fader = QSlider(Qt.Vertical)
        self.fader.setRange(self.controller.fader_min, self.controller.fader_max)
        self.fader.setMinimumHeight(200)
        self.fader.setTracking(False)  # send on release, not on every pixel
        self.fader.valueChanged.connect(self._on_fader_changed)
        layout.addWidget(self.fader, stretch=1, alignment=Qt.AlignHCenter)

        self.level_label = QLabel()
        self.level_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(self.level_label)

    def show_state(self, state: ChannelState):
        """Refresh every control from a model snapshot without sending"""
        self._updating = True
        try:
            self.name_label.setText(state.label or f"CH {state.channel}")
            self.fader.setValue(state.fader_level)
            self.level_label.setText(str(state.fader_level))
            for switch_type, button in self.switch_buttons.items():
                button.setChecked(state.switch(switch_type))

            mode = state.automation_mode.name
            self.mode_label.setText(mode)
            self.mode_label.setStyleSheet(
                f"color: white; font-weight: bold; border-radius: 3px; "
                f"background-color: {MODE_COLORS.get(mode, '#9E9E9E')};"
            )
        finally:
            self._updating = False

    def _on_fader_changed(self, level: int):
        if self._updating:
            return

        if self.controller.set_fader_level(self.channel, level):
            self.model.record_fader(self.channel, level)
            self.level_label.setText(str(level))
        else:
            logger.warning(f"Failed to send fader command for CH{self.channel}")
            self.error.emit(f"CH{self.channel}: fader command failed, check console connection")
            self.show_state(self.model.channel(self.channel))

    def _on_switch_toggled(self, switch_type: SwitchType, on: bool):
        if self._updating:
            return

        if self.controller.set_switch_state(self.channel, switch_type, on):
            self.model.record_switch(self.channel, switch_type, on)
        else:
            logger.warning(f"Failed to send {switch_type.name} command for CH{self.channel}")
            self.error.emit(
                f"CH{self.channel}: {switch_type.name} command failed, check console connection"
            )
            self.show_state(self.model.channel(self.channel))
