"""
Eagle Automation - Main Window

Console connection, automation mode selection and channel strips.
"""

import sys
import logging
import argparse
import threading
from dataclasses import replace
from typing import Dict, Optional, Tuple

from PyQt5.QtWidgets import (
    QMainWindow, QApplication, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
    QStatusBar, QAction, QMessageBox, QDialog, QFormLayout, QComboBox,
    QDialogButtonBox, QLabel, QGroupBox, QPushButton, QScrollArea, QButtonGroup
)
from PyQt5.QtCore import QObject, pyqtSignal

from ..config import AppConfig, load_config, DEFAULT_CONFIG_FILE
from ..controller import ConsoleController
from ..channel_model import ConsoleModel, ChannelState
from ..logging_setup import configure_logging, shutdown_logging
from ..protocol import AutomationMode, Message, TimeCodeSync, ErrorMessage
from ..serial_comm import SerialTransport, ConnectionParameters, Parity, StopBits
from .channel_strip_widget import ChannelStripWidget

logger = logging.getLogger(__name__)


BAUD_RATES = ['9600', '19200', '38400', '57600', '115200']

CONNECT_FAILED_TEXT = (
    "Could not connect to the console on {port}.\n\n"
    "{reason}\n\n"
    "Please check:\n"
    "- The serial port is correct and not used by another program\n"
    "- The RS-232 cable is connected\n"
    "- The console is powered on"
)


CHANNELS_PER_ROW = [8, 16, 24, 32]
DEFAULT_CHANNELS_PER_ROW = 8

UNHANDLED_ERROR_TEXT = (
    "An error occurred: {error}\n\n"
    "Please save your work and restart the application."
)


def grid_position(index: int, per_row: int) -> Tuple[int, int]:
    """(row, column) of the index-th channel strip"""
    if per_row < 1:
        raise ValueError(f"Channels per row must be >= 1, got {per_row}")
    return divmod(index, per_row)


class ExceptionReporter(QObject):
    """
    Last-chance handler for exceptions nobody caught

    Installed as sys.excepthook and threading.excepthook. The exception is
    logged at CRITICAL and shown in a message box; the signal hop puts the
    box on the GUI thread when the exception came from a worker thread.
    """

    error = pyqtSignal(str, str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.error.connect(self._show)
        self._previous_excepthook = None
        self._previous_thread_excepthook = None

    def install(self):
        self._previous_excepthook = sys.excepthook
        self._previous_thread_excepthook = threading.excepthook
        sys.excepthook = self.handle_exception
        threading.excepthook = self.handle_thread_exception

    def uninstall(self):
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        if self._previous_thread_excepthook is not None:
            threading.excepthook = self._previous_thread_excepthook
            self._previous_thread_excepthook = None

    def handle_exception(self, exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))
        self.error.emit("Error", UNHANDLED_ERROR_TEXT.format(error=exc_value))

    def handle_thread_exception(self, args):
        if issubclass(args.exc_type, SystemExit):
            return
        name = args.thread.name if args.thread is not None else 'unknown'
        logger.critical(
            f"Unhandled exception in thread {name}",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback)
        )
        self.error.emit("Fatal Error", UNHANDLED_ERROR_TEXT.format(error=args.exc_value))

    def _show(self, title: str, text: str):
        QMessageBox.critical(None, title, text)


class ControllerBridge(QObject):
    """
    Re-emits controller and model events as Qt signals

    Controller events fire on the serial reader thread; queued signal
    delivery moves them onto the GUI thread.
    """

    connection_changed = pyqtSignal(bool, str)
    message_received = pyqtSignal(object)
    channel_changed = pyqtSignal(object)

    def __init__(self, controller: ConsoleController, model: ConsoleModel, parent=None):
        super().__init__(parent)
        self._controller = controller
        self._model = model
        controller.connection_status_changed += self._on_status
        controller.data_received += self._on_message
        model.channel_changed += self._on_channel

    def _on_status(self, connected: bool, reason: Optional[str]):
        self.connection_changed.emit(connected, reason or '')

    def _on_message(self, message: Message):
        self.message_received.emit(message)

    def _on_channel(self, state: ChannelState):
        self.channel_changed.emit(state)

    def detach(self):
        self._controller.connection_status_changed -= self._on_status
        self._controller.data_received -= self._on_message
        self._model.channel_changed -= self._on_channel


class ConnectionDialog(QDialog):
    """Serial port settings dialog"""

    def __init__(self, params: ConnectionParameters, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Connect to Console")
        self.setModal(True)
        self.setMinimumWidth(320)
        self._params = params
        self._setup_ui()
        self._refresh_ports()

    def _setup_ui(self):
        layout = QFormLayout(self)

        self.port_combo = QComboBox()
        self.port_combo.setEditable(True)
        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self._refresh_ports)

        port_layout = QHBoxLayout()
        port_layout.addWidget(self.port_combo, stretch=1)
        port_layout.addWidget(self.refresh_btn)
        layout.addRow("Serial Port:", port_layout)

        self.baud_combo = QComboBox()
        self.baud_combo.setEditable(True)
        self.baud_combo.addItems(BAUD_RATES)
        self.baud_combo.setCurrentText(str(self._params.baudrate))
        layout.addRow("Baud Rate:", self.baud_combo)

        self.data_bits_combo = QComboBox()
        self.data_bits_combo.addItems(['5', '6', '7', '8'])
        self.data_bits_combo.setCurrentText(str(self._params.bytesize))
        layout.addRow("Data Bits:", self.data_bits_combo)

        self.parity_combo = QComboBox()
        self.parity_combo.addItems([p.value for p in Parity])
        self.parity_combo.setCurrentText(self._params.parity.value)
        layout.addRow("Parity:", self.parity_combo)

        self.stop_bits_combo = QComboBox()
        self.stop_bits_combo.addItems([s.value for s in StopBits if s is not StopBits.NONE])
        self.stop_bits_combo.setCurrentText(self._params.stopbits.value)
        layout.addRow("Stop Bits:", self.stop_bits_combo)

        buttons = QDialogButtonBox(
            QDialogButtonBox.Ok | QDialogButtonBox.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def _refresh_ports(self):
        """Refresh available ports"""
        self.port_combo.clear()
        self.port_combo.addItems(SerialTransport.list_ports())

        preferred = self._params.port or SerialTransport.get_default_port()
        if preferred:
            self.port_combo.setCurrentText(preferred)

    def get_params(self) -> Optional[ConnectionParameters]:
        """Selected settings, or None if the baud rate is not a number"""
        port = self.port_combo.currentText().strip()
        try:
            baudrate = int(self.baud_combo.currentText())
        except ValueError:
            return None
        if not port:
            return None

        return replace(
            self._params,
            port=port,
            baudrate=baudrate,
            bytesize=int(self.data_bits_combo.currentText()),
            parity=Parity(self.parity_combo.currentText()),
            stopbits=StopBits(self.stop_bits_combo.currentText()),
        )


class MainWindow(QMainWindow):
    """
    Eagle Automation Main Window

    Features:
    - Console connection management
    - Console-wide automation mode buttons
    - Channel strips in rows of 8 to 32, scrollable
    - Status bar with connection and time code
    """

    def __init__(self, config: AppConfig, controller: Optional[ConsoleController] = None):
        super().__init__()

        self.config = config
        self.controller = controller or ConsoleController.from_config(config)
        self.model = ConsoleModel(config.console.channel_count)
        self.model.attach(self.controller)

        self.bridge = ControllerBridge(self.controller, self.model, self)
        self.bridge.connection_changed.connect(self._on_connection_changed)
        self.bridge.message_received.connect(self._on_message)
        self.bridge.channel_changed.connect(self._on_channel_changed)

        self.strips: Dict[int, ChannelStripWidget] = {}

        self._setup_ui()
        self._setup_menu()
        self._setup_statusbar()

    def _setup_ui(self):
        """Build main UI"""
        self.setWindowTitle(f"Eagle Automation - {self.config.console.model}")
        self.setMinimumSize(1000, 600)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)

        # Connection panel
        conn_group = QGroupBox("Connection")
        conn_layout = QHBoxLayout(conn_group)

        self.port_label = QLabel("Not connected")
        self.port_label.setStyleSheet("font-weight: bold;")

        self.connect_btn = QPushButton("Connect")
        self.connect_btn.setMinimumWidth(100)
        self.connect_btn.clicked.connect(self._on_connect)

        self.disconnect_btn = QPushButton("Disconnect")
        self.disconnect_btn.setMinimumWidth(100)
        self.disconnect_btn.clicked.connect(self._on_disconnect)
        self.disconnect_btn.setEnabled(False)

        self.timecode_label = QLabel("--:--:--:--")
        self.timecode_label.setStyleSheet("font-family: monospace; font-size: 18px;")

        conn_layout.addWidget(QLabel("Port:"))
        conn_layout.addWidget(self.port_label)
        conn_layout.addStretch()
        conn_layout.addWidget(QLabel("Time Code:"))
        conn_layout.addWidget(self.timecode_label)
        conn_layout.addStretch()
        conn_layout.addWidget(self.connect_btn)
        conn_layout.addWidget(self.disconnect_btn)
        layout.addWidget(conn_group)

        # Automation mode
        mode_group = QGroupBox("Automation Mode")
        mode_layout = QHBoxLayout(mode_group)
        self.mode_buttons = QButtonGroup(self)
        self.mode_buttons.setExclusive(True)
        for mode in AutomationMode:
            button = QPushButton(mode.name)
            button.setCheckable(True)
            button.setMinimumWidth(90)
            self.mode_buttons.addButton(button, mode.value)
            mode_layout.addWidget(button)
        self.mode_buttons.button(self.model.automation_mode.value).setChecked(True)
        self.mode_buttons.buttonClicked[int].connect(self._on_mode_clicked)
        mode_layout.addStretch()
        mode_layout.addWidget(QLabel("Channels per row:"))
        self.per_row_combo = QComboBox()
        self.per_row_combo.addItems([str(n) for n in CHANNELS_PER_ROW])
        self.per_row_combo.setCurrentText(str(DEFAULT_CHANNELS_PER_ROW))
        self.per_row_combo.currentTextChanged.connect(self._on_channels_per_row_changed)
        mode_layout.addWidget(self.per_row_combo)
        layout.addWidget(mode_group)

        # Channel strips
        strips_container = QWidget()
        self.strips_layout = QGridLayout(strips_container)
        self.strips_layout.setSpacing(4)
        for state in self.model.channels:
            strip = ChannelStripWidget(state.channel, self.controller, self.model)
            strip.error.connect(self._on_error)
            self.strips[state.channel] = strip
        self._relayout_strips(DEFAULT_CHANNELS_PER_ROW)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(strips_container)
        layout.addWidget(scroll, stretch=1)

    def _relayout_strips(self, per_row: int):
        """Place the channel strips in rows of per_row"""
        for strip in self.strips.values():
            self.strips_layout.removeWidget(strip)
        for index, channel in enumerate(sorted(self.strips)):
            row, column = grid_position(index, per_row)
            self.strips_layout.addWidget(self.strips[channel], row, column)
        self.channels_per_row = per_row

    def _on_channels_per_row_changed(self, text: str):
        per_row = int(text)
        self._relayout_strips(per_row)
        logger.info(f"Channels per row changed to {per_row}")

    def _setup_menu(self):
        """Build menu bar"""
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")

        connect_action = QAction("&Connect...", self)
        connect_action.setShortcut("Ctrl+O")
        connect_action.triggered.connect(self._on_connect)
        file_menu.addAction(connect_action)

        disconnect_action = QAction("&Disconnect", self)
        disconnect_action.setShortcut("Ctrl+D")
        disconnect_action.triggered.connect(self._on_disconnect)
        file_menu.addAction(disconnect_action)

        file_menu.addSeparator()

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut("Ctrl+Q")
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        help_menu = menubar.addMenu("&Help")

        about_action = QAction("&About", self)
        about_action.triggered.connect(self._show_about)
        help_menu.addAction(about_action)

    def _setup_statusbar(self):
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)
        self.status_bar.showMessage("Ready. Click Connect to start.")

    # -- Connection ---------------------------------------------------------

    def _on_connect(self):
        """Show connection dialog and connect"""
        params = self.controller.params or self.config.serial_port.to_connection_parameters()
        dialog = ConnectionDialog(params, self)
        if dialog.exec_() != QDialog.Accepted:
            return

        params = dialog.get_params()
        if params is None:
            QMessageBox.warning(self, "Connection", "Select a port and a numeric baud rate.")
            return

        self.status_bar.showMessage(f"Connecting to {params.port}...")
        QApplication.processEvents()

        if not self.controller.connect(params):
            reason = str(self.controller.last_error or "Unknown error")
            QMessageBox.warning(
                self, "Connection Failed",
                CONNECT_FAILED_TEXT.format(port=params.port, reason=reason)
            )

    def _on_disconnect(self):
        self.controller.disconnect()

    def _on_connection_changed(self, connected: bool, reason: str):
        if connected:
            port = self.controller.params.port
            self.port_label.setText(port)
            self.port_label.setStyleSheet("font-weight: bold; color: #4CAF50;")
            self.status_bar.showMessage(f"Connected to {port}")
        else:
            self.port_label.setText("Not connected")
            self.port_label.setStyleSheet("font-weight: bold; color: #333;")
            if reason:
                self.status_bar.showMessage(f"Disconnected: {reason}")
            else:
                self.status_bar.showMessage("Disconnected")

        self.connect_btn.setEnabled(not connected)
        self.disconnect_btn.setEnabled(connected)

    # -- Automation / channels ----------------------------------------------

    def _on_mode_clicked(self, mode_id: int):
        mode = AutomationMode(mode_id)
        if self.controller.set_automation_mode(mode):
            self.model.record_automation_mode(mode)
            self.status_bar.showMessage(f"Automation mode: {mode.name}", 3000)
        else:
            # Put the previous mode back
            self.mode_buttons.button(self.model.automation_mode.value).setChecked(True)
            self._on_error(f"Could not set {mode.name} mode, check console connection")

    def _on_channel_changed(self, state: ChannelState):
        strip = self.strips.get(state.channel)
        if strip is not None:
            strip.show_state(state)
        self.mode_buttons.button(self.model.automation_mode.value).setChecked(True)

    def _on_message(self, message: Message):
        if isinstance(message, TimeCodeSync):
            self.timecode_label.setText(message.value)
        elif isinstance(message, ErrorMessage):
            self.status_bar.showMessage(f"Console: {message.text}", 5000)

    def _on_error(self, message: str):
        self.status_bar.showMessage(f"Error: {message}", 5000)
        logger.error(message)

    def _show_about(self):
        QMessageBox.about(
            self,
            "About Eagle Automation",
            f"Eagle Automation\n\n"
            f"Automation control for the {self.config.console.model}\n"
            f"{self.config.console.channel_count} channels\n\n"
            "Version: 1.0.0"
        )

    def closeEvent(self, event):
        """Handle window close"""
        self.controller.disconnect()
        self.model.detach()
        self.bridge.detach()
        event.accept()


def main():
    """Application entry point"""
    parser = argparse.ArgumentParser(description='Eagle Automation console control')
    parser.add_argument('-c', '--config', default=DEFAULT_CONFIG_FILE, help='YAML settings file')
    args = parser.parse_args()

    config = load_config(args.config, create_default=True)
    configure_logging(config.logging)

    app = QApplication(sys.argv)
    app.setStyle('Fusion')

    reporter = ExceptionReporter()
    reporter.install()

    window = MainWindow(config)
    window.show()

    try:
        exit_code = app.exec_()
    finally:
        reporter.uninstall()
        logger.info("=== Eagle Automation shutting down ===")
        shutdown_logging()
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
