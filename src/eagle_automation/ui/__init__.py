"""
Eagle Automation UI Module

PyQt5 control surface for the console.
"""

from .main_window import MainWindow, ConnectionDialog, main
from .channel_strip_widget import ChannelStripWidget

__all__ = [
    'MainWindow',
    'ConnectionDialog',
    'main',
    'ChannelStripWidget',
]
