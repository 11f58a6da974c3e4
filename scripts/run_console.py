#!/usr/bin/env python3
"""
Eagle Automation Launcher Script

Console control window: connection, automation mode and channel strips.

Usage:
    python scripts/run_console.py [--config eagle_automation.yaml]

Requirements:
    pip install PyQt5
"""

import sys
import os

# Add src to path for development
src_path = os.path.join(os.path.dirname(__file__), '..', 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from eagle_automation.ui.main_window import main

if __name__ == '__main__':
    main()
