"""
Eagle Automation Basic Usage Example

Connects to the console, switches to WRITE mode and moves a few faders
while printing every message the console sends back.
"""

import sys
import time
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def example_with_context_manager():
    """
    Context manager example

    Connects on entry and disconnects on exit.
    """
    from eagle_automation import (
        ConsoleController, ConnectionParameters, AutomationMode, SwitchType
    )

    # Port (change to match your setup)
    port = 'COM3' if sys.platform == 'win32' else '/dev/ttyUSB0'

    print(f"\n{'='*50}")
    print("Eagle Automation Basic Usage Example")
    print(f"Port: {port}")
    print(f"{'='*50}\n")

    controller = ConsoleController(ConnectionParameters(port), channel_count=32)
    controller.data_received += lambda message: print(f"  <- {message!r}")

    with controller:
        if not controller.is_connected:
            print(f"Connection failed: {controller.last_error}")
            return

        print("[Automation]")
        controller.set_automation_mode(AutomationMode.WRITE)

        print("\n[Faders]")
        for channel in range(1, 5):
            if controller.set_fader_level(channel, 25 * channel):
                print(f"  CH{channel} -> {25 * channel}")

        print("\n[Switches]")
        controller.set_switch_state(3, SwitchType.MUTE, True)
        controller.set_switch_state(4, SwitchType.SOLO, True)

        time.sleep(1.0)
        controller.set_automation_mode(AutomationMode.READ)


def example_from_config():
    """Build the controller from eagle_automation.yaml"""
    from eagle_automation import ConsoleController, load_config
    from eagle_automation.logging_setup import configure_logging

    config = load_config('eagle_automation.yaml', create_default=True)
    configure_logging(config.logging)

    controller = ConsoleController.from_config(config)
    if controller.connect():
        print(f"Connected to {controller.params}")
        controller.disconnect()
    else:
        print(f"Connection failed: {controller.last_error}")


if __name__ == '__main__':
    example_with_context_manager()
