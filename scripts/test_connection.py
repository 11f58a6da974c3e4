#!/usr/bin/env python3
"""
Eagle Automation Connection Test Script

Checks the RS-232 link to the console without the UI: opens the port,
optionally sends one command and prints every decoded message.
"""

import sys
import os
import time
import argparse
import logging

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from eagle_automation import (
    ConsoleController, ConnectionParameters, SerialTransport,
    AutomationMode, SwitchType, Parity, StopBits
)

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def list_ports():
    """Print the available serial ports"""
    ports = SerialTransport.list_ports()

    print("\nAvailable Serial Ports:")
    print("-" * 30)

    if ports:
        for port in ports:
            print(f"  {port}")
    else:
        print("  (No serial ports found)")

    print()


def test_connection(args) -> bool:
    """
    Connect, send the requested command and listen

    Returns:
        True if the link came up and every command was written
    """
    params = ConnectionParameters(
        port=args.port,
        baudrate=args.baud,
        parity=Parity(args.parity),
        stopbits=StopBits(args.stop_bits),
    )

    print(f"\n{'='*60}")
    print("Eagle Automation Connection Test")
    print(f"{'='*60}")
    print(f"Port: {params}")
    print(f"{'='*60}\n")

    controller = ConsoleController(channel_count=args.channels, fader_max=args.fader_max)
    controller.connection_status_changed += lambda connected, reason: print(
        f"  [STATUS] {'connected' if connected else 'disconnected'}"
        + (f" ({reason})" if reason else "")
    )
    controller.data_received += lambda message: print(f"  [RX] {message!r}")

    if not controller.connect(params):
        print(f"\n[FAIL] Connection error: {controller.last_error}")
        print("\nPossible causes:")
        print("  - Wrong port name")
        print("  - Port already in use")
        print("  - Console powered off or cable not connected")
        print("  - Permission denied (Linux: add user to dialout group)")
        return False

    print("[OK] Serial port connected\n")
    success = True

    try:
        if args.mode:
            mode = AutomationMode[args.mode.upper()]
            success &= _report(f"Automation mode {mode.name}",
                               controller.set_automation_mode(mode), controller)

        if args.fader:
            channel, level = args.fader
            success &= _report(f"CH{channel} fader -> {level}",
                               controller.set_fader_level(channel, level), controller)

        if args.switch:
            channel, name, state = args.switch
            switch_type = SwitchType[name.upper()]
            on = state.lower() in ('1', 'on', 'true')
            success &= _report(f"CH{int(channel)} {switch_type.name} -> {'ON' if on else 'OFF'}",
                               controller.set_switch_state(int(channel), switch_type, on), controller)

        if args.listen > 0:
            print(f"\n[LISTEN] {args.listen:.1f}s, press Ctrl+C to stop")
            try:
                time.sleep(args.listen)
            except KeyboardInterrupt:
                print()
    finally:
        controller.disconnect()

    print(f"\n{'='*60}")
    print("[SUCCESS] Link test passed" if success else "[FAIL] Some commands were not sent")
    print(f"{'='*60}\n")
    return success


def _report(label: str, ok: bool, controller: ConsoleController) -> bool:
    if ok:
        print(f"  [OK] {label}")
    else:
        print(f"  [FAIL] {label}: {controller.last_error}")
    return ok


def main():
    parser = argparse.ArgumentParser(
        description='Eagle Automation Connection Test',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --list                               # List available ports
  %(prog)s --port COM3 --listen 10              # Print console traffic for 10s
  %(prog)s --port COM3 --mode write             # Enter WRITE mode
  %(prog)s --port /dev/ttyUSB0 --fader 5 64     # Move fader 5 to 64
  %(prog)s --port COM3 --switch 3 mute on       # Mute channel 3
        """
    )

    parser.add_argument('--port', '-p', type=str,
                        help='Serial port name (e.g., COM3, /dev/ttyUSB0)')
    parser.add_argument('--list', '-l', action='store_true',
                        help='List available serial ports')
    parser.add_argument('--baud', '-b', type=int, default=19200,
                        help='Baud rate (default: 19200)')
    parser.add_argument('--parity', default='None',
                        choices=[p.value for p in Parity], help='Parity (default: None)')
    parser.add_argument('--stop-bits', default='One',
                        choices=[s.value for s in StopBits if s is not StopBits.NONE],
                        help='Stop bits (default: One)')
    parser.add_argument('--channels', type=int, default=32,
                        help='Console channel count (default: 32)')
    parser.add_argument('--fader-max', type=int, default=100,
                        help='Highest fader level (default: 100)')
    parser.add_argument('--mode', choices=[m.name.lower() for m in AutomationMode],
                        help='Set the automation mode')
    parser.add_argument('--fader', nargs=2, type=int, metavar=('CH', 'LEVEL'),
                        help='Move a fader')
    parser.add_argument('--switch', nargs=3, metavar=('CH', 'SWITCH', 'ON|OFF'),
                        help='Set a switch (mute, solo, eq, insert, dynamics)')
    parser.add_argument('--listen', type=float, default=2.0,
                        help='Seconds to print incoming messages (default: 2)')

    args = parser.parse_args()

    if args.list:
        list_ports()
        return 0

    if not args.port:
        parser.print_help()
        print("\nError: Please specify --port or --list")
        return 1

    if args.switch:
        channel, name, _ = args.switch
        if not channel.isdigit() or name.upper() not in SwitchType.__members__:
            parser.error(f"Invalid --switch {' '.join(args.switch)}")

    return 0 if test_connection(args) else 1


if __name__ == '__main__':
    sys.exit(main())
