# serialdesk/cli/args.py
from __future__ import annotations

import argparse
from typing import Any, Dict, Optional

from serialdesk.app.config import LINE_ENDINGS, SerialDeskConfig
from serialdesk.model.settings import DATA_BITS, FLOW_CONTROLS, PARITIES, STOP_BITS

# argparse dest -> SerialSettings field
SETTINGS_FLAGS = {
    "baud": "baud_rate",
    "data_bits": "data_bits",
    "stop_bits": "stop_bits",
    "parity": "parity",
    "flow_control": "flow_control",
    "buffer_size": "buffer_size",
    "package_timeout_ms": "package_timeout_ms",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="serialdesk", description="Serial port debugging assistant")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log session events to stderr.")
    parser.add_argument("--log-file", default=None, help="Also write session events to this file.")
    parser.add_argument("--config-dir", default=None, help="Directory holding serial.yml (default: bundled).")

    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("ports", help="List detected serial ports.")
    sub.add_parser("profiles", help="List configured settings profiles.")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-p", "--port", required=True, help="Device name or pyserial URL (e.g. loop://).")
    common.add_argument("--profile", default=None, help="Settings profile from serial.yml.")
    common.add_argument("--baud", type=int, default=None)
    common.add_argument("--data-bits", type=int, choices=DATA_BITS, default=None)
    common.add_argument("--stop-bits", type=int, choices=STOP_BITS, default=None)
    common.add_argument("--parity", choices=PARITIES, default=None)
    common.add_argument("--flow-control", choices=FLOW_CONTROLS, default=None)
    common.add_argument("--buffer-size", type=int, default=None, help="Max bytes per read (64..4096).")
    common.add_argument(
        "--package-timeout-ms",
        type=int,
        default=None,
        help="Merge chunks arriving within this window into one entry (0 = off, max 5000).",
    )
    common.add_argument(
        "--line-ending",
        choices=sorted(LINE_ENDINGS.keys()),
        default="none",
        help="Appended to every sent line.",
    )

    sub.add_parser("monitor", parents=[common], help="Interactive session: stdin lines are sent.")

    p_send = sub.add_parser("send", parents=[common], help="Send one message and print the exchange.")
    p_send.add_argument("text", help="Text to send.")
    p_send.add_argument("--wait", type=float, default=1.0, help="Seconds to wait for replies.")

    return parser


def settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Only the settings flags that were given on the command line."""
    return {
        field: getattr(args, dest)
        for dest, field in SETTINGS_FLAGS.items()
        if getattr(args, dest, None) is not None
    }


def config_from_args(args: argparse.Namespace) -> SerialDeskConfig:
    return SerialDeskConfig(
        port=args.port,
        profile=args.profile,
        settings_overrides=settings_overrides(args),
        config_dir=args.config_dir,
        line_ending=args.line_ending,
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
