# serialdesk/cli/main.py
from __future__ import annotations

from typing import Optional

from serialdesk.core.context import Context
from serialdesk.core.errors import SerialDeskError

from serialdesk.cli.args import config_from_args, parse_args
from serialdesk.cli.commands import (
    cmd_monitor,
    cmd_ports,
    cmd_profiles,
    cmd_send,
    configure_logging,
)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        if args.cmd == "ports":
            return cmd_ports()
        if args.cmd == "profiles":
            return cmd_profiles(context=Context.load(args.config_dir))

        cfg = config_from_args(args)
        if args.cmd == "send":
            return cmd_send(cfg, text=args.text, wait_s=args.wait)
        if args.cmd == "monitor":
            return cmd_monitor(cfg)

        return 2
    except SerialDeskError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
