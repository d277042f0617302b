"""Legacy entry point for launching the Pacesetter GUI or CLI."""

from __future__ import annotations

import os
import sys


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    # Check for --debug flag BEFORE any imports that use logging
    if "--debug" in args:
        os.environ["PACESETTER_DEBUG"] = "1"
        args.remove("--debug")

    from pacesetter.cli import main as cli_main

    return cli_main(args)


if __name__ == "__main__":
    raise SystemExit(main())
