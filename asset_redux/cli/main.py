from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .. import __version__
from ..core.logger import configure_logging
from .commands import bundles as cmd_bundles
from .commands import merge as cmd_merge
from .commands import scan as cmd_scan


def entrypoint():
    sys.exit(main())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-redux", description="Inspect and exercise plugin asset overrides"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    s = sub.add_parser("scan", help="Register plugins and report overrides and conflicts")
    s.add_argument("plugins", type=str, help="Directory containing plugin folders")
    s.add_argument("--settings", type=str, default=None, help="Runtime settings JSON file")
    s.add_argument(
        "--priority",
        action="store_true",
        help="Resolve contested keys by module priority instead of registration order",
    )
    s.add_argument("--json", action="store_true", help="Print the report as JSON")

    m = sub.add_parser("merge", help="Run a resource's text pipeline over a file")
    m.add_argument("plugins", type=str, help="Directory containing plugin folders")
    m.add_argument("resource", type=str, help="Text resource name (e.g. 'build')")
    m.add_argument("file", type=str, help="Original text file")
    m.add_argument("--out", type=str, default=None, help="Write result here instead of stdout")
    m.add_argument("--settings", type=str, default=None, help="Runtime settings JSON file")

    b = sub.add_parser("bundles", help="List loaded bundle entries")
    b.add_argument("plugins", type=str, help="Directory containing plugin folders")
    b.add_argument("--settings", type=str, default=None, help="Runtime settings JSON file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.debug else None)

    if args.command == "scan":
        return cmd_scan.run(args)
    if args.command == "merge":
        return cmd_merge.run(args)
    if args.command == "bundles":
        return cmd_bundles.run(args)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    entrypoint()
