from __future__ import annotations

import sys
from pathlib import Path

from ._common import load_context


def run(args) -> int:
    context, _ = load_context(args)
    source = Path(args.file)
    original = source.read_text(encoding="utf-8")

    changed, result = context.pipeline.resolve(args.resource, original)
    if not changed:
        print(f"No processors registered for '{args.resource}'", file=sys.stderr)

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(result, encoding="utf-8")
    else:
        sys.stdout.write(result)
    return 0
