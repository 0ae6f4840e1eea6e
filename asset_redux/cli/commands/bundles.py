from __future__ import annotations

from ._common import load_context


def run(args) -> int:
    context, _ = load_context(args)
    previews = {
        name.lower() for m in context.registry.active_modules for name in m.bundle_previews
    }
    prefix = context.settings.preview_prefix
    count = 0
    for key, text in context.bundle_entries():
        marker = " (preview)" if f"{prefix}{key}".lower() in previews else ""
        print(f"{key}\t{len(text)} chars{marker}")
        count += 1
    if not count:
        print("No bundle entries loaded")
    return 0
