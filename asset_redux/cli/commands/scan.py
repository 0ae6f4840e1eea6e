from __future__ import annotations

import json

from ._common import load_context


def run(args) -> int:
    overrides = {"conflict_policy": "priority"} if args.priority else {}
    context, report = load_context(args, **overrides)
    registry = context.registry

    modules = [
        {
            "name": m.name,
            "priority": m.priority,
            "sprites": len(m.sprites) + len(m.bundle_previews),
            "textures": len(m.textures),
            "processors": len(m.text_processors),
            "fragments": {k: len(v) for k, v in m.loaded_fragments.items()},
            "bundles": len(m.loaded_bundles),
            "overrides": m.override_count(),
        }
        for m in registry.active_modules
    ]
    payload = {
        "modules": modules,
        "sprites": {n: context.sprites.path_for(n) for n in sorted(context.sprites.names())},
        "textures": {n: context.textures.path_for(n) for n in sorted(context.textures.names())},
        "text_resources": sorted(context.pipeline.names()),
        "rejected": report.rejected,
        "failed": report.failed,
        "conflicts": [
            {"kind": c.kind, "key": c.key, "previous": c.previous, "winner": c.winner}
            for c in report.conflicts
        ],
    }

    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    print(f"Modules ({len(modules)}), highest priority first:")
    for m in modules:
        print(
            f"  {m['name']} [priority {m['priority']}] "
            f"sprites={m['sprites']} textures={m['textures']} "
            f"processors={m['processors']} bundles={m['bundles']} "
            f"total={m['overrides']}"
        )
    print(f"Sprite overrides: {len(payload['sprites'])}")
    print(f"Texture overrides: {len(payload['textures'])}")
    print(f"Text resources: {', '.join(payload['text_resources']) or '-'}")
    for line in report.summary_lines()[1:]:
        print(line)
    return 0
