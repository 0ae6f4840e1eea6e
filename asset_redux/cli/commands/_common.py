from __future__ import annotations

from pathlib import Path

from ...core.context import EpochReport, OverrideContext
from ...core.settings import load_settings
from ...core.version_gate import VersionGate


def load_context(args, **overrides) -> tuple[OverrideContext, EpochReport]:
    settings = load_settings(Path(args.settings) if getattr(args, "settings", None) else None)
    if overrides:
        settings = settings.model_copy(update=overrides)
    context = OverrideContext(settings, gate=VersionGate())
    report = context.load_plugins_dir(Path(args.plugins))
    return context, report
