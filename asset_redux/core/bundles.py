"""
Bundle folders.

Each subfolder of a declared bundle folder becomes one entry keyed
``{moduleName}_{subfolder}``: the primary data file is read into memory and
an optional preview image is registered as a sprite override.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple, TypeVar

from .logger import get_logger
from .modules import PluginSource, ResourceModule
from .paths import resolve_path
from .settings import RuntimeSettings

log = get_logger(__name__)

R = TypeVar("R")


def bundle_key(module_name: str, folder_name: str) -> str:
    return f"{module_name}_{folder_name}"


def preview_key(key: str, prefix: str = "Blueprint_") -> str:
    return key if key.startswith(prefix) else f"{prefix}{key}"


def preload_bundle_folders(
    module: ResourceModule, source: PluginSource, settings: RuntimeSettings
) -> int:
    """Fill ``module.loaded_bundles`` and ``module.bundle_previews``.

    Returns the number of entries loaded. Missing folders and unreadable
    files are logged and skipped.
    """
    loaded = 0
    for relative in module.bundle_folders:
        folder = Path(resolve_path(relative, source.root))
        if not folder.is_dir():
            log.warning(f"[Bundles] {module.name}: bundle folder not found: {folder}")
            continue

        for sub in sorted(p for p in folder.iterdir() if p.is_dir()):
            data_file = sub / settings.bundle_data_file
            if not data_file.is_file():
                continue
            key = bundle_key(module.name, sub.name)
            try:
                module.loaded_bundles[key] = data_file.read_text(encoding="utf-8-sig")
            except (OSError, UnicodeDecodeError) as exc:
                log.error(f"[Bundles] Failed to read {data_file}: {exc}")
                continue
            loaded += 1

            preview = sub / settings.bundle_preview_file
            if preview.is_file():
                module.bundle_previews[preview_key(key, settings.preview_prefix)] = str(
                    preview.resolve()
                )
    if loaded:
        log.debug(f"[Bundles] {module.name}: loaded {loaded} bundle entr(ies)")
    return loaded


def inject_bundle_records(
    existing: List[R],
    entries: Iterable[Tuple[str, str]],
    key_of: Callable[[R], Optional[str]],
    build: Callable[[str, str], Optional[R]],
) -> List[R]:
    """Append a record for every bundle entry whose key is not already present.

    Key comparison ignores case. ``build`` turns ``(key, text)`` into a host
    record; failures are logged and that entry is skipped.
    """
    seen: Set[str] = set()
    for record in existing:
        key = key_of(record)
        if key:
            seen.add(key.lower())

    added: List[R] = []
    for key, text in entries:
        if key.lower() in seen:
            continue
        try:
            record = build(key, text)
        except Exception as exc:
            log.error(f"[Bundles] Failed to build record {key}: {exc}")
            continue
        if record is None:
            continue
        seen.add(key.lower())
        existing.append(record)
        added.append(record)
    return added
