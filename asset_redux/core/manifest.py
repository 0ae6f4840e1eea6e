"""
Plugin manifests.

A plugin is a directory holding an ``assetredux.json`` manifest next to its
asset files. Text processors are referenced as ``"file.py:function"`` and
imported from the plugin directory.
"""

from __future__ import annotations

import importlib.util
import json
import re
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .logger import get_logger
from .modules import PluginSource, ResourceModule
from .settings import RuntimeSettings
from .text_pipeline import TextProcessor

log = get_logger(__name__)


class ManifestError(ValueError):
    """A plugin manifest or one of its entry points is unusable."""


class ModuleManifest(BaseModel):
    name: str = Field(..., min_length=1)
    priority: int = 0
    target_version: Optional[str] = None
    description: Optional[str] = None

    # {asset name: path relative to the plugin directory}
    sprites: Dict[str, str] = Field(default_factory=dict)
    textures: Dict[str, str] = Field(default_factory=dict)

    bundle_folders: List[str] = Field(default_factory=list)
    # {resource name: folder of *.json fragments}
    fragment_folders: Dict[str, str] = Field(default_factory=dict)
    # {resource name: "file.py:function"}
    processors: Dict[str, str] = Field(default_factory=dict)


@dataclass
class DiscoveredPlugin:
    source: PluginSource
    module: ResourceModule
    manifest: ModuleManifest


def load_manifest(path: Path) -> ModuleManifest:
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Cannot read manifest {path}: {exc}") from exc
    try:
        return ModuleManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest {path}: {exc}") from exc


def _module_name_for(plugin_dir: Path, file_path: Path) -> str:
    raw = f"asset_redux_plugin_{plugin_dir.name}_{file_path.stem}"
    return re.sub(r"\W", "_", raw)


def load_entry_point(
    plugin_dir: Path, reference: str, loaded: Optional[Dict[Path, ModuleType]] = None
) -> TextProcessor:
    """Import ``"file.py:function"`` relative to *plugin_dir*."""
    file_part, sep, attr = reference.partition(":")
    if not sep or not file_part or not attr:
        raise ManifestError(f"Processor reference must look like 'file.py:function': {reference!r}")

    file_path = (plugin_dir / file_part).resolve()
    loaded = loaded if loaded is not None else {}
    module = loaded.get(file_path)
    if module is None:
        if not file_path.is_file():
            raise ManifestError(f"Processor file not found: {file_path}")
        spec = importlib.util.spec_from_file_location(
            _module_name_for(plugin_dir, file_path), file_path
        )
        if spec is None or spec.loader is None:
            raise ManifestError(f"Cannot create module spec for {file_path}")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            raise ManifestError(f"Failed to import {file_path}: {exc}") from exc
        loaded[file_path] = module

    func = getattr(module, attr, None)
    if func is None or not callable(func):
        raise ManifestError(f"{file_path.name} has no callable '{attr}'")
    return func


def build_plugin(plugin_dir: Path, manifest: ModuleManifest) -> DiscoveredPlugin:
    loaded: Dict[Path, ModuleType] = {}
    processors = {
        resource: load_entry_point(plugin_dir, reference, loaded)
        for resource, reference in manifest.processors.items()
    }
    module = ResourceModule(
        name=manifest.name,
        priority=manifest.priority,
        sprites=dict(manifest.sprites),
        textures=dict(manifest.textures),
        text_processors=processors,
        bundle_folders=list(manifest.bundle_folders),
        fragment_folders=dict(manifest.fragment_folders),
        description=manifest.description or "",
    )
    source = PluginSource(
        qualified_name=str(plugin_dir.resolve()),
        root=plugin_dir.resolve(),
        target_version=manifest.target_version,
    )
    return DiscoveredPlugin(source=source, module=module, manifest=manifest)


def load_plugin(plugin_dir: Path, settings: Optional[RuntimeSettings] = None) -> DiscoveredPlugin:
    settings = settings or RuntimeSettings()
    manifest = load_manifest(plugin_dir / settings.manifest_name)
    return build_plugin(plugin_dir, manifest)


def discover_plugins(
    root: Path, settings: Optional[RuntimeSettings] = None
) -> List[DiscoveredPlugin]:
    """Load every ``root/*/<manifest>`` in lexicographic directory order.

    Broken plugins are logged and skipped.
    """
    settings = settings or RuntimeSettings()
    if not root.is_dir():
        log.warning(f"[Manifest] Plugins directory not found: {root}")
        return []

    candidates = sorted(
        p for p in root.iterdir() if p.is_dir() and (p / settings.manifest_name).is_file()
    )
    return _load_all(candidates, settings)


def load_manifest_list(
    list_file: Path, settings: Optional[RuntimeSettings] = None
) -> List[DiscoveredPlugin]:
    """Load the plugin directories named in a JSON list, in listed order.

    Relative entries resolve against the list file's directory.
    """
    settings = settings or RuntimeSettings()
    try:
        entries = json.loads(list_file.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Cannot read plugin list {list_file}: {exc}") from exc
    if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
        raise ManifestError(f"Plugin list must be a JSON array of paths: {list_file}")

    base = list_file.parent
    dirs = [Path(e) if Path(e).is_absolute() else base / e for e in entries]
    return _load_all(dirs, settings)


def _load_all(dirs: List[Path], settings: RuntimeSettings) -> List[DiscoveredPlugin]:
    plugins: List[DiscoveredPlugin] = []
    for plugin_dir in dirs:
        try:
            plugins.append(load_plugin(plugin_dir, settings))
        except ManifestError as exc:
            log.warning(f"[Manifest] Skipping {plugin_dir.name}: {exc}")
    log.info(f"[Manifest] Discovered {len(plugins)} plugin(s)")
    return plugins
