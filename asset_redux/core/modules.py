from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .text_pipeline import TextProcessor


@dataclass(frozen=True)
class PluginSource:
    """Where a module came from.

    ``qualified_name`` is the identity checked for duplicate registration;
    ``root`` is the directory that relative asset paths resolve against.
    """

    qualified_name: str
    root: Path
    target_version: Optional[str] = None

    @property
    def display_name(self) -> str:
        name = self.qualified_name
        if "/" in name or "\\" in name:
            return Path(name).name
        return name.rsplit(".", 1)[-1] or name


@dataclass(eq=False)
class ResourceModule:
    """
    An independently authored set of asset overrides.

    Plugins either instantiate this directly, subclass it with their own
    defaults, or describe it in a manifest. All paths are relative to the
    plugin root unless already absolute.

    Registration preloads the module in place: ``sprites`` and ``textures``
    are rewritten to absolute paths and the ``loaded_*`` maps are filled.
    """

    name: str = "UnknownModule"
    priority: int = 0
    sprites: Dict[str, str] = field(default_factory=dict)
    textures: Dict[str, str] = field(default_factory=dict)
    text_processors: Dict[str, TextProcessor] = field(default_factory=dict)
    bundle_folders: List[str] = field(default_factory=list)
    fragment_folders: Dict[str, str] = field(default_factory=dict)
    description: str = ""

    # Populated during registration.
    loaded_bundles: Dict[str, str] = field(default_factory=dict, init=False)
    bundle_previews: Dict[str, str] = field(default_factory=dict, init=False)
    loaded_fragments: Dict[str, List[str]] = field(default_factory=dict, init=False)

    def override_count(self) -> int:
        return (
            len(self.sprites)
            + len(self.textures)
            + len(self.text_processors)
            + len(self.loaded_bundles)
            + len(self.loaded_fragments)
        )
