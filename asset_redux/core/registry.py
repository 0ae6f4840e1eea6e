from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .assets import Sprite, Texture
from .bundles import preload_bundle_folders
from .fragments import FragmentMerger, read_fragment_folder
from .logger import get_logger
from .modules import PluginSource, ResourceModule
from .override_cache import OverrideCache
from .paths import resolve_path
from .settings import RuntimeSettings
from .text_pipeline import TextPipeline

log = get_logger(__name__)


@dataclass(frozen=True)
class OverrideConflict:
    """A key claimed by one module and then overwritten by another."""

    kind: str
    key: str
    previous: str
    winner: str

    def describe(self) -> str:
        return f"{self.kind} '{self.key}': {self.previous} -> {self.winner}"


class ModuleRegistry:
    """
    Accepts resource modules, preloads their files and pushes their overrides
    into the shared caches. It is the only writer of those caches.

    With the default ``registration`` conflict policy each module is pushed
    once when it registers, so the last registration wins a contested key
    whatever the priorities say. The ``priority`` policy replays every
    module in ascending priority after each insertion instead.
    """

    def __init__(
        self,
        sprites: OverrideCache[Sprite],
        textures: OverrideCache[Texture],
        pipeline: TextPipeline,
        merger: FragmentMerger,
        settings: Optional[RuntimeSettings] = None,
    ):
        self.sprites = sprites
        self.textures = textures
        self.pipeline = pipeline
        self.merger = merger
        self.settings = settings or RuntimeSettings()

        self._modules: List[ResourceModule] = []
        self._identities: Set[str] = set()
        self._bundles: Dict[str, str] = {}
        self._owners: Dict[Tuple[str, str], str] = {}
        self._merge_installed: Set[str] = set()
        self.conflicts: List[OverrideConflict] = []

    @property
    def active_modules(self) -> List[ResourceModule]:
        """Registered modules, highest priority first (ties in registration order)."""
        return list(self._modules)

    def is_registered(self, identity: str) -> bool:
        return identity in self._identities

    def register(self, module: Optional[ResourceModule], source: PluginSource) -> bool:
        if module is None:
            log.warning(f"[Registry] Ignoring empty module from {source.qualified_name}")
            return False

        identity = source.qualified_name
        if identity in self._identities:
            log.warning(
                f"[Registry] {identity} already registered this epoch; "
                f"skipping module '{module.name}'"
            )
            return False
        self._identities.add(identity)

        self._preload(module, source)

        self._modules.append(module)
        self._modules.sort(key=lambda m: m.priority, reverse=True)

        if self.settings.conflict_policy == "priority":
            self._replay()
        else:
            self._sync(module)

        log.info(
            f"[Registry] Module '{module.name}' registered "
            f"(from: {source.display_name}, priority: {module.priority})"
        )
        return True

    def _preload(self, module: ResourceModule, source: PluginSource) -> None:
        # Rebuilt from disk every epoch; the same module object may be reused.
        module.loaded_bundles = {}
        module.bundle_previews = {}
        module.loaded_fragments = {}

        # Snapshot keys: values are rewritten while iterating.
        for mapping in (module.sprites, module.textures):
            for key in list(mapping.keys()):
                mapping[key] = resolve_path(mapping[key], source.root)

        preload_bundle_folders(module, source, self.settings)

        for resource, relative in module.fragment_folders.items():
            folder = Path(resolve_path(relative, source.root))
            fragments = read_fragment_folder(folder, self.settings.fragment_pattern)
            if fragments:
                module.loaded_fragments.setdefault(resource, []).extend(fragments)
                log.debug(
                    f"[Registry] {module.name}: {len(fragments)} fragment(s) for '{resource}'"
                )

    def _claim(self, kind: str, key: str, module: ResourceModule) -> None:
        owner_key = (kind, key.lower())
        previous = self._owners.get(owner_key)
        if previous is not None and previous != module.name:
            conflict = OverrideConflict(kind, key, previous, module.name)
            self.conflicts.append(conflict)
            log.debug(f"[Registry] Override conflict: {conflict.describe()}")
        self._owners[owner_key] = module.name

    def _sync(self, module: ResourceModule) -> None:
        for name, path in module.sprites.items():
            self._claim("sprite", name, module)
            self.sprites.register(name, path)
        for name, path in module.bundle_previews.items():
            self._claim("sprite", name, module)
            self.sprites.register(name, path)

        for name, path in module.textures.items():
            self._claim("texture", name, module)
            self.textures.register(name, path)

        for resource, fragments in module.loaded_fragments.items():
            self.merger.add(resource, fragments)
            if resource not in self._merge_installed:
                self._merge_installed.add(resource)
                self.pipeline.register_processor(resource, self.merger.processor_for(resource))

        for resource, processor in module.text_processors.items():
            self.pipeline.register_processor(resource, processor)

        for key, text in module.loaded_bundles.items():
            self._claim("bundle", key, module)
            self._bundles[key] = text

    def _reset_tables(self) -> None:
        self.sprites.clear()
        self.textures.clear()
        self.pipeline.clear()
        self.merger.clear()
        self._bundles.clear()
        self._owners.clear()
        self._merge_installed.clear()
        self.conflicts = []

    def _replay(self) -> None:
        self._reset_tables()
        for module in sorted(self._modules, key=lambda m: m.priority):
            self._sync(module)

    def bundle_entries(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(key, text)`` for every loaded bundle entry."""
        yield from list(self._bundles.items())

    def bundle_text(self, key: str) -> Optional[str]:
        return self._bundles.get(key)

    def owner_of(self, kind: str, key: str) -> Optional[str]:
        return self._owners.get((kind, key.lower()))

    def clear(self) -> None:
        """Forget every module and reset all caches for a new epoch."""
        self._modules.clear()
        self._identities.clear()
        self._reset_tables()
        log.info("[Registry] Registry cleared")
