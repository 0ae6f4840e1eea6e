from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple

from .assets import AssetLoader, Sprite, Texture
from .fragments import FragmentMerger
from .logger import get_logger
from .manifest import discover_plugins
from .modules import PluginSource, ResourceModule
from .override_cache import OverrideCache, sprite_cache, texture_cache
from .refresh import BindingSlot, RefreshCoordinator
from .registry import ModuleRegistry, OverrideConflict
from .scheduling import FrameScheduler, Scheduler
from .settings import RuntimeSettings
from .text_pipeline import TextPipeline
from .version_gate import VersionGate

log = get_logger(__name__)


@dataclass
class EpochReport:
    """Outcome of one discover-register cycle."""

    registered: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    conflicts: List[OverrideConflict] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.failed)

    def summary_lines(self) -> List[str]:
        lines = [f"Registered {len(self.registered)} module(s)"]
        if self.rejected:
            lines.append(f"Rejected: {', '.join(self.rejected)}")
        for name, error in self.failed.items():
            lines.append(f"Failed: {name}: {error}")
        for conflict in self.conflicts:
            lines.append(f"Conflict: {conflict.describe()}")
        return lines


class OverrideContext:
    """Owns every cache, the registry and the refresh coordinator for one host.

    Without an explicit *scheduler* a :class:`FrameScheduler` is created. It
    decodes on *executor* when one is given; otherwise bulk-refresh decodes run
    inline inside the scan slice and only their delivery is deferred.
    """

    def __init__(
        self,
        settings: Optional[RuntimeSettings] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        loader: Optional[AssetLoader] = None,
        executor: Optional[Executor] = None,
        gate: Optional[VersionGate] = None,
    ) -> None:
        self.settings = settings or RuntimeSettings()
        self.scheduler: Scheduler = scheduler or FrameScheduler(executor)
        self.loader = loader or AssetLoader()
        self.gate = gate

        self.sprites: OverrideCache[Sprite] = sprite_cache(
            self.loader, self.scheduler, self.settings.pixels_per_unit
        )
        self.textures: OverrideCache[Texture] = texture_cache(self.loader, self.scheduler)
        self.pipeline = TextPipeline()
        self.merger = FragmentMerger()
        self.registry = ModuleRegistry(
            self.sprites, self.textures, self.pipeline, self.merger, self.settings
        )
        self._coordinator: Optional[RefreshCoordinator] = None

    def __enter__(self) -> "OverrideContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # Registration

    def register(self, module: Optional[ResourceModule], source: PluginSource) -> bool:
        return self.registry.register(module, source)

    def reset(self) -> None:
        self.registry.clear()

    def load_epoch(
        self, plugins: Iterable[Tuple[PluginSource, Optional[ResourceModule]]]
    ) -> EpochReport:
        """Clear everything, then register each compatible plugin in order."""
        self.reset()
        if self.gate is not None:
            self.gate.clear_cache()

        report = EpochReport()
        for source, module in plugins:
            label = module.name if module is not None else source.display_name
            if self.gate is not None and not self.gate.is_compatible(source):
                report.rejected.append(label)
                continue
            try:
                accepted = self.register(module, source)
            except Exception as exc:
                log.error(f"[Context] Failed to register {label}: {exc}")
                report.failed[label] = str(exc)
                continue
            if accepted:
                report.registered.append(label)
            else:
                report.rejected.append(label)

        report.conflicts = list(self.registry.conflicts)
        log.info(f"[Context] Epoch loaded: {len(report.registered)} module(s) active")
        return report

    def load_plugins_dir(self, root: Path) -> EpochReport:
        discovered = discover_plugins(root, self.settings)
        return self.load_epoch((p.source, p.module) for p in discovered)

    # Refresh

    def attach_population(
        self,
        population: Callable[[], Iterable[Any]],
        slots: Optional[Sequence[BindingSlot]] = None,
        is_alive: Optional[Callable[[Any], bool]] = None,
    ) -> RefreshCoordinator:
        kwargs = {"is_alive": is_alive} if is_alive is not None else {}
        self._coordinator = RefreshCoordinator(
            self.sprites,
            self.textures,
            population,
            self.scheduler,
            settings=self.settings,
            slots=slots,
            **kwargs,
        )
        return self._coordinator

    @property
    def coordinator(self) -> Optional[RefreshCoordinator]:
        return self._coordinator

    def request_refresh(self) -> None:
        if self._coordinator is None:
            log.debug("[Context] Refresh requested before a population was attached")
            return
        self._coordinator.request_refresh()

    # Interception boundary

    def redirect_sprite(self, value: Any) -> Any:
        """Return the override for a sprite about to be bound, or *value*."""
        return self._redirect(self.sprites, value)

    def redirect_texture(self, value: Any) -> Any:
        return self._redirect(self.textures, value)

    @staticmethod
    def _redirect(cache: OverrideCache, value: Any) -> Any:
        if value is None:
            return value
        name = getattr(value, "name", None)
        if not name:
            return value
        override = cache.try_resolve(name)
        if override is None or override is value:
            return value
        return override

    def redirect_text(self, instance_id: Hashable, name: str, text: str) -> str:
        if not text:
            return text
        _, result = self.pipeline.resolve_cached(instance_id, name, text)
        return result

    def bundle_entries(self) -> Iterator[Tuple[str, str]]:
        return self.registry.bundle_entries()

    def shutdown(self) -> None:
        if self._coordinator is not None:
            self._coordinator.cancel()
        self.reset()
        if self.gate is not None:
            self.gate.clear_cache()
