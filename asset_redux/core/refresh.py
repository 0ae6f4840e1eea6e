"""
Debounced re-application of overrides across the host's live objects.

``request_refresh`` may be called any number of times; after the debounce
delay one scan runs over a snapshot of the population, a chunk at a time,
yielding to the scheduler between chunks.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Type

from .assets import Sprite, Texture
from .logger import get_logger
from .override_cache import AssetKind, OverrideCache
from .scheduling import ScheduledHandle, Scheduler
from .settings import RuntimeSettings

log = get_logger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"


@dataclass(frozen=True)
class BindingSlot:
    """How to read and write one kind of overridable asset on a host object."""

    label: str
    kind: AssetKind
    accepts: Callable[[Any], bool]
    get: Callable[[Any], Any]
    set: Callable[[Any, Any], None]


def _type_or_attr(host_types: Tuple[Type, ...], attribute: str) -> Callable[[Any], bool]:
    if host_types:
        return lambda obj: isinstance(obj, host_types)
    return lambda obj: hasattr(obj, attribute)


def sprite_slot(label: str, host_types: Tuple[Type, ...] = (), attribute: str = "sprite") -> BindingSlot:
    return BindingSlot(
        label=label,
        kind=AssetKind.SPRITE,
        accepts=_type_or_attr(host_types, attribute),
        get=lambda obj: getattr(obj, attribute, None),
        set=lambda obj, value: setattr(obj, attribute, value),
    )


def material_slot(
    label: str = "material",
    host_types: Tuple[Type, ...] = (),
    material_attr: str = "shared_material",
    texture_attr: str = "main_texture",
) -> BindingSlot:
    def _get(obj: Any) -> Any:
        material = getattr(obj, material_attr, None)
        if material is None:
            return None
        return getattr(material, texture_attr, None)

    def _set(obj: Any, value: Any) -> None:
        setattr(getattr(obj, material_attr), texture_attr, value)

    return BindingSlot(
        label=label,
        kind=AssetKind.TEXTURE,
        accepts=_type_or_attr(host_types, material_attr),
        get=_get,
        set=_set,
    )


def default_slots(
    image_types: Tuple[Type, ...] = (),
    sprite_renderer_types: Tuple[Type, ...] = (),
    renderer_types: Tuple[Type, ...] = (),
) -> List[BindingSlot]:
    """Image displays, 2D sprite renderers and 3D material renderers.

    Without host types the slots fall back to attribute checks, in which
    case every object exposing ``sprite`` is handled by the image slot.
    """
    return [
        sprite_slot("image", image_types),
        sprite_slot("sprite_renderer", sprite_renderer_types),
        material_slot("material", renderer_types),
    ]


def _default_is_alive(obj: Any) -> bool:
    return not getattr(obj, "destroyed", False)


class ScanJob:
    """Walks a population snapshot a bounded number of items at a time."""

    def __init__(self, snapshot: Sequence[Any], visit: Callable[[Any], None]):
        self._items = list(snapshot)
        self._visit = visit
        self._index = 0

    @property
    def total(self) -> int:
        return len(self._items)

    @property
    def position(self) -> int:
        return self._index

    @property
    def done(self) -> bool:
        return self._index >= len(self._items)

    def step(
        self,
        max_items: int,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> bool:
        """Visit up to *max_items* objects; return True while items remain."""
        processed = 0
        while self._index < len(self._items) and processed < max_items:
            obj = self._items[self._index]
            self._index += 1
            processed += 1
            if obj is not None:
                self._visit(obj)
            if deadline is not None and clock() >= deadline:
                break
        return not self.done


@dataclass
class RefreshStats:
    scans: int = 0
    dropped: int = 0
    visited: int = 0
    matched: int = 0
    replaced: int = 0


class RefreshCoordinator:
    """
    Debounced, chunked re-scan of the live object population.

    States: IDLE -> PENDING (timer armed) -> RUNNING (scan in progress).
    A timer that fires while a scan is running is dropped; a running scan
    is never restarted.
    """

    def __init__(
        self,
        sprites: OverrideCache[Sprite],
        textures: OverrideCache[Texture],
        population: Callable[[], Iterable[Any]],
        scheduler: Scheduler,
        settings: Optional[RuntimeSettings] = None,
        slots: Optional[Sequence[BindingSlot]] = None,
        is_alive: Callable[[Any], bool] = _default_is_alive,
    ):
        self._caches = {AssetKind.SPRITE: sprites, AssetKind.TEXTURE: textures}
        self._population = population
        self._scheduler = scheduler
        self.settings = settings or RuntimeSettings()
        self.slots: List[BindingSlot] = list(slots) if slots is not None else default_slots()
        self._is_alive = is_alive

        self._pending: Optional[ScheduledHandle] = None
        self._job: Optional[ScanJob] = None
        self.stats = RefreshStats()

    @property
    def state(self) -> RefreshState:
        if self._job is not None:
            return RefreshState.RUNNING
        if self._pending is not None:
            return RefreshState.PENDING
        return RefreshState.IDLE

    def request_refresh(self) -> None:
        """(Re)arm the debounce timer; only the last request in a burst runs."""
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self._scheduler.call_later(self.settings.debounce_delay, self._on_timer)

    def cancel(self) -> None:
        """Disarm a pending refresh and abandon any scan in progress."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._job = None

    def _on_timer(self) -> None:
        self._pending = None
        if self._job is not None:
            self.stats.dropped += 1
            log.debug("[Refresh] Scan already running; refresh request dropped")
            return
        self._start_scan()

    def _start_scan(self) -> None:
        try:
            snapshot = list(self._population())
        except Exception as exc:
            log.error(f"[Refresh] Failed to snapshot object population: {exc}")
            return
        self._job = ScanJob(snapshot, self._visit)
        self.stats.scans += 1
        log.info(f"[Refresh] Re-applying overrides across {len(snapshot)} object(s)...")
        self._run_slice()

    def _run_slice(self) -> None:
        job = self._job
        if job is None:
            return
        budget = self.settings.slice_budget
        deadline = time.perf_counter() + budget if budget else None
        if job.step(self.settings.chunk_size, deadline):
            self._scheduler.call_soon(self._run_slice)
            return
        self._job = None
        log.info(f"[Refresh] Scan dispatched for {job.total} object(s)")

    def _visit(self, obj: Any) -> None:
        self.stats.visited += 1
        for slot in self.slots:
            try:
                if not slot.accepts(obj):
                    continue
                current = slot.get(obj)
            except Exception as exc:
                log.debug(f"[Refresh] Slot '{slot.label}' could not read {obj!r}: {exc}")
                continue
            if current is None:
                continue
            name = getattr(current, "name", None)
            if not name:
                continue
            self.stats.matched += 1
            self._caches[slot.kind].resolve_async(name, partial(self._apply, slot, obj, name))
            return

    def _apply(self, slot: BindingSlot, obj: Any, name: str, replacement: Any) -> None:
        if replacement is None:
            return
        # The target may have been destroyed or rebound while decoding.
        if not self._is_alive(obj):
            return
        try:
            current = slot.get(obj)
        except Exception:
            return
        if current is None or getattr(current, "name", None) != name:
            return
        if current is replacement:
            return
        slot.set(obj, replacement)
        self.stats.replaced += 1
        log.debug(f"[Refresh] {slot.label}: '{name}' rebound to override")
