from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from .assets import AssetLoader, Sprite, Texture, make_sprite
from .logger import get_logger
from .scheduling import Scheduler

log = get_logger(__name__)

T = TypeVar("T", Sprite, Texture)


class AssetKind(str, Enum):
    SPRITE = "sprite"
    TEXTURE = "texture"


def _key(name: str) -> str:
    return name.lower()


class OverrideCache(Generic[T]):
    """
    Two-level override cache: name -> absolute path -> materialized object.

    Name lookups are case-insensitive and the last registration for a name
    wins. Several names may point at one path; they then share a single
    materialized object, which stays alive until :meth:`clear`.
    """

    def __init__(
        self,
        kind: AssetKind,
        loader: AssetLoader,
        materialize: Callable[[str, Texture], T],
        scheduler: Optional[Scheduler] = None,
    ):
        self.kind = kind
        self._loader = loader
        self._materialize = materialize
        self._scheduler = scheduler
        self._paths: Dict[str, Tuple[str, str]] = {}
        self._objects: Dict[str, T] = {}
        self._inflight: Dict[str, List[Callable[[Optional[T]], None]]] = {}
        self._epoch = 0

    @property
    def tag(self) -> str:
        return f"[{self.kind.value.capitalize()}Cache]"

    def register(self, name: str, absolute_path: str) -> None:
        if not name or not absolute_path:
            return
        self._paths[_key(name)] = (name, absolute_path)

    def path_for(self, name: str) -> Optional[str]:
        entry = self._paths.get(_key(name)) if name else None
        return entry[1] if entry else None

    def names(self) -> List[str]:
        return [name for name, _ in self._paths.values()]

    def materialized_count(self) -> int:
        return len(self._objects)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _key(name) in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def _cached(self, path: str) -> Optional[T]:
        obj = self._objects.get(path)
        if obj is not None and not obj.destroyed:
            return obj
        return None

    def _store(self, name: str, path: str, texture: Texture) -> Optional[T]:
        try:
            obj = self._materialize(name, texture)
        except Exception as exc:
            log.error(f"{self.tag} Failed to materialize {name} from {path}: {exc}")
            texture.destroy()
            return None
        self._objects[path] = obj
        log.debug(f"{self.tag} Materialized {name} <- {path}")
        return obj

    def try_resolve(self, name: str) -> Optional[T]:
        """Return the override object for *name*, decoding it on first use."""
        path = self.path_for(name)
        if path is None:
            return None
        cached = self._cached(path)
        if cached is not None:
            return cached
        texture = self._loader.load_texture(path)
        if texture is None:
            return None
        return self._store(name, path, texture)

    def resolve_async(self, name: str, callback: Callable[[Optional[T]], None]) -> None:
        """Resolve *name* without blocking; *callback* runs on the host thread.

        Without a scheduler this degrades to a synchronous resolve.
        """
        path = self.path_for(name)
        if path is None:
            callback(None)
            return
        cached = self._cached(path)
        if cached is not None:
            callback(cached)
            return
        if self._scheduler is None:
            callback(self.try_resolve(name))
            return

        waiting = self._inflight.get(path)
        if waiting is not None:
            waiting.append(callback)
            return
        waiting_callbacks = [callback]
        self._inflight[path] = waiting_callbacks
        epoch = self._epoch

        def _on_loaded(texture: Optional[Texture]) -> None:
            if epoch != self._epoch:
                # Cleared while decoding; the result belongs to a dead epoch.
                if texture is not None:
                    texture.destroy()
                for cb in waiting_callbacks:
                    cb(None)
                return
            self._inflight.pop(path, None)
            result: Optional[T] = None
            if texture is not None:
                existing = self._cached(path)
                if existing is not None:
                    texture.destroy()
                    result = existing
                else:
                    result = self._store(name, path, texture)
            for cb in waiting_callbacks:
                cb(result)

        self._loader.load_texture_async(path, self._scheduler, _on_loaded)

    def clear(self) -> None:
        """Destroy every materialized object once and drop all mappings."""
        seen = set()
        for obj in self._objects.values():
            if id(obj) in seen:
                continue
            seen.add(id(obj))
            obj.destroy()
        destroyed = len(seen)
        self._objects.clear()
        self._paths.clear()
        self._inflight.clear()
        self._epoch += 1
        log.info(f"{self.tag} Cleared mappings and destroyed {destroyed} object(s)")


def sprite_cache(
    loader: AssetLoader,
    scheduler: Optional[Scheduler] = None,
    pixels_per_unit: float = 100.0,
) -> OverrideCache[Sprite]:
    def _materialize(name: str, texture: Texture) -> Sprite:
        texture.name = name
        return make_sprite(name, texture, pixels_per_unit)

    return OverrideCache(AssetKind.SPRITE, loader, _materialize, scheduler)


def texture_cache(
    loader: AssetLoader, scheduler: Optional[Scheduler] = None
) -> OverrideCache[Texture]:
    def _materialize(name: str, texture: Texture) -> Texture:
        texture.name = name
        return texture

    return OverrideCache(AssetKind.TEXTURE, loader, _materialize, scheduler)
