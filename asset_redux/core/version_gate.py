from __future__ import annotations

from typing import Dict, Iterable, Iterator, Tuple, TypeVar

from .. import TARGET_VERSION
from .logger import get_logger
from .modules import PluginSource

log = get_logger(__name__)

M = TypeVar("M")


class VersionGate:
    """Filters out plugins built against a different core version.

    A plugin without a declared target version is treated as compatible.
    Verdicts are cached per plugin identity until :meth:`clear_cache`.
    """

    def __init__(self, target_version: str = TARGET_VERSION):
        self.target_version = target_version
        self._verdicts: Dict[str, bool] = {}

    def is_compatible(self, source: PluginSource) -> bool:
        cached = self._verdicts.get(source.qualified_name)
        if cached is not None:
            return cached

        declared = source.target_version
        if declared is None or declared.strip().lower() == self.target_version.lower():
            verdict = True
        else:
            log.error(
                f"[VersionGate] {source.display_name} targets {declared}, "
                f"core is {self.target_version}; plugin skipped"
            )
            verdict = False
        self._verdicts[source.qualified_name] = verdict
        return verdict

    def filter(self, pairs: Iterable[Tuple[PluginSource, M]]) -> Iterator[Tuple[PluginSource, M]]:
        for source, module in pairs:
            if self.is_compatible(source):
                yield source, module

    def clear_cache(self) -> None:
        self._verdicts.clear()
