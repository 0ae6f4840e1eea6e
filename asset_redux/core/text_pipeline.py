from __future__ import annotations

from typing import Callable, Dict, Hashable, List, Tuple

from .logger import get_logger

log = get_logger(__name__)

TextProcessor = Callable[[str], str]


class TextPipeline:
    """
    Ordered text transforms per resource name, plus a per-instance result cache.

    Registering any processor drops every cached result, not only those of
    the affected name.
    """

    def __init__(self) -> None:
        self._processors: Dict[str, List[TextProcessor]] = {}
        # instance id -> (resource name, original text, result)
        self._results: Dict[Hashable, Tuple[str, str, Tuple[bool, str]]] = {}

    def register_processor(self, name: str, processor: TextProcessor) -> None:
        if not name or processor is None:
            return
        self._processors.setdefault(name, []).append(processor)
        self._results.clear()

    def has_processors(self, name: str) -> bool:
        return bool(self._processors.get(name))

    def processor_count(self, name: str) -> int:
        return len(self._processors.get(name, ()))

    def names(self) -> List[str]:
        return list(self._processors)

    def resolve(self, name: str, original: str) -> Tuple[bool, str]:
        """Run every processor for *name* in registration order.

        Returns ``(False, original)`` when nothing is registered. A stage that
        raises is logged and skipped; the previous text carries forward.
        """
        processors = self._processors.get(name)
        if not processors:
            return False, original

        current = original
        for index, process in enumerate(processors):
            try:
                result = process(current)
            except Exception as exc:
                log.error(f"[TextPipeline] Processor {index} for '{name}' failed: {exc}")
                continue
            if not isinstance(result, str):
                log.error(
                    f"[TextPipeline] Processor {index} for '{name}' returned "
                    f"{type(result).__name__}, expected str"
                )
                continue
            current = result
        return True, current

    def resolve_cached(
        self, instance_id: Hashable, name: str, original: str
    ) -> Tuple[bool, str]:
        """Memoized :meth:`resolve` keyed by the caller's instance identity."""
        hit = self._results.get(instance_id)
        if hit is not None and hit[0] == name and hit[1] == original:
            return hit[2]
        outcome = self.resolve(name, original)
        self._results[instance_id] = (name, original, outcome)
        return outcome

    def cached_count(self) -> int:
        return len(self._results)

    def clear(self) -> None:
        self._processors.clear()
        self._results.clear()
        log.info("[TextPipeline] Processors and cached results reset")
