"""Viewport scheduler: derives the single active slot of a vertically scrolling list."""

from collections.abc import Callable, Iterable

from loguru import logger

ActiveIndexListener = Callable[[int, int], None]


class ViewportScheduler:
    """Tracks per-slot visible fractions and emits exactly one active index.

    A slot becomes active when its visible fraction crosses the threshold from
    below. When several slots cross in one batch, the last one wins. Before any
    crossing the active index is 0.
    """

    def __init__(
        self,
        slot_count: int = 0,
        *,
        threshold: float = 0.6,
        on_change: ActiveIndexListener | None = None,
    ):
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"threshold must be in (0, 1] (got {threshold})")
        self._threshold = threshold
        self._on_change = on_change
        self._slot_count = max(0, slot_count)
        self._fractions: dict[int, float] = {}
        self._active_index = 0

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def slot_count(self) -> int:
        return self._slot_count

    def reset(self, slot_count: int) -> None:
        """Start over with a new list of slots."""
        self._slot_count = max(0, slot_count)
        self._fractions.clear()
        self._active_index = 0

    def on_visibility(self, slot_index: int, visible_fraction: float) -> int:
        """Record one visibility observation and return the active index."""
        if not 0 <= slot_index < self._slot_count:
            logger.debug("Ignoring visibility for unknown slot={}", slot_index)
            return self._active_index

        fraction = min(1.0, max(0.0, float(visible_fraction)))
        previous = self._fractions.get(slot_index, 0.0)
        self._fractions[slot_index] = fraction

        if previous < self._threshold <= fraction:
            self._set_active(slot_index)

        return self._active_index

    def select(self, slot_index: int) -> int:
        """Make `slot_index` active directly, as if it had just crossed the threshold."""
        if 0 <= slot_index < self._slot_count:
            self._set_active(slot_index)
        return self._active_index

    def on_visibility_batch(self, entries: Iterable[tuple[int, float]]) -> int:
        for slot_index, visible_fraction in entries:
            self.on_visibility(slot_index, visible_fraction)
        return self._active_index

    def _set_active(self, slot_index: int) -> None:
        if slot_index == self._active_index:
            return

        previous = self._active_index
        self._active_index = slot_index
        logger.debug("Active slot changed {} -> {}", previous, slot_index)

        if self._on_change is not None:
            self._on_change(previous, slot_index)
