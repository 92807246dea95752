from typing import Callable, Generic, Optional, TypeVar

from loguru import logger

DEFAULT_INTERVAL_MS = 33  # ~30 FPS

T = TypeVar("T")


class RenderScheduler(Generic[T]):
    """
    Dirty-flag render throttle.

    Mutations call ``mark_dirty``; a host timer calls ``tick`` at a fixed
    cadence. A tick renders at most once, and only if something changed since
    the previous render, so the rendering cost does not depend on how many
    lines arrived in between.
    """

    def __init__(self, render: Callable[[], T], interval_ms: int = DEFAULT_INTERVAL_MS):
        """
        Initialise the scheduler.

        Parameters
        ----------
        render : Callable[[], T]
            Render pass invoked by a dirty tick.
        interval_ms : int, default=33
            Tick period the host timer should use.
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms}")
        self._render = render
        self.interval_ms = interval_ms
        self._dirty = False
        self.tick_count = 0
        self.render_count = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    def tick(self) -> Optional[T]:
        """Render if dirty. Returns the render result, or None for an idle tick."""
        self.tick_count += 1
        if not self._dirty:
            return None
        self._dirty = False
        self.render_count += 1
        result = self._render()
        if self.render_count % 1000 == 0:
            logger.debug(f"Rendered {self.render_count} frames in {self.tick_count} ticks")
        return result
