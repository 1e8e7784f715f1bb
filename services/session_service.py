# services/session_service.py

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Optional

from domain.constants import ITEM_STATUS_SUCCEEDED
from domain.events import EventBus
from domain.models import MediaItem, OptimizerConfig, TargetPreset
from domain.presets import DEFAULT_PRESET
from domain.rules import is_selected_for_preset, scale_to_preset
from optimizer_io.path_utils import norm_abs_path
from services.executor_service import ExecutorService
from services.optimizable import build_optimizables
from services.scan_service import ScanService
from utils.timeutil import now_iso

logger = logging.getLogger(__name__)


class Session:
    """Everything known about one source folder: its items, the selection and run times.

    Owned by whoever drives the UI/CLI. All changes are announced on
    self.events as (item_id, field, value); session-level fields use item_id None.
    """

    def __init__(
        self,
        source_root: str,
        preset: TargetPreset = DEFAULT_PRESET,
        config: Optional[OptimizerConfig] = None,
        optimizables: Optional[dict] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config or OptimizerConfig()
        self.source_root = norm_abs_path(source_root)
        self.preset = preset
        self.items: list[MediaItem] = []
        self.selected_ids: set[str] = set()
        self.time_begin: Optional[str] = None
        self.time_end: Optional[str] = None
        self.events = events or EventBus()

        self.optimizables = optimizables if optimizables is not None else build_optimizables(self.config)
        self.scanner = ScanService(self.optimizables, self.config)
        self.executor = ExecutorService(self.optimizables, self.config)

        self._cancel = threading.Event()
        self._running = False

    @property
    def target_root(self) -> str:
        return norm_abs_path(self.config.target_root) if self.config.target_root else self.source_root

    @property
    def is_running(self) -> bool:
        return self._running

    def _emit(self, item_id, field, value):
        self.events.emit(item_id, field, value)

    def _set(self, **changes):
        for name, value in changes.items():
            setattr(self, name, value)
            self._emit(None, name, value)

    def item(self, item_id: str) -> Optional[MediaItem]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    # ------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------

    def rescan(self, source_root: Optional[str] = None, progress_cb=None, skip_cb=None) -> list[MediaItem]:
        """Replace the item list with a fresh scan. Previous run state is dropped."""
        if self._running:
            raise RuntimeError("Cannot rescan while a batch is running")
        self._cancel.clear()
        if source_root:
            self.source_root = norm_abs_path(source_root)

        logger.info("Scanning %s", self.source_root)
        items = self.scanner.scan(
            self.source_root,
            progress_cb=progress_cb,
            skip_cb=skip_cb,
            stop_flag=self._cancel.is_set,
        )

        self._set(items=items, time_begin=None, time_end=None)
        self._recompute(self.preset)
        logger.info("Found %d items, %d selected", len(items), len(self.selected_ids))
        return items

    def apply_preset(self, preset: TargetPreset) -> None:
        """New preset: target sizes and selection are recomputed for every item."""
        self._set(preset=preset)
        self._recompute(preset)

    def run_batch(self, progress_cb=None, max_workers: Optional[int] = None) -> None:
        if self._running:
            raise RuntimeError("A batch is already running")
        self._cancel.clear()
        self._running = True
        self._set(time_begin=None, time_end=None)
        self._set(time_begin=now_iso())
        try:
            batch = [it for it in self.items if it.id in self.selected_ids]
            logger.info("Optimizing %d of %d items to %s", len(batch), len(self.items), self.preset.label)
            self.executor.execute(
                batch,
                progress_cb=progress_cb,
                stop_flag=self._cancel.is_set,
                emit=self._emit,
                max_workers=max_workers,
            )
        finally:
            self._running = False
            self._set(time_end=now_iso())

    def cancel(self) -> None:
        self._cancel.set()

    def toggle(self, item_id: str, selected: bool) -> None:
        """User override; holds until the next preset change or rescan."""
        item = self.item(item_id)
        if item is None:
            raise KeyError(item_id)
        item.update(self._emit, is_selected=bool(selected))
        ids = set(self.selected_ids)
        if selected:
            ids.add(item_id)
        else:
            ids.discard(item_id)
        self._set(selected_ids=ids)

    def summary(self) -> dict:
        by_status = Counter(it.status for it in self.items)
        done = [it for it in self.items if it.status == ITEM_STATUS_SUCCEEDED]
        return {
            "total": len(self.items),
            "selected": len(self.selected_ids),
            "status": dict(by_status),
            "errors": sum(1 for it in self.items if it.error),
            "source_bytes": sum(it.source_size or 0 for it in done),
            "target_bytes": sum(it.target_size or 0 for it in done),
        }

    # ------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------

    def select_for_preset(self, preset: TargetPreset) -> set[str]:
        """Selection policy over the whole list. Touches is_selected only."""
        selected = set()
        for it in self.items:
            chosen = is_selected_for_preset(preset, it.source_resolution)
            it.update(self._emit, is_selected=chosen)
            if chosen:
                selected.add(it.id)
        self._set(selected_ids=selected)
        return selected

    def _recompute(self, preset: TargetPreset) -> None:
        for it in self.items:
            optimizable = self.optimizables.get(it.content_type)
            it.update(
                self._emit,
                target_resolution=scale_to_preset(it.source_resolution, preset),
                target_encoding=optimizable.target_encoding(preset.encoding) if optimizable else "",
            )
        self.select_for_preset(preset)
