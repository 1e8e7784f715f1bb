# services/executor_service.py

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from domain.constants import (
    ITEM_STATUS_FAILED,
    ITEM_STATUS_IDLE,
    ITEM_STATUS_RUNNING,
    ITEM_STATUS_SUCCEEDED,
)
from domain.errors import (
    DirectoryNotFound,
    FileExists,
    OptimizerError,
    UnableToRemoveSourceFile,
    UnknownExportError,
    describe_error,
)
from domain.models import MediaItem, OptimizerConfig
from domain.rules import temp_path_for
from optimizer_io.file_ops import discard, file_size, move_file, stash_in_trash
from optimizer_io.path_utils import same_path
from utils.timeutil import now_iso

logger = logging.getLogger(__name__)

# item progress stays below this until the result is committed on disk
_PRE_COMMIT_CEILING = 0.99


class ExecutorService:
    def __init__(self, optimizables: dict, config: OptimizerConfig | None = None):
        self.optimizables = optimizables
        self.config = config or OptimizerConfig()
        self._reserve_lock = threading.Lock()
        self._reserved: set[str] = set()

    def execute(self, items: list[MediaItem], progress_cb=None, stop_flag=None, emit=None, max_workers=None):
        """Process every selected item; unselected ones are left alone.

        - progress_cb(done, total, item) after each item reaches a terminal state.
        - stop_flag() cancels in-flight work and leaves unstarted items IDLE.
        - A failed item never stops the rest of the batch.
        """
        selected = [it for it in items if it.is_selected]
        total = len(selected)
        if total == 0:
            return
        workers = max(1, int(max_workers or self.config.optimize_workers or 1))

        done = 0
        if workers == 1:
            for it in selected:
                if stop_flag and stop_flag():
                    break
                self.process_item(it, stop_flag=stop_flag, emit=emit)
                done += 1
                if progress_cb:
                    progress_cb(done, total, it)
            return

        def _task(it: MediaItem):
            if stop_flag and stop_flag():
                return None
            self.process_item(it, stop_flag=stop_flag, emit=emit)
            return it

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(_task, it) for it in selected]
            for fut in as_completed(futures):
                it = fut.result()
                if it is None:
                    continue
                done += 1
                if progress_cb:
                    progress_cb(done, total, it)

    def process_item(self, item: MediaItem, stop_flag=None, emit=None) -> str:
        """Idle -> Running -> Succeeded | Failed for one item. Returns the final status.

        Only IDLE items start; finished items stay finished until a rescan.
        """
        if not item.is_selected or item.status != ITEM_STATUS_IDLE:
            return item.status

        item.update(
            emit,
            status=ITEM_STATUS_RUNNING,
            completion_percentage=0.0,
            error="",
            target_size=None,
            time_begin=now_iso(),
            time_end=None,
        )

        def _progress(value: float):
            item.update(emit, completion_percentage=min(value, _PRE_COMMIT_CEILING))

        temp_path = None
        try:
            optimizable = self.optimizables.get(item.content_type)
            if optimizable is None:
                raise UnknownExportError(f"Unsupported content type {item.content_type}")

            temp_path = self._reserve_temp(item, optimizable.target_extension())

            optimizable.optimize_with_progress(
                item.source_path,
                item.target_resolution,
                temp_path,
                progress_cb=_progress,
                stop_flag=stop_flag,
                encoding=item.target_encoding,
            )

            self._verify(optimizable, temp_path)
            item.update(emit, target_size=file_size(temp_path))

            self._commit(item, temp_path)

            item.update(emit, completion_percentage=1.0, status=ITEM_STATUS_SUCCEEDED)
            logger.info("Optimized %s -> %s", item.source_path, item.target_path)

        except Exception as e:
            if not isinstance(e, OptimizerError):
                logger.exception("Unexpected failure on %s", item.source_path)
            message = describe_error(e)
            logger.warning("%s: %s", item.source_path, message)
            if temp_path and os.path.lexists(temp_path):
                discard(temp_path, use_trash=self.config.use_trash)
            item.update(emit, error=message, status=ITEM_STATUS_FAILED)

        finally:
            if temp_path:
                self._release_temp(temp_path)
            item.update(emit, time_end=now_iso())

        return item.status

    # ------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------

    def _reserve_temp(self, item: MediaItem, ext: str) -> str:
        folder = os.path.dirname(item.source_path)
        if not os.path.isdir(folder):
            raise DirectoryNotFound(f"Directory not found: {folder}")

        temp_path = temp_path_for(item.source_path, item.id, ext, self.config.temp_suffix)
        with self._reserve_lock:
            if temp_path in self._reserved or os.path.lexists(temp_path):
                raise FileExists(f"Temporary file already exists: {temp_path}")
            self._reserved.add(temp_path)
        return temp_path

    def _release_temp(self, temp_path: str) -> None:
        with self._reserve_lock:
            self._reserved.discard(temp_path)

    def _verify(self, optimizable, temp_path: str) -> None:
        """The original is never touched before this passes."""
        if not os.path.isfile(temp_path):
            raise UnknownExportError("Optimized output is missing")
        if file_size(temp_path) <= 0:
            raise UnknownExportError("Optimized output is empty")
        try:
            optimizable.get_dimensions(temp_path)
        except OptimizerError as e:
            raise UnknownExportError(f"Optimized output is unreadable: {e.message}") from e

    def _commit(self, item: MediaItem, temp_path: str) -> None:
        source = item.source_path
        target = item.target_path
        in_place = same_path(source, target)
        replaces = in_place or self.config.replace_source

        if not in_place and os.path.lexists(target):
            raise FileExists(f"Target already exists: {target}")

        if replaces:
            stem = os.path.splitext(os.path.basename(source))[0]
            staging = os.path.join(
                os.path.dirname(source),
                f".{stem}{self.config.temp_suffix}-{item.id[:8]}.trash",
            )
            try:
                stash_in_trash(source, staging, use_trash=self.config.use_trash)
            except Exception as e:
                raise UnableToRemoveSourceFile(f"Unable to remove source file: {e}") from e
            logger.debug("Original of %s sent to trash", source)

        try:
            move_file(temp_path, target)
        except OSError as e:
            raise UnknownExportError(f"Could not move optimized file into place: {e}") from e

        if replaces and not in_place:
            try:
                os.remove(source)
            except OSError as e:
                raise UnableToRemoveSourceFile(f"Target written but source still present: {e}") from e
