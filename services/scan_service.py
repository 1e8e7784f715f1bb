# services/scan_service.py
# Sequential walk + classification, parallel probing (ffprobe / Pillow are I/O bound),
# single-threaded item updates.

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from domain.constants import CONTENT_TYPE_UNSUPPORTED
from domain.errors import describe_error
from domain.models import MediaItem, OptimizerConfig
from domain.rules import classify_media, target_path_for
from optimizer_io.file_ops import file_size
from optimizer_io.fs_scanner import iter_files
from optimizer_io.hash_stream import path_digest

logger = logging.getLogger(__name__)


class ScanService:
    def __init__(self, optimizables: dict, config: OptimizerConfig | None = None):
        self.optimizables = optimizables
        self.config = config or OptimizerConfig()

    def _workers_default(self) -> int:
        # each probe is a short subprocess or a header read; keep it modest
        try:
            cpu = os.cpu_count() or 4
        except Exception:
            cpu = 4
        return max(2, min(8, cpu))

    def _new_item(self, path: str, content_type: str, source_root: str) -> MediaItem:
        cfg = self.config
        return MediaItem(
            id=path_digest(path),
            source_path=path,
            target_path=target_path_for(
                path,
                content_type,
                source_root,
                target_root=cfg.target_root,
                preserve_folders=cfg.preserve_folders,
                overrides=cfg.extension_overrides,
            ),
            content_type=content_type,
        )

    def _probe(self, item: MediaItem) -> dict:
        """Runs in a worker thread. Returns field changes; never touches the item."""
        optimizable = self.optimizables[item.content_type]
        changes = {}
        errors = []

        try:
            changes["source_size"] = file_size(item.source_path)
        except OSError as e:
            errors.append(describe_error(e))

        try:
            probe = optimizable.probe(item.source_path)
            changes["source_resolution"] = probe.resolution
            changes["source_encoding"] = probe.encoding
        except Exception as e:
            errors.append(describe_error(e))

        if self.config.generate_thumbnails:
            try:
                changes["thumbnail"] = optimizable.thumbnail(item.source_path, self.config.thumbnail_size)
            except Exception as e:
                errors.append(f"Thumbnail: {describe_error(e)}")

        if errors:
            changes["error"] = "; ".join(errors)
        return changes

    def scan(
        self,
        source_root: str,
        progress_cb=None,
        skip_cb=None,
        stop_flag=None,
        emit=None,
        max_workers: int | None = None,
    ) -> list[MediaItem]:
        """Discover, classify and probe everything under source_root.

        Notes:
        - progress_cb(index, total, message); index strictly increases.
        - skip_cb(reason, path) for entries that never become items.
        - Items come back in walk order regardless of probe completion order.
        - stop_flag() abandons the scan; only fully probed items are returned.
        """
        paths = list(iter_files(source_root, skip_cb=skip_cb))
        total = len(paths)
        index = 0

        def _progress(message: str):
            nonlocal index
            index += 1
            if progress_cb:
                progress_cb(index, total, message)

        items: list[MediaItem] = []
        for path in paths:
            if stop_flag and stop_flag():
                return []
            content_type = classify_media(path)
            name = os.path.basename(path)
            if content_type == CONTENT_TYPE_UNSUPPORTED or content_type not in self.optimizables:
                if skip_cb:
                    skip_cb("unsupported", path)
                _progress(f"{name} is not supported, skipped")
                continue
            items.append(self._new_item(path, content_type, source_root))

        if not items:
            return []

        workers = max_workers or self.config.probe_workers or self._workers_default()
        probed = set()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {}
            for item in items:
                if stop_flag and stop_flag():
                    break
                futures[pool.submit(self._probe, item)] = item

            for fut in as_completed(futures):
                item = futures[fut]
                if stop_flag and stop_flag():
                    for f in futures:
                        f.cancel()
                    break
                try:
                    changes = fut.result()
                except Exception as e:
                    logger.exception("Probe crashed for %s", item.source_path)
                    changes = {"error": describe_error(e)}

                item.update(emit, **changes)
                probed.add(item.id)
                if item.error:
                    logger.warning("%s: %s", item.source_path, item.error)
                _progress(f"{os.path.basename(item.source_path)}: properties loaded")

        return [it for it in items if it.id in probed]
