# cli.py
# Scan a folder, pick what is worth shrinking for a preset, optimize it.
# tqdm progress bars per phase; log lines go through tqdm.write so bars survive.

import argparse
import json
import logging
import os
import sys
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Dict, Any

import yaml
from tqdm import tqdm

from domain.constants import ITEM_STATUS_FAILED
from domain.models import OptimizerConfig
from domain.presets import DEFAULT_PRESET, PRESETS, preset_by_label
from services.report_service import ReportService
from services.session_service import Session


# ---------------------------
# Helpers
# ---------------------------

def load_config(path: str | None) -> Dict[str, Any]:
    if not path:
        return {}

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    if p.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    return json.loads(p.read_text(encoding="utf-8"))


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if v is not None:
            out[k] = v
    return out


def tqdm_enabled() -> bool:
    return sys.stderr.isatty()


def log(msg: str, logfile: Path | None):
    ts = time.strftime("%Y-%m-%d %H:%M:%S")
    line = f"[{ts}] {msg}"
    tqdm.write(line)
    if logfile:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        with logfile.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


class TqdmLogHandler(logging.Handler):
    """Routes library logging through log() so it lands between bars and in the log file."""

    def __init__(self, logfile: Path | None, level=logging.NOTSET):
        super().__init__(level)
        self.logfile = logfile

    def emit(self, record: logging.LogRecord):
        try:
            msg = self.format(record)
            log(msg, self.logfile)
        except Exception:
            self.handleError(record)


def setup_logging(logfile: Path | None, verbose: bool):
    handler = TqdmLogHandler(logfile)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def format_bytes(n: int) -> str:
    size = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(size) < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"


# ---------------------------
# CLI main
# ---------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-optimizer",
        description="Media Optimizer – shrink oversized videos and images in place"
    )

    parser.add_argument("--config", help="Config file (json or yaml)")
    parser.add_argument("--source", help="Source folder")
    parser.add_argument("--target", help="Target folder (default: next to each source file)")
    parser.add_argument("--preset", help=f"Target preset label (default: {DEFAULT_PRESET.label})")
    parser.add_argument("--list-presets", action="store_true", help="Show presets and exit")

    parser.add_argument("--workers", type=int, help="Parallel optimizations (default 1)")
    parser.add_argument("--probe-workers", type=int, help="Parallel metadata probes")
    parser.add_argument("--quality", type=int, help="JPEG quality for images")
    parser.add_argument("--replace-source", action="store_true", default=None,
                        help="Trash the source even when the optimized file has a new name")
    parser.add_argument("--no-trash", action="store_true", default=None,
                        help="Delete replaced files instead of using the trash")
    parser.add_argument("--no-thumbnails", action="store_true", default=None)
    parser.add_argument("--dry-run", action="store_true", default=None, help="Scan and select only")

    parser.add_argument("--log-file", help="Write logs to file")
    parser.add_argument("--report-dir", help="Write an item CSV and a summary here")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def build_config(cfg: Dict[str, Any]) -> OptimizerConfig:
    data = dict(cfg)
    if data.get("target"):
        data["target_root"] = data["target"]
    if data.get("no_trash"):
        data["use_trash"] = False
    if data.get("no_thumbnails"):
        data["generate_thumbnails"] = False
    return OptimizerConfig.from_dict(data)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_presets:
        for p in PRESETS:
            mark = " (default)" if p == DEFAULT_PRESET else ""
            print(f"{p.label}: {p.width}x{p.height} {p.encoding}{mark}")
        return 0

    logfile = Path(args.log_file) if args.log_file else None
    bars_on = tqdm_enabled()
    setup_logging(logfile, args.verbose)

    # ---------------------------
    # Load config
    # ---------------------------

    cfg_file = load_config(args.config)

    cli_cfg = {
        "source": args.source,
        "target": args.target,
        "preset": args.preset,
        "optimize_workers": args.workers,
        "probe_workers": args.probe_workers,
        "jpeg_quality": args.quality,
        "replace_source": args.replace_source,
        "no_trash": args.no_trash,
        "no_thumbnails": args.no_thumbnails,
        "dry_run": args.dry_run,
        "report_dir": args.report_dir,
    }

    cfg = merge_config(cfg_file, cli_cfg)

    if not cfg.get("source"):
        parser.error("source is required")

    source = cfg["source"]
    if not os.path.isdir(source):
        parser.error(f"source folder not found: {source}")

    try:
        preset = preset_by_label(cfg["preset"]) if cfg.get("preset") else DEFAULT_PRESET
    except ValueError as e:
        parser.error(str(e))

    session = Session(source, config=build_config(cfg))

    # ---------------------------
    # Scan (phase bar + skip reasons)
    # ---------------------------

    log(f"Scanning {session.source_root}…", logfile)

    scan_pbar = None
    _last_i = 0
    skip_reasons = Counter()

    def scan_progress(i, total, message):
        nonlocal scan_pbar, _last_i
        if scan_pbar is None:
            scan_pbar = tqdm(
                total=total,
                desc="Scan",
                unit="file",
                dynamic_ncols=True,
                disable=not bars_on,
            )
        delta = i - _last_i
        if delta > 0:
            scan_pbar.update(delta)
            _last_i = i

    def scan_skip(reason, path):
        skip_reasons[reason] += 1

    session.rescan(progress_cb=scan_progress, skip_cb=scan_skip)
    session.apply_preset(preset)

    if scan_pbar is not None:
        scan_pbar.close()

    if skip_reasons:
        log("Skipped entries:", logfile)
        for reason, cnt in skip_reasons.most_common(10):
            log(f"  - {reason}: {cnt}", logfile)

    selected = [it for it in session.items if it.id in session.selected_ids]
    selected_bytes = sum(it.source_size or 0 for it in selected)
    log(
        f"Found {len(session.items)} media files; {len(selected)} exceed {preset.label} "
        f"({format_bytes(selected_bytes)})",
        logfile,
    )

    if cfg.get("dry_run"):
        for it in selected:
            log(f"  {it.source_path}: {it.source_resolution} -> {it.target_resolution}", logfile)
        log("Dry-run enabled. Nothing converted.", logfile)
        return 0

    if not selected:
        log("Nothing to do.", logfile)
        return 0

    # ---------------------------
    # Optimize (phase bar)
    # ---------------------------

    exec_pbar = tqdm(
        total=len(selected),
        desc="Optimize",
        unit="item",
        dynamic_ncols=True,
        disable=not bars_on,
    )

    names = {it.id: os.path.basename(it.source_path) for it in selected}

    def on_event(event):
        if event.field == "completion_percentage" and event.item_id in names and event.value is not None:
            exec_pbar.set_postfix_str(f"{names[event.item_id]} {event.value:.0%}", refresh=True)

    session.events.subscribe(on_event)

    _last_done = 0

    def exec_progress(done, total, item):
        nonlocal _last_done
        delta = done - _last_done
        if delta > 0:
            exec_pbar.update(delta)
            _last_done = done
        if item.error:
            log(f"FAILED {item.source_path}: {item.error}", logfile)

    worker = threading.Thread(
        target=session.run_batch,
        kwargs={"progress_cb": exec_progress},
        daemon=True,
    )
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        log("Cancelling… waiting for running items to stop", logfile)
        session.cancel()
        worker.join()

    session.events.unsubscribe(on_event)
    exec_pbar.close()

    # ---------------------------
    # Report
    # ---------------------------

    s = session.summary()
    log(
        f"Done. {s['status']} saved {format_bytes(s['source_bytes'] - s['target_bytes'])}",
        logfile,
    )

    if cfg.get("report_dir"):
        paths = ReportService().produce(session, cfg["report_dir"])
        log(f"Report written to {paths['summary']}", logfile)

    failed = any(it.status == ITEM_STATUS_FAILED for it in session.items)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
