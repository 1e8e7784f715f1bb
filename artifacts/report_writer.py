import csv

from utils.timeutil import elapsed_seconds

ITEM_COLUMNS = [
    "id", "status", "content_type", "source_path", "target_path",
    "source_resolution", "target_resolution", "source_encoding", "target_encoding",
    "source_size", "target_size", "time_begin", "time_end", "error",
]


def _cell(value):
    if value is None:
        return ""
    return str(value)


def write_csv_and_summary(session, csv_path: str, summary_path: str):
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(ITEM_COLUMNS)
        for it in session.items:
            w.writerow([_cell(getattr(it, c)) for c in ITEM_COLUMNS])

    s = session.summary()
    saved = s["source_bytes"] - s["target_bytes"]

    lines = []
    lines.append(f"Source: {session.source_root}")
    lines.append(f"Target: {session.target_root}")
    lines.append(f"Preset: {session.preset.label} ({session.preset.width}x{session.preset.height})")
    lines.append(f"Started: {session.time_begin or '-'}")
    lines.append(f"Finished: {session.time_end or '-'}")
    elapsed = elapsed_seconds(session.time_begin, session.time_end)
    lines.append(f"Elapsed: {'-' if elapsed is None else f'{elapsed}s'}")
    lines.append("")
    lines.append("Summary")
    lines.append(f"- Items found: {s['total']}")
    lines.append(f"- Items selected: {s['selected']}")
    lines.append(f"- Errors: {s['errors']}")
    lines.append(f"- Bytes before: {s['source_bytes']}")
    lines.append(f"- Bytes after: {s['target_bytes']}")
    lines.append(f"- Bytes saved: {saved}")
    lines.append("")
    lines.append("Status counts")
    for status, n in sorted(s["status"].items()):
        lines.append(f"- {status}: {n}")

    with open(summary_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
