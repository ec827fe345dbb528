"""
File system helpers for configuration and route sheet export.

Every writer goes through `write_text_atomic`, so an interrupted export never
leaves a half written sheet table or JSON document behind.
"""

import csv
import io
import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable
import yaml


# Characters rejected in file names by Windows, macOS or Linux.
_FORBIDDEN_FILENAME_CHARS = set('<>:"/\\|?*')


def ensure_dir(directory: str | Path) -> Path:
    """
    Create a directory (and its parents) when missing and return it.
    """
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    return path


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def read_yaml(path: str | Path) -> dict:
    """
    Read a YAML document; an empty file reads as an empty dict.
    """
    with Path(path).open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def read_json(path: str | Path) -> Any:
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def write_text_atomic(path: str | Path, text: str) -> None:
    """
    Write UTF-8 text to a temporary file next to `path`, then move it in
    place.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", newline="", delete=False, dir=str(target.parent)
    ) as tmp:
        tmp.write(text)
        tmp_path = Path(tmp.name)
    tmp_path.replace(target)


def write_json(path: str | Path, data: Any, *, indent: int = 2) -> None:
    """
    Write a JSON document. Non-ASCII text (municipality names, messages) is
    kept as is.
    """
    write_text_atomic(path, json.dumps(data, ensure_ascii=False, indent=indent))


def write_csv_rows(
    path: str | Path,
    rows: Iterable[dict[str, Any]],
    fieldnames: list[str] | None = None,
) -> None:
    """
    Write dict rows as a CSV table. Without `fieldnames` the keys of the
    first row are the header.
    """
    rows = list(rows)
    if not rows and not fieldnames:
        raise ValueError("rows is empty and fieldnames not provided")
    header = fieldnames or list(rows[0])
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=header, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    write_text_atomic(path, buffer.getvalue())


def write_manifest(path: str | Path, meta: dict[str, Any]) -> None:
    """
    Write the manifest of an export run, stamped with the UTC creation time.
    """
    write_json(path, {"created_at_utc": now_utc_iso(), **meta})


def safe_filename(name: str) -> str:
    """
    Replace the characters that are not allowed in file names on common
    file systems.
    """
    cleaned = "".join(
        "_" if ch in _FORBIDDEN_FILENAME_CHARS or ord(ch) < 32 else ch
        for ch in name
    )
    return cleaned.strip() or "x"
