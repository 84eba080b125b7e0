import csv
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Sequence, TextIO

FORMATS = ("csv", "json", "jsonl")

# Headers and brackets are only written once the first row (or the end of
# the sequence) is reached, so a run that fails early leaves no output.


def write_csv(rows: Iterable[Dict[str, Any]], fp: TextIO, columns: Sequence[str]) -> int:
    writer = csv.DictWriter(fp, fieldnames=list(columns), restval="", extrasaction="ignore")
    count = 0
    for row in rows:
        if not count:
            writer.writeheader()
        # absent values become empty cells
        writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
        count += 1
    if not count:
        writer.writeheader()
    return count


def write_jsonl(rows: Iterable[Dict[str, Any]], fp: TextIO) -> int:
    count = 0
    for row in rows:
        fp.write(json.dumps(row, ensure_ascii=False) + "\n")
        count += 1
    return count


def write_json(rows: Iterable[Dict[str, Any]], fp: TextIO) -> int:
    count = 0
    for row in rows:
        fp.write(",\n  " if count else "[\n  ")
        fp.write(json.dumps(row, ensure_ascii=False))
        count += 1
    fp.write("\n]\n" if count else "[]\n")
    return count


def write_rows(
    rows: Iterable[Dict[str, Any]], fp: TextIO, fmt: str = "csv", columns: Sequence[str] = ()
) -> int:
    """Serialize report rows to fp. Returns the number of rows written."""
    if fmt == "csv":
        return write_csv(rows, fp, columns)
    if fmt == "jsonl":
        return write_jsonl(rows, fp)
    if fmt == "json":
        return write_json(rows, fp)
    raise ValueError(f"Unknown output format: {fmt}")


def write_report_file(
    rows: Iterable[Dict[str, Any]], path: Path, fmt: str = "csv", columns: Sequence[str] = ()
) -> int:
    """
    Write the report next to path and move it into place once every row is
    written. A run that fails part way leaves any existing file untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix="._", suffix=f".{fmt}")
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as fp:
            count = write_rows(rows, fp, fmt, columns)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise
    return count
