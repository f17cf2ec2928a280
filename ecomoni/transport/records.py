from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List


def iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
    """
    Yield one or more JSON objects found in a string.

    This function is robust against inputs where multiple JSON objects are
    concatenated with or without newlines (NDJSON), e.g.::

        '{"a": 1}{"b": 2}'
        '{"a": 1}\\n{"b": 2}\\n'

    Only dictionary objects are yielded (non-dict JSON like strings or
    numbers is ignored). A top-level JSON array is expanded into its
    dictionary elements.

    Parameters
    ----------
    text
        Input string potentially containing one or more JSON values.

    Yields
    ------
    dict
        Parsed JSON objects (dictionaries) found in the input.

    Raises
    ------
    ValueError
        If the input is not valid JSON.
    """
    s = text.strip()
    if not s:
        return

    dec = json.JSONDecoder()
    i = 0
    n = len(s)

    while i < n:
        while i < n and s[i].isspace():
            i += 1
        if i >= n:
            break

        obj, end = dec.raw_decode(s, i)
        if isinstance(obj, dict):
            yield obj
        elif isinstance(obj, list):
            for item in obj:
                if isinstance(item, dict):
                    yield item
        i = end


def decode_csv_records(text: str) -> List[Dict[str, Any]]:
    """
    Decode CSV text with a header row into records.

    Cells are kept as stripped strings; numeric parsing is left to the
    measurement schema. Fully blank rows are skipped.
    """
    # Strip a UTF-8 BOM left by spreadsheet exports.
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text))
    out: List[Dict[str, Any]] = []
    for row in reader:
        rec = {str(k).strip(): (v or "").strip() for k, v in row.items() if k is not None}
        if any(rec.values()):
            out.append(rec)
    return out


def decode_records(text: str, fmt: str) -> List[Dict[str, Any]]:
    """
    Decode import text into raw records.

    Parameters
    ----------
    text
        File content.
    fmt
        ``"json"``, ``"ndjson"`` or ``"csv"``.

    Returns
    -------
    list of dict
        Raw records, not yet validated.

    Raises
    ------
    ValueError
        If ``fmt`` is unsupported or the content does not decode.
    """
    f = fmt.lower().lstrip(".")
    if f in ("json", "ndjson", "jsonl"):
        return list(iter_json_objects(text))
    if f == "csv":
        return decode_csv_records(text)
    raise ValueError(f"Unsupported import format: {fmt}")


def read_records_file(path: str | Path) -> List[Dict[str, Any]]:
    """
    Read an import file, choosing the decoder by file suffix.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the suffix is unsupported or the content does not decode.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    return decode_records(text, p.suffix)
