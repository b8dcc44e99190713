#!/usr/bin/env python3
"""Print the records held in a simplepersist storage file.

Usage
-----
::

    python scripts/dump_storage.py                      # platform default file
    python scripts/dump_storage.py --path state.json    # explicit file
    python scripts/dump_storage.py --key pinia-cart --json

Options::

    --path FILE     Storage file (default: $SIMPLEPERSIST_STORAGE_PATH or ~/.simplepersist/storage.json)
    --key KEY       Only show this key
    --json          Output as machine-readable JSON
    --no-redact     Show sensitive fields instead of ``<redacted>``
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from simplepersist._redact import redact_snapshot  # noqa: E402
from simplepersist.storage import FileStorage, default_storage_path  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _decode(record: str) -> Any:
    try:
        return json.loads(record)
    except json.JSONDecodeError:
        return None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--path", type=Path, default=None)
    parser.add_argument("--key", default=None)
    parser.add_argument("--json", action="store_true", dest="as_json")
    parser.add_argument("--no-redact", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    path = args.path or default_storage_path()
    if not path.exists():
        print(f"No storage file at {path}", file=sys.stderr)
        return 1

    items = FileStorage(path).items()
    if args.key is not None:
        items = {k: v for k, v in items.items() if k == args.key}

    decoded: dict[str, Any] = {}
    for key, record in sorted(items.items()):
        value = _decode(record)
        if value is None:
            decoded[key] = {"__undecodable__": record[:80]}
        else:
            decoded[key] = value if args.no_redact else redact_snapshot(value)

    if args.as_json:
        print(json.dumps(decoded, indent=2, ensure_ascii=False))
        return 0

    print(_section(f"{path} ({len(decoded)} record(s))"))
    for key, value in decoded.items():
        print(f"\n{key}:")
        print(json.dumps(value, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
