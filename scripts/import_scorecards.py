#!/usr/bin/env python3
"""Import or export agent scorecard spreadsheets from the command line.

    python -m scripts.import_scorecards import --file scorecards.xlsx
    python -m scripts.import_scorecards export --out scorecards.csv --format csv --start 2026-01
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

from app.container import container
from app.db import session_scope
from app.logging import configure_logging
from app.services.scorecards.errors import ScorecardError


def _period(value: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}") from exc
    return parsed.year, parsed.month


def run_import(db, path: Path) -> int:
    result = container.scorecard_spreadsheets().import_scorecards(db, path.read_bytes(), path.name)
    print(f"{result.imported} of {result.total} rows imported")
    for error in result.errors:
        print(f"  {error}")
    return 0 if result.success else 1


def run_export(db, out: Path, fmt: str, start, end, agent_ids) -> int:
    content = container.scorecard_spreadsheets().export_scorecards(
        db, fmt, agent_ids=agent_ids or None, start=start, end=end
    )
    out.write_bytes(content)
    print(f"wrote {out} ({len(content)} bytes)")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import or export agent scorecards.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import a .xlsx or .csv scorecard sheet.")
    import_parser.add_argument("--file", required=True, type=Path, help="Spreadsheet to import.")

    export_parser = subparsers.add_parser("export", help="Export stored scorecards.")
    export_parser.add_argument("--out", required=True, type=Path, help="Destination file.")
    export_parser.add_argument("--format", choices=("xlsx", "csv"), help="Defaults to the --out suffix.")
    export_parser.add_argument("--start", type=_period, help="First period, YYYY-MM.")
    export_parser.add_argument("--end", type=_period, help="Last period, YYYY-MM.")
    export_parser.add_argument("--agent-id", action="append", dest="agent_ids", help="Repeat to export several agents.")

    args = parser.parse_args(argv)
    configure_logging()

    with session_scope() as db:
        try:
            if args.command == "import":
                return run_import(db, args.file)
            fmt = args.format or args.out.suffix.lower().lstrip(".") or "xlsx"
            return run_export(db, args.out, fmt, args.start, args.end, args.agent_ids)
        except ScorecardError as exc:
            print(f"error: {exc.detail}", file=sys.stderr)
            return 2


if __name__ == "__main__":
    sys.exit(main())
