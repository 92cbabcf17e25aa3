"""Admin CLI for loading and inspecting airport surface layouts.

Usage examples:
    python scripts/manage_layouts.py load SAV layouts/sav.json
    python scripts/manage_layouts.py show SAV --json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

from pydantic import ValidationError

from ramptrack.db import init_db
from ramptrack.errors import StoreError
from ramptrack.models.airport import AirportLayout, get_airport
from ramptrack.store import SqlLayoutStore


def _get_store() -> SqlLayoutStore:
    init_db()
    return SqlLayoutStore()


def _require_base(code: str) -> str:
    airport = get_airport(code)
    if airport is None:
        sys.stderr.write(f"Unknown airport {code!r}.\n")
        raise SystemExit(1)
    return airport.code


def cmd_load(args) -> None:
    code = _require_base(args.base)
    try:
        raw = json.loads(Path(args.path).read_text(encoding="utf-8"))
        layout = AirportLayout.model_validate(raw.get("layout", raw))
    except (OSError, ValueError, ValidationError) as exc:
        sys.stderr.write(f"Could not read layout from {args.path}: {exc}\n")
        raise SystemExit(1)

    if not args.yes:
        confirmation = input(
            f"Replace layout for {code} with {len(layout.gates)} gates? [y/N]: "
        ).strip().lower()
        if confirmation not in {"y", "yes"}:
            print("Cancelled.")
            return

    try:
        _get_store().replace(code, layout)
    except StoreError as exc:
        sys.stderr.write(f"Failed to store layout: {exc}\n")
        raise SystemExit(1)

    print(
        f"Layout for {code} replaced: gates={len(layout.gates)}"
        f" runways={len(layout.runways)} taxi_nodes={len(layout.taxi_graph)}"
    )


def cmd_show(args) -> None:
    code = _require_base(args.base)
    layout = _get_store().read(code)
    if layout is None:
        print(f"No layout stored for {code}.")
        return

    if args.json:
        print(json.dumps(layout.model_dump(mode="json", by_alias=True), indent=2))
        return

    print(f"{code}: center={layout.center.lat:.5f},{layout.center.lon:.5f}")
    for gate in layout.gates:
        preferred = gate.preferred_aircraft_type.value if gate.preferred_aircraft_type else "any"
        print(f"  gate {gate.id}: {gate.position.lat:.6f},{gate.position.lon:.6f} type={preferred}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage RampTrack airport layouts")
    sub = parser.add_subparsers(dest="command", required=True)

    load_cmd = sub.add_parser("load", help="Replace a base layout from a JSON file")
    load_cmd.add_argument("base", help="Three-letter base code")
    load_cmd.add_argument("path", help="Layout JSON file")
    load_cmd.add_argument("--yes", action="store_true", help="Replace without prompting")
    load_cmd.set_defaults(func=cmd_load)

    show_cmd = sub.add_parser("show", help="Print the stored layout for a base")
    show_cmd.add_argument("base", help="Three-letter base code")
    show_cmd.add_argument("--json", action="store_true", help="Return JSON output")
    show_cmd.set_defaults(func=cmd_show)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
