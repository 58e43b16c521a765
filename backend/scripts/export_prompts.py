"""Export one user's saved prompts from Supabase to JSON or CSV."""

from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path
from typing import Iterable

from promptcraft.config import get_settings
from promptcraft.supabase_client import get_supabase_client

DEFAULT_OUTPUT_DIR = Path("data/exports")

CSV_FIELDS = [
    "id",
    "title",
    "target_model",
    "use_case",
    "created_at",
    "refined_prompt",
    "inputs",
]


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export a user's saved prompts using the service-role client."
    )
    parser.add_argument("user_id", help="Supabase auth user id whose prompts to export.")
    parser.add_argument(
        "--format",
        choices=("json", "csv"),
        default="json",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory where the export file will be written.",
    )
    parser.add_argument(
        "--limit",
        type=positive_int,
        default=None,
        help="Maximum number of prompts to export (defaults to EXPORT_LIMIT).",
    )
    return parser.parse_args(argv)


def fetch_prompts(client, table: str, user_id: str, limit: int) -> list[dict]:
    response = (
        client.table(table)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return list(response.data or [])


def write_json(path: Path, rows: Iterable[dict]) -> None:
    with path.open("w", encoding="utf-8") as fh:
        json.dump({"items": list(rows)}, fh, ensure_ascii=False, indent=2)


def write_csv(path: Path, rows: Iterable[dict]) -> None:
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            record = dict(row)
            if record.get("inputs") is not None:
                record["inputs"] = json.dumps(record["inputs"], ensure_ascii=False)
            writer.writerow(record)


def main(argv: list[str] | None = None) -> Path:
    args = parse_args(argv)
    settings = get_settings()
    limit = args.limit if args.limit is not None else settings.export_limit

    client = get_supabase_client(service_role=True)
    rows = fetch_prompts(client, settings.prompts_table, args.user_id, limit)

    args.output_dir.mkdir(parents=True, exist_ok=True)
    output_path = args.output_dir / f"promptcraft-export-{args.user_id}.{args.format}"
    if args.format == "csv":
        write_csv(output_path, rows)
    else:
        write_json(output_path, rows)

    print(f"Exported {len(rows)} prompts to {output_path}")
    return output_path


if __name__ == "__main__":
    main()
