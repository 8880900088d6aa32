"""CLI command for exporting Work graphs as metadata documents."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from dotenv import load_dotenv

load_dotenv()

from bibexport.config import ExportSettings
from bibexport.errors import ExportError, WorkGraphError
from bibexport.exporter import MetadataExporter
from bibexport.graph import load_works_file
from bibexport.specifications import build_default_specifications

LOGGER = logging.getLogger(__name__)


def _build_exporter(settings: ExportSettings) -> MetadataExporter:
    exporter = MetadataExporter()
    for name, specification in build_default_specifications(settings).items():
        exporter.register_specification(name, specification)
    return exporter


def _print_payload(payload: dict[str, object]) -> None:
    print(json.dumps(payload, ensure_ascii=True, indent=2))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export a JSON Work graph as a metadata document")
    parser.add_argument("--input", required=True, help="JSON file with one work or a list of works")
    parser.add_argument(
        "--specification",
        required=True,
        help="Output format, e.g. doideposit::crossref or marc21xml::thoth",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Target file or directory; the document goes to stdout when omitted",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    payload: dict[str, object] = {"input": args.input, "specification": args.specification}
    try:
        settings = ExportSettings.from_env()
        works = load_works_file(args.input)
        record = _build_exporter(settings).export(args.specification, works)
    except (ValueError, WorkGraphError, ExportError) as exc:
        LOGGER.error("Export failed: %s", exc)
        payload["error"] = str(exc)
        _print_payload(payload)
        return 1

    if args.output is None:
        sys.stdout.write(record.content.decode("utf-8"))
        sys.stdout.flush()
        return 0

    target = Path(args.output)
    if target.is_dir():
        target = target / record.file_name
    try:
        target.write_bytes(record.content)
    except OSError as exc:
        LOGGER.error("Failed to write %s: %s", target, exc)
        payload["error"] = f"Failed to write {target}: {exc}"
        _print_payload(payload)
        return 1
    LOGGER.info("Wrote %s (%s bytes)", target, len(record.content))

    payload.update(
        {
            "output": str(target),
            "file_name": record.file_name,
            "content_type": record.content_type,
            "works": len(works),
            "bytes": len(record.content),
        }
    )
    _print_payload(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
