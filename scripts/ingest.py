#!/usr/bin/env python3
"""
CLI for ingesting documents into the vector store.

Usage examples:
  python ingest.py --file /path/to/doc.pdf
  python ingest.py --dir ./data/raw
  python ingest.py --dir ./data/raw --rebuild

The script prints a JSON result and exits with non-zero on error.
"""
import argparse
import json
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatstream.core.errors import PipelineError
from chatstream.core.logging import get_logger
from chatstream.services.ingestion import get_ingestion_service

logger = get_logger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Ingest documents into vector store")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--file", "-f", help="Path to a single file to ingest")
    group.add_argument("--dir", "-d", help="Directory containing documents to ingest")
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Clear the collection before ingesting a directory"
    )

    args = parser.parse_args()
    if args.rebuild and not args.dir:
        parser.error("--rebuild requires --dir")

    service = get_ingestion_service()

    try:
        if args.file:
            result = service.ingest_file(args.file)
        elif args.rebuild:
            result = service.rebuild_index(args.dir)
        else:
            result = service.ingest_directory(args.dir)
    except PipelineError as e:
        logger.error("Ingestion failed: %s", e)
        print(json.dumps({"status": "error", "message": str(e)}))
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
