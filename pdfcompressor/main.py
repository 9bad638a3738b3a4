import argparse
import json
import sys
from pathlib import Path

import psycopg

from pdfcompressor.compression.exceptions import CompressorError
from pdfcompressor.config.settings import Settings
from pdfcompressor.database.connection import close_pool, init_pool
from pdfcompressor.database.repositories.compression_record_repository import (
    CompressionRecordRepository,
)
from pdfcompressor.janitor.janitor import Janitor
from pdfcompressor.logging.logger import Log
from pdfcompressor.service.compression_service import build_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pdfcompressor")
    commands = parser.add_subparsers(dest="command", required=True)

    compress = commands.add_parser("compress", help="compress a PDF towards a target size")
    compress.add_argument("file", type=Path)
    compress.add_argument(
        "--target",
        default="150",
        help="size tier: 100, 150, 180, 400 or custom",
    )
    compress.add_argument("--custom-kb", type=int, default=None)
    compress.add_argument("--backend", default=None, help="override the preferred backend")

    commands.add_parser("cleanup", help="purge stale artifacts and old usage records")
    return parser


def run_compress(args: argparse.Namespace, settings: Settings) -> int:
    if args.backend:
        settings = settings.model_copy(update={"preferred_backend": args.backend})
    try:
        service = build_service(settings)
    except ValueError as exc:
        Log.error(f"Invalid backend configuration: {exc}")
        print(json.dumps({"success": False, "error": "invalid_configuration", "message": str(exc)}))
        return 2
    try:
        result = service.compress_file(args.file, args.target, custom_kb=args.custom_kb)
    except FileNotFoundError as exc:
        Log.error(str(exc))
        print(json.dumps({"success": False, "error": "file_not_found", "message": str(exc)}))
        return 1
    except CompressorError as exc:
        Log.error(f"Compression failed ({exc.category}): {exc}")
        print(json.dumps({"success": False, "error": exc.category, "message": str(exc)}))
        return 1
    print(
        json.dumps(
            {
                "success": True,
                "original_size": result.original_size_bytes,
                "compressed_size": result.compressed_size_bytes,
                "compression_ratio": result.compression_ratio_percent,
                "compression_method": result.backend_used,
                "passes_used": result.passes_used,
                "target_size": result.target_size_kb,
                "output": str(result.output_path),
            }
        )
    )
    return 0


def run_cleanup(settings: Settings) -> int:
    record_repo = CompressionRecordRepository() if settings.record_usage else None
    janitor = Janitor(
        scratch_dir=settings.scratch_dir,
        output_dir=settings.output_dir,
        file_retention_seconds=settings.file_retention_seconds,
        record_retention_days=settings.record_retention_days,
        record_repo=record_repo,
    )
    janitor.run()
    return 0


def open_usage_records(settings: Settings) -> Settings:
    """Open the record pool; without a database the run continues unrecorded."""
    try:
        init_pool(settings)
        CompressionRecordRepository().ensure_schema()
    except psycopg.Error as exc:
        Log.warning(f"Usage records disabled, database unavailable: {exc}")
        close_pool()
        return settings.model_copy(update={"record_usage": False})
    return settings


def main(argv: list[str] | None = None) -> int:
    """Entry point: configure -> optional pool -> run the chosen command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)

    try:
        if settings.record_usage:
            settings = open_usage_records(settings)
        if args.command == "cleanup":
            return run_cleanup(settings)
        return run_compress(args, settings)
    finally:
        close_pool()


if __name__ == "__main__":
    sys.exit(main())
