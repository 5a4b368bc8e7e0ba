"""Command-line interface for processing order forms.

Subcommands run the full pipeline on a local PDF, parse an existing OCR
text dump, check the OCR and spreadsheet setup, or start the API server.
"""

import argparse
import json
import shutil
import sys
import uuid
from pathlib import Path

import uvicorn

from order_ocr.api.app import create_app
from order_ocr.api.schemas import ProcessResponse
from order_ocr.errors import MissingLanguageResource, SinkError
from order_ocr.extraction.field_extractor import extract
from order_ocr.pipeline.orchestrator import OrderFormPipeline, PipelineResult
from order_ocr.sinks.base import RecordSink
from order_ocr.sinks.csv_sink import CsvSink
from order_ocr.sinks.sheets import GoogleSheetsSink
from order_ocr.utils.config import AppConfig, load_config
from order_ocr.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def process_file(
    file_path: Path, config: AppConfig, sink: RecordSink | None = None
) -> PipelineResult:
    """Run the pipeline on a copy of a local PDF.

    The pipeline deletes the document it is given, so the caller's file is
    copied into the upload directory first.

    Args:
        file_path: PDF to process.
        config: Application configuration.
        sink: Optional record sink.

    Returns:
        The pipeline result.
    """
    run_id = uuid.uuid4().hex
    upload_dir = Path(config.upload.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    working_copy = upload_dir / f"{run_id}.pdf"
    shutil.copyfile(file_path, working_copy)

    pipeline = OrderFormPipeline.from_config(config, sink=sink)
    return pipeline.run(working_copy, run_id=run_id)


def parse_text_file(file_path: Path) -> dict[str, dict[str, str]]:
    """Extract fields from a saved OCR text dump.

    Args:
        file_path: UTF-8 text file with OCR output.

    Returns:
        The extracted record as a nested dictionary.
    """
    text = file_path.read_text(encoding="utf-8")
    return extract(text).to_dict()


def run_checks(config: AppConfig) -> dict[str, str]:
    """Check the OCR engine, language data and spreadsheet access.

    Args:
        config: Application configuration.

    Returns:
        Mapping of check name to ``ok``, ``skipped`` or a failure message.
    """
    pipeline = OrderFormPipeline.from_config(config)
    results: dict[str, str] = {}

    results["tesseract"] = "ok" if pipeline.ocr_engine.is_available() else "not found"
    try:
        pipeline.ocr_engine.check_language_data()
        results["language_data"] = "ok"
    except MissingLanguageResource as exc:
        results["language_data"] = exc.message

    if not config.sheets.spreadsheet_id:
        results["sheets"] = "skipped"
    else:
        try:
            GoogleSheetsSink.from_config(config.sheets).verify()
            results["sheets"] = "ok"
        except SinkError as exc:
            results["sheets"] = exc.message

    return results


def _build_sink(args: argparse.Namespace, config: AppConfig) -> RecordSink | None:
    if args.csv:
        return CsvSink(args.csv)
    if args.sheets:
        return GoogleSheetsSink.from_config(config.sheets)
    return None


def _emit(payload: object, output: Path | None) -> None:
    output_str = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(output_str, encoding="utf-8")
        print(f"Output written to {output}")
    else:
        print(output_str)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Order form OCR processor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (default: configs/config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser("process", help="Process an order form PDF")
    process_parser.add_argument("file", type=Path, help="PDF file to process")
    process_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")
    sink_group = process_parser.add_mutually_exclusive_group()
    sink_group.add_argument("--csv", type=Path, help="Append the record to a CSV file")
    sink_group.add_argument(
        "--sheets", action="store_true", help="Append the record to Google Sheets"
    )

    text_parser = subparsers.add_parser(
        "parse-text", help="Extract fields from an OCR text file"
    )
    text_parser.add_argument("file", type=Path, help="Text file with OCR output")
    text_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    subparsers.add_parser("check", help="Check OCR and spreadsheet setup")
    subparsers.add_parser("serve", help="Start the HTTP API server")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if args.command == "process":
        if not args.file.is_file():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            sink = _build_sink(args, config)
        except SinkError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            sys.exit(1)
        result = process_file(args.file, config, sink)
        _emit(ProcessResponse.from_result(result).model_dump(), args.output)
        if not result.success:
            sys.exit(1)
    elif args.command == "parse-text":
        if not args.file.is_file():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        _emit(parse_text_file(args.file), args.output)
    elif args.command == "check":
        results = run_checks(config)
        for name, status in results.items():
            print(f"{name:<15} {status}")
        if any(status not in ("ok", "skipped") for status in results.values()):
            sys.exit(1)
    elif args.command == "serve":
        uvicorn.run(create_app(config), host=config.api.host, port=config.api.port)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
