"""
CLI Interface Module

Provides the command-line interface for the Identity Intelligence System:
reconciling the images of one client, batch reconciliation of a directory
of clients, and configuration validation.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tqdm import tqdm

from ..models.data_structures import ImageOutcome, ImageRole, ReconciledRecord
from ..orchestration.document_reconciler import DocumentReconciler
from ..utils.config_loader import Config
from ..utils.error_handlers import (
    ConfigurationError,
    IdentityProcessingError,
    ReconciliationFailure,
    create_error_report,
    get_retry_delay,
    handle_processing_error,
    is_retriable_error,
)
from ..utils.file_utils import (
    atomic_write,
    ensure_directory,
    find_role_images,
    generate_unique_id,
    list_subdirectories,
    read_image_upload,
    safe_filename,
)

logger = logging.getLogger(__name__)

# Constants
SEPARATOR_WIDTH = 60
DEFAULT_OUTPUT_DIR = "output"
MAX_RETRIES = 5

# Version
__version__ = "1.0.0"

ROLE_ARGUMENTS = {
    ImageRole.ID_FRONT: "id_front",
    ImageRole.ID_BACK: "id_back",
    ImageRole.LICENSE_FRONT: "license_front",
    ImageRole.LICENSE_BACK: "license_back",
}


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging for the CLI application.

    Application output goes to stdout, logs go to stderr.

    Args:
        log_level: Logging level as string (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def handle_error(context: str, error: Exception) -> int:
    """Centralized error handling for commands.

    Returns:
        Exit code 1.
    """
    if isinstance(error, FileNotFoundError):
        logger.error(f"{context}: File not found - {error}")
    elif isinstance(error, PermissionError):
        logger.error(f"{context}: Permission denied - {error}")
    elif isinstance(error, ValueError):
        logger.error(f"{context}: Invalid value - {error}")
    elif isinstance(error, ReconciliationFailure):
        logger.error(f"{context}: {error}")
        for role, reason in error.failures.items():
            logger.error(f"  {role}: {reason}")
    elif isinstance(error, IdentityProcessingError):
        logger.error(f"{context}: {error}")
    else:
        logger.error(f"{context}: {error}", exc_info=True)
    return 1


def build_reconciler(
    config_path: str, log_level: Optional[str] = None
) -> DocumentReconciler:
    """Load configuration and build a reconciler.

    The configured logging level applies unless one was given on the
    command line.

    Raises:
        ConfigurationError: If configuration cannot be loaded or is invalid.
    """
    config = Config.load(config_path)
    if log_level is None and config.logging.get("level"):
        logging.getLogger().setLevel(str(config.logging["level"]).upper())
    errors = Config.validate(config)
    for error in errors:
        logger.warning(f"Configuration: {error}")
    return DocumentReconciler.from_config(config)


def reconcile_with_retries(
    reconciler: DocumentReconciler, images: Dict[ImageRole, Any], retries: int
) -> Tuple[ReconciledRecord, List[ImageOutcome]]:
    """Call reconcile, retrying retryable failures with exponential backoff.

    Only failures where every image failed with a retryable error (timeouts,
    transport errors) are retried.
    """
    attempt = 0
    while True:
        try:
            return reconciler.reconcile(images)
        except IdentityProcessingError as e:
            attempt += 1
            if attempt > retries or not is_retriable_error(e):
                raise
            delay = get_retry_delay(attempt)
            logger.warning(
                f"Reconciliation failed ({e.message}); "
                f"retry {attempt}/{retries} in {delay:.1f}s"
            )
            time.sleep(delay)


def result_payload(
    record: ReconciledRecord, outcomes: List[ImageOutcome]
) -> Dict[str, Any]:
    return {
        "record": record.to_dict(),
        "outcomes": [outcome.to_dict() for outcome in outcomes],
    }


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    atomic_write(str(path), json.dumps(payload, ensure_ascii=False, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    """Execute the main CLI entry point.

    Returns:
        Exit code: 0 for success, 1 for errors, 130 when interrupted.

    Example:
        $ identity-intel reconcile --id-front cin_recto.jpg --id-back cin_verso.jpg
        $ identity-intel batch --input-dir ./clients --output-dir ./results
    """
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"Identity Intelligence System v{__version__}")
        return 0

    setup_logging(args.log_level or "INFO")

    if args.command is None:
        parser.print_help()
        return 1

    try:
        command_map = {
            "reconcile": command_reconcile,
            "batch": command_batch,
            "validate-config": command_validate_config,
        }

        handler = command_map.get(args.command)
        if handler:
            return handler(args)
        parser.print_help()
        return 1

    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130
    except Exception as e:
        return handle_error("Command execution failed", e)


def command_reconcile(args: argparse.Namespace) -> int:
    """Reconcile the images of one client.

    Args:
        args: Parsed arguments with id_front, id_back, license_front,
            license_back, output, retries and config.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    paths = {
        role: getattr(args, attr)
        for role, attr in ROLE_ARGUMENTS.items()
        if getattr(args, attr)
    }
    if not paths:
        logger.error("At least one image is required (--id-front, --id-back, ...)")
        return 1

    try:
        images = {role: read_image_upload(path) for role, path in paths.items()}
    except (FileNotFoundError, OSError) as e:
        return handle_error("Invalid input path", e)

    try:
        reconciler = build_reconciler(args.config, args.log_level)
        record, outcomes = reconcile_with_retries(reconciler, images, args.retries)
    except Exception as e:
        return handle_error("Reconciliation failed", e)

    print_record_summary(record, outcomes)

    if args.output:
        try:
            write_json(Path(args.output), result_payload(record, outcomes))
        except OSError as e:
            return handle_error("Writing output failed", e)
        print(f"✓ Saved to: {args.output}")

    return 0


def command_batch(args: argparse.Namespace) -> int:
    """Reconcile every client subdirectory of an input directory.

    Each subdirectory holds role-named images (id_front.jpg, id_back.png,
    license_front.jpg, license_back.jpg). One JSON file per client is written
    to the output directory.

    Returns:
        Exit code: 0 if every client succeeded, 1 otherwise.
    """
    input_dir = Path(args.input_dir)
    try:
        client_dirs = list_subdirectories(str(input_dir))
    except NotADirectoryError as e:
        return handle_error("Invalid input directory", e)

    if not client_dirs:
        logger.error(f"No client directories found in {input_dir}")
        return 1

    output_dir = Path(args.output_dir)
    ensure_directory(str(output_dir))

    try:
        reconciler = build_reconciler(args.config, args.log_level)
    except ConfigurationError as e:
        return handle_error("Configuration invalid", e)

    batch_id = generate_unique_id("BATCH")
    logger.info(f"Batch {batch_id}: {len(client_dirs)} client(s) from {input_dir}")

    successful = 0
    failed: List[str] = []
    needs_review = 0
    skipped = 0

    for client_dir in tqdm(client_dirs, desc="Reconciling", unit="client"):
        client_name = Path(client_dir).name
        role_paths = find_role_images(client_dir)
        if not role_paths:
            logger.warning(f"{client_name}: no role-named images, skipped")
            skipped += 1
            continue

        try:
            images = {
                role: read_image_upload(path) for role, path in role_paths.items()
            }
            record, outcomes = reconcile_with_retries(reconciler, images, args.retries)
        except Exception as e:
            _, message = handle_processing_error(
                e, {"image_role": client_name, "stage": "batch"}, logger
            )
            report = create_error_report(e)
            report["client"] = client_name
            write_json(output_dir / f"{safe_filename(client_name)}.error.json", report)
            logger.error(f"{client_name}: {message}")
            failed.append(client_name)
            continue

        output_path = output_dir / f"{safe_filename(client_name)}.json"
        write_json(output_path, result_payload(record, outcomes))
        successful += 1
        if record.validation_report and record.validation_report.needs_review:
            needs_review += 1

    print("\n" + "=" * SEPARATOR_WIDTH)
    print("BATCH RECONCILIATION SUMMARY")
    print("=" * SEPARATOR_WIDTH)
    print(f"Batch ID: {batch_id}")
    print(f"Clients: {len(client_dirs)}")
    print(f"Successful: {successful}")
    print(f"Failed: {len(failed)}")
    print(f"Skipped: {skipped}")
    print(f"Needs Review: {needs_review}")
    print(f"Output: {output_dir}")
    if failed:
        print(f"Failed clients: {', '.join(failed)}")
    print("=" * SEPARATOR_WIDTH)

    return 0 if not failed else 1


def command_validate_config(args: argparse.Namespace) -> int:
    """Validate the configuration file and recognition setup.

    Returns:
        Exit code: 0 if configuration is valid, 1 if problems were found.
    """
    logger.info(f"Validating configuration: {args.config}")

    try:
        config = Config.load(args.config)
    except ConfigurationError as e:
        return handle_error("Configuration validation failed", e)

    errors = Config.validate(config)

    print("\n" + "=" * SEPARATOR_WIDTH)
    print("CONFIGURATION VALIDATION")
    print("=" * SEPARATOR_WIDTH)
    if errors:
        for error in errors:
            print(f"  ✗ {error}")
    else:
        print("  ✓ Configuration is valid")
    print("=" * SEPARATOR_WIDTH)

    return 0 if not errors else 1


def setup_argument_parser() -> argparse.ArgumentParser:
    """Configure the argument parser with all CLI commands and options.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        description="Identity Intelligence System - CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reconcile a national ID (both sides) and a license front
  %(prog)s reconcile --id-front recto.jpg --id-back verso.jpg \\
      --license-front permis.jpg --output client.json

  # Reconcile every client folder, retrying transient failures twice
  %(prog)s batch --input-dir ./clients --output-dir ./results --retries 2

  # Check processors and credentials
  %(prog)s validate-config
        """,
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "--config",
        default="config/system_config.yaml",
        help="Path to configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: logging.level from the configuration)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Reconcile the document images of one client",
        description="Extract and merge identity fields from 1-4 images.",
    )
    for role in ROLE_ARGUMENTS:
        reconcile_parser.add_argument(
            f"--{role.value.replace('_', '-')}",
            dest=ROLE_ARGUMENTS[role],
            metavar="PATH",
            help=f"Image of the {role.document_type.value} {role.side.value}",
        )
    reconcile_parser.add_argument(
        "--output",
        help="Write the record and per-image outcomes as JSON",
    )
    _add_retries_argument(reconcile_parser)

    # Batch command
    batch_parser = subparsers.add_parser(
        "batch",
        help="Reconcile a directory of clients",
        description=(
            "Each subdirectory of the input directory is one client holding "
            "role-named images (id_front.jpg, id_back.jpg, license_front.jpg, "
            "license_back.jpg)."
        ),
    )
    batch_parser.add_argument(
        "--input-dir",
        required=True,
        help="Directory of client subdirectories",
    )
    batch_parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIR,
        help="Directory for per-client JSON results (default: %(default)s)",
    )
    _add_retries_argument(batch_parser)

    # Validate config command
    subparsers.add_parser(
        "validate-config",
        help="Validate system configuration",
        description="Check processors, credentials and limits in the configuration.",
    )

    return parser


def _retries(value: str) -> int:
    retries = int(value)
    if not 0 <= retries <= MAX_RETRIES:
        raise argparse.ArgumentTypeError(
            f"retries must be between 0 and {MAX_RETRIES}"
        )
    return retries


def _add_retries_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--retries",
        type=_retries,
        default=0,
        help="Retries for transient recognition failures (default: %(default)s)",
    )


def print_record_summary(
    record: ReconciledRecord, outcomes: List[ImageOutcome]
) -> None:
    """Print a formatted summary of a reconciled record to the console."""
    print("\n" + "=" * SEPARATOR_WIDTH)
    print("RECONCILED RECORD")
    print("=" * SEPARATOR_WIDTH)
    print(f"Document Type: {record.document_type_label}")
    print(f"Confidence: {record.confidence:.2f}")

    print(f"\nFields ({len(record.fields)}):")
    for name, value in record.fields.items():
        source = record.field_sources.get(name, "")
        print(f"  {name:<20} {value}  [{source}]")

    print("\nImages:")
    for outcome in outcomes:
        status = "✓" if outcome.success else "✗"
        detail = "" if outcome.success else f" - {outcome.error_message}"
        print(f"  {status} {outcome.role.value} ({outcome.processing_time:.2f}s){detail}")
        for warning in outcome.warnings:
            print(f"      ! {warning}")

    report = record.validation_report
    if report is not None:
        print(f"\nNeeds Review: {report.needs_review}")
        for issue in report.issues:
            print(f"  - [{issue.severity.value}] {issue.field_name}: {issue.message}")

    print("=" * SEPARATOR_WIDTH + "\n")


if __name__ == "__main__":
    sys.exit(main())
