"""
Photo upload command

Reads image files → converts and watermarks them → stores both variants in S3
→ records them in a JSON manifest and refreshes the album photo count.
"""

import argparse
import mimetypes
from pathlib import Path
from typing import List

from .core import (
    GalleryIngestError,
    IngestSettings,
    ProgressEvent,
    UploadFile,
    WatermarkConfig,
    WatermarkPosition,
    get_logger,
    setup_logger,
)
from .core.factories import IngestPipelineFactory
from .core.storage import ManifestRecordStore


def add_upload_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the arguments of the ``upload`` command on ``parser``."""
    parser.add_argument("files", nargs="+", help="Image files to upload")
    parser.add_argument("--album-id", required=True, help="Target album id")
    parser.add_argument("--text", required=True, help="Watermark text")
    parser.add_argument("--bucket", default=None, help="Destination S3 bucket (env: GALLERY_BUCKET)")
    parser.add_argument("--key-prefix", default=None, help="S3 key prefix (default: albums)")
    parser.add_argument("--public-base-url", default=None, help="Base URL for stored objects")
    parser.add_argument(
        "--manifest",
        default="gallery-manifest.json",
        help="JSON file that receives the photo records",
    )
    parser.add_argument(
        "--position",
        default=WatermarkPosition.DIAGONAL_TILE.value,
        choices=[p.value for p in WatermarkPosition],
        help="Watermark layout (default: diagonal-tile)",
    )
    parser.add_argument("--opacity", type=float, default=None, help="Watermark opacity 0..1")
    parser.add_argument("--color", default=None, help="Watermark colour, e.g. '#ffffff'")
    parser.add_argument("--font", default=None, help="TrueType font file or name")
    parser.add_argument("--quality", type=float, default=None, help="Encoding quality 0..1")
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first failed file instead of reporting it and continuing",
    )
    parser.add_argument(
        "--timeout", type=float, default=None, help="Per-file time budget in seconds"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def read_uploads(paths: List[str]) -> List[UploadFile]:
    """
    Build path-backed uploads; bytes are read when the pipeline reaches each file.

    Raises:
        FileNotFoundError: a path that is not a regular file, before any work starts.
    """
    uploads = []
    for path in paths:
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"No such file: {file_path}")
        media_type, _ = mimetypes.guess_type(file_path.name)
        uploads.append(
            UploadFile(path=file_path, filename=file_path.name, media_type=media_type)
        )
    return uploads


def build_watermark(args: argparse.Namespace) -> WatermarkConfig:
    fields = {"text": args.text, "position": args.position}
    if args.opacity is not None:
        fields["opacity"] = args.opacity
    if args.color:
        fields["color"] = args.color
    if args.font:
        fields["font_family"] = args.font
    return WatermarkConfig(**fields)


def run_upload(args: argparse.Namespace) -> int:
    """
    Execute the ``upload`` command.

    Returns:
        Process exit code: 0 when every file was stored, 1 otherwise.
    """
    if args.debug:
        setup_logger("DEBUG")
    logger = get_logger("gallery-ingest.cli")

    try:
        settings = IngestSettings.from_env(
            bucket=args.bucket,
            key_prefix=args.key_prefix,
            public_base_url=args.public_base_url,
            quality=args.quality,
            failure_policy="fail_fast" if args.fail_fast else None,
            per_file_timeout=args.timeout,
            debug=args.debug or None,
        )
        watermark = build_watermark(args)
        uploads = read_uploads(args.files)

        storage = IngestPipelineFactory.create_storage(settings)
        record_store = ManifestRecordStore(args.manifest)
        coordinator = IngestPipelineFactory.create_coordinator(
            storage, record_store, settings
        )

        def report(current: int, total: int, message: str) -> None:
            event = ProgressEvent(current=current, total=total, message=message)
            logger.info(f"[{event.current}/{event.total}] {event.message}")

        result = coordinator.upload_batch(
            args.album_id, uploads, watermark, on_progress=report
        )
    except GalleryIngestError as e:
        logger.error(f"Upload failed: {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Upload failed: {e}")
        return 1

    logger.info(f"Stored {len(result.records)} of {len(uploads)} photos")
    for failure in result.failures:
        logger.error(f"  {failure.filename}: [{failure.stage}] {failure.message}")
    for warning in result.warnings:
        logger.warning(warning)
    return 0 if not result.failures and not result.cancelled else 1
