"""Main module for the gallery ingest CLI."""

import sys
import argparse

from .core import supports_target_format
from .upload_photos import add_upload_arguments, run_upload

VERSION = "0.1.0"


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="gallery-ingest",
        description="Gallery Ingest - watermarked proofing previews and clean originals for client galleries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload photos to an album with a tiled watermark
  gallery-ingest upload --album-id 42 --bucket my-gallery --text "My Studio" *.jpg

  # Corner mark, stop at the first bad file
  gallery-ingest upload --album-id 42 --bucket my-gallery --text "My Studio" \\
                        --position bottom-right --fail-fast *.jpg

  # Check WebP support of this runtime
  gallery-ingest probe
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    upload_parser: argparse.ArgumentParser = subparsers.add_parser(
        "upload", help="Process and upload photos into an album"
    )
    add_upload_arguments(upload_parser)

    probe_parser = subparsers.add_parser(
        "probe", help="Report whether the target format can be encoded"
    )
    probe_parser.add_argument("--format", default="WEBP", help="Pillow format name")

    subparsers.add_parser("version", help="Show version information")
    return parser


def main() -> None:
    """
    Entry point for the command-line interface of Gallery Ingest.

    Dispatches to the ``upload``, ``probe`` or ``version`` command and exits
    with the command's status code.
    """
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args()

    if args.command == "upload":
        sys.exit(run_upload(args))

    elif args.command == "probe":
        supported = supports_target_format(args.format)
        print(f"{args.format.upper()}: {'supported' if supported else 'not supported'}")
        sys.exit(0 if supported else 1)

    elif args.command == "version":
        print("Gallery Ingest CLI")
        print(f"Version {VERSION}")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
