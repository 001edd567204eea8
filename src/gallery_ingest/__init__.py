"""Photo ingestion for client galleries: WebP conversion, watermarking, dual-variant storage."""

__version__ = "0.1.0"
