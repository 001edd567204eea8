"""Factory classes for creating configured service instances."""

import logging
from typing import Any, Optional

import boto3

from .encoder import ImageEncoder
from .models import IngestSettings, WatermarkConfig
from .observability import StageMetrics, StructuredLogger
from .protocols import LoggerProtocol, PhotoRecordStoreProtocol, PhotoStorageProtocol, S3ClientProtocol
from .services import (
    BatchUploadCoordinator,
    ImageProcessorService,
    PhotoPersistenceService,
)
from .storage import S3PhotoStorage
from .watermark import WatermarkRenderer


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str, debug: bool = False) -> LoggerProtocol:
        """Create a pipeline logger; DEBUG when requested, else the LOG_LEVEL default."""
        return StructuredLogger(name, logging.DEBUG if debug else None)


class S3ClientFactory:
    """Factory for creating S3 client instances."""

    @staticmethod
    def create_s3_client(**kwargs: Any) -> S3ClientProtocol:
        """Create S3 client with optional configuration."""
        session = boto3.Session()
        return session.client("s3", **kwargs)  # type: ignore


class IngestPipelineFactory:
    """Factory for creating the complete ingestion pipeline."""

    @staticmethod
    def create_storage(
        settings: IngestSettings,
        s3_client: Optional[S3ClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> S3PhotoStorage:
        if s3_client is None:
            s3_client = S3ClientFactory.create_s3_client()
        return S3PhotoStorage(
            s3_client, settings.bucket, settings.public_base_url, logger
        )

    @staticmethod
    def create_processor(
        settings: Optional[IngestSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics: Optional[StageMetrics] = None,
        default_watermark: Optional[WatermarkConfig] = None,
    ) -> ImageProcessorService:
        settings = settings or IngestSettings()
        logger = logger or LoggerFactory.create_logger("gallery-ingest", settings.debug)
        return ImageProcessorService(
            renderer=WatermarkRenderer(logger),
            encoder=ImageEncoder(settings.target_format, settings.fallback_format, logger),
            logger=logger,
            metrics=metrics,
            default_watermark=default_watermark,
            quality=settings.quality,
            render_fallback=settings.render_fallback,
        )

    @staticmethod
    def create_coordinator(
        storage: PhotoStorageProtocol,
        record_store: PhotoRecordStoreProtocol,
        settings: Optional[IngestSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics: Optional[StageMetrics] = None,
        default_watermark: Optional[WatermarkConfig] = None,
    ) -> BatchUploadCoordinator:
        """Create a fully wired batch upload coordinator."""
        settings = settings or IngestSettings()
        logger = logger or LoggerFactory.create_logger("gallery-ingest", settings.debug)

        processor = IngestPipelineFactory.create_processor(
            settings, logger, metrics, default_watermark
        )
        persistence = PhotoPersistenceService(
            storage,
            record_store,
            logger=logger,
            metrics=metrics,
            key_prefix=settings.key_prefix,
        )
        return BatchUploadCoordinator(
            processor,
            persistence,
            record_store,
            logger=logger,
            failure_policy=settings.failure_policy,
            per_file_timeout=settings.per_file_timeout,
        )
