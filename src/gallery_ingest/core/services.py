"""Service implementations for the photo ingestion pipeline."""

import threading
import time
from typing import Callable, List, Optional, Sequence

from .decoder import normalize_mode, open_image_source
from .encoder import FORMAT_INFO, ImageEncoder, quality_to_pillow
from .error_handling import BatchOperationContextManager
from .exceptions import (
    DecodeError,
    EncodeError,
    ProcessingTimeoutError,
    ReconciliationError,
    RenderError,
    StageError,
    UploadError,
    stage_errors,
)
from .image_utils import build_variant_keys, describe_surface, new_photo_id
from .models import (
    DEFAULT_QUALITY,
    BatchItemError,
    BatchItemResult,
    BatchResult,
    FailurePolicy,
    PhotoDraft,
    PhotoRecord,
    ProcessedImage,
    UploadFile,
    UploadStatus,
    UploadTask,
    WatermarkConfig,
)
from .observability import LogContext, StageMetrics, StructuredLogger, measure_stage
from .protocols import (
    BatchUploader,
    LoggerProtocol,
    PhotoRecordStoreProtocol,
    PhotoStorageProtocol,
    ProcessingService,
    ProgressCallback,
)
from .watermark import WatermarkRenderer

Checkpoint = Callable[[str], None]


class CancellationToken:
    """Cooperative cancellation flag, polled between files."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ImageProcessorService(ProcessingService):
    """Decodes one upload and produces its clean and watermarked encodings."""

    def __init__(
        self,
        renderer: Optional[WatermarkRenderer] = None,
        encoder: Optional[ImageEncoder] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics: Optional[StageMetrics] = None,
        default_watermark: Optional[WatermarkConfig] = None,
        quality: float = DEFAULT_QUALITY,
        render_fallback: bool = False,
    ):
        self._logger = logger or StructuredLogger("gallery-ingest.processor")
        self._renderer = renderer or WatermarkRenderer()
        self._encoder = encoder or ImageEncoder()
        self._metrics = metrics
        self._default_watermark = default_watermark or WatermarkConfig()
        self._quality = quality
        self._render_fallback = render_fallback

    def process_image(
        self,
        upload: UploadFile,
        watermark: Optional[WatermarkConfig] = None,
        quality: Optional[float] = None,
        checkpoint: Optional[Checkpoint] = None,
        log_context: Optional[LogContext] = None,
    ) -> ProcessedImage:
        """
        Decode once, watermark a duplicate, encode both at the same quality.

        Records are logged under ``log_context`` (a fresh one when omitted)
        narrowed to this file and the stage being run.

        Raises:
            DecodeError, RenderError, EncodeError: tagged with the filename.
            ProcessingTimeoutError: raised by ``checkpoint`` between stages.
            ConfigurationError: quality outside ``[0, 1]``.
        """
        quality = self._quality if quality is None else quality
        quality_to_pillow(quality)
        config = self._default_watermark.merged(watermark)
        filename = upload.filename
        log_context = (log_context or LogContext()).for_file(filename)

        with measure_stage("decode", self._metrics, filename=filename):
            with stage_errors(DecodeError, filename):
                with open_image_source(upload) as source:
                    self._logger.debug(
                        "Decoded image",
                        log_context.at_stage("decode"),
                        **describe_surface(source),
                    )
                    clean = normalize_mode(source)
        if checkpoint:
            checkpoint("decode")

        # The renderer never touches its input, but the clean surface must
        # not share pixels with the watermark target either.
        target = clean.copy()
        with measure_stage("render", self._metrics, filename=filename):
            marked = self._render(target, config, filename, log_context)
        if checkpoint:
            checkpoint("render")

        with measure_stage("encode", self._metrics, filename=filename):
            with stage_errors(EncodeError, filename):
                original_blob = self._encoder.encode(clean, quality)
                watermarked_blob = self._encoder.encode(marked, quality)
        if checkpoint:
            checkpoint("encode")

        self._logger.debug(
            "Encoded variants",
            log_context.at_stage("encode"),
            original_bytes=len(original_blob),
            watermarked_bytes=len(watermarked_blob),
        )
        return ProcessedImage(
            original_blob=original_blob,
            watermarked_blob=watermarked_blob,
            width=clean.width,
            height=clean.height,
            format=self._encoder.format,
        )

    def _render(self, target, config, filename, log_context):
        try:
            with stage_errors(RenderError, filename):
                return self._renderer.render(target, config)
        except RenderError as exc:
            if not self._render_fallback:
                raise
            self._logger.warning(
                "Watermark failed, storing unmarked preview",
                log_context.at_stage("render"),
                error=str(exc),
            )
            return target

    def process_images(
        self,
        files: Sequence[UploadFile],
        watermark: Optional[WatermarkConfig] = None,
        quality: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ProcessedImage]:
        """Process files in order without persisting them; fails on the first error."""
        results = []
        total = len(files)
        for index, upload in enumerate(files):
            results.append(self.process_image(upload, watermark, quality))
            if on_progress:
                on_progress(index + 1, total, f"{index + 1}/{total} processed")
        return results


class PhotoPersistenceService:
    """Stores both variants, then links them with a single record."""

    def __init__(
        self,
        storage: PhotoStorageProtocol,
        record_store: PhotoRecordStoreProtocol,
        logger: Optional[LoggerProtocol] = None,
        metrics: Optional[StageMetrics] = None,
        key_prefix: str = "albums",
        id_factory: Callable[[], str] = new_photo_id,
    ):
        self._storage = storage
        self._record_store = record_store
        self._logger = logger or StructuredLogger("gallery-ingest.persistence")
        self._metrics = metrics
        self._key_prefix = key_prefix
        self._id_factory = id_factory

    def persist(
        self,
        album_id: str,
        upload: UploadFile,
        processed: ProcessedImage,
        sort_order: int = 0,
        log_context: Optional[LogContext] = None,
    ) -> PhotoRecord:
        """
        Upload both blobs and insert the record only once both are stored.

        Blobs already written are removed if a later step fails, so a reader
        never sees a record that points at a missing variant.

        Raises:
            UploadError: storage or record store failure.
        """
        log_context = (log_context or LogContext(album_id=album_id)).for_file(
            upload.filename
        ).at_stage("upload")
        extension, content_type = FORMAT_INFO[processed.format]
        keys = build_variant_keys(album_id, extension, self._key_prefix, self._id_factory())
        stored: List[str] = []

        try:
            with measure_stage("upload", self._metrics, filename=upload.filename):
                with stage_errors(UploadError, upload.filename):
                    original_url = self._storage.upload(
                        keys.original, processed.original_blob, content_type
                    )
                    stored.append(keys.original)
                    url = self._storage.upload(
                        keys.watermarked, processed.watermarked_blob, content_type
                    )
                    stored.append(keys.watermarked)
                    record = self._record_store.insert_photo(
                        PhotoDraft(
                            album_id=album_id,
                            url=url,
                            original_url=original_url,
                            filename=upload.filename,
                            storage_key=keys.watermarked,
                            original_storage_key=keys.original,
                            width=processed.width,
                            height=processed.height,
                            sort_order=sort_order,
                        )
                    )
        except UploadError:
            self._discard(stored, log_context)
            raise

        self._logger.debug(
            f"Stored as {keys.photo_id}", log_context, record_id=record.id
        )
        return record

    def _discard(self, keys: List[str], log_context: LogContext) -> None:
        for key in keys:
            try:
                self._storage.delete(key)
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    f"Could not remove orphaned blob {key}: {exc}", log_context
                )


class BatchUploadCoordinator(BatchUploader):
    """
    Sequences processing and persistence over a list of files.

    Files run strictly one at a time in input order. Each file moves through
    ``pending -> processing -> uploading -> done`` or ends ``failed``; the
    batch is not atomic, so completed files stay persisted whatever happens
    to later ones.
    """

    def __init__(
        self,
        processor: ProcessingService,
        persistence: PhotoPersistenceService,
        record_store: PhotoRecordStoreProtocol,
        logger: Optional[LoggerProtocol] = None,
        failure_policy: FailurePolicy = FailurePolicy.COLLECT,
        per_file_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._processor = processor
        self._persistence = persistence
        self._record_store = record_store
        self._logger = logger or StructuredLogger("gallery-ingest.batch")
        self._failure_policy = FailurePolicy(failure_policy)
        self._per_file_timeout = per_file_timeout
        self._clock = clock

    def upload_batch(
        self,
        album_id: str,
        files: Sequence[UploadFile],
        watermark: Optional[WatermarkConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        quality: Optional[float] = None,
    ) -> BatchResult:
        """
        Process and persist ``files`` into ``album_id``.

        Progress is reported as ``processing <name>`` and ``uploading <name>``
        at ``current=i`` for each file, then once as ``n/n done``.

        Raises:
            StageError: the first per-file failure, only under ``FAIL_FAST``.
                Its ``batch_result`` carries what completed before it.
            ConfigurationError: quality outside ``[0, 1]``.
        """
        if quality is not None:
            quality_to_pillow(quality)
        files = list(files)
        total = len(files)
        result = BatchResult(
            album_id=album_id,
            tasks=[UploadTask(filename=f.filename, index=i) for i, f in enumerate(files)],
        )
        batch_context = LogContext(album_id=album_id)
        self._logger.info("Starting batch", batch_context, total=total)

        failure: Optional[StageError] = None
        with BatchOperationContextManager(f"Upload batch for album {album_id}") as batch_ops:
            for index, upload in enumerate(files):
                if cancel_token is not None and cancel_token.cancelled:
                    result.cancelled = True
                    self._logger.warning(
                        f"Batch cancelled before {upload.filename}", batch_context
                    )
                    break

                task = result.tasks[index]
                file_context = batch_context.for_file(upload.filename)
                try:
                    record = self._upload_one(
                        album_id, upload, task, total, watermark, quality, on_progress,
                        file_context,
                    )
                except StageError as exc:
                    exc.with_filename(upload.filename)
                    task.status = UploadStatus.FAILED
                    self._logger.warning(
                        "File failed", file_context.at_stage(exc.stage), error=exc.message
                    )
                    batch_ops.add_error(str(exc), upload.filename)
                    result.items.append(
                        BatchItemResult(
                            index=index,
                            filename=upload.filename,
                            error=BatchItemError(
                                filename=upload.filename,
                                stage=exc.stage,
                                message=exc.message,
                                error_type=type(exc).__name__,
                            ),
                        )
                    )
                    if self._failure_policy is FailurePolicy.FAIL_FAST:
                        failure = exc
                        break
                    continue

                task.status = UploadStatus.DONE
                result.items.append(
                    BatchItemResult(index=index, filename=upload.filename, record=record)
                )

        handled = len(result.items)
        if result.cancelled:
            final_message = f"cancelled after {handled}/{total}"
        elif failure is not None:
            final_message = f"failed after {handled}/{total}"
        else:
            final_message = f"{handled}/{total} done"
        self._emit(on_progress, handled, total, final_message)

        if result.items:
            result.photo_count = self._reconcile(album_id, result)

        self._logger.info(
            "Finished batch",
            batch_context,
            succeeded=len(result.records),
            failed=len(result.failures),
            cancelled=result.cancelled,
        )
        if failure is not None:
            failure.batch_result = result
            raise failure
        return result

    def _upload_one(
        self, album_id, upload, task, total, watermark, quality, on_progress, log_context
    ):
        task.status = UploadStatus.PROCESSING
        self._emit(on_progress, task.index, total, f"processing {upload.filename}")
        checkpoint = self._make_checkpoint(upload.filename)
        processed = self._processor.process_image(
            upload, watermark, quality, checkpoint, log_context
        )

        task.status = UploadStatus.UPLOADING
        self._emit(on_progress, task.index, total, f"uploading {upload.filename}")
        return self._persistence.persist(
            album_id, upload, processed, sort_order=task.index, log_context=log_context
        )

    def _make_checkpoint(self, filename: str) -> Optional[Checkpoint]:
        if self._per_file_timeout is None:
            return None
        budget = self._per_file_timeout
        deadline = self._clock() + budget

        def checkpoint(stage: str) -> None:
            if self._clock() > deadline:
                raise ProcessingTimeoutError(
                    f"exceeded {budget:.1f}s budget after {stage}", filename=filename
                )

        return checkpoint

    def _emit(self, on_progress, current: int, total: int, message: str) -> None:
        if on_progress is None:
            return
        try:
            on_progress(current, total, message)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(f"Progress callback failed: {exc}")

    def _reconcile(self, album_id: str, result: BatchResult) -> Optional[int]:
        """Recount the album's photos and store the count; failures only warn."""
        try:
            with stage_errors(ReconciliationError):
                count = self._record_store.count_photos(album_id)
                self._record_store.update_album_photo_count(album_id, count)
        except ReconciliationError as exc:
            message = f"Album {album_id} photo count not refreshed: {exc.message}"
            self._logger.warning(message)
            result.warnings.append(message)
            return None
        return count
