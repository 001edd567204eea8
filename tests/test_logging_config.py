"""Tests for the pipeline logging setup."""

import io
import os
import re
import sys
import logging
from unittest.mock import patch

import pytest

from gallery_ingest.core.logging_config import (
    ROOT_LOGGER,
    PipelineContextFilter,
    get_logger,
    setup_logger,
)
from gallery_ingest.core.observability import LogContext, StructuredLogger
from gallery_ingest.core.services import (
    BatchUploadCoordinator,
    ImageProcessorService,
    PhotoPersistenceService,
)
from gallery_ingest.testing.fakes import (
    InMemoryRecordStore,
    make_corrupt_upload,
    make_upload,
    setup_test_storage,
)

CONTEXT_PATTERN = re.compile(
    r"\[(?P<cid>[^\]]+)\] album=(?P<album>\S+) upload=(?P<upload>\S+) stage=(?P<stage>\S+) \| (?P<message>.*)"
)


@pytest.fixture
def pristine_root():
    """Detach the pipeline root logger's handlers for the duration of a test."""
    root = logging.getLogger(ROOT_LOGGER)
    saved_handlers, saved_level, saved_propagate = root.handlers[:], root.level, root.propagate
    root.handlers = []
    yield root
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    root.propagate = saved_propagate


@pytest.fixture
def pipeline_output(pristine_root):
    stream = io.StringIO()
    setup_logger("DEBUG", stream=stream)
    return stream


def parsed_lines(stream):
    lines = []
    for line in stream.getvalue().splitlines():
        match = CONTEXT_PATTERN.search(line)
        if match:
            lines.append(match.groupdict())
    return lines


class TestSetupLogger:
    """Tests for setup_logger."""

    def test_defaults(self, pristine_root):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("LOG_LEVEL", None)
            test_logger = setup_logger()

        assert test_logger is pristine_root
        assert test_logger.level == logging.INFO
        assert len(test_logger.handlers) == 1
        assert test_logger.handlers[0].stream is sys.stdout
        assert not test_logger.propagate

    def test_level_by_parameter(self, pristine_root):
        assert setup_logger(level="DEBUG").level == logging.DEBUG

    def test_level_by_env_var(self, pristine_root):
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}):
            assert setup_logger().level == logging.WARNING

    def test_invalid_level_defaults_to_info(self, pristine_root):
        assert setup_logger(level="INVALID_LEVEL").level == logging.INFO

    def test_no_duplicate_handlers(self, pristine_root):
        first = setup_logger()
        second = setup_logger(level="DEBUG")

        assert first is second
        assert len(first.handlers) == 1

    def test_handler_fills_missing_fields(self, pipeline_output):
        logging.getLogger(ROOT_LOGGER).info("plain message")

        assert parsed_lines(pipeline_output) == [
            {
                "cid": "-",
                "album": "-",
                "upload": "-",
                "stage": "-",
                "message": "plain message",
            }
        ]


class TestPipelineContextFilter:
    def test_keeps_existing_fields(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        record.stage = "encode"

        assert PipelineContextFilter().filter(record) is True
        assert record.stage == "encode"
        assert record.correlation_id == "-"
        assert record.upload == "-"


class TestGetLogger:
    def test_default_is_the_pipeline_root(self, pristine_root):
        assert get_logger() is pristine_root
        assert pristine_root.handlers

    def test_names_nest_under_the_pipeline_root(self):
        assert get_logger("encoder").name == "gallery-ingest.encoder"
        assert get_logger("gallery-ingest.cli").name == "gallery-ingest.cli"
        assert get_logger("encoder").propagate


class TestPipelineOutput:
    """What a batch writes through the pipeline logger tree."""

    def test_context_rendered_into_line(self, pipeline_output):
        context = LogContext(album_id="42").for_file("a.jpg").at_stage("upload")

        StructuredLogger("gallery-ingest.test").info("Stored", context, record_id="r1")

        [line] = parsed_lines(pipeline_output)
        assert line == {
            "cid": context.correlation_id,
            "album": "42",
            "upload": "a.jpg",
            "stage": "upload",
            "message": "Stored (record_id=r1)",
        }

    def test_level_filtering(self, pristine_root):
        stream = io.StringIO()
        setup_logger("WARNING", stream=stream)

        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert [line["message"] for line in parsed_lines(stream)] == ["shown"]

    def test_batch_records_share_correlation_id_and_carry_stage(self, pipeline_output):
        _, storage = setup_test_storage()
        store = InMemoryRecordStore()
        coordinator = BatchUploadCoordinator(
            ImageProcessorService(),
            PhotoPersistenceService(storage, store),
            store,
        )

        coordinator.upload_batch("42", [make_upload("a.jpg"), make_corrupt_upload("b.jpg")])

        lines = [line for line in parsed_lines(pipeline_output) if line["cid"] != "-"]
        assert len({line["cid"] for line in lines}) == 1
        assert all(line["album"] == "42" for line in lines)

        by_message = {line["message"].split(" (")[0]: line for line in lines}
        assert by_message["Starting batch"]["upload"] == "-"
        assert (by_message["Decoded image"]["upload"], by_message["Decoded image"]["stage"]) == (
            "a.jpg",
            "decode",
        )
        assert by_message["Encoded variants"]["stage"] == "encode"
        stored = [line for line in lines if line["message"].startswith("Stored as")]
        assert [(line["upload"], line["stage"]) for line in stored] == [("a.jpg", "upload")]
        assert (by_message["File failed"]["upload"], by_message["File failed"]["stage"]) == (
            "b.jpg",
            "decode",
        )

    def test_each_batch_gets_its_own_correlation_id(self, pipeline_output):
        _, storage = setup_test_storage()
        store = InMemoryRecordStore()
        coordinator = BatchUploadCoordinator(
            ImageProcessorService(), PhotoPersistenceService(storage, store), store
        )

        coordinator.upload_batch("42", [make_upload("a.jpg")])
        coordinator.upload_batch("42", [make_upload("b.jpg")])

        starts = [
            line["cid"]
            for line in parsed_lines(pipeline_output)
            if line["message"].startswith("Starting batch")
        ]
        assert len(starts) == 2
        assert starts[0] != starts[1]
