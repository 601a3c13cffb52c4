import asyncio
import logging

import pytest
from conftest import requires_posix_shell

from caption_burner.logging_config import (
    JobContextFilter,
    StructuredFormatter,
    current_job,
    job_context,
    setup_logging,
)
from caption_burner.services.transcoder import Transcoder

TRANSCODER_LOGGER = "caption_burner.services.transcoder"


def _record(name=TRANSCODER_LOGGER, msg="ffmpeg: frame=1"):
    return logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)


def _fields(line):
    return [part.strip() for part in line.split(" | ")]


def test_structured_line_carries_job_id():
    record = _record()
    with job_context("0123456789abcdef"):
        JobContextFilter().filter(record)

    fields = _fields(StructuredFormatter().format(record))

    assert fields[1:] == ["INFO", "transcoder", "01234567", "ffmpeg: frame=1"]


def test_records_outside_a_job_use_placeholder():
    record = _record(name="caption_burner.api.routes", msg="started")
    JobContextFilter().filter(record)

    fields = _fields(StructuredFormatter().format(record))

    assert fields[2:] == ["api.routes", "-", "started"]


def test_job_context_is_restored_after_block():
    with job_context("outer"):
        with job_context("inner"):
            assert current_job() == "inner"
        assert current_job() == "outer"
    assert current_job() is None


def _caption_job(storage_dir, name):
    video = storage_dir / f"{name}.mp4"
    video.write_bytes(b"video")
    caption = storage_dir / f"{name}.srt"
    caption.write_text("1\n00:00:00,000 --> 99:00:00,000\nHi\n")
    return video, caption, storage_dir / f"output_{name}.mp4"


@requires_posix_shell
def test_concurrent_ffmpeg_lines_are_tagged_with_their_job(
    caplog, make_settings, make_ffmpeg, resolver, storage_dir
):
    slow = make_ffmpeg(delay=0.2)
    transcoder = Transcoder(make_settings(ffmpeg_binary=str(slow.path)), resolver)
    jobs = {"job-a": _caption_job(storage_dir, "a"), "job-b": _caption_job(storage_dir, "b")}

    caplog.set_level(logging.DEBUG, logger=TRANSCODER_LOGGER)
    caplog.handler.addFilter(JobContextFilter())

    async def run_one(job_id, paths):
        with job_context(job_id):
            await transcoder.burn_captions(*paths)

    async def run_both():
        await asyncio.gather(*(run_one(job_id, paths) for job_id, paths in jobs.items()))

    asyncio.run(run_both())

    records = [r for r in caplog.records if r.name == TRANSCODER_LOGGER]
    assert {r.job_id for r in records} == {"job-a", "job-b"}
    for record in records:
        message = record.getMessage()
        if "output_a.mp4" in message:
            assert record.job_id == "job-a"
        if "output_b.mp4" in message:
            assert record.job_id == "job-b"


@pytest.mark.parametrize("log_format", ["structured", "simple"])
def test_setup_logging_installs_job_filter(make_settings, log_format):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging(make_settings(log_format=log_format, log_level_transcoder="DEBUG"))

        handler = root.handlers[-1]
        assert any(isinstance(f, JobContextFilter) for f in handler.filters)
        assert logging.getLogger(TRANSCODER_LOGGER).level == logging.DEBUG

        record = _record()
        with job_context("abc123"):
            handler.filter(record)
        assert "abc123" in handler.format(record)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger(TRANSCODER_LOGGER).setLevel(logging.NOTSET)
