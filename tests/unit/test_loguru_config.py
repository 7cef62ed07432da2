"""Tests for loguru configuration and component loggers."""

import json

import pytest
from loguru import logger

from aquacycle.observability import COMPONENTS, configure_loguru, get_logger, timing_context


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()


@pytest.fixture
def records():
    captured = []
    logger.remove()
    logger.add(lambda message: captured.append(message.record), level="DEBUG")
    return captured


def read_jsonl(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_component_files_are_filtered(tmp_path):
    configure_loguru(log_dir=tmp_path, level="DEBUG", enable_console=False)

    get_logger("pipeline").info("Series pipeline started", trace_id="t-1")
    get_logger("store").warning("Extension saved")
    logger.remove()

    for component in COMPONENTS:
        assert (tmp_path / f"{component}.jsonl").exists()

    pipeline_entries = read_jsonl(tmp_path / "pipeline.jsonl")
    assert [e["record"]["message"] for e in pipeline_entries] == ["Series pipeline started"]
    assert pipeline_entries[0]["record"]["extra"]["trace_id"] == "t-1"

    store_entries = read_jsonl(tmp_path / "store.jsonl")
    assert [e["record"]["message"] for e in store_entries] == ["Extension saved"]

    all_messages = [e["record"]["message"] for e in read_jsonl(tmp_path / "aquacycle.jsonl")]
    assert "Series pipeline started" in all_messages
    assert "Extension saved" in all_messages


def test_level_filters_records(tmp_path):
    configure_loguru(log_dir=tmp_path, level="WARNING", enable_console=False)

    get_logger("lifecycle").info("quiet")
    get_logger("lifecycle").error("loud")
    logger.remove()

    messages = [e["record"]["message"] for e in read_jsonl(tmp_path / "lifecycle.jsonl")]
    assert messages == ["loud"]


def test_get_logger_binds_component(records):
    get_logger("lifecycle").info("Process created", process_id="p-1")

    assert records[0]["extra"]["component"] == "lifecycle"
    assert records[0]["extra"]["process_id"] == "p-1"


def test_timing_context_logs_start_and_end(records):
    with timing_context("build_series", component="pipeline", trace_id="t-9", sensors_requested=3) as ctx:
        ctx["sensors"] = 3

    start, end = records
    assert start["message"] == "START: build_series"
    assert start["extra"]["phase"] == "start"
    assert end["message"] == "END: build_series"
    assert end["extra"]["phase"] == "end"
    assert end["extra"]["trace_id"] == "t-9"
    assert end["extra"]["sensors"] == 3
    assert end["extra"]["sensors_requested"] == 3
    assert end["extra"]["duration_ms"] >= 0


def test_timing_context_logs_end_on_error(records):
    with pytest.raises(RuntimeError):
        with timing_context("explode", component="pipeline"):
            raise RuntimeError("boom")

    assert [r["extra"]["phase"] for r in records] == ["start", "end"]


def test_errors_file_keeps_warnings_only(tmp_path):
    configure_loguru(log_dir=tmp_path, level="DEBUG", enable_console=False)

    get_logger("pipeline").info("Series pipeline started")
    get_logger("pipeline").warning("Sensor fetch failed, retrying with relaxed query", sensor_id="2")
    get_logger("store").error("Saving extension failed")
    logger.remove()

    messages = [e["record"]["message"] for e in read_jsonl(tmp_path / "errors.jsonl")]
    assert messages == ["Sensor fetch failed, retrying with relaxed query", "Saving extension failed"]
