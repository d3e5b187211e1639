"""Tests for the in-memory job registry."""

import pytest

from critcss.models.job import JobStatus
from critcss.services import job_store


@pytest.fixture(autouse=True)
def empty_store():
    job_store.job_store.clear()
    yield
    job_store.job_store.clear()


def test_job_lifecycle():
    created = job_store.create_job("css_1", "critical_css", {"url": "https://example.com"})
    assert created.status is JobStatus.queued

    assert job_store.mark_processing("css_1").status is JobStatus.processing

    completed = job_store.mark_completed("css_1", {"critical_css": "a {}"})
    assert completed.status is JobStatus.completed
    assert completed.finished
    assert job_store.job_store.get_job("css_1").result == {"critical_css": "a {}"}


def test_failure_records_kind():
    job_store.create_job("css_2", "critical_css", {})
    failed = job_store.mark_failed("css_2", "Could not render page", "render")
    assert failed.status is JobStatus.failed
    assert failed.error_kind == "render"


def test_timeout_has_its_own_status():
    job_store.create_job("css_3", "critical_css", {})
    assert job_store.mark_failed("css_3", "timed out", "timeout").status is JobStatus.timed_out


def test_finished_job_is_never_overwritten():
    job_store.create_job("css_4", "critical_css", {})
    job_store.mark_failed("css_4", "timed out", "timeout")

    with pytest.raises(ValueError):
        job_store.mark_completed("css_4", {"critical_css": ""})
    with pytest.raises(ValueError):
        job_store.mark_failed("css_4", "again")
    assert job_store.job_store.get_job("css_4").status is JobStatus.timed_out


def test_unknown_job():
    with pytest.raises(KeyError):
        job_store.mark_processing("missing")
    assert job_store.job_store.get_job("missing") is None


def test_updated_at_moves_forward():
    created = job_store.create_job("css_5", "critical_css", {})
    processing = job_store.mark_processing("css_5")
    assert processing.updated_at >= created.updated_at
    assert processing.created_at == created.created_at


def test_job_ids_are_unique():
    job_store.create_job("css_6", "critical_css", {})
    with pytest.raises(ValueError):
        job_store.create_job("css_6", "critical_css", {})


def test_start_and_finish_times():
    job_store.create_job("css_7", "critical_css", {})
    started = job_store.mark_processing("css_7")
    finished = job_store.mark_completed("css_7", {"critical_css": ""})
    assert started.started_at is not None and started.finished_at is None
    assert finished.started_at == started.started_at
    assert finished.finished_at >= finished.started_at
