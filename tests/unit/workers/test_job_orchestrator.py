from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path

import pytest

from src.influence.domain.errors import ErrorCode, TranscodeError
from src.influence.domain.models import (
    Job,
    JobStatus,
    MediaProbeResult,
    Network,
    PublishRequest,
)
from src.influence.publishers.registry import PublisherRegistry
from src.influence.services.job_service import JobService
from src.influence.workers.orchestrator import JobOrchestrator
from src.influence.workers.retry_policy import RetryPolicy
from tests.helpers.clock import ManualClock
from tests.mocks.publishers import PublisherScenario, RecordingPublisher, factory_for
from tests.mocks.store import InMemoryJobStore
from tests.mocks.transcoder import FakeTranscoder, hd_landscape

SOURCE = "/videos/launch.mp4"
MB = 1024 * 1024


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> InMemoryJobStore:
    return InMemoryJobStore(clock=clock)


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder(probes={SOURCE: hd_landscape()})


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


def _registry(**publishers: RecordingPublisher) -> PublisherRegistry:
    registry = PublisherRegistry()
    for name, publisher in publishers.items():
        registry.register(Network(name), factory_for(publisher))
    return registry


def _orchestrator(
    store: InMemoryJobStore,
    transcoder: FakeTranscoder,
    registry: PublisherRegistry,
    work_dir: Path,
    clock: ManualClock,
    **kwargs,
) -> JobOrchestrator:
    return JobOrchestrator(
        store=store,
        transcoder=transcoder,
        publishers=registry,
        work_dir=work_dir,
        clock=clock,
        **kwargs,
    )


def _submit(store: InMemoryJobStore, clock: ManualClock, *networks: str, title: str = "Launch") -> Job:
    service = JobService(store, clock=clock)
    return service.submit(
        PublishRequest(media_ref=SOURCE, title=title, description="desc", networks=networks)
    )


@pytest.mark.asyncio
async def test_successful_job_is_published_to_every_network(
    store, transcoder, work_dir, clock
) -> None:
    youtube, x = RecordingPublisher(), RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(youtube=youtube, x=x), work_dir, clock)
    job = _submit(store, clock, "youtube", "x")
    (work_dir / job.id).mkdir(parents=True)

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.status is JobStatus.PUBLISHED
    assert stored.published_urls == {"youtube": "post-youtube-1", "x": "post-x-1"}
    assert stored.error is None
    assert stored.last_attempt == clock.now
    assert store.status_history == [
        (job.id, JobStatus.PROCESSING),
        (job.id, JobStatus.PUBLISHED),
    ]
    assert transcoder.probe_calls == [SOURCE]
    assert transcoder.transcode_calls == []
    assert youtube.calls[0].media_ref == SOURCE
    assert youtube.calls[0].title == "Launch"
    assert youtube.calls[0].description == "desc"
    assert not (work_dir / job.id).exists()
    assert len(orchestrator.claims) == 0


@pytest.mark.asyncio
async def test_partial_failure_schedules_retry_without_blocking_other_networks(
    store, transcoder, work_dir, clock
) -> None:
    youtube = RecordingPublisher()
    x = RecordingPublisher(scenario=PublisherScenario.REJECT)
    orchestrator = _orchestrator(store, transcoder, _registry(youtube=youtube, x=x), work_dir, clock)
    job = _submit(store, clock, "x", "youtube")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.status is JobStatus.QUEUED
    assert stored.retry_count == 1
    assert stored.scheduled_for == clock.now + timedelta(seconds=5)
    assert stored.error.code == ErrorCode.PUBLISHER_REJECTED.value
    assert stored.error.message.startswith("publishing to x failed")
    assert stored.error.details["failed_networks"] == ["x"]
    assert stored.error.details["succeeded_networks"] == ["youtube"]
    assert len(youtube.calls) == 1
    assert len(x.calls) == 1


@pytest.mark.asyncio
async def test_retries_follow_schedule_until_exhausted(store, transcoder, work_dir, clock) -> None:
    x = RecordingPublisher(scenario=PublisherScenario.RAISE)
    orchestrator = _orchestrator(
        store,
        transcoder,
        _registry(x=x),
        work_dir,
        clock,
        retry_policy=RetryPolicy.from_delays([5, 30]),
    )
    job = _submit(store, clock, "x")

    await orchestrator.run_until_idle()
    assert store.get(job.id).retry_count == 1

    clock.advance(4)
    await orchestrator.run_until_idle()
    assert len(x.calls) == 1

    clock.advance(1)
    await orchestrator.run_until_idle()
    stored = store.get(job.id)
    assert stored.status is JobStatus.QUEUED
    assert stored.retry_count == 2
    assert stored.scheduled_for == clock.now + timedelta(seconds=30)

    clock.advance(30)
    await orchestrator.run_until_idle()
    stored = store.get(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.retry_count == 3
    assert stored.scheduled_for is None
    assert stored.error.code == ErrorCode.NETWORK_ERROR.value
    assert len(x.calls) == 3
    assert [status for _, status in store.status_history] == [
        JobStatus.PROCESSING,
        JobStatus.QUEUED,
        JobStatus.PROCESSING,
        JobStatus.QUEUED,
        JobStatus.PROCESSING,
        JobStatus.FAILED,
    ]

    clock.advance(3600)
    await orchestrator.run_until_idle()
    assert len(x.calls) == 3


@pytest.mark.asyncio
async def test_noncompliant_media_is_transcoded_per_network(
    store, work_dir, clock
) -> None:
    square = MediaProbeResult(width=1080, height=1080, duration_seconds=60, size_bytes=20 * MB)
    transcoder = FakeTranscoder(
        probes={SOURCE: MediaProbeResult(width=1440, height=1080, duration_seconds=60, size_bytes=20 * MB)},
        transcoded_probe=square,
    )
    tiktok = RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(tiktok=tiktok), work_dir, clock)
    job = _submit(store, clock, "tiktok")

    await orchestrator.run_until_idle()

    assert store.get(job.id).status is JobStatus.PUBLISHED
    call = transcoder.transcode_calls[0]
    expected_output = str(work_dir / job.id / "launch-tiktok-reencoded.mp4")
    assert call.output_path == expected_output
    assert call.plan.target_ratio == "1:1"
    assert transcoder.probe_calls == [SOURCE, expected_output]
    assert tiktok.calls[0].media_ref == expected_output


@pytest.mark.asyncio
async def test_artifact_for_one_network_is_reused_by_the_next(
    store, work_dir, clock
) -> None:
    wide = MediaProbeResult(width=1440, height=1080, duration_seconds=60, size_bytes=20 * MB)
    square = MediaProbeResult(width=1080, height=1080, duration_seconds=60, size_bytes=20 * MB)
    transcoder = FakeTranscoder(probes={SOURCE: wide}, transcoded_probe=square)
    tiktok, x = RecordingPublisher(), RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(tiktok=tiktok, x=x), work_dir, clock)
    job = _submit(store, clock, "tiktok", "x")

    await orchestrator.run_until_idle()

    artifact = str(work_dir / job.id / "launch-tiktok-reencoded.mp4")
    assert store.get(job.id).status is JobStatus.PUBLISHED
    assert [call.media_ref for call in transcoder.transcode_calls] == [SOURCE]
    assert transcoder.probe_calls == [SOURCE, artifact]
    assert tiktok.calls[0].media_ref == artifact
    assert x.calls[0].media_ref == artifact


@pytest.mark.asyncio
async def test_later_network_transcodes_the_latest_artifact(store, work_dir, clock) -> None:
    transcoder = FakeTranscoder()
    tiktok, x = RecordingPublisher(), RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(tiktok=tiktok, x=x), work_dir, clock)
    job = _submit(store, clock, "tiktok", "x")
    tiktok_artifact = str(work_dir / job.id / "launch-tiktok-reencoded.mp4")
    x_artifact = str(work_dir / job.id / "launch-x-reencoded.mp4")
    transcoder.probes.update(
        {
            SOURCE: MediaProbeResult(
                width=1440, height=1080, duration_seconds=200, size_bytes=20 * MB
            ),
            tiktok_artifact: MediaProbeResult(
                width=1080, height=1080, duration_seconds=200, size_bytes=20 * MB
            ),
            x_artifact: MediaProbeResult(
                width=1080, height=1080, duration_seconds=140, size_bytes=15 * MB
            ),
        }
    )

    await orchestrator.run_until_idle()

    assert store.get(job.id).status is JobStatus.PUBLISHED
    calls = transcoder.transcode_calls
    assert [(call.media_ref, call.output_path) for call in calls] == [
        (SOURCE, tiktok_artifact),
        (tiktok_artifact, x_artifact),
    ]
    assert calls[1].plan.trim_seconds == 140
    assert calls[1].plan.target_ratio is None
    assert tiktok.calls[0].media_ref == x_artifact
    assert x.calls[0].media_ref == x_artifact


@pytest.mark.asyncio
async def test_failing_publisher_factory_only_fails_its_network(
    store, transcoder, work_dir, clock
) -> None:
    def broken_factory(*, config: dict | None = None) -> RecordingPublisher:
        raise ValueError("bad publisher config")

    youtube = RecordingPublisher()
    registry = _registry(youtube=youtube)
    registry.register(Network.X, broken_factory)
    orchestrator = _orchestrator(store, transcoder, registry, work_dir, clock)
    job = _submit(store, clock, "youtube", "x")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.status is JobStatus.QUEUED
    assert stored.error.code == ErrorCode.UNKNOWN.value
    assert stored.error.details["failed_networks"] == ["x"]
    assert stored.error.details["succeeded_networks"] == ["youtube"]
    assert stored.error.details["errors"][0]["message"] == "bad publisher config"
    assert stored.error.details["errors"][0]["details"]["network"] == "x"
    assert len(youtube.calls) == 1


@pytest.mark.asyncio
async def test_transcoded_media_failing_verification_is_not_published(
    store, work_dir, clock
) -> None:
    wide = MediaProbeResult(width=1440, height=1080, duration_seconds=60, size_bytes=20 * MB)
    transcoder = FakeTranscoder(probes={SOURCE: wide}, transcoded_probe=wide)
    tiktok = RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(tiktok=tiktok), work_dir, clock)
    job = _submit(store, clock, "tiktok")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.status is JobStatus.QUEUED
    assert stored.error.code == ErrorCode.UNSUPPORTED_RATIO.value
    assert stored.error.details["network"] == "tiktok"
    assert tiktok.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [TranscodeError("ffmpeg exploded"), RuntimeError("disk full")],
)
async def test_transcode_failures_are_recorded(store, work_dir, clock, failure) -> None:
    transcoder = FakeTranscoder(
        probes={SOURCE: hd_landscape(duration=300)},
        fail_transcode=failure,
    )
    x = RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(x=x), work_dir, clock)
    job = _submit(store, clock, "x")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.error.code == ErrorCode.TRANSCODE_FAILED.value
    assert stored.error.details["network"] == "x"
    assert x.calls == []


@pytest.mark.asyncio
async def test_probe_failure_fails_the_attempt(store, work_dir, clock) -> None:
    orchestrator = _orchestrator(
        store,
        FakeTranscoder(),
        _registry(x=RecordingPublisher()),
        work_dir,
        clock,
        retry_policy=RetryPolicy.from_delays([]),
    )
    job = _submit(store, clock, "x")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.retry_count == 1
    assert stored.error.code == ErrorCode.PROBE_FAILED.value


@pytest.mark.asyncio
async def test_network_without_publisher_reports_missing_credentials(
    store, transcoder, work_dir, clock
) -> None:
    youtube = RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(youtube=youtube), work_dir, clock)
    job = _submit(store, clock, "facebook", "youtube")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.error.code == ErrorCode.MISSING_CREDENTIALS.value
    assert stored.error.details["failed_networks"] == ["facebook"]
    assert len(youtube.calls) == 1


@pytest.mark.asyncio
async def test_crashing_publisher_is_reported_as_unknown_error(
    store, transcoder, work_dir, clock
) -> None:
    x = RecordingPublisher(scenario=PublisherScenario.CRASH)
    orchestrator = _orchestrator(store, transcoder, _registry(x=x), work_dir, clock)
    job = _submit(store, clock, "x")

    await orchestrator.run_until_idle()

    stored = store.get(job.id)
    assert stored.status is JobStatus.QUEUED
    assert stored.error.code == ErrorCode.UNKNOWN.value
    assert stored.error.details["errors"][0]["message"] == "x publisher crashed"


@pytest.mark.asyncio
async def test_recover_requeues_interrupted_jobs(store, transcoder, work_dir, clock) -> None:
    x = RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(x=x), work_dir, clock)
    interrupted = _submit(store, clock, "x", title="interrupted")
    waiting = _submit(store, clock, "x", title="waiting")
    finished = _submit(store, clock, "x", title="finished")
    store.force(interrupted.id, status=JobStatus.PROCESSING)
    store.force(finished.id, status=JobStatus.PUBLISHED)

    recovered = await orchestrator.recover()

    assert recovered == 2
    assert store.get(interrupted.id).status is JobStatus.QUEUED
    assert store.get(waiting.id).status is JobStatus.QUEUED
    assert store.get(finished.id).status is JobStatus.PUBLISHED

    await orchestrator.run_until_idle()
    assert store.get(interrupted.id).status is JobStatus.PUBLISHED
    assert len(x.calls) == 2


@pytest.mark.asyncio
async def test_claimed_job_is_not_dispatched_twice(store, transcoder, work_dir, clock) -> None:
    x = RecordingPublisher(delay_seconds=0.2)
    orchestrator = _orchestrator(store, transcoder, _registry(x=x), work_dir, clock)
    job = _submit(store, clock, "x")

    assert await orchestrator.dispatch_once() is True
    assert await orchestrator.dispatch_once() is False
    assert job.id in orchestrator.claims

    await orchestrator.drain()

    assert len(x.calls) == 1
    assert store.get(job.id).status is JobStatus.PUBLISHED
    assert job.id not in orchestrator.claims


@pytest.mark.asyncio
async def test_concurrency_is_capped(store, transcoder, work_dir, clock) -> None:
    x = RecordingPublisher(delay_seconds=0.2)
    orchestrator = _orchestrator(
        store, transcoder, _registry(x=x), work_dir, clock, max_concurrent_jobs=2
    )
    jobs = [_submit(store, clock, "x", title=f"clip-{index}") for index in range(3)]

    assert await orchestrator.dispatch_once() is True
    assert await orchestrator.dispatch_once() is True
    assert await orchestrator.dispatch_once() is False
    assert orchestrator.in_flight == 2

    await orchestrator.run_until_idle()

    assert all(store.get(job.id).status is JobStatus.PUBLISHED for job in jobs)
    assert len(x.calls) == 3


@pytest.mark.asyncio
async def test_job_changed_before_start_is_skipped(store, transcoder, work_dir, clock) -> None:
    x = RecordingPublisher()
    orchestrator = _orchestrator(store, transcoder, _registry(x=x), work_dir, clock)
    job = _submit(store, clock, "x")
    store.force(job.id, status=JobStatus.CANCELED)

    result = await orchestrator.execute_job(job)

    assert result is None
    assert store.get(job.id).status is JobStatus.CANCELED
    assert x.calls == []


@pytest.mark.asyncio
async def test_run_forever_stops_on_shutdown_and_closes_publishers(
    store, transcoder, work_dir, clock
) -> None:
    x = RecordingPublisher()
    orchestrator = _orchestrator(
        store, transcoder, _registry(x=x), work_dir, clock, poll_interval=0.01
    )
    job = _submit(store, clock, "x")
    shutdown = asyncio.Event()

    task = asyncio.create_task(orchestrator.run_forever(shutdown_event=shutdown))
    for _ in range(200):
        if store.get(job.id).status is JobStatus.PUBLISHED:
            break
        await asyncio.sleep(0.01)
    shutdown.set()
    await asyncio.wait_for(task, timeout=2)

    assert store.get(job.id).status is JobStatus.PUBLISHED
    assert x.closed is True
    assert await orchestrator.dispatch_once() is False
