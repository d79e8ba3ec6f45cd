"""Bounded-concurrency job dispatcher.

Runs one encode per job with at most `job_limit` encodes active at once.
A counting semaphore holds the permits: the submission loop acquires one
before starting a job and the worker releases it when the encode returns,
whichever job that is. Completion order is not assumed.

Termination is cooperative. `request_stop()` is the cancellation token; the
submission loop checks it before every new job (also while waiting for a
permit). Jobs already started run to completion under the `drain` policy, or
have their encoder terminated under the `terminate` policy. `run()` returns
only after every started job produced a result.

States: RUNNING -> TERMINATED on normal completion,
RUNNING -> DRAINING -> TERMINATED after a stop request.
"""

import concurrent.futures
import logging
import threading
import time
from typing import Iterable, List, Optional, Protocol
from h265conv.domain.events import DispatchFinished, InterruptRequested, JobCompleted, JobFailed, JobStarted
from h265conv.domain.models import DispatcherState, DispatchSummary, EncodeJob, JobOutcome, JobResult
from h265conv.infrastructure.event_bus import EventBus


class Encoder(Protocol):
    def encode(self, job: EncodeJob, abort_event: Optional[threading.Event] = None) -> JobResult:
        ...


class JobDispatcher:
    def __init__(
        self,
        encoder: Encoder,
        event_bus: EventBus,
        job_limit: int,
        on_interrupt: str = "drain",
        poll_interval: float = 0.1,
    ):
        if job_limit < 1:
            raise ValueError(f"job_limit must be >= 1, got {job_limit}")
        self.encoder = encoder
        self.event_bus = event_bus
        self.job_limit = job_limit
        self.on_interrupt = on_interrupt
        self.poll_interval = poll_interval
        self.logger = logging.getLogger(__name__)

        self._permits = threading.BoundedSemaphore(job_limit)
        self._stop_event = threading.Event()
        self._abort_event = threading.Event()  # set only under the terminate policy

        # Re-entrant: request_stop() may run from a signal handler on the
        # main thread while that thread holds the lock.
        self._lock = threading.RLock()
        self._state = DispatcherState.RUNNING
        self._in_flight = 0
        self._max_in_flight = 0
        self._started = 0
        self._completed = 0
        self._succeeded = 0
        self._failed = 0
        self._signal_number: Optional[int] = None

    @property
    def state(self) -> DispatcherState:
        with self._lock:
            return self._state

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self, signal_number: Optional[int] = None):
        """Stops new jobs from starting. Safe to call from a signal handler."""
        with self._lock:
            if self._state != DispatcherState.RUNNING:
                self.logger.info(f"DISPATCH_STOP_IGNORED: state={self._state.value} signal={signal_number}")
                return
            self._state = DispatcherState.DRAINING
            self._signal_number = signal_number
            in_flight = self._in_flight

        self._stop_event.set()
        if self.on_interrupt == "terminate":
            self._abort_event.set()

        self.logger.info(
            f"DISPATCH_DRAIN: signal={signal_number} in_flight={in_flight} policy={self.on_interrupt}"
        )
        self.event_bus.publish(InterruptRequested(
            signal_number=signal_number,
            in_flight=in_flight,
            policy=self.on_interrupt,
        ))

    def run(self, jobs: Iterable[EncodeJob]) -> DispatchSummary:
        jobs = list(jobs)
        total = len(jobs)
        self.logger.info(f"DISPATCH_START: jobs={total}, job_limit={self.job_limit}")

        futures: List[concurrent.futures.Future] = []
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.job_limit, thread_name_prefix="encode"
        ) as executor:
            for job in jobs:
                if not self._acquire_permit():
                    self.logger.info(f"DISPATCH_SUBMIT_STOPPED: started={self._started}/{total}")
                    break

                with self._lock:
                    self._in_flight += 1
                    self._started += 1
                    self._max_in_flight = max(self._max_in_flight, self._in_flight)

                self.event_bus.publish(JobStarted(job=job))
                futures.append(executor.submit(self._run_job, job))

            self._wait_for(futures)

        with self._lock:
            self._state = DispatcherState.TERMINATED
            summary = DispatchSummary(
                total=total,
                started=self._started,
                succeeded=self._succeeded,
                failed=self._failed,
                not_started=total - self._started,
                max_in_flight=self._max_in_flight,
                interrupted=self._stop_event.is_set(),
                signal_number=self._signal_number,
            )

        self.logger.info(
            f"DISPATCH_END: started={summary.started}, succeeded={summary.succeeded}, "
            f"failed={summary.failed}, not_started={summary.not_started}, interrupted={summary.interrupted}"
        )
        self.event_bus.publish(DispatchFinished(summary=summary))
        return summary

    def _acquire_permit(self) -> bool:
        """Blocks until a permit is free; False once a stop was requested."""
        while not self._stop_event.is_set():
            if self._permits.acquire(timeout=self.poll_interval):
                if self._stop_event.is_set():
                    self._permits.release()
                    return False
                return True
        return False

    def _wait_for(self, futures: List[concurrent.futures.Future]):
        # Timed waits keep the main thread responsive to signal handlers.
        pending = set(futures)
        while pending:
            done, pending = concurrent.futures.wait(
                pending,
                timeout=self.poll_interval,
                return_when=concurrent.futures.FIRST_COMPLETED,
            )
            for future in done:
                try:
                    future.result()
                except Exception as e:
                    self.logger.error(f"Future failed with exception: {e}")

    def _run_job(self, job: EncodeJob) -> JobResult:
        filename = job.input_path.name
        start_time = time.monotonic()
        self.logger.info(f"JOB_START: {filename} (thread {threading.get_ident()})")

        try:
            try:
                result = self.encoder.encode(job, abort_event=self._abort_event)
            except Exception as e:
                # Log exception but don't crash the batch
                self.logger.error(f"Exception encoding {filename}: {e}")
                result = JobResult(
                    job=job,
                    outcome=JobOutcome.FAILURE,
                    error_message=f"Exception: {e}",
                    duration_seconds=time.monotonic() - start_time,
                )

            with self._lock:
                if result.outcome == JobOutcome.SUCCESS:
                    self._succeeded += 1
                else:
                    self._failed += 1

            elapsed = time.monotonic() - start_time
            self.logger.info(
                f"JOB_END: {filename} status={result.outcome.value} "
                f"exit={result.exit_status} elapsed={elapsed:.2f}s"
            )
            if result.outcome == JobOutcome.SUCCESS:
                self.event_bus.publish(JobCompleted(result=result))
            else:
                self.event_bus.publish(JobFailed(result=result))
            return result
        finally:
            with self._lock:
                self._in_flight -= 1
                self._completed += 1
            self._permits.release()
