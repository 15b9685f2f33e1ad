"""
Warmup/measurement protocol for scriptbench.

Architecture
------------
- :class:`RunConfig`       – iteration counts and the optional invoke timeout.
- :class:`RunPhase`        – Idle → Loading → WarmingUp → Measuring → {Completed | Failed}.
- :class:`BenchmarkResult` – immutable outcome of one backend run.
- :class:`BenchmarkRunner` – runs the protocol against one backend, or a
  session of backends with per-backend failure isolation.

Failure policy
--------------
- An unavailable backend is not an error: the result is ``unavailable`` and
  the backend is never loaded or invoked.
- A load failure fails that backend only (:class:`BenchmarkLoadError` from
  :meth:`BenchmarkRunner.run`, a ``failed`` result inside a session).
- A warmup invocation failure is logged and skipped; warmup timings are
  discarded anyway.
- A measured invocation failure stops that backend and keeps the durations
  collected so far (``partial`` result).
- With ``invoke_timeout_s`` set, each backend stops an overrunning call
  through its own engine; a timeout in either phase ends the run as
  ``partial``.  Backends that cannot stop a call are rejected before load.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .backends.base import LoadedProgram, ScriptBackend, Workload
from .errors import BenchmarkLoadError, InvocationError, InvocationTimeoutError, LoadError

logger = logging.getLogger(__name__)

DEFAULT_WARMUP_ITERATIONS = 15
DEFAULT_MEASURED_ITERATIONS = 10


@dataclass(frozen=True)
class RunConfig:
    """Per-run protocol settings.

    Attributes
    ----------
    warmup_iterations:
        Invocations executed and discarded before measurement.
    measured_iterations:
        Invocations whose durations are recorded.
    invoke_timeout_s:
        Upper bound for a single invocation; ``None`` blocks indefinitely.
    """

    warmup_iterations: int = DEFAULT_WARMUP_ITERATIONS
    measured_iterations: int = DEFAULT_MEASURED_ITERATIONS
    invoke_timeout_s: float | None = None

    def __post_init__(self) -> None:
        for name in ("warmup_iterations", "measured_iterations"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer; got {value!r}")
        if self.invoke_timeout_s is not None and self.invoke_timeout_s <= 0:
            raise ValueError(f"invoke_timeout_s must be positive; got {self.invoke_timeout_s!r}")


class RunPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    WARMING_UP = "warming_up"
    MEASURING = "measuring"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(str, Enum):
    UNAVAILABLE = "unavailable"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class BenchmarkResult:
    """Outcome of running one workload against one backend.

    Durations are wall-clock milliseconds in invocation order.  The total is
    derived from them, so ``total_duration == sum(iteration_durations)``
    always holds.
    """

    backend_name: str
    workload: str
    status: RunStatus
    measured_iterations: int
    warmup_count: int = 0
    warmup_failures: int = 0
    iteration_durations: tuple[float, ...] = field(default_factory=tuple)
    error: str | None = None
    failed_phase: RunPhase | None = None
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "iteration_durations", tuple(self.iteration_durations))

    @property
    def available(self) -> bool:
        return self.status is not RunStatus.UNAVAILABLE

    @property
    def total_duration(self) -> float:
        return sum(self.iteration_durations)

    @property
    def is_partial(self) -> bool:
        return self.status is RunStatus.PARTIAL

    def percentile(self, q: float) -> float | None:
        if not self.iteration_durations:
            return None
        return float(np.percentile(np.asarray(self.iteration_durations, dtype=float), q))

    @property
    def mean_duration(self) -> float | None:
        if not self.iteration_durations:
            return None
        return float(np.mean(self.iteration_durations))

    @classmethod
    def unavailable(cls, backend: ScriptBackend, workload: Workload, config: RunConfig) -> BenchmarkResult:
        return cls(
            backend_name=backend.backend_name,
            workload=workload.name,
            status=RunStatus.UNAVAILABLE,
            measured_iterations=config.measured_iterations,
            error=backend.unavailable_reason(),
            description=backend.description,
        )

    @classmethod
    def load_failed(
        cls, backend: ScriptBackend, workload: Workload, config: RunConfig, exc: BenchmarkLoadError
    ) -> BenchmarkResult:
        return cls(
            backend_name=backend.backend_name,
            workload=workload.name,
            status=RunStatus.FAILED,
            measured_iterations=config.measured_iterations,
            error=str(exc),
            failed_phase=RunPhase.LOADING,
            description=backend.description,
        )


@dataclass
class _Progress:
    durations: list[float] = field(default_factory=list)
    warmup_calls: int = 0
    warmup_failures: int = 0
    error: InvocationError | None = None
    failed_phase: RunPhase | None = None

    def stop(self, error: InvocationError, phase: RunPhase) -> _Progress:
        self.error = error
        self.failed_phase = phase
        return self


class BenchmarkRunner:
    """Runs the warmup/measure protocol.

    The runner holds no mutable state, so one instance may drive several
    backends concurrently.
    """

    def __init__(self, config: RunConfig | None = None):
        self.config = config or RunConfig()

    # ------------------------------------------------------------------
    # Single backend
    # ------------------------------------------------------------------

    def run(
        self,
        backend: ScriptBackend,
        workload: Workload,
        config: RunConfig | None = None,
    ) -> BenchmarkResult:
        """Run *workload* on *backend* and return the result.

        Raises
        ------
        BenchmarkLoadError
            If the backend cannot load the workload, or cannot enforce
            ``invoke_timeout_s``.  The engine is released before the
            exception propagates.
        """
        cfg = config or self.config
        name = backend.backend_name

        if not backend.is_available():
            logger.info("%s: not available, skipping", name)
            return BenchmarkResult.unavailable(backend, workload, cfg)

        if cfg.invoke_timeout_s is not None and not backend.supports_invoke_timeout:
            cause = LoadError(
                name,
                f"cannot stop a running call, so invoke_timeout_s={cfg.invoke_timeout_s:g} "
                "cannot be enforced; run this backend without a timeout",
            )
            logger.error("%s: %s", name, cause.message)
            raise BenchmarkLoadError(name, cause)

        logger.debug("%s: %s -> %s", name, RunPhase.IDLE.value, RunPhase.LOADING.value)
        try:
            backend.acquire()
            program = backend.load(workload)
        except LoadError as exc:
            backend.release()
            logger.debug("%s: %s -> %s", name, RunPhase.LOADING.value, RunPhase.FAILED.value)
            logger.error("%s: failed to load workload '%s': %s", name, workload.name, exc.message)
            raise BenchmarkLoadError(name, exc) from exc
        except BaseException:
            backend.release()
            raise

        with backend:
            progress = self._warmup_and_measure(backend, program, cfg)

        error = progress.error
        return BenchmarkResult(
            backend_name=name,
            workload=workload.name,
            status=RunStatus.PARTIAL if error is not None else RunStatus.COMPLETED,
            measured_iterations=cfg.measured_iterations,
            warmup_count=progress.warmup_calls,
            warmup_failures=progress.warmup_failures,
            iteration_durations=tuple(progress.durations),
            error=str(error) if error is not None else None,
            failed_phase=progress.failed_phase,
            description=backend.description,
        )

    def _warmup_and_measure(
        self, backend: ScriptBackend, program: LoadedProgram, cfg: RunConfig
    ) -> _Progress:
        name = backend.backend_name
        progress = _Progress()

        logger.debug("%s: %s -> %s", name, RunPhase.LOADING.value, RunPhase.WARMING_UP.value)
        logger.info("%s: warming up (%d iterations)", name, cfg.warmup_iterations)
        for i in range(cfg.warmup_iterations):
            progress.warmup_calls += 1
            try:
                self._invoke(backend, program, cfg, RunPhase.WARMING_UP)
            except InvocationTimeoutError as exc:
                # The engine stopped the call; the run ends here.
                logger.error("%s: warmup iteration %d timed out: %s", name, i + 1, exc.message)
                return progress.stop(exc, RunPhase.WARMING_UP)
            except InvocationError as exc:
                progress.warmup_failures += 1
                logger.warning("%s: warmup iteration %d failed, skipping: %s", name, i + 1, exc.message)

        logger.debug("%s: %s -> %s", name, RunPhase.WARMING_UP.value, RunPhase.MEASURING.value)
        logger.info("%s: warmup finished, measuring %d iterations", name, cfg.measured_iterations)
        for i in range(cfg.measured_iterations):
            try:
                took = self._invoke(backend, program, cfg, RunPhase.MEASURING)
            except InvocationError as exc:
                logger.error(
                    "%s: measured iteration %d failed, keeping %d collected: %s",
                    name,
                    i + 1,
                    len(progress.durations),
                    exc.message,
                )
                return progress.stop(exc, RunPhase.MEASURING)
            progress.durations.append(took)
            logger.debug("%s: iteration %d took %.3f ms", name, i + 1, took)

        logger.debug("%s: %s -> %s", name, RunPhase.MEASURING.value, RunPhase.COMPLETED.value)
        return progress

    @staticmethod
    def _invoke(
        backend: ScriptBackend, program: LoadedProgram, cfg: RunConfig, phase: RunPhase
    ) -> float:
        try:
            return backend.invoke(program, timeout_s=cfg.invoke_timeout_s)
        except InvocationTimeoutError as exc:
            raise InvocationTimeoutError(exc.backend, exc.timeout_s, phase=phase.value) from exc

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def run_isolated(
        self,
        backend: ScriptBackend,
        workload: Workload,
        config: RunConfig | None = None,
    ) -> BenchmarkResult:
        """Like :meth:`run`, but failures become ``failed`` results instead of raising."""
        cfg = config or self.config
        try:
            return self.run(backend, workload, cfg)
        except BenchmarkLoadError as exc:
            return BenchmarkResult.load_failed(backend, workload, cfg, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s: unexpected error during benchmark run", backend.backend_name)
            return BenchmarkResult(
                backend_name=backend.backend_name,
                workload=workload.name,
                status=RunStatus.FAILED,
                measured_iterations=cfg.measured_iterations,
                error=f"{type(exc).__name__}: {exc}",
                description=backend.description,
            )

    def run_session(
        self,
        backends: Sequence[ScriptBackend],
        workload: Workload,
        config: RunConfig | None = None,
        *,
        parallel: bool = False,
        on_result: Callable[[BenchmarkResult], None] | None = None,
    ) -> list[BenchmarkResult]:
        """Run *workload* on every backend and return results in input order.

        Backend-local failures never stop sibling backends.  With
        ``parallel=True`` each backend runs on its own worker thread; backend
        instances must not be shared between entries of *backends*.
        """
        cfg = config or self.config
        if len({id(b) for b in backends}) != len(backends):
            raise ValueError("each backend instance may appear only once per session")

        if not parallel or len(backends) < 2:
            results = []
            for backend in backends:
                result = self.run_isolated(backend, workload, cfg)
                if on_result is not None:
                    on_result(result)
                results.append(result)
            return results

        with ThreadPoolExecutor(max_workers=len(backends), thread_name_prefix="scriptbench") as pool:
            futures = [pool.submit(self.run_isolated, b, workload, cfg) for b in backends]
            results = [future.result() for future in futures]
        if on_result is not None:
            for result in results:
                on_result(result)
        return results
