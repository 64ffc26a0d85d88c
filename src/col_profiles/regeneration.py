"""Regenerate elevation profiles for the whole col catalogue.

Each col goes through the same pipeline:

    PendingCacheCheck -> CacheHit (done)
                      -> CacheMiss -> AwaitingQuota -> FetchingProfile
                         -> Segmenting -> Validating -> Persisting -> Done

A failure at any step moves the col to Failed and is recorded in the run
metrics; it never touches the col's stored profile or its siblings.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from col_profiles.cache import PROFILE_CACHE_TTL_SECONDS, make_profile_cache_key
from col_profiles.catalogue import BackupManager
from col_profiles.charts import save_profile_chart
from col_profiles.errors import (
    ColNotFoundError,
    ElevationApiError,
    PersistenceError,
    ProfileValidationError,
    RateLimitedError,
    classify_error,
)
from col_profiles.models import (
    Col,
    ElevationProfile,
    ErrorDetail,
    RegenerationMetrics,
    RegenerationOptions,
)
from col_profiles.pool import ConcurrencyPool
from col_profiles.profile import build_profile, summarize_points
from col_profiles.ratelimit import DEFAULT_CALLER, RateLimiter
from col_profiles.smoothing import smooth_elevations
from col_profiles.validation import validate_profile

logger = logging.getLogger(__name__)

WELL_KNOWN_COLS = ("Alpe d'Huez", "Tourmalet", "Galibier", "Ventoux")

MAX_RATE_LIMIT_RETRIES = 3
MAX_API_ERROR_RETRIES = 2


class ColState:
    PENDING_CACHE_CHECK = "PendingCacheCheck"
    CACHE_HIT = "CacheHit"
    AWAITING_QUOTA = "AwaitingQuota"
    FETCHING_PROFILE = "FetchingProfile"
    SEGMENTING = "Segmenting"
    VALIDATING = "Validating"
    PERSISTING = "Persisting"
    DONE = "Done"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class _ProviderRetryStop(stop_base):
    """Stop once the attempt number passes the limit for the failure kind.

    Rate limits and API errors share one attempt counter, so a rate limit
    after two API errors still gets one more try.
    """

    def __call__(self, retry_state: RetryCallState) -> bool:
        exc = retry_state.outcome.exception()
        if isinstance(exc, RateLimitedError):
            return retry_state.attempt_number > MAX_RATE_LIMIT_RETRIES
        return retry_state.attempt_number > MAX_API_ERROR_RETRIES


class _ProviderRetryWait(wait_base):
    """Linear backoff for rate limits, flat delay for other provider errors.

    A Retry-After hint from the provider lengthens the rate-limit delay but
    never shortens it.
    """

    def __init__(self, rate_limit_delay: float, api_error_delay: float):
        self.rate_limit_delay = rate_limit_delay
        self.api_error_delay = api_error_delay

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception()
        if isinstance(exc, RateLimitedError):
            delay = retry_state.attempt_number * self.rate_limit_delay
            if exc.retry_after is not None:
                delay = max(delay, exc.retry_after)
            return delay
        return self.api_error_delay


def well_known_first(names: tuple[str, ...] = WELL_KNOWN_COLS) -> Callable[[Col], Any]:
    """Sort key: cols whose name contains a well-known name, then steepest first."""
    def key(col: Col):
        famous = any(name in col.name for name in names)
        return (0 if famous else 1, -col.avg_gradient)
    return key


def steepest_sample(cols: list[Col], size: int) -> list[Col]:
    """The ``size`` cols with the highest catalogued gradient."""
    return sorted(cols, key=lambda c: -c.avg_gradient)[:size]


class RegenerationOrchestrator:
    """Coordinates cache, quota, provider, segmentation, validation and storage.

    All collaborators are injected. The rate limiter is owned by the
    orchestrator instance, so two orchestrators never share request history.
    """

    def __init__(
        self,
        store,
        provider,
        cache,
        rate_limiter: RateLimiter | None = None,
        priority: Callable[[Col], Any] | None = None,
        backup_manager: BackupManager | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rate_limit_retry_delay: float = 5.0,
        api_error_retry_delay: float = 3.0,
        caller_id: str = DEFAULT_CALLER,
    ):
        self.store = store
        self.provider = provider
        self.cache = cache
        self.rate_limiter = rate_limiter or RateLimiter()
        self.priority = priority or well_known_first()
        self.backup_manager = backup_manager or BackupManager(store)
        self._clock = clock
        self._sleep = sleep
        self.rate_limit_retry_delay = rate_limit_retry_delay
        self.api_error_retry_delay = api_error_retry_delay
        self.caller_id = caller_id

    def _select_cols(self, cols: list[Col], options: RegenerationOptions) -> list[Col]:
        if options.test_mode:
            return steepest_sample(cols, options.test_sample_size)
        return sorted(cols, key=self.priority)

    async def regenerate_all(self, options: RegenerationOptions | None = None) -> RegenerationMetrics:
        """Regenerate every col's profile and return the run metrics.

        Raises:
            BackupError: If the pre-run snapshot fails. Nothing is modified.
        """
        options = options or RegenerationOptions()
        metrics = RegenerationMetrics()
        start = self._clock()
        deadline = start + options.deadline_seconds if options.deadline_seconds is not None else None

        logger.info("Starting elevation profile regeneration")
        try:
            if options.backup:
                await self.backup_manager.create_backup()

            cols = self._select_cols(await self.store.get_all(), options)
            logger.info("%d cols to process", len(cols))

            pool = ConcurrencyPool(options.concurrency)
            for i, col in enumerate(cols):
                if deadline is not None and self._clock() >= deadline:
                    metrics.skipped += len(cols) - i
                    logger.warning("Deadline reached, %d cols not submitted", len(cols) - i)
                    break
                pool.submit(self._col_task(col, options, metrics, deadline))

            await pool.complete()

            metrics.finalize(self._clock() - start)
            self._log_summary(metrics, len(cols))
        finally:
            await self.store.close()

        return metrics

    def _col_task(self, col: Col, options: RegenerationOptions, metrics: RegenerationMetrics,
                  deadline: float | None):
        async def task():
            if deadline is not None and self._clock() >= deadline:
                metrics.skipped += 1
                logger.debug("%s: %s (deadline passed)", col.name, ColState.SKIPPED)
                return
            await self._process_col(col, options, metrics)
        return task

    async def _process_col(self, col: Col, options: RegenerationOptions, metrics: RegenerationMetrics) -> None:
        col_start = self._clock()
        cache_key = make_profile_cache_key(col.id)
        logger.info("Processing col %r", col.name)

        try:
            if not options.force_refresh:
                logger.debug("%s: %s", col.name, ColState.PENDING_CACHE_CHECK)
                if await self.cache.get(cache_key) is not None:
                    logger.info("Using cached profile for %r", col.name)
                    logger.debug("%s: %s", col.name, ColState.CACHE_HIT)
                    metrics.cache_hits += 1
                    metrics.cols_processed += 1
                    return

            logger.debug("%s: %s", col.name, ColState.AWAITING_QUOTA)
            await self.rate_limiter.acquire(self.caller_id)
            metrics.api_calls += 1

            profile = await self._generate_profile(col, options.smoothing_radius_m)

            if options.validate:
                logger.debug("%s: %s", col.name, ColState.VALIDATING)
                result = validate_profile(profile, col)
                if not result.passed:
                    raise ProfileValidationError(result.reasons)

            await self._persist(col, profile)

            metrics.cols_processed += 1
            logger.info(
                "Col %r processed in %.2fs with %d points and %d segments",
                col.name, self._clock() - col_start, len(profile.points), len(profile.segments),
            )
        except Exception as e:
            kind = classify_error(e)
            metrics.errors += 1
            metrics.error_details.append(
                ErrorDetail(col_id=col.id, col_name=col.name, error=str(e) or "Unknown error", kind=kind)
            )
            logger.error("%s: %s (%s): %s", col.name, ColState.FAILED, kind, e)
            return

        # Charts are best effort once the profile is stored
        if options.charts_dir:
            try:
                save_profile_chart(profile, col, Path(options.charts_dir))
            except (OSError, ValueError) as e:
                logger.warning("Could not write chart for %r: %s", col.name, e)

    async def _generate_profile(self, col: Col, smoothing_radius_m: float = 0.0) -> ElevationProfile:
        logger.debug("%s: %s", col.name, ColState.FETCHING_PROFILE)
        raw = await self.provider.fetch_profile(col.coordinates)
        source = raw.source or getattr(self.provider, "name", "")

        logger.debug("%s: %s", col.name, ColState.SEGMENTING)
        if smoothing_radius_m > 0:
            raw = summarize_points(smooth_elevations(raw.points, smoothing_radius_m))
        return build_profile(raw, source=source)

    async def _persist(self, col: Col, profile: ElevationProfile) -> None:
        logger.debug("%s: %s", col.name, ColState.PERSISTING)
        if not await self.store.update_profile(col.id, profile):
            raise PersistenceError(f"Catalogue refused profile update for col {col.id}")
        await self.cache.set(make_profile_cache_key(col.id), profile.to_dict(),
                             ttl_seconds=PROFILE_CACHE_TTL_SECONDS)
        logger.debug("%s: %s", col.name, ColState.DONE)

    async def regenerate_col(self, col_id: str, smoothing_radius_m: float = 0.0) -> ElevationProfile:
        """Regenerate one col, retrying provider failures.

        Rate-limit signals are retried up to 3 times with a delay growing by
        ``rate_limit_retry_delay`` per attempt; other provider errors up to
        2 times with a flat ``api_error_retry_delay``. Both count against the
        same attempt number. A Retry-After hint longer than the computed
        rate-limit delay is honoured instead.

        Raises:
            ColNotFoundError: If the col is not in the catalogue.
            RateLimitedError, ElevationApiError: Once retries are exhausted.
        """
        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                "Retrying col %s in %.0fs after attempt %d: %s",
                col_id, retry_state.next_action.sleep, retry_state.attempt_number,
                retry_state.outcome.exception(),
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type((RateLimitedError, ElevationApiError)),
            stop=_ProviderRetryStop(),
            wait=_ProviderRetryWait(self.rate_limit_retry_delay, self.api_error_retry_delay),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                col = await self.store.get_by_id(col_id)
                if col is None:
                    raise ColNotFoundError(col_id)

                await self.rate_limiter.acquire(self.caller_id)
                profile = await self._generate_profile(col, smoothing_radius_m)
                await self._persist(col, profile)
                return profile

    def _log_summary(self, metrics: RegenerationMetrics, total_cols: int) -> None:
        logger.info("=== Regeneration summary ===")
        logger.info("Cols processed: %d/%d", metrics.cols_processed, total_cols)
        logger.info("Errors: %d", metrics.errors)
        logger.info("Skipped: %d", metrics.skipped)
        logger.info("Cache hits: %d", metrics.cache_hits)
        logger.info("API calls: %d", metrics.api_calls)
        logger.info("Total time: %.1fs", metrics.total_time)
        logger.info("Average time per col: %.2fs", metrics.average_time_per_col)
