"""
Price refresh across portfolios and retirement accounts.

One refresh collects every ticker of interest, fetches all quotes in a single
batch, then writes each container independently and concurrently. A failed
write is logged and counted; it never blocks or rolls back its siblings, and
the refresh completes once every write has settled.
"""

import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from portfolio_manager.exceptions import RefreshInProgressError, ValidationError
from portfolio_manager.models import WriteResult
from portfolio_manager.repositories import HoldingsRepository, PortfolioRepository, RetirementRepository
from portfolio_manager.services.quote_service import QuoteService

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = 'idle'
    FETCHING_QUOTES = 'fetching_quotes'
    APPLYING_UPDATES = 'applying_updates'


@dataclass
class RefreshSummary:
    """Terminal outcome of one refresh invocation."""
    symbols_requested: int = 0
    prices_found: int = 0
    containers_total: int = 0
    containers_updated: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def progress(self) -> str:
        return f"{self.prices_found} prices updated"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbols_requested': self.symbols_requested,
            'prices_found': self.prices_found,
            'containers_total': self.containers_total,
            'containers_updated': self.containers_updated,
            'failures': list(self.failures),
            'skipped': list(self.skipped),
            'progress': self.progress,
        }


Target = Tuple[str, HoldingsRepository, Any]
CompletionCallback = Callable[[RefreshSummary], None]


class PriceSyncCoordinator:
    """
    Orchestrates quote fan-out and per-container write fan-out/fan-in.

    Containers are guarded by a single-flight key ``"{collection}:{id}"``:
    a container that is already being refreshed is skipped by any overlapping
    refresh instead of racing on its holdings.
    """

    def __init__(self, quote_service: QuoteService, portfolios: PortfolioRepository,
                 retirement_accounts: RetirementRepository,
                 write_timeout: Optional[float] = 30.0, max_workers: int = 8):
        self._quotes = quote_service
        self._repositories = {
            'portfolio': portfolios,
            'retirement': retirement_accounts,
        }
        self.write_timeout = write_timeout
        self.max_workers = max_workers

        self._guard = threading.Lock()
        self._in_flight = set()
        # run id -> [state, progress] for every refresh still running
        self._runs: Dict[int, List[Any]] = {}
        self._run_ids = itertools.count(1)
        self._progress = ''
        self._last_summary: Optional[RefreshSummary] = None

    # --- Observable progress ---

    def _latest_run(self) -> Optional[List[Any]]:
        """State of the most recently started active run. Caller holds ``_guard``."""
        if not self._runs:
            return None
        return self._runs[max(self._runs)]

    @property
    def state(self) -> RefreshState:
        """Idle only when no refresh is running."""
        with self._guard:
            run = self._latest_run()
            return run[0] if run else RefreshState.IDLE

    @property
    def progress(self) -> str:
        """Progress of the latest active run, else the terminal progress of the last finished one."""
        with self._guard:
            run = self._latest_run()
            return run[1] if run else self._progress

    def status(self) -> Dict[str, Any]:
        with self._guard:
            run = self._latest_run()
            active = [
                {'run': run_id, 'state': state.value, 'progress': progress}
                for run_id, (state, progress) in sorted(self._runs.items())
            ]
            return {
                'state': run[0].value if run else RefreshState.IDLE.value,
                'progress': run[1] if run else self._progress,
                'in_flight': len(self._in_flight),
                'active_runs': active,
                'last_summary': self._last_summary.to_dict() if self._last_summary else None,
            }

    def _begin_run(self) -> int:
        with self._guard:
            run_id = next(self._run_ids)
            self._runs[run_id] = [RefreshState.IDLE, '']
        return run_id

    def _set_state(self, run_id: int, state: RefreshState, progress: Optional[str] = None) -> None:
        with self._guard:
            run = self._runs[run_id]
            run[0] = state
            if progress is not None:
                run[1] = progress
        logger.debug(f"Price refresh {run_id} state: {state.value} {run[1]}")

    def _end_run(self, run_id: int, progress: str) -> None:
        with self._guard:
            self._runs.pop(run_id, None)
            self._progress = progress
        logger.debug(f"Price refresh {run_id} finished: {progress}")

    # --- Entry points ---

    def refresh_all(self, on_complete: Optional[CompletionCallback] = None) -> RefreshSummary:
        """Refresh every portfolio and retirement account."""
        targets = [
            (f"{repo.collection}:{container.id}", repo, container)
            for repo in self._repositories.values()
            for container in repo.get_all()
        ]
        return self._run(targets, on_complete)

    def refresh_container(self, kind: str, container_id: str,
                          on_complete: Optional[CompletionCallback] = None) -> RefreshSummary:
        """Refresh one container; ``kind`` is 'portfolio' or 'retirement'."""
        repo = self._repositories.get(kind)
        if repo is None:
            raise ValidationError(f"Unknown container kind: {kind}", field='kind')
        container = repo.require(container_id)
        return self._run([(f"{repo.collection}:{container.id}", repo, container)], on_complete)

    def start_refresh(self) -> threading.Thread:
        """Run ``refresh_all`` on a daemon thread and return the thread."""
        thread = threading.Thread(target=self._refresh_in_background, name='price-refresh', daemon=True)
        thread.start()
        logger.info("Price refresh dispatched to background thread")
        return thread

    def _refresh_in_background(self) -> None:
        try:
            self.refresh_all()
        except RefreshInProgressError as e:
            logger.info(f"Background price refresh not started: {e}")

    # --- Core ---

    def _claim(self, targets: List[Target]) -> Tuple[List[Target], List[str]]:
        claimed, skipped = [], []
        with self._guard:
            for target in targets:
                key = target[0]
                if key in self._in_flight:
                    skipped.append(key)
                else:
                    self._in_flight.add(key)
                    claimed.append(target)
        if skipped:
            logger.warning(f"Skipping containers already being refreshed: {skipped}")
        return claimed, skipped

    def _release(self, targets: List[Target]) -> None:
        with self._guard:
            for key, _, _ in targets:
                self._in_flight.discard(key)

    def _run(self, targets: List[Target], on_complete: Optional[CompletionCallback]) -> RefreshSummary:
        claimed, skipped = self._claim(targets)
        if targets and not claimed:
            raise RefreshInProgressError("A price refresh is already running for every requested container")

        summary = RefreshSummary(containers_total=len(claimed), skipped=skipped)
        run_id = self._begin_run()
        completed = False
        try:
            symbols = set()
            for _, _, container in claimed:
                symbols |= container.symbols_of_interest()
            summary.symbols_requested = len(symbols)

            if not symbols:
                logger.info("No symbols to refresh")
            else:
                price_map = self._fetch_prices(run_id, symbols)
                summary.prices_found = len(price_map)
                self._set_state(run_id, RefreshState.APPLYING_UPDATES)
                self._apply(claimed, price_map, summary)
                logger.info(
                    f"Price refresh complete: {summary.prices_found}/{summary.symbols_requested} prices, "
                    f"{summary.containers_updated}/{summary.containers_total} containers saved"
                )
            completed = True
        finally:
            self._end_run(run_id, summary.progress if completed else 'Error')
            self._release(claimed)

        self._last_summary = summary
        if on_complete is not None:
            on_complete(summary)
        return summary

    def _fetch_prices(self, run_id: int, symbols) -> Dict[str, float]:
        total = len(symbols)
        self._set_state(run_id, RefreshState.FETCHING_QUOTES, f"0/{total}")
        quotes = self._quotes.get_quotes(
            symbols,
            on_settled=lambda done, count: self._set_state(run_id, RefreshState.FETCHING_QUOTES, f"{done}/{count}"),
        )
        return {symbol.upper(): quote.price for symbol, quote in quotes.items()}

    @staticmethod
    def _log_late_write(key: str, future) -> None:
        if future.cancelled():
            logger.warning(f"Write for {key} was cancelled after the timeout")
            return
        try:
            result = future.result()
        except Exception as e:
            logger.error(f"Late write for {key} failed: {e}")
            return
        if result.success:
            logger.warning(f"Write for {key} succeeded after it was reported as timed out")
        else:
            logger.error(f"Late write for {key} failed: {result.error}")

    def _apply(self, targets: List[Target], price_map: Dict[str, float], summary: RefreshSummary) -> None:
        """
        Write every container concurrently and join on all of them.

        A write still running at ``write_timeout`` is reported as failed but
        cannot be interrupted: if it later succeeds, the container's new
        prices are persisted and kept in memory even though the summary lists
        it under ``failures``. Late outcomes are logged when they settle.
        """
        executor = ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(targets))),
                                      thread_name_prefix='price-write')
        try:
            futures = {
                executor.submit(repo.update_holding_prices, container.id, price_map): key
                for key, repo, container in targets
            }
            done, not_done = wait(futures, timeout=self.write_timeout)

            for future in done:
                key = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.exception(f"Error updating {key}")
                    result = WriteResult(False, str(e))
                if result.success:
                    summary.containers_updated += 1
                else:
                    logger.error(f"Error updating {key}: {result.error}")
                    summary.failures.append({'container': key, 'error': result.error or 'unknown error'})

            for future in not_done:
                key = futures[future]
                logger.error(f"Write for {key} did not settle within {self.write_timeout}s")
                summary.failures.append({'container': key, 'error': 'timed out'})
                future.add_done_callback(lambda f, key=key: self._log_late_write(key, f))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
