"""
Subscription Manager Module
===========================

Runs subscription audits in parallel and collects their partial results.

This module handles:
- Bounded parallel execution with a thread pool
- Per-subscription timeouts that leave sibling subscriptions running
- Isolation of subscription-level failures
- Run cancellation that keeps already completed results

Classes
-------
AuditRunResult
    Partial results and run-level errors of one audit run.
SubscriptionManager
    Orchestrates fetching and auditing across subscriptions.

Example
-------
>>> from planaudit.core.subscription_manager import SubscriptionManager
>>>
>>> manager = SubscriptionManager(source, timeout=300)
>>> report = manager.audit(source.subscriptions())
>>> print(f"{report.empty_plan_count} empty plans cost ${report.empty_plan_monthly_usd}/month")

Notes
-----
Every worker builds its own :class:`SubscriptionAuditResult` and returns
it through its future; results are only combined after the join, on the
calling thread, so no result list is shared between threads.

See Also
--------
SubscriptionAuditor : Work done for each subscription.
AuditAggregator : Merges the partial results into a report.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from planaudit.core.aggregator import AuditAggregator, AuditReport
from planaudit.core.exceptions import AuditTimeoutError, InventoryError, NoSubscriptionsError
from planaudit.core.inventory import InventorySource
from planaudit.core.models import ErrorEntry, Subscription
from planaudit.core.subscription_auditor import SubscriptionAuditor, SubscriptionAuditResult

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8

ProgressCallback = Callable[[str, str], None]


@dataclass
class AuditRunResult:
    """
    Outcome of running the subscription audits.

    Parameters
    ----------
    subscriptions : list of Subscription
        Subscriptions the run was asked to audit.
    partials : list of SubscriptionAuditResult
        Results of the subscriptions that finished (successfully or with a
        recorded failure), in discovery order.
    errors : list of ErrorEntry
        Run-level errors (for example an interruption).
    interrupted : bool
        True when the run was cancelled before every subscription finished.
    elapsed_seconds : float
        Wall-clock duration of the run.
    """

    subscriptions: List[Subscription]
    partials: List[SubscriptionAuditResult]
    errors: List[ErrorEntry] = field(default_factory=list)
    interrupted: bool = False
    elapsed_seconds: float = 0.0

    @property
    def completed_subscriptions(self) -> List[str]:
        return [p.subscription.id for p in self.partials]

    @property
    def failed_subscriptions(self) -> List[str]:
        return [
            p.subscription.id
            for p in self.partials
            if p.is_failed
        ]


class _SubscriptionTask:
    """Bookkeeping for one submitted subscription."""

    def __init__(self, subscription: Subscription) -> None:
        self.subscription = subscription
        self.cancel_event = threading.Event()
        # Written once by the worker when it starts
        self.started_at: Optional[float] = None
        self.timed_out = False


class SubscriptionManager:
    """
    Manages parallel subscription audits.

    Parameters
    ----------
    source : InventorySource
        Where each subscription's raw inventory comes from.
    auditor : SubscriptionAuditor, optional
        Auditor applied to each inventory. Defaults to one with the
        bundled pricing table.
    max_workers : int, optional
        Maximum parallel subscriptions. Defaults to
        ``min(len(subscriptions), 8)``.
    timeout : float, optional
        Seconds one subscription may run, measured from when its worker
        starts. None disables the timeout.
    poll_interval : float, default=0.2
        How often the join loop checks timeouts and cancellation.

    Examples
    --------
    >>> manager = SubscriptionManager(FileInventorySource("inventory.json"))
    >>> run = manager.run(subscriptions)
    >>> report = AuditAggregator().aggregate(run.partials, run.elapsed_seconds, run.errors)

    With progress tracking:

    >>> def on_progress(subscription_id, status):
    ...     print(f"{subscription_id}: {status}")
    >>> report = manager.audit(subscriptions, progress_callback=on_progress)
    """

    def __init__(
        self,
        source: InventorySource,
        auditor: Optional[SubscriptionAuditor] = None,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        poll_interval: float = 0.2,
    ) -> None:
        self.source = source
        self.auditor = auditor or SubscriptionAuditor()
        self.max_workers = max_workers
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._cancelled = threading.Event()

        logger.debug(
            f"Initialized SubscriptionManager (max_workers={max_workers}, timeout={timeout})"
        )

    def cancel(self) -> None:
        """Stop the current run; completed results are kept."""
        logger.warning("Audit run cancellation requested")
        self._cancelled.set()

    def worker_count(self, subscription_count: int) -> int:
        limit = self.max_workers or DEFAULT_MAX_WORKERS
        return max(1, min(subscription_count, limit))

    def _audit_subscription(
        self,
        task: _SubscriptionTask,
        skip_empty_plan_analysis: bool,
        progress_callback: Optional[ProgressCallback],
    ) -> SubscriptionAuditResult:
        """
        Fetch and audit one subscription (runs on a worker thread).

        Never raises: failures become a result with a subscription-level
        error.
        """
        task.started_at = time.monotonic()
        subscription = task.subscription
        if progress_callback:
            progress_callback(subscription.id, "scanning")

        try:
            inventory = self.source.fetch(subscription, task.cancel_event)
            result = self.auditor.audit(
                subscription,
                inventory.function_apps,
                inventory.web_apps,
                inventory.plans,
                skip_empty_plan_analysis=skip_empty_plan_analysis,
                cancel_event=task.cancel_event,
            )
            result.errors[:0] = inventory.errors
        except AuditTimeoutError as e:
            logger.warning(f"Audit of {subscription.display_name} stopped: {e.message}")
            return SubscriptionAuditResult.failed(
                subscription, e.message, skip_empty_plan_analysis
            )
        except InventoryError as e:
            logger.error(f"Inventory unavailable for {subscription.display_name}: {e.message}")
            if progress_callback:
                progress_callback(subscription.id, "error")
            return SubscriptionAuditResult.failed(
                subscription, e.message, skip_empty_plan_analysis
            )
        except Exception as e:
            logger.error(f"Error auditing {subscription.display_name}: {e}")
            if progress_callback:
                progress_callback(subscription.id, "error")
            return SubscriptionAuditResult.failed(
                subscription, str(e), skip_empty_plan_analysis
            )

        if progress_callback:
            progress_callback(subscription.id, "complete")
        return result

    def run(
        self,
        subscriptions: Sequence[Subscription],
        skip_empty_plan_analysis: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> AuditRunResult:
        """
        Audit subscriptions in parallel.

        Parameters
        ----------
        subscriptions : sequence of Subscription
            Subscriptions to audit.
        skip_empty_plan_analysis : bool, default=False
            Skip empty-plan detection in every subscription.
        progress_callback : callable, optional
            Called with ``(subscription_id, status)``; status is one of
            ``scanning``, ``complete``, ``error`` or ``timeout``.

        Returns
        -------
        AuditRunResult
            Partial results of every finished subscription.

        Raises
        ------
        NoSubscriptionsError
            If ``subscriptions`` is empty.
        """
        subscriptions = list(subscriptions)
        if not subscriptions:
            raise NoSubscriptionsError("No subscriptions to audit")

        self._cancelled.clear()
        started = time.monotonic()
        workers = self.worker_count(len(subscriptions))
        logger.info(
            f"Starting audit of {len(subscriptions)} subscriptions with {workers} workers"
        )

        results: Dict[str, SubscriptionAuditResult] = {}
        run_errors: List[ErrorEntry] = []
        interrupted = False

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="audit")
        futures: Dict[Future, _SubscriptionTask] = {}
        pending: set = set()
        try:
            for subscription in subscriptions:
                task = _SubscriptionTask(subscription)
                future = executor.submit(
                    self._audit_subscription,
                    task,
                    skip_empty_plan_analysis,
                    progress_callback,
                )
                futures[future] = task

            pending = set(futures)
            while pending:
                if self._cancelled.is_set():
                    interrupted = True
                    break

                done, pending = wait(
                    pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED
                )
                for future in done:
                    task = futures[future]
                    results[task.subscription.id] = future.result()

                if self.timeout is not None:
                    pending = self._expire(
                        pending, futures, results, skip_empty_plan_analysis, progress_callback
                    )

        except KeyboardInterrupt:
            interrupted = True
            logger.warning("Audit interrupted; keeping completed subscriptions")
        finally:
            if interrupted:
                self._harvest(pending, futures, results)
            for future, task in futures.items():
                if not future.done():
                    task.cancel_event.set()
                    future.cancel()
            executor.shutdown(wait=False, cancel_futures=True)

        if interrupted:
            missing = len(subscriptions) - len(results)
            run_errors.append(
                ErrorEntry.run(
                    f"Run interrupted; {missing} of {len(subscriptions)} "
                    f"subscriptions were not audited"
                )
            )

        partials = [results[s.id] for s in subscriptions if s.id in results]
        elapsed = time.monotonic() - started

        logger.info(
            f"Audit run finished in {elapsed:.1f}s: {len(partials)}/{len(subscriptions)} "
            f"subscriptions completed"
        )
        return AuditRunResult(
            subscriptions=subscriptions,
            partials=partials,
            errors=run_errors,
            interrupted=interrupted,
            elapsed_seconds=elapsed,
        )

    @staticmethod
    def _harvest(
        pending: set,
        futures: Dict[Future, _SubscriptionTask],
        results: Dict[str, SubscriptionAuditResult],
    ) -> None:
        """Keep results of subscriptions that finished before cancellation."""
        for future in pending:
            task = futures[future]
            if future.done() and not future.cancelled() and not task.timed_out:
                results[task.subscription.id] = future.result()

    def _expire(
        self,
        pending: set,
        futures: Dict[Future, _SubscriptionTask],
        results: Dict[str, SubscriptionAuditResult],
        skip_empty_plan_analysis: bool,
        progress_callback: Optional[ProgressCallback],
    ) -> set:
        """Give up on subscriptions that ran past the timeout."""
        now = time.monotonic()
        still_pending = set()
        for future in pending:
            task = futures[future]
            if task.started_at is None or now - task.started_at <= self.timeout:
                still_pending.add(future)
                continue

            task.timed_out = True
            task.cancel_event.set()
            message = f"Audit timed out after {self.timeout:g} seconds"
            logger.warning(f"{task.subscription.display_name}: {message}")
            results[task.subscription.id] = SubscriptionAuditResult.failed(
                task.subscription, message, skip_empty_plan_analysis
            )
            if progress_callback:
                progress_callback(task.subscription.id, "timeout")
        return still_pending

    def audit(
        self,
        subscriptions: Sequence[Subscription],
        skip_empty_plan_analysis: bool = False,
        top_n: int = 10,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> AuditReport:
        """
        Run the audit and aggregate the results into a report.

        Returns
        -------
        AuditReport
            The cross-subscription report; ``interrupted`` is set when the
            run was cancelled and only completed subscriptions are included.
        """
        run = self.run(subscriptions, skip_empty_plan_analysis, progress_callback)
        return AuditAggregator(top_n=top_n).aggregate(
            run.partials,
            elapsed_seconds=run.elapsed_seconds,
            errors=run.errors,
            interrupted=run.interrupted,
        )

    def __repr__(self) -> str:
        return (
            f"SubscriptionManager(source={self.source!r}, "
            f"max_workers={self.max_workers}, timeout={self.timeout})"
        )
