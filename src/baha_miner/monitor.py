"""
Continuous tracking of threads.

The monitor runs one asyncio task per TrackingRule. Each task polls the
rule's filtered "last page" view, compares its last floor with the one seen
on the previous poll and fires the rule's callbacks on a change:

    INITIALIZING --first successful poll--> TRACKING --stop--> STOPPED

The first successful poll only records a baseline. A poll that fails or
returns no floors uses up one unit of the rule's failure budget; a success
refills it. When a budget runs out the whole monitor stops, the same way
it stops on ``Monitor.stop()``, which is what the CLI wires to SIGINT and
SIGTERM.
"""

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .crawler import Crawler
from .errors import BahaMinerError, InvalidTarget, SessionInactive
from .models import FloorRecord
from .rule import FloorCallback, TrackingRule

logger = logging.getLogger(__name__)

# Time given to in-flight callbacks after a stop before tasks are cancelled.
SHUTDOWN_GRACE = 1.0

# Errors no amount of retrying will fix.
FATAL_ERRORS = (InvalidTarget, SessionInactive)


class Phase(enum.Enum):
    INITIALIZING = "initializing"
    TRACKING = "tracking"
    STOPPED = "stopped"


@dataclass
class RuleState:
    """What one tracking task remembers between polls. Owned by that task."""
    rule: TrackingRule
    failures_left: int
    phase: Phase = Phase.INITIALIZING
    last_floor_index: Optional[int] = None
    last_floor: Optional[FloorRecord] = None
    polls: int = 0
    new_posts: int = 0
    updates: int = 0


class Monitor:
    """
    Polls every rule concurrently until stopped.

    Usage:
        monitor = Monitor(crawler, [rule])
        loop.add_signal_handler(signal.SIGINT, monitor.stop)
        await monitor.run()
    """

    def __init__(
        self,
        crawler: Crawler,
        rules: Sequence[TrackingRule],
        grace_period: float = SHUTDOWN_GRACE,
    ):
        self.crawler = crawler
        self.rules = list(rules)
        self.grace_period = grace_period
        self.states: List[RuleState] = [
            RuleState(rule=rule, failures_left=rule.max_failure) for rule in self.rules
        ]
        self.stop_reason: Optional[str] = None
        self._stop_event = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self, reason: str = "stop requested") -> None:
        """Ask every tracking loop to exit. Only the first call has an effect."""
        if self._stop_event.is_set():
            return
        self.stop_reason = reason
        logger.info("Stopping monitor: %s", reason)
        self._stop_event.set()

    async def run(self) -> None:
        """Run all tracking loops until stop() is called or a budget runs out."""
        if not self.states:
            logger.warning("No tracking rules, nothing to monitor")
            return

        logger.info("Monitor started with %d rule(s)", len(self.states))
        tasks = [
            asyncio.create_task(self._track(state), name=f"track-{state.rule.name}")
            for state in self.states
        ]
        for task in tasks:
            task.add_done_callback(self._on_task_done)

        await self._stop_event.wait()

        logger.info("Shutting down monitor ...")
        if self.grace_period > 0:
            await asyncio.wait(tasks, timeout=self.grace_period)
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for state in self.states:
            state.phase = Phase.STOPPED
        logger.info("Monitor stopped")

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Tracking task %s crashed: %r", task.get_name(), error)
            self.stop(f"{task.get_name()} crashed")

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if a stop arrived meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _track(self, state: RuleState) -> None:
        rule = state.rule
        logger.info("Tracking %s every %.1fs", rule.name, rule.interval)

        while not self.stopped:
            state.polls += 1
            page = None
            try:
                page = await self.crawler.fetch_page(rule.last_page_url, rule.bsn, rule.sna)
            except FATAL_ERRORS as e:
                logger.error("Rule %s cannot continue: %s", rule.name, e)
                state.phase = Phase.STOPPED
                self.stop(f"{rule.name}: {e}")
                return
            except BahaMinerError as e:
                logger.warning("Poll of %s failed: %s", rule.name, e)

            if page is None or not page.floor_records:
                state.failures_left -= 1
                logger.warning("Rule %s: %d failure(s) left", rule.name, state.failures_left)
                if state.failures_left <= 0:
                    logger.error("Max failure reached for %s", rule.name)
                    state.phase = Phase.STOPPED
                    self.stop(f"{rule.name}: max failure reached")
                    return
            else:
                state.failures_left = rule.max_failure
                await self._observe(state, page.floor_records[-1])

            if await self._wait(rule.interval):
                break

        state.phase = Phase.STOPPED
        logger.info("Stopped tracking %s", rule.name)

    async def _observe(self, state: RuleState, last_floor: FloorRecord) -> None:
        """Compare the newest floor with the previous poll and fire callbacks."""
        rule = state.rule
        if state.phase is Phase.TRACKING:
            if last_floor.floor_index != state.last_floor_index:
                state.new_posts += 1
                await self._invoke(rule.on_new_post, last_floor, rule)
            if last_floor.content != state.last_floor.content:
                state.updates += 1
                await self._invoke(rule.on_update, last_floor, rule)
        else:
            logger.info("Baseline for %s: floor %d", rule.name, last_floor.floor_index)

        state.last_floor_index = last_floor.floor_index
        state.last_floor = last_floor
        state.phase = Phase.TRACKING

    async def _invoke(self, callback: FloorCallback, floor: FloorRecord, rule: TrackingRule) -> None:
        try:
            result = callback(floor)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Callback of %s failed on floor %d", rule.name, floor.floor_index)
