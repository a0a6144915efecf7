"""
Expansion Controller

Coordinates the staged harvesting of a seed phrase:

1. top10  - bare seed, becomes the anchor set
2. az     - "{seed} a" .. "{seed} z"
3. prefix - semantic prefixes + seed
4. child  - strongest anchors expanded one level deeper

Calls run one at a time (or in bulk when the source accepts batches) with
randomized pauses between them. A failed call yields an empty batch and
the phase moves on; only a run of consecutive failures stops the run.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from src.models import CandidateRecord, GenerationMethod, SuggestionBatch
from src.scoring.helpers import ScoringCalibration, get_ecosystem_score, get_seed_score
from .client import SuggestionClient, SuggestionSourceError, SourceUnavailableError
from .filters import PhraseFilter, SeenPhrases
from .pacing import Pacer
from .phases import (
    ExpansionPhase,
    PhaseHandler,
    PhaseQuery,
    PHASE_ORDER,
    get_phase_handler,
)

logger = logging.getLogger(__name__)


class ExpansionInputError(ValueError):
    """Invalid harvesting request; raised before any provider call."""


@dataclass
class ExpansionConfig:
    """Configuration for a harvesting run."""
    phases: List[ExpansionPhase] = field(default_factory=lambda: list(PHASE_ORDER))
    parent_phrase_ids: Optional[List[str]] = None
    max_child_parents: int = 5
    batch_size: int = 26
    max_consecutive_failures: int = 8
    reference_year: Optional[int] = None


@dataclass
class ExpansionProgress:
    """Progress event, emitted once per completed query."""
    phase: str
    current: int
    total: int
    added: int
    total_added: int
    query: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "progress",
            "method": self.phase,
            "current": self.current,
            "total": self.total,
            "added": self.added,
            "totalAdded": self.total_added,
            "query": self.query,
        }


@dataclass
class PhaseResult:
    """Result of one phase."""
    phase: ExpansionPhase
    total: int
    batches: List[SuggestionBatch] = field(default_factory=list)
    added: int = 0
    stopped: bool = False

    @property
    def completed(self) -> int:
        return len(self.batches)

    @property
    def failed(self) -> int:
        return len([b for b in self.batches if b.failed])


@dataclass
class ExpansionReport:
    """Counts achieved by a harvesting run, partial or not."""
    session_id: Optional[str] = None
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    total_suggestions: int = 0
    total_added: int = 0
    added_by_phase: Dict[str, int] = field(default_factory=dict)
    rejections: Dict[str, int] = field(default_factory=dict)
    phases_executed: List[str] = field(default_factory=list)
    estimated_cost: float = 0.0
    average_delay: float = 0.0
    average_call_duration: float = 0.0
    stopped: bool = False
    failed_phase: Optional[str] = None
    error: Optional[str] = None
    call_durations: List[float] = field(default_factory=list, repr=False)

    @property
    def success_rate(self) -> float:
        if not self.total_calls:
            return 0.0
        return round(self.successful_calls / self.total_calls * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "success_rate": self.success_rate,
            "total_suggestions": self.total_suggestions,
            "total_added": self.total_added,
            "added_by_phase": dict(self.added_by_phase),
            "rejections": dict(self.rejections),
            "phases_executed": list(self.phases_executed),
            "estimated_cost": round(self.estimated_cost, 4),
            "average_delay": round(self.average_delay, 2),
            "average_call_duration": round(self.average_call_duration, 3),
            "stopped": self.stopped,
            "failed_phase": self.failed_phase,
            "error": self.error,
        }


ProgressCallback = Callable[[ExpansionProgress], None]
StopCondition = Callable[[], bool]
BatchSink = Callable[[SuggestionBatch, PhaseQuery], int]


class ExpansionController:
    """
    Runs harvesting phases against a suggestion source and a phrase store.

    Usage:
        async with create_client() as client:
            controller = ExpansionController(client, PhraseStore())
            report = await controller.harvest(session_id)
    """

    def __init__(
        self,
        client: SuggestionClient,
        store=None,
        pacer: Optional[Pacer] = None,
        config: Optional[ExpansionConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        calibration: Optional[ScoringCalibration] = None,
    ):
        """
        Initialize controller.

        Args:
            client: Suggestion source client
            store: Phrase store (required for harvest, not for expand)
            pacer: Delay primitive (defaults to production pacing)
            config: Run configuration
            rng: Random source for query shuffling
            clock: Monotonic clock for call timing
            calibration: Tier tables used when refreshing session stats
        """
        self.client = client
        self.store = store
        self.pacer = pacer or Pacer()
        self.config = config or ExpansionConfig()
        self.rng = rng or random.Random()
        self._clock = clock
        self.calibration = calibration
        self._consecutive_failures = 0

    # =========================================================================
    # RAW EXPANSION
    # =========================================================================

    async def expand(
        self,
        seed: str,
        phase,
        parent_phrases: Optional[Sequence[CandidateRecord]] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCondition] = None,
    ) -> List[SuggestionBatch]:
        """
        Run one phase and return the raw batches, one per query.

        Nothing is filtered or stored. Failed calls appear as empty batches
        with failed=True.

        Raises:
            ExpansionInputError: Blank seed, or child phase without parents
            SourceUnavailableError: Too many consecutive failed calls
        """
        handler = get_phase_handler(phase)
        seed = _require_seed(seed)
        if handler.requires_parents and not parent_phrases:
            raise ExpansionInputError(f"Phase '{handler.phase.value}' needs parent phrases")

        report = ExpansionReport()
        result = await self._run_phase(
            seed,
            handler,
            parent_phrases or [],
            sink=lambda batch, query: 0,
            report=report,
            on_progress=on_progress,
            should_stop=should_stop,
        )
        return result.batches

    async def _run_phase(
        self,
        seed: str,
        handler: PhaseHandler,
        parents: Sequence[CandidateRecord],
        sink: BatchSink,
        report: ExpansionReport,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCondition] = None,
    ) -> PhaseResult:
        queries = handler.build_queries(seed, parents, self.rng)
        result = PhaseResult(phase=handler.phase, total=len(queries))
        self._consecutive_failures = 0

        logger.info(f"Phase {handler.phase.value}: {len(queries)} queries for '{seed}'")

        if self.client.supports_batch and len(queries) > 1:
            await self._run_bulk(queries, result, sink, report, on_progress, should_stop)
        else:
            await self._run_sequential(handler, queries, result, sink, report, on_progress, should_stop)

        logger.info(
            f"Phase {handler.phase.value} complete: {result.completed}/{result.total} queries, "
            f"{result.failed} failed, {result.added} added"
            + (" (stopped)" if result.stopped else "")
        )
        return result

    async def _run_sequential(self, handler, queries, result, sink, report, on_progress, should_stop):
        for index, query in enumerate(queries):
            if should_stop and should_stop():
                logger.info(f"Stop requested before '{query.text}'")
                result.stopped = True
                return

            batch = await self._fetch_one(query, report)
            self._record(batch, query, result, sink, report, on_progress)

            upcoming = queries[index + 1] if index + 1 < len(queries) else None
            await handler.pause_after(self.pacer, index + 1, query, upcoming)

    async def _run_bulk(self, queries, result, sink, report, on_progress, should_stop):
        size = max(1, self.config.batch_size)
        chunks = [queries[i:i + size] for i in range(0, len(queries), size)]

        for chunk_index, chunk in enumerate(chunks):
            if should_stop and should_stop():
                logger.info("Stop requested before next bulk call")
                result.stopped = True
                return

            for batch, query in zip(await self._fetch_chunk(chunk, report), chunk):
                self._record(batch, query, result, sink, report, on_progress)

            if chunk_index + 1 < len(chunks):
                await self.pacer.between_batches()

    async def _fetch_one(self, query: PhaseQuery, report: ExpansionReport) -> SuggestionBatch:
        started = self._clock()
        try:
            suggestions = await self.client.fetch(query.text)
            failed = False
        except (SuggestionSourceError, httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Suggestion call failed for '{query.text}': {e}")
            suggestions, failed = [], True

        duration = self._clock() - started
        self._count_call(report, failed, duration)
        return SuggestionBatch(
            query=query.text,
            suggestions=suggestions,
            failed=failed,
            parent_id=query.parent_id,
            duration=duration,
        )

    async def _fetch_chunk(self, chunk: List[PhaseQuery], report: ExpansionReport) -> List[SuggestionBatch]:
        started = self._clock()
        texts = [q.text for q in chunk]
        try:
            results = await self.client.fetch_many(texts)
            failed = False
        except (SuggestionSourceError, httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Bulk suggestion call for {len(chunk)} queries failed: {e}")
            results, failed = {}, True

        duration = self._clock() - started
        self._count_call(report, failed, duration)
        return [
            SuggestionBatch(
                query=q.text,
                suggestions=results.get(q.text, []),
                failed=failed,
                parent_id=q.parent_id,
                duration=duration,
            )
            for q in chunk
        ]

    def _count_call(self, report: ExpansionReport, failed: bool, duration: float) -> None:
        report.total_calls += 1
        report.call_durations.append(duration)
        if failed:
            report.failed_calls += 1
            self._consecutive_failures += 1
            if self._consecutive_failures >= self.config.max_consecutive_failures:
                raise SourceUnavailableError(
                    f"Suggestion source failed {self._consecutive_failures} times in a row"
                )
        else:
            report.successful_calls += 1
            self._consecutive_failures = 0

    def _record(self, batch, query, result, sink, report, on_progress) -> None:
        added = sink(batch, query) if batch.suggestions else 0
        result.batches.append(batch)
        result.added += added
        phase = result.phase.value
        report.added_by_phase[phase] = report.added_by_phase.get(phase, 0) + added
        report.total_suggestions += len(batch.suggestions)
        report.total_added += added

        if on_progress:
            on_progress(ExpansionProgress(
                phase=result.phase.value,
                current=result.completed,
                total=result.total,
                added=added,
                total_added=report.total_added,
                query=batch.query,
            ))

    # =========================================================================
    # HARVESTING (expand + filter + store)
    # =========================================================================

    async def harvest(
        self,
        session_id: str,
        phases: Optional[Sequence] = None,
        parent_phrase_ids: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCondition] = None,
    ) -> ExpansionReport:
        """
        Run phases for a stored session, persisting accepted phrases.

        The seen set is rebuilt from the store at the start of every call,
        so re-running a phase against an unchanged session adds nothing.

        Args:
            session_id: Session to harvest
            phases: Phases to run, in order (default: all four)
            parent_phrase_ids: Explicit parents for the child phase
            on_progress: Called after every query
            should_stop: Checked before every query

        Returns:
            ExpansionReport with the counts achieved
        """
        if self.store is None:
            raise ExpansionInputError("A phrase store is required for harvesting")

        session = self.store.get_session(session_id)
        if session is None:
            raise ExpansionInputError(f"Session not found: {session_id}")
        seed = _require_seed(session.seed_text)

        handlers = [get_phase_handler(p) for p in (phases or self.config.phases)]
        parent_ids = parent_phrase_ids or self.config.parent_phrase_ids

        existing = self.store.read_all(session_id, include_hidden=True)
        self._validate_child_request(handlers, existing, parent_ids)

        seen = SeenPhrases.from_session(seed, [c.normalized_text for c in existing])
        reference_year = self.config.reference_year or _current_year()
        phrase_filter = PhraseFilter(seed, reference_year)
        report = ExpansionReport(session_id=session_id)

        logger.info(
            f"Harvesting session {session_id} ('{seed}'): "
            f"phases={[h.phase.value for h in handlers]}, {len(seen)} phrases already seen"
        )

        current = None
        try:
            for handler in handlers:
                if report.stopped:
                    break
                current = handler.phase.value

                parents = []
                if handler.requires_parents:
                    parents = self._resolve_parents(session_id, parent_ids)
                    if not parents:
                        logger.warning(f"No parents available for session {session_id}, skipping child phase")
                        continue

                method = handler.phase.generation_method
                position = _next_position(self.store.read_all(session_id, include_hidden=True), method)
                sink = self._make_sink(session_id, method, position, phrase_filter, seen)

                report.added_by_phase.setdefault(current, 0)
                result = await self._run_phase(seed, handler, parents, sink, report, on_progress, should_stop)

                report.phases_executed.append(handler.phase.value)
                report.stopped = result.stopped
                self.refresh_session_stats(session_id)
        except SourceUnavailableError as e:
            report.failed_phase = current
            report.error = str(e)
            self._finish_report(report, phrase_filter)
            self.refresh_session_stats(session_id)
            logger.error(
                f"Harvest aborted for {session_id} in phase {report.failed_phase}: "
                f"{report.total_added} added before the source went down"
            )
            e.report = report
            raise

        self._finish_report(report, phrase_filter)
        logger.info(
            f"Harvest complete for {session_id}: {report.total_added} added, "
            f"{report.failed_calls}/{report.total_calls} calls failed"
        )
        return report

    def _finish_report(self, report: ExpansionReport, phrase_filter: PhraseFilter) -> None:
        report.rejections = dict(phrase_filter.rejections)
        report.estimated_cost = report.total_calls * self.client.estimated_cost_per_call
        report.average_delay = self.pacer.average_delay
        if report.call_durations:
            report.average_call_duration = sum(report.call_durations) / len(report.call_durations)

    def _make_sink(self, session_id, method, start_position, phrase_filter, seen) -> BatchSink:
        """Filter a batch, store the accepted phrases, return how many were added."""
        state = {"position": start_position}

        def sink(batch: SuggestionBatch, query: PhaseQuery) -> int:
            decisions = phrase_filter.accept_batch(batch.suggestions, seen)
            if not decisions:
                return 0
            records = []
            for decision in decisions:
                records.append(CandidateRecord(
                    session_id=session_id,
                    display_text=decision.display,
                    normalized_text=decision.normalized,
                    generation_method=method,
                    position=state["position"],
                    parent_id=batch.parent_id,
                ))
                state["position"] += 1
            inserted = self.store.insert_many(session_id, records)
            return len(inserted)

        return sink

    def _validate_child_request(self, handlers, existing, parent_ids) -> None:
        if not any(h.requires_parents for h in handlers):
            return
        if parent_ids:
            by_id = {c.id: c for c in existing}
            missing = [pid for pid in parent_ids if pid not in by_id]
            if missing:
                raise ExpansionInputError(f"Unknown parent phrases: {missing}")
            hidden = [pid for pid in parent_ids if by_id[pid].is_hidden]
            if hidden:
                raise ExpansionInputError(f"Parent phrases are hidden: {hidden}")
            return
        runs_top10 = any(h.phase == ExpansionPhase.TOP10 for h in handlers)
        has_anchors = any(
            c.generation_method == GenerationMethod.TOP10 and not c.is_hidden for c in existing
        )
        if not runs_top10 and not has_anchors:
            raise ExpansionInputError("Child phase needs parent phrases or a completed top10 phase")

    def _resolve_parents(self, session_id: str, parent_ids: Optional[Sequence[str]]) -> List[CandidateRecord]:
        candidates = self.store.read_all(session_id, include_hidden=False)
        if parent_ids:
            wanted = set(parent_ids)
            return [c for c in candidates if c.id in wanted]
        anchors = sorted(
            (c for c in candidates if c.generation_method == GenerationMethod.TOP10),
            key=lambda c: c.position,
        )
        return anchors[:self.config.max_child_parents]

    def refresh_session_stats(self, session_id: str) -> None:
        """Recompute size, ecosystem tier and ceiling after candidates change."""
        aggregate = self.store.read_session_aggregate(session_id)
        ecosystem = get_ecosystem_score(aggregate.candidate_count, self.calibration)
        self.store.update_session_stats(
            session_id,
            candidate_count=aggregate.candidate_count,
            ecosystem_score=ecosystem,
            seed_score=get_seed_score(ecosystem, self.calibration),
        )


def _require_seed(seed: Optional[str]) -> str:
    if not seed or not seed.strip():
        raise ExpansionInputError("A seed phrase is required")
    return seed.strip()


def _next_position(candidates: Sequence[CandidateRecord], method: GenerationMethod) -> int:
    positions = [c.position for c in candidates if c.generation_method == method]
    return max(positions) + 1 if positions else 1


def _current_year() -> int:
    from src.utils.config import get_settings
    return get_settings().get_reference_year()
