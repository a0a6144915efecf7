"""
API Endpoints for Seed Phrase Sessions

Handles:
1. Seed signal check and session creation / inspection
2. Harvesting phases (run in background, polled through job status)
3. Tagging against the top10 anchors
4. Signal collection and scoring (background)
5. Hiding / restoring phrases
"""

import logging
import sys
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from src.collector import (
    ExpansionProgress,
    SourceUnavailableError,
    SuggestionSourceError,
    get_phase_handler,
)
from src.database import init_db, check_db_connection
from src.models import SessionSnapshot
from src.services import ScoringInputError, SessionNotFoundError, SessionService
from src.utils.config import get_settings

# Configure logging to stdout
logging.basicConfig(
    level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class CreateSessionRequest(BaseModel):
    """Request to start a session for a seed phrase."""
    seed: str = Field(..., description="Seed phrase, e.g. 'cold brew coffee'")
    language: Optional[str] = Field(None, description="Suggestion language (default from settings)")
    country: Optional[str] = Field(None, description="Suggestion country (default from settings)")

    class Config:
        json_schema_extra = {
            "example": {
                "seed": "cold brew coffee",
                "language": "en",
                "country": "US",
            }
        }


class SessionResponse(BaseModel):
    """Session state."""
    id: str
    seed_text: str
    seed_normalized: str
    status: str
    candidate_count: int
    ecosystem_score: Optional[int] = None
    seed_score: Optional[int] = None
    language: str
    country: str


class ExpandRequest(BaseModel):
    """Request to run harvesting phases."""
    phases: Optional[List[str]] = Field(None, description="top10, az, prefix, child (default: all)")
    parent_phrase_ids: Optional[List[str]] = Field(None, description="Explicit parents for the child phase")


class HideRequest(BaseModel):
    hidden: bool = True


class JobStatus(BaseModel):
    """Status of a background expansion or scoring job."""
    job_id: str
    session_id: str
    kind: str  # expansion, scoring
    status: str  # pending, running, completed, stopped, failed
    progress: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


# ============================================================================
# IN-MEMORY JOB TRACKING
# ============================================================================

jobs: Dict[str, JobStatus] = {}
stop_requests: set = set()


def get_service() -> SessionService:
    """Dependency returning the session service (overridable in tests)."""
    return SessionService()


def _session_response(session: SessionSnapshot) -> SessionResponse:
    return SessionResponse(**session.__dict__)


def _new_job(session_id: str, kind: str) -> JobStatus:
    job = JobStatus(job_id=str(uuid.uuid4()), session_id=session_id, kind=kind, status="pending")
    jobs[job.job_id] = job
    return job


def _require_session(service: SessionService, session_id: str) -> SessionSnapshot:
    try:
        return service.require_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _partial_report(error: SourceUnavailableError) -> Optional[Dict[str, Any]]:
    return error.report.to_dict() if error.report is not None else None


# ============================================================================
# BACKGROUND JOBS
# ============================================================================

async def run_expansion_job(
    job_id: str,
    service: SessionService,
    session_id: str,
    phases: Optional[List[str]],
    parent_phrase_ids: Optional[List[str]],
):
    """Run harvesting phases in background, recording progress on the job."""
    job = jobs[job_id]
    job.status = "running"
    job.started_at = datetime.now()

    def on_progress(event: ExpansionProgress):
        job.progress = event.to_dict()

    logger.info(f"[{job_id}] Starting expansion for session {session_id}: phases={phases or 'all'}")

    try:
        report = await service.run_expansion(
            session_id,
            phases=phases,
            parent_phrase_ids=parent_phrase_ids,
            on_progress=on_progress,
            should_stop=lambda: job_id in stop_requests,
        )
        job.result = report.to_dict()
        job.status = "stopped" if report.stopped else "completed"
        logger.info(f"[{job_id}] Expansion {job.status}: {report.total_added} phrases added")
    except SourceUnavailableError as e:
        logger.error(f"[{job_id}] Expansion failed, suggestion source unavailable: {e}")
        job.status = "failed"
        job.error = str(e)
        job.result = _partial_report(e)
    except Exception as e:
        logger.exception(f"[{job_id}] Expansion failed: {e}")
        job.status = "failed"
        job.error = str(e)
    finally:
        job.completed_at = datetime.now()
        stop_requests.discard(job_id)


async def run_scoring_job(job_id: str, service: SessionService, session_id: str):
    """Collect signals and score a session in background."""
    job = jobs[job_id]
    job.status = "running"
    job.started_at = datetime.now()

    def on_progress(done: int, total: int):
        job.progress = {"type": "progress", "method": "signals", "current": done, "total": total}

    logger.info(f"[{job_id}] Starting scoring for session {session_id}")

    try:
        report = await service.score_session(
            session_id,
            on_progress=on_progress,
            should_stop=lambda: job_id in stop_requests,
        )
        job.result = report.to_dict()
        job.status = "completed"
        logger.info(f"[{job_id}] Scoring completed: {report.scored} phrases scored")
    except Exception as e:
        logger.exception(f"[{job_id}] Scoring failed: {e}")
        job.status = "failed"
        job.error = str(e)
    finally:
        job.completed_at = datetime.now()
        stop_requests.discard(job_id)


# ============================================================================
# SESSION ENDPOINTS
# ============================================================================

@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(request: CreateSessionRequest, service: SessionService = Depends(get_service)):
    """Create a session; the seed becomes its first phrase."""
    try:
        session = service.create_session(request.seed, request.language, request.country)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _session_response(session)


@router.get("", response_model=List[SessionResponse])
async def list_sessions(limit: int = 50, service: SessionService = Depends(get_service)):
    return [_session_response(s) for s in service.store.list_sessions(limit=limit)]


@router.get("/seed-signal")
async def seed_signal(seed: str, service: SessionService = Depends(get_service)):
    """Rate a seed from its own suggestions before creating a session."""
    try:
        signal = await service.check_seed_signal(seed)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SuggestionSourceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return signal.to_dict()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, service: SessionService = Depends(get_service)):
    return _session_response(_require_session(service, session_id))


@router.get("/{session_id}/phrases")
async def list_phrases(
    session_id: str,
    include_hidden: bool = False,
    service: SessionService = Depends(get_service),
):
    """Candidates with their latest tags and scores."""
    _require_session(service, session_id)
    phrases = service.list_phrases(session_id, include_hidden=include_hidden)
    return {"session_id": session_id, "count": len(phrases), "phrases": phrases}


@router.post("/{session_id}/phrases/{phrase_id}/hide")
async def hide_phrase(
    session_id: str,
    phrase_id: str,
    request: HideRequest,
    service: SessionService = Depends(get_service),
):
    _require_session(service, session_id)
    phrase = service.store.get_phrase(phrase_id)
    if phrase is None or phrase.session_id != session_id:
        raise HTTPException(status_code=404, detail=f"Phrase not found: {phrase_id}")

    try:
        record = service.hide_phrase(phrase_id, hidden=request.hidden)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    session = service.require_session(session_id)
    return {
        "phrase_id": record.id,
        "is_hidden": record.is_hidden,
        "candidate_count": session.candidate_count,
        "ecosystem_score": session.ecosystem_score,
        "seed_score": session.seed_score,
    }


# ============================================================================
# EXPANSION / CLASSIFICATION / SCORING
# ============================================================================

@router.post("/{session_id}/expand", response_model=JobStatus, status_code=202)
async def expand_session(
    session_id: str,
    request: ExpandRequest,
    background_tasks: BackgroundTasks,
    service: SessionService = Depends(get_service),
):
    """Start harvesting phases in background. Poll the job for progress."""
    _require_session(service, session_id)

    for phase in request.phases or []:
        try:
            get_phase_handler(phase)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown phase: {phase}")

    job = _new_job(session_id, "expansion")
    background_tasks.add_task(
        run_expansion_job,
        job.job_id,
        service,
        session_id,
        request.phases,
        request.parent_phrase_ids,
    )
    logger.info(f"[{job.job_id}] Expansion queued for session {session_id}")
    return job


@router.post("/{session_id}/expand/sync")
async def expand_session_sync(
    session_id: str,
    request: ExpandRequest,
    service: SessionService = Depends(get_service),
):
    """Run harvesting phases and wait for the report."""
    _require_session(service, session_id)
    try:
        report = await service.run_expansion(
            session_id,
            phases=request.phases,
            parent_phrase_ids=request.parent_phrase_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceUnavailableError as e:
        # Counts achieved before the source went down
        raise HTTPException(status_code=503, detail={"error": str(e), "report": _partial_report(e)})
    return report.to_dict()


@router.post("/{session_id}/classify")
async def classify_session(session_id: str, service: SessionService = Depends(get_service)):
    """Tag every phrase against the session's top10 anchors."""
    _require_session(service, session_id)
    return {"session_id": session_id, "tags": service.classify_session(session_id)}


@router.post("/{session_id}/score", response_model=JobStatus, status_code=202)
async def score_session(
    session_id: str,
    background_tasks: BackgroundTasks,
    service: SessionService = Depends(get_service),
):
    """Start signal collection and scoring in background."""
    session = _require_session(service, session_id)
    if service.store.read_session_aggregate(session.id).candidate_count == 0:
        raise HTTPException(status_code=400, detail=f"Session {session_id} has no candidates to score")

    job = _new_job(session_id, "scoring")
    background_tasks.add_task(run_scoring_job, job.job_id, service, session_id)
    logger.info(f"[{job.job_id}] Scoring queued for session {session_id}")
    return job


@router.post("/{session_id}/score/sync")
async def score_session_sync(session_id: str, service: SessionService = Depends(get_service)):
    """Collect signals, score, and wait for the report."""
    _require_session(service, session_id)
    try:
        report = await service.score_session(session_id)
    except ScoringInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SuggestionSourceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return report.to_dict()


# ============================================================================
# JOB ENDPOINTS
# ============================================================================

@router.get("/{session_id}/jobs/{job_id}", response_model=JobStatus)
async def get_job(session_id: str, job_id: str):
    job = jobs.get(job_id)
    if job is None or job.session_id != session_id:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return job


@router.post("/{session_id}/jobs/{job_id}/stop", response_model=JobStatus)
async def stop_job(session_id: str, job_id: str):
    """Ask a running job to stop before its next call."""
    job = jobs.get(job_id)
    if job is None or job.session_id != session_id:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    if job.status in ("pending", "running"):
        stop_requests.add(job_id)
        logger.info(f"[{job_id}] Stop requested")
    return job


# ============================================================================
# APP
# ============================================================================

app = FastAPI(
    title="Seed Phrase Engine",
    description="Seed phrase expansion, tagging and demand / opportunity scoring",
    version="1.0.0",
)
app.include_router(router)


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Seed Phrase Engine"}


@app.get("/api/health")
async def health():
    return {"status": "healthy", "database": check_db_connection()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.sessions:app", host="0.0.0.0", port=8000, reload=True)
