"""
RiskCheck Content Analysis Service - API
Submit text, video or audio content and poll for a fraud/deepfake risk assessment
"""

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Literal
from datetime import datetime, timezone
from contextlib import asynccontextmanager
import logging
import os
import time

from dotenv import load_dotenv

# Load environment variables early so Settings picks them up
load_dotenv()

from riskcheck.backend import RemoteScoringEngine
from riskcheck.config import Settings, get_settings
from riskcheck.errors import SubmissionRejected
from riskcheck.models import (
    AnalysisResult,
    AnalysisRun,
    MediaFile,
    MediaSubmission,
    RunError,
    RunStatus,
    TextSubmission,
)
from riskcheck.orchestrator import AnalysisOrchestrator, AnalysisSession
from riskcheck.scoring import HeuristicScoringEngine, ScoringEngine
from data_loader import load_indicator_terms


# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler('logs/riskcheck.log') if os.path.exists('logs') else logging.NullHandler()
    ]
)

logger = logging.getLogger(__name__)

settings = get_settings()


def build_engine(config: Settings) -> ScoringEngine:
    """Remote backend when configured, local heuristic engine otherwise"""
    if config.scoring_backend_url:
        logger.info(f"Using remote scoring backend: {config.scoring_backend_url}")
        return RemoteScoringEngine(
            config.scoring_backend_url,
            timeout=config.scoring_backend_timeout,
        )

    terms = load_indicator_terms(config.indicator_terms_path) if config.indicator_terms_path else None
    logger.info("Using local heuristic scoring engine")
    return HeuristicScoringEngine(
        terms=terms,
        jitter=config.score_jitter,
        seed=config.score_seed,
        latency=config.simulated_latency_seconds,
    )


# Session store (in-memory only: nothing is persisted)
class SessionStore:
    """Holds one AnalysisSession per caller"""

    def __init__(self):
        self.sessions: Dict[str, AnalysisSession] = {}

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        return self.sessions.get(session_id)

    def get_or_create(self, session_id: str) -> AnalysisSession:
        session = self.sessions.get(session_id)
        if session is None:
            session = AnalysisSession(session_id=session_id)
            self.sessions[session_id] = session
        return session

    def release(self, session: AnalysisSession):
        """Forget a session once it holds neither a run nor a warning"""
        if session.run is None and session.warning is None:
            self.sessions.pop(session.session_id, None)

    def clear(self):
        self.sessions.clear()


sessions = SessionStore()


# Metrics tracker
class Metrics:
    """Track service metrics"""

    def __init__(self):
        self.total_runs = 0
        self.successful_runs = 0
        self.failed_runs = 0
        self.rejected_submissions = 0
        self.total_processing_time = 0.0
        self.start_time = time.time()

    def record_run(self, success: bool, processing_time: float):
        """Record run outcome"""
        self.total_runs += 1
        if success:
            self.successful_runs += 1
        else:
            self.failed_runs += 1
        self.total_processing_time += processing_time

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics"""
        uptime = time.time() - self.start_time
        avg_time = self.total_processing_time / self.total_runs if self.total_runs > 0 else 0

        return {
            "total_runs": self.total_runs,
            "successful_runs": self.successful_runs,
            "failed_runs": self.failed_runs,
            "rejected_submissions": self.rejected_submissions,
            "success_rate": f"{(self.successful_runs / self.total_runs * 100):.1f}%" if self.total_runs > 0 else "N/A",
            "average_processing_time": f"{avg_time:.2f}s",
            "active_runs": orchestrator.active_runs,
            "uptime_seconds": int(uptime)
        }


metrics = Metrics()

orchestrator = AnalysisOrchestrator(
    engine=build_engine(settings),
    stage_interval=settings.stage_interval_seconds,
    max_run_seconds=settings.max_run_seconds,
)


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.service_title} v{settings.version}")
    logger.info(f"  Stage interval: {orchestrator.stage_interval}s")
    logger.info(f"  Max run duration: {orchestrator.max_run_seconds}s")
    logger.info(f"  Scoring engine: {type(orchestrator.engine).__name__}")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down...")
    await orchestrator.shutdown()
    sessions.clear()
    logger.info("Shutdown complete")


# FastAPI application
app = FastAPI(
    title=settings.service_title,
    version=settings.version,
    description="Fraud and deepfake risk assessment for text, video and audio content",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SubmissionRejected)
async def submission_rejected_handler(request: Request, exc: SubmissionRejected):
    """Validation warnings are dismissible and never create a run"""
    metrics.rejected_submissions += 1
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": exc.reason.value, "detail": exc.message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An error occurred"
        }
    )


# Request/Response models
class TextAnalysisRequest(BaseModel):
    """Text analysis request model"""

    kind: Literal["text"] = "text"
    content: str = Field("", max_length=20000, description="Message, SMS, email or link to analyze")


class RunResponse(BaseModel):
    """Analysis run status model"""

    run_id: str
    session_id: str
    kind: str
    status: RunStatus
    stage: str
    stage_label: str
    stage_index: int
    stage_count: int
    progress: float
    result: Optional[AnalysisResult] = None
    error: Optional[RunError] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    processing_time: Optional[float] = None


class SessionResponse(BaseModel):
    """Session state model"""

    session_id: str
    state: RunStatus
    run_id: Optional[str] = None
    warning: Optional[str] = None


def to_response(run: AnalysisRun) -> RunResponse:
    stage = orchestrator.stage_for(run)
    return RunResponse(
        run_id=run.id,
        session_id=run.session_id,
        kind=run.kind.value,
        status=run.status,
        stage=stage.name,
        stage_label=stage.label,
        stage_index=run.current_stage_index,
        stage_count=run.stage_count,
        progress=run.progress,
        result=run.result,
        error=run.error,
        created_at=run.created_at,
        completed_at=run.completed_at,
        processing_time=run.processing_time,
    )


def session_id_for(request: Request) -> str:
    return request.headers.get("x-session-id") or (request.client.host if request.client else "anonymous")


def resolve_session(request: Request) -> AnalysisSession:
    return sessions.get_or_create(session_id_for(request))


def start_run(session: AnalysisSession, submission) -> RunResponse:
    # One run in flight per session
    if session.is_busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An analysis is already running for this session ({session.run.id})"
        )

    handle = orchestrator.submit(session, submission)
    orchestrator.subscribe(
        handle,
        on_complete=lambda run: metrics.record_run(True, run.processing_time or 0.0),
        on_error=lambda run: metrics.record_run(False, run.processing_time or 0.0),
    )
    return to_response(orchestrator.get_status(handle))


def raise_too_large():
    raise HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File exceeds {settings.max_upload_bytes} bytes"
    )


# API endpoints
@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_title,
        "version": settings.version,
        "status": "operational",
        "endpoints": {
            "analyze_text": "POST /analyze",
            "analyze_media": "POST /analyze/media",
            "result": "GET /result/{run_id}",
            "reset": "DELETE /result/{run_id}",
            "session": "GET /session",
            "health": "GET /health",
            "metrics": "GET /metrics"
        },
        "stages": [stage.label for stage in orchestrator.stages],
    }


@app.get("/health")
async def health_check():
    """Detailed health check"""
    engine = orchestrator.engine
    engine_kind = "remote" if isinstance(engine, RemoteScoringEngine) else "heuristic"

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "api": "healthy",
            "scoring_engine": engine_kind,
            "scoring_backend": settings.scoring_backend_url,
            "storage": "none"
        },
        "metrics": metrics.get_stats()
    }


@app.get("/metrics")
async def get_metrics():
    """Get service metrics"""
    return {
        "service": settings.service_title,
        "version": settings.version,
        "metrics": metrics.get_stats(),
        "sessions": len(sessions.sessions)
    }


@app.post("/analyze", response_model=RunResponse, status_code=status.HTTP_202_ACCEPTED)
async def analyze_text(request_body: TextAnalysisRequest, http_request: Request):
    """
    Analyze a text message
    Returns run_id immediately, analysis continues in background
    """
    session = resolve_session(http_request)
    return start_run(session, TextSubmission(content=request_body.content))


@app.post("/analyze/media", response_model=RunResponse, status_code=status.HTTP_202_ACCEPTED)
async def analyze_media(
    http_request: Request,
    kind: Literal["video", "audio"] = Form(...),
    file: Optional[UploadFile] = File(None),
):
    """
    Analyze an uploaded video or audio file
    Returns run_id immediately, analysis continues in background
    """
    media = None
    if file is not None:
        try:
            # Reject on the declared size before buffering the upload
            if file.size is not None and file.size > settings.max_upload_bytes:
                raise_too_large()
            data = await file.read()
        finally:
            await file.close()
        if len(data) > settings.max_upload_bytes:
            raise_too_large()
        media = MediaFile(
            name=file.filename or "upload",
            size_bytes=file.size if file.size is not None else len(data),
            mime_type=file.content_type,
            data=data,
        )
        logger.info(f"Session {session_id_for(http_request)}: received {kind} upload ({len(data) / 1024:.1f} KB)")

    session = resolve_session(http_request)
    return start_run(session, MediaSubmission(kind=kind, file=media))


@app.get("/result/{run_id}", response_model=RunResponse)
async def get_run_result(run_id: str):
    """Get analysis status or result by run ID"""

    run = orchestrator.get_status(run_id)

    if not run:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Run ID not found or reset"
        )

    return to_response(run)


@app.delete("/result/{run_id}")
async def reset_run(run_id: str):
    """Discard a run and return its session to idle"""

    run = orchestrator.get_status(run_id)
    session = sessions.get(run.session_id) if run else None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Run ID not found"
        )

    orchestrator.reset(session)
    sessions.release(session)
    logger.info(f"[{run_id}] Run reset")

    return {"message": "Run discarded", "session_id": session.session_id, "state": session.state}


@app.get("/session", response_model=SessionResponse)
async def get_session(http_request: Request):
    """Current workflow state of the caller's session"""
    session_id = session_id_for(http_request)
    session = sessions.get(session_id)
    if session is None:
        return SessionResponse(session_id=session_id, state=RunStatus.IDLE)
    return SessionResponse(
        session_id=session.session_id,
        state=session.state,
        run_id=session.run.id if session.run else None,
        warning=session.warning,
    )


@app.delete("/session", response_model=SessionResponse)
async def reset_session(http_request: Request):
    """Reset the caller's session from any state"""
    session_id = session_id_for(http_request)
    session = sessions.get(session_id)
    if session is not None:
        orchestrator.reset(session)
        sessions.release(session)
    return SessionResponse(session_id=session_id, state=RunStatus.IDLE)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
        log_level="info"
    )
