"""FastAPI application exposing repository analysis over HTTP."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from secrets import compare_digest
from typing import Any, Dict, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import RepoGuideConfig, load_config
from ..errors import AnalysisError, AnalysisErrorKind
from ..logging import get_logger
from ..orchestrator import Orchestrator
from ..ratelimit import PooledRateLimiter
from ..stores.jobs import JobStatus, JobStore
from ..stores.kv import MemoryStore
from ..stores.sessions import SessionStore, load_cipher
from ..worker import JobProcessor

SESSION_COOKIE = "session_id"
UNLIMITED_QUOTA = 999_999

_ERROR_STATUS: Dict[AnalysisErrorKind, tuple[int, str]] = {
    AnalysisErrorKind.INVALID_REFERENCE: (400, "Invalid repository URL"),
    AnalysisErrorKind.NOT_FOUND_OR_PRIVATE: (404, "Repository not accessible"),
    AnalysisErrorKind.TOO_LARGE: (400, "Repository too large"),
    AnalysisErrorKind.NO_FETCHABLE_CONTENT: (422, "No fetchable content"),
    AnalysisErrorKind.INVALID_CREDENTIAL: (401, "Invalid API key"),
    AnalysisErrorKind.ALL_MODELS_EXHAUSTED: (502, "Model unavailable"),
    AnalysisErrorKind.MALFORMED_MODEL_OUTPUT: (502, "Malformed model response"),
    AnalysisErrorKind.UPSTREAM_ERROR: (502, "Upstream error"),
}

logger = get_logger("service")


class AnalyzeRequest(BaseModel):
    repoUrl: str = Field(pattern=r"^https://github\.com/[^/]+/[^/]+/?$")
    os: Literal["windows", "macos", "linux", "all"] = "all"
    geminiKey: Optional[str] = None
    githubToken: Optional[str] = None
    model: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


@dataclass
class ServiceContext:
    """Collaborators shared by every request handled by the app."""

    config: RepoGuideConfig
    orchestrator: Orchestrator
    sessions: SessionStore
    jobs: JobStore
    limiter: PooledRateLimiter
    processor: JobProcessor


def build_context(
    config: RepoGuideConfig | None = None, *, jobs_path: Path | None = None
) -> ServiceContext:
    config = config or load_config()
    store = MemoryStore()
    orchestrator = Orchestrator(config, store=store)
    sessions = SessionStore(
        load_cipher(config.secrets.session_key),
        ttl=timedelta(seconds=config.limits.session_ttl),
        max_idle=timedelta(days=config.limits.session_max_idle_days),
    )
    jobs = JobStore(jobs_path)
    limiter = PooledRateLimiter(
        store,
        per_minute=config.limits.requests_per_minute,
        per_day=config.limits.requests_per_day,
    )
    processor = JobProcessor(
        orchestrator,
        jobs,
        sessions,
        default_gemini_key=config.secrets.gemini_api_key,
        default_github_token=config.secrets.github_token,
        batch_size=config.limits.job_batch_size,
    )
    return ServiceContext(
        config=config,
        orchestrator=orchestrator,
        sessions=sessions,
        jobs=jobs,
        limiter=limiter,
        processor=processor,
    )


def create_app(context: ServiceContext | None = None) -> FastAPI:
    """Create the FastAPI application exposing repoguide operations."""
    app = FastAPI(title="repoguide", version="0.1.0")
    app.state.context = context or build_context()

    def get_context(request: Request) -> ServiceContext:
        return request.app.state.context

    def require_cron_secret(
        authorization: Optional[str] = Header(default=None),
        ctx: ServiceContext = Depends(get_context),
    ) -> None:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Unauthorized")
        secret = ctx.config.secrets.cron_secret
        token = authorization[len("Bearer ") :]
        if not secret or not compare_digest(token.encode(), secret.encode()):
            raise HTTPException(status_code=401, detail="Invalid token")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/api/analyze")
    async def analyze(
        payload: AnalyzeRequest,
        request: Request,
        response: Response,
        ctx: ServiceContext = Depends(get_context),
    ) -> Any:
        secrets = ctx.config.secrets
        session_id = request.cookies.get(SESSION_COOKIE)
        gemini_key = secrets.gemini_api_key
        github_token: Optional[str] = None
        using_user_key = False

        if session_id:
            keys = ctx.sessions.get_keys(session_id)
            if keys is not None:
                gemini_key = keys.gemini_key or secrets.gemini_api_key
                github_token = keys.github_token or payload.githubToken
                using_user_key = bool(keys.gemini_key)
                if payload.geminiKey and payload.geminiKey != keys.gemini_key:
                    ctx.sessions.update(session_id, payload.geminiKey, payload.githubToken)
                    gemini_key = payload.geminiKey
                    using_user_key = True
            else:
                session_id = None

        if not session_id:
            if payload.geminiKey:
                session_id = ctx.sessions.create(payload.geminiKey, payload.githubToken)
                gemini_key = payload.geminiKey
                github_token = payload.githubToken
                using_user_key = True
            else:
                quota = ctx.limiter.check()
                if not quota.allowed:
                    return JSONResponse(
                        status_code=429,
                        content={
                            "error": "Rate limit exceeded",
                            "message": "Daily limit reached. Please try again later or provide your own API key.",
                            "resetAt": _isoformat(quota.reset_at),
                            "suggestion": "Add your Gemini API key in Advanced Options for unlimited access",
                        },
                    )
                github_token = payload.githubToken

        github_token = github_token or secrets.github_token
        metadata = await ctx.orchestrator.inspect(payload.repoUrl, github_token=github_token)

        if ctx.orchestrator.should_queue(metadata):
            job = ctx.jobs.create(
                payload.repoUrl,
                session_id=session_id,
                target_os=None if payload.os == "all" else payload.os,
            )
            logger.info("Queued %s as job %s (%.1fMB)", metadata.full_name, job.id, metadata.size_mb)
            _set_session_cookie(response, session_id, ctx)
            return {
                "status": "queued",
                "jobId": job.id,
                "pollUrl": f"/api/status/{job.id}",
                "estimatedTime": "1-2 minutes",
                "usingUserKey": using_user_key,
            }

        result = await ctx.orchestrator.analyze(
            payload.repoUrl,
            gemini_key=gemini_key,
            github_token=github_token,
            target_os=payload.os,
            model=payload.model,
        )
        _set_session_cookie(response, session_id, ctx)
        return {
            "status": "complete",
            "result": result.to_dict(),
            "usingUserKey": using_user_key,
        }

    @app.get("/api/status/{job_id}")
    async def job_status(job_id: str, ctx: ServiceContext = Depends(get_context)) -> Any:
        job = ctx.jobs.get(job_id)
        if job is None:
            return JSONResponse(status_code=404, content={"error": "Job not found"})
        if job.status is JobStatus.QUEUED:
            return {
                "status": "queued",
                "message": "Job is queued for processing",
                "estimatedTime": "1-2 minutes",
            }
        if job.status is JobStatus.PROCESSING:
            return {"status": "processing", "message": "Job is being processed"}
        if job.status is JobStatus.FAILED:
            return {"status": "failed", "error": job.error or "Job failed with unknown error"}
        return {"status": "complete", "result": job.result}

    @app.get("/api/quota")
    async def quota(request: Request, ctx: ServiceContext = Depends(get_context)) -> Any:
        session_id = request.cookies.get(SESSION_COOKIE)
        if session_id:
            keys = ctx.sessions.get_keys(session_id)
            if keys is not None and keys.gemini_key:
                return {
                    "remaining": UNLIMITED_QUOTA,
                    "total": UNLIMITED_QUOTA,
                    "resetAt": _isoformat(datetime.now(UTC) + timedelta(days=1)),
                    "isUsingUserKey": True,
                }
        usage = ctx.limiter.daily_usage()
        return {
            "remaining": usage.remaining,
            "total": usage.total,
            "resetAt": _isoformat(usage.reset_at),
            "isUsingUserKey": False,
        }

    @app.post("/api/logout")
    async def logout(
        request: Request, response: Response, ctx: ServiceContext = Depends(get_context)
    ) -> Any:
        session_id = request.cookies.get(SESSION_COOKIE)
        if session_id:
            ctx.sessions.delete(session_id)
        response.delete_cookie(SESSION_COOKIE, path="/")
        return {"success": True}

    @app.get("/api/cron/process", dependencies=[Depends(require_cron_secret)])
    async def cron_process(ctx: ServiceContext = Depends(get_context)) -> Any:
        processed = await ctx.processor.process_queued()
        return {"success": True, "processed": processed}

    @app.get("/api/cron/cleanup-sessions", dependencies=[Depends(require_cron_secret)])
    async def cron_cleanup(ctx: ServiceContext = Depends(get_context)) -> Any:
        deleted = ctx.sessions.purge()
        return {"success": True, "deletedCount": deleted}

    @app.exception_handler(AnalysisError)
    async def analysis_error_handler(_: Request, exc: AnalysisError) -> JSONResponse:
        status_code, title = _ERROR_STATUS.get(exc.kind, (500, "Internal server error"))
        logger.warning("Analysis failed (%s): %s", exc.kind.value, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"error": title, "kind": exc.kind.value, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = str(errors[0].get("msg", "Invalid request")) if errors else "Invalid request"
        return JSONResponse(
            status_code=400, content={"error": "Validation error", "message": message}
        )

    return app


def _set_session_cookie(response: Response, session_id: Optional[str], ctx: ServiceContext) -> None:
    if not session_id:
        return
    response.set_cookie(
        SESSION_COOKIE,
        session_id,
        httponly=True,
        secure=False,
        samesite="strict",
        max_age=ctx.config.limits.session_ttl,
        path="/",
    )


def _isoformat(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def run_service(
    host: str = "127.0.0.1", port: int = 8000, *, context: ServiceContext | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(context), host=host, port=port)


__all__ = ["AnalyzeRequest", "ServiceContext", "build_context", "create_app", "run_service"]
