"""REST surface of the webhook scheduler (FastAPI).

Responses use the envelope `{"success": bool, "data": ...}`; errors carry
`errorMessage` (and `errors` for validation failures).
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import APIRouter, Body, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from webhook_scheduler.scheduler.config import SchedulerConfig, configure_logging
from webhook_scheduler.scheduler.errors import (
    ConfirmationError,
    JobNotFoundError,
    JobStateError,
    JobValidationError,
    SchedulerError,
    StorageError,
)
from webhook_scheduler.scheduler.runtime import SchedulerRuntime, build_runtime


logger = logging.getLogger(__name__)


def _ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"success": True, "data": data}
    out.update(extra)
    return out


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "errorMessage": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(JobValidationError)
    async def _validation(request: Request, exc: JobValidationError) -> JSONResponse:
        logger.info("Rejected job specification: %s", exc)
        return _error(status.HTTP_400_BAD_REQUEST, "validation error", errors=exc.errors)

    @app.exception_handler(ConfirmationError)
    async def _confirmation(request: Request, exc: ConfirmationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(JobNotFoundError)
    async def _not_found(request: Request, exc: JobNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(JobStateError)
    async def _state(request: Request, exc: JobStateError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(StorageError)
    async def _storage(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "an internal error just occurred")

    @app.exception_handler(SchedulerError)
    async def _other(request: Request, exc: SchedulerError) -> JSONResponse:
        logger.error("Unhandled scheduler error: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "an internal error just occurred")


def build_router(runtime: SchedulerRuntime) -> APIRouter:
    service = runtime.service
    router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

    @router.post("/receive", status_code=status.HTTP_201_CREATED)
    def receive_webhook(spec: Any = Body(...)):
        """Accept a job specification (e.g. from an n8n workflow)."""
        created = service.receive(spec)
        return _ok(created, message="Webhook scheduled successfully")

    @router.get("")
    def list_webhooks(
        status_filter: Optional[str] = Query(None, alias="status"),
        include_deleted: bool = Query(False, alias="includeDeleted"),
    ):
        jobs = service.list_jobs(include_deleted=include_deleted, status=status_filter)
        return _ok([j.to_dict() for j in jobs], count=len(jobs))

    # Fixed paths are registered before /{job_id} so they are not captured by it.
    @router.get("/trash")
    def list_trash():
        jobs = service.list_trash()
        return _ok([j.to_dict() for j in jobs], count=len(jobs))

    @router.get("/stats")
    def stats():
        return _ok(service.stats())

    @router.get("/logs/all")
    def list_all_logs(
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        page = service.list_logs(limit=limit, offset=offset)
        return _ok([e.to_dict() for e in page["logs"]], total=page["total"], limit=limit, offset=offset)

    @router.delete("/bulk/all")
    def delete_all(confirmation: Optional[str] = Query(None)):
        count = service.soft_delete_all(confirmation)
        return _ok({"deleted_count": count}, message=f"{count} webhook(s) moved to trash")

    @router.delete("/trash/empty")
    def empty_trash(confirmation: Optional[str] = Query(None)):
        count = service.empty_trash(confirmation)
        return _ok({"deleted_count": count}, message=f"{count} webhook(s) permanently deleted")

    @router.get("/{job_id}")
    def get_webhook(job_id: str):
        return _ok(service.get_job(job_id).to_dict())

    @router.put("/{job_id}")
    def update_webhook(job_id: str, spec: Any = Body(...)):
        """Replace the definition of a webhook that has not run yet."""
        return _ok(service.update(job_id, spec).to_dict(), message="Webhook updated")

    @router.post("/{job_id}/execute")
    def execute_webhook(job_id: str):
        result = service.execute(job_id)
        return _ok(result.to_dict(), message=result.message)

    @router.post("/{job_id}/cancel")
    def cancel_webhook(job_id: str):
        return _ok(service.cancel(job_id).to_dict(), message="Webhook cancelled")

    @router.delete("/{job_id}")
    def trash_webhook(job_id: str):
        return _ok(service.soft_delete(job_id).to_dict(), message="Webhook moved to trash")

    @router.post("/{job_id}/restore")
    def restore_webhook(job_id: str):
        return _ok(service.restore(job_id).to_dict(), message="Webhook restored")

    @router.delete("/{job_id}/permanent")
    def purge_webhook(job_id: str):
        service.purge(job_id)
        return _ok({"id": job_id}, message="Webhook permanently deleted")

    @router.get("/{job_id}/logs")
    def list_job_logs(
        job_id: str,
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        page = service.list_logs(job_id, limit=limit, offset=offset)
        return _ok([e.to_dict() for e in page["logs"]], total=page["total"], limit=limit, offset=offset)

    return router


def create_app(runtime: Optional[SchedulerRuntime] = None, *, start_scheduler: bool = True) -> FastAPI:
    runtime = runtime or build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        run_loop = start_scheduler and runtime.config.enabled
        if run_loop:
            logger.info("Starting webhook scheduler loop")
            runtime.background.start()
        yield
        if run_loop:
            logger.info("Stopping webhook scheduler loop")
            runtime.background.stop()

    app = FastAPI(title="Webhook Scheduler", lifespan=lifespan)
    app.state.runtime = runtime

    api_router = APIRouter(prefix="/api")

    @api_router.get("/health")
    def health():
        return runtime.health()

    api_router.include_router(build_router(runtime))
    app.include_router(api_router)
    add_exception_handlers(app)
    return app


def run() -> None:
    cfg = SchedulerConfig.from_env()
    configure_logging(cfg.log_level)
    app = create_app(build_runtime(cfg))
    uvicorn.run(app, host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    run()
