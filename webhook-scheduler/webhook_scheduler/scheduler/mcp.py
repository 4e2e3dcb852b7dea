from __future__ import annotations

from threading import Lock
from typing import Any, Dict, Optional

from fastmcp import FastMCP

from webhook_scheduler.scheduler.config import SchedulerConfig, configure_logging
from webhook_scheduler.scheduler.errors import JobValidationError, SchedulerError
from webhook_scheduler.scheduler.runtime import SchedulerRuntime, build_runtime


mcp = FastMCP("webhook-scheduler")

_RUNTIME: Optional[SchedulerRuntime] = None
_RUNTIME_LOCK = Lock()


def get_runtime() -> SchedulerRuntime:
    global _RUNTIME
    with _RUNTIME_LOCK:
        if _RUNTIME is None:
            _RUNTIME = build_runtime(SchedulerConfig.from_env())
        return _RUNTIME


def set_runtime(runtime: Optional[SchedulerRuntime]) -> None:
    """Swap the process runtime (tests, embedding)."""
    global _RUNTIME
    with _RUNTIME_LOCK:
        _RUNTIME = runtime


def _fail(exc: SchedulerError) -> Dict[str, Any]:
    out: Dict[str, Any] = {"ok": False, "error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, JobValidationError):
        out["errors"] = exc.errors
    return out


@mcp.tool
def webhooks_health() -> Dict[str, Any]:
    return get_runtime().health()


@mcp.tool
def webhooks_receive(spec: Dict[str, Any]) -> Dict[str, Any]:
    """Schedule a webhook from an n8n-style job specification."""
    try:
        created = get_runtime().service.receive(spec)
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, **created}


@mcp.tool
def webhooks_list(status: Optional[str] = None, include_deleted: bool = False) -> Dict[str, Any]:
    try:
        jobs = get_runtime().service.list_jobs(include_deleted=bool(include_deleted), status=status)
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "jobs": [j.to_dict() for j in jobs]}


@mcp.tool
def webhooks_list_trash() -> Dict[str, Any]:
    jobs = get_runtime().service.list_trash()
    return {"ok": True, "jobs": [j.to_dict() for j in jobs]}


@mcp.tool
def webhooks_get(job_id: str) -> Dict[str, Any]:
    try:
        job = get_runtime().service.get_job(str(job_id))
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "job": job.to_dict()}


@mcp.tool
def webhooks_update(job_id: str, spec: Dict[str, Any]) -> Dict[str, Any]:
    """Replace a pending webhook's definition; max_retries is left as it was."""
    try:
        job = get_runtime().service.update(str(job_id), spec)
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "job": job.to_dict()}


@mcp.tool
def webhooks_execute(job_id: str) -> Dict[str, Any]:
    try:
        result = get_runtime().service.execute(str(job_id))
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "result": result.to_dict()}


@mcp.tool
def webhooks_cancel(job_id: str) -> Dict[str, Any]:
    try:
        job = get_runtime().service.cancel(str(job_id))
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "job": job.to_dict()}


@mcp.tool
def webhooks_delete(job_id: str, permanent: bool = False) -> Dict[str, Any]:
    """Move a webhook to the trash, or remove it for good with permanent=True."""
    service = get_runtime().service
    try:
        if permanent:
            service.purge(str(job_id))
            return {"ok": True, "id": str(job_id), "permanent": True}
        job = service.soft_delete(str(job_id))
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "job": job.to_dict(), "permanent": False}


@mcp.tool
def webhooks_restore(job_id: str) -> Dict[str, Any]:
    try:
        job = get_runtime().service.restore(str(job_id))
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "job": job.to_dict()}


@mcp.tool
def webhooks_delete_all(confirmation: str) -> Dict[str, Any]:
    try:
        count = get_runtime().service.soft_delete_all(confirmation)
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "deleted_count": count}


@mcp.tool
def webhooks_empty_trash(confirmation: str) -> Dict[str, Any]:
    try:
        count = get_runtime().service.empty_trash(confirmation)
    except SchedulerError as exc:
        return _fail(exc)
    return {"ok": True, "deleted_count": count}


@mcp.tool
def webhooks_list_logs(job_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
    try:
        page = get_runtime().service.list_logs(
            str(job_id) if job_id else None, limit=int(limit), offset=int(offset)
        )
    except SchedulerError as exc:
        return _fail(exc)
    return {
        "ok": True,
        "logs": [e.to_dict() for e in page["logs"]],
        "total": page["total"],
    }


@mcp.tool
def webhooks_stats() -> Dict[str, Any]:
    return {"ok": True, "stats": get_runtime().service.stats()}


def run() -> None:
    cfg = SchedulerConfig.from_env()
    configure_logging(cfg.log_level)
    runtime = build_runtime(cfg)
    set_runtime(runtime)
    if cfg.enabled:
        runtime.background.start()
    # HTTP-only MCP server; stdio mode is not supported.
    mcp.run(transport="http", host=cfg.mcp_host, port=int(cfg.mcp_port))


if __name__ == "__main__":
    run()
