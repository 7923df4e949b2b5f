#
# PURPOSE:
# HTTP face of the engine for page hosts that do not run in this process.
#
# ENDPOINTS:
# - POST /api/select    selectForPhase  -> {scripts}
# - POST /api/report    reportRun       (202, recorded in the background)
# - GET  /api/scripts   the catalog
# - GET  /api/runs      the run ledger
# - GET  /api/settings  safe mode / paused hosts
# - GET  /api/explain   which scripts are in scope for a URL, and why
# - GET  /health
#

"""
usmcore/server/api.py
FastAPI application exposing the engine's message boundary.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from usmcore import __version__
from usmcore.base.exceptions import CollaboratorUnavailableError, UsmError
from usmcore.bridge.messages import (
    ReportRunNotification,
    ScriptPayload,
    SelectForPhaseRequest,
    SelectForPhaseResponse,
)
from usmcore.catalog.store import CatalogStore
from usmcore.schedule.selector import ScriptSelector

logger = logging.getLogger(__name__)


def _store(request: Request) -> CatalogStore:
    return request.app.state.store


def _selector(request: Request) -> ScriptSelector:
    return request.app.state.selector


router = APIRouter(prefix="/api", tags=["engine"])


@router.post("/select", response_model=SelectForPhaseResponse)
async def select_for_phase(body: SelectForPhaseRequest, request: Request) -> SelectForPhaseResponse:
    scripts = await _selector(request).select(body.url, body.phase.value)
    return SelectForPhaseResponse(scripts=[ScriptPayload.from_script(s) for s in scripts])


@router.post("/report", status_code=202)
async def report_run(body: ReportRunNotification, request: Request, background: BackgroundTasks) -> Dict[str, Any]:
    background.add_task(_record_run, _store(request), body)
    return {"accepted": True}


async def _record_run(store: CatalogStore, body: ReportRunNotification) -> None:
    try:
        await store.record_run(body.scriptId, body.ok, body.error)
    except Exception as e:
        logger.error(f"[API] Could not record run of script {body.scriptId}: {e}")


@router.get("/scripts", response_model=List[ScriptPayload])
async def list_scripts(request: Request) -> List[ScriptPayload]:
    return [ScriptPayload.from_script(s) for s in await _store(request).get_catalog()]


@router.get("/runs")
async def list_runs(request: Request) -> Dict[str, Any]:
    records = await _store(request).get_run_records()
    return {str(script_id): record.to_dict() for script_id, record in records.items()}


@router.get("/settings")
async def get_settings(request: Request) -> Dict[str, Any]:
    return (await _store(request).get_settings()).to_dict()


@router.get("/explain")
async def explain(request: Request, url: str = Query(..., description="Page URL to inspect")) -> List[Dict[str, Any]]:
    verdicts = await _selector(request).explain(url)
    return [
        {
            "id": v.script.id,
            "name": v.script.name,
            "runAt": v.script.effective_run_at,
            "eligible": v.decision.eligible,
            "reason": v.decision.reason.value,
            "pattern": v.decision.pattern,
            "runnable": v.runnable,
            "note": v.note,
        }
        for v in verdicts
    ]


def create_app(store: Optional[CatalogStore] = None) -> FastAPI:
    """Build the API around `store` (defaults to the SQLite catalog)."""
    if store is None:
        from usmcore.catalog.sqlite_store import SqliteCatalogStore
        store = SqliteCatalogStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("[API] MiniUSM engine API starting")
        yield
        await app.state.store.close()
        logger.info("[API] MiniUSM engine API stopped")

    app = FastAPI(
        title="MiniUSM Engine API",
        description="Userscript selection and run ledger",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.selector = ScriptSelector(store)

    @app.exception_handler(UsmError)
    async def usm_error_handler(request: Request, exc: UsmError):
        status = 503 if isinstance(exc, CollaboratorUnavailableError) else 400
        logger.error(f"[API] {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=status, content={"error": type(exc).__name__, "message": str(exc)})

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok", "version": __version__}

    app.include_router(router)
    return app
