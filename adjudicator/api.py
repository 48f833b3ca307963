"""
AI Judge Service API
====================

FastAPI endpoints for the case lifecycle.

Endpoints:
- GET    /api/health                - Health check
- POST   /api/case/create           - Create case
- GET    /api/case/{caseId}         - Get case
- DELETE /api/case/{caseId}         - Delete case
- POST   /api/case/{caseId}/judge   - Render verdict
- POST   /api/case/{caseId}/argue   - Submit follow-up argument
- GET    /api/case/{caseId}/summary - Short summary of the legal issues
- GET    /api/cases                 - List cases
- GET    /api/cases/search          - Search cases
- GET    /api/cases/stats           - Statistics (also /api/stats)
- POST   /api/upload/side-a|side-b  - Upload documents (see api_upload)
- WS     /ws/cases                  - Real-time case events

Run with:
    uvicorn adjudicator.api:app --host 0.0.0.0 --port 3001
"""

import asyncio
import json
import logging
import os
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_upload import get_workflow, router as upload_router
from .config import Settings, get_settings
from .db import Database
from .errors import AdjudicationError, CaseNotFound
from .ingest import TextExtractor
from .llm_client import LLMClient
from .notifications import NotificationBus
from .orchestrator import AdjudicationOrchestrator
from .schemas import (
    ArgumentRequest,
    CaseStatistics,
    CaseStatus,
    CaseSummary,
    CaseType,
    CreateCaseRequest,
    HealthResponse,
    SearchCriteria,
)
from .storage import LocalStorage
from .store import CaseStore
from .workflow import CaseWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Health
# =============================================================================

@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint"""
    settings: Settings = request.app.state.settings
    return HealthResponse(
        version=settings.service_version,
        llm_mode=settings.llm_mode,
        llm_configured=request.app.state.reasoning_engine.is_configured(),
        warnings=settings.validate_llm_config(),
    )


# =============================================================================
# Case Endpoints
# =============================================================================

@router.post("/case/create", tags=["Cases"], summary="Create a new case")
async def create_case(request: CreateCaseRequest, workflow: CaseWorkflow = Depends(get_workflow)):
    case = await workflow.create_case(
        request.title,
        request.description,
        request.country,
        request.case_type,
    )
    return {"message": "Case created successfully", "case": case.to_json_dict()}


@router.get("/case/{case_id}", tags=["Cases"], summary="Get case details")
async def get_case(case_id: str, workflow: CaseWorkflow = Depends(get_workflow)):
    case = await workflow.get_case(case_id)
    return case.to_json_dict()


@router.delete("/case/{case_id}", tags=["Cases"], summary="Delete a case")
async def delete_case(case_id: str, workflow: CaseWorkflow = Depends(get_workflow)):
    if not await workflow.delete_case(case_id):
        raise CaseNotFound(case_id)
    return {"message": "Case deleted successfully", "caseId": case_id}


@router.post("/case/{case_id}/judge", tags=["Adjudication"], summary="Render the initial verdict")
async def judge_case(case_id: str, workflow: CaseWorkflow = Depends(get_workflow)):
    verdict = await workflow.render_verdict(case_id)
    return {
        "message": "AI Judge has rendered a verdict",
        "caseId": case_id,
        "verdict": verdict.to_json_dict(),
    }


@router.post("/case/{case_id}/argue", tags=["Adjudication"], summary="Submit a follow-up argument")
async def argue_case(
    case_id: str,
    request: ArgumentRequest,
    workflow: CaseWorkflow = Depends(get_workflow),
):
    result = await workflow.submit_argument(case_id, request.side, request.argument)
    return {"message": "Argument submitted and AI has responded", **result.to_json_dict()}


@router.get("/case/{case_id}/summary", tags=["Cases"], summary="Summarize the legal issues")
async def summarize_case(case_id: str, workflow: CaseWorkflow = Depends(get_workflow)):
    summary = await workflow.summarize_case(case_id)
    return {"caseId": case_id, "summary": summary}


@router.get("/cases", response_model=List[CaseSummary], tags=["Cases"], summary="List all cases")
async def list_cases(workflow: CaseWorkflow = Depends(get_workflow)):
    return await workflow.list_cases()


@router.get("/cases/search", response_model=List[CaseSummary], tags=["Cases"], summary="Search cases")
async def search_cases(
    status: Optional[CaseStatus] = Query(None),
    country: Optional[str] = Query(None),
    case_type: Optional[CaseType] = Query(None, alias="caseType"),
    title: Optional[str] = Query(None),
    query: Optional[str] = Query(None),
    has_verdict: Optional[bool] = Query(None, alias="hasVerdict"),
    workflow: CaseWorkflow = Depends(get_workflow),
):
    criteria = SearchCriteria(
        status=status,
        country=country,
        case_type=case_type,
        title=title,
        query=query,
        has_verdict=has_verdict,
    )
    return await workflow.search_cases(criteria)


@router.get("/cases/stats", response_model=CaseStatistics, tags=["Cases"], summary="Case statistics")
async def case_statistics(workflow: CaseWorkflow = Depends(get_workflow)):
    return await workflow.get_statistics()


@router.get("/stats", response_model=CaseStatistics, tags=["Cases"], include_in_schema=False)
async def statistics_alias(workflow: CaseWorkflow = Depends(get_workflow)):
    return await workflow.get_statistics()


# =============================================================================
# WebSocket
# =============================================================================

async def _finish_task(task: asyncio.Task, subscriber_id: str):
    """Cancel (if still running) and reap a connection task"""
    task.cancel()
    try:
        await task
    except (asyncio.CancelledError, WebSocketDisconnect):
        pass
    except Exception as e:
        logger.info(f"WebSocket subscriber {subscriber_id} closed: {e.__class__.__name__}: {e}")


async def ws_cases(websocket: WebSocket):
    """
    Case event stream.

    Client messages: {"action": "join" | "leave", "caseId": "..."}
    Server messages: connection/ack frames and
    {"type": "verdictRendered" | "argumentAdded", "caseId": ..., ...}

    The connection ends as soon as either direction fails.
    """
    bus: NotificationBus = websocket.app.state.bus
    await websocket.accept()
    subscriber = bus.subscribe()

    async def forward_events():
        while True:
            payload = await subscriber.queue.get()
            await websocket.send_json(payload)

    async def handle_messages():
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                message = None

            if not isinstance(message, dict):
                await websocket.send_json({"error": "Invalid message", "code": "invalid_message"})
                continue

            action = message.get("action")
            case_id = message.get("caseId")
            if action not in ("join", "leave") or not case_id:
                await websocket.send_json({"error": "Expected action join|leave and caseId", "code": "invalid_message"})
                continue

            if action == "join":
                bus.join(case_id, subscriber)
            else:
                bus.leave(case_id, subscriber)
            await websocket.send_json({"status": "ok", "action": action, "caseId": case_id})

    tasks = []
    try:
        await websocket.send_json({"status": "connected", "subscriberId": subscriber.id})
        tasks = [
            asyncio.create_task(forward_events()),
            asyncio.create_task(handle_messages()),
        ]
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            await _finish_task(task, subscriber.id)
        bus.disconnect(subscriber)
        logger.debug(f"WebSocket subscriber {subscriber.id} disconnected")


# =============================================================================
# Error Handlers
# =============================================================================

async def adjudication_error_handler(request: Request, exc: AdjudicationError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return structured validation errors without echoing inputs"""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "code": "validation_error", "details": errors},
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors still return the standard error body"""
    logger.exception(f"Unhandled exception on {request.url.path}: {exc.__class__.__name__}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "internal_error"},
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    reasoning_engine: Optional[Any] = None,
    storage: Optional[LocalStorage] = None,
) -> FastAPI:
    """
    Build the application and its services.

    `reasoning_engine` replaces the LLMClient built from settings
    (any object with is_configured() and async generate(prompt)).
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    database = Database(settings.database_url, echo=settings.sql_echo)
    engine = reasoning_engine or LLMClient(settings)
    bus = NotificationBus(queue_size=settings.notification_queue_size)
    storage = storage or LocalStorage(
        os.path.join(settings.storage_path, settings.storage_bucket),
        settings.storage_public_base_url,
    )
    workflow = CaseWorkflow(
        store=CaseStore(database),
        orchestrator=AdjudicationOrchestrator(engine, preview_chars=settings.document_preview_chars),
        extractor=TextExtractor(),
        storage=storage,
        bus=bus,
        settings=settings,
    )

    app = FastAPI(
        title="AI Judge Service",
        description="Case lifecycle and adjudication orchestration",
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.database = database
    app.state.reasoning_engine = engine
    app.state.bus = bus
    app.state.workflow = workflow

    logger.info(f"CORS allow origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    app.include_router(upload_router, prefix="/api")
    app.add_api_websocket_route("/ws/cases", ws_cases)

    app.add_exception_handler(AdjudicationError, adjudication_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.on_event("startup")
    async def startup_event():
        """Initialize on startup"""
        logger.info(f"Starting AI Judge Service v{settings.service_version}")
        logger.info(f"LLM Mode: {settings.llm_mode.value}")
        for warning in settings.validate_llm_config():
            logger.warning(warning)
        database.init()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        close = getattr(engine, "close", None)
        if close is not None:
            await close()
        database.dispose()
        logger.info("AI Judge Service stopped")

    return app


app = create_app()


# =============================================================================
# Main (for direct execution)
# =============================================================================

if __name__ == "__main__":
    from adjudicator.run import main
    main()
