"""Tracker Module — FastAPI service for location history, predictions and SOS."""

from __future__ import annotations

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from modules.tracker.alerts import AlertDispatcher
from modules.tracker.errors import (
    AlertConfigurationError,
    AuthenticationError,
    InsufficientDataError,
    NoQualifyingContactsError,
    PersistenceWriteError,
)
from modules.tracker.manifest import MANIFEST
from modules.tracker.models import (
    ContactCreateRequest,
    LogSampleRequest,
    PredictRequest,
    SOSRequest,
)
from modules.tracker.store import SampleStore
from modules.tracker.tools import TrackerTools
from shared.auth import get_request_user_id, require_service_auth
from shared.config import get_settings
from shared.database import dispose_engine, get_session_factory
from shared.schemas.common import HealthResponse
from shared.schemas.tools import ModuleManifest, ToolCall, ToolResult

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()
app = FastAPI(title="Tracker Module", version="1.0.0")

settings = get_settings()
tools: TrackerTools | None = None

TOOL_NAMES = frozenset(t.name.split(".")[-1] for t in MANIFEST.tools)


@app.on_event("startup")
async def startup():
    global tools
    store = SampleStore(get_session_factory())
    dispatcher = AlertDispatcher(
        api_key=settings.resend_api_key,
        from_address=settings.sos_from_address,
        api_url=settings.resend_api_url,
    )
    tools = TrackerTools(store, dispatcher, settings)
    if not settings.resend_api_key:
        logger.warning("resend_not_configured", hint="SOS alerts will be refused")
    logger.info("tracker_module_ready")


@app.on_event("shutdown")
async def shutdown():
    await dispose_engine()


# --- Error mapping ---


@app.exception_handler(InsufficientDataError)
async def insufficient_data_handler(request: Request, exc: InsufficientDataError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Not enough location data",
            "message": str(exc),
            "dataPoints": exc.data_points,
        },
    )


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"error": str(exc)})


@app.exception_handler(NoQualifyingContactsError)
async def no_contacts_handler(request: Request, exc: NoQualifyingContactsError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(PersistenceWriteError)
@app.exception_handler(AlertConfigurationError)
async def server_error_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


def _ready() -> TrackerTools:
    if tools is None:
        raise HTTPException(status_code=503, detail="Module not ready")
    return tools


# --- REST endpoints (called by the app on behalf of a verified user) ---


@app.post("/samples")
async def log_sample(body: LogSampleRequest, user_id: str = Depends(get_request_user_id)):
    return await _ready().log_location(**body.model_dump(), user_id=user_id)


@app.get("/samples")
async def list_samples(
    limit: int = Query(100, ge=1, le=1000),
    user_id: str = Depends(get_request_user_id),
):
    return await _ready().list_samples(limit=limit, user_id=user_id)


@app.delete("/samples/{sample_id}")
async def delete_sample(sample_id: str, user_id: str = Depends(get_request_user_id)):
    result = await _ready().delete_sample(sample_id=sample_id, user_id=user_id)
    if not result["success"]:
        return JSONResponse(status_code=404, content=result)
    return result


@app.get("/places")
async def frequent_places(
    mode: str = Query("label", pattern="^(label|proximity)$"),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_request_user_id),
):
    return await _ready().frequent_places(mode=mode, limit=limit, user_id=user_id)


@app.get("/patterns")
async def daily_pattern(
    day: int | None = Query(None, ge=0, le=6),
    user_id: str = Depends(get_request_user_id),
):
    return await _ready().daily_pattern(day=day, user_id=user_id)


@app.get("/stats")
async def stats(user_id: str = Depends(get_request_user_id)):
    return await _ready().stats(user_id=user_id)


@app.post("/predict")
async def predict(
    body: PredictRequest | None = None,
    user_id: str = Depends(get_request_user_id),
):
    body = body or PredictRequest()
    return await _ready().predict_next_location(
        hour=body.hour,
        day=body.day,
        current_label=body.current_label,
        user_id=user_id,
    )


@app.get("/predictions")
async def list_predictions(
    limit: int = Query(20, ge=1, le=200),
    user_id: str = Depends(get_request_user_id),
):
    return await _ready().list_predictions(limit=limit, user_id=user_id)


@app.delete("/predictions/{prediction_id}")
async def delete_prediction(prediction_id: str, user_id: str = Depends(get_request_user_id)):
    result = await _ready().delete_prediction(prediction_id=prediction_id, user_id=user_id)
    if not result["success"]:
        return JSONResponse(status_code=404, content=result)
    return result


@app.post("/contacts")
async def add_contact(body: ContactCreateRequest, user_id: str = Depends(get_request_user_id)):
    return await _ready().add_contact(**body.model_dump(), user_id=user_id)


@app.get("/contacts")
async def list_contacts(user_id: str = Depends(get_request_user_id)):
    return await _ready().list_contacts(user_id=user_id)


@app.delete("/contacts/{contact_id}")
async def delete_contact(contact_id: str, user_id: str = Depends(get_request_user_id)):
    result = await _ready().delete_contact(contact_id=contact_id, user_id=user_id)
    if not result["success"]:
        return JSONResponse(status_code=404, content=result)
    return result


@app.post("/sos")
async def send_sos(body: SOSRequest, user_id: str = Depends(get_request_user_id)):
    contacts = None
    if body.contacts is not None:
        contacts = [c.model_dump() for c in body.contacts]
    coordinates = body.coordinates.model_dump() if body.coordinates else None
    return await _ready().send_sos_alert(
        location=body.location,
        coordinates=coordinates,
        contacts=contacts,
        user_id=user_id,
    )


# --- Standard module endpoints ---


@app.get("/manifest", response_model=ModuleManifest)
async def manifest():
    """Return the module manifest."""
    return MANIFEST


@app.post("/execute", response_model=ToolResult)
async def execute(call: ToolCall, _=Depends(require_service_auth)):
    """Execute a tool call."""
    if tools is None:
        return ToolResult(tool_name=call.tool_name, success=False, error="Module not ready")

    tool_name = call.tool_name.split(".")[-1]
    if tool_name not in TOOL_NAMES:
        return ToolResult(
            tool_name=call.tool_name,
            success=False,
            error=f"Unknown tool: {call.tool_name}",
        )

    try:
        args = dict(call.arguments)
        args["user_id"] = call.user_id
        result = await getattr(tools, tool_name)(**args)
        return ToolResult(tool_name=call.tool_name, success=True, result=result)
    except Exception as e:
        logger.error("tool_execution_error", tool=call.tool_name, error=str(e))
        return ToolResult(tool_name=call.tool_name, success=False, error=str(e))


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")
