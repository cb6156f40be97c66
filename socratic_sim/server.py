"""
HTTP API for the simulation service.

FastAPI adapter over SimulationOrchestrator: setup analysis, professor
simulation management and the student turn loop.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import AppSettings, load_app_settings
from .core.errors import SimulationError
from .orchestrator import SimulationOrchestrator
from .services import InMemoryPersistenceService, SupabasePersistenceService
from .services.security import (
    ALLOWED_ORIGINS,
    MAX_INSTRUCTIONS_LENGTH,
    MAX_NAME_LENGTH,
    MAX_SCENARIO_LENGTH,
    MAX_STUDENT_INPUT_LENGTH,
    validate_request_size,
)

load_dotenv()

logger = logging.getLogger("socratic_sim.server")

settings: AppSettings = load_app_settings()


def _rate_limit() -> str:
    return settings.rate_limit


# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title="Socratic Simulation Service")

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS configuration with explicit allowed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

orchestrator: Optional[SimulationOrchestrator] = None


# ============================================================================
# Error envelopes
# ============================================================================

@app.exception_handler(SimulationError)
async def simulation_error_handler(request: Request, exc: SimulationError):
    if exc.http_status >= 500:
        logger.error(f"[{request.url.path}] {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict(debug=settings.debug))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[{request.url.path}] Unhandled error")
    body: Dict[str, Any] = {"error": "Internal server error"}
    if settings.debug:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


def _get_orchestrator() -> SimulationOrchestrator:
    if orchestrator is None:
        raise SimulationError("Orchestrator not initialized")
    return orchestrator


# ============================================================================
# Request models
# ============================================================================

class SetupParseRequest(BaseModel):
    scenario_text: str = Field(..., max_length=MAX_SCENARIO_LENGTH)


class ProfessorSetupRequest(BaseModel):
    scenario: str = Field(..., max_length=MAX_SCENARIO_LENGTH)
    name: Optional[str] = Field(None, max_length=MAX_NAME_LENGTH)
    instructions: Optional[str] = Field(None, max_length=MAX_INSTRUCTIONS_LENGTH)
    actors: Optional[List[Union[Dict[str, Any], str]]] = None
    objectives: Optional[List[str]] = None
    parameters: Optional[Dict[str, Any]] = None
    is_template: bool = False
    created_by: Optional[str] = None


class ProfessorEditRequest(BaseModel):
    simulationId: str
    name: Optional[str] = Field(None, max_length=MAX_NAME_LENGTH)
    scenario: Optional[str] = Field(None, max_length=MAX_SCENARIO_LENGTH)
    instructions: Optional[str] = Field(None, max_length=MAX_INSTRUCTIONS_LENGTH)
    actors: Optional[List[Union[Dict[str, Any], str]]] = None
    objectives: Optional[List[str]] = None
    parameters: Optional[Dict[str, Any]] = None


class StudentRespondRequest(BaseModel):
    simulationId: str
    sessionId: Optional[str] = None
    studentId: Optional[str] = None
    studentInput: str = Field(..., max_length=MAX_STUDENT_INPUT_LENGTH)


class StudentCompleteRequest(BaseModel):
    sessionId: str


# ============================================================================
# Lifecycle
# ============================================================================

async def create_orchestrator(app_settings: AppSettings) -> SimulationOrchestrator:
    """Use Supabase when configured, the in-memory store otherwise."""
    persistence: Any = None
    if app_settings.persistence_configured:
        supabase = SupabasePersistenceService(
            supabase_url=app_settings.supabase_url,
            supabase_key=app_settings.supabase_service_key.get_secret_value(),
        )
        if await supabase.connect():
            persistence = supabase
        else:
            logger.warning("[startup] Supabase not available - falling back to in-memory store")

    if persistence is None:
        persistence = InMemoryPersistenceService()
        await persistence.connect()
        logger.info("[startup] Using in-memory store - simulations will not survive restarts")

    return SimulationOrchestrator(
        persistence,
        max_cached_sessions=app_settings.max_cached_sessions,
        session_idle_seconds=app_settings.session_idle_seconds,
    )


@app.on_event("startup")
async def startup():
    global orchestrator
    if orchestrator is None:
        orchestrator = await create_orchestrator(settings)


@app.on_event("shutdown")
async def shutdown():
    if orchestrator:
        await orchestrator.shutdown()


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/health")
async def health():
    return {"status": "ok", "service": "socratic-simulation"}


@app.post("/setup/parse")
@limiter.limit(_rate_limit)
async def parse_scenario(parse_request: SetupParseRequest, request: Request):
    """Analyze a pasted scenario and suggest actors, objectives and parameters."""
    validate_request_size(scenario=parse_request.scenario_text)
    return await _get_orchestrator().analyze_scenario(parse_request.scenario_text)


@app.post("/professor/setup", status_code=201)
@limiter.limit(_rate_limit)
async def professor_setup(setup_request: ProfessorSetupRequest, request: Request):
    """Create a simulation through the full build pipeline."""
    validate_request_size(
        scenario=setup_request.scenario,
        instructions=setup_request.instructions,
        actors=setup_request.actors,
        objectives=setup_request.objectives,
    )
    simulation = await _get_orchestrator().create_simulation(
        scenario=setup_request.scenario,
        name=setup_request.name,
        instructions=setup_request.instructions,
        actors=setup_request.actors,
        objectives=setup_request.objectives,
        parameters=setup_request.parameters,
        is_template=setup_request.is_template,
        created_by=setup_request.created_by,
    )
    return {
        "message": "Simulation created successfully",
        "simulationId": simulation["id"],
        "simulation": simulation,
    }


@app.patch("/professor/edit")
@limiter.limit(_rate_limit)
async def professor_edit(edit_request: ProfessorEditRequest, request: Request):
    validate_request_size(
        scenario=edit_request.scenario,
        instructions=edit_request.instructions,
        actors=edit_request.actors,
        objectives=edit_request.objectives,
    )
    simulation = await _get_orchestrator().edit_simulation(
        edit_request.simulationId,
        name=edit_request.name,
        scenario=edit_request.scenario,
        instructions=edit_request.instructions,
        actors=edit_request.actors,
        objectives=edit_request.objectives,
        parameters=edit_request.parameters,
    )
    return {"message": "Simulation updated successfully", "simulation": simulation}


@app.post("/student/respond")
@limiter.limit(_rate_limit)
async def student_respond(respond_request: StudentRespondRequest, request: Request):
    """Process one student message; the Director runs in the background."""
    return await _get_orchestrator().handle_student_turn(
        respond_request.simulationId,
        respond_request.studentInput,
        session_id=respond_request.sessionId,
        student_id=respond_request.studentId,
    )


@app.post("/student/complete")
async def student_complete(complete_request: StudentCompleteRequest):
    session = await _get_orchestrator().complete_session(complete_request.sessionId)
    return {"success": True, "message": "Session completed", "session": session}


@app.get("/student/sessions")
async def student_sessions(
    student_id: Optional[str] = Query(None),
    state: Optional[str] = Query(None, pattern="^(active|completed|abandoned)$"),
    simulationId: Optional[str] = Query(None),
):
    """List sessions, newest first, optionally filtered by student, state or simulation."""
    return await _get_orchestrator().list_sessions(student_id=student_id, state=state, simulation_id=simulationId)


@app.get("/simulation/state")
async def simulation_state(
    simulationId: str = Query(...),
    sessionId: Optional[str] = Query(None),
):
    return await _get_orchestrator().get_state(simulationId, sessionId)


@app.get("/simulation/export")
async def simulation_export(
    sessionId: str = Query(...),
    format: str = Query("json", pattern="^(json|text)$"),
):
    exported = await _get_orchestrator().export_session(sessionId, format)
    if format == "text":
        return PlainTextResponse(
            exported,
            headers={"Content-Disposition": f'attachment; filename="session-{sessionId}.txt"'},
        )
    return exported


@app.delete("/simulation/clear")
async def simulation_clear(
    sessionId: Optional[str] = Query(None),
    simulationId: Optional[str] = Query(None),
):
    return await _get_orchestrator().clear(session_id=sessionId, simulation_id=simulationId)


@app.get("/simulations")
async def list_simulations(is_template: Optional[bool] = Query(None)):
    return await _get_orchestrator().list_simulations(is_template=is_template)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
