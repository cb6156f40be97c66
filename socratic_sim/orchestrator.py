"""
Simulation Orchestrator

Runs the build pipeline (Parser -> SAG -> Validator -> Finalizer) on a fresh
blackboard per build, and the student turn loop on one blackboard per
session. Persistence is delegated to a store with the
SupabasePersistenceService surface.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Union

from .agents import (
    ActorAgent,
    DirectorAgent,
    FinalizerAgent,
    LLMClient,
    ParserAgent,
    SAGAgent,
    ScenarioAnalyzer,
    ValidatorAgent,
    create_llm_client,
)
from .config import LLMConfiguration, create_default_config_from_env
from .core import (
    Blackboard,
    MissingInput,
    NotFound,
    OracleFailure,
    SessionClosed,
    SimulationError,
    SimulationPhase,
    ValidationFailed,
)
from .models import ConversationEntry, DirectorAction, MessageRole, SessionState

logger = logging.getLogger("socratic_sim.orchestrator")

ORCHESTRATOR = "orchestrator"
USER = "user"
LOADER = "loader"
SESSION_MANAGER = "session_manager"

DEFAULT_PARAMETERS: Dict[str, Any] = {
    "duration": 20,
    "ai_mode": "challenger",
    "complexity": "escalating",
    "narrative_freedom": 0.7,
}

# Simulation fields whose change invalidates the finalized blueprint
BLUEPRINT_FIELDS = ("scenario_text", "actors", "objectives", "parameters")

LLMClientFactory = Callable[[str], LLMClient]


@dataclass
class SessionRuntime:
    """In-process runtime of one student session."""
    simulation_id: str
    session_id: str
    blackboard: Blackboard
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    director_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    director_task: Optional[asyncio.Task] = None
    last_used: float = field(default_factory=time.monotonic)

    @property
    def busy(self) -> bool:
        return self.turn_lock.locked() or (self.director_task is not None and not self.director_task.done())


def _format_timestamp(value: Any) -> str:
    try:
        return datetime.fromisoformat(str(value)).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return str(value or "")


class SimulationOrchestrator:
    """
    Coordinates build pipelines and student sessions.

    Each agent instance gets its own LLM client from the factory so prompts
    never share a conversation context.

    Session runtimes are a cache over the store: at most max_cached_sessions
    are kept, least recently used first out, and runtimes idle for longer
    than session_idle_seconds are dropped. An evicted session is hydrated
    again from the store on its next turn.
    """

    def __init__(
        self,
        persistence: Any,
        config: Optional[LLMConfiguration] = None,
        llm_client_factory: Optional[LLMClientFactory] = None,
        max_cached_sessions: int = 100,
        session_idle_seconds: float = 1800.0,
    ):
        self.persistence = persistence
        self.config = config or create_default_config_from_env()
        self._llm_client_factory = llm_client_factory
        self.max_cached_sessions = max_cached_sessions
        self.session_idle_seconds = session_idle_seconds
        self._sessions: "OrderedDict[str, SessionRuntime]" = OrderedDict()
        self._background_tasks: Set[asyncio.Task] = set()

    # ========================================================================
    # Agents
    # ========================================================================

    def _llm_client(self, agent_name: str) -> LLMClient:
        if self._llm_client_factory is not None:
            return self._llm_client_factory(agent_name)
        provider, model = self.config.agent_models.for_agent(agent_name)
        try:
            return create_llm_client(provider, self.config, model)
        except ValueError as e:
            raise OracleFailure(f"No LLM client available for {agent_name}: {e}") from e

    def _model_for(self, agent_name: str) -> Optional[str]:
        if self._llm_client_factory is not None:
            return None
        return self.config.agent_models.for_agent(agent_name)[1]

    def _create_agent(self, agent_cls, blackboard: Blackboard, agent_name: Optional[str] = None):
        if agent_name is None:
            return agent_cls(blackboard)
        return agent_cls(
            blackboard,
            llm_client=self._llm_client(agent_name),
            model=self._model_for(agent_name),
            timeout_seconds=self.config.timeout_seconds,
        )

    @staticmethod
    def _log_event(event: str, data: Dict[str, Any]) -> None:
        logger.debug(f"[event] {event}: {data}")

    # ========================================================================
    # Build pipeline
    # ========================================================================

    async def build_blueprint(
        self,
        raw_input: str,
        settings: Optional[Dict[str, Any]] = None,
        simulation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Run Parser, SAG, Validator and Finalizer on a fresh blackboard.

        Raises:
            MissingInput: raw_input is empty
            ValidationFailed: the outline did not validate
            OracleFailure: an LLM call failed
        """
        if not raw_input or not raw_input.strip():
            raise MissingInput("scenario is required")

        blackboard = Blackboard(simulation_id=simulation_id)
        blackboard.subscribe("*", self._log_event)
        blackboard.write("raw_input", raw_input, USER)
        blackboard.write("simulation_settings", settings or {}, USER)

        blackboard.register_agent(self._create_agent(ParserAgent, blackboard, "parser"))
        blackboard.register_agent(self._create_agent(SAGAgent, blackboard, "sag"))
        blackboard.register_agent(self._create_agent(ValidatorAgent, blackboard))
        blackboard.register_agent(self._create_agent(FinalizerAgent, blackboard))

        logger.info(f"[build] Starting pipeline for simulation {simulation_id or '(new)'}")
        await blackboard.call("parser", caller=ORCHESTRATOR)
        await blackboard.call("sag", caller=ORCHESTRATOR)
        validation = await blackboard.call(
            "validator",
            params={"director_settings": (settings or {}).get("director_settings")},
            caller=ORCHESTRATOR,
        )
        if not validation.get("valid"):
            raise ValidationFailed("Scenario outline failed validation", validation.get("errors", []))

        blackboard.transition(SimulationPhase.REVIEWING, ORCHESTRATOR)
        blackboard.transition(SimulationPhase.FINALIZED, ORCHESTRATOR)
        blueprint = await blackboard.call("finalizer", caller=ORCHESTRATOR)
        blackboard.transition(SimulationPhase.RUNTIME, ORCHESTRATOR)

        logger.info(f"[build] Blueprint {blueprint['scenario_id']} ready with {len(blueprint['goals'])} goals")
        return blueprint

    @staticmethod
    def _build_settings(
        name: Optional[str],
        actors: Optional[List[Any]],
        objectives: Optional[List[str]],
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        settings = dict(parameters)
        if name:
            settings["name"] = name
        if actors:
            settings["actors"] = list(actors)
        if objectives:
            settings["objectives"] = list(objectives)
        return settings

    async def _blueprint_for(self, simulation: Dict[str, Any]) -> Dict[str, Any]:
        settings = self._build_settings(
            simulation.get("name"),
            simulation.get("actors"),
            simulation.get("objectives"),
            simulation.get("parameters") or {},
        )
        return await self.build_blueprint(simulation.get("scenario_text", ""), settings, simulation.get("id"))

    async def analyze_scenario(self, scenario_text: str) -> Dict[str, Any]:
        """Setup-form assistant: extract actors, objectives and suggested parameters."""
        analyzer = ScenarioAnalyzer(
            self._llm_client("setup_parser"),
            model=self._model_for("setup_parser"),
            timeout_seconds=self.config.timeout_seconds,
        )
        return await analyzer.analyze(scenario_text)

    # ========================================================================
    # Professor flows
    # ========================================================================

    async def _get_simulation(self, simulation_id: str) -> Dict[str, Any]:
        if not simulation_id:
            raise MissingInput("simulationId is required")
        simulation = await self.persistence.get_simulation(simulation_id)
        if simulation is None:
            raise NotFound("Simulation not found", details={"simulationId": simulation_id})
        return simulation

    async def create_simulation(
        self,
        scenario: str,
        name: Optional[str] = None,
        instructions: Optional[str] = None,
        actors: Optional[List[Any]] = None,
        objectives: Optional[List[str]] = None,
        parameters: Optional[Dict[str, Any]] = None,
        is_template: bool = False,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the blueprint for a new scenario and store the simulation."""
        if not scenario or not scenario.strip():
            raise MissingInput("scenario is required")

        merged = {**DEFAULT_PARAMETERS, **(parameters or {})}
        if instructions:
            merged["instructions"] = instructions

        name = name or "Untitled Simulation"
        blueprint = await self.build_blueprint(
            scenario, self._build_settings(name, actors, objectives, merged)
        )

        simulation = await self.persistence.create_simulation({
            "name": name,
            "scenario_text": scenario,
            "actors": actors or [],
            "objectives": objectives or [],
            "parameters": merged,
            "blueprint": blueprint,
            "is_template": is_template,
            "created_by": created_by,
        })
        if simulation is None:
            raise SimulationError("Failed to store simulation")

        logger.info(f"[professor] Created simulation {simulation['id']} ({name})")
        return simulation

    async def edit_simulation(
        self,
        simulation_id: str,
        name: Optional[str] = None,
        scenario: Optional[str] = None,
        instructions: Optional[str] = None,
        actors: Optional[List[Any]] = None,
        objectives: Optional[List[str]] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Update a simulation. The stored blueprint is never edited in place;
        changes to anything it was built from produce a fresh blueprint.
        """
        current = await self._get_simulation(simulation_id)

        updates: Dict[str, Any] = {}
        if name:
            updates["name"] = name
        if scenario:
            updates["scenario_text"] = scenario
        if actors is not None:
            updates["actors"] = actors
        if objectives is not None:
            updates["objectives"] = objectives
        if parameters or instructions:
            merged = {**(current.get("parameters") or {}), **(parameters or {})}
            if instructions:
                merged["instructions"] = instructions
            updates["parameters"] = merged

        if not updates:
            raise MissingInput("At least one field must be provided to update")

        if any(key in updates for key in BLUEPRINT_FIELDS):
            updates["blueprint"] = await self._blueprint_for({**current, **updates})

        simulation = await self.persistence.update_simulation(simulation_id, updates)
        if simulation is None:
            raise SimulationError("Failed to update simulation")

        logger.info(f"[professor] Updated simulation {simulation_id}: {sorted(updates)}")
        return simulation

    async def list_simulations(self, is_template: Optional[bool] = None) -> Dict[str, Any]:
        simulations = await self.persistence.list_simulations(is_template=is_template)
        return {"simulations": simulations, "count": len(simulations)}

    # ========================================================================
    # Session runtime
    # ========================================================================

    def _hydrate(self, simulation_id: str, session: Dict[str, Any], blueprint: Dict[str, Any]) -> SessionRuntime:
        """Load the stored blueprint, history and director state into a runtime blackboard."""
        blackboard = Blackboard(simulation_id=simulation_id, session_id=session["id"])
        blackboard.subscribe("*", self._log_event)
        blackboard.transition(SimulationPhase.REVIEWING, LOADER)
        blackboard.transition(SimulationPhase.FINALIZED, LOADER)
        blackboard.grant(LOADER, {"writes": ["simulation_blueprint"]})
        blackboard.write("simulation_blueprint", blueprint, LOADER)
        blackboard.transition(SimulationPhase.RUNTIME, LOADER)

        if session.get("director_state"):
            blackboard.grant(LOADER, {"writes": ["director_state"]})
            blackboard.write("director_state", session["director_state"], LOADER)
        blackboard.write("conversation_history", session.get("conversation_history") or [], SESSION_MANAGER)

        blackboard.register_agent(self._create_agent(ActorAgent, blackboard, "actor"))
        blackboard.register_agent(self._create_agent(DirectorAgent, blackboard, "director"))

        logger.info(f"[session] Hydrated session {session['id']} for simulation {simulation_id}")
        return SessionRuntime(simulation_id=simulation_id, session_id=session["id"], blackboard=blackboard)

    async def _runtime_for(self, simulation: Dict[str, Any], session: Dict[str, Any]) -> SessionRuntime:
        runtime = self._sessions.get(session["id"])
        if runtime is not None:
            runtime.last_used = time.monotonic()
            self._sessions.move_to_end(session["id"])
            return runtime

        blueprint = simulation.get("blueprint")
        if not blueprint:
            # Rows created outside this service carry no blueprint yet
            blueprint = await self._blueprint_for(simulation)
            await self.persistence.update_simulation(simulation["id"], {"blueprint": blueprint})

        runtime = self._hydrate(simulation["id"], session, blueprint)
        self._sessions[session["id"]] = runtime
        self._evict_runtimes()
        return runtime

    def _evict_runtimes(self) -> None:
        """Drop idle runtimes past the TTL, then the oldest ones beyond the cache bound."""
        now = time.monotonic()
        expired = [
            sid for sid, rt in self._sessions.items()
            if not rt.busy and now - rt.last_used > self.session_idle_seconds
        ]
        for sid in expired:
            del self._sessions[sid]

        overflow = len(self._sessions) - self.max_cached_sessions
        if overflow > 0:
            # Runtimes mid-turn or mid-evaluation stay until they finish
            idle = [sid for sid, rt in self._sessions.items() if not rt.busy][:overflow]
            for sid in idle:
                del self._sessions[sid]
            expired.extend(idle)

        if expired:
            logger.debug(f"[session] Evicted {len(expired)} runtimes, {len(self._sessions)} cached")

    def release_session(self, session_id: str) -> bool:
        """Drop a session's runtime; the store keeps its history and director state."""
        return self._sessions.pop(session_id, None) is not None

    async def _open_session(
        self,
        simulation: Dict[str, Any],
        session_id: Optional[str],
        student_id: Optional[str] = None,
    ) -> tuple:
        """Return (session, first_message); new sessions get the configured first message."""
        if session_id:
            session = await self.persistence.get_session(session_id)
            if session is None or session.get("simulation_id") != simulation["id"]:
                raise NotFound("Session not found or does not belong to this simulation")
            state = session.get("state") or SessionState.ACTIVE.value
            if state != SessionState.ACTIVE.value:
                self.release_session(session_id)
                raise SessionClosed(f"Session is {state}", details={"sessionId": session_id, "state": state})
            return session, None

        session = await self.persistence.create_session(simulation["id"], student_id=student_id)
        if session is None:
            raise SimulationError("Failed to create session")

        first_message = (simulation.get("parameters") or {}).get("first_message")
        if first_message:
            entry = ConversationEntry(
                role=MessageRole.AI_ADVISOR,
                content=first_message,
                metadata={"auto_generated": True, "type": "first_message"},
            ).model_dump(mode="json")
            session = await self.persistence.add_message_to_session(session["id"], entry) or session
        logger.info(f"[session] Started session {session['id']} for simulation {simulation['id']}")
        return session, first_message

    async def handle_student_turn(
        self,
        simulation_id: str,
        student_input: str,
        session_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        One turn: record the student message, reply through the Actor, then
        schedule a Director evaluation whose result shapes later turns only.
        """
        if not student_input or not student_input.strip():
            raise MissingInput("Student input is required and must be a non-empty string")

        simulation = await self._get_simulation(simulation_id)
        session, first_message = await self._open_session(simulation, session_id, student_id)
        runtime = await self._runtime_for(simulation, session)
        blackboard = runtime.blackboard

        async with runtime.turn_lock:
            history = blackboard.read("conversation_history") or []
            student_entry = ConversationEntry(role=MessageRole.STUDENT, content=student_input).model_dump(mode="json")
            blackboard.write("conversation_history", history + [student_entry], SESSION_MANAGER)

            try:
                response = await blackboard.call(
                    "actor",
                    params={"student_message": student_input, "conversation_history": history},
                    caller=SESSION_MANAGER,
                )
            except Exception:
                blackboard.write("conversation_history", history, SESSION_MANAGER)
                raise

            ai_entry = ConversationEntry(
                role=MessageRole.AI_ADVISOR,
                content=response["message"],
                metadata=response["metadata"],
            ).model_dump(mode="json")
            updated_history = history + [student_entry, ai_entry]
            blackboard.write("conversation_history", updated_history, SESSION_MANAGER)
            await self.persistence.update_session(runtime.session_id, {"conversation_history": updated_history})

        self._schedule_director(runtime, updated_history, student_input)

        return {
            "success": True,
            "response": response["message"],
            "sessionId": runtime.session_id,
            "simulationId": simulation["id"],
            "messageCount": len(updated_history),
            "triggersActivated": response["metadata"].get("triggers_activated", []),
            "firstMessage": first_message,
        }

    # ========================================================================
    # Director background evaluation
    # ========================================================================

    def _schedule_director(self, runtime: SessionRuntime, history: List[Dict[str, Any]], latest_message: str) -> None:
        if runtime.director_task is not None and not runtime.director_task.done():
            logger.debug(f"[director] Evaluation already running for session {runtime.session_id}, skipping")
            return
        task = asyncio.create_task(self._run_director(runtime, history, latest_message))
        runtime.director_task = task
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _run_director(self, runtime: SessionRuntime, history: List[Dict[str, Any]], latest_message: str) -> None:
        async with runtime.director_lock:
            try:
                decision = await runtime.blackboard.call(
                    "director",
                    params={"conversation_history": history, "latest_message": latest_message},
                    caller=SESSION_MANAGER,
                )
                if decision.get("action") == DirectorAction.NONE.value:
                    return

                await self.persistence.update_session(
                    runtime.session_id,
                    {"director_state": runtime.blackboard.read("director_state")},
                )
                log = runtime.blackboard.read("director_logs")
                if log:
                    await self.persistence.store_director_log(log)
            except Exception:
                logger.exception(f"[director] Background evaluation failed for session {runtime.session_id}")

    async def wait_for_background_tasks(self) -> None:
        """Wait for in-flight Director evaluations."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._background_tasks):
            task.cancel()
        await self.wait_for_background_tasks()
        self._sessions.clear()

    # ========================================================================
    # State, export and cleanup
    # ========================================================================

    async def get_state(self, simulation_id: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        simulation = await self._get_simulation(simulation_id)
        state: Dict[str, Any] = {"simulation": simulation, "blueprint": simulation.get("blueprint")}
        if not session_id:
            return state

        session = await self.persistence.get_session(session_id)
        if session is None or session.get("simulation_id") != simulation_id:
            raise NotFound("Session not found or does not belong to this simulation")

        history = session.get("conversation_history") or []
        state["session"] = {
            "id": session["id"],
            "state": session.get("state"),
            "conversationHistory": history,
            "messageCount": len(history),
            "startedAt": session.get("started_at"),
            "lastActivityAt": session.get("last_activity_at"),
            "directorState": session.get("director_state"),
        }
        return state

    async def export_session(self, session_id: str, format: str = "json") -> Union[Dict[str, Any], str]:
        if not session_id:
            raise MissingInput("sessionId query parameter is required")
        session = await self.persistence.get_session(session_id)
        if session is None:
            raise NotFound("Session not found")
        simulation = await self.persistence.get_simulation(session["simulation_id"]) or {}
        history = session.get("conversation_history") or []
        exported_at = datetime.now(timezone.utc).isoformat()

        if format == "text":
            lines = [
                "Simulation Session Export",
                f"Session ID: {session['id']}",
                f"Simulation: {simulation.get('name', '')}",
                f"Started: {_format_timestamp(session.get('started_at'))}",
                f"Exported: {_format_timestamp(exported_at)}",
                "",
                "=== SCENARIO ===",
                simulation.get("scenario_text", ""),
                "",
                "=== CONVERSATION ===",
            ]
            for entry in history:
                role = "Student" if entry.get("role") == MessageRole.STUDENT.value else "AI Advisor"
                lines.append(f"[{_format_timestamp(entry.get('timestamp'))}] {role}: {entry.get('content', '')}")
                lines.append("")
            return "\n".join(lines)

        return {
            "sessionId": session["id"],
            "simulationId": session["simulation_id"],
            "simulationName": simulation.get("name"),
            "scenario": simulation.get("scenario_text"),
            "conversation": history,
            "metadata": {
                "startedAt": session.get("started_at"),
                "completedAt": session.get("completed_at"),
                "totalMessages": len(history),
                "exportedAt": exported_at,
            },
        }

    async def complete_session(self, session_id: str) -> Dict[str, Any]:
        """Mark a session completed and release its runtime. Later turns are rejected."""
        if not session_id:
            raise MissingInput("sessionId is required")
        session = await self.persistence.get_session(session_id)
        if session is None:
            raise NotFound("Session not found")

        if session.get("state") != SessionState.COMPLETED.value:
            session = await self.persistence.complete_session(session_id)
            if session is None:
                raise SimulationError("Failed to complete session")
        self.release_session(session_id)

        logger.info(f"[session] Completed session {session_id}")
        return session

    async def list_sessions(
        self,
        student_id: Optional[str] = None,
        state: Optional[str] = None,
        simulation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if simulation_id:
            sessions = await self.persistence.list_sessions_for_simulation(simulation_id)
            sessions = [
                s for s in sessions
                if (not student_id or s.get("student_id") == student_id)
                and (not state or s.get("state") == state)
            ]
        else:
            sessions = await self.persistence.list_sessions(student_id=student_id, state=state)
        return {"sessions": sessions, "count": len(sessions)}

    async def clear(self, session_id: Optional[str] = None, simulation_id: Optional[str] = None) -> Dict[str, Any]:
        if session_id:
            self._sessions.pop(session_id, None)
            await self.persistence.delete_session(session_id)
            return {"success": True, "message": "Session deleted successfully"}

        if simulation_id:
            for runtime_id in [sid for sid, rt in self._sessions.items() if rt.simulation_id == simulation_id]:
                del self._sessions[runtime_id]
            await self.persistence.delete_simulation(simulation_id)
            return {"success": True, "message": "Simulation and all associated sessions deleted successfully"}

        raise MissingInput("Either sessionId or simulationId query parameter is required")

    def get_runtime(self, session_id: str) -> Optional[SessionRuntime]:
        return self._sessions.get(session_id)
