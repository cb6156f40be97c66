"""
Blackboard (Shared State) for simulation runs

This module implements the Blackboard Architecture pattern for one simulation
run: every agent reads from and writes to a single key/value store instead of
passing data through function parameters.

Key concepts:
- SimulationPhase: monotone build-then-run phase machine
- Capability: per-phase, per-agent reads/writes/preserves sets
- Preserved keys: every write is also appended to an indexed version history
- Audit log: chronological record of writes, deletes, calls, broadcasts,
  grants and phase transitions
- Isolation: reads return deep copies, writes store deep clones
"""

import hashlib
import inspect
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from pydantic import BaseModel

from .errors import InvalidPhaseTransition, PermissionDenied, SimulationError

logger = logging.getLogger("socratic_sim.blackboard")

WILDCARD = "*"


class SimulationPhase(str, Enum):
    """Lifecycle phase of a simulation blackboard."""
    BUILDING = "building"
    REVIEWING = "reviewing"
    FINALIZED = "finalized"
    RUNTIME = "runtime"


PHASE_SUCCESSORS: Dict[SimulationPhase, Optional[SimulationPhase]] = {
    SimulationPhase.BUILDING: SimulationPhase.REVIEWING,
    SimulationPhase.REVIEWING: SimulationPhase.FINALIZED,
    SimulationPhase.FINALIZED: SimulationPhase.RUNTIME,
    SimulationPhase.RUNTIME: None,
}

# Keys that can only be written once per blackboard
WRITE_ONCE_KEYS = frozenset({"simulation_blueprint"})


class AuditAction(str, Enum):
    WRITE = "write"
    DELETE = "delete"
    AGENT_CALL = "agent_call"
    BROADCAST = "broadcast"
    GRANT_PERMISSION = "grant_permission"
    PHASE_TRANSITION = "phase_transition"


# ============================================================================
# Value helpers
# ============================================================================

def deep_clone(value: Any, _path: Optional[Set[int]] = None) -> Any:
    """
    Copy a JSON-shaped tree (dicts, lists, primitives, timestamps).

    Pydantic models are dumped to plain dicts first. Cycles raise ValueError.
    """
    if value is None or isinstance(value, (str, int, float, bool, datetime, date)):
        return value
    if isinstance(value, BaseModel):
        return deep_clone(value.model_dump(), _path)
    if isinstance(value, Enum):
        return value.value

    path = _path if _path is not None else set()
    marker = id(value)
    if marker in path:
        raise ValueError("Cannot store cyclic value on the blackboard")

    path.add(marker)
    try:
        if isinstance(value, dict):
            return {str(k): deep_clone(v, path) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [deep_clone(v, path) for v in value]
    finally:
        path.discard(marker)

    raise TypeError(f"Unsupported blackboard value type: {type(value).__name__}")


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def value_hash(value: Any) -> str:
    """First 16 hex characters of the SHA-256 digest of the canonical form."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()[:16]


# ============================================================================
# Capabilities
# ============================================================================

@dataclass
class Capability:
    """What one agent may touch in one phase."""
    reads: Set[str] = field(default_factory=set)
    writes: Set[str] = field(default_factory=set)
    preserves: Set[str] = field(default_factory=set)

    @staticmethod
    def _covers(keys: Set[str], key: str) -> bool:
        return WILDCARD in keys or key in keys

    def can_read(self, key: str) -> bool:
        return self._covers(self.reads, key)

    def can_write(self, key: str) -> bool:
        return self._covers(self.writes, key)

    def should_preserve(self, key: str) -> bool:
        return self._covers(self.preserves, key)

    def union(self, other: "Capability") -> "Capability":
        return Capability(
            reads=self.reads | other.reads,
            writes=self.writes | other.writes,
            preserves=self.preserves | other.preserves,
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "reads": sorted(self.reads),
            "writes": sorted(self.writes),
            "preserves": sorted(self.preserves),
        }

    @classmethod
    def from_value(cls, value: Union["Capability", Dict[str, Iterable[str]]]) -> "Capability":
        if isinstance(value, Capability):
            return cls(set(value.reads), set(value.writes), set(value.preserves))
        return cls(
            reads=set(value.get("reads", ())),
            writes=set(value.get("writes", ())),
            preserves=set(value.get("preserves", ())),
        )


def _cap(reads=(), writes=(), preserves=()) -> Capability:
    return Capability(set(reads), set(writes), set(preserves))


CAPABILITY_MATRIX: Dict[SimulationPhase, Dict[str, Capability]] = {
    SimulationPhase.BUILDING: {
        "user": _cap(reads=[WILDCARD], writes=["raw_input", "simulation_settings"]),
        "parser": _cap(reads=["raw_input"], writes=["parsed_data"], preserves=["parsed_data"]),
        "sag": _cap(
            reads=["parsed_data", "simulation_settings"],
            writes=["scenario_outline"],
            preserves=["scenario_outline"],
        ),
        "validator": _cap(reads=[WILDCARD], writes=["validation_result"], preserves=[WILDCARD]),
    },
    SimulationPhase.REVIEWING: {
        "user": _cap(reads=[WILDCARD], writes=["user_modifications"]),
        "recalibrator": _cap(
            reads=[WILDCARD],
            writes=["recalibrated_settings"],
            preserves=["scenario_outline", "proposed_settings"],
        ),
    },
    SimulationPhase.FINALIZED: {
        "finalizer": _cap(reads=[WILDCARD], writes=["simulation_blueprint"]),
        WILDCARD: _cap(reads=["simulation_blueprint"]),
    },
    SimulationPhase.RUNTIME: {
        "director": _cap(
            reads=["simulation_blueprint", "conversation_history"],
            writes=["director_state", "director_logs"],
        ),
        "actor": _cap(
            reads=["simulation_blueprint", "director_state", "conversation_history"],
            writes=["actor_responses"],
        ),
        "session_manager": _cap(
            reads=[WILDCARD],
            writes=["conversation_history"],
            preserves=["simulation_blueprint"],
        ),
    },
}


# ============================================================================
# Audit and history records
# ============================================================================

@dataclass
class AuditRecord:
    """One entry in the blackboard audit log."""
    timestamp: float
    phase: str
    agent: str
    action: AuditAction
    key: Optional[str] = None
    value_hash: Optional[str] = None
    preserved: Optional[bool] = None
    from_phase: Optional[str] = None
    to_phase: Optional[str] = None
    event: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "phase": self.phase,
            "agent": self.agent,
            "action": self.action.value,
        }
        optional = {
            "key": self.key,
            "value_hash": self.value_hash,
            "preserved": self.preserved,
            "from": self.from_phase,
            "to": self.to_phase,
            "event": self.event,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class VersionEntry:
    """A preserved, never-overwritten copy of a key's value."""
    version_key: str
    timestamp: float
    agent: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version_key": self.version_key,
            "timestamp": self.timestamp,
            "agent": self.agent,
            "value": deep_clone(self.value),
        }


# ============================================================================
# Blackboard
# ============================================================================

class Blackboard:
    """
    Phase-scoped, permissioned, versioned and audited key/value store.

    One blackboard exists per simulation run (build pipeline) or per student
    session (runtime). It is process-local and single-threaded; agents run
    cooperatively on one event loop.
    """

    def __init__(self, simulation_id: Optional[str] = None, session_id: Optional[str] = None):
        self.simulation_id = simulation_id
        self.session_id = session_id
        self._phase = SimulationPhase.BUILDING
        self._store: Dict[str, Any] = {}
        self._history: Dict[str, List[VersionEntry]] = {}
        self._audit_log: List[AuditRecord] = []
        self._grants: Dict[tuple, Capability] = {}
        self._agents: Dict[str, Any] = {}
        self._subscribers: Dict[str, List[Callable[[str, Dict[str, Any]], Any]]] = {}
        self._last_timestamp = 0.0

    @property
    def phase(self) -> SimulationPhase:
        return self._phase

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read(self, key: str) -> Any:
        """Return a deep copy of the value, or None if absent."""
        if key not in self._store:
            return None
        return deep_clone(self._store[key])

    def exists(self, key: str) -> bool:
        return key in self._store

    def keys(self) -> List[str]:
        return list(self._store.keys())

    def history(self, key: str) -> List[Dict[str, Any]]:
        """Preserved versions of a key in write order."""
        return [entry.to_dict() for entry in self._history.get(key, [])]

    def versioned_keys(self, key: str) -> List[str]:
        return [entry.version_key for entry in self._history.get(key, [])]

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def capabilities(self, agent_id: str, phase: Optional[SimulationPhase] = None) -> Capability:
        """Effective capability of an agent: matrix entry, wildcard entry and grants."""
        phase = phase or self._phase
        table = CAPABILITY_MATRIX.get(phase, {})
        effective = Capability()
        for source in (table.get(WILDCARD), table.get(agent_id), self._grants.get((phase, agent_id))):
            if source is not None:
                effective = effective.union(source)
        return effective

    def can_read(self, agent_id: str, key: str) -> bool:
        return self.capabilities(agent_id).can_read(key)

    def can_write(self, agent_id: str, key: str) -> bool:
        return self.capabilities(agent_id).can_write(key)

    def grant(self, agent_id: str, capability: Union[Capability, Dict[str, Iterable[str]]]) -> Capability:
        """Add capabilities for the current phase; unions with existing grants."""
        addition = Capability.from_value(capability)
        slot = (self._phase, agent_id)
        current = self._grants.get(slot, Capability())
        self._grants[slot] = current.union(addition)
        self._record(agent_id, AuditAction.GRANT_PERMISSION)
        logger.info(f"[grant] {agent_id} in {self._phase.value}: {addition.to_dict()}")
        return self.capabilities(agent_id)

    def _check_writable(self, key: str, agent_id: str) -> Capability:
        caps = self.capabilities(agent_id)
        if not caps.can_write(key):
            logger.warning(f"[permission] denied {agent_id} -> {key} in {self._phase.value}")
            raise PermissionDenied(agent_id, key, self._phase.value)
        if key in WRITE_ONCE_KEYS and key in self._store:
            logger.warning(f"[permission] {agent_id} attempted to modify immutable {key}")
            raise PermissionDenied(agent_id, key, self._phase.value, reason="value is immutable")
        return caps

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def write(self, key: str, value: Any, agent_id: str) -> None:
        """Store a deep clone of value; preserved keys also get a version entry."""
        caps = self._check_writable(key, agent_id)
        stored = deep_clone(value)
        preserved = caps.should_preserve(key)
        timestamp = self._now()

        self._store[key] = stored
        if preserved:
            version_key = f"{key}_v{time.time_ns()}_{uuid.uuid4().hex}"
            self._history.setdefault(key, []).append(
                VersionEntry(version_key=version_key, timestamp=timestamp, agent=agent_id, value=deep_clone(stored))
            )
            self._store[version_key] = deep_clone(stored)
            self._store[f"{key}_latest"] = deep_clone(stored)

        self._record(
            agent_id,
            AuditAction.WRITE,
            key=key,
            value_hash=value_hash(stored),
            preserved=preserved,
            timestamp=timestamp,
        )
        logger.debug(f"[write] {agent_id} -> {key} (preserved={preserved})")

    def delete(self, key: str, agent_id: str) -> bool:
        """Remove a key. Returns False if the key was absent."""
        self._check_writable(key, agent_id)
        existed = key in self._store
        self._store.pop(key, None)
        self._record(agent_id, AuditAction.DELETE, key=key)
        logger.debug(f"[delete] {agent_id} -> {key} (existed={existed})")
        return existed

    def transition(self, next_phase: Union[SimulationPhase, str], agent_id: str = "system") -> None:
        """Advance to the unique successor phase; anything else raises."""
        try:
            target = SimulationPhase(next_phase)
        except ValueError:
            raise InvalidPhaseTransition(self._phase.value, str(next_phase))

        if PHASE_SUCCESSORS[self._phase] != target:
            raise InvalidPhaseTransition(self._phase.value, target.value)

        previous = self._phase
        self._phase = target
        self._record(
            agent_id,
            AuditAction.PHASE_TRANSITION,
            from_phase=previous.value,
            to_phase=target.value,
        )
        logger.info(f"[transition] {previous.value} -> {target.value}")

    # ------------------------------------------------------------------
    # Agents, calls and events
    # ------------------------------------------------------------------

    def register_agent(self, agent: Any) -> None:
        self._agents[agent.agent_id] = agent

    def get_agent(self, agent_id: str) -> Any:
        return self._agents.get(agent_id)

    async def call(
        self,
        agent_id: str,
        tool: str = "execute",
        params: Optional[Dict[str, Any]] = None,
        caller: str = "system",
    ) -> Any:
        """Invoke a tool on a registered agent, auditing the call."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise SimulationError(f"Agent '{agent_id}' is not registered")
        handler = getattr(agent, tool, None)
        if handler is None or not callable(handler):
            raise SimulationError(f"Agent '{agent_id}' has no tool '{tool}'")

        self._record(caller, AuditAction.AGENT_CALL, key=f"{agent_id}.{tool}")
        result = handler(params or {})
        if inspect.isawaitable(result):
            result = await result
        return result

    def subscribe(self, event: str, callback: Callable[[str, Dict[str, Any]], Any]) -> None:
        self._subscribers.setdefault(event, []).append(callback)

    def broadcast(self, event: str, data: Optional[Dict[str, Any]] = None, agent_id: str = "system") -> None:
        """Fan an event out to subscribers; subscriber failures are logged only."""
        payload = deep_clone(data or {})
        self._record(agent_id, AuditAction.BROADCAST, event=event)
        for callback in self._subscribers.get(event, []) + self._subscribers.get(WILDCARD, []):
            try:
                callback(event, deep_clone(payload))
            except Exception:
                logger.exception(f"[broadcast] subscriber failed for event '{event}'")

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def _now(self) -> float:
        # Clamp so audit timestamps never go backwards
        self._last_timestamp = max(time.time(), self._last_timestamp)
        return self._last_timestamp

    def _record(self, agent_id: str, action: AuditAction, timestamp: Optional[float] = None, **fields: Any) -> None:
        self._audit_log.append(AuditRecord(
            timestamp=timestamp if timestamp is not None else self._now(),
            phase=self._phase.value,
            agent=agent_id,
            action=action,
            **fields,
        ))

    def audit(
        self,
        agent: Optional[str] = None,
        action: Optional[Union[AuditAction, str]] = None,
        since: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Chronological audit records, optionally filtered."""
        action_value = AuditAction(action).value if action is not None else None
        records = []
        for record in self._audit_log:
            if agent is not None and record.agent != agent:
                continue
            if action_value is not None and record.action.value != action_value:
                continue
            if since is not None and record.timestamp < since:
                continue
            records.append(record.to_dict())
        return records

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of current values plus phase and audit size."""
        return {
            "simulation_id": self.simulation_id,
            "session_id": self.session_id,
            "phase": self._phase.value,
            "values": deep_clone(self._store),
            "audit_size": len(self._audit_log),
        }
