"""
In-memory persistence with the same async surface as SupabasePersistenceService.
Used for local development and tests when Supabase is not configured.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger("socratic_sim.persistence")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryPersistenceService:
    """Process-local dict store; rows are copied in and out."""

    def __init__(self):
        self._simulations: Dict[str, Dict[str, Any]] = {}
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self.director_logs: List[Dict[str, Any]] = []
        self._connected = False

    async def connect(self) -> bool:
        self._connected = True
        return True

    @property
    def is_connected(self) -> bool:
        return self._connected

    # Simulations

    async def create_simulation(self, simulation: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        now = _now()
        row = {
            "is_template": False,
            "created_by": None,
            **copy.deepcopy(simulation),
            "id": simulation.get("id") or str(uuid.uuid4()),
            "created_at": now,
            "updated_at": now,
        }
        self._simulations[row["id"]] = row
        return copy.deepcopy(row)

    async def get_simulation(self, simulation_id: str) -> Optional[Dict[str, Any]]:
        row = self._simulations.get(simulation_id)
        return copy.deepcopy(row) if row is not None else None

    async def update_simulation(self, simulation_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._simulations.get(simulation_id)
        if row is None:
            return None
        row.update(copy.deepcopy(updates))
        row["updated_at"] = _now()
        return copy.deepcopy(row)

    async def delete_simulation(self, simulation_id: str) -> bool:
        if self._simulations.pop(simulation_id, None) is None:
            return False
        # Mirror the foreign key cascade
        for session_id in [s["id"] for s in self._sessions.values() if s["simulation_id"] == simulation_id]:
            del self._sessions[session_id]
        return True

    async def list_simulations(
        self,
        is_template: Optional[bool] = None,
        created_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        rows = [
            row for row in self._simulations.values()
            if (is_template is None or bool(row.get("is_template")) == is_template)
            and (not created_by or row.get("created_by") == created_by)
        ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return copy.deepcopy(rows)

    # Sessions

    async def create_session(
        self,
        simulation_id: str,
        student_id: Optional[str] = None,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> Optional[Dict[str, Any]]:
        now = _now()
        row = {
            "id": str(uuid.uuid4()),
            "simulation_id": simulation_id,
            "student_id": student_id,
            "conversation_history": copy.deepcopy(conversation_history or []),
            "director_state": None,
            "state": "active",
            "started_at": now,
            "last_activity_at": now,
            "completed_at": None,
        }
        self._sessions[row["id"]] = row
        return copy.deepcopy(row)

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        row = self._sessions.get(session_id)
        return copy.deepcopy(row) if row is not None else None

    async def update_session(self, session_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._sessions.get(session_id)
        if row is None:
            return None
        row.update(copy.deepcopy(updates))
        row["last_activity_at"] = _now()
        return copy.deepcopy(row)

    async def add_message_to_session(self, session_id: str, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._sessions.get(session_id)
        if row is None:
            return None
        return await self.update_session(
            session_id, {"conversation_history": row["conversation_history"] + [message]}
        )

    async def complete_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self.update_session(session_id, {"state": "completed", "completed_at": _now()})

    async def delete_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def list_sessions_for_simulation(self, simulation_id: str) -> List[Dict[str, Any]]:
        rows = [s for s in self._sessions.values() if s["simulation_id"] == simulation_id]
        rows.sort(key=lambda r: r["started_at"], reverse=True)
        return copy.deepcopy(rows)

    async def list_sessions(
        self,
        student_id: Optional[str] = None,
        state: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        rows = list(self._sessions.values())
        if student_id:
            rows = [s for s in rows if s.get("student_id") == student_id]
        if state:
            rows = [s for s in rows if s.get("state") == state]
        rows.sort(key=lambda r: r["started_at"], reverse=True)
        return copy.deepcopy(rows)

    # Director logs

    async def store_director_log(self, log: Dict[str, Any]) -> Optional[str]:
        row = {
            "id": str(uuid.uuid4()),
            "session_id": log.get("session_id"),
            "simulation_id": log.get("simulation_id"),
            "message_number": log.get("message_number"),
            "analysis": copy.deepcopy(log.get("decision", {})),
            "created_at": log.get("created_at") or _now(),
        }
        self.director_logs.append(row)
        logger.debug(f"[persistence] Stored director log for session {row['session_id']}")
        return row["id"]
