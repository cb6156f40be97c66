"""
Supabase Persistence Service for simulations

Stores simulations (scenario text, parameters and the finalized blueprint),
student sessions (conversation history and director state) and director
evaluation logs in Supabase.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger("socratic_sim.persistence")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabasePersistenceService:
    """Service for persisting simulations and sessions to Supabase."""

    def __init__(self, supabase_url: Optional[str] = None, supabase_key: Optional[str] = None):
        """
        Initialize the Supabase persistence service.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase service role key (for server-side operations)
        """
        self.supabase_url = supabase_url or os.getenv("SUPABASE_URL")
        self.supabase_key = supabase_key or os.getenv("SUPABASE_SERVICE_KEY")
        self.client = None
        self._connected = False

    async def connect(self) -> bool:
        """
        Connect to Supabase.

        Returns:
            True if connection successful, False otherwise
        """
        if not self.supabase_url or not self.supabase_key:
            return False

        try:
            from supabase import Client, create_client
            self.client: Client = create_client(self.supabase_url, self.supabase_key)
            self._connected = True
            logger.info("[persistence] Connected to Supabase")
            return True
        except Exception as e:
            logger.error(f"[persistence] Failed to connect to Supabase: {e}")
            self._connected = False
            return False

    @property
    def is_connected(self) -> bool:
        """Check if connected to Supabase."""
        return self._connected and self.client is not None

    # ========================================================================
    # Simulations
    # ========================================================================

    async def create_simulation(self, simulation: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Insert a simulation row.

        Args:
            simulation: Row data (name, scenario_text, actors, objectives,
                parameters, blueprint, is_template, created_by)

        Returns:
            The stored row, or None on failure
        """
        if not self.is_connected:
            return None

        try:
            result = self.client.table("simulations").insert(simulation).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to create simulation: {e}")
            return None

    async def get_simulation(self, simulation_id: str) -> Optional[Dict[str, Any]]:
        if not self.is_connected:
            return None

        try:
            result = (
                self.client.table("simulations")
                .select("*")
                .eq("id", simulation_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to get simulation {simulation_id}: {e}")
            return None

    async def update_simulation(self, simulation_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.is_connected:
            return None

        try:
            data = {**updates, "updated_at": _now()}
            result = self.client.table("simulations").update(data).eq("id", simulation_id).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to update simulation {simulation_id}: {e}")
            return None

    async def delete_simulation(self, simulation_id: str) -> bool:
        """Delete a simulation; its sessions are removed by the foreign key cascade."""
        if not self.is_connected:
            return False

        try:
            self.client.table("simulations").delete().eq("id", simulation_id).execute()
            return True
        except Exception as e:
            logger.error(f"[persistence] Failed to delete simulation {simulation_id}: {e}")
            return False

    async def list_simulations(
        self,
        is_template: Optional[bool] = None,
        created_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List simulations, newest first.

        Args:
            is_template: Only templates (True) or only non-templates (False)
            created_by: Only simulations created by this user

        Returns:
            List of simulation rows
        """
        if not self.is_connected:
            return []

        try:
            query = self.client.table("simulations").select("*")
            if is_template is not None:
                query = query.eq("is_template", is_template)
            if created_by:
                query = query.eq("created_by", created_by)
            result = query.order("created_at", desc=True).execute()
            return result.data or []
        except Exception as e:
            logger.error(f"[persistence] Failed to list simulations: {e}")
            return []

    # ========================================================================
    # Sessions
    # ========================================================================

    async def create_session(
        self,
        simulation_id: str,
        student_id: Optional[str] = None,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> Optional[Dict[str, Any]]:
        if not self.is_connected:
            return None

        try:
            data = {
                "simulation_id": simulation_id,
                "student_id": student_id,
                "conversation_history": conversation_history or [],
                "state": "active",
            }
            result = self.client.table("simulation_sessions").insert(data).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to create session for {simulation_id}: {e}")
            return None

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        if not self.is_connected:
            return None

        try:
            result = (
                self.client.table("simulation_sessions")
                .select("*")
                .eq("id", session_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to get session {session_id}: {e}")
            return None

    async def update_session(self, session_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.is_connected:
            return None

        try:
            data = {**updates, "last_activity_at": _now()}
            result = self.client.table("simulation_sessions").update(data).eq("id", session_id).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to update session {session_id}: {e}")
            return None

    async def add_message_to_session(self, session_id: str, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Append one entry to a session's conversation history."""
        session = await self.get_session(session_id)
        if session is None:
            return None
        history = list(session.get("conversation_history") or [])
        history.append(message)
        return await self.update_session(session_id, {"conversation_history": history})

    async def complete_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self.update_session(session_id, {"state": "completed", "completed_at": _now()})

    async def delete_session(self, session_id: str) -> bool:
        if not self.is_connected:
            return False

        try:
            self.client.table("simulation_sessions").delete().eq("id", session_id).execute()
            return True
        except Exception as e:
            logger.error(f"[persistence] Failed to delete session {session_id}: {e}")
            return False

    async def list_sessions_for_simulation(self, simulation_id: str) -> List[Dict[str, Any]]:
        if not self.is_connected:
            return []

        try:
            result = (
                self.client.table("simulation_sessions")
                .select("*")
                .eq("simulation_id", simulation_id)
                .order("started_at", desc=True)
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error(f"[persistence] Failed to list sessions for {simulation_id}: {e}")
            return []

    async def list_sessions(
        self,
        student_id: Optional[str] = None,
        state: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List sessions across simulations, newest first."""
        if not self.is_connected:
            return []

        try:
            query = self.client.table("simulation_sessions").select("*")
            if student_id:
                query = query.eq("student_id", student_id)
            if state:
                query = query.eq("state", state)
            result = query.order("started_at", desc=True).execute()
            return result.data or []
        except Exception as e:
            logger.error(f"[persistence] Failed to list sessions: {e}")
            return []

    # ========================================================================
    # Director logs
    # ========================================================================

    async def store_director_log(self, log: Dict[str, Any]) -> Optional[str]:
        """
        Store one Director evaluation.

        Args:
            log: {session_id, simulation_id, message_number, decision, created_at}

        Returns:
            ID of the created log row
        """
        if not self.is_connected:
            return None

        try:
            data = {
                "session_id": log.get("session_id"),
                "simulation_id": log.get("simulation_id"),
                "message_number": log.get("message_number"),
                "analysis": log.get("decision", {}),
                "created_at": log.get("created_at") or _now(),
            }
            result = self.client.table("director_logs").insert(data).execute()
            return result.data[0]["id"] if result.data else None
        except Exception as e:
            logger.error(f"[persistence] Failed to store director log: {e}")
            return None
