"""
Unit tests for the persistence services.

The Supabase service is exercised with a mocked client; its query builder
chain returns itself so each call can be inspected.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from socratic_sim.services import InMemoryPersistenceService, SupabasePersistenceService


def _mock_table(data):
    """A query builder whose chained calls all return the builder."""
    table = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "limit", "order"):
        getattr(table, method).return_value = table
    table.execute.return_value = SimpleNamespace(data=data)
    return table


def _connected_service(table) -> SupabasePersistenceService:
    service = SupabasePersistenceService(supabase_url="https://example.supabase.co", supabase_key="key")
    service.client = MagicMock()
    service.client.table.return_value = table
    service._connected = True
    return service


class TestInMemoryPersistence:
    @pytest.mark.asyncio
    async def test_simulation_crud(self):
        store = InMemoryPersistenceService()
        row = await store.create_simulation({"name": "A", "scenario_text": "text"})

        assert row["id"]
        assert row["is_template"] is False
        row["name"] = "mutated"
        assert (await store.get_simulation(row["id"]))["name"] == "A"

        updated = await store.update_simulation(row["id"], {"name": "B"})
        assert updated["name"] == "B"
        assert await store.update_simulation("missing", {"name": "x"}) is None

        assert await store.delete_simulation(row["id"]) is True
        assert await store.delete_simulation(row["id"]) is False

    @pytest.mark.asyncio
    async def test_sessions(self):
        store = InMemoryPersistenceService()
        simulation = await store.create_simulation({"name": "A"})
        session = await store.create_session(simulation["id"], student_id="student-1")

        assert session["state"] == "active"
        assert session["conversation_history"] == []

        await store.add_message_to_session(session["id"], {"role": "student", "content": "Hi"})
        completed = await store.complete_session(session["id"])

        assert completed["conversation_history"] == [{"role": "student", "content": "Hi"}]
        assert completed["state"] == "completed"
        assert completed["completed_at"] is not None
        assert [s["id"] for s in await store.list_sessions_for_simulation(simulation["id"])] == [session["id"]]
        assert await store.add_message_to_session("missing", {}) is None

    @pytest.mark.asyncio
    async def test_list_sessions_filters(self):
        store = InMemoryPersistenceService()
        simulation = await store.create_simulation({"name": "A"})
        first = await store.create_session(simulation["id"], student_id="student-1")
        await store.create_session(simulation["id"], student_id="student-2")
        await store.complete_session(first["id"])

        assert len(await store.list_sessions()) == 2
        assert [s["id"] for s in await store.list_sessions(student_id="student-1")] == [first["id"]]
        assert [s["student_id"] for s in await store.list_sessions(state="active")] == ["student-2"]

    @pytest.mark.asyncio
    async def test_delete_simulation_cascades(self):
        store = InMemoryPersistenceService()
        simulation = await store.create_simulation({"name": "A"})
        session = await store.create_session(simulation["id"])

        await store.delete_simulation(simulation["id"])

        assert await store.get_session(session["id"]) is None

    @pytest.mark.asyncio
    async def test_list_filters(self):
        store = InMemoryPersistenceService()
        await store.create_simulation({"name": "A", "created_by": "prof-1"})
        await store.create_simulation({"name": "B", "is_template": True})

        assert [s["name"] for s in await store.list_simulations(is_template=True)] == ["B"]
        assert [s["name"] for s in await store.list_simulations(is_template=False)] == ["A"]
        assert [s["name"] for s in await store.list_simulations(created_by="prof-1")] == ["A"]

    @pytest.mark.asyncio
    async def test_director_log(self):
        store = InMemoryPersistenceService()
        log_id = await store.store_director_log({
            "session_id": "s1",
            "simulation_id": "sim-1",
            "message_number": 3,
            "decision": {"action": "continue"},
        })

        assert store.director_logs[0]["id"] == log_id
        assert store.director_logs[0]["analysis"] == {"action": "continue"}


class TestSupabasePersistence:
    @pytest.mark.asyncio
    async def test_not_connected_is_a_noop(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
        service = SupabasePersistenceService()

        assert await service.connect() is False
        assert service.is_connected is False
        assert await service.get_simulation("sim-1") is None
        assert await service.list_simulations() == []
        assert await service.delete_session("s1") is False
        assert await service.store_director_log({}) is None

    @pytest.mark.asyncio
    async def test_get_simulation(self):
        table = _mock_table([{"id": "sim-1", "name": "A"}])
        service = _connected_service(table)

        assert await service.get_simulation("sim-1") == {"id": "sim-1", "name": "A"}
        service.client.table.assert_called_with("simulations")
        table.eq.assert_called_with("id", "sim-1")
        table.limit.assert_called_with(1)

    @pytest.mark.asyncio
    async def test_list_simulations_filters(self):
        table = _mock_table([])
        service = _connected_service(table)

        await service.list_simulations(is_template=True, created_by="prof-1")

        table.eq.assert_any_call("is_template", True)
        table.eq.assert_any_call("created_by", "prof-1")
        table.order.assert_called_with("created_at", desc=True)

    @pytest.mark.asyncio
    async def test_list_sessions_filters(self):
        table = _mock_table([{"id": "s1"}])
        service = _connected_service(table)

        assert await service.list_sessions(student_id="student-1", state="completed") == [{"id": "s1"}]
        table.eq.assert_any_call("student_id", "student-1")
        table.eq.assert_any_call("state", "completed")
        table.order.assert_called_with("started_at", desc=True)
        service.client.table.assert_called_with("simulation_sessions")

    @pytest.mark.asyncio
    async def test_update_session_stamps_activity(self):
        table = _mock_table([{"id": "s1"}])
        service = _connected_service(table)

        await service.update_session("s1", {"director_state": {"phase": "intro"}})

        data = table.update.call_args.args[0]
        assert data["director_state"] == {"phase": "intro"}
        assert "last_activity_at" in data
        service.client.table.assert_called_with("simulation_sessions")

    @pytest.mark.asyncio
    async def test_store_director_log_maps_decision(self):
        table = _mock_table([{"id": "log-1"}])
        service = _connected_service(table)

        log_id = await service.store_director_log({
            "session_id": "s1",
            "simulation_id": "sim-1",
            "message_number": 6,
            "decision": {"action": "challenge"},
        })

        assert log_id == "log-1"
        data = table.insert.call_args.args[0]
        assert data["analysis"] == {"action": "challenge"}
        assert data["message_number"] == 6
        service.client.table.assert_called_with("director_logs")

    @pytest.mark.asyncio
    async def test_errors_are_logged_not_raised(self):
        table = _mock_table([])
        table.execute.side_effect = RuntimeError("network down")
        service = _connected_service(table)

        assert await service.create_simulation({"name": "A"}) is None
        assert await service.delete_simulation("sim-1") is False
        assert await service.list_sessions_for_simulation("sim-1") == []
