"""
Pytest configuration and fixtures for simulation tests.

This module provides:
- Network blocking fixture to prevent accidental API calls in CI
- A scripted LLM client standing in for the completion oracle
- Canned parser/SAG responses and a finalized blueprint
"""

import json
import socket
from collections import defaultdict
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest

from socratic_sim.agents import LLMClient
from socratic_sim.core import Blackboard, SimulationPhase


class NetworkBlockedError(Exception):
    """Raised when a test attempts to make a network connection."""
    pass


def _block_socket_connect(*args, **kwargs):
    """Block all socket connections to prevent accidental API calls."""
    raise NetworkBlockedError(
        "Network access is blocked in unit tests. "
        "If you need to test network functionality, use mocks. "
        "This prevents accidental OpenAI/Anthropic API calls that cost money."
    )


@pytest.fixture(autouse=True)
def block_network():
    """
    Automatically block all network connections in tests.

    Applied to ALL tests (autouse=True) so no test can reach a real LLM
    provider or Supabase.
    """
    with patch.object(socket.socket, 'connect', _block_socket_connect):
        with patch.object(socket, 'create_connection', _block_socket_connect):
            yield


class ScriptedLLMClient(LLMClient):
    """
    LLM client returning canned replies in order.

    Dict replies are serialized to JSON; Exception instances are raised.
    Once the script runs out, ``default`` is returned (or an error raised
    when there is none). Every call's arguments are recorded in ``calls``.
    """

    def __init__(self, responses: Optional[List[Any]] = None, default: Any = None):
        super().__init__(model="scripted-model")
        self.responses = list(responses or [])
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        messages,
        model=None,
        temperature=0.7,
        max_tokens=None,
        json_response=False,
    ) -> str:
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_response": json_response,
        })
        if self.responses:
            reply = self.responses.pop(0)
        elif self.default is not None:
            reply = self.default
        else:
            raise RuntimeError("ScriptedLLMClient has no more responses")

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return reply


SCENARIO_TEXT = (
    "TechCorp faces a product recall decision. CEO Sarah Johnson and VP Mike Chen "
    "disagree. 30 days, $50M at stake."
)


def parsed_response() -> Dict[str, Any]:
    return {
        "scenario_type": "crisis",
        "industry": "technology",
        "context": {
            "company_name": "TechCorp",
            "situation": "TechCorp must decide whether to recall a faulty product.",
            "timeframe": "30 days",
            "stakes": "$50M",
        },
        "actors": [
            {"role": "CEO", "name": "Sarah Johnson", "description": "Wants to protect the brand"},
            {"role": "VP", "name": "Mike Chen", "description": "Worried about the cost of a recall"},
        ],
        "constraints": ["30 day deadline", "$50M budget exposure"],
        "objectives": ["Weigh safety against cost"],
        "key_challenges": ["Conflicting executive opinions"],
    }


def outline_response() -> Dict[str, Any]:
    return {
        "scenario_id": "techcorp-recall",
        "title": "TechCorp Recall Decision",
        "description": "Decide whether TechCorp should recall its product.",
        "goals": [
            {
                "id": "goal_1",
                "title": "Stakeholder analysis",
                "description": "Identify the stakeholders affected by the recall",
                "success_criteria": ["Names customers, regulators and investors"],
                "required_evidence": ["Student lists at least three stakeholders"],
                "progress_tracking": {"milestones": ["names one stakeholder"]},
            },
            {
                "id": "goal_2",
                "title": "Trade-off reasoning",
                "description": "Weigh safety risk against financial cost",
                "success_criteria": ["Quantifies both risks"],
            },
        ],
        "rules": [
            {"id": "rule_1", "title": "No answers", "description": "Never hand the student a decision"},
        ],
        "triggers": [
            {
                "id": "trigger_budget",
                "title": "Budget pressure",
                "condition": 'When student mentions "budget"',
                "effect": "Mike Chen pushes back on the cost of a full recall",
            },
        ],
        "encounters": [
            {"id": "e1", "actor_role": "VP", "purpose": "Argue for a partial recall"},
            {"id": "e2", "actor_role": "CEO", "purpose": "Question brand impact"},
            {"id": "e3", "actor_role": "VP", "purpose": "Reveal a supplier issue"},
        ],
        "lessons": [{"id": "lesson_1", "concept": "Stakeholder theory"}],
        "tests": [{"id": "test_1", "goal_id": "goal_1"}],
    }


def director_response(**overrides: Any) -> Dict[str, Any]:
    response = {
        "phase": "exploration",
        "student_state": "engaged",
        "action": "continue",
        "intervention": "Ask about the regulators",
        "goal_progress": ["goal_1"],
        "confidence": 0.8,
        "reasoning": "Student is exploring stakeholders",
    }
    response.update(overrides)
    return response


ACTOR_REPLY = "What would the regulators say about a partial recall?"


class ClientFactory:
    """Hands every agent a fresh scripted client and remembers them by agent name."""

    def __init__(self, **scripts: List[Any]):
        self.defaults = {
            "parser": parsed_response(),
            "sag": outline_response(),
            "actor": ACTOR_REPLY,
            "director": director_response(),
            "setup_parser": {"actors": [], "scenario_type": "negotiation"},
        }
        self.scripts = scripts
        self.clients: Dict[str, List[ScriptedLLMClient]] = defaultdict(list)

    def __call__(self, agent_name: str) -> ScriptedLLMClient:
        client = ScriptedLLMClient(list(self.scripts.get(agent_name, [])), default=self.defaults[agent_name])
        self.clients[agent_name].append(client)
        return client

    def calls(self, agent_name: str) -> List[Dict[str, Any]]:
        return [call for client in self.clients[agent_name] for call in client.calls]


@pytest.fixture
def scenario_text() -> str:
    return SCENARIO_TEXT


@pytest.fixture
def blackboard() -> Blackboard:
    return Blackboard(simulation_id="sim-1", session_id="session-1")


@pytest.fixture
def sample_blueprint() -> Dict[str, Any]:
    """A finalized blueprint as the Finalizer would store it."""
    outline = outline_response()
    return {
        "scenario_id": outline["scenario_id"],
        "title": outline["title"],
        "description": outline["description"],
        "scenario_text": "TechCorp must decide whether to recall a faulty product.",
        "actors": [
            {"name": "Sarah Johnson", "role": "CEO", "description": "Wants to protect the brand"},
            {"name": "Mike Chen", "role": "VP", "description": "Worried about cost"},
            {"name": "Student", "role": "Product Manager", "is_student_role": True},
        ],
        "goals": outline["goals"],
        "rules": outline["rules"],
        "triggers": outline["triggers"],
        "encounters": outline["encounters"],
        "lessons": outline["lessons"],
        "tests": outline["tests"],
        "objectives": ["Weigh safety against cost"],
        "director_settings": {"evaluation_frequency": 3, "narrative_freedom": 0.7},
        "actor_settings": {"ai_mode": "challenger", "complexity": "escalating"},
        "context": {},
        "metadata": {"finalized_by": "finalizer"},
        "immutable": True,
    }


def load_runtime(blackboard: Blackboard, blueprint: Dict[str, Any]) -> Blackboard:
    """Advance a blackboard to RUNTIME with the blueprint loaded."""
    blackboard.transition(SimulationPhase.REVIEWING)
    blackboard.transition(SimulationPhase.FINALIZED)
    blackboard.grant("loader", {"writes": ["simulation_blueprint"]})
    blackboard.write("simulation_blueprint", blueprint, "loader")
    blackboard.transition(SimulationPhase.RUNTIME)
    return blackboard


@pytest.fixture
def runtime_blackboard(blackboard, sample_blueprint) -> Blackboard:
    return load_runtime(blackboard, sample_blueprint)
