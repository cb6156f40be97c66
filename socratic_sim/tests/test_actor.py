"""
Unit tests for the ActorAgent.

Tests cover:
- Trigger evaluation (keyword and message-count conditions)
- Director guidance reaching the prompt
- System prompt assembly per AI mode
- Conversation history mapping
"""

import pytest

from conftest import ScriptedLLMClient, load_runtime
from socratic_sim.agents import ActorAgent
from socratic_sim.core import Blackboard, MissingInput, OracleFailure, PermissionDenied
from socratic_sim.prompts import PEDAGOGICAL_RULES

BUDGET_TRIGGER = {
    "id": "trigger_budget",
    "title": "Budget pressure",
    "condition": 'When student mentions "budget"',
    "effect": "Mike Chen pushes back on the cost of a full recall",
}


def _director_state(**decision):
    base = {
        "phase": "exploration",
        "student_state": "stuck",
        "action": "continue",
        "intervention": "Ask about the regulators",
        "confidence": 0.7,
    }
    base.update(decision)
    return {
        "phase": base["phase"],
        "student_state": base["student_state"],
        "last_evaluated_message": 3,
        "evaluations": [{"message_number": 3, "decision": base}],
    }


def _actor_blackboard(blueprint, director_state=None) -> Blackboard:
    blackboard = load_runtime(Blackboard(simulation_id="sim-1", session_id="session-1"), blueprint)
    if director_state is not None:
        blackboard.grant("loader", {"writes": ["director_state"]})
        blackboard.write("director_state", director_state, "loader")
    return blackboard


class TestTriggers:
    """Tests for ActorAgent.evaluate_triggers."""

    def test_keyword_trigger_fires_case_insensitive(self):
        fired = ActorAgent.evaluate_triggers([BUDGET_TRIGGER], [], "The BUDGET is tight")
        assert [t.id for t in fired] == ["trigger_budget"]

    def test_keyword_trigger_needs_match(self):
        assert ActorAgent.evaluate_triggers([BUDGET_TRIGGER], [], "We should recall now") == []

    def test_message_count_trigger(self):
        trigger = {"id": "t5", "title": "Late twist", "condition": "After message 5", "effect": "Reveal supplier fraud"}
        history = [{"role": "student", "content": "x"}] * 4

        assert [t.id for t in ActorAgent.evaluate_triggers([trigger], history, "hello")] == ["t5"]
        assert ActorAgent.evaluate_triggers([trigger], history[:3], "hello") == []

    def test_other_conditions_never_fire(self):
        trigger = {"id": "t", "title": "Mood", "condition": "When the student seems anxious", "effect": "Reassure"}
        assert ActorAgent.evaluate_triggers([trigger], [], "I am anxious about this") == []

    def test_judgment_cues_skip_structural_conditions(self):
        mood = {"id": "t", "title": "Mood", "condition": "When the student seems anxious", "effect": "Reassure"}
        late = {"id": "t5", "title": "Late twist", "condition": "After message 5", "effect": "Reveal supplier fraud"}

        cues = ActorAgent.judgment_cues([BUDGET_TRIGGER, late, mood, dict(mood, effect="")])

        assert cues == ["- When the student seems anxious -> Reassure"]

    def test_trigger_without_effect_is_ignored(self):
        trigger = dict(BUDGET_TRIGGER, effect="")
        assert ActorAgent.evaluate_triggers([trigger], [], "budget") == []


class TestActorTurn:
    """Tests for a full Actor turn."""

    @pytest.mark.asyncio
    async def test_trigger_note_in_messages(self, sample_blueprint):
        """A fired trigger adds a TRIGGERS ACTIVATED system note and metadata."""
        blackboard = _actor_blackboard(sample_blueprint)
        llm = ScriptedLLMClient(["What would a partial recall cost you?"])

        response = await ActorAgent(blackboard, llm_client=llm).execute({
            "student_message": "The budget is tight",
            "conversation_history": [],
        })

        assert response["message"] == "What would a partial recall cost you?"
        assert [t["id"] for t in response["metadata"]["triggers_activated"]] == ["trigger_budget"]
        messages = llm.calls[0]["messages"]
        notes = [m["content"] for m in messages if m["role"] == "system"][1:]
        assert any("TRIGGERS ACTIVATED" in note and "Budget pressure" in note for note in notes)
        assert messages[-1] == {"role": "user", "content": "The budget is tight"}
        assert blackboard.read("actor_responses") == response

    @pytest.mark.asyncio
    async def test_judgment_triggers_reach_the_model(self, sample_blueprint):
        """Conditions that cannot be matched structurally are listed as cues in the prompt."""
        sample_blueprint["triggers"].append({
            "id": "trigger_overconfident",
            "title": "Overconfidence",
            "condition": "When the student seems overconfident about the recall decision",
            "effect": "Sarah Johnson questions the data behind the plan",
        })
        blackboard = _actor_blackboard(sample_blueprint)
        llm = ScriptedLLMClient(["Are you sure?"])

        response = await ActorAgent(blackboard, llm_client=llm).execute({"student_message": "Recall is obvious"})

        text = "\n".join(m["content"] for m in llm.calls[0]["messages"])
        assert "When the student seems overconfident about the recall decision" in text
        assert "Sarah Johnson questions the data behind the plan" in text
        assert response["metadata"]["triggers_activated"] == []

    @pytest.mark.asyncio
    async def test_history_mapping(self, sample_blueprint):
        blackboard = _actor_blackboard(sample_blueprint)
        llm = ScriptedLLMClient(["Why?"])
        history = [
            {"role": "ai_advisor", "content": "Welcome"},
            {"role": "student", "content": "Hi"},
            {"role": "system", "content": "internal"},
            {"role": "ai", "content": "Legacy reply"},
        ]

        await ActorAgent(blackboard, llm_client=llm).execute({
            "student_message": "Next",
            "conversation_history": history,
        })

        messages = llm.calls[0]["messages"]
        assert messages[1:] == [
            {"role": "assistant", "content": "Welcome"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Legacy reply"},
            {"role": "user", "content": "Next"},
        ]

    @pytest.mark.asyncio
    async def test_director_note_and_guidance(self, sample_blueprint):
        """The latest Director decision shapes the prompt of the next turn."""
        blackboard = _actor_blackboard(sample_blueprint, _director_state(action="challenge"))
        llm = ScriptedLLMClient(["Hard question"])

        response = await ActorAgent(blackboard, llm_client=llm).execute({"student_message": "Ok"})

        messages = llm.calls[0]["messages"]
        system_prompt = messages[0]["content"]
        assert "DIRECTOR GUIDANCE" in system_prompt
        assert "Ask about the regulators" in system_prompt
        assert "Increase difficulty - ask harder questions" in system_prompt
        assert {"role": "system", "content": "🎬 DIRECTOR NOTE: Ask about the regulators"} in messages
        assert response["metadata"]["director_interventions"] == [
            "Ask about the regulators",
            "Increase difficulty - ask harder questions",
        ]

    @pytest.mark.asyncio
    async def test_default_intervention_adds_no_note(self, sample_blueprint):
        blackboard = _actor_blackboard(sample_blueprint, _director_state(intervention="Continue current approach"))
        llm = ScriptedLLMClient(["Hmm?"])

        await ActorAgent(blackboard, llm_client=llm).execute({"student_message": "Ok"})

        messages = llm.calls[0]["messages"]
        assert not any("DIRECTOR NOTE" in m["content"] for m in messages)
        assert "DIRECTOR GUIDANCE" not in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_encounter_guidance(self, sample_blueprint):
        state = _director_state(action="encounter", suggested_encounters=["e2", "e3"])
        blackboard = _actor_blackboard(sample_blueprint, state)
        llm = ScriptedLLMClient(["..."])

        response = await ActorAgent(blackboard, llm_client=llm).execute({"student_message": "Ok"})
        assert "Consider introducing encounter: e2" in response["metadata"]["director_interventions"]

    @pytest.mark.asyncio
    async def test_requires_student_message(self, sample_blueprint):
        blackboard = _actor_blackboard(sample_blueprint)
        with pytest.raises(MissingInput):
            await ActorAgent(blackboard, llm_client=ScriptedLLMClient()).execute({"student_message": ""})

    @pytest.mark.asyncio
    async def test_requires_blueprint(self, blackboard):
        with pytest.raises(MissingInput):
            await ActorAgent(blackboard, llm_client=ScriptedLLMClient()).execute({"student_message": "Hi"})

    @pytest.mark.asyncio
    async def test_llm_failure_is_fatal(self, sample_blueprint):
        blackboard = _actor_blackboard(sample_blueprint)
        llm = ScriptedLLMClient([RuntimeError("provider down")])

        with pytest.raises(OracleFailure):
            await ActorAgent(blackboard, llm_client=llm).execute({"student_message": "Hi"})
        assert not blackboard.exists("actor_responses")

    @pytest.mark.asyncio
    async def test_cannot_write_director_state(self, sample_blueprint):
        actor = ActorAgent(_actor_blackboard(sample_blueprint), llm_client=ScriptedLLMClient())
        with pytest.raises(PermissionDenied):
            actor.write("director_state", {})


class TestSystemPrompt:
    """Tests for ActorAgent.build_system_prompt."""

    def _prompt(self, blueprint, interventions=None):
        actor = ActorAgent(_actor_blackboard(blueprint), llm_client=ScriptedLLMClient())
        return actor.build_system_prompt(blueprint, interventions or [])

    def test_core_sections(self, sample_blueprint):
        prompt = self._prompt(sample_blueprint)

        assert "TechCorp must decide whether to recall a faulty product." in prompt
        assert "STUDENT ROLE: Product Manager" in prompt
        assert "Sarah Johnson (CEO)" in prompt
        assert "LEARNING OBJECTIVES:\n- Weigh safety against cost" in prompt
        assert "SOCRATIC METHOD RULES:\n- No answers: Never hand the student a decision" in prompt
        assert "AI BEHAVIOR MODE: CHALLENGER" in prompt
        assert "COMPLEXITY: escalating" in prompt
        assert PEDAGOGICAL_RULES in prompt

    def test_student_role_is_not_embodied(self, sample_blueprint):
        prompt = self._prompt(sample_blueprint)
        characters = prompt.split("AI CHARACTERS YOU EMBODY:")[1].split("LEARNING OBJECTIVES")[0]
        assert "Product Manager" not in characters

    def test_custom_mode_without_instructions_keeps_socratic_rules(self, sample_blueprint):
        """Custom mode with no instructions still carries the pedagogical contract."""
        sample_blueprint["actor_settings"] = {"ai_mode": "custom"}
        prompt = self._prompt(sample_blueprint)

        assert "AI BEHAVIOR MODE: CUSTOM" in prompt
        assert "NEVER provide direct answers or solutions" in prompt
        assert PEDAGOGICAL_RULES in prompt

    def test_custom_mode_with_instructions(self, sample_blueprint):
        sample_blueprint["actor_settings"] = {"ai_mode": "custom", "custom_instructions": "Speak like a pirate"}
        prompt = self._prompt(sample_blueprint)

        assert "AI BEHAVIOR MODE: CUSTOM\nSpeak like a pirate" in prompt
        assert PEDAGOGICAL_RULES in prompt

    @pytest.mark.parametrize("mode", ["challenger", "coach", "expert", "adaptive"])
    def test_every_mode_keeps_socratic_rules(self, sample_blueprint, mode):
        sample_blueprint["actor_settings"] = {"ai_mode": mode}
        assert PEDAGOGICAL_RULES in self._prompt(sample_blueprint)

    def test_linear_complexity_has_no_guidance(self, sample_blueprint):
        sample_blueprint["actor_settings"] = {"complexity": "linear"}
        prompt = self._prompt(sample_blueprint)
        assert "COMPLEXITY: linear\n" in prompt
        assert "Start with simpler challenges" not in prompt

    def test_document_context(self, sample_blueprint):
        sample_blueprint["actor_settings"] = {
            "document_name": "recall-memo.pdf",
            "document_instructions": "Focus on section 2",
        }
        prompt = self._prompt(sample_blueprint)
        assert "SOURCE DOCUMENT: recall-memo.pdf\nDocument Context: Focus on section 2" in prompt

    def test_persona_details_from_actor_and_encounters(self, sample_blueprint):
        sample_blueprint["actors"][1].update({
            "personality_mode": "challenging",
            "hidden_info": ["Knows about a supplier defect"],
            "loyalties": {"supports": ["Finance"], "opposes": ["Marketing"]},
        })
        sample_blueprint["encounters"][0]["priorities"] = ["Protect margins", "Avoid layoffs"]
        prompt = self._prompt(sample_blueprint)

        assert "Mike Chen (VP) - challenging personality" in prompt
        assert "Hidden Information (reveal strategically when relevant):\n    - Knows about a supplier defect" in prompt
        assert "Supports: Finance" in prompt
        assert "Opposes: Marketing" in prompt
        assert "1. Protect margins" in prompt
        assert "2. Avoid layoffs" in prompt

    def test_goals_used_when_no_objectives(self, sample_blueprint):
        sample_blueprint["objectives"] = []
        prompt = self._prompt(sample_blueprint)
        assert "- Stakeholder analysis: Identify the stakeholders affected by the recall" in prompt
