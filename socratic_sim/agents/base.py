"""
Base Agent Implementation for the simulation core
Provides the LLM oracle clients and the blackboard-bound agent contract.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..config import LLMConfiguration, LLMProvider
from ..core.blackboard import Blackboard
from ..core.errors import OracleFailure, ParseError

logger = logging.getLogger("socratic_sim.agents")

Message = Dict[str, str]


def extract_json(text: str) -> Any:
    """
    Parse JSON from an LLM reply.

    Tries a direct parse, then fenced code blocks, then the first decodable
    object or array in the text. Raises ParseError when nothing parses.
    """
    if not text or not text.strip():
        raise ParseError("Empty response from language model", text or "")

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"[extract_json] Direct parse failed: {e}")

    for pattern in ["```json", "```JSON", "```"]:
        if pattern in text:
            parts = text.split(pattern)
            if len(parts) >= 2:
                candidate = parts[1].split("```")[0].strip()
                try:
                    return json.loads(candidate)
                except json.JSONDecodeError as e:
                    logger.debug(f"[extract_json] Code block parse failed for '{pattern}': {e}")

    decoder = json.JSONDecoder()
    for start_char in ["{", "["]:
        start_idx = text.find(start_char)
        if start_idx >= 0:
            try:
                result, _ = decoder.raw_decode(text[start_idx:])
                return result
            except json.JSONDecodeError as e:
                logger.debug(f"[extract_json] raw_decode failed for '{start_char}': {e}")

    raise ParseError("Language model response is not valid JSON", text)


class LLMClient(ABC):
    """Abstract completion oracle."""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_response: bool = False,
    ) -> str:
        """Return the assistant text for a chat message list."""
        pass

    async def complete_json(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Return a JSON object; raises ParseError on unparseable output."""
        content = await self.complete(
            messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            json_response=True,
        )
        result = extract_json(content)
        if not isinstance(result, dict):
            raise ParseError(f"Expected a JSON object, got {type(result).__name__}", content)
        return result


class OpenAIClient(LLMClient):
    """OpenAI API client implementation (also used for OpenRouter)."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        max_retries: int = 2,
        timeout: float = 60.0,
    ):
        super().__init__(model)
        self.api_key = api_key
        self.base_url = base_url
        self.max_retries = max_retries
        self.timeout = timeout
        self._client = None

    async def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=self.max_retries,
                timeout=self.timeout,
            )
        return self._client

    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_response: bool = False,
    ) -> str:
        client = await self._get_client()
        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_response:
            kwargs["response_format"] = {"type": "json_object"}
        response = await client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""


class ClaudeClient(LLMClient):
    """Anthropic Claude API client implementation."""

    def __init__(self, api_key: str, model: str, max_retries: int = 2, timeout: float = 60.0):
        super().__init__(model)
        self.api_key = api_key
        self.max_retries = max_retries
        self.timeout = timeout
        self._client = None

    async def _get_client(self):
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(
                api_key=self.api_key,
                max_retries=self.max_retries,
                timeout=self.timeout,
            )
        return self._client

    @staticmethod
    def _split_messages(messages: List[Message]) -> tuple:
        """Leading system text goes to `system`; later system notes become user turns."""
        system_parts: List[str] = []
        turns: List[Message] = []
        for message in messages:
            role = message.get("role")
            content = message.get("content", "")
            if role == "system" and not turns:
                system_parts.append(content)
                continue
            if role == "system":
                role, content = "user", f"[Note]\n{content}"
            if turns and turns[-1]["role"] == role:
                turns[-1] = {"role": role, "content": f"{turns[-1]['content']}\n\n{content}"}
            else:
                turns.append({"role": role, "content": content})
        if not turns or turns[0]["role"] != "user":
            turns.insert(0, {"role": "user", "content": "Begin."})
        return "\n\n".join(system_parts), turns

    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_response: bool = False,
    ) -> str:
        client = await self._get_client()
        system, turns = self._split_messages(messages)
        if json_response:
            # Add JSON instruction to system prompt
            system = f"{system}\n\nYou MUST respond with valid JSON only, no other text."
        response = await client.messages.create(
            model=model or self.model,
            max_tokens=max_tokens or 4096,
            system=system,
            messages=turns,
            temperature=temperature,
        )
        return response.content[0].text


class GeminiClient(LLMClient):
    """Google Gemini API client implementation."""

    def __init__(self, api_key: str, model: str):
        super().__init__(model)
        self.api_key = api_key
        self._clients: Dict[str, Any] = {}

    async def _get_client(self, model: str):
        if model not in self._clients:
            import google.generativeai as genai
            genai.configure(api_key=self.api_key)
            self._clients[model] = genai.GenerativeModel(model)
        return self._clients[model]

    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_response: bool = False,
    ) -> str:
        client = await self._get_client(model or self.model)
        transcript = "\n\n---\n\n".join(
            f"[{m.get('role', 'user').upper()}]\n{m.get('content', '')}" for m in messages
        )
        generation_config: Dict[str, Any] = {"temperature": temperature}
        if max_tokens:
            generation_config["max_output_tokens"] = max_tokens
        if json_response:
            generation_config["response_mime_type"] = "application/json"
        response = await client.generate_content_async(transcript, generation_config=generation_config)
        return response.text


def create_llm_client(
    provider: LLMProvider,
    config: LLMConfiguration,
    model: str,
) -> LLMClient:
    """Factory function to create appropriate LLM client."""

    if provider == LLMProvider.OPENAI:
        if not config.openai:
            raise ValueError("OpenAI configuration not provided")
        return OpenAIClient(
            api_key=config.openai.api_key.get_secret_value(),
            model=model,
            base_url=config.openai.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout_seconds,
        )

    elif provider == LLMProvider.OPENROUTER:
        if not config.openrouter:
            raise ValueError("OpenRouter configuration not provided")
        return OpenAIClient(  # OpenRouter uses OpenAI-compatible API
            api_key=config.openrouter.api_key.get_secret_value(),
            model=model,
            base_url=config.openrouter.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout_seconds,
        )

    elif provider == LLMProvider.CLAUDE:
        if not config.claude:
            raise ValueError("Claude configuration not provided")
        return ClaudeClient(
            api_key=config.claude.api_key.get_secret_value(),
            model=model,
            max_retries=config.max_retries,
            timeout=config.timeout_seconds,
        )

    elif provider == LLMProvider.GEMINI:
        if not config.gemini:
            raise ValueError("Gemini configuration not provided")
        return GeminiClient(
            api_key=config.gemini.api_key.get_secret_value(),
            model=model,
        )

    else:
        raise ValueError(f"Unsupported provider: {provider}")


class BaseAgent(ABC):
    """
    Base class for all simulation agents.

    An agent has an identity used for capability checks and audit
    attribution, a blackboard handle whose wrappers inject that identity,
    and its own LLM client so prompts never leak between agents. Agents keep
    no state between executions; everything persistent lives on the
    blackboard.
    """

    default_agent_id = "agent"

    def __init__(
        self,
        blackboard: Blackboard,
        llm_client: Optional[LLMClient] = None,
        agent_id: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: float = 60.0,
    ):
        self.agent_id = agent_id or self.default_agent_id
        self.blackboard = blackboard
        self.llm_client = llm_client
        self.model = model
        self.timeout_seconds = timeout_seconds

    # Blackboard wrappers

    def read(self, key: str) -> Any:
        return self.blackboard.read(key)

    def exists(self, key: str) -> bool:
        return self.blackboard.exists(key)

    def write(self, key: str, value: Any) -> None:
        self.blackboard.write(key, value, self.agent_id)

    def delete(self, key: str) -> bool:
        return self.blackboard.delete(key, self.agent_id)

    def broadcast(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.blackboard.broadcast(event, data, agent_id=self.agent_id)

    # LLM oracle

    async def llm_complete(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Free-text completion with a deadline; failures become OracleFailure."""
        return await self._call_oracle(messages, temperature, max_tokens, json_mode=False)

    async def llm_complete_json(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """JSON completion; unparseable output raises ParseError."""
        return await self._call_oracle(messages, temperature, max_tokens, json_mode=True)

    async def _call_oracle(
        self,
        messages: List[Message],
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
    ) -> Any:
        if self.llm_client is None:
            raise OracleFailure(f"Agent '{self.agent_id}' has no LLM client configured")

        start_time = time.time()
        call = self.llm_client.complete_json if json_mode else self.llm_client.complete
        try:
            result = await asyncio.wait_for(
                call(messages, model=self.model, temperature=temperature, max_tokens=max_tokens),
                timeout=self.timeout_seconds,
            )
        except OracleFailure:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"[{self.agent_id}] LLM call timed out after {self.timeout_seconds}s")
            raise OracleFailure(f"LLM call timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.warning(f"[{self.agent_id}] LLM call failed: {e}")
            raise OracleFailure(f"LLM call failed: {e}") from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"[{self.agent_id}] LLM call model='{self.model or self.llm_client.model}' "
            f"json={json_mode} duration_ms={duration_ms}"
        )
        return result

    @abstractmethod
    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one unit of work against the blackboard."""
        pass
