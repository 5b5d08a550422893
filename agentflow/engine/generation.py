"""
Generation Backend

Turns a composed request (node instructions, retrieved context, user input)
into either a text reply or a structured function call.

Function calls use a JSON protocol: permitted functions are listed in the
system prompt and the model answers with

    {"function_call": {"name": "<function>", "arguments": {...}}}

when it wants one dispatched. Anything else is treated as plain text.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from ..common.errors import GenerationUnavailable
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from .functions import FunctionSpec

logger = logging.getLogger("agentflow.engine.generation")

NO_RESPONSE_REPLY = "Sorry, I have no response."

FUNCTION_CALL_PROMPT = """You can call the following functions:
{functions}

To call a function, respond with ONLY this JSON and nothing else:
{{"function_call": {{"name": "<function name>", "arguments": {{...}}}}}}

Otherwise respond to the user in plain text."""


@dataclass
class GenerationRequest:
    """Everything the backend needs for one turn"""
    system_instructions: str
    user_message: str
    retrieved_context: List[str] = field(default_factory=list)
    functions: List[FunctionSpec] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class FunctionCallReply:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


GenerationResult = Union[TextReply, FunctionCallReply]


class GenerationBackend(ABC):
    """
    Produces a reply for a request.

    Implementations are synchronous; the engine runs them in a worker thread
    under its own timeout. Failures must be raised as GenerationUnavailable.
    """

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResult:
        pass


def build_user_prompt(request: GenerationRequest) -> str:
    """User's query followed by the distinct retrieved passages"""
    prompt = f"User's query:\n{request.user_message}"
    if request.retrieved_context:
        prompt += "\nRelevant Context:\n" + "\n".join(request.retrieved_context)
    return prompt


def build_system_prompt(request: GenerationRequest) -> str:
    parts = [request.system_instructions]
    if request.context:
        parts.append("Known facts about the user:\n" + json.dumps(request.context, indent=2, default=str))
    if request.functions:
        listing = "\n".join(
            f"- {spec.name}: {spec.description} Parameters: {json.dumps(spec.parameters)}"
            for spec in request.functions
        )
        parts.append(FUNCTION_CALL_PROMPT.format(functions=listing))
    return "\n\n".join(part for part in parts if part)


def parse_generation_output(raw: str) -> GenerationResult:
    """
    Interpret model output.

    A function_call object becomes a FunctionCallReply (even for names that
    were not advertised; the engine decides what to do with those). Empty
    output becomes the fixed no-response text.
    """
    text = (raw or "").strip()
    if not text:
        return TextReply(NO_RESPONSE_REPLY)

    if "function_call" in text:
        data = parse_llm_json(text)
        call = data.get("function_call")
        if isinstance(call, dict) and call.get("name"):
            arguments = call.get("arguments") or {}
            if isinstance(arguments, str):
                arguments = parse_llm_json(arguments)
            if not isinstance(arguments, dict):
                arguments = {}
            return FunctionCallReply(name=str(call["name"]), arguments=arguments)

    return TextReply(text)


class LLMGenerationBackend(GenerationBackend):
    """GenerationBackend over the provider-agnostic LLMClient"""

    def __init__(self, client: LLMClient, max_tokens: int = 512, timeout: float = 30.0):
        self._client = client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @classmethod
    def from_config(cls, llm_config) -> "LLMGenerationBackend":
        return cls(
            LLMClient.from_config(llm_config),
            max_tokens=llm_config.max_tokens,
            timeout=llm_config.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client.is_available

    def generate(self, request: GenerationRequest) -> GenerationResult:
        if not self._client.is_available:
            raise GenerationUnavailable("LLM client is not configured")

        try:
            raw = self._client.generate(
                build_user_prompt(request),
                system=build_system_prompt(request),
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except Exception as e:
            raise GenerationUnavailable(f"{self._client.provider} generation failed: {e}") from e

        return parse_generation_output(raw)
