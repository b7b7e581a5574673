"""
Planner interface for Replanner.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
memory) stays model-agnostic.

We support three back-ends out of the box:

1. **OpenAI / Anthropic** via their async SDKs (requires env keys).
2. **Hugging Face Text-Generation-Inference (TGI)** for self-hosted models, prompted with the
   Llama-3 chat template and constrained by a JSON grammar built from the output contract.

Additional providers can be added by subclassing :class:`BasePlanner` and registering via
:func:`register_planner`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
)

from replanner.agent.prompts import render_system_prompt
from replanner.agent.schema_composer import OutputContract
from replanner.config import settings
from replanner.core.errors import (
    ConfigurationError,
    DecodingError,
    TransportError,
)
from replanner.core.schema import (
    Message,
    Role,
    State,
)

logger = logging.getLogger(__name__)


class Generation(BaseModel):
    """Result of one planner call: the raw model text and its decoded state."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    state: State


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: dict[str, Type["BasePlanner"]] = {}


def register_planner(name: str) -> Callable:
    """Decorator to register a planner class under *name*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        _PLANNER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_planner(name: str | None = None) -> "BasePlanner":
    """
    Factory that returns an instantiated planner.

    Fallback order:
    1. *name* arg
    2. ``settings.PLANNER`` env option
    """

    target = name or settings.PLANNER
    cls = _PLANNER_REGISTRY.get(target.lower())
    if cls is None:
        raise ConfigurationError(f"Planner '{target}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Response clean-up
# ---------------------------------------------------------------------------
def _sanitize_json_string(content: str) -> str:
    """Cut the outermost JSON object out of an LLM reply (code fences, chatter, control chars)."""
    # Remove control characters except whitespace
    content = "".join(ch for ch in content if ch >= " " or ch in "\n\r\t")

    open_idx = content.find("{")
    if open_idx < 0:
        return content.strip()

    depth = 0
    in_string = False
    escaped = False
    for i in range(open_idx, len(content)):
        ch = content[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return content[open_idx : i + 1]
    # Unbalanced: hand the remainder to the validator and let it report the problem.
    return content[open_idx:]


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that turns the conversation into the next :class:`State`."""

    def system_prompt(self, contract: OutputContract) -> str:
        """System prompt listing the tools and the output schema."""
        return render_system_prompt(
            contract.tools,
            contract.json_text(),
            name=settings.ASSISTANT_NAME,
            language=settings.ANSWER_LANGUAGE,
        )

    async def generate(self, contract: OutputContract, messages: Sequence[Message]) -> Generation:
        """
        Ask the model for the next state.

        Raises
        ------
        TransportError
            If the back-end cannot be reached or rejects the request.
        DecodingError
            If the reply does not satisfy *contract*.
        """
        raw_text = await self._complete(self.system_prompt(contract), contract, messages)
        logger.debug("%s raw response: %s", type(self).__name__, raw_text)
        if not raw_text or not raw_text.strip():
            raise DecodingError(f"{type(self).__name__} returned an empty response", raw_text or "")
        state = contract.decode(_sanitize_json_string(raw_text))
        return Generation(raw_text=raw_text, state=state)

    @abstractmethod
    async def _complete(
        self, system_prompt: str, contract: OutputContract, messages: Sequence[Message]
    ) -> str:
        """Return the model's raw text for *messages*."""


def _chat_messages(system_prompt: str, messages: Sequence[Message]) -> List[Dict[str, str]]:
    return [{"role": Role.SYSTEM.value, "content": system_prompt}] + [
        {"role": m.role.value, "content": m.text} for m in messages
    ]


# ---------------------------------------------------------------------------
# Concrete planners
# ---------------------------------------------------------------------------
@register_planner("openai")
class OpenAIPlanner(BasePlanner):
    """OpenAI (or any OpenAI-compatible endpoint) in JSON mode."""

    async def _complete(
        self, system_prompt: str, contract: OutputContract, messages: Sequence[Message]
    ) -> str:
        import openai  # pylint: disable=import-outside-toplevel

        try:
            async with openai.AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.LLM_TIMEOUT,
            ) as client:
                resp = await client.chat.completions.create(
                    model=settings.OPENAI_MODEL,
                    messages=_chat_messages(system_prompt, messages),  # type: ignore[arg-type]
                    temperature=0.0,
                    response_format={"type": "json_object"},
                )
        except openai.OpenAIError as exc:
            logger.error("OpenAI planner error: %s", exc)
            raise TransportError(f"Error calling OpenAI: {exc}") from exc

        return resp.choices[0].message.content or ""


def _alternating(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Merge same-role neighbours and make sure the conversation ends on a user turn."""
    merged: List[Dict[str, Any]] = []
    for message in messages:
        if message.role == Role.SYSTEM:
            continue
        if merged and merged[-1]["role"] == message.role.value:
            merged[-1]["content"] += "\n\n" + message.text
        else:
            merged.append({"role": message.role.value, "content": message.text})
    if not merged or merged[-1]["role"] != Role.USER.value:
        # A trailing assistant turn would be treated as a prefill to continue.
        merged.append({"role": Role.USER.value, "content": "Continue with the next step."})
    return merged


@register_planner("anthropic")
class AnthropicPlanner(BasePlanner):
    """Anthropic Claude-based planner."""

    async def _complete(
        self, system_prompt: str, contract: OutputContract, messages: Sequence[Message]
    ) -> str:
        import anthropic  # pylint: disable=import-outside-toplevel

        system = "\n\n".join(
            [system_prompt] + [m.text for m in messages if m.role == Role.SYSTEM]
        )
        try:
            async with anthropic.AsyncAnthropic(
                api_key=settings.ANTHROPIC_API_KEY, timeout=settings.LLM_TIMEOUT
            ) as client:
                response = await client.messages.create(
                    model=settings.ANTHROPIC_MODEL,
                    max_tokens=8192,
                    system=system,
                    messages=_alternating(messages),  # type: ignore[arg-type]
                    temperature=0.0,
                )
        except anthropic.AnthropicError as exc:
            logger.error("Anthropic planner error: %s", exc)
            raise TransportError(f"Error calling Anthropic: {exc}") from exc

        return "".join(block.text for block in response.content if block.type == "text")


_LLAMA3_HEADER = "<|start_header_id|>{role}<|end_header_id|>\n\n"
_LLAMA3_EOT = "<|eot_id|>"


def render_llama3_prompt(system_prompt: str, messages: Sequence[Message]) -> str:
    """Render a conversation with the Llama-3 instruct chat template."""
    parts = ["<|begin_of_text|>", _LLAMA3_HEADER.format(role="system"), system_prompt, _LLAMA3_EOT]
    for message in messages:
        parts += [_LLAMA3_HEADER.format(role=message.role.value), message.text, _LLAMA3_EOT]
    parts.append(_LLAMA3_HEADER.format(role="assistant"))
    return "".join(parts)


@register_planner("tgi")
class TGIPlanner(BasePlanner):
    """TGI-hosted Llama-3 model with greedy decoding and a JSON grammar."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def _complete(
        self, system_prompt: str, contract: OutputContract, messages: Sequence[Message]
    ) -> str:
        payload = {
            "inputs": render_llama3_prompt(system_prompt, messages),
            "parameters": {
                "max_new_tokens": settings.TGI_MAX_NEW_TOKENS,
                "do_sample": False,
                "stop": [_LLAMA3_EOT],
                "grammar": {"type": "json", "value": contract.json_schema},
            },
        }

        try:
            async with httpx.AsyncClient(
                timeout=settings.LLM_TIMEOUT, transport=self._transport
            ) as client:
                resp = await client.post(settings.TGI_ENDPOINT, json=payload)
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("TGI request error: %s", exc)
            raise TransportError(f"Error calling TGI endpoint: {exc}") from exc

        if isinstance(body, list):  # TGI answers with a one-element list on some routes
            body = body[0] if body else {}
        return str(body.get("generated_text", ""))
