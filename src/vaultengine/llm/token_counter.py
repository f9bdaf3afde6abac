"""
Token counting for OpenAI chat context management.

Counts follow OpenAI's chat accounting: every message costs its role and
content tokens plus a fixed formatting overhead, and every request is primed
with a few extra tokens. When the tokenizer cannot encode a string the count
falls back to ~4 characters per token; such counts are logged and flagged as
approximate.

A `TokenCounter` is built once at startup and handed to whoever needs it
(the API keeps it on `app.state`). Call `cleanup()` on shutdown.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import tiktoken

from ..errors import EncoderInitError


logger = logging.getLogger(__name__)

# (model name prefix, tiktoken model name); first match wins
MODEL_FAMILIES: Tuple[Tuple[str, str], ...] = (
    ("gpt-4", "gpt-4"),
    ("gpt-3.5", "gpt-3.5-turbo"),
)
DEFAULT_FAMILY = "gpt-4"

MESSAGE_OVERHEAD = 4
PRIMING_TOKENS = 3
CHARS_PER_TOKEN = 4

Message = Mapping[str, Any]


def model_family(model: Optional[str]) -> str:
    """Map a chat model name to the tiktoken model whose encoding it shares."""
    if model:
        for prefix, family in MODEL_FAMILIES:
            if prefix in model:
                return family
    return DEFAULT_FAMILY


def estimate_tokens(text: str) -> int:
    """Heuristic token estimate (approximate, ~4 chars per token)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


@dataclass
class MessageTokens:
    role: Optional[str]
    tokens: int
    index: int


@dataclass
class TokenBreakdown:
    messages: int
    functions: int
    total: int
    breakdown: List[MessageTokens] = field(default_factory=list)
    approximate: bool = False


@dataclass
class LimitStatus:
    approaching: bool
    current: int
    limit: int
    percentage: int


class TokenCounter:
    """
    Counts tokens in chat messages and function schemas.

    Encoders for every known model family are created in the constructor and
    only read afterwards, so one instance can be shared across requests.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        encoder_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Args:
            model: Default model used when a call passes no model
            encoder_factory: Builds an encoder from a tiktoken model name
                (defaults to `tiktoken.encoding_for_model`)

        Raises:
            EncoderInitError: the tokenizer could not be constructed
        """
        self.model = model
        factory = encoder_factory or tiktoken.encoding_for_model
        families = {family for _, family in MODEL_FAMILIES} | {DEFAULT_FAMILY}
        try:
            self._encoders: Dict[str, Any] = {family: factory(family) for family in sorted(families)}
        except Exception as e:
            logger.error("Error initializing tiktoken encoder: %s", e)
            raise EncoderInitError(f"Failed to initialize tokenizer: {e}") from e

    def __enter__(self) -> "TokenCounter":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    @property
    def closed(self) -> bool:
        return not self._encoders

    def _count(self, text: str, model: Optional[str]) -> Tuple[int, bool]:
        """Return (token count, approximate?)."""
        encoder = self._encoders.get(model_family(model or self.model))
        try:
            if encoder is None:
                raise RuntimeError("tokenizer has been released")
            return len(encoder.encode(text)), False
        except Exception as e:
            estimate = estimate_tokens(text)
            logger.warning("Token count approximated (%d tokens, ~%d chars/token): %s", estimate, CHARS_PER_TOKEN, e)
            return estimate, True

    def _count_message(self, message: Message, model: Optional[str]) -> Tuple[int, bool]:
        try:
            total = 0
            approximate = False

            def add(text: str) -> None:
                nonlocal total, approximate
                count, approx = self._count(text, model)
                total += count
                approximate = approximate or approx

            if message.get("role"):
                add(message["role"])

            content = message.get("content")
            if isinstance(content, str):
                if content:
                    add(content)
            elif isinstance(content, (list, tuple)):
                for part in content:
                    if isinstance(part, str):
                        add(part)
                    elif isinstance(part, Mapping) and part.get("text"):
                        add(part["text"])

            for tool_call in message.get("tool_calls") or []:
                add(_to_json(tool_call))

            if message.get("tool_call_id"):
                add(message["tool_call_id"])

            return total + MESSAGE_OVERHEAD, approximate
        except Exception as e:
            estimate = estimate_tokens(_to_json(message))
            logger.warning("Message token count approximated (%d tokens): %s", estimate, e)
            return estimate, True

    def count_text_tokens(self, text: str, model: Optional[str] = None) -> int:
        return self._count(text, model)[0]

    def count_message_tokens(self, message: Message, model: Optional[str] = None) -> int:
        """Role + content + tool calls + per-message formatting overhead."""
        return self._count_message(message, model)[0]

    def count_conversation_tokens(self, messages: Sequence[Message], model: Optional[str] = None) -> int:
        return sum(self.count_message_tokens(m, model) for m in messages) + PRIMING_TOKENS

    def count_function_tokens(self, functions: Sequence[Mapping[str, Any]], model: Optional[str] = None) -> int:
        # Function schemas are sent to the API as JSON
        return self.count_text_tokens(_to_json(list(functions)), model)

    def get_token_breakdown(
        self,
        messages: Sequence[Message],
        functions: Optional[Sequence[Mapping[str, Any]]] = None,
        model: Optional[str] = None,
    ) -> TokenBreakdown:
        breakdown = []
        approximate = False
        for index, message in enumerate(messages):
            tokens, approx = self._count_message(message, model)
            approximate = approximate or approx
            breakdown.append(MessageTokens(role=message.get("role"), tokens=tokens, index=index))

        functions_tokens = 0
        if functions:
            functions_tokens, approx = self._count(_to_json(list(functions)), model)
            approximate = approximate or approx

        messages_tokens = sum(item.tokens for item in breakdown)
        return TokenBreakdown(
            messages=messages_tokens,
            functions=functions_tokens,
            total=messages_tokens + functions_tokens + PRIMING_TOKENS,
            breakdown=breakdown,
            approximate=approximate,
        )

    def is_approaching_limit(
        self,
        messages: Sequence[Message],
        functions: Optional[Sequence[Mapping[str, Any]]] = None,
        limit: int = 100_000,
        threshold: float = 0.8,
        model: Optional[str] = None,
    ) -> LimitStatus:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        total = self.get_token_breakdown(messages, functions, model).total
        fraction = total / limit
        return LimitStatus(
            approaching=fraction >= threshold,
            current=total,
            limit=limit,
            percentage=math.floor(fraction * 100 + 0.5),
        )

    def cleanup(self) -> None:
        """Release the encoders. Safe to call more than once."""
        self._encoders.clear()
