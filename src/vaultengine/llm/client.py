"""OpenAI chat completion client shared by the vault generator and the NL routes."""

import logging
import os
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from ..config import DEFAULT_MODEL
from ..errors import DelegateFailure


logger = logging.getLogger(__name__)

ChatMessage = Dict[str, Any]


class ChatClient:

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_MODEL):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not set")
        self.model = model
        self.client = AsyncOpenAI(api_key=self.api_key)

    async def complete(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        json_mode: bool = False,
        **kwargs: Any,
    ) -> str:
        """
        Run a chat completion and return the first choice's text.

        Raises:
            DelegateFailure: the API call failed
        """
        params: Dict[str, Any] = dict(kwargs)
        if json_mode:
            params["response_format"] = {"type": "json_object"}
        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=temperature,
                **params,
            )
        except Exception as e:
            raise DelegateFailure(f"LLM call failed: {e}") from e

        content = response.choices[0].message.content or ""
        logger.debug("LLM response received, length: %d", len(content))
        return content

    async def close(self) -> None:
        await self.client.close()
