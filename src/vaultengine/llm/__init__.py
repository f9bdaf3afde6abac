"""LLM collaborators: chat client, vault generator and token counting."""

from .client import ChatClient
from .token_counter import TokenCounter, TokenBreakdown, LimitStatus, MessageTokens
from .vault_generator import VaultGenerator, VaultGenerationRequest, VaultGenerationResult

__all__ = [
    "ChatClient",
    "TokenCounter",
    "TokenBreakdown",
    "LimitStatus",
    "MessageTokens",
    "VaultGenerator",
    "VaultGenerationRequest",
    "VaultGenerationResult",
]
