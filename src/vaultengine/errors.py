"""Exception types raised across the vault engine."""

from typing import Optional


SAC_DOCS_URL = "https://developers.stellar.org/docs/tokens/stellar-asset-contract"


class VaultEngineError(Exception):
    """Base class for vault engine errors."""


class UnknownNetwork(VaultEngineError, ValueError):
    """Network name is not one of the supported Stellar networks."""


class UnknownAsset(VaultEngineError, ValueError):
    """Asset symbol is not in the address registry."""


class UnsupportedAddressFormat(VaultEngineError, ValueError):
    """A classic (G...) account address was supplied where a contract is required."""

    def __init__(self, message: str, hint: Optional[str] = SAC_DOCS_URL):
        super().__init__(message)
        self.hint = hint


class InvalidRequest(VaultEngineError):
    """Request body passed schema validation but is semantically incomplete."""


class DelegateFailure(VaultEngineError):
    """An external collaborator (LLM, generator) failed or returned garbage."""


class EncoderInitError(VaultEngineError):
    """Tokenizer could not be constructed. Treated as a fatal configuration error."""
