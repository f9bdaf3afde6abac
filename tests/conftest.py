import pytest
from fastapi.testclient import TestClient

from vaultengine.api.app import create_app
from vaultengine.config import Settings
from vaultengine.errors import DelegateFailure
from vaultengine.llm.token_counter import TokenCounter
from vaultengine.llm.vault_generator import VaultGenerationResult


class FakeEncoding:
    """Whitespace tokenizer standing in for tiktoken (no downloads in tests)."""

    def __init__(self, name="gpt-4"):
        self.name = name

    def encode(self, text):
        if "<|endoftext|>" in text:
            raise ValueError("Encountered text corresponding to disallowed special token")
        return text.split()


class FakeChatClient:
    model = "gpt-4o"

    def __init__(self, reply="Line one\nLine two", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, messages, model=None, temperature=0.7, json_mode=False, **kwargs):
        self.calls.append({"messages": messages, "temperature": temperature, "json_mode": json_mode})
        if self.error:
            raise self.error
        return self.reply

    async def close(self):
        pass


class FakeVaultGenerator:

    def __init__(self, result=None, error=None):
        self.result = result or VaultGenerationResult(
            nodes=[{"id": "asset-1", "type": "asset", "data": {"assetCode": "XLM", "allocation": 100}}],
            edges=[],
            explanation="All in XLM",
            response_type="build",
        )
        self.error = error
        self.requests = []

    async def generate_vault(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def token_counter():
    counter = TokenCounter(encoder_factory=FakeEncoding)
    yield counter
    counter.cleanup()


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def vault_generator():
    return FakeVaultGenerator()


@pytest.fixture
def client(token_counter, chat_client, vault_generator):
    app = create_app(
        settings=Settings(),
        token_counter=token_counter,
        chat_client=chat_client,
        vault_generator=vault_generator,
    )
    return TestClient(app)


@pytest.fixture
def failing_generator():
    return FakeVaultGenerator(error=DelegateFailure("Failed to process request: upstream timeout"))
