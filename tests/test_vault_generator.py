import asyncio
import json

import pytest

from vaultengine.errors import DelegateFailure
from vaultengine.llm.vault_generator import (
    SYSTEM_PROMPT,
    VOICE_OVERRIDE_PROMPT,
    VaultGenerationRequest,
    VaultGenerator,
    extract_json,
    normalize_action_nodes,
    normalize_asset_nodes,
    normalize_condition_nodes,
)
from vaultengine.registry.liquidity_pools import CustomToken

from conftest import FakeChatClient


def _generate(generator, prompt="Build me a vault", **kwargs):
    return asyncio.run(generator.generate_vault(VaultGenerationRequest(user_prompt=prompt, **kwargs)))


def _asset(node_id, code, allocation=None, **data):
    node = {"id": node_id, "type": "asset", "data": {"assetCode": code, **data}}
    if allocation is not None:
        node["data"]["allocation"] = allocation
    return node


def test_system_prompt_lists_every_pool_token():
    for token in CustomToken:
        assert token.address in SYSTEM_PROMPT


def test_chat_response_has_empty_graph():
    client = FakeChatClient(reply=json.dumps({
        "type": "chat",
        "message": "What risk level do you prefer?",
        "suggestions": ["Low risk", "High risk"],
    }))

    result = _generate(VaultGenerator(client))

    assert result.response_type == "chat"
    assert result.nodes == [] and result.edges == []
    assert result.explanation == "What risk level do you prefer?"
    assert result.suggestions == ["Low risk", "High risk"]
    assert client.calls[0]["json_mode"] is True


def test_build_response_is_normalized():
    client = FakeChatClient(reply=json.dumps({
        "type": "build",
        "nodes": [
            _asset("a1", "RELIO", 30),
            _asset("a2", "USDC", 30, assetIssuer="GSOMETHING"),
            {"id": "c1", "type": "condition", "data": {"conditionType": "time_based"}},
            {"id": "x1", "type": "action", "data": {"actionType": "swap"}},
        ],
        "edges": [{"id": "e1", "source": "c1", "target": "x1"}],
        "explanation": "Half RELIO, half USDC",
    }))

    result = _generate(VaultGenerator(client))
    nodes = {n["id"]: n["data"] for n in result.nodes}

    assert result.response_type == "build"
    assert nodes["a1"]["assetIssuer"] == CustomToken.RELIO.address
    assert nodes["a1"]["assetType"] == "CUSTOM"
    assert "assetIssuer" not in nodes["a2"]
    assert nodes["a1"]["allocation"] == pytest.approx(50)
    assert nodes["a2"]["allocation"] == pytest.approx(50)
    assert nodes["c1"]["timeUnit"] == "days" and nodes["c1"]["timeValue"] == 7
    assert nodes["x1"]["targetAsset"] == "USDC"
    assert nodes["x1"]["label"] == "Swap Action"
    assert result.to_dict()["responseType"] == "build"


def test_fenced_json_is_accepted():
    payload = {"type": "build", "nodes": [], "edges": []}
    assert extract_json("```json\n" + json.dumps(payload) + "\n```") == payload
    assert extract_json("```\n" + json.dumps(payload) + "\n```") == payload


def test_unknown_asset_replaced_with_xlm():
    nodes = [_asset("a1", "DOGE", 100, assetIssuer="CXYZ")]
    normalize_asset_nodes(nodes)

    data = nodes[0]["data"]
    assert data["assetCode"] == "XLM" and data["assetType"] == "XLM"
    assert "assetIssuer" not in data


def test_missing_allocations_split_equally():
    nodes = [_asset("a1", "XLM"), _asset("a2", "AQX"), _asset("a3", "TRI"), _asset("a4", "USDC")]
    normalize_asset_nodes(nodes)

    assert [n["data"]["allocation"] for n in nodes] == [25, 25, 25, 25]


def test_allocations_already_summing_to_100_untouched():
    nodes = [_asset("a1", "XLM", 60), _asset("a2", "USDC", 40)]
    normalize_asset_nodes(nodes)

    assert [n["data"]["allocation"] for n in nodes] == [60, 40]


def test_condition_and_action_defaults():
    conditions = [
        {"id": "c1", "data": {"conditionType": "price_change"}},
        {"id": "c2", "data": {"conditionType": "apy_threshold", "threshold": 3}},
    ]
    actions = [{"id": "x1", "data": {}}, {"id": "x2", "data": {"actionType": "provide_liquidity"}}]

    normalize_condition_nodes(conditions)
    normalize_action_nodes(actions)

    assert conditions[0]["data"]["value"] == 5 and conditions[0]["data"]["operator"] == "gt"
    assert conditions[1]["data"]["threshold"] == 3
    assert conditions[1]["data"]["label"] == "Condition c2"
    assert actions[0]["data"]["actionType"] == "rebalance"
    assert actions[1]["data"]["protocol"] == "Soroswap"
    assert actions[1]["data"]["description"] == "Auto-generated provide_liquidity action"


@pytest.mark.parametrize(
    "reply",
    [
        json.dumps({"type": "build", "edges": []}),
        json.dumps({"type": "build", "nodes": [], "edges": "nope"}),
        "not json at all",
        json.dumps(["a", "list"]),
    ],
)
def test_unusable_response_raises_delegate_failure(reply):
    with pytest.raises(DelegateFailure) as exc_info:
        _generate(VaultGenerator(FakeChatClient(reply=reply)))

    assert str(exc_info.value).startswith("Failed to process request")


def test_llm_error_raises_delegate_failure():
    client = FakeChatClient(error=DelegateFailure("LLM call failed: rate limited"))

    with pytest.raises(DelegateFailure, match="rate limited"):
        _generate(VaultGenerator(client))


def test_message_assembly():
    generator = VaultGenerator(FakeChatClient())
    request = VaultGenerationRequest(
        user_prompt="make it safer",
        conversation_history=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        current_vault={"nodes": [{"id": "a1"}], "edges": [], "summary": "100% XLM"},
        force_vault_generation=True,
    )

    messages = generator.build_messages(request)

    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1]["content"] == VOICE_OVERRIDE_PROMPT
    assert "100% XLM" in messages[2]["content"]
    assert [m["content"] for m in messages[3:]] == ["hi", "hello", "make it safer"]


def test_history_trimmed_when_context_is_full(token_counter):
    history = [{"role": "user", "content": "word " * 50} for _ in range(3)]
    request = VaultGenerationRequest(user_prompt="go", conversation_history=history)

    tight = VaultGenerator(FakeChatClient(), token_counter=token_counter, token_limit=10, token_threshold=0.8)
    roomy = VaultGenerator(FakeChatClient(), token_counter=token_counter, token_limit=1_000_000)

    assert [m["role"] for m in tight.build_messages(request)] == ["system", "user"]
    assert len(roomy.build_messages(request)) == 5


def test_refine_vault_sends_current_graph_as_context():
    client = FakeChatClient(reply=json.dumps({"type": "build", "nodes": [], "edges": []}))
    generator = VaultGenerator(client)

    asyncio.run(generator.refine_vault([{"id": "a1"}], [], "more USDC", [{"role": "user", "content": "earlier"}]))

    sent = client.calls[0]["messages"]
    assert sent[-1] == {"role": "user", "content": "more USDC"}
    assert sent[-2]["role"] == "assistant"
    assert sent[-2]["content"].startswith("Current vault configuration:")
    assert sent[-3]["content"] == "earlier"


def test_llm_failure_message_is_not_rewrapped():
    client = FakeChatClient(error=DelegateFailure("LLM call failed: rate limited"))

    with pytest.raises(DelegateFailure) as exc_info:
        _generate(VaultGenerator(client))

    assert str(exc_info.value) == "LLM call failed: rate limited"
