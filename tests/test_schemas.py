import pytest
from pydantic import ValidationError

from vaultengine.api.schemas import (
    DirectPayload,
    GenerateVaultRequest,
    VoiceToolCallPayload,
    extract_request_parameters,
    failure_envelope,
    parse_generate_payload,
    success_envelope,
    voice_tool_call_id,
)


def test_voice_tool_call_arguments_are_extracted():
    body = {"message": {"toolCalls": [{"function": {"arguments": {"prompt": "build a conservative vault"}}}]}}

    assert extract_request_parameters(body) == {"prompt": "build a conservative vault"}
    assert isinstance(parse_generate_payload(body), VoiceToolCallPayload)


def test_voice_arguments_used_verbatim_without_merging():
    body = {
        "prompt": "outer prompt",
        "riskLevel": "high",
        "message": {
            "toolCallId": "call_42",
            "toolCalls": [{"function": {"name": "generate_vault", "arguments": {"prompt": "inner"}}}],
        },
    }

    payload = parse_generate_payload(body)

    assert payload.parameters() == {"prompt": "inner"}
    assert payload.tool_call_id == "call_42"


def test_direct_body_is_the_parameter_object():
    body = {"prompt": "aggressive multi token vault", "riskLevel": "high"}

    payload = parse_generate_payload(body)

    assert isinstance(payload, DirectPayload)
    assert payload.parameters() == body
    assert payload.tool_call_id is None


@pytest.mark.parametrize(
    "body",
    [
        {"message": {"toolCalls": []}, "prompt": "x"},
        {"message": {"toolCalls": [{"function": {}}]}, "prompt": "x"},
        {"message": "just text", "prompt": "x"},
    ],
)
def test_incomplete_tool_call_path_falls_back_to_direct(body):
    assert isinstance(parse_generate_payload(body), DirectPayload)


def test_generate_request_schema():
    params = GenerateVaultRequest.model_validate({
        "prompt": "hi",
        "riskLevel": "low",
        "conversationContext": [{"role": "user", "content": "earlier"}],
    })
    assert params.risk_level == "low"
    assert params.conversation_context == [{"role": "user", "content": "earlier"}]

    with pytest.raises(ValidationError):
        GenerateVaultRequest.model_validate({"prompt": ""})
    with pytest.raises(ValidationError):
        GenerateVaultRequest.model_validate({"prompt": "hi", "riskLevel": "extreme"})


def test_envelopes():
    assert success_envelope({"a": None}) == {"success": True, "data": {"a": None}}
    assert failure_envelope("nope") == {"success": False, "message": "nope"}
    assert failure_envelope("bad", [{"msg": "x"}])["validationErrors"] == [{"msg": "x"}]


def test_voice_path_ignores_other_tool_call_fields():
    body = {
        "message": {
            "toolCalls": [
                {"id": 7, "function": {"name": "generate_vault", "arguments": {"prompt": "build a conservative vault"}}},
                {"type": "function"},
            ]
        }
    }

    assert extract_request_parameters(body) == {"prompt": "build a conservative vault"}
    assert isinstance(parse_generate_payload(body), VoiceToolCallPayload)


def test_tool_call_id_read_from_raw_body():
    assert voice_tool_call_id({"message": {"toolCallId": "c1"}, "prompt": ""}) == "c1"
    assert voice_tool_call_id({"message": {"toolCallId": 12}}) == "12"
    assert voice_tool_call_id({"prompt": "x"}) is None
    assert voice_tool_call_id(["not", "a", "dict"]) is None

    payload = parse_generate_payload({"message": {"toolCallId": "c1"}, "prompt": "direct"})
    assert isinstance(payload, DirectPayload)
    assert payload.tool_call_id == "c1"
