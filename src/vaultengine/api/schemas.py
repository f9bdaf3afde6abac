"""
Request and response models for the natural language API.

`/generate-vault` accepts two payload shapes:

* a voice assistant tool call, with the arguments at
  `message.toolCalls[0].function.arguments`
* a direct POST whose body is the argument object itself

The voice shape wins whenever that path is present; the two are never merged.
Only that path decides the shape, the rest of the envelope is not validated.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VoiceToolCallPayload(BaseModel):
    arguments: Any
    tool_call_id: Optional[str] = None

    def parameters(self) -> Any:
        return self.arguments


class DirectPayload(BaseModel):
    body: Any = None
    tool_call_id: Optional[str] = None

    def parameters(self) -> Any:
        return self.body


GeneratePayload = Union[VoiceToolCallPayload, DirectPayload]


def _voice_message(body: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(body, Mapping):
        message = body.get("message")
        if isinstance(message, Mapping):
            return message
    return None


def _tool_call_arguments(body: Any) -> Any:
    message = _voice_message(body)
    if message is None:
        return None
    calls = message.get("toolCalls")
    if not isinstance(calls, list) or not calls or not isinstance(calls[0], Mapping):
        return None
    function = calls[0].get("function")
    if not isinstance(function, Mapping):
        return None
    return function.get("arguments")


def voice_tool_call_id(body: Any) -> Optional[str]:
    """`message.toolCallId` of a voice assistant request, whatever its arguments."""
    message = _voice_message(body)
    if message is None or message.get("toolCallId") in (None, ""):
        return None
    return str(message["toolCallId"])


def parse_generate_payload(body: Any) -> GeneratePayload:
    tool_call_id = voice_tool_call_id(body)
    arguments = _tool_call_arguments(body)
    if arguments:
        return VoiceToolCallPayload(arguments=arguments, tool_call_id=tool_call_id)
    return DirectPayload(body=body, tool_call_id=tool_call_id)


def extract_request_parameters(body: Any) -> Any:
    return parse_generate_payload(body).parameters()


class GenerateVaultRequest(_CamelModel):
    prompt: str = Field(min_length=1)
    risk_level: Optional[Literal["low", "medium", "high"]] = Field(default=None, alias="riskLevel")
    strategy_type: Optional[str] = Field(default=None, alias="strategyType")
    conversation_context: Optional[List[Any]] = Field(default=None, alias="conversationContext")


class ExplainContractRequest(_CamelModel):
    contract_code: Optional[str] = Field(default=None, alias="contractCode")
    vault_config: Optional[Any] = Field(default=None, alias="vaultConfig")
    vault_id: Optional[str] = Field(default=None, alias="vaultId")


class AnalyzeStrategyRequest(BaseModel):
    nodes: List[Any]
    edges: List[Any]


class ApiResponse(_CamelModel):
    success: bool
    data: Any = None
    message: Optional[str] = None
    validation_errors: Optional[List[Dict[str, Any]]] = Field(default=None, alias="validationErrors")

    def to_json(self) -> Dict[str, Any]:
        # data is relayed as-is, only the envelope's own unset keys are dropped
        out: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.message is not None:
            out["message"] = self.message
        if self.validation_errors is not None:
            out["validationErrors"] = self.validation_errors
        return out


def success_envelope(data: Any) -> Dict[str, Any]:
    return ApiResponse(success=True, data=data).to_json()


def failure_envelope(message: str, validation_errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return ApiResponse(success=False, message=message, validation_errors=validation_errors).to_json()
