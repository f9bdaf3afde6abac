"""
Natural language to vault strategy routes.

Every response is a `{success, data?, message?}` envelope. Validation
failures also carry `validationErrors`. Voice assistant tool calls that
include a `toolCallId` get the assistant's `{results: [...]}` shape instead.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..errors import DelegateFailure, InvalidRequest
from ..llm.vault_generator import VaultGenerationRequest
from .schemas import (
    AnalyzeStrategyRequest,
    ExplainContractRequest,
    GenerateVaultRequest,
    VoiceToolCallPayload,
    failure_envelope,
    parse_generate_payload,
    success_envelope,
    voice_tool_call_id,
)
from .templates import list_templates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/nl", tags=["natural-language"])

VAULT_EXPLAINER_PROMPT = (
    "You are a DeFi expert explaining smart contracts to non-technical users. "
    "Explain what the vault does, its strategy, risks, and expected outcomes in simple, clear language. "
    "Avoid technical jargon. Use analogies when helpful."
)

CONTRACT_EXPLAINER_PROMPT = (
    "You are a blockchain expert explaining smart contracts. "
    "Analyze the contract code and explain what it does in plain English."
)

STRATEGY_ANALYST_PROMPT = """You are a DeFi analyst reviewing vault strategies.
Analyze the strategy for:
1. Logic correctness
2. Risk assessment
3. Optimization opportunities
4. Potential issues
Provide actionable feedback."""


def _collaborator(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise DelegateFailure(f"{name.replace('_', ' ')} is not configured (is OPENAI_API_KEY set?)")
    return value


def _validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    return error.errors(include_url=False, include_context=False)


def _failure_response(error: Exception, default_message: str) -> JSONResponse:
    if isinstance(error, ValidationError):
        return JSONResponse(
            status_code=500,
            content=failure_envelope("Invalid request parameters", _validation_errors(error)),
        )
    return JSONResponse(status_code=500, content=failure_envelope(str(error) or default_message))


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise InvalidRequest(f"Request body must be valid JSON: {e}") from e


@router.post("/generate-vault")
async def generate_vault(request: Request):
    """Generate a vault strategy from a prompt (voice assistant or direct API)."""
    body: Any = None
    tool_call_id: Optional[str] = None
    try:
        body = await _read_json(request)
        # replies go back to the voice assistant whenever it sent a toolCallId
        tool_call_id = voice_tool_call_id(body)
        payload = parse_generate_payload(body)
        logger.debug("Extracted params: %s", payload.parameters())

        params = GenerateVaultRequest.model_validate(payload.parameters())
        generator = _collaborator(request, "vault_generator")
        result = await generator.generate_vault(VaultGenerationRequest(
            user_prompt=params.prompt,
            conversation_history=params.conversation_context or [],
            network=request.app.state.settings.network,
            force_vault_generation=isinstance(payload, VoiceToolCallPayload),
        ))
        data = result.to_dict()
        logger.info(
            "Generated %s response: %d nodes, %d edges",
            data.get("responseType"), len(data.get("nodes", [])), len(data.get("edges", [])),
        )

        if tool_call_id:
            return {"results": [{"toolCallId": tool_call_id, "result": json.dumps(success_envelope(data))}]}
        return success_envelope(data)

    except Exception as e:
        logger.exception("Error generating vault")
        if tool_call_id:
            # the voice assistant expects HTTP 200 with the error inside the result
            return {"results": [{"toolCallId": tool_call_id, "error": str(e) or "Failed to generate vault strategy"}]}
        return _failure_response(e, "Failed to generate vault strategy")


@router.post("/explain-contract")
async def explain_contract(request: Request):
    """Explain a vault configuration or raw contract source in plain English."""
    try:
        params = ExplainContractRequest.model_validate(await _read_json(request))
        has_config = params.vault_config is not None
        has_code = bool(params.contract_code)

        if has_config == has_code:
            if has_config:
                raise InvalidRequest("Provide only one of contractCode or vaultConfig")
            raise InvalidRequest("Either contractCode or vaultConfig must be provided")

        if has_config:
            messages = [
                {"role": "system", "content": VAULT_EXPLAINER_PROMPT},
                {
                    "role": "user",
                    "content": "Explain this vault configuration in simple terms:\n\n"
                    + json.dumps(params.vault_config, indent=2),
                },
            ]
        else:
            messages = [
                {"role": "system", "content": CONTRACT_EXPLAINER_PROMPT},
                {"role": "user", "content": f"Explain this smart contract:\n\n{params.contract_code}"},
            ]

        client = _collaborator(request, "chat_client")
        explanation = await client.complete(messages, temperature=0.7)
        return success_envelope({"explanation": explanation})

    except Exception as e:
        logger.exception("Error explaining contract")
        return _failure_response(e, "Failed to explain contract")


@router.post("/analyze-strategy")
async def analyze_strategy(request: Request):
    """Review a strategy graph for correctness, risk and optimisation."""
    try:
        params = AnalyzeStrategyRequest.model_validate(await _read_json(request))
        messages = [
            {"role": "system", "content": STRATEGY_ANALYST_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Analyze this vault strategy:\n\nBlocks: {json.dumps(params.nodes, indent=2)}"
                    f"\n\nConnections: {json.dumps(params.edges, indent=2)}"
                ),
            },
        ]

        client = _collaborator(request, "chat_client")
        analysis = await client.complete(messages, temperature=0.7)
        return success_envelope({"analysis": analysis, "summary": analysis.split("\n")[0]})

    except Exception as e:
        logger.exception("Error analyzing strategy")
        return _failure_response(e, "Failed to analyze strategy")


@router.get("/vault-templates")
async def vault_templates(category: Optional[str] = Query(default=None)):
    return success_envelope([t.to_dict() for t in list_templates(category)])
