"""
Vault Generator: turns a natural language request into a vault strategy graph.

The graph is the visual builder's format: `nodes` (asset / condition /
action blocks with a position and a data dict) and `edges` connecting them.
The LLM either chats (no graph) or builds; built graphs are normalised so
they only reference whitelisted testnet assets and carry complete
parameters.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import DelegateFailure
from ..registry.liquidity_pools import CustomToken, XLM_LIQUIDITY_POOLS
from ..registry.token_registry import Asset
from .client import ChatClient, ChatMessage
from .token_counter import TokenCounter


logger = logging.getLogger(__name__)

RESPONSE_CHAT = "chat"
RESPONSE_BUILD = "build"


@dataclass(frozen=True)
class WhitelistedAsset:
    asset_type: str
    issuer: Optional[str] = None

    @property
    def requires_issuer(self) -> bool:
        return self.issuer is not None


# XLM and USDC are resolved to SAC addresses downstream, custom tokens carry their contract
TESTNET_ASSETS: Dict[str, WhitelistedAsset] = {
    Asset.XLM.value: WhitelistedAsset("XLM"),
    Asset.USDC.value: WhitelistedAsset("USDC"),
    **{token.name: WhitelistedAsset("CUSTOM", token.address) for token in CustomToken},
}


def _custom_token_lines() -> str:
    return "\n".join(
        f'- {token.name}: assetType "CUSTOM", assetCode "{token.name}", '
        f'assetIssuer "{token.address}", XLM pool {XLM_LIQUIDITY_POOLS[token.address]}'
        for token in CustomToken
    )


SYSTEM_PROMPT = f"""You are an expert DeFi vault architect for the Stellar network (Soroban smart contracts).
Vaults rebalance through Soroswap and the Stellar DEX. Fees are tiny and finality is 3-5 seconds.

SUPPORTED TESTNET ASSETS (use ONLY these):
Custom tokens with real XLM liquidity pools (deposits of XLM auto-swap into them):
{_custom_token_lines()}
Basic assets (no assetIssuer):
- XLM: assetType "XLM", assetCode "XLM"
- USDC: assetType "USDC", assetCode "USDC"

Build a vault when the user asks to create, build or generate one, or gives allocations.
Edit the current vault when one is shown and the user asks to change it; keep what they do not mention.
Otherwise just chat: answer questions and suggest next steps.

Respond with ONLY a JSON object.

Chat response:
{{"type": "chat", "message": "...", "suggestions": ["..."]}}

Build response:
{{
  "type": "build",
  "nodes": [
    {{"id": "asset-1", "type": "asset", "position": {{"x": 100, "y": 100}},
      "data": {{"assetType": "XLM", "assetCode": "XLM", "allocation": 60, "label": "XLM"}}}},
    {{"id": "condition-1", "type": "condition", "position": {{"x": 500, "y": 175}},
      "data": {{"conditionType": "time_based", "timeUnit": "days", "timeValue": 7, "label": "Weekly", "description": "Every 7 days"}}}},
    {{"id": "action-1", "type": "action", "position": {{"x": 900, "y": 175}},
      "data": {{"actionType": "rebalance", "label": "Rebalance", "description": "Restore target allocations"}}}}
  ],
  "edges": [
    {{"id": "e1", "source": "asset-1", "target": "condition-1"}},
    {{"id": "e2", "source": "condition-1", "target": "action-1"}}
  ],
  "explanation": "...",
  "suggestions": ["..."]
}}

Asset allocations must add up to 100.
Condition types: time_based (timeUnit, timeValue), price_change (value, operator), allocation and apy_threshold (threshold, operator).
Action types: rebalance, swap (targetAsset), stake (targetAsset), provide_liquidity (protocol)."""

VOICE_OVERRIDE_PROMPT = (
    "CRITICAL OVERRIDE: This request came from a voice assistant function call. You MUST respond "
    'with type "build" and a complete vault (nodes and edges), never "chat". If the description is '
    "vague, use reasonable defaults and still build a working vault."
)


@dataclass
class VaultGenerationRequest:
    user_prompt: str
    conversation_history: List[ChatMessage] = field(default_factory=list)
    network: str = "testnet"
    current_vault: Optional[Dict[str, Any]] = None
    force_vault_generation: bool = False


@dataclass
class VaultGenerationResult:
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    explanation: str
    suggestions: List[str] = field(default_factory=list)
    response_type: str = RESPONSE_BUILD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": self.nodes,
            "edges": self.edges,
            "explanation": self.explanation,
            "suggestions": self.suggestions,
            "responseType": self.response_type,
        }


def extract_json(response: str) -> Any:
    """Parse a JSON payload, tolerating a surrounding markdown code fence."""
    json_str = response
    if "```json" in response:
        start = response.find("```json") + 7
        end = response.find("```", start)
        json_str = response[start:end].strip()
    elif "```" in response:
        start = response.find("```") + 3
        end = response.find("```", start)
        json_str = response[start:end].strip()
    return json.loads(json_str)


def normalize_asset_nodes(nodes: List[Dict[str, Any]]) -> None:
    """Force asset nodes onto the whitelist and make allocations sum to 100."""
    for node in nodes:
        data = node.setdefault("data", {})
        code = data.get("assetCode")
        info = TESTNET_ASSETS.get(code)

        if info is None:
            logger.warning("Invalid asset %s - not in testnet whitelist. Using XLM instead.", code)
            data.update(assetCode="XLM", assetType="XLM", label="XLM")
            data.pop("assetIssuer", None)
        else:
            if data.get("assetType") != info.asset_type:
                logger.warning("Correcting assetType for %s", code)
                data["assetType"] = info.asset_type
            if info.requires_issuer:
                if data.get("assetIssuer") != info.issuer:
                    logger.warning("Setting correct assetIssuer for %s", code)
                    data["assetIssuer"] = info.issuer
            elif "assetIssuer" in data:
                # SAC conversion happens downstream
                data.pop("assetIssuer")

        if data.get("allocation") is None:
            logger.warning("Asset node %s missing allocation, setting to 0", node.get("id"))
            data["allocation"] = 0

    if not nodes:
        return

    total = sum(_as_number(n["data"]["allocation"]) for n in nodes)
    if abs(total - 100) <= 0.1:
        return

    logger.warning("Allocations sum to %s%%, adjusting...", total)
    for node in nodes:
        if total == 0:
            node["data"]["allocation"] = 100 / len(nodes)
        else:
            node["data"]["allocation"] = _as_number(node["data"]["allocation"]) / total * 100


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


_CONDITION_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "time_based": {"timeUnit": "days", "timeValue": 7},
    "price_change": {"value": 5, "operator": "gt"},
    "allocation": {"threshold": 10, "operator": "gt"},
    "apy_threshold": {"threshold": 10, "operator": "gt"},
}

_ACTION_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "swap": {"targetAsset": "USDC"},
    "stake": {"targetAsset": "XLM"},
    "provide_liquidity": {"protocol": "Soroswap"},
}


def _fill_defaults(node: Dict[str, Any], defaults: Dict[str, Any]) -> None:
    data = node["data"]
    for key, value in defaults.items():
        if data.get(key) in (None, ""):
            logger.warning("Node %s missing %s, setting to %r", node.get("id"), key, value)
            data[key] = value


def normalize_condition_nodes(nodes: List[Dict[str, Any]]) -> None:
    for node in nodes:
        data = node.setdefault("data", {})
        _fill_defaults(node, _CONDITION_DEFAULTS.get(data.get("conditionType"), {}))
        if not data.get("label"):
            data["label"] = f"Condition {node.get('id')}"
        if not data.get("description"):
            data["description"] = "Auto-generated condition"


def normalize_action_nodes(nodes: List[Dict[str, Any]]) -> None:
    for node in nodes:
        data = node.setdefault("data", {})
        if not data.get("actionType"):
            logger.warning("Action %s missing actionType, setting to 'rebalance'", node.get("id"))
            data["actionType"] = "rebalance"
        action_type = data["actionType"]
        _fill_defaults(node, _ACTION_DEFAULTS.get(action_type, {}))
        if not data.get("label"):
            data["label"] = f"{action_type.replace('_', ' ').capitalize()} Action"
        if not data.get("description"):
            data["description"] = f"Auto-generated {action_type} action"


class VaultGenerator:
    """
    LLM-backed vault strategy generator.

    Conversation history is trimmed (oldest turns first) when the prompt
    would approach the model's context budget.
    """

    def __init__(
        self,
        client: ChatClient,
        token_counter: Optional[TokenCounter] = None,
        token_limit: int = 100_000,
        token_threshold: float = 0.8,
    ):
        self.client = client
        self.token_counter = token_counter
        self.token_limit = token_limit
        self.token_threshold = token_threshold

    def build_messages(self, request: VaultGenerationRequest) -> List[ChatMessage]:
        messages: List[ChatMessage] = [{"role": "system", "content": SYSTEM_PROMPT}]

        if request.force_vault_generation:
            messages.append({"role": "system", "content": VOICE_OVERRIDE_PROMPT})

        current = request.current_vault
        if current and current.get("nodes"):
            summary = current.get("summary") or json.dumps(current, indent=2)
            messages.append({
                "role": "system",
                "content": (
                    f"CURRENT VAULT IN BUILDER:\n{summary}\n\nIf the user asks to modify it, return an "
                    "updated version. If they ask for a new vault, ignore it and start from scratch."
                ),
            })

        history = [
            {"role": msg.get("role", "user"), "content": msg.get("content", "")}
            for msg in request.conversation_history
            if isinstance(msg, dict)
        ]
        prompt = {"role": "user", "content": request.user_prompt}
        return messages + self._fit_history(messages, history, prompt) + [prompt]

    def _fit_history(
        self,
        preamble: List[ChatMessage],
        history: List[ChatMessage],
        prompt: ChatMessage,
    ) -> List[ChatMessage]:
        if self.token_counter is None:
            return history

        while history:
            status = self.token_counter.is_approaching_limit(
                preamble + history + [prompt],
                limit=self.token_limit,
                threshold=self.token_threshold,
                model=self.client.model,
            )
            if not status.approaching:
                break
            logger.info("Context at %d%% of %d tokens, dropping oldest turn", status.percentage, status.limit)
            history = history[1:]
        return history

    async def generate_vault(self, request: VaultGenerationRequest) -> VaultGenerationResult:
        """
        Generate (or chat about) a vault for `request`.

        Raises:
            DelegateFailure: the LLM failed or returned an unusable response
        """
        messages = self.build_messages(request)
        logger.info("Generating vault on %s (%d messages)", request.network, len(messages))

        content = await self.client.complete(messages, json_mode=True)
        try:
            parsed = extract_json(content or "{}")
            return self._to_result(parsed)
        except Exception as e:
            logger.error("Failed to process request: %s", e)
            raise DelegateFailure(f"Failed to process request: {e}") from e

    def _to_result(self, parsed: Any) -> VaultGenerationResult:
        if not isinstance(parsed, dict):
            raise ValueError("Invalid response: expected a JSON object")

        if parsed.get("type") == RESPONSE_CHAT:
            return VaultGenerationResult(
                nodes=[],
                edges=[],
                explanation=parsed.get("message") or "",
                suggestions=parsed.get("suggestions") or [],
                response_type=RESPONSE_CHAT,
            )

        nodes = parsed.get("nodes")
        edges = parsed.get("edges")
        if not isinstance(nodes, list):
            raise ValueError("Invalid response: missing nodes array")
        if not isinstance(edges, list):
            raise ValueError("Invalid response: missing edges array")

        nodes = [n for n in nodes if isinstance(n, dict)]
        asset_nodes = [n for n in nodes if n.get("type") == "asset"]
        if not asset_nodes:
            logger.warning("No asset nodes found in response")
        normalize_asset_nodes(asset_nodes)
        normalize_condition_nodes([n for n in nodes if n.get("type") == "condition"])
        normalize_action_nodes([n for n in nodes if n.get("type") == "action"])

        logger.info("Vault generated: %d nodes, %d edges, %d assets", len(nodes), len(edges), len(asset_nodes))
        return VaultGenerationResult(
            nodes=nodes,
            edges=edges,
            explanation=parsed.get("explanation") or "Vault configuration generated successfully.",
            suggestions=parsed.get("suggestions") or [],
            response_type=RESPONSE_BUILD,
        )

    async def refine_vault(
        self,
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
        feedback: str,
        conversation_history: Optional[List[ChatMessage]] = None,
    ) -> VaultGenerationResult:
        """Re-generate with the current graph appended as assistant context."""
        state = "Current vault configuration:\n" + json.dumps({"nodes": nodes, "edges": edges}, indent=2)
        history = list(conversation_history or []) + [{"role": "assistant", "content": state}]
        return await self.generate_vault(VaultGenerationRequest(user_prompt=feedback, conversation_history=history))
