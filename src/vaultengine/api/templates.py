"""Pre-defined vault strategy templates."""

from dataclasses import dataclass
from typing import Dict, List, Optional


ALL_CATEGORIES = "all"


@dataclass(frozen=True)
class VaultTemplate:
    id: str
    name: str
    category: str
    description: str
    risk_level: str
    estimated_apy: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "riskLevel": self.risk_level,
            "estimatedAPY": self.estimated_apy,
        }


TEMPLATES: List[VaultTemplate] = [
    VaultTemplate(
        id="conservative-stablecoin",
        name="Conservative Stablecoin",
        category="low-risk",
        description="70% USDC staking, 30% liquidity provision",
        risk_level="low",
        estimated_apy="5-8%",
    ),
    VaultTemplate(
        id="balanced-yield",
        name="Balanced Yield",
        category="medium-risk",
        description="Mixed protocol staking with auto-compounding",
        risk_level="medium",
        estimated_apy="15-25%",
    ),
    VaultTemplate(
        id="aggressive-defi",
        name="Aggressive DeFi",
        category="high-risk",
        description="Multi-protocol yield farming with leverage",
        risk_level="high",
        estimated_apy="30-50%",
    ),
    VaultTemplate(
        id="liquidity-provider",
        name="Liquidity Provider",
        category="medium-risk",
        description="DEX liquidity provision with yield optimization",
        risk_level="medium",
        estimated_apy="12-20%",
    ),
]


def list_templates(category: Optional[str] = None) -> List[VaultTemplate]:
    if not category or category == ALL_CATEGORIES:
        return list(TEMPLATES)
    return [t for t in TEMPLATES if t.category == category]
