"""Static Stellar address tables: asset contracts and XLM liquidity pools."""

from .token_registry import (
    Asset,
    Network,
    UsdcVariant,
    TokenInfo,
    TOKEN_REGISTRY,
    UNLABELED,
    resolve_asset_address,
    resolve_asset_symbol,
    is_usdc_address,
    get_usdc_address,
    get_all_usdc_addresses,
    native_address,
)
from .liquidity_pools import (
    BASE_ASSET_ADDRESS,
    CustomToken,
    LiquidityPool,
    get_pool_address,
    is_custom_token,
    get_token_symbol,
    list_pools,
)
