"""
Token Registry: Maps asset symbols to Stellar Asset Contract addresses per network.

Vault operations and DEX swaps use the Soroswap-compatible USDC so that
deposits route through the existing Soroswap liquidity pools. The official
Circle USDC is still recognised (Aquarius and a few protocols use it).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Optional, Union

from ..config import get_settings
from ..errors import UnknownAsset, UnknownNetwork, UnsupportedAddressFormat


logger = logging.getLogger(__name__)

ADDRESS_LENGTH = 56
CONTRACT_PREFIX = "C"
CLASSIC_PREFIX = "G"

# Every Stellar asset uses 7 decimal places (1 unit = 10^7 stroops)
STELLAR_DECIMALS = 7

# Returned by reverse lookups that find nothing
UNLABELED = "TOKEN"


class Network(str, Enum):
    TESTNET = "testnet"
    FUTURENET = "futurenet"
    MAINNET = "mainnet"
    PUBLIC = "public"

    @classmethod
    def parse(cls, value: Union[str, "Network"]) -> "Network":
        if isinstance(value, Network):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            known = ", ".join(n.value for n in cls)
            raise UnknownNetwork(f"Unknown network: {value!r}. Expected one of: {known}") from None


# Networks with real deployments; mainnet entries are placeholders for now
LIVE_NETWORKS = (Network.TESTNET, Network.FUTURENET)


class Asset(str, Enum):
    XLM = "XLM"
    USDC = "USDC"
    EURC = "EURC"
    AQUA = "AQUA"


class UsdcVariant(str, Enum):
    SOROSWAP = "soroswap"
    OFFICIAL = "official"


NetworkTable = Mapping[Network, Optional[str]]

# Native XLM SAC addresses
NATIVE_XLM_ADDRESSES: Dict[Network, str] = {
    Network.TESTNET: "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC",
    Network.FUTURENET: "CB64D3G7SM2RTH6JSGG34DDTFTQ5CFDKVDZJZSODMCX4NJ2HV2KN7OHT",
    Network.MAINNET: "CAS3J7GYLGXMF6TDJBBYYSE3HQ6BBSMLNUQ34T6TZMYMW2EVH34XOWMA",
    Network.PUBLIC: "CAS3J7GYLGXMF6TDJBBYYSE3HQ6BBSMLNUQ34T6TZMYMW2EVH34XOWMA",
}


def _usdc_table(testnet: str, futurenet: Optional[str]) -> Dict[Network, Optional[str]]:
    # None means "not deployed on this network yet"
    return {
        Network.TESTNET: testnet,
        Network.FUTURENET: futurenet,
        Network.MAINNET: None,
        Network.PUBLIC: None,
    }


_futurenet_usdc = get_settings().futurenet_usdc_address

USDC_ADDRESSES: Dict[UsdcVariant, Dict[Network, Optional[str]]] = {
    UsdcVariant.SOROSWAP: _usdc_table(
        "CBIELTK6YBZJU5UP2WWQEUCYKLPU6AUNZ2BQ4WWFEIE3USCIHMXQDAMA", _futurenet_usdc
    ),
    UsdcVariant.OFFICIAL: _usdc_table(
        "CAZRY5GSFBFXD7H6GAFBA5YGYQTDXU4QKWKMYFWBAZFUCURN3WKX6LF5", _futurenet_usdc
    ),
}


@dataclass(frozen=True)
class TokenInfo:
    asset: Asset
    name: str
    addresses: NetworkTable
    decimals: int = STELLAR_DECIMALS

    @property
    def symbol(self) -> str:
        return self.asset.value

    def address_on(self, network: Network) -> Optional[str]:
        return self.addresses.get(network)


TOKEN_REGISTRY: Dict[Asset, TokenInfo] = {
    Asset.XLM: TokenInfo(Asset.XLM, "Stellar Lumens", NATIVE_XLM_ADDRESSES),
    Asset.USDC: TokenInfo(Asset.USDC, "USD Coin", USDC_ADDRESSES[UsdcVariant.SOROSWAP]),
    Asset.EURC: TokenInfo(
        Asset.EURC,
        "Euro Coin",
        {
            Network.TESTNET: "CAQCFVLOBK5GIULPNZRGATJJMIZL5BSP7X5YJVMGCPTUEPFM4AVSRCJU",
            Network.FUTURENET: None,
            Network.MAINNET: None,
            Network.PUBLIC: None,
        },
    ),
    Asset.AQUA: TokenInfo(
        Asset.AQUA,
        "Aquarius",
        {
            Network.TESTNET: "CCRRYUTYU3UJQME6ZKBDZMZS6P4ZXVFWRXLQGVL7TWVCXHWMLQOAAQUA",
            Network.FUTURENET: None,
            Network.MAINNET: None,
            Network.PUBLIC: None,
        },
    ),
}


def _build_symbol_index() -> Dict[str, str]:
    index: Dict[str, str] = {}
    for info in TOKEN_REGISTRY.values():
        for address in info.addresses.values():
            if address:
                index.setdefault(address, info.symbol)
    for table in USDC_ADDRESSES.values():
        for address in table.values():
            if address:
                index.setdefault(address, Asset.USDC.value)
    return index


_SYMBOL_BY_ADDRESS = _build_symbol_index()


def is_contract_address(value: str) -> bool:
    return len(value) == ADDRESS_LENGTH and value.startswith(CONTRACT_PREFIX)


def is_classic_address(value: str) -> bool:
    return len(value) == ADDRESS_LENGTH and value.startswith(CLASSIC_PREFIX)


def get_token_info(symbol: str) -> Optional[TokenInfo]:
    try:
        return TOKEN_REGISTRY[Asset(symbol.upper())]
    except ValueError:
        return None


def native_address(network: Union[str, Network] = Network.TESTNET) -> str:
    return NATIVE_XLM_ADDRESSES[Network.parse(network)]


def resolve_asset_address(asset: str, network: Union[str, Network] = Network.TESTNET) -> str:
    """
    Resolve an asset symbol or contract address to a contract address.

    Args:
        asset: Symbol such as "XLM" / "usdc", or a 56-char contract address
        network: Network name or `Network`

    Returns:
        The contract address. Symbols without a deployment on `network`
        fall back to the native XLM contract with a warning.

    Raises:
        UnsupportedAddressFormat: a classic G... address was given
        UnknownAsset: the symbol is not registered
    """
    net = Network.parse(network)

    if is_contract_address(asset):
        return asset

    if is_classic_address(asset):
        raise UnsupportedAddressFormat(
            "Classic Stellar asset address detected. Please provide the Stellar Asset "
            "Contract (SAC) wrapper address instead."
        )

    info = get_token_info(asset)
    if info is None:
        known = ", ".join(a.value for a in Asset)
        raise UnknownAsset(
            f'Unknown asset symbol: "{asset}". Please use a known symbol ({known}) or '
            f"provide a Stellar contract address (starts with 'C', {ADDRESS_LENGTH} characters)."
        )

    address = info.address_on(net)
    if not address:
        logger.warning("%s not available on %s, using native XLM instead", info.symbol, net.value)
        return NATIVE_XLM_ADDRESSES[net]

    return address


def resolve_asset_symbol(address: str) -> str:
    """Reverse lookup over every network and both USDC variants."""
    return _SYMBOL_BY_ADDRESS.get(address, UNLABELED)


def get_usdc_address(network: Union[str, Network] = Network.TESTNET) -> str:
    """Primary (Soroswap-compatible) USDC address used as the vault base token."""
    table = USDC_ADDRESSES[UsdcVariant.SOROSWAP]
    return table[Network.parse(network)] or table[Network.TESTNET]


def get_all_usdc_addresses(network: Union[str, Network] = Network.TESTNET) -> List[str]:
    net = Network.parse(network)
    return [table[net] for table in USDC_ADDRESSES.values() if table[net]]


def is_usdc_address(address: str, network: Optional[Union[str, Network]] = None) -> bool:
    """True if `address` is either USDC variant on a live network (or on `network`)."""
    networks = (Network.parse(network),) if network is not None else LIVE_NETWORKS
    return any(
        table[net] is not None and table[net] == address
        for table in USDC_ADDRESSES.values()
        for net in networks
    )


def amount_to_raw(amount: float, symbol: str) -> int:
    info = get_token_info(symbol)
    if info is None:
        raise UnknownAsset(f"Unknown token: {symbol}")
    return int(Decimal(str(amount)) * (10 ** info.decimals))


def raw_to_amount(raw: int, symbol: str) -> float:
    info = get_token_info(symbol)
    if info is None:
        raise UnknownAsset(f"Unknown token: {symbol}")
    return raw / (10 ** info.decimals)
