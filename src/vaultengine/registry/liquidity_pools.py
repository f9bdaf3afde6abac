"""
Liquidity pool directory for the custom testnet tokens.

Every pool pairs native XLM with one custom token (a star around XLM), so a
lookup is a single order normalisation followed by a dict hit. All pools run
the real-liquidity-pool contract: constant product AMM (x * y = k) with a
0.3% swap fee.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .token_registry import NATIVE_XLM_ADDRESSES, UNLABELED, Network


BASE_ASSET_ADDRESS = NATIVE_XLM_ADDRESSES[Network.TESTNET]

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


class CustomToken(str, Enum):
    AQX = "CAABHEKIZJ3ZKVLTI63LHEZNQATLIZHSZAIGSKTAOBWGGINONRUUBIF3"
    VLTK = "CBBBGORMTQ4B2DULIT3GG2GOQ5VZ724M652JYIDHNDWVUC76242VINME"
    SLX = "CCU7FIONTYIEZK2VWF4IBRHGWQ6ZN2UYIL6A4NKFCG32A2JUEWN2LPY5"
    WRX = "CCAIKLYMECH7RTVNR3GLWDU77WHOEDUKRVFLYMDXJDA7CX74VX6SRXWE"
    SIXN = "CDYGMXR7K4DSN4SE4YAIGBZDP7GHSPP7DADUBHLO3VPQEHHCDJRNWU6O"
    MBIUS = "CBXSQDQUYGJ7TDXPJTVISXYRMJG4IPLGN22NTLXX27Y2TPXA5LZUHQDP"
    TRIO = "CB4MYY4N7IPH76XX6HFJNKPNORSDFMWBL4ZWDJ4DX73GK4G2KPSRLBGL"
    RELIO = "CDRFQC4J5ZRAYZQUUSTS3KGDMJ35RWAOITXGHQGRXDVRJACMXB32XF7H"
    TRI = "CB4JLZSNRR37UQMFZITKTFMQYG7LJR3JHJXKITXEVDFXRQTFYLFKLEDW"
    NUMER = "CDBBFLGF35YDKD3VXFB7QGZOJFYZ4I2V2BE3NB766D5BUDFCRVUB7MRR"

    @property
    def address(self) -> str:
        return self.value


CUSTOM_TOKENS: Dict[str, str] = {token.name: token.address for token in CustomToken}

# custom token address -> XLM/token pool contract
XLM_LIQUIDITY_POOLS: Dict[str, str] = {
    CustomToken.AQX.address: "CDNN77W7A4X3IKVENIKRQMUVBODUF3WRLUZYJ4WQYVNML6SVAORUVXFN",
    CustomToken.VLTK.address: "CDV2HI43TPWV36KJS6X6GLXDTZQFWFQI2H3DFD4O47LRTHA3A3KKTAEI",
    CustomToken.SLX.address: "CC47IJVCOHTNGKBQZFABNMPSAKFRGSXXXVOH3256L6K4WLAQJDJG2DDS",
    CustomToken.WRX.address: "CD6Z46SJGJH6QADZAG5TXQJKCGAW5VP2JSOFRZ3UGOZFHXTZ4AS62E24",
    CustomToken.SIXN.address: "CDC2NAQ6RNVZHQ4Q2BBPO4FRZMJDCUCKX5P67W772I5HLTBKRJQLJKOO",
    CustomToken.MBIUS.address: "CAM2UB4364HCDFIVQGW2YIONWMMCNZ43MXXVUD43X5ZP3PWAXBW5ABBK",
    CustomToken.TRIO.address: "CDL44UJMRKE5LZG2SVMNM3T2TSTBDGZUD4MJF3X5DBTYO2A4XU2UGKU2",
    CustomToken.RELIO.address: "CAKKECWO4LPCX5B4O4KENUKPBKFOJJL5HJXOC237TLU2LPKP3DDTGWLL",
    CustomToken.TRI.address: "CAT3BC6DPFZHQBLDIZKRGIIYIWQTN6S6TGJUNXXLIYHBUDI3T7VPEOUA",
    CustomToken.NUMER.address: "CAKFDKYUVLM2ZJURHAIA4W626IZR3Y76KPEDTEK7NZIS5TMSFCYCKOM6",
}

_CUSTOM_TOKEN_ADDRESSES = frozenset(CUSTOM_TOKENS.values())


@dataclass(frozen=True)
class LiquidityPool:
    symbol: str
    token_address: str
    pool_address: str
    base_address: str = BASE_ASSET_ADDRESS


def get_pool_address(token_a: str, token_b: str) -> Optional[str]:
    """
    Get the pool contract for a token pair, in either order.

    Returns None when the pair does not include XLM or the other side has no
    pool. Arbitrary pairs without a pool are normal, not an error.
    """
    if token_b == BASE_ASSET_ADDRESS:
        token_a, token_b = token_b, token_a

    if token_a != BASE_ASSET_ADDRESS:
        return None

    return XLM_LIQUIDITY_POOLS.get(token_b)


def is_custom_token(token_address: str) -> bool:
    return token_address in _CUSTOM_TOKEN_ADDRESSES


def get_token_symbol(token_address: str) -> str:
    try:
        return CustomToken(token_address).name
    except ValueError:
        return UNLABELED


def list_pools() -> List[LiquidityPool]:
    return [
        LiquidityPool(symbol=token.name, token_address=token.address, pool_address=XLM_LIQUIDITY_POOLS[token.address])
        for token in CustomToken
    ]


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Constant product output for `amount_in` raw units after the 0.3% fee."""
    if amount_in <= 0:
        raise ValueError("amount_in must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError("Pool has no liquidity")
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator
