import pytest

from vaultengine.registry.liquidity_pools import (
    BASE_ASSET_ADDRESS,
    CUSTOM_TOKENS,
    XLM_LIQUIDITY_POOLS,
    CustomToken,
    get_amount_out,
    get_pool_address,
    get_token_symbol,
    is_custom_token,
    list_pools,
)
from vaultengine.registry.token_registry import UNLABELED, resolve_asset_address


@pytest.mark.parametrize("token", list(CustomToken))
def test_pool_lookup_is_order_independent(token):
    forward = get_pool_address(BASE_ASSET_ADDRESS, token.address)
    backward = get_pool_address(token.address, BASE_ASSET_ADDRESS)

    assert forward == backward == XLM_LIQUIDITY_POOLS[token.address]


def test_pairs_without_base_asset_have_no_pool():
    assert get_pool_address(CustomToken.AQX.address, CustomToken.RELIO.address) is None
    usdc = resolve_asset_address("USDC", "testnet")
    assert get_pool_address(usdc, CustomToken.TRI.address) is None


def test_base_asset_with_unlisted_token_has_no_pool():
    usdc = resolve_asset_address("USDC", "testnet")
    assert get_pool_address(BASE_ASSET_ADDRESS, usdc) is None
    assert get_pool_address(BASE_ASSET_ADDRESS, "not-an-address") is None


def test_no_self_pair():
    assert BASE_ASSET_ADDRESS not in XLM_LIQUIDITY_POOLS
    assert get_pool_address(BASE_ASSET_ADDRESS, BASE_ASSET_ADDRESS) is None


def test_every_custom_token_has_a_pool():
    assert set(XLM_LIQUIDITY_POOLS) == set(CUSTOM_TOKENS.values())
    assert set(CUSTOM_TOKENS.values()) == {token.address for token in CustomToken}


def test_custom_token_membership():
    assert is_custom_token(CustomToken.NUMER.address)
    assert not is_custom_token(BASE_ASSET_ADDRESS)
    assert len(CUSTOM_TOKENS) == 10


def test_token_symbol_lookup():
    assert get_token_symbol(CustomToken.MBIUS.address) == "MBIUS"
    assert get_token_symbol(BASE_ASSET_ADDRESS) == UNLABELED


def test_list_pools():
    pools = list_pools()

    assert [p.symbol for p in pools] == [t.name for t in CustomToken]
    assert all(p.base_address == BASE_ASSET_ADDRESS for p in pools)
    assert all(get_pool_address(p.base_address, p.token_address) == p.pool_address for p in pools)


def test_constant_product_quote_applies_fee():
    assert get_amount_out(1_000, 10_000, 10_000) == 906
    # output can never drain the pool
    assert get_amount_out(10**12, 10_000, 10_000) < 10_000


def test_constant_product_quote_rejects_bad_input():
    with pytest.raises(ValueError):
        get_amount_out(0, 10_000, 10_000)
    with pytest.raises(ValueError):
        get_amount_out(100, 0, 10_000)
