"""
Vault Engine

Natural language vault strategy backend for Stellar/Soroban DeFi vaults:
asset and liquidity pool address tables, LLM-backed strategy generation
and token budgeting for chat context.
"""

__version__ = "0.1.0"
