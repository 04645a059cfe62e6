"""
Token registry for Base (chain id 8453)

Well-known tokens resolve without an on-chain metadata read. Addresses are
stored lower-case; lookups normalise their input.
"""

from typing import Dict, Optional

from .common import Token


# V4 pools use the zero address for the chain's native currency
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
WETH_ADDRESS = "0x4200000000000000000000000000000000000006"


# =============================================================================
# Base Mainnet Tokens
# =============================================================================

KNOWN_TOKENS: Dict[str, Token] = {
    token.address: token
    for token in (
        # Ecosystem
        Token("0xC647421C5Dc78D1c3960faA7A33f9aEFDF4B7B07", "ARBME", 18),
        Token("0x392bc5DeEa227043d69Af0e67BadCbBAeD511B07", "RATCHET", 18),
        Token("0xFaB2ee8eB6B26208BfB5c41012661e62b4Dc9292", "CHAOS", 18),
        Token("0x8C19A8b92FA406Ae097EB9eA8a4A44cBC10EafE2", "ALPHACLAW", 18),
        Token("0x5c0872b790Bb73e2B3A9778Db6E7704095624b07", "ABC", 18),
        Token("0xc4730f86d1F86cE0712a7b17EE919Db7dEFad7FE", "PAGE", 18),
        Token("0xa448d40f6793773938a6b7427091c35676899125", "MLTL", 18),
        Token("0xB695559b26BB2c9703ef1935c37AeaE9526bab07", "MOLT", 18),
        Token("0x1bc0c42215582d5A085795f4baDbaC3ff36d1Bcb", "CLANKER", 18),
        Token("0x22aF33FE49fD1Fa80c7149773dDe5890D3c76F3b", "BNKR", 18),
        Token("0x53aD48291407E16E29822DeB505b30D47F965Ebb", "CLAWD", 18),
        Token("0xf3bb567d4c79cb32d92b9db151255cdd3b91f04a", "OPENCLAW", 18),
        Token("0xc78fabc2cb5b9cf59e0af3da8e3bc46d47753a4e", "OSO", 18),
        Token("0x01de044ad8eb037334ddda97a38bb0c798e4eb07", "CNEWS", 18),

        # Base assets
        Token(NATIVE_TOKEN_ADDRESS, "ETH", 18),
        Token(WETH_ADDRESS, "WETH", 18),
        Token("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6),
        Token("0x000000000D564D5be76f7f0d28fE52605afC7Cf8", "flETH", 18),
        Token("0xcbb7c0000ab88b473b1f5afd9ef808440eed33bf", "cbBTC", 8),
        Token("0x50c5725949a6f0c72e6c4a641f24049a917db0cb", "DAI", 18),
        Token("0x4ed4e862860bed51a9570b96d89af5e1b0efefed", "DEGEN", 18),
    )
}


def get_known_token(address: str) -> Optional[Token]:
    """Look up a registry token by address (any case)"""
    return KNOWN_TOKENS.get(address.lower())


def is_native_token(address: str) -> bool:
    """Check if address is the native-currency sentinel"""
    return address.lower() == NATIVE_TOKEN_ADDRESS


def pricing_address(address: str) -> str:
    """Address to quote a price for (native ETH is priced as WETH)"""
    address = address.lower()
    return WETH_ADDRESS if address == NATIVE_TOKEN_ADDRESS else address
