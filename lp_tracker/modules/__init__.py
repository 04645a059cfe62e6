"""
Business logic modules

Provides:
- PositionAssembler: protocol state -> Position
- PositionEnricher / TokenMetadataResolver: metadata and USD prices
- ValuationCache: quality-aware per-wallet result cache
- PositionsModule: the get_positions query path
"""

from .assembler import PositionAssembler
from .enrichment import PositionEnricher, TokenMetadataResolver
from .cache import ValuationCache, classify_quality
from .positions import PositionsModule, normalize_wallet

__all__ = [
    "PositionAssembler",
    "PositionEnricher",
    "TokenMetadataResolver",
    "ValuationCache",
    "classify_quality",
    "PositionsModule",
    "normalize_wallet",
]
