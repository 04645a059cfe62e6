"""
Protocol adapter registry

Maps each Protocol to its adapter class and builds the adapter set used for
a discovery pass.
"""

from concurrent.futures import Executor
from typing import Dict, Iterable, List, Optional, Type, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from .base import ProtocolAdapter
    from ..infra import ChainReader, AlchemyNftIndex

from ..errors import ConfigurationError
from ..types import Protocol

logger = logging.getLogger(__name__)


class ProtocolRegistry:
    """
    Registry for protocol adapters

    Usage:
        # Register adapter class
        ProtocolRegistry.register(Protocol.V3, UniswapV3Adapter)

        # Build every registered adapter
        adapters = ProtocolRegistry.create_all(chain, executor, nft_index=index)
    """

    # Registered adapter classes
    _adapters: Dict[Protocol, Type["ProtocolAdapter"]] = {}

    @classmethod
    def register(cls, protocol: Protocol, adapter_class: Type["ProtocolAdapter"]):
        """
        Register a protocol adapter class

        Args:
            protocol: Protocol handled by the adapter
            adapter_class: Adapter class (not instance)
        """
        cls._adapters[protocol] = adapter_class
        logger.debug(f"Registered protocol adapter: {protocol.value} -> {adapter_class.__name__}")

    @classmethod
    def get_class(cls, protocol: Protocol) -> Type["ProtocolAdapter"]:
        cls._ensure_loaded()
        if protocol not in cls._adapters:
            available = ", ".join(p.value for p in cls._adapters) or "none"
            raise ConfigurationError.invalid(
                "protocol", f"Unknown protocol: {protocol}. Available protocols: {available}"
            )
        return cls._adapters[protocol]

    @classmethod
    def create(
        cls,
        protocol: Protocol,
        chain: "ChainReader",
        executor: Executor,
        nft_index: Optional["AlchemyNftIndex"] = None,
        extra_pools: Optional[Iterable[str]] = None,
    ) -> "ProtocolAdapter":
        """Instantiate the adapter for one protocol"""
        adapter_class = cls.get_class(protocol)
        return adapter_class(chain, executor, nft_index=nft_index, extra_pools=extra_pools)

    @classmethod
    def create_all(
        cls,
        chain: "ChainReader",
        executor: Executor,
        nft_index: Optional["AlchemyNftIndex"] = None,
        extra_pools: Optional[Iterable[str]] = None,
    ) -> List["ProtocolAdapter"]:
        """Instantiate every registered adapter, in Protocol order"""
        cls._ensure_loaded()
        return [
            cls.create(protocol, chain, executor, nft_index=nft_index, extra_pools=extra_pools)
            for protocol in Protocol
            if protocol in cls._adapters
        ]

    @classmethod
    def list(cls) -> List[Protocol]:
        """List registered protocols"""
        cls._ensure_loaded()
        return [p for p in Protocol if p in cls._adapters]

    @classmethod
    def is_registered(cls, protocol: Protocol) -> bool:
        return protocol in cls._adapters

    @classmethod
    def _ensure_loaded(cls):
        """Register the built-in Uniswap adapters on first use"""
        if all(p in cls._adapters for p in Protocol):
            return
        from .uniswap import UniswapV2Adapter, UniswapV3Adapter, UniswapV4Adapter
        for protocol, adapter_class in (
            (Protocol.V2, UniswapV2Adapter),
            (Protocol.V3, UniswapV3Adapter),
            (Protocol.V4, UniswapV4Adapter),
        ):
            cls._adapters.setdefault(protocol, adapter_class)
