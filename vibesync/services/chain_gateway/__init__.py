"""
Chain Gateway.

Block height, ranged log queries and live log subscription for one chain.
"""

from .base import ChainDataSource
from .gateway import Web3ChainGateway
from .log_types import LogFilter, RawLogEntry

__all__ = [
    "ChainDataSource",
    "LogFilter",
    "RawLogEntry",
    "Web3ChainGateway",
]
