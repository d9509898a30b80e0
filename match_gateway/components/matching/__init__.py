"""
Matching components: waiting pool, block registry and the match coordinator.
"""

from match_gateway.components.matching.blocks import BlockRegistry, block_key
from match_gateway.components.matching.coordinator import MatchCoordinator
from match_gateway.components.matching.pool import WaitingPool

__all__ = [
    "BlockRegistry",
    "block_key",
    "MatchCoordinator",
    "WaitingPool",
]
