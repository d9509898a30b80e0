"""
Block Registry.

Stores symmetric block relationships between identities for the lifetime of
the process. There is no unblock: once two identities are blocked they are
never matched again until restart.
"""

from __future__ import annotations

from match_shared.config.logging import get_logger, mask_email

logger = get_logger(__name__)


def block_key(identity_a: str, identity_b: str) -> tuple[str, str]:
    """Normalize an unordered identity pair."""
    if identity_a <= identity_b:
        return (identity_a, identity_b)
    return (identity_b, identity_a)


class BlockRegistry:
    """Set of blocked identity pairs."""

    def __init__(self) -> None:
        self._pairs: set[tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self._pairs)

    def block(self, identity_a: str, identity_b: str) -> bool:
        """
        Record a mutual block.

        An identity never blocks itself: two connections of one identity
        (two tabs) that were paired stay matchable.

        Returns:
            True if the pair was newly blocked, False if it already was or
            both sides are the same identity.
        """
        if identity_a == identity_b:
            logger.debug("Self-block ignored", identity=mask_email(identity_a))
            return False
        key = block_key(identity_a, identity_b)
        if key in self._pairs:
            return False
        self._pairs.add(key)
        logger.info(
            "Identities blocked",
            identity_a=mask_email(key[0]),
            identity_b=mask_email(key[1]),
            total_blocks=len(self._pairs),
        )
        return True

    def is_blocked(self, identity_a: str, identity_b: str) -> bool:
        return block_key(identity_a, identity_b) in self._pairs
