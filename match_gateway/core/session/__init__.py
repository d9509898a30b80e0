"""
Session management: the state machine every transport event flows through.
"""

from match_gateway.core.session.lifecycle import SessionLifecycle

__all__ = ["SessionLifecycle"]
