"""
Relay components.
"""

from match_gateway.components.relay.signal_relay import SignalRelay

__all__ = ["SignalRelay"]
