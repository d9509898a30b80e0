from match_gateway.components.presence.counter import PresenceCounter

__all__ = ["PresenceCounter"]
