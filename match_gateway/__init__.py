"""
CamConnect Match Gateway.

Pairs participants into ephemeral 1:1 sessions and relays their signaling.
"""
