"""
Match gateway core: session state machine and connection plumbing.
"""
