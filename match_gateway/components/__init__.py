"""
Match gateway components.
"""
