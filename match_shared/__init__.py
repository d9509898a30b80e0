"""
Shared module for common utilities used by the match gateway.

STRUCTURE:
- match_shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging and security audit helpers

- match_shared.security: Identity token verification
  - auth.py: PyJWT decode/encode of identity tokens

- match_shared.infrastructure: Cross-cutting runtime helpers
  - correlation.py: Connection-scoped correlation IDs for logs
"""
