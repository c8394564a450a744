"""
Authentication helpers for the proxy service.
"""

from .tokens import TokenAuthority, TokenClaims

__all__ = [
    "TokenAuthority",
    "TokenClaims",
]
