"""Domain types for gas price suggestions.

This package holds the oracle-independent pieces: the priority tiers, the
quote snapshot and the conversion from ETH Gas Station units to wei. They
carry no HTTP or caching concerns so they can be tested in isolation.
"""

__all__ = [
    "gas",
]
