"""
Common utilities for coldchain-ledger.

Modules:
- errors: typed failures shared by the state layer and the dispatcher
"""

__all__ = [
    "errors",
]
