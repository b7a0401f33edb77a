"""
Operation dispatch and record appends on top of a key-value substrate.

- append: read-modify-write of a product's record collection
- dispatcher: operation table, arity checks, invoke/query/init entry points
- handler: AWS Lambda adapter wiring configuration to a Dispatcher
"""

from .append import AppendEngine
from .dispatcher import Dispatcher, Operation

__all__ = ["AppendEngine", "Dispatcher", "Operation"]
