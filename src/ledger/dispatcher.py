from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from common.errors import InvalidArgumentsError, UnknownOperationError
from state.models import Entry
from state.store import StateStore

from .append import AppendEngine

logger = logging.getLogger(__name__)


# Key written by `init`; holds raw argument bytes, not a record collection
BOOTSTRAP_KEY = "hello_world"


class Namespace(str, Enum):
    INVOKE = "invoke"  # mutating, ordered by the host
    QUERY = "query"  # read-only


class Operation(Enum):
    """Recognized operations with their namespace, arity and argument usage."""

    INIT = ("init", Namespace.INVOKE, 1, "bootstrap value")
    WRITE = ("write", Namespace.INVOKE, 4, "product id, place id, temperature, and timestamp")
    READ = ("read", Namespace.QUERY, 1, "product id")

    def __init__(self, function: str, namespace: Namespace, arity: int, usage: str) -> None:
        self.function = function
        self.namespace = namespace
        self.arity = arity
        self.usage = usage

    @classmethod
    def resolve(cls, namespace: Namespace, function: str) -> "Operation":
        for op in cls:
            if op.namespace is namespace and op.function == function:
                return op
        raise UnknownOperationError(f"Received unknown function {namespace.value}: {function!r}")

    def check_arity(self, args: Sequence[str]) -> None:
        if len(args) != self.arity:
            raise InvalidArgumentsError(
                f"Incorrect number of arguments for {self.function}. "
                f"Expecting {self.arity} ({self.usage}), got {len(args)}"
            )


class Dispatcher:
    """
    Routes named operations to their handlers.

    Entry points
    - `init(args)`: host bootstrap; same effect as `invoke("init", args)`.
    - `invoke(function, args)`: mutating operations (`init`, `write`).
    - `query(function, args)`: read-only operations (`read`).

    Each entry point resolves the operation in its own namespace, checks the
    argument count before touching the store, and returns the result bytes
    (None when there is nothing to return). Failures are raised as LedgerError
    subclasses; argument contents are passed through verbatim.
    """

    def __init__(self, store: StateStore, *, optimistic: bool = True) -> None:
        self._store = store
        self._engine = AppendEngine(store, optimistic=optimistic)
        self._handlers: Dict[Operation, Callable[[List[str]], Optional[bytes]]] = {
            Operation.INIT: self._init,
            Operation.WRITE: self._write,
            Operation.READ: self._read,
        }

    # -------- Entry points --------
    def init(self, args: Sequence[str]) -> Optional[bytes]:
        logger.info("init is running")
        return self._run(Operation.INIT, args)

    def invoke(self, function: str, args: Sequence[str]) -> Optional[bytes]:
        return self._dispatch(Namespace.INVOKE, function, args)

    def query(self, function: str, args: Sequence[str]) -> Optional[bytes]:
        return self._dispatch(Namespace.QUERY, function, args)

    # -------- Dispatch --------
    def _dispatch(self, namespace: Namespace, function: str, args: Sequence[str]) -> Optional[bytes]:
        logger.info(f"{namespace.value} is running {function}")
        try:
            op = Operation.resolve(namespace, function)
        except UnknownOperationError:
            logger.warning(f"{namespace.value} did not find func: {function}")
            raise
        return self._run(op, args)

    def _run(self, op: Operation, args: Sequence[str]) -> Optional[bytes]:
        op.check_arity(args)
        return self._handlers[op](list(args))

    # -------- Handlers --------
    def _init(self, args: List[str]) -> Optional[bytes]:
        # Lone surrogates from JSON events are stored verbatim
        self._store.put(BOOTSTRAP_KEY, args[0].encode("utf-8", errors="surrogatepass"))
        return None

    def _write(self, args: List[str]) -> Optional[bytes]:
        product_id, place_id, temperature, timestamp = args
        entry = Entry(place_id=place_id, temperature=temperature, timestamp=timestamp)
        self._engine.append(product_id, entry)
        return None

    def _read(self, args: List[str]) -> Optional[bytes]:
        return self._store.get(args[0])
