from __future__ import annotations

import pytest

from common.errors import InvalidArgumentsError, UnknownOperationError
from ledger.dispatcher import BOOTSTRAP_KEY, Dispatcher, Namespace, Operation
from state.codec import decode
from state.models import Entry
from state.store import InMemoryStateStore


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def dispatcher(store: InMemoryStateStore) -> Dispatcher:
    return Dispatcher(store)


def test_init_writes_raw_bootstrap_value(dispatcher, store):
    assert dispatcher.init(["seed"]) is None
    assert store.get(BOOTSTRAP_KEY) == b"seed"
    assert store.get("hello_world") == b"seed"


def test_init_stores_lone_surrogate_verbatim(dispatcher, store):
    dispatcher.init(["seed\udc80"])
    assert store.get(BOOTSTRAP_KEY) == b"seed\xed\xb2\x80"


def test_invoke_init_resets_bootstrap_value(dispatcher, store):
    dispatcher.init(["seed"])
    dispatcher.invoke("init", ["again"])
    assert store.get(BOOTSTRAP_KEY) == b"again"


def test_write_then_read_single_entry(dispatcher):
    dispatcher.invoke("write", ["P1", "Loc1", "21.5", "2024-01-01T00:00:00Z"])

    history = decode(dispatcher.query("read", ["P1"]))
    assert list(history) == [
        Entry(place_id="Loc1", temperature="21.5", timestamp="2024-01-01T00:00:00Z")
    ]


def test_second_write_appends_and_keeps_first(dispatcher):
    dispatcher.invoke("write", ["P1", "Loc1", "21.5", "2024-01-01T00:00:00Z"])
    first = decode(dispatcher.query("read", ["P1"]))[0]

    dispatcher.invoke("write", ["P1", "Loc2", "22.0", "2024-01-01T01:00:00Z"])
    history = decode(dispatcher.query("read", ["P1"]))

    assert len(history) == 2
    assert history[0] == first
    assert history[-1].place_id == "Loc2"


def test_n_writes_give_n_entries_in_order(dispatcher):
    for n in range(5):
        dispatcher.invoke("write", ["P9", f"L{n}", str(n), f"t{n}"])

    history = decode(dispatcher.query("read", ["P9"]))
    assert [e.timestamp for e in history] == ["t0", "t1", "t2", "t3", "t4"]


def test_arguments_accepted_verbatim(dispatcher):
    dispatcher.invoke("write", ["P1", "", "not-a-number", "yesterday-ish"])
    entry = decode(dispatcher.query("read", ["P1"]))[-1]
    assert entry == Entry(place_id="", temperature="not-a-number", timestamp="yesterday-ish")


def test_read_never_written_returns_none(dispatcher):
    assert dispatcher.query("read", ["ghost"]) is None


def test_read_returns_raw_bytes_without_reencoding(dispatcher, store):
    raw = b'[ {"timestamp":"t","placeid":"p","temperature":"1"} ]'
    store.put("P1", raw)
    assert dispatcher.query("read", ["P1"]) == raw


@pytest.mark.parametrize("args", [[], ["a", "b", "c"], ["a", "b", "c", "d", "e"]])
def test_write_wrong_arity_fails_before_store_access(dispatcher, store, args):
    with pytest.raises(InvalidArgumentsError):
        dispatcher.invoke("write", args)
    assert store.gets == 0
    assert store.puts == 0


@pytest.mark.parametrize(
    "call",
    [
        lambda d: d.init([]),
        lambda d: d.invoke("init", ["a", "b"]),
        lambda d: d.query("read", []),
        lambda d: d.query("read", ["a", "b"]),
    ],
)
def test_other_arity_mismatches(dispatcher, store, call):
    with pytest.raises(InvalidArgumentsError):
        call(dispatcher)
    assert store.gets == 0
    assert store.puts == 0


def test_unknown_operations(dispatcher):
    with pytest.raises(UnknownOperationError):
        dispatcher.invoke("bogus", ["x"])
    with pytest.raises(UnknownOperationError):
        dispatcher.query("bogus", ["x"])


def test_namespaces_are_disjoint(dispatcher, store):
    with pytest.raises(UnknownOperationError):
        dispatcher.invoke("read", ["P1"])
    with pytest.raises(UnknownOperationError):
        dispatcher.query("write", ["P1", "L", "1", "t"])
    assert store.puts == 0


def test_operation_table():
    assert Operation.resolve(Namespace.INVOKE, "write") is Operation.WRITE
    assert Operation.resolve(Namespace.QUERY, "read") is Operation.READ
    assert {op.arity for op in Operation} == {1, 4}
    assert Operation.WRITE.arity == 4


def test_every_operation_has_a_handler(dispatcher):
    assert set(dispatcher._handlers) == set(Operation)


def test_write_performs_one_put_and_read_no_put(dispatcher, store):
    dispatcher.invoke("write", ["P1", "L", "1", "t"])
    assert store.puts == 1
    gets_before = store.gets
    dispatcher.query("read", ["P1"])
    assert store.puts == 1
    assert store.gets == gets_before + 1
