from labkit.models.kv import (
    APPEND,
    GET,
    PUT,
    KvInput,
    KvOutput,
    Operation,
    describe_operation,
    init_state,
    partition,
    step,
)


def test_partition_groups_by_sorted_key_keeping_order():
    ops = [
        Operation(KvInput(PUT, "b", "1"), KvOutput()),
        Operation(KvInput(PUT, "a", "2"), KvOutput()),
        Operation(KvInput(GET, "b"), KvOutput("1")),
    ]
    parts = partition(ops)
    assert [[o.input.key for o in p] for p in parts] == [["a"], ["b", "b"]]
    assert parts[1] == [ops[0], ops[2]]


def test_partition_empty():
    assert partition([]) == []


def test_step_get():
    assert step("v", KvInput(GET, "k"), KvOutput("v")) == (True, "v")
    assert step("v", KvInput(GET, "k"), KvOutput("w")) == (False, "v")


def test_step_put_and_append_from_initial():
    ok, state = step(init_state(), KvInput(PUT, "k", "x"), KvOutput())
    assert ok
    ok, state = step(state, KvInput(APPEND, "k", "y"), KvOutput())
    assert (ok, state) == (True, "xy")


def test_describe():
    assert describe_operation(KvInput(GET, "k"), KvOutput("v")) == "get('k') -> 'v'"
    assert describe_operation(KvInput(PUT, "k", "v"), KvOutput()) == "put('k', 'v')"
    assert describe_operation(KvInput(APPEND, "k", "v"), KvOutput()) == "append('k', 'v')"
    assert describe_operation(KvInput(7, "k"), KvOutput()) == "<invalid>"