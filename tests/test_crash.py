from unittest import mock

import pytest

from labkit.mrapps.crash import mapf, maybe_crash, reducef


def test_low_roll_exits_with_status_one():
    with mock.patch("secrets.randbelow", return_value=100), \
            mock.patch("os._exit", side_effect=SystemExit) as exit_mock:
        with pytest.raises(SystemExit):
            maybe_crash()
    exit_mock.assert_called_once_with(1)


def test_middle_roll_sleeps_then_maps():
    with mock.patch("secrets.randbelow", side_effect=[500, 2500]), \
            mock.patch("time.sleep") as sleep_mock, \
            mock.patch("os._exit", side_effect=SystemExit) as exit_mock:
        result = {kv.key: kv.value for kv in mapf("in.txt", "hello")}
    assert result == {"a": "in.txt", "b": "6", "c": "5", "d": "xyzzy"}
    sleep_mock.assert_called_once_with(2.5)
    exit_mock.assert_not_called()


def test_map_output_when_not_crashing():
    with mock.patch("secrets.randbelow", return_value=999):
        result = {kv.key: kv.value for kv in mapf("in.txt", "hello")}
    assert result["a"] == "in.txt"
    assert result["b"] == str(len("in.txt"))
    assert result["c"] == str(len("hello"))
    assert result["d"] == "xyzzy"


def test_reduce_sorts_when_not_crashing():
    with mock.patch("secrets.randbelow", return_value=999):
        assert reducef("k", ["b", "a"]) == "a b"


def test_reduce_crashes_on_low_roll():
    with mock.patch("secrets.randbelow", return_value=0), \
            mock.patch("os._exit", side_effect=SystemExit):
        with pytest.raises(SystemExit):
            reducef("k", ["a"])