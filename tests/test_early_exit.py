from unittest import mock

from labkit.mr.common import KeyValue
from labkit.mrapps.early_exit import mapf, reducef


def test_map_emits_filename():
    assert mapf("pg-grimm.txt", "lots of text") == [KeyValue("pg-grimm.txt", "1")]


def test_reduce_sleeps_for_slow_keys():
    with mock.patch("time.sleep") as sleep_mock:
        assert reducef("pg-sherlock_holmes.txt", ["1", "1"]) == "2"
        assert reducef("pg-tom_sawyer.txt", ["1"]) == "1"
    assert sleep_mock.call_args_list == [mock.call(3), mock.call(3)]


def test_reduce_does_not_sleep_for_other_keys():
    with mock.patch("time.sleep") as sleep_mock:
        result = reducef("pg-being_ernest.txt", ["1", "1", "1"])
    assert result == str(3)
    sleep_mock.assert_not_called()


def test_map_reduce_round_trip():
    kvs = mapf("doc", "")
    with mock.patch("time.sleep"):
        assert reducef(kvs[0].key, [kv.value for kv in kvs]) == str(len(kvs))