import pytest

from labkit.mr.apps import PluginError, load_plugin
from labkit.mrapps import indexer, rtiming, wc


def test_load_by_name():
    assert load_plugin("wc") == (wc.mapf, wc.reducef)


@pytest.mark.parametrize("name", ["wc.so", "../mrapps/wc.so", "/abs/path/wc.py"])
def test_load_by_path(name):
    assert load_plugin(name) == (wc.mapf, wc.reducef)


@pytest.mark.parametrize("name, module", [("indexer", indexer), ("rtiming.so", rtiming)])
def test_load_other_apps(name, module):
    mapf, reducef = load_plugin(name)
    assert mapf is module.mapf
    assert reducef is module.reducef


def test_unknown_plugin():
    with pytest.raises(PluginError, match="cannot load plugin nothere.so"):
        load_plugin("nothere.so")