"""Building blocks for distributed-systems labs: simulated RPC, serialization, MapReduce and key/value service parts."""

__version__ = "0.1.0"