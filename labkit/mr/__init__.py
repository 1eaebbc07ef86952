"""A small MapReduce framework: coordinator, workers and a sequential runner."""