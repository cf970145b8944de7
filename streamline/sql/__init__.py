"""A batching SQL sink for stream topologies."""