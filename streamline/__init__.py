"""Stream-processing topologies, processors, pumps and timed commits."""

__version__ = "6.0.0"