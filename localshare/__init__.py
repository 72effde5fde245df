"""LocalShare - local network file sharing."""

__version__ = "0.1.0"
