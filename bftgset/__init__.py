"""Byzantine fault tolerant grow-only set replicated with Bracha reliable broadcast over ZeroMQ."""

__version__ = "0.1.0"