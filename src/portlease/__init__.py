"""portlease - lease-based TCP port coordination for a single host."""

__version__ = "0.1.0"
