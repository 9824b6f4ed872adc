"""UDP discussion threads with IPv6 multicast notifications: wire formats, thread store, server and client."""

__version__ = "0.1.0"
__all__ = ["__version__"]