"""Entity-type-bound HTTP client for the Etre entity API, with a mock for tests."""

__version__ = "0.1.0"
__all__ = ["client", "mock", "types"]