"""
Exceptions raised by the PyMemoria memory engine.
"""


class MemoryEngineError(Exception):
    """Base class for memory engine errors."""
    pass


class InvalidMemoryError(MemoryEngineError, ValueError):
    """A memory, entry or query is structurally invalid (a caller bug)."""
    pass
