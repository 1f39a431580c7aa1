"""
PyMemoria - Memory management and hierarchical summarization for
personality-driven social agents.
"""

__version__ = "0.1.0"
