"""
Utilities for PyMemoria: logging and data conversion helpers.
"""
