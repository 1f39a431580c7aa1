"""
Data module - Models for PyMemoria.

This module contains:
- schemas: Pydantic models for memories, scored entries, summaries and queries
"""
