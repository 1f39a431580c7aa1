"""
Pipelines module - Session-level workflows built on the memory engine.

This module contains:
- learnings: Recording what an activity session taught the agent
- context: Assembling memory context for prompts
"""

from pymemoria.pipelines.learnings import LearningRecorder, learnings_to_turns
from pymemoria.pipelines.context import MemoryContextBuilder

__all__ = [
    "LearningRecorder",
    "learnings_to_turns",
    "MemoryContextBuilder",
]
