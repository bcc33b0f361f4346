"""Orchestrator package - groups sources and drives multipart uploads."""
from .core import ConcatOrchestrator
from .matcher import PatternMatcher
from .registry import SessionRegistry

__all__ = ["ConcatOrchestrator", "PatternMatcher", "SessionRegistry"]
