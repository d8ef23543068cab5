"""
Operational tools for the membership indexer.

Tools:
    replay: Feed saved stream records through the reconciler
"""

from .replay import main as replay_main

__all__ = ["replay_main"]
