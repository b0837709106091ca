"""Ponder: conversational message-processing engine.

Ponder decides whether and how a bot reacts to incoming chat messages,
events and server requests by running them through staged thought
processes, middleware and branch matchers.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
