"""Thought stages, sequences and their entry points."""

from ponder.thoughts.controller import ThoughtController
from ponder.thoughts.sequence import SEQUENCES, Thoughts
from ponder.thoughts.thought import Thought

__all__ = ["SEQUENCES", "Thought", "ThoughtController", "Thoughts"]
