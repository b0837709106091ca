"""Branches and the controller holding them."""

from ponder.branches.branch import (
    CATEGORIES,
    Branch,
    CatchAllBranch,
    Category,
    CustomBranch,
    NLUBranch,
    NLUDirectBranch,
    ServerBranch,
    ServerMatch,
    TextBranch,
    TextDirectBranch,
)
from ponder.branches.controller import BranchController
from ponder.branches.direct import direct_pattern

__all__ = [
    "CATEGORIES",
    "Branch",
    "BranchController",
    "CatchAllBranch",
    "Category",
    "CustomBranch",
    "NLUBranch",
    "NLUDirectBranch",
    "ServerBranch",
    "ServerMatch",
    "TextBranch",
    "TextDirectBranch",
    "direct_pattern",
]
