"""Per-run state for one generation pass over a workspace."""

from typing import Dict, Set

from .ir import Block, Workspace
from .names import NameDB


class GenerationContext:
    """
    Everything one run mutates: the name table, the definitions collected
    for the program preamble, the helper-function registry and the set of
    blocks already emitted.

    A context is created at the start of a run and discarded at its end, so
    printers stay free of per-run state and can be shared between runs.
    """

    def __init__(self, workspace: Workspace, name_db: NameDB):
        self.workspace = workspace
        self.name_db = name_db
        self.definitions: Dict[str, str] = {}
        self.function_names: Dict[str, str] = {}
        self.visited: Set[int] = set()

    @property
    def one_based_index(self) -> bool:
        return self.workspace.one_based_index

    def mark_visited(self, block: Block) -> bool:
        """Record a block as emitted. Returns False if it was emitted before."""
        key = id(block)
        if key in self.visited:
            return False
        self.visited.add(key)
        return True

    def add_definition(self, key: str, code: str):
        """Register a preamble entry once; the first registration wins."""
        if key not in self.definitions:
            self.definitions[key] = code
