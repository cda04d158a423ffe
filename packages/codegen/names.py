"""Collision-free, reserved-word-safe identifiers for generated code."""

import re
from enum import Enum
from typing import Dict, Iterable, Optional, Set
from urllib.parse import quote

from .ir import Workspace


class NameType(Enum):
    """Kind of logical identifier held in the name table."""
    VARIABLE = "VARIABLE"
    PROCEDURE = "PROCEDURE"
    DEVELOPER_VARIABLE = "DEVELOPER_VARIABLE"


_NON_WORD = re.compile(r"[^\w]", re.ASCII)


class NameDB:
    """
    Per-run memo from (logical name, kind) to a target-language identifier.

    A logical name always maps to the same identifier until reset(); two
    logical names never share an identifier, whatever their kind. Reserved
    words are never handed out.
    """

    def __init__(self, reserved_words: Iterable[str] = (), variable_prefix: str = ""):
        self.reserved_words: Set[str] = set(reserved_words)
        self.variable_prefix = variable_prefix
        self.db: Dict[NameType, Dict[str, str]] = {}
        self.db_reverse: Set[str] = set()
        self.workspace: Optional[Workspace] = None

    def reset(self):
        """Forget every name handed out in the current run."""
        self.db = {}
        self.db_reverse = set()
        self.workspace = None

    def set_workspace(self, workspace: Optional[Workspace]):
        """Use the workspace variable map to turn variable ids into names."""
        self.workspace = workspace

    def populate_variables(self, workspace: Workspace):
        for variable in workspace.variables.values():
            self.get_name(variable.var_id, NameType.VARIABLE)

    def populate_procedures(self, workspace: Workspace):
        for definition in workspace.procedure_definitions():
            self.get_name(definition.get_procedure_name(), NameType.PROCEDURE)

    def _user_variable_name(self, id_or_name: str) -> Optional[str]:
        if self.workspace is None:
            return None
        variable = self.workspace.get_variable_by_id(id_or_name)
        return variable.name if variable else None

    def get_name(self, name_or_id: str, name_type: NameType) -> str:
        """Convert a logical name (or variable id) into a legal identifier."""
        name = name_or_id
        if name_type == NameType.VARIABLE:
            user_name = self._user_variable_name(name_or_id)
            if user_name:
                name = user_name
        normalized = name.lower()
        is_var = name_type in (NameType.VARIABLE, NameType.DEVELOPER_VARIABLE)
        prefix = self.variable_prefix if is_var else ""

        type_db = self.db.setdefault(name_type, {})
        if normalized in type_db:
            return prefix + type_db[normalized]
        safe_name = self.get_distinct_name(name, name_type)
        type_db[normalized] = safe_name[len(prefix):]
        return safe_name

    def get_distinct_name(self, name: str, name_type: NameType) -> str:
        """
        Pick an identifier nobody holds yet, without memoizing it.

        Used for loop counters, temporaries and helper functions that must
        never clash with user names.
        """
        safe_name = self.safe_name(name)
        suffix = ""
        while (safe_name + suffix) in self.db_reverse or (safe_name + suffix) in self.reserved_words:
            suffix = str(int(suffix) + 1) if suffix else "2"
        safe_name += suffix
        self.db_reverse.add(safe_name)
        is_var = name_type in (NameType.VARIABLE, NameType.DEVELOPER_VARIABLE)
        prefix = self.variable_prefix if is_var else ""
        return prefix + safe_name

    @staticmethod
    def safe_name(name: str) -> str:
        """Strip characters that cannot appear in an identifier."""
        if not name:
            return "unnamed"
        name = quote(name.replace(" ", "_"), safe="~@#$&()*!+=:;,.?/'")
        name = _NON_WORD.sub("_", name)
        if name[0] in "0123456789":
            name = "my_" + name
        return name
