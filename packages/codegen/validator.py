"""Validates block workspaces and reports issues."""

import logging
from typing import Dict, List, Any, Set

from .ir import (
    Block, BlockType, Workspace, FIELD_OPTIONS,
    PROCEDURE_CALL_TYPES, PROCEDURE_DEFINITION_TYPES,
)

logger = logging.getLogger(__name__)


class ValidationIssue:
    """Represents a validation issue found in the workspace."""

    def __init__(self, node_id: str, issue_type: str, message: str, severity: str = "error"):
        self.node_id = node_id
        self.issue_type = issue_type
        self.message = message
        self.severity = severity

    def __str__(self):
        return f"{self.severity.upper()}: [{self.node_id}] {self.issue_type} - {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "issue_type": self.issue_type,
            "message": self.message,
            "severity": self.severity,
        }


class WorkspaceValidator:
    """Finds authoring mistakes before any code is generated."""

    def __init__(self):
        self.issues: List[ValidationIssue] = []

    def validate(self, workspace: Workspace) -> List[ValidationIssue]:
        """
        Validate a workspace and return a list of issues.

        Args:
            workspace: The workspace to validate

        Returns:
            List of validation issues, errors and warnings alike
        """
        self.issues = []

        if not workspace.top_blocks:
            self.issues.append(ValidationIssue("workspace", "empty_workspace",
                                               "Workspace has no blocks", "warning"))
            return self.issues

        procedures = self._collect_procedures(workspace)
        used_variable_ids: Set[str] = set()

        for top in workspace.top_blocks:
            if top.has_output and top.enabled:
                self.issues.append(ValidationIssue(
                    top.block_id, "naked_value",
                    f"Value block '{top.type_name}' is not attached to anything", "warning"))

        for block in workspace.get_all_blocks():
            self._validate_options(block)
            if block.has_field("VAR"):
                ref = block.get_field_value("VAR")
                variable = workspace.resolve_variable(ref)
                if variable is None:
                    self.issues.append(ValidationIssue(
                        block.block_id, "undefined_variable",
                        f"Block '{block.type_name}' references undefined variable '{ref}'"))
                else:
                    used_variable_ids.add(variable.var_id)
            if block.block_type in PROCEDURE_DEFINITION_TYPES:
                for param in block.get_vars():
                    variable = workspace.resolve_variable(param)
                    if variable is not None:
                        used_variable_ids.add(variable.var_id)
            if block.block_type in PROCEDURE_CALL_TYPES:
                self._validate_call(block, procedures)

        for variable in workspace.variables.values():
            if variable.var_id not in used_variable_ids:
                self.issues.append(ValidationIssue(
                    variable.var_id, "unused_variable",
                    f"Variable '{variable.name}' is never used", "warning"))

        for issue in self.issues:
            if issue.severity == "warning":
                logger.warning(str(issue))
        return self.issues

    def _collect_procedures(self, workspace: Workspace) -> Dict[str, Block]:
        procedures: Dict[str, Block] = {}
        for definition in workspace.procedure_definitions():
            key = definition.get_procedure_name().lower()
            if key in procedures:
                self.issues.append(ValidationIssue(
                    definition.block_id, "duplicate_procedure",
                    f"Procedure '{definition.get_procedure_name()}' is defined more than once"))
                continue
            procedures[key] = definition
        return procedures

    def _validate_options(self, block: Block):
        """Check every dropdown field against the options its block type declares."""
        for field, choices in FIELD_OPTIONS.get(block.block_type, {}).items():
            if not block.has_field(field):
                continue
            value = block.get_field_value(field)
            if value not in choices:
                self.issues.append(ValidationIssue(
                    block.block_id, "unknown_option",
                    f"Field '{field}' of '{block.type_name}' has unknown option '{value}' "
                    f"(expected one of {', '.join(sorted(choices))})"))

    def _validate_call(self, call: Block, procedures: Dict[str, Block]):
        name = call.get_procedure_name()
        definition = procedures.get(name.lower())
        if definition is None:
            self.issues.append(ValidationIssue(
                call.block_id, "undefined_procedure",
                f"Call to undefined procedure '{name}'"))
            return
        expected = len(definition.get_vars())
        given = len(call.get_vars())
        if expected != given:
            self.issues.append(ValidationIssue(
                call.block_id, "arity_mismatch",
                f"Procedure '{name}' takes {expected} argument(s) but the call passes {given}"))
        if (call.block_type == BlockType.PROCEDURES_CALLRETURN
                and definition.block_type == BlockType.PROCEDURES_DEFNORETURN):
            self.issues.append(ValidationIssue(
                call.block_id, "no_return_value",
                f"Procedure '{name}' does not return a value"))


def has_errors(issues: List[ValidationIssue]) -> bool:
    return any(issue.severity == "error" for issue in issues)
