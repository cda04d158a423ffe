"""Exceptions raised while turning a block workspace into source code."""

from typing import Optional


class CodeGenerationError(Exception):
    """Base class for authoring errors found while generating code."""

    def __init__(self, message: str, block_id: Optional[str] = None,
                 block_type: Optional[str] = None, slot: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.block_id = block_id
        self.block_type = block_type
        self.slot = slot

    def __str__(self):
        location = []
        if self.block_type:
            location.append(f"type={self.block_type}")
        if self.block_id:
            location.append(f"id={self.block_id}")
        if self.slot:
            location.append(f"slot={self.slot}")
        if location:
            return f"{self.message} [{', '.join(location)}]"
        return self.message


class UnknownBlockError(CodeGenerationError):
    """A block type tag has no emission rule."""
    pass


class UnknownOptionError(CodeGenerationError):
    """A dropdown field holds an option the rule does not know."""
    pass


class MalformedStructureError(CodeGenerationError):
    """Slot or chain topology is invalid (cycles, shared subtrees, wrong block shape)."""
    pass


class EncodingError(CodeGenerationError):
    """A literal cannot be written safely in the target grammar."""
    pass


class WorkspaceLoadError(Exception):
    """A serialized workspace document could not be read."""
    pass
