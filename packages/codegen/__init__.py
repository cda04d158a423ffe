"""BlockForge Code Generation Package."""

__version__ = "0.1.0"

from .errors import (
    CodeGenerationError, UnknownBlockError, UnknownOptionError,
    MalformedStructureError, EncodingError, WorkspaceLoadError
)
from .ir import Block, BlockType, Input, InputType, VariableModel, Workspace
from .names import NameDB, NameType
from .context import GenerationContext
from .generator import Generator, GenerationResult, rule
from .ir_builder import IRBuilder
from .cpp_printer import CppPrinter
from .python_printer import PythonPrinter
from .validator import WorkspaceValidator, ValidationIssue
from .codegen import CodeGenerator

__all__ = [
    # Errors
    "CodeGenerationError", "UnknownBlockError", "UnknownOptionError",
    "MalformedStructureError", "EncodingError", "WorkspaceLoadError",

    # IR Classes
    "Block", "BlockType", "Input", "InputType", "VariableModel", "Workspace",

    # Emission
    "NameDB", "NameType", "GenerationContext", "Generator", "GenerationResult", "rule",

    # Builder
    "IRBuilder",

    # Printers
    "CppPrinter", "PythonPrinter",

    # Validator
    "WorkspaceValidator", "ValidationIssue",

    # High-level API
    "CodeGenerator",
]
