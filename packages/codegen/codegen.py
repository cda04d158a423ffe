"""High-level API for BlockForge code generation."""

import os
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

from packages.core.registry import LanguageRegistry
from packages.core.settings import GeneratorOptions
from .generator import GenerationResult, Generator
from .ir import Workspace
from .ir_builder import IRBuilder
from .validator import WorkspaceValidator

logger = logging.getLogger(__name__)

Document = Union[Dict[str, Any], Path, str, Workspace]


class CodeGenerator:
    """
    High-level API for generating code from block workspaces.
    """

    def __init__(self, registry: Optional[LanguageRegistry] = None,
                 options: Optional[GeneratorOptions] = None):
        """
        Initialize the code generator.

        Args:
            registry: Language registry; the bundled languages when omitted
            options: Generator options shared by every printer
        """
        self.registry = registry or LanguageRegistry()
        self.options = options or GeneratorOptions()
        self.builder = IRBuilder(one_based_index=self.options.one_based_index)
        self.validator = WorkspaceValidator()
        self._printers: Dict[str, Generator] = {}

    def get_printer(self, language: str) -> Generator:
        """Printer for a language name or alias, built once and reused."""
        name = self.registry.resolve(language)
        if name not in self._printers:
            self._printers[name] = self.registry.create_printer(name, self.options)
        return self._printers[name]

    def build_workspace(self, document: Document, xml: bool = False) -> Workspace:
        """
        Load a workspace.

        Args:
            document: Workspace, dict, path to a JSON/YAML/XML file, or document text
            xml: Read document as Blockly XML even when it does not look like XML
        """
        if isinstance(document, Workspace):
            return document
        if xml:
            if isinstance(document, (str, Path)) and os.path.exists(str(document)) \
                    and "\n" not in str(document):
                document = Path(document).read_text(encoding="utf-8")
            return self.builder.build_workspace_from_xml(document)
        return self.builder.build(document)

    def validate(self, document: Document, xml: bool = False) -> List[dict]:
        """
        Validate a workspace and return issues.

        Returns:
            List of validation issues as dictionaries
        """
        workspace = self.build_workspace(document, xml)
        issues = self.validator.validate(workspace)
        return [issue.to_dict() for issue in issues]

    def generate(self, document: Document, language: str = "cpp", xml: bool = False) -> GenerationResult:
        """
        Generate a program for a workspace.

        Args:
            document: Workspace or serialized workspace
            language: Target language name or alias
            xml: Read document as Blockly XML

        Returns:
            GenerationResult with the program text, imports and definitions
        """
        workspace = self.build_workspace(document, xml)
        printer = self.get_printer(language)
        result = printer.generate(workspace)
        logger.debug(f"Generated {len(result.text.splitlines())} lines of {printer.language}")
        return result

    def generate_code(self, document: Document, language: str = "cpp", xml: bool = False) -> str:
        return self.generate(document, language, xml).text

    def generate_all(
        self,
        document: Document,
        output_dir: Optional[Path] = None,
        base_filename: str = "program",
        xml: bool = False,
    ) -> Dict[str, str]:
        """
        Generate every registered language for one workspace.

        Args:
            document: Workspace or serialized workspace
            output_dir: Optional directory to write one file per language to
            base_filename: File name stem for the written files

        Returns:
            Dictionary of language to generated code
        """
        workspace = self.build_workspace(document, xml)
        outputs = {}
        for language in self.registry.available():
            outputs[language] = self.get_printer(language).generate(workspace).text

        if output_dir is not None:
            output_dir = Path(output_dir)
            os.makedirs(output_dir, exist_ok=True)
            for language, code in outputs.items():
                extension = self.registry.get_manifest(language).file_extension
                with open(output_dir / f"{base_filename}{extension}", "w") as f:
                    f.write(code)
        return outputs
