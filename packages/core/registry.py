"""Registry module for discovering target-language manifests and their printers."""

import importlib
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional, Union

import yaml
from pydantic import BaseModel, ValidationError

from packages.core.settings import GeneratorOptions

logger = logging.getLogger(__name__)

LANGUAGES_DIR = Path(__file__).resolve().parent.parent / "codegen" / "languages"


class LanguageNotFoundError(Exception):
    """Raised when no manifest exists for a requested language."""
    pass


class LanguageManifest(BaseModel):
    """Static description of one target language."""
    name: str
    display_name: str = ""
    printer: str
    file_extension: str
    interpolation_marker: Optional[str] = None
    variable_type: Optional[str] = None
    reserved_words: List[str] = []
    aliases: List[str] = []

    def printer_class(self):
        """Import the printer class named by 'module:Class'."""
        module_name, _, class_name = self.printer.partition(":")
        module = importlib.import_module(module_name)
        return getattr(module, class_name)


def _read_manifest(path: Path) -> LanguageManifest:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    try:
        return LanguageManifest.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid language manifest {path}: {e}") from e


_manifest_cache: Dict[str, LanguageManifest] = {}


def load_manifest(name: str, languages_dir: Optional[Union[str, Path]] = None) -> LanguageManifest:
    """Load the manifest of one language from the languages directory."""
    base_path = Path(languages_dir) if languages_dir else LANGUAGES_DIR
    cache_key = f"{base_path}:{name}"
    if cache_key in _manifest_cache:
        return _manifest_cache[cache_key]

    manifest_path = base_path / f"{name}.yaml"
    if not manifest_path.exists():
        raise LanguageNotFoundError(f"No manifest for language '{name}' in {base_path}")
    manifest = _read_manifest(manifest_path)
    _manifest_cache[cache_key] = manifest
    logger.debug(f"Loaded manifest for {manifest.name} from {manifest_path}")
    return manifest


class LanguageRegistry:
    """
    Registry of the target languages available to the generator.

    Every ``*.yaml`` file in the languages directory is a manifest naming the
    printer class, the reserved words and the literal conventions of one
    language.
    """

    def __init__(self, languages_dir: Optional[Union[str, Path]] = None):
        self.languages_dir = Path(languages_dir) if languages_dir else LANGUAGES_DIR
        self.manifests: Dict[str, LanguageManifest] = {}
        self.aliases: Dict[str, str] = {}
        self.load_languages()

    def load_languages(self):
        if not self.languages_dir.exists():
            logger.warning(f"Languages directory '{self.languages_dir}' not found")
            return

        for manifest_path in sorted(self.languages_dir.glob("*.yaml")):
            manifest = _read_manifest(manifest_path)
            self.manifests[manifest.name] = manifest
            for alias in manifest.aliases:
                self.aliases[alias] = manifest.name
            logger.debug(f"Registered language: {manifest.name}")

    def available(self) -> List[str]:
        return sorted(self.manifests)

    def resolve(self, name: str) -> str:
        key = name.lower()
        key = self.aliases.get(key, key)
        if key not in self.manifests:
            raise LanguageNotFoundError(
                f"Unknown language '{name}'. Available: {', '.join(self.available())}")
        return key

    def get_manifest(self, name: str) -> LanguageManifest:
        return self.manifests[self.resolve(name)]

    def create_printer(self, name: str, options: Optional[GeneratorOptions] = None):
        """Build a printer for a language with its manifest and the given options."""
        manifest = self.get_manifest(name)
        printer_cls = manifest.printer_class()
        return printer_cls(options=options, manifest=manifest)

    def to_json(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": m.name,
                "display_name": m.display_name or m.name,
                "file_extension": m.file_extension,
                "aliases": m.aliases,
            }
            for m in (self.manifests[n] for n in self.available())
        ]
