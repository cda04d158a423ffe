"""Tests for generator options and the language registry."""

import pytest

from packages.codegen.cpp_printer import CppPrinter
from packages.codegen.python_printer import PythonPrinter
from packages.core.registry import LanguageNotFoundError, LanguageRegistry, load_manifest
from packages.core.settings import ENV_PREFIX, GeneratorOptions, SettingsError, load_options


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for suffix in ("ONE_BASED_INDEX", "INDENT", "STATEMENT_PREFIX", "STATEMENT_SUFFIX",
                   "INFINITE_LOOP_TRAP", "COMMENT_WRAP"):
        monkeypatch.delenv(ENV_PREFIX + suffix, raising=False)


# --------------------------------------------------------------------------- #
# Options
# --------------------------------------------------------------------------- #


class TestLoadOptions:
    def test_defaults(self):
        options = load_options()
        assert options == GeneratorOptions()
        assert options.one_based_index is True
        assert options.indent == "  "

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("indent: '    '\ninfinite_loop_trap: \"guard();\\n\"\n")
        options = load_options(path)
        assert options.indent == "    "
        assert options.infinite_loop_trap == "guard();\n"

    def test_environment_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("one_based_index: true\n")
        monkeypatch.setenv("BLOCKFORGE_ONE_BASED_INDEX", "false")
        assert load_options(path).one_based_index is False

    def test_overrides_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("BLOCKFORGE_INDENT", "\t")
        assert load_options(overrides={"indent": "   "}).indent == "   "

    def test_none_override_is_ignored(self, monkeypatch):
        monkeypatch.setenv("BLOCKFORGE_ONE_BASED_INDEX", "0")
        assert load_options(overrides={"one_based_index": None}).one_based_index is False

    def test_empty_hook_means_no_hook(self):
        assert load_options(overrides={"statement_prefix": ""}).statement_prefix is None

    def test_invalid_indent(self):
        with pytest.raises(SettingsError):
            load_options(overrides={"indent": "xx"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(SettingsError):
            load_options(tmp_path / "absent.yaml")

    def test_file_must_hold_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- indent\n")
        with pytest.raises(SettingsError):
            load_options(path)


# --------------------------------------------------------------------------- #
# Registry
# --------------------------------------------------------------------------- #


class TestLanguageRegistry:
    @pytest.fixture
    def registry(self):
        return LanguageRegistry()

    def test_bundled_languages(self, registry):
        assert registry.available() == ["cpp", "python"]

    @pytest.mark.parametrize("alias,name", [("C++", "cpp"), ("py", "python"), ("Python", "python")])
    def test_aliases(self, registry, alias, name):
        assert registry.resolve(alias) == name

    def test_unknown_language(self, registry):
        with pytest.raises(LanguageNotFoundError):
            registry.resolve("cobol")

    def test_create_printer(self, registry):
        options = GeneratorOptions(indent="    ")
        printer = registry.create_printer("py", options)
        assert isinstance(printer, PythonPrinter)
        assert printer.indent == "    "
        assert isinstance(registry.create_printer("cpp"), CppPrinter)

    def test_manifest_reserved_words(self):
        manifest = load_manifest("cpp")
        assert manifest.file_extension == ".cpp"
        assert "int" in manifest.reserved_words

    @pytest.mark.parametrize("name", ["cpp", "python"])
    def test_reserved_words_are_strings(self, name):
        words = load_manifest(name).reserved_words
        assert all(isinstance(word, str) for word in words)

    def test_boolean_literals_are_reserved(self):
        assert {"true", "false"} <= set(load_manifest("cpp").reserved_words)
        assert {"True", "False", "None"} <= set(load_manifest("python").reserved_words)

    def test_to_json(self, registry):
        entries = {entry["name"]: entry for entry in registry.to_json()}
        assert entries["cpp"]["display_name"] == "C++"
        assert "py" in entries["python"]["aliases"]

    def test_empty_directory(self, tmp_path):
        assert LanguageRegistry(tmp_path).available() == []

    def test_extra_reserved_words_reach_printer(self):
        printer = CppPrinter(options=GeneratorOptions(extra_reserved_words=["robot"]))
        assert "robot" in printer.reserved_words
