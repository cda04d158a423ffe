"""BlockForge CLI: generate source code from Blockly workspaces."""

import sys
import json
import logging
import click
from pathlib import Path
from typing import Optional


# Add parent directory to path to allow importing core modules
sys.path.append(str(Path(__file__).parent.parent.parent))

from packages.codegen.codegen import CodeGenerator
from packages.codegen.errors import CodeGenerationError, WorkspaceLoadError
from packages.codegen.validator import has_errors, ValidationIssue
from packages.core.registry import LanguageNotFoundError, LanguageRegistry
from packages.core.settings import SettingsError, load_options
from packages.sdk.schema import SchemaValidationError

logger = logging.getLogger(__name__)

# Failures caused by the input document or the settings, reported without a traceback.
USER_ERRORS = (CodeGenerationError, WorkspaceLoadError, SchemaValidationError,
               SettingsError, LanguageNotFoundError)


def _make_generator(config: Optional[str], one_based: Optional[bool]) -> CodeGenerator:
    overrides = {"one_based_index": one_based}
    try:
        options = load_options(config, overrides)
    except SettingsError as e:
        raise click.ClickException(f"Invalid settings: {e}")
    return CodeGenerator(options=options)


# CLI Commands
@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging.')
def cli(verbose):
    """BlockForge CLI tool for turning block programs into source code."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument('workspace_file', type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option('--language', '-l', type=str, default='cpp', show_default=True, help='Target language or alias.')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the program to this file instead of stdout.')
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False), help='YAML settings file.')
@click.option('--zero-based/--one-based', 'zero_based', default=None, help='Index convention of list and text blocks.')
@click.option('--xml', 'as_xml', is_flag=True, help='Read the workspace as Blockly XML.')
def generate(workspace_file, language, output, config, zero_based, as_xml):
    """Generate a program from a workspace file."""
    one_based = None if zero_based is None else not zero_based
    generator = _make_generator(config, one_based)
    if Path(workspace_file).suffix.lower() == ".xml":
        as_xml = True
    try:
        result = generator.generate(workspace_file, language, xml=as_xml)
    except USER_ERRORS as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.text, encoding="utf-8")
        click.echo(f"Program written to: {output_path.resolve()}")
    else:
        click.echo(result.text, nl=False)


@cli.command()
@click.argument('workspace_file', type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option('--xml', 'as_xml', is_flag=True, help='Read the workspace as Blockly XML.')
@click.option('--json', 'as_json', is_flag=True, help='Print issues as JSON.')
def validate(workspace_file, as_xml, as_json):
    """Check a workspace file for authoring mistakes."""
    if Path(workspace_file).suffix.lower() == ".xml":
        as_xml = True
    generator = CodeGenerator()
    try:
        issues = generator.validate(workspace_file, xml=as_xml)
    except USER_ERRORS as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    if as_json:
        click.echo(json.dumps(issues, indent=2))
    elif not issues:
        click.echo(click.style("Workspace is valid.", fg='green'))
    else:
        for issue in issues:
            line = str(ValidationIssue(**issue))
            colour = 'red' if issue["severity"] == "error" else 'yellow'
            click.echo(click.style(line, fg=colour))

    if has_errors([ValidationIssue(**issue) for issue in issues]):
        sys.exit(1)


@cli.command("languages")
@click.option('--json', 'as_json', is_flag=True, help='Print languages as JSON.')
def languages_command(as_json):
    """List the target languages."""
    registry = LanguageRegistry()
    if as_json:
        click.echo(json.dumps(registry.to_json(), indent=2))
        return
    for entry in registry.to_json():
        aliases = f" (aliases: {', '.join(entry['aliases'])})" if entry["aliases"] else ""
        click.echo(f"{click.style(entry['name'], fg='cyan')}  {entry['display_name']}  "
                   f"{entry['file_extension']}{aliases}")


if __name__ == "__main__":
    cli()
