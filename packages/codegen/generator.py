"""Precedence-aware driver shared by every language printer."""

import re
import math
import logging
import textwrap
from typing import Dict, List, Any, Optional, Iterable, Tuple, Union

from packages.core.registry import LanguageManifest, load_manifest
from packages.core.settings import GeneratorOptions
from .context import GenerationContext
from .errors import EncodingError, MalformedStructureError, UnknownBlockError, UnknownOptionError
from .ir import FIELD_OPTIONS, Block, BlockType, Workspace
from .names import NameDB, NameType

logger = logging.getLogger(__name__)

# Emission result of a value rule: the expression text and its precedence.
ValueCode = Tuple[str, float]
BlockCode = Union[str, ValueCode]

FUNCTION_NAME_PLACEHOLDER = "%FUNCTION_NAME%"

_NUMBER_RE = re.compile(r"^\s*-?\d+(\.\d+)?\s*$")


def is_number(text: str) -> bool:
    """Whether text is a plain decimal literal such as '3', '-2' or '1.5'."""
    return bool(_NUMBER_RE.match(text))


def format_number(value: float) -> str:
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def rule(*block_types: BlockType):
    """Register the decorated printer method as the emitter for block_types."""
    def decorator(func):
        func.block_types = getattr(func, "block_types", ()) + tuple(block_types)
        return func
    return decorator


class GenerationResult:
    """Output of one generation run."""

    def __init__(self, text: str, code: str, imports: List[str], definitions: List[str]):
        self.text = text
        self.code = code
        self.imports = imports
        self.definitions = definitions

    def __str__(self):
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.text,
            "body": self.code,
            "imports": self.imports,
            "definitions": self.definitions,
        }


class Generator:
    """
    Base class for language printers.

    A printer declares an ``Order`` table for its grammar and one method per
    block type, tagged with ``@rule``. Value rules return ``(code, order)``,
    statement rules return a string. Every concrete printer (one that sets
    ``language``) must cover every BlockType; a missing rule fails at class
    creation.

    Printers keep no per-run state: everything a run mutates lives on the
    GenerationContext handed to each rule, so one printer instance can serve
    many runs.
    """

    language: Optional[str] = None
    Order: Any = None
    COMMENT_PREFIX = "// "
    DOC_COMMENT_PREFIX = "// "
    rules: Dict[BlockType, str] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        rules: Dict[BlockType, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                for block_type in getattr(value, "block_types", ()):
                    rules[block_type] = attr
        cls.rules = rules
        if cls.language is not None:
            missing = [bt.value for bt in BlockType if bt not in rules]
            if missing:
                raise TypeError(f"{cls.__name__} has no rule for block types: {', '.join(missing)}")

    def __init__(self, options: Optional[GeneratorOptions] = None,
                 manifest: Optional[LanguageManifest] = None,
                 reserved_words: Optional[Iterable[str]] = None):
        self.options = options or GeneratorOptions()
        if manifest is None and self.language is not None:
            manifest = load_manifest(self.language)
        self.manifest = manifest
        if reserved_words is None:
            reserved_words = manifest.reserved_words if manifest else ()
        words = list(reserved_words)
        words.extend(self.options.extra_reserved_words)
        self.reserved_words = frozenset(words)
        self.interpolation_marker = manifest.interpolation_marker if manifest else None
        self.indent = self.options.indent

    # Run lifecycle

    def new_context(self, workspace: Workspace) -> GenerationContext:
        name_db = NameDB(self.reserved_words)
        return GenerationContext(workspace, name_db)

    def init(self, ctx: GenerationContext):
        """Prepare the name table before any block is emitted."""
        ctx.name_db.set_workspace(ctx.workspace)
        ctx.name_db.populate_variables(ctx.workspace)
        ctx.name_db.populate_procedures(ctx.workspace)

    def is_import(self, definition: str) -> bool:
        return False

    def wrap_program(self, ctx: GenerationContext, code: str) -> str:
        """Place the top-level statements into the program skeleton."""
        return code

    def finish(self, ctx: GenerationContext, code: str) -> GenerationResult:
        """Assemble preamble, definitions and body into the final text."""
        imports = []
        definitions = []
        for definition in ctx.definitions.values():
            if self.is_import(definition):
                imports.append(definition)
            else:
                definitions.append(definition)

        body = self.wrap_program(ctx, code)
        sections = []
        if imports:
            sections.append("\n".join(imports))
        if definitions:
            sections.append("\n\n".join(d.strip("\n") for d in definitions))
        if body.strip():
            sections.append(body.strip("\n"))
        text = "\n\n".join(sections)
        text = re.sub(r"[ \t]+\n", "\n", text)
        text = text.strip("\n") + "\n" if text.strip() else ""

        ctx.name_db.reset()
        return GenerationResult(text, code, imports, definitions)

    def generate(self, workspace: Workspace) -> GenerationResult:
        """Generate a complete program for the workspace."""
        ctx = self.new_context(workspace)
        self.init(ctx)
        logger.debug(f"Generating {self.language} code for {len(workspace.top_blocks)} top-level blocks")

        chunks = []
        for block in workspace.top_blocks:
            line = self.block_to_code(ctx, block)
            if isinstance(line, tuple):
                # A value block left on its own at the top level.
                line = self.scrub_naked_value(line[0]) if line[0] else ""
            if line:
                chunks.append(line)

        code = "\n".join(chunks)
        code = re.sub(r"^\s*\n", "", code)
        code = re.sub(r"\n\s*$", "\n", code)
        code = re.sub(r"[ \t]+\n", "\n", code)
        return self.finish(ctx, code)

    def workspace_to_code(self, workspace: Workspace) -> str:
        return self.generate(workspace).text

    # Emission

    def block_to_code(self, ctx: GenerationContext, block: Optional[Block],
                      this_only: bool = False) -> BlockCode:
        """
        Emit a block and, unless this_only, the rest of its statement chain.

        Returns a (code, order) tuple for a value block and a string for a
        statement chain. The chain is walked iteratively, so long programs do
        not grow the Python stack.
        """
        if block is None:
            return ""
        parts = []
        current = block
        while current is not None:
            code = self._emit_one(ctx, current)
            if isinstance(code, tuple):
                if current is not block:
                    raise MalformedStructureError(
                        "Value block chained below a statement",
                        block_id=current.block_id, block_type=current.type_name)
                return code
            parts.append(code)
            if this_only:
                break
            current = current.next_block
        return "".join(parts)

    def _emit_one(self, ctx: GenerationContext, block: Block) -> BlockCode:
        if not ctx.mark_visited(block):
            raise MalformedStructureError(
                "Block reached twice during generation (cycle or shared subtree)",
                block_id=block.block_id, block_type=block.type_name)
        if not block.enabled:
            return ""

        method_name = self.rules.get(block.block_type)
        if method_name is None:
            raise UnknownBlockError(
                f"No {self.language} rule for block type '{block.type_name}'",
                block_id=block.block_id, block_type=block.type_name)
        code = getattr(self, method_name)(ctx, block)

        if isinstance(code, tuple):
            return self.scrub(ctx, block, code[0]), code[1]
        if code is None:
            return ""
        if isinstance(code, str):
            if not block.suppress_prefix_suffix:
                if self.options.statement_prefix:
                    code = self.inject_id(self.options.statement_prefix, block) + code
                if self.options.statement_suffix:
                    code = code + self.inject_id(self.options.statement_suffix, block)
            return self.scrub(ctx, block, code)
        raise MalformedStructureError(f"Rule produced unexpected result {code!r}",
                                      block_id=block.block_id, block_type=block.type_name)

    def value_to_code(self, ctx: GenerationContext, block: Block, name: str, order: float) -> str:
        """
        Emit the block in value slot name, parenthesized when needed.

        Args:
            ctx: Current generation context
            block: Parent block owning the slot
            name: Value slot name
            order: Loosest precedence the parent can accept at this position

        Returns:
            Expression text, or '' if the slot is empty
        """
        if not isinstance(order, (int, float)) or math.isnan(order):
            raise TypeError(f"Expecting a valid order for slot {name}, got {order!r}")
        target = block.get_input_target(name)
        if target is None:
            return ""
        if not target.has_output:
            raise MalformedStructureError("Statement block connected to a value slot",
                                          block_id=block.block_id, block_type=block.type_name, slot=name)
        result = self.block_to_code(ctx, target, this_only=True)
        if result == "":
            return ""
        if not isinstance(result, tuple):
            raise MalformedStructureError("Value block produced statement code",
                                          block_id=target.block_id, block_type=target.type_name, slot=name)
        code, inner_order = result
        if not code:
            return ""
        if inner_order > order:
            code = f"({code})"
        return code

    def statement_to_code(self, ctx: GenerationContext, block: Block, name: str) -> str:
        """Emit the statement chain in slot name, indented one level."""
        target = block.get_input_target(name)
        if target is None:
            return ""
        if target.has_output:
            raise MalformedStructureError("Value block connected to a statement slot",
                                          block_id=block.block_id, block_type=block.type_name, slot=name)
        code = self.block_to_code(ctx, target)
        if not isinstance(code, str):
            raise MalformedStructureError("Statement chain produced a value",
                                          block_id=target.block_id, block_type=target.type_name, slot=name)
        if code:
            code = self.prefix_lines(code, self.indent)
        return code

    def get_adjusted(self, ctx: GenerationContext, block: Block, at_id: str,
                     delta: int = 0, negate: bool = False, order: Optional[float] = None) -> str:
        """
        Emit an index expression converted to zero-based form.

        Numeric literals are folded at generation time. Dynamic expressions get
        an explicit ``+ d`` / ``- d`` and are parenthesized only when the
        result binds looser than order.
        """
        if order is None:
            order = self.Order.NONE
        if ctx.one_based_index:
            delta -= 1
        default_at = "1" if ctx.one_based_index else "0"

        if negate:
            fetch_order = self.Order.UNARY_PREFIX if not delta else self.Order.ADDITIVE
            result_order = self.Order.UNARY_PREFIX
        elif delta:
            fetch_order = result_order = self.Order.ADDITIVE
        else:
            fetch_order = result_order = order

        at = self.value_to_code(ctx, block, at_id, fetch_order) or default_at

        if is_number(at):
            value = int(float(at)) + delta
            if negate:
                value = -value
            return str(value)

        if delta > 0:
            at = f"{at} + {delta}"
        elif delta < 0:
            at = f"{at} - {-delta}"
        if negate:
            if delta:
                at = f"-({at})"
            elif at.startswith("-"):
                at = f"- {at}"
            else:
                at = f"-{at}"
        if result_order > order:
            at = f"({at})"
        return at

    # Helpers available to rules

    def get_variable_name(self, ctx: GenerationContext, block: Block, field: str = "VAR") -> str:
        ref = block.get_field_value(field)
        if not ref:
            raise MalformedStructureError("Variable field is empty",
                                          block_id=block.block_id, block_type=block.type_name, slot=field)
        return ctx.name_db.get_name(ref, NameType.VARIABLE)

    def get_procedure_name(self, ctx: GenerationContext, block: Block) -> str:
        return ctx.name_db.get_name(block.get_procedure_name(), NameType.PROCEDURE)

    def option(self, block: Block, field: str, table: Dict[str, Any]) -> Any:
        """Look a dropdown value up in table; unknown values are authoring errors."""
        value = block.get_field_value(field)
        if value not in table:
            raise UnknownOptionError(f"Unknown option {value!r} for field {field}",
                                     block_id=block.block_id, block_type=block.type_name, slot=field)
        return table[value]

    def choice(self, block: Block, field: str, default: Optional[str] = None) -> str:
        """Read a dropdown field, checked against the options the block type declares."""
        value = block.get_field_value(field)
        if value is None and default is not None:
            return default
        choices = FIELD_OPTIONS.get(block.block_type, {}).get(field, frozenset())
        if value not in choices:
            raise UnknownOptionError(f"Unknown option {value!r} for field {field}",
                                     block_id=block.block_id, block_type=block.type_name, slot=field)
        return value

    def number_field(self, block: Block, field: str) -> float:
        raw = block.get_field_value(field)
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise EncodingError(f"Field {field} is not a number: {raw!r}",
                                block_id=block.block_id, block_type=block.type_name, slot=field)

    def branch_with_suffix(self, ctx: GenerationContext, block: Block, name: str) -> str:
        """Statement slot code preceded by the statement suffix hook, if any."""
        branch = self.statement_to_code(ctx, block, name)
        if self.options.statement_suffix:
            suffix = self.inject_id(self.options.statement_suffix, block)
            branch = self.prefix_lines(suffix, self.indent) + branch
        return branch

    def provide_function(self, ctx: GenerationContext, desired_name: str, template: Union[str, List[str]]) -> str:
        """
        Register a helper function once per run and return its final name.

        The template refers to its own name with FUNCTION_NAME_PLACEHOLDER and
        is written with two-space indents, which are rewritten to the
        configured indent.
        """
        if desired_name not in ctx.function_names:
            function_name = ctx.name_db.get_distinct_name(desired_name, NameType.PROCEDURE)
            ctx.function_names[desired_name] = function_name
            if isinstance(template, list):
                template = "\n".join(template)
            code = template.strip("\n").replace(FUNCTION_NAME_PLACEHOLDER, function_name)
            ctx.add_definition(desired_name, self._reindent(code))
            logger.debug(f"Provided helper {function_name}")
        return ctx.function_names[desired_name]

    def _reindent(self, code: str) -> str:
        if self.indent == "  ":
            return code
        lines = []
        for line in code.split("\n"):
            stripped = line.lstrip(" ")
            depth, extra = divmod(len(line) - len(stripped), 2)
            lines.append(self.indent * depth + " " * extra + stripped)
        return "\n".join(lines)

    def prefix_lines(self, text: str, prefix: str) -> str:
        """Prepend prefix to every line of text."""
        return prefix + re.sub(r"\n(?!\Z)", "\n" + prefix, text)

    def inject_id(self, message: str, block: Block) -> str:
        """Replace %1 in message with the quoted block id."""
        return message.replace("%1", self.quote(block.block_id))

    def add_loop_trap(self, ctx: GenerationContext, branch: str, block: Block) -> str:
        """Add the infinite-loop trap and statement hooks to a loop body."""
        if self.options.infinite_loop_trap:
            trap = self.inject_id(self.options.infinite_loop_trap, block)
            branch = self.prefix_lines(trap, self.indent) + branch
        if self.options.statement_suffix and not block.suppress_prefix_suffix:
            suffix = self.inject_id(self.options.statement_suffix, block)
            branch = self.prefix_lines(suffix, self.indent) + branch
        if self.options.statement_prefix and not block.suppress_prefix_suffix:
            prefix = self.inject_id(self.options.statement_prefix, block)
            branch = branch + self.prefix_lines(prefix, self.indent)
        return branch

    def comment_lines(self, comment: str, prefix: Optional[str] = None) -> str:
        prefix = self.COMMENT_PREFIX if prefix is None else prefix
        wrapped = []
        for paragraph in comment.split("\n"):
            lines = textwrap.wrap(paragraph, max(self.options.comment_wrap - 3, 10)) or [""]
            wrapped.extend(lines)
        return "\n".join(prefix + line if line else prefix.rstrip() for line in wrapped) + "\n"

    def all_nested_comments(self, block: Block) -> str:
        comments = [b.comment for b in block.descendants() if b.comment]
        return "\n".join(comments)

    def scrub(self, ctx: GenerationContext, block: Block, code: str) -> str:
        """Attach the block comment and the comments of its value children."""
        comment_code = ""
        if not block.has_output or block.parent is None:
            if block.comment:
                comment_code += self.comment_lines(block.comment, self.comment_prefix_for(block))
            for slot in block.inputs.values():
                if slot.target is not None and slot.target.has_output:
                    nested = self.all_nested_comments(slot.target)
                    if nested:
                        comment_code += self.comment_lines(nested)
        return comment_code + code

    def comment_prefix_for(self, block: Block) -> str:
        return self.COMMENT_PREFIX

    def scrub_naked_value(self, line: str) -> str:
        """Turn a value left at the top level into a statement."""
        return line + "\n"

    # Literal hooks

    def quote(self, text: str) -> str:
        raise NotImplementedError

    def multiline_quote(self, text: str) -> ValueCode:
        raise NotImplementedError
