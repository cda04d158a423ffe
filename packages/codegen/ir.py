"""Intermediate Representation (IR) for Blockly workspaces and blocks."""

from typing import Dict, List, Any, Optional, Iterator
from enum import Enum


class BlockType(Enum):
    """Closed set of block types every language printer must handle."""
    # Logic
    CONTROLS_IF = "controls_if"
    CONTROLS_IFELSE = "controls_ifelse"
    LOGIC_COMPARE = "logic_compare"
    LOGIC_OPERATION = "logic_operation"
    LOGIC_NEGATE = "logic_negate"
    LOGIC_BOOLEAN = "logic_boolean"
    LOGIC_NULL = "logic_null"
    LOGIC_TERNARY = "logic_ternary"
    # Loops
    CONTROLS_REPEAT_EXT = "controls_repeat_ext"
    CONTROLS_REPEAT = "controls_repeat"
    CONTROLS_WHILE_UNTIL = "controls_whileUntil"
    CONTROLS_FOR = "controls_for"
    CONTROLS_FOR_EACH = "controls_forEach"
    CONTROLS_FLOW_STATEMENTS = "controls_flow_statements"
    # Math
    MATH_NUMBER = "math_number"
    MATH_ARITHMETIC = "math_arithmetic"
    MATH_SINGLE = "math_single"
    MATH_ROUND = "math_round"
    MATH_TRIG = "math_trig"
    MATH_CONSTANT = "math_constant"
    MATH_NUMBER_PROPERTY = "math_number_property"
    MATH_CHANGE = "math_change"
    MATH_ON_LIST = "math_on_list"
    MATH_MODULO = "math_modulo"
    MATH_CONSTRAIN = "math_constrain"
    MATH_RANDOM_INT = "math_random_int"
    MATH_RANDOM_FLOAT = "math_random_float"
    MATH_ATAN2 = "math_atan2"
    # Text
    TEXT = "text"
    TEXT_MULTILINE = "text_multiline"
    TEXT_JOIN = "text_join"
    TEXT_APPEND = "text_append"
    TEXT_LENGTH = "text_length"
    TEXT_IS_EMPTY = "text_isEmpty"
    TEXT_INDEX_OF = "text_indexOf"
    TEXT_CHAR_AT = "text_charAt"
    TEXT_GET_SUBSTRING = "text_getSubstring"
    TEXT_CHANGE_CASE = "text_changeCase"
    TEXT_TRIM = "text_trim"
    TEXT_PRINT = "text_print"
    TEXT_PROMPT_EXT = "text_prompt_ext"
    TEXT_PROMPT = "text_prompt"
    TEXT_COUNT = "text_count"
    TEXT_REPLACE = "text_replace"
    TEXT_REVERSE = "text_reverse"
    # Lists
    LISTS_CREATE_EMPTY = "lists_create_empty"
    LISTS_CREATE_WITH = "lists_create_with"
    LISTS_REPEAT = "lists_repeat"
    LISTS_LENGTH = "lists_length"
    LISTS_IS_EMPTY = "lists_isEmpty"
    LISTS_INDEX_OF = "lists_indexOf"
    LISTS_GET_INDEX = "lists_getIndex"
    LISTS_SET_INDEX = "lists_setIndex"
    LISTS_GET_SUBLIST = "lists_getSublist"
    LISTS_SORT = "lists_sort"
    LISTS_SPLIT = "lists_split"
    LISTS_REVERSE = "lists_reverse"
    # Procedures
    PROCEDURES_DEFRETURN = "procedures_defreturn"
    PROCEDURES_DEFNORETURN = "procedures_defnoreturn"
    PROCEDURES_CALLRETURN = "procedures_callreturn"
    PROCEDURES_CALLNORETURN = "procedures_callnoreturn"
    PROCEDURES_IFRETURN = "procedures_ifreturn"
    # Variables
    VARIABLES_GET = "variables_get"
    VARIABLES_SET = "variables_set"
    VARIABLES_GET_DYNAMIC = "variables_get_dynamic"
    VARIABLES_SET_DYNAMIC = "variables_set_dynamic"
    # Colour
    COLOUR_PICKER = "colour_picker"
    COLOUR_RANDOM = "colour_random"
    COLOUR_RGB = "colour_rgb"
    COLOUR_BLEND = "colour_blend"


# Blocks without an output connection. Procedure definitions are top-level
# hats; everything else here chains through previous/next connections.
STATEMENT_TYPES = frozenset({
    BlockType.CONTROLS_IF, BlockType.CONTROLS_IFELSE,
    BlockType.CONTROLS_REPEAT_EXT, BlockType.CONTROLS_REPEAT,
    BlockType.CONTROLS_WHILE_UNTIL, BlockType.CONTROLS_FOR,
    BlockType.CONTROLS_FOR_EACH, BlockType.CONTROLS_FLOW_STATEMENTS,
    BlockType.MATH_CHANGE, BlockType.TEXT_APPEND, BlockType.TEXT_PRINT,
    BlockType.LISTS_SET_INDEX, BlockType.PROCEDURES_DEFRETURN,
    BlockType.PROCEDURES_DEFNORETURN, BlockType.PROCEDURES_CALLNORETURN,
    BlockType.PROCEDURES_IFRETURN, BlockType.VARIABLES_SET,
    BlockType.VARIABLES_SET_DYNAMIC,
})

LOOP_TYPES = frozenset({
    BlockType.CONTROLS_REPEAT, BlockType.CONTROLS_REPEAT_EXT,
    BlockType.CONTROLS_FOR_EACH, BlockType.CONTROLS_FOR,
    BlockType.CONTROLS_WHILE_UNTIL,
})

PROCEDURE_DEFINITION_TYPES = frozenset({
    BlockType.PROCEDURES_DEFRETURN, BlockType.PROCEDURES_DEFNORETURN,
})

PROCEDURE_CALL_TYPES = frozenset({
    BlockType.PROCEDURES_CALLRETURN, BlockType.PROCEDURES_CALLNORETURN,
})

# Blocks whose rules place the statement prefix/suffix hooks themselves.
SELF_PREFIXED_TYPES = frozenset({BlockType.CONTROLS_IF, BlockType.CONTROLS_IFELSE})

_WHERE = frozenset({"FROM_START", "FROM_END", "FIRST", "LAST", "RANDOM"})

# Dropdown options accepted per block type and field.
FIELD_OPTIONS: Dict[BlockType, Dict[str, frozenset]] = {
    BlockType.LOGIC_COMPARE: {"OP": frozenset({"EQ", "NEQ", "LT", "LTE", "GT", "GTE"})},
    BlockType.LOGIC_OPERATION: {"OP": frozenset({"AND", "OR"})},
    BlockType.LOGIC_BOOLEAN: {"BOOL": frozenset({"TRUE", "FALSE"})},
    BlockType.CONTROLS_WHILE_UNTIL: {"MODE": frozenset({"WHILE", "UNTIL"})},
    BlockType.CONTROLS_FLOW_STATEMENTS: {"FLOW": frozenset({"BREAK", "CONTINUE"})},
    BlockType.MATH_ARITHMETIC: {"OP": frozenset({"ADD", "MINUS", "MULTIPLY", "DIVIDE", "POWER"})},
    BlockType.MATH_SINGLE: {"OP": frozenset({"ROOT", "ABS", "NEG", "LN", "LOG10", "EXP", "POW10"})},
    BlockType.MATH_ROUND: {"OP": frozenset({"ROUND", "ROUNDUP", "ROUNDDOWN"})},
    BlockType.MATH_TRIG: {"OP": frozenset({"SIN", "COS", "TAN", "ASIN", "ACOS", "ATAN"})},
    BlockType.MATH_CONSTANT: {
        "CONSTANT": frozenset({"PI", "E", "GOLDEN_RATIO", "SQRT2", "SQRT1_2", "INFINITY"}),
    },
    BlockType.MATH_NUMBER_PROPERTY: {
        "PROPERTY": frozenset({"EVEN", "ODD", "PRIME", "WHOLE", "POSITIVE", "NEGATIVE", "DIVISIBLE_BY"}),
    },
    BlockType.MATH_ON_LIST: {
        "OP": frozenset({"SUM", "MIN", "MAX", "AVERAGE", "MEDIAN", "MODE", "STD_DEV", "RANDOM"}),
    },
    BlockType.TEXT_INDEX_OF: {"END": frozenset({"FIRST", "LAST"})},
    BlockType.TEXT_CHAR_AT: {"WHERE": _WHERE},
    BlockType.TEXT_GET_SUBSTRING: {
        "WHERE1": frozenset({"FROM_START", "FROM_END", "FIRST"}),
        "WHERE2": frozenset({"FROM_START", "FROM_END", "LAST"}),
    },
    BlockType.TEXT_CHANGE_CASE: {"CASE": frozenset({"UPPERCASE", "LOWERCASE", "TITLECASE"})},
    BlockType.TEXT_TRIM: {"MODE": frozenset({"BOTH", "LEFT", "RIGHT"})},
    BlockType.TEXT_PROMPT_EXT: {"TYPE": frozenset({"TEXT", "NUMBER"})},
    BlockType.TEXT_PROMPT: {"TYPE": frozenset({"TEXT", "NUMBER"})},
    BlockType.LISTS_INDEX_OF: {"END": frozenset({"FIRST", "LAST"})},
    BlockType.LISTS_GET_INDEX: {"MODE": frozenset({"GET", "GET_REMOVE", "REMOVE"}), "WHERE": _WHERE},
    BlockType.LISTS_SET_INDEX: {"MODE": frozenset({"SET", "INSERT"}), "WHERE": _WHERE},
    BlockType.LISTS_GET_SUBLIST: {
        "WHERE1": frozenset({"FROM_START", "FROM_END", "FIRST"}),
        "WHERE2": frozenset({"FROM_START", "FROM_END", "LAST"}),
    },
    BlockType.LISTS_SORT: {
        "TYPE": frozenset({"NUMERIC", "TEXT", "IGNORE_CASE"}),
        "DIRECTION": frozenset({"1", "-1"}),
    },
    BlockType.LISTS_SPLIT: {"MODE": frozenset({"SPLIT", "JOIN"})},
}


class InputType(Enum):
    """Kind of a named connection point on a block."""
    VALUE = "value"
    STATEMENT = "statement"


class Input:
    """A named slot on a block, optionally connected to a child block."""
    def __init__(self, name: str, input_type: InputType, target: Optional['Block'] = None):
        self.name = name
        self.input_type = input_type
        self.target = target


class VariableModel:
    """A user variable declared in the workspace."""
    def __init__(self, var_id: str, name: str, var_type: str = ""):
        self.var_id = var_id
        self.name = name
        self.var_type = var_type

    def __repr__(self):
        return f"VariableModel({self.var_id!r}, {self.name!r})"


class Block:
    """A single node of the visual program."""
    def __init__(self, block_type: BlockType, block_id: str):
        self.block_type = block_type
        self.block_id = block_id
        self.fields: Dict[str, Any] = {}
        self.inputs: Dict[str, Input] = {}
        self.extra_state: Dict[str, Any] = {}
        self.next_block: Optional['Block'] = None
        self.parent: Optional['Block'] = None
        self.enabled = True
        self.comment: Optional[str] = None
        self.workspace: Optional['Workspace'] = None
        self.suppress_prefix_suffix = block_type in SELF_PREFIXED_TYPES

    def __repr__(self):
        return f"Block({self.block_type.value!r}, {self.block_id!r})"

    @property
    def type_name(self) -> str:
        return self.block_type.value

    def get_field_value(self, name: str) -> Optional[str]:
        """Get a field's value as a string, or None if the block has no such field."""
        value = self.fields.get(name)
        if value is None:
            return None
        return str(value)

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def set_field_value(self, name: str, value: Any):
        self.fields[name] = value

    def declare_input(self, name: str, input_type: InputType) -> Input:
        """Declare a slot without connecting anything to it."""
        existing = self.inputs.get(name)
        if existing is None:
            existing = Input(name, input_type)
            self.inputs[name] = existing
        return existing

    def connect_input(self, name: str, input_type: InputType, child: 'Block'):
        """Connect a child block (or statement chain head) to a named slot."""
        slot = self.declare_input(name, input_type)
        slot.input_type = input_type
        slot.target = child
        child.parent = self

    def get_input(self, name: str) -> Optional[Input]:
        return self.inputs.get(name)

    def get_input_target(self, name: str) -> Optional['Block']:
        slot = self.inputs.get(name)
        return slot.target if slot else None

    def set_next(self, block: 'Block'):
        self.next_block = block
        block.parent = self

    @property
    def has_output(self) -> bool:
        """Whether the block produces a value rather than a statement."""
        if self.block_type == BlockType.LISTS_GET_INDEX:
            if "isStatement" in self.extra_state:
                return not self.extra_state["isStatement"]
            return self.get_field_value("MODE") != "REMOVE"
        return self.block_type not in STATEMENT_TYPES

    @property
    def item_count(self) -> int:
        """Number of ADDn inputs on text_join / lists_create_with."""
        if "itemCount" in self.extra_state:
            return int(self.extra_state["itemCount"])
        count = 0
        while f"ADD{count}" in self.inputs:
            count += 1
        return count

    @property
    def has_return_value(self) -> bool:
        """procedures_ifreturn: whether the enclosing procedure returns a value."""
        return bool(self.extra_state.get("hasReturnValue", True))

    def get_vars(self) -> List[str]:
        """Parameter names of a procedure definition or call."""
        params = self.extra_state.get("params", [])
        names = []
        for param in params:
            if isinstance(param, dict):
                names.append(param.get("name", ""))
            else:
                names.append(str(param))
        return names

    def get_procedure_name(self) -> str:
        name = self.get_field_value("NAME")
        if name is None:
            name = self.extra_state.get("name", "")
        return name

    def get_surround_parent(self) -> Optional['Block']:
        """The block whose input holds this block (skipping previous statements)."""
        block = self
        parent = block.parent
        seen = {id(self)}
        while parent is not None and parent.next_block is block:
            if id(parent) in seen:
                return None
            seen.add(id(parent))
            block = parent
            parent = block.parent
        return parent

    def get_surround_loop(self) -> Optional['Block']:
        block = self.get_surround_parent()
        seen = set()
        while block is not None and id(block) not in seen:
            seen.add(id(block))
            if block.block_type in LOOP_TYPES:
                return block
            block = block.get_surround_parent()
        return None

    def children(self) -> List['Block']:
        """Blocks directly attached to inputs or to the next connection."""
        kids = [slot.target for slot in self.inputs.values() if slot.target is not None]
        if self.next_block is not None:
            kids.append(self.next_block)
        return kids

    def descendants(self) -> Iterator['Block']:
        """Walk this block, its inputs and its chain; each block is yielded once."""
        seen = set()
        stack = [self]
        while stack:
            block = stack.pop()
            if id(block) in seen:
                continue
            seen.add(id(block))
            yield block
            stack.extend(reversed(block.children()))


class Workspace:
    """A set of top-level block stacks plus the variable map."""
    def __init__(self, one_based_index: bool = True):
        self.top_blocks: List[Block] = []
        self.variables: Dict[str, VariableModel] = {}
        self.one_based_index = one_based_index

    def add_top_block(self, block: Block):
        self.top_blocks.append(block)
        for descendant in block.descendants():
            descendant.workspace = self

    def create_variable(self, name: str, var_id: Optional[str] = None, var_type: str = "") -> VariableModel:
        existing = self.get_variable(name)
        if existing is not None:
            return existing
        if var_id is None:
            var_id = f"var_{len(self.variables) + 1}"
        variable = VariableModel(var_id, name, var_type)
        self.variables[var_id] = variable
        return variable

    def get_variable_by_id(self, var_id: str) -> Optional[VariableModel]:
        return self.variables.get(var_id)

    def get_variable(self, name: str) -> Optional[VariableModel]:
        lowered = name.lower()
        for variable in self.variables.values():
            if variable.name.lower() == lowered:
                return variable
        return None

    def get_all_blocks(self) -> List[Block]:
        blocks = []
        seen = set()
        for top in self.top_blocks:
            for block in top.descendants():
                if id(block) not in seen:
                    seen.add(id(block))
                    blocks.append(block)
        return blocks

    def resolve_variable(self, ref: str) -> Optional[VariableModel]:
        """Look a VAR field value up by id, then by name."""
        return self.get_variable_by_id(ref) or self.get_variable(ref)

    def all_used_variables(self) -> List[VariableModel]:
        """Variables referenced by a VAR field or a procedure parameter, in declaration order."""
        used_ids = set()
        for block in self.get_all_blocks():
            refs = []
            if block.has_field("VAR"):
                refs.append(block.get_field_value("VAR"))
            if block.block_type in PROCEDURE_DEFINITION_TYPES:
                refs.extend(block.get_vars())
            for ref in refs:
                variable = self.resolve_variable(ref)
                if variable is not None:
                    used_ids.add(variable.var_id)
        return [v for v in self.variables.values() if v.var_id in used_ids]

    def procedure_definitions(self) -> List[Block]:
        return [b for b in self.top_blocks if b.block_type in PROCEDURE_DEFINITION_TYPES]
