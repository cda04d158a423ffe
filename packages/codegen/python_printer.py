"""Python printer: emission rules for the standard block set."""

import re
import math
import logging
from typing import Dict, List, Optional, Tuple

from .context import GenerationContext
from .generator import FUNCTION_NAME_PLACEHOLDER, Generator, ValueCode, format_number, is_number, rule
from .ir import Block, BlockType
from .names import NameType

logger = logging.getLogger(__name__)

_SIMPLE_RE = re.compile(r"^\w+$")
_IMPORT_RE = re.compile(r"^(from\s+\S+\s+)?import\s+\S+")


class Order:
    """Python operator precedence, tightest first.

    https://docs.python.org/3/reference/expressions.html#summary
    """
    ATOMIC = 0             # 0 "" ...
    COLLECTION = 1         # tuples, lists, dictionaries
    STRING_CONVERSION = 1  # `expression...`
    MEMBER = 2.1           # . []
    FUNCTION_CALL = 2.2    # ()
    EXPONENTIATION = 3     # **
    UNARY_SIGN = 4         # + -
    BITWISE_NOT = 4        # ~
    MULTIPLICATIVE = 5     # * / // %
    ADDITIVE = 6           # + -
    BITWISE_SHIFT = 7      # << >>
    BITWISE_AND = 8        # &
    BITWISE_XOR = 9        # ^
    BITWISE_OR = 10        # |
    RELATIONAL = 11        # in, not in, is, is not, >, >=, <>, !=, ==
    LOGICAL_NOT = 12       # not
    LOGICAL_AND = 13       # and
    LOGICAL_OR = 14        # or
    CONDITIONAL = 15       # if else
    LAMBDA = 16            # lambda
    NONE = 99              # (...)


def _helper(*lines: str) -> str:
    return "\n".join(lines).replace("%F%", FUNCTION_NAME_PLACEHOLDER)


# Helper function templates: the imports they need and their source.
HELPERS: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "math_isPrime": (("import math", "from numbers import Number"), _helper(
        "def %F%(n):",
        "  # https://en.wikipedia.org/wiki/Primality_test#Naive_methods",
        "  if not isinstance(n, Number):",
        "    try:",
        "      n = float(n)",
        "    except (TypeError, ValueError):",
        "      return False",
        "  if n == 2 or n == 3:",
        "    return True",
        "  if n <= 1 or n % 1 != 0 or n % 2 == 0 or n % 3 == 0:",
        "    return False",
        "  for x in range(6, int(math.sqrt(n)) + 2, 6):",
        "    if n % (x - 1) == 0 or n % (x + 1) == 0:",
        "      return False",
        "  return True")),
    "math_mean": (("from numbers import Number",), _helper(
        "def %F%(myList):",
        "  localList = [e for e in myList if isinstance(e, Number)]",
        "  if not localList:",
        "    return None",
        "  return float(sum(localList)) / len(localList)")),
    "math_median": (("from numbers import Number",), _helper(
        "def %F%(myList):",
        "  localList = sorted([e for e in myList if isinstance(e, Number)])",
        "  if not localList:",
        "    return None",
        "  if len(localList) % 2 == 0:",
        "    return (localList[len(localList) // 2 - 1] + localList[len(localList) // 2]) / 2.0",
        "  return localList[(len(localList) - 1) // 2]")),
    "math_modes": ((), _helper(
        "def %F%(some_list):",
        "  modes = []",
        "  # [item, count] pairs, so unhashable items can be counted too.",
        "  counts = []",
        "  maxCount = 1",
        "  for item in some_list:",
        "    found = False",
        "    for count in counts:",
        "      if count[0] == item:",
        "        count[1] += 1",
        "        maxCount = max(maxCount, count[1])",
        "        found = True",
        "    if not found:",
        "      counts.append([item, 1])",
        "  for counted_item, item_count in counts:",
        "    if item_count == maxCount:",
        "      modes.append(counted_item)",
        "  return modes")),
    "math_standard_deviation": (("import math",), _helper(
        "def %F%(numbers):",
        "  n = len(numbers)",
        "  if n == 0:",
        "    return None",
        "  mean = float(sum(numbers)) / n",
        "  variance = sum((x - mean) ** 2 for x in numbers) / n",
        "  return math.sqrt(variance)")),
    "text_random_letter": (("import random",), _helper(
        "def %F%(text):",
        "  x = int(random.random() * len(text))",
        "  return text[x]")),
    "lists_remove_random_item": (("import random",), _helper(
        "def %F%(myList):",
        "  x = int(random.random() * len(myList))",
        "  return myList.pop(x)")),
    "first_index": ((), _helper(
        "def %F%(my_list, elem):",
        "  try:",
        "    index = my_list.index(elem)%OFFSET%",
        "  except ValueError:",
        "    index = %MISSING%",
        "  return index")),
    "last_index": ((), _helper(
        "def %F%(my_list, elem):",
        "  try:",
        "    index = len(my_list) - my_list[::-1].index(elem)%LAST_OFFSET%",
        "  except ValueError:",
        "    index = %MISSING%",
        "  return index")),
    "lists_sort": ((), _helper(
        "def %F%(my_list, type, reverse):",
        "  def try_float(s):",
        "    try:",
        "      return float(s)",
        "    except (TypeError, ValueError):",
        "      return 0",
        "  key_funcs = {",
        "    \"NUMERIC\": try_float,",
        "    \"TEXT\": str,",
        "    \"IGNORE_CASE\": lambda s: str(s).lower()",
        "  }",
        "  key_func = key_funcs[type]",
        "  list_cpy = list(my_list)",
        "  return sorted(list_cpy, key=key_func, reverse=reverse)")),
    "up_range": ((), _helper(
        "def %F%(start, stop, step):",
        "  while start <= stop:",
        "    yield start",
        "    start += abs(step)")),
    "down_range": ((), _helper(
        "def %F%(start, stop, step):",
        "  while start >= stop:",
        "    yield start",
        "    start -= abs(step)")),
    "generic_range": ((), _helper(
        "def %F%(start, stop, step):",
        "  if start <= stop:",
        "    return %UP%(start, stop, step)",
        "  return %DOWN%(start, stop, step)")),
    "colour_rgb": ((), _helper(
        "def %F%(r, g, b):",
        "  r = round(min(100, max(0, r)) * 2.55)",
        "  g = round(min(100, max(0, g)) * 2.55)",
        "  b = round(min(100, max(0, b)) * 2.55)",
        "  return '#%02x%02x%02x' % (r, g, b)")),
    "colour_blend": ((), _helper(
        "def %F%(colour1, colour2, ratio):",
        "  r1, r2 = int(colour1[1:3], 16), int(colour2[1:3], 16)",
        "  g1, g2 = int(colour1[3:5], 16), int(colour2[3:5], 16)",
        "  b1, b2 = int(colour1[5:7], 16), int(colour2[5:7], 16)",
        "  ratio = min(1, max(0, ratio))",
        "  r = round(r1 * (1 - ratio) + r2 * ratio)",
        "  g = round(g1 * (1 - ratio) + g2 * ratio)",
        "  b = round(b1 * (1 - ratio) + b2 * ratio)",
        "  return '#%02x%02x%02x' % (r, g, b)")),
}

_COMPARE_OPERATORS = {"EQ": "==", "NEQ": "!=", "LT": "<", "LTE": "<=", "GT": ">", "GTE": ">="}

# operator, order of the result, order of the left operand, order of the right operand
_ARITHMETIC = {
    "ADD": (" + ", Order.ADDITIVE, Order.ADDITIVE, Order.ADDITIVE),
    "MINUS": (" - ", Order.ADDITIVE, Order.ADDITIVE, Order.MULTIPLICATIVE),
    "MULTIPLY": (" * ", Order.MULTIPLICATIVE, Order.MULTIPLICATIVE, Order.UNARY_SIGN),
    "DIVIDE": (" / ", Order.MULTIPLICATIVE, Order.MULTIPLICATIVE, Order.UNARY_SIGN),
    # ** is right-associative and binds tighter than a unary minus on its left.
    "POWER": (" ** ", Order.EXPONENTIATION, Order.FUNCTION_CALL, Order.UNARY_SIGN),
}

# Single-operand math: call template and the order of the result.
_MATH_FUNCTIONS = {
    "NEG": None,
    "ABS": ("math.fabs({})", Order.FUNCTION_CALL),
    "ROOT": ("math.sqrt({})", Order.FUNCTION_CALL),
    "LN": ("math.log({})", Order.FUNCTION_CALL),
    "LOG10": ("math.log10({})", Order.FUNCTION_CALL),
    "EXP": ("math.exp({})", Order.FUNCTION_CALL),
    "POW10": ("math.pow(10, {})", Order.FUNCTION_CALL),
    "ROUND": ("round({})", Order.FUNCTION_CALL),
    "ROUNDUP": ("math.ceil({})", Order.FUNCTION_CALL),
    "ROUNDDOWN": ("math.floor({})", Order.FUNCTION_CALL),
    "SIN": ("math.sin({} / 180.0 * math.pi)", Order.FUNCTION_CALL),
    "COS": ("math.cos({} / 180.0 * math.pi)", Order.FUNCTION_CALL),
    "TAN": ("math.tan({} / 180.0 * math.pi)", Order.FUNCTION_CALL),
    "ASIN": ("math.asin({}) / math.pi * 180", Order.MULTIPLICATIVE),
    "ACOS": ("math.acos({}) / math.pi * 180", Order.MULTIPLICATIVE),
    "ATAN": ("math.atan({}) / math.pi * 180", Order.MULTIPLICATIVE),
}

_CONSTANTS = {
    "PI": ("math.pi", Order.MEMBER),
    "E": ("math.e", Order.MEMBER),
    "GOLDEN_RATIO": ("(1 + math.sqrt(5)) / 2", Order.MULTIPLICATIVE),
    "SQRT2": ("math.sqrt(2)", Order.MEMBER),
    "SQRT1_2": ("math.sqrt(1.0 / 2)", Order.MEMBER),
    "INFINITY": ("float('inf')", Order.ATOMIC),
}

# suffix, order of the checked number, order of the result
_NUMBER_PROPERTIES = {
    "EVEN": (" % 2 == 0", Order.MULTIPLICATIVE, Order.RELATIONAL),
    "ODD": (" % 2 == 1", Order.MULTIPLICATIVE, Order.RELATIONAL),
    "WHOLE": (" % 1 == 0", Order.MULTIPLICATIVE, Order.RELATIONAL),
    "POSITIVE": (" > 0", Order.BITWISE_OR, Order.RELATIONAL),
    "NEGATIVE": (" < 0", Order.BITWISE_OR, Order.RELATIONAL),
    "DIVISIBLE_BY": (None, Order.MULTIPLICATIVE, Order.RELATIONAL),
    "PRIME": (None, Order.NONE, Order.FUNCTION_CALL),
}

# builtin or helper key, and whether it is a helper
_LIST_MATH = {
    "SUM": ("sum", False),
    "MIN": ("min", False),
    "MAX": ("max", False),
    "AVERAGE": ("math_mean", True),
    "MEDIAN": ("math_median", True),
    "MODE": ("math_modes", True),
    "STD_DEV": ("math_standard_deviation", True),
    "RANDOM": ("random.choice", False),
}

_CASE_METHODS = {"UPPERCASE": ".upper()", "LOWERCASE": ".lower()", "TITLECASE": ".title()"}
_TRIM_METHODS = {"LEFT": ".lstrip()", "RIGHT": ".rstrip()", "BOTH": ".strip()"}


class PythonPrinter(Generator):
    """
    Emits Python 3 from a block workspace.

    Variables are module globals initialized to None; procedures declare
    the globals they may assign. Empty blocks get ``pass``.
    """

    language = "python"
    Order = Order
    COMMENT_PREFIX = "# "
    DOC_COMMENT_PREFIX = "# "

    @property
    def pass_statement(self) -> str:
        return f"{self.indent}pass\n"

    def init(self, ctx: GenerationContext):
        super().init(ctx)
        names = [ctx.name_db.get_name(v.var_id, NameType.VARIABLE)
                 for v in ctx.workspace.all_used_variables()]
        if names:
            ctx.add_definition("variables", "\n".join(f"{name} = None" for name in names))

    def is_import(self, definition: str) -> bool:
        return bool(_IMPORT_RE.match(definition))

    def quote(self, text: str) -> str:
        """Write text as a Python string literal, choosing quotes like repr()."""
        out = []
        for ch in text:
            code = ord(ch)
            if ch == "\\":
                out.append("\\\\")
            elif ch == "\n":
                out.append("\\n")
            elif ch == "\t":
                out.append("\\t")
            elif ch == "\r":
                out.append("\\r")
            elif code < 0x20 or code == 0x7F or ch == self.interpolation_marker:
                out.append("\\x%02x" % code if code < 0x100 else "\\u%04x" % code)
            elif 0xD800 <= code <= 0xDFFF:
                # A lone surrogate has no UTF-8 form in the source file.
                out.append("\\u%04x" % code)
            else:
                out.append(ch)
        body = "".join(out)
        quote = "'"
        if "'" in body:
            if '"' not in body:
                quote = '"'
            else:
                body = body.replace("'", "\\'")
        return quote + body + quote

    def multiline_quote(self, text: str) -> ValueCode:
        lines = [self.quote(line) for line in text.split("\n")]
        if len(lines) == 1:
            return lines[0], Order.ATOMIC
        return " + '\\n' + ".join(lines), Order.ADDITIVE

    def get_adjusted(self, ctx: GenerationContext, block: Block, at_id: str,
                     delta: int = 0, negate: bool = False, order: Optional[float] = None) -> str:
        """Zero-based index expression; dynamic values are forced to int()."""
        if order is None:
            order = Order.NONE
        if ctx.one_based_index:
            delta -= 1
        default_at = "1" if ctx.one_based_index else "0"
        fetch_order = Order.ADDITIVE if delta else Order.NONE
        at = self.value_to_code(ctx, block, at_id, fetch_order) or default_at

        if is_number(at):
            value = int(float(at)) + delta
            if negate:
                value = -value
            at = str(value)
            result_order = Order.UNARY_SIGN if value < 0 else Order.ATOMIC
        else:
            if delta > 0:
                at = f"int({at} + {delta})"
            elif delta < 0:
                at = f"int({at} - {-delta})"
            else:
                at = f"int({at})"
            result_order = Order.FUNCTION_CALL
            if negate:
                at = f"-{at}"
                result_order = Order.UNARY_SIGN
        if result_order > order:
            at = f"({at})"
        return at

    # Shared helpers

    def require(self, ctx: GenerationContext, *imports: str):
        for line in imports:
            ctx.add_definition(re.sub(r"\W+", "_", line), line)

    def helper(self, ctx: GenerationContext, key: str, **substitutions: str) -> str:
        imports, template = HELPERS[key]
        self.require(ctx, *imports)
        for marker, value in substitutions.items():
            template = template.replace(f"%{marker}%", value)
        return self.provide_function(ctx, key, template)

    def cache(self, ctx: GenerationContext, code: str, name: str = "tmp_list") -> Tuple[str, str]:
        """Bind a non-trivial expression to a fresh variable so it is evaluated once."""
        if _SIMPLE_RE.match(code):
            return "", code
        var = ctx.name_db.get_distinct_name(name, NameType.VARIABLE)
        return f"{var} = {code}\n", var

    # Logic

    @rule(BlockType.CONTROLS_IF, BlockType.CONTROLS_IFELSE)
    def controls_if(self, ctx, block):
        code = ""
        if self.options.statement_prefix:
            code += self.inject_id(self.options.statement_prefix, block)
        n = 0
        while True:
            condition = self.value_to_code(ctx, block, f"IF{n}", Order.NONE) or "False"
            branch = self.branch_with_suffix(ctx, block, f"DO{n}") or self.pass_statement
            code += f"{'elif' if n else 'if'} {condition}:\n{branch}"
            n += 1
            if block.get_input(f"IF{n}") is None:
                break
        if block.get_input("ELSE") is not None or self.options.statement_suffix:
            branch = self.branch_with_suffix(ctx, block, "ELSE") or self.pass_statement
            code += f"else:\n{branch}"
        return code

    @rule(BlockType.LOGIC_COMPARE)
    def logic_compare(self, ctx, block):
        operator = self.option(block, "OP", _COMPARE_OPERATORS)
        # Comparisons chain in Python, so neither operand may be one.
        argument0 = self.value_to_code(ctx, block, "A", Order.BITWISE_OR) or "0"
        argument1 = self.value_to_code(ctx, block, "B", Order.BITWISE_OR) or "0"
        return f"{argument0} {operator} {argument1}", Order.RELATIONAL

    @rule(BlockType.LOGIC_OPERATION)
    def logic_operation(self, ctx, block):
        operator = self.option(block, "OP", {"AND": "and", "OR": "or"})
        order = Order.LOGICAL_AND if operator == "and" else Order.LOGICAL_OR
        argument0 = self.value_to_code(ctx, block, "A", order)
        argument1 = self.value_to_code(ctx, block, "B", order)
        if not argument0 and not argument1:
            argument0 = argument1 = "False"
        else:
            default = "True" if operator == "and" else "False"
            argument0 = argument0 or default
            argument1 = argument1 or default
        return f"{argument0} {operator} {argument1}", order

    @rule(BlockType.LOGIC_NEGATE)
    def logic_negate(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "BOOL", Order.LOGICAL_NOT) or "True"
        return f"not {argument0}", Order.LOGICAL_NOT

    @rule(BlockType.LOGIC_BOOLEAN)
    def logic_boolean(self, ctx, block):
        return self.option(block, "BOOL", {"TRUE": "True", "FALSE": "False"}), Order.ATOMIC

    @rule(BlockType.LOGIC_NULL)
    def logic_null(self, ctx, block):
        return "None", Order.ATOMIC

    @rule(BlockType.LOGIC_TERNARY)
    def logic_ternary(self, ctx, block):
        value_if = self.value_to_code(ctx, block, "IF", Order.LOGICAL_OR) or "False"
        value_then = self.value_to_code(ctx, block, "THEN", Order.LOGICAL_OR) or "None"
        value_else = self.value_to_code(ctx, block, "ELSE", Order.CONDITIONAL) or "None"
        return f"{value_then} if {value_if} else {value_else}", Order.CONDITIONAL

    # Loops

    @rule(BlockType.CONTROLS_REPEAT_EXT, BlockType.CONTROLS_REPEAT)
    def controls_repeat(self, ctx, block):
        if block.has_field("TIMES"):
            repeats = str(int(self.number_field(block, "TIMES")))
        else:
            repeats = self.value_to_code(ctx, block, "TIMES", Order.NONE) or "0"
        if is_number(repeats):
            repeats = str(int(float(repeats)))
        else:
            repeats = f"int({repeats})"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block) or self.pass_statement
        loop_var = ctx.name_db.get_distinct_name("count", NameType.VARIABLE)
        return f"for {loop_var} in range({repeats}):\n{branch}"

    @rule(BlockType.CONTROLS_WHILE_UNTIL)
    def controls_while_until(self, ctx, block):
        until = self.choice(block, "MODE") == "UNTIL"
        order = Order.LOGICAL_NOT if until else Order.NONE
        argument0 = self.value_to_code(ctx, block, "BOOL", order) or "False"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block) or self.pass_statement
        if until:
            argument0 = f"not {argument0}"
        return f"while {argument0}:\n{branch}"

    @rule(BlockType.CONTROLS_FOR)
    def controls_for(self, ctx, block):
        variable0 = self.get_variable_name(ctx, block)
        argument0 = self.value_to_code(ctx, block, "FROM", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "TO", Order.NONE) or "0"
        increment = self.value_to_code(ctx, block, "BY", Order.NONE) or "1"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block) or self.pass_statement

        code = ""
        if is_number(argument0) and is_number(argument1) and is_number(increment):
            start, end, step = float(argument0), float(argument1), abs(float(increment))
            if start.is_integer() and end.is_integer() and step.is_integer():
                start, end, step = int(start), int(end), int(step)
                if start <= end:
                    args = [str(end + 1)] if start == 0 and step == 1 else [str(start), str(end + 1)]
                    if step != 1:
                        args.append(str(step))
                else:
                    args = [str(start), str(end - 1), str(-step)]
                loop_range = f"range({', '.join(args)})"
            else:
                function_name = self.helper(ctx, "up_range" if start < end else "down_range")
                loop_range = (f"{function_name}({format_number(start)}, "
                              f"{format_number(end)}, {format_number(step)})")
        else:
            # Bounds are cached so each expression is evaluated once.
            bounds = []
            for arg, suffix in ((argument0, "_start"), (argument1, "_end")):
                if not is_number(arg) and not _SIMPLE_RE.match(arg):
                    var = ctx.name_db.get_distinct_name(variable0 + suffix, NameType.VARIABLE)
                    code += f"{var} = {arg}\n"
                    arg = var
                bounds.append(arg)
            start_var, end_var = bounds
            if is_number(start_var) and is_number(end_var):
                key = "up_range" if float(start_var) < float(end_var) else "down_range"
                function_name = self.helper(ctx, key)
                loop_range = f"{function_name}({start_var}, {end_var}, {increment})"
            else:
                inc_var = increment
                if not is_number(increment) and not _SIMPLE_RE.match(increment):
                    inc_var = ctx.name_db.get_distinct_name(variable0 + "_inc", NameType.VARIABLE)
                    code += f"{inc_var} = {increment}\n"
                up = self.helper(ctx, "up_range")
                down = self.helper(ctx, "down_range")
                function_name = self.helper(ctx, "generic_range", UP=up, DOWN=down)
                loop_range = f"{function_name}({start_var}, {end_var}, {inc_var})"
        return code + f"for {variable0} in {loop_range}:\n{branch}"

    @rule(BlockType.CONTROLS_FOR_EACH)
    def controls_for_each(self, ctx, block):
        variable0 = self.get_variable_name(ctx, block)
        argument0 = self.value_to_code(ctx, block, "LIST", Order.RELATIONAL) or "[]"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block) or self.pass_statement
        return f"for {variable0} in {argument0}:\n{branch}"

    @rule(BlockType.CONTROLS_FLOW_STATEMENTS)
    def controls_flow_statements(self, ctx, block):
        flow = self.option(block, "FLOW", {"BREAK": "break\n", "CONTINUE": "continue\n"})
        xfix = ""
        if self.options.statement_prefix:
            xfix += self.inject_id(self.options.statement_prefix, block)
        if self.options.statement_suffix:
            xfix += self.inject_id(self.options.statement_suffix, block)
        if self.options.statement_prefix:
            loop = block.get_surround_loop()
            if loop is not None and not loop.suppress_prefix_suffix:
                xfix += self.inject_id(self.options.statement_prefix, loop)
        return xfix + flow

    # Math

    @rule(BlockType.MATH_NUMBER)
    def math_number(self, ctx, block):
        value = self.number_field(block, "NUM")
        if math.isnan(value):
            return "float('nan')", Order.FUNCTION_CALL
        if math.isinf(value):
            if value > 0:
                return "float('inf')", Order.FUNCTION_CALL
            return "-float('inf')", Order.UNARY_SIGN
        order = Order.UNARY_SIGN if value < 0 else Order.ATOMIC
        return format_number(value), order

    @rule(BlockType.MATH_ARITHMETIC)
    def math_arithmetic(self, ctx, block):
        operator, order, left_order, right_order = self.option(block, "OP", _ARITHMETIC)
        argument0 = self.value_to_code(ctx, block, "A", left_order) or "0"
        argument1 = self.value_to_code(ctx, block, "B", right_order) or "0"
        return f"{argument0}{operator}{argument1}", order

    @rule(BlockType.MATH_SINGLE, BlockType.MATH_ROUND, BlockType.MATH_TRIG)
    def math_single(self, ctx, block):
        operator = block.get_field_value("OP")
        function = self.option(block, "OP", _MATH_FUNCTIONS)
        if function is None:
            arg = self.value_to_code(ctx, block, "NUM", Order.UNARY_SIGN) or "0"
            if arg.startswith("-"):
                arg = " " + arg
            return f"-{arg}", Order.UNARY_SIGN

        if operator != "ROUND":
            self.require(ctx, "import math")
        if operator in ("SIN", "COS", "TAN"):
            arg = self.value_to_code(ctx, block, "NUM", Order.MULTIPLICATIVE) or "0"
        else:
            arg = self.value_to_code(ctx, block, "NUM", Order.NONE) or "0"
        template, order = function
        return template.format(arg), order

    @rule(BlockType.MATH_CONSTANT)
    def math_constant(self, ctx, block):
        code, order = self.option(block, "CONSTANT", _CONSTANTS)
        if block.get_field_value("CONSTANT") != "INFINITY":
            self.require(ctx, "import math")
        return code, order

    @rule(BlockType.MATH_NUMBER_PROPERTY)
    def math_number_property(self, ctx, block):
        prop = block.get_field_value("PROPERTY")
        suffix, input_order, output_order = self.option(block, "PROPERTY", _NUMBER_PROPERTIES)
        number = self.value_to_code(ctx, block, "NUMBER_TO_CHECK", input_order) or "0"
        if prop == "PRIME":
            function_name = self.helper(ctx, "math_isPrime")
            return f"{function_name}({number})", output_order
        if prop == "DIVISIBLE_BY":
            divisor = self.value_to_code(ctx, block, "DIVISOR", Order.UNARY_SIGN)
            if not divisor or divisor == "0":
                return "False", Order.ATOMIC
            return f"{number} % {divisor} == 0", output_order
        return number + suffix, output_order

    @rule(BlockType.MATH_CHANGE)
    def math_change(self, ctx, block):
        self.require(ctx, "from numbers import Number")
        delta = self.value_to_code(ctx, block, "DELTA", Order.ADDITIVE) or "0"
        var_name = self.get_variable_name(ctx, block)
        return f"{var_name} = ({var_name} if isinstance({var_name}, Number) else 0) + {delta}\n"

    @rule(BlockType.MATH_ON_LIST)
    def math_on_list(self, ctx, block):
        name, is_helper = self.option(block, "OP", _LIST_MATH)
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or "[]"
        if is_helper:
            name = self.helper(ctx, name)
        elif name.startswith("random."):
            self.require(ctx, "import random")
        return f"{name}({values})", Order.FUNCTION_CALL

    @rule(BlockType.MATH_MODULO)
    def math_modulo(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "DIVIDEND", Order.MULTIPLICATIVE) or "0"
        argument1 = self.value_to_code(ctx, block, "DIVISOR", Order.UNARY_SIGN) or "0"
        return f"{argument0} % {argument1}", Order.MULTIPLICATIVE

    @rule(BlockType.MATH_CONSTRAIN)
    def math_constrain(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "LOW", Order.NONE) or "0"
        argument2 = self.value_to_code(ctx, block, "HIGH", Order.NONE) or "float('inf')"
        return f"min(max({argument0}, {argument1}), {argument2})", Order.FUNCTION_CALL

    @rule(BlockType.MATH_RANDOM_INT)
    def math_random_int(self, ctx, block):
        self.require(ctx, "import random")
        argument0 = self.value_to_code(ctx, block, "FROM", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "TO", Order.NONE) or "0"
        return f"random.randint({argument0}, {argument1})", Order.FUNCTION_CALL

    @rule(BlockType.MATH_RANDOM_FLOAT)
    def math_random_float(self, ctx, block):
        self.require(ctx, "import random")
        return "random.random()", Order.FUNCTION_CALL

    @rule(BlockType.MATH_ATAN2)
    def math_atan2(self, ctx, block):
        self.require(ctx, "import math")
        argument0 = self.value_to_code(ctx, block, "X", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "Y", Order.NONE) or "0"
        return f"math.atan2({argument1}, {argument0}) / math.pi * 180", Order.MULTIPLICATIVE

    # Text

    @rule(BlockType.TEXT)
    def text(self, ctx, block):
        return self.quote(block.get_field_value("TEXT") or ""), Order.ATOMIC

    @rule(BlockType.TEXT_MULTILINE)
    def text_multiline(self, ctx, block):
        return self.multiline_quote(block.get_field_value("TEXT") or "")

    @rule(BlockType.TEXT_JOIN)
    def text_join(self, ctx, block):
        count = block.item_count
        if count == 0:
            return "''", Order.ATOMIC
        elements = [self.value_to_code(ctx, block, f"ADD{i}", Order.NONE) or "''"
                    for i in range(count)]
        if count == 1:
            return f"str({elements[0]})", Order.FUNCTION_CALL
        if count == 2:
            return f"str({elements[0]}) + str({elements[1]})", Order.ADDITIVE
        temp_var = ctx.name_db.get_distinct_name("x", NameType.VARIABLE)
        code = f"''.join([str({temp_var}) for {temp_var} in [{', '.join(elements)}]])"
        return code, Order.FUNCTION_CALL

    @rule(BlockType.TEXT_APPEND)
    def text_append(self, ctx, block):
        var_name = self.get_variable_name(ctx, block)
        value = self.value_to_code(ctx, block, "TEXT", Order.NONE) or "''"
        return f"{var_name} = str({var_name}) + str({value})\n"

    @rule(BlockType.TEXT_LENGTH)
    def text_length(self, ctx, block):
        text = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "''"
        return f"len({text})", Order.FUNCTION_CALL

    @rule(BlockType.TEXT_IS_EMPTY)
    def text_is_empty(self, ctx, block):
        text = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "''"
        return f"not len({text})", Order.LOGICAL_NOT

    @rule(BlockType.TEXT_INDEX_OF)
    def text_index_of(self, ctx, block):
        method = "find" if self.choice(block, "END") == "FIRST" else "rfind"
        substring = self.value_to_code(ctx, block, "FIND", Order.NONE) or "''"
        text = self.value_to_code(ctx, block, "VALUE", Order.MEMBER) or "''"
        code = f"{text}.{method}({substring})"
        if ctx.one_based_index:
            return f"{code} + 1", Order.ADDITIVE
        return code, Order.FUNCTION_CALL

    @rule(BlockType.TEXT_CHAR_AT)
    def text_char_at(self, ctx, block):
        where = self.choice(block, "WHERE", default="FROM_START")
        text_order = Order.NONE if where == "RANDOM" else Order.MEMBER
        text = self.value_to_code(ctx, block, "VALUE", text_order) or "''"
        if where == "FIRST":
            return f"{text}[0]", Order.MEMBER
        if where == "LAST":
            return f"{text}[-1]", Order.MEMBER
        if where == "FROM_START":
            at = self.get_adjusted(ctx, block, "AT")
            return f"{text}[{at}]", Order.MEMBER
        if where == "FROM_END":
            at = self.get_adjusted(ctx, block, "AT", 1, True)
            return f"{text}[{at}]", Order.MEMBER
        function_name = self.helper(ctx, "text_random_letter")
        return f"{function_name}({text})", Order.FUNCTION_CALL

    def slice_bounds(self, ctx: GenerationContext, block: Block) -> str:
        """The 'start:end' part of a substring or sublist slice."""
        where1 = self.choice(block, "WHERE1")
        where2 = self.choice(block, "WHERE2")
        if where1 == "FROM_START":
            at1 = self.get_adjusted(ctx, block, "AT1")
            if at1 == "0":
                at1 = ""
        elif where1 == "FROM_END":
            at1 = self.get_adjusted(ctx, block, "AT1", 1, True)
        else:
            at1 = ""

        if where2 == "FROM_START":
            at2 = self.get_adjusted(ctx, block, "AT2", 1)
        elif where2 == "FROM_END":
            at2 = self.get_adjusted(ctx, block, "AT2", 0, True)
            if not is_number(at2):
                # -0 would select nothing, so an end of 0 means the whole tail.
                self.require(ctx, "import sys")
                at2 += " or sys.maxsize"
            elif at2 == "0":
                at2 = ""
        else:
            at2 = ""
        return f"{at1}:{at2}"

    @rule(BlockType.TEXT_GET_SUBSTRING)
    def text_get_substring(self, ctx, block):
        text = self.value_to_code(ctx, block, "STRING", Order.MEMBER) or "''"
        return f"{text}[{self.slice_bounds(ctx, block)}]", Order.MEMBER

    @rule(BlockType.TEXT_CHANGE_CASE)
    def text_change_case(self, ctx, block):
        method = self.option(block, "CASE", _CASE_METHODS)
        text = self.value_to_code(ctx, block, "TEXT", Order.MEMBER) or "''"
        return text + method, Order.FUNCTION_CALL

    @rule(BlockType.TEXT_TRIM)
    def text_trim(self, ctx, block):
        method = self.option(block, "MODE", _TRIM_METHODS)
        text = self.value_to_code(ctx, block, "TEXT", Order.MEMBER) or "''"
        return text + method, Order.FUNCTION_CALL

    @rule(BlockType.TEXT_PRINT)
    def text_print(self, ctx, block):
        msg = self.value_to_code(ctx, block, "TEXT", Order.NONE) or "''"
        return f"print({msg})\n"

    @rule(BlockType.TEXT_PROMPT_EXT, BlockType.TEXT_PROMPT)
    def text_prompt(self, ctx, block):
        if block.has_field("TEXT"):
            msg = self.quote(block.get_field_value("TEXT") or "")
        else:
            msg = self.value_to_code(ctx, block, "TEXT", Order.NONE) or "''"
        code = f"input({msg})"
        if self.choice(block, "TYPE", default="TEXT") == "NUMBER":
            code = f"float({code})"
        return code, Order.FUNCTION_CALL

    @rule(BlockType.TEXT_COUNT)
    def text_count(self, ctx, block):
        text = self.value_to_code(ctx, block, "TEXT", Order.MEMBER) or "''"
        sub = self.value_to_code(ctx, block, "SUB", Order.NONE) or "''"
        return f"{text}.count({sub})", Order.FUNCTION_CALL

    @rule(BlockType.TEXT_REPLACE)
    def text_replace(self, ctx, block):
        text = self.value_to_code(ctx, block, "TEXT", Order.MEMBER) or "''"
        from_text = self.value_to_code(ctx, block, "FROM", Order.NONE) or "''"
        to_text = self.value_to_code(ctx, block, "TO", Order.NONE) or "''"
        return f"{text}.replace({from_text}, {to_text})", Order.MEMBER

    @rule(BlockType.TEXT_REVERSE)
    def text_reverse(self, ctx, block):
        text = self.value_to_code(ctx, block, "TEXT", Order.MEMBER) or "''"
        return f"{text}[::-1]", Order.MEMBER

    # Lists

    @rule(BlockType.LISTS_CREATE_EMPTY)
    def lists_create_empty(self, ctx, block):
        return "[]", Order.ATOMIC

    @rule(BlockType.LISTS_CREATE_WITH)
    def lists_create_with(self, ctx, block):
        elements = [self.value_to_code(ctx, block, f"ADD{i}", Order.NONE) or "None"
                    for i in range(block.item_count)]
        return f"[{', '.join(elements)}]", Order.ATOMIC

    @rule(BlockType.LISTS_REPEAT)
    def lists_repeat(self, ctx, block):
        item = self.value_to_code(ctx, block, "ITEM", Order.NONE) or "None"
        times = self.value_to_code(ctx, block, "NUM", Order.UNARY_SIGN) or "0"
        return f"[{item}] * {times}", Order.MULTIPLICATIVE

    @rule(BlockType.LISTS_LENGTH)
    def lists_length(self, ctx, block):
        values = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "[]"
        return f"len({values})", Order.FUNCTION_CALL

    @rule(BlockType.LISTS_IS_EMPTY)
    def lists_is_empty(self, ctx, block):
        values = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "[]"
        return f"not len({values})", Order.LOGICAL_NOT

    @rule(BlockType.LISTS_INDEX_OF)
    def lists_index_of(self, ctx, block):
        item = self.value_to_code(ctx, block, "FIND", Order.NONE) or "None"
        values = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "[]"
        if ctx.one_based_index:
            offset, last_offset, missing = " + 1", "", "0"
        else:
            offset, last_offset, missing = "", " - 1", "-1"
        if self.choice(block, "END") == "FIRST":
            function_name = self.helper(ctx, "first_index", OFFSET=offset, MISSING=missing)
        else:
            function_name = self.helper(ctx, "last_index", LAST_OFFSET=last_offset, MISSING=missing)
        return f"{function_name}({values}, {item})", Order.FUNCTION_CALL

    @rule(BlockType.LISTS_GET_INDEX)
    def lists_get_index(self, ctx, block):
        mode = self.choice(block, "MODE", default="GET")
        where = self.choice(block, "WHERE", default="FROM_START")
        list_order = Order.NONE if where == "RANDOM" else Order.MEMBER
        values = self.value_to_code(ctx, block, "VALUE", list_order) or "[]"

        if where == "RANDOM":
            if mode == "GET":
                self.require(ctx, "import random")
                return f"random.choice({values})", Order.FUNCTION_CALL
            code = f"{self.helper(ctx, 'lists_remove_random_item')}({values})"
            if mode == "GET_REMOVE":
                return code, Order.FUNCTION_CALL
            return code + "\n"

        if where == "FIRST":
            at = "0"
        elif where == "LAST":
            at = "-1"
        elif where == "FROM_START":
            at = self.get_adjusted(ctx, block, "AT")
        else:
            at = self.get_adjusted(ctx, block, "AT", 1, True)

        if mode == "GET":
            return f"{values}[{at}]", Order.MEMBER
        code = f"{values}.pop()" if where == "LAST" else f"{values}.pop({at})"
        if mode == "GET_REMOVE":
            return code, Order.FUNCTION_CALL
        return code + "\n"

    @rule(BlockType.LISTS_SET_INDEX)
    def lists_set_index(self, ctx, block):
        mode = self.choice(block, "MODE", default="SET")
        where = self.choice(block, "WHERE", default="FROM_START")
        values = self.value_to_code(ctx, block, "LIST", Order.MEMBER) or "[]"
        value = self.value_to_code(ctx, block, "TO", Order.NONE) or "None"

        if where == "LAST" and mode == "INSERT":
            return f"{values}.append({value})\n"
        if where == "RANDOM":
            self.require(ctx, "import random")
            setup, values = self.cache(ctx, values)
            x_var = ctx.name_db.get_distinct_name("tmp_x", NameType.VARIABLE)
            code = setup + f"{x_var} = int(random.random() * len({values}))\n"
            at = x_var
        else:
            code = ""
            if where == "FIRST":
                at = "0"
            elif where == "LAST":
                at = "-1"
            elif where == "FROM_START":
                at = self.get_adjusted(ctx, block, "AT")
            else:
                at = self.get_adjusted(ctx, block, "AT", 1, True)

        if mode == "SET":
            return code + f"{values}[{at}] = {value}\n"
        return code + f"{values}.insert({at}, {value})\n"

    @rule(BlockType.LISTS_GET_SUBLIST)
    def lists_get_sublist(self, ctx, block):
        values = self.value_to_code(ctx, block, "LIST", Order.MEMBER) or "[]"
        return f"{values}[{self.slice_bounds(ctx, block)}]", Order.MEMBER

    @rule(BlockType.LISTS_SORT)
    def lists_sort(self, ctx, block):
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or "[]"
        reverse = "True" if self.choice(block, "DIRECTION", default="1") == "-1" else "False"
        sort_type = self.choice(block, "TYPE", default="NUMERIC")
        function_name = self.helper(ctx, "lists_sort")
        return f"{function_name}({values}, {self.quote(sort_type)}, {reverse})", Order.FUNCTION_CALL

    @rule(BlockType.LISTS_SPLIT)
    def lists_split(self, ctx, block):
        if self.choice(block, "MODE") == "SPLIT":
            value_input = self.value_to_code(ctx, block, "INPUT", Order.MEMBER) or "''"
            delimiter = self.value_to_code(ctx, block, "DELIM", Order.NONE)
            return f"{value_input}.split({delimiter})", Order.FUNCTION_CALL
        value_input = self.value_to_code(ctx, block, "INPUT", Order.NONE) or "[]"
        delimiter = self.value_to_code(ctx, block, "DELIM", Order.MEMBER) or "''"
        return f"{delimiter}.join({value_input})", Order.FUNCTION_CALL

    @rule(BlockType.LISTS_REVERSE)
    def lists_reverse(self, ctx, block):
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or "[]"
        return f"list(reversed({values}))", Order.FUNCTION_CALL

    # Procedures

    @rule(BlockType.PROCEDURES_DEFRETURN, BlockType.PROCEDURES_DEFNORETURN)
    def procedures_defreturn(self, ctx, block):
        func_name = self.get_procedure_name(ctx, block)
        params = [ctx.name_db.get_name(name, NameType.VARIABLE) for name in block.get_vars()]
        global_names: List[str] = []
        for variable in ctx.workspace.all_used_variables():
            name = ctx.name_db.get_name(variable.var_id, NameType.VARIABLE)
            if name not in params:
                global_names.append(name)
        globals_line = f"{self.indent}global {', '.join(global_names)}\n" if global_names else ""

        xfix1 = ""
        if self.options.statement_prefix:
            xfix1 += self.inject_id(self.options.statement_prefix, block)
        if self.options.statement_suffix:
            xfix1 += self.inject_id(self.options.statement_suffix, block)
        if xfix1:
            xfix1 = self.prefix_lines(xfix1, self.indent)
        loop_trap = ""
        if self.options.infinite_loop_trap:
            loop_trap = self.prefix_lines(
                self.inject_id(self.options.infinite_loop_trap, block), self.indent)
        branch = self.statement_to_code(ctx, block, "STACK")
        return_value = self.value_to_code(ctx, block, "RETURN", Order.NONE)
        xfix2 = ""
        if branch and return_value:
            xfix2 = xfix1
        if return_value:
            return_value = f"{self.indent}return {return_value}\n"
        elif not branch:
            branch = self.pass_statement
        code = (f"def {func_name}({', '.join(params)}):\n"
                f"{globals_line}{xfix1}{loop_trap}{branch}{xfix2}{return_value}")
        code = self.scrub(ctx, block, code)
        ctx.add_definition(f"%{func_name}", code)
        return None

    @rule(BlockType.PROCEDURES_CALLRETURN)
    def procedures_callreturn(self, ctx, block):
        func_name = self.get_procedure_name(ctx, block)
        args = [self.value_to_code(ctx, block, f"ARG{i}", Order.NONE) or "None"
                for i in range(len(block.get_vars()))]
        return f"{func_name}({', '.join(args)})", Order.FUNCTION_CALL

    @rule(BlockType.PROCEDURES_CALLNORETURN)
    def procedures_callnoreturn(self, ctx, block):
        code, _ = self.procedures_callreturn(ctx, block)
        return code + "\n"

    @rule(BlockType.PROCEDURES_IFRETURN)
    def procedures_ifreturn(self, ctx, block):
        condition = self.value_to_code(ctx, block, "CONDITION", Order.NONE) or "False"
        code = f"if {condition}:\n"
        if self.options.statement_suffix:
            code += self.prefix_lines(self.inject_id(self.options.statement_suffix, block), self.indent)
        if block.has_return_value:
            value = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "None"
            code += f"{self.indent}return {value}\n"
        else:
            code += f"{self.indent}return\n"
        return code

    # Variables

    @rule(BlockType.VARIABLES_GET, BlockType.VARIABLES_GET_DYNAMIC)
    def variables_get(self, ctx, block):
        return self.get_variable_name(ctx, block), Order.ATOMIC

    @rule(BlockType.VARIABLES_SET, BlockType.VARIABLES_SET_DYNAMIC)
    def variables_set(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "0"
        var_name = self.get_variable_name(ctx, block)
        return f"{var_name} = {argument0}\n"

    # Colour

    @rule(BlockType.COLOUR_PICKER)
    def colour_picker(self, ctx, block):
        return self.quote(block.get_field_value("COLOUR") or "#000000"), Order.ATOMIC

    @rule(BlockType.COLOUR_RANDOM)
    def colour_random(self, ctx, block):
        self.require(ctx, "import random")
        return "'#%06x' % random.randint(0, 2**24 - 1)", Order.MULTIPLICATIVE

    @rule(BlockType.COLOUR_RGB)
    def colour_rgb(self, ctx, block):
        red = self.value_to_code(ctx, block, "RED", Order.NONE) or "0"
        green = self.value_to_code(ctx, block, "GREEN", Order.NONE) or "0"
        blue = self.value_to_code(ctx, block, "BLUE", Order.NONE) or "0"
        function_name = self.helper(ctx, "colour_rgb")
        return f"{function_name}({red}, {green}, {blue})", Order.FUNCTION_CALL

    @rule(BlockType.COLOUR_BLEND)
    def colour_blend(self, ctx, block):
        colour1 = self.value_to_code(ctx, block, "COLOUR1", Order.NONE) or "'#000000'"
        colour2 = self.value_to_code(ctx, block, "COLOUR2", Order.NONE) or "'#000000'"
        ratio = self.value_to_code(ctx, block, "RATIO", Order.NONE) or "0"
        function_name = self.helper(ctx, "colour_blend")
        return f"{function_name}({colour1}, {colour2}, {ratio})", Order.FUNCTION_CALL
