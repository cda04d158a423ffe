"""C++ printer: emission rules for the standard block set."""

import re
import math
import logging
from typing import Dict, Tuple

from .context import GenerationContext
from .errors import EncodingError
from .generator import FUNCTION_NAME_PLACEHOLDER, Generator, ValueCode, format_number, is_number, rule
from .ir import Block, BlockType, PROCEDURE_DEFINITION_TYPES
from .names import NameType

logger = logging.getLogger(__name__)

_SIMPLE_RE = re.compile(r"^\w+$")

LIST_TYPE = "std::vector<int>"
EMPTY_LIST = "std::vector<int>()"


class Order:
    """C++ operator precedence, tightest first.

    https://en.cppreference.com/w/cpp/language/operator_precedence
    """
    ATOMIC = 0            # 0 "" ...
    SCOPE = 0.1           # ::
    UNARY_POSTFIX = 1     # expr++ expr-- foo() a[] . ->
    UNARY_PREFIX = 2      # +expr -expr !expr ~expr ++expr --expr *a &v
    PTR_TO_MEM = 3        # .* ->*
    MULTIPLICATIVE = 4    # * / %
    ADDITIVE = 5          # + -
    SHIFT = 6             # << >>
    RELATIONAL = 7        # >= > <= <
    EQUALITY = 8          # == !=
    BITWISE_AND = 9       # &
    BITWISE_XOR = 10      # ^
    BITWISE_OR = 11       # |
    LOGICAL_AND = 12      # &&
    LOGICAL_OR = 13       # ||
    CONDITIONAL = 14      # expr ? expr : expr
    ASSIGNMENT = 14       # = *= /= %= += -= <<= >>= &= ^= |=
    COMMA = 15            # ,
    NONE = 99             # (...)


def _helper(*lines: str) -> str:
    return "\n".join(lines).replace("%F%", FUNCTION_NAME_PLACEHOLDER)


# Helper function templates, keyed by the name they ask for.
HELPERS: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "text_to_string": (("sstream", "string"), _helper(
        "template <typename T>",
        "std::string %F%(const T& value) {",
        "  std::ostringstream out;",
        "  out << value;",
        "  return out.str();",
        "}")),
    "math_isPrime": (("cmath",), _helper(
        "bool %F%(int n) {",
        "  if (n == 2 || n == 3) {",
        "    return true;",
        "  }",
        "  if (n <= 1 || n % 2 == 0 || n % 3 == 0) {",
        "    return false;",
        "  }",
        "  for (int x = 6; x <= std::sqrt(n) + 1; x += 6) {",
        "    if (n % (x - 1) == 0 || n % (x + 1) == 0) {",
        "      return false;",
        "    }",
        "  }",
        "  return true;",
        "}")),
    "math_sum": (("numeric", "vector"), _helper(
        "int %F%(const std::vector<int>& values) {",
        "  return std::accumulate(values.begin(), values.end(), 0);",
        "}")),
    "math_min": (("algorithm", "vector"), _helper(
        "int %F%(const std::vector<int>& values) {",
        "  if (values.empty()) {",
        "    return 0;",
        "  }",
        "  return *std::min_element(values.begin(), values.end());",
        "}")),
    "math_max": (("algorithm", "vector"), _helper(
        "int %F%(const std::vector<int>& values) {",
        "  if (values.empty()) {",
        "    return 0;",
        "  }",
        "  return *std::max_element(values.begin(), values.end());",
        "}")),
    "math_mean": (("numeric", "vector"), _helper(
        "double %F%(const std::vector<int>& values) {",
        "  if (values.empty()) {",
        "    return 0;",
        "  }",
        "  return std::accumulate(values.begin(), values.end(), 0.0) / values.size();",
        "}")),
    "math_median": (("algorithm", "vector"), _helper(
        "double %F%(std::vector<int> values) {",
        "  if (values.empty()) {",
        "    return 0;",
        "  }",
        "  std::sort(values.begin(), values.end());",
        "  size_t middle = values.size() / 2;",
        "  if (values.size() % 2 == 0) {",
        "    return (values[middle - 1] + values[middle]) / 2.0;",
        "  }",
        "  return values[middle];",
        "}")),
    "math_modes": (("map", "vector"), _helper(
        "std::vector<int> %F%(const std::vector<int>& values) {",
        "  std::map<int, int> counts;",
        "  int best = 0;",
        "  for (int value : values) {",
        "    best = std::max(best, ++counts[value]);",
        "  }",
        "  std::vector<int> modes;",
        "  for (const auto& entry : counts) {",
        "    if (entry.second == best) {",
        "      modes.push_back(entry.first);",
        "    }",
        "  }",
        "  return modes;",
        "}")),
    "math_standard_deviation": (("cmath", "numeric", "vector"), _helper(
        "double %F%(const std::vector<int>& values) {",
        "  if (values.empty()) {",
        "    return 0;",
        "  }",
        "  double mean = std::accumulate(values.begin(), values.end(), 0.0) / values.size();",
        "  double variance = 0;",
        "  for (int value : values) {",
        "    variance += (value - mean) * (value - mean);",
        "  }",
        "  return std::sqrt(variance / values.size());",
        "}")),
    "math_random_list": (("cstdlib", "vector"), _helper(
        "int %F%(const std::vector<int>& values) {",
        "  return values[std::rand() % values.size()];",
        "}")),
    "math_random_int": (("cstdlib",), _helper(
        "int %F%(int a, int b) {",
        "  if (a > b) {",
        "    int c = a;",
        "    a = b;",
        "    b = c;",
        "  }",
        "  return a + std::rand() % (b - a + 1);",
        "}")),
    "text_index_of": (("string",), _helper(
        "int %F%(const std::string& text, const std::string& sub) {",
        "  size_t index = text.find(sub);",
        "  return index == std::string::npos ? -1 : (int) index;",
        "}")),
    "text_last_index_of": (("string",), _helper(
        "int %F%(const std::string& text, const std::string& sub) {",
        "  size_t index = text.rfind(sub);",
        "  return index == std::string::npos ? -1 : (int) index;",
        "}")),
    "text_get_from_end": (("string",), _helper(
        "std::string %F%(const std::string& text, int x) {",
        "  return text.substr(text.size() - x, 1);",
        "}")),
    "text_random_letter": (("cstdlib", "string"), _helper(
        "std::string %F%(const std::string& text) {",
        "  return text.substr(std::rand() % text.size(), 1);",
        "}")),
    "text_get_substring": (("string",), _helper(
        "std::string %F%(const std::string& text, const std::string& where1, int at1,",
        "    const std::string& where2, int at2) {",
        "  auto position = [&text](const std::string& where, int at) {",
        "    if (where == \"FROM_END\") {",
        "      return (int) text.size() - 1 - at;",
        "    } else if (where == \"FIRST\") {",
        "      return 0;",
        "    } else if (where == \"LAST\") {",
        "      return (int) text.size() - 1;",
        "    }",
        "    return at;",
        "  };",
        "  int start = position(where1, at1);",
        "  int end = position(where2, at2) + 1;",
        "  return text.substr(start, end - start);",
        "}")),
    "text_to_upper": (("algorithm", "cctype", "string"), _helper(
        "std::string %F%(std::string text) {",
        "  std::transform(text.begin(), text.end(), text.begin(),",
        "      [](unsigned char c) { return std::toupper(c); });",
        "  return text;",
        "}")),
    "text_to_lower": (("algorithm", "cctype", "string"), _helper(
        "std::string %F%(std::string text) {",
        "  std::transform(text.begin(), text.end(), text.begin(),",
        "      [](unsigned char c) { return std::tolower(c); });",
        "  return text;",
        "}")),
    "text_to_title_case": (("cctype", "string"), _helper(
        "std::string %F%(std::string text) {",
        "  bool word_start = true;",
        "  for (char& c : text) {",
        "    unsigned char u = static_cast<unsigned char>(c);",
        "    if (std::isspace(u)) {",
        "      word_start = true;",
        "    } else {",
        "      c = word_start ? std::toupper(u) : std::tolower(u);",
        "      word_start = false;",
        "    }",
        "  }",
        "  return text;",
        "}")),
    "text_trim": (("string",), _helper(
        "std::string %F%(const std::string& text, bool left, bool right) {",
        "  const char* blank = \" \\t\\n\\r\\f\\v\";",
        "  size_t start = left ? text.find_first_not_of(blank) : 0;",
        "  if (start == std::string::npos) {",
        "    return \"\";",
        "  }",
        "  size_t end = right ? text.find_last_not_of(blank) : text.size() - 1;",
        "  return text.substr(start, end - start + 1);",
        "}")),
    "text_prompt": (("iostream", "string"), _helper(
        "std::string %F%(const std::string& message) {",
        "  std::string answer;",
        "  std::cout << message;",
        "  std::getline(std::cin, answer);",
        "  return answer;",
        "}")),
    "text_count": (("string",), _helper(
        "int %F%(const std::string& haystack, const std::string& needle) {",
        "  if (needle.empty()) {",
        "    return haystack.size() + 1;",
        "  }",
        "  int count = 0;",
        "  size_t index = haystack.find(needle);",
        "  while (index != std::string::npos) {",
        "    count++;",
        "    index = haystack.find(needle, index + needle.size());",
        "  }",
        "  return count;",
        "}")),
    "text_replace": (("string",), _helper(
        "std::string %F%(std::string text, const std::string& from, const std::string& to) {",
        "  if (from.empty()) {",
        "    return text;",
        "  }",
        "  size_t index = text.find(from);",
        "  while (index != std::string::npos) {",
        "    text.replace(index, from.size(), to);",
        "    index = text.find(from, index + to.size());",
        "  }",
        "  return text;",
        "}")),
    "text_reverse": (("algorithm", "string"), _helper(
        "std::string %F%(std::string text) {",
        "  std::reverse(text.begin(), text.end());",
        "  return text;",
        "}")),
    "lists_index_of": (("algorithm", "vector"), _helper(
        "int %F%(const std::vector<int>& list, int item) {",
        "  auto it = std::find(list.begin(), list.end(), item);",
        "  return it == list.end() ? -1 : (int) (it - list.begin());",
        "}")),
    "lists_last_index_of": (("vector",), _helper(
        "int %F%(const std::vector<int>& list, int item) {",
        "  for (int i = (int) list.size() - 1; i >= 0; i--) {",
        "    if (list[i] == item) {",
        "      return i;",
        "    }",
        "  }",
        "  return -1;",
        "}")),
    "lists_get_from_end": (("vector",), _helper(
        "int %F%(const std::vector<int>& list, int x) {",
        "  return list[list.size() - x];",
        "}")),
    "lists_remove_from_end": (("vector",), _helper(
        "template <typename List>",
        "int %F%(List&& list, int x) {",
        "  auto it = list.end() - x;",
        "  int value = *it;",
        "  list.erase(it);",
        "  return value;",
        "}")),
    "lists_remove_at": (("vector",), _helper(
        "template <typename List>",
        "int %F%(List&& list, int index) {",
        "  int value = list[index];",
        "  list.erase(list.begin() + index);",
        "  return value;",
        "}")),
    "lists_remove_last": (("vector",), _helper(
        "template <typename List>",
        "int %F%(List&& list) {",
        "  int value = list.back();",
        "  list.pop_back();",
        "  return value;",
        "}")),
    "lists_get_random_item": (("cstdlib", "vector"), _helper(
        "int %F%(const std::vector<int>& list) {",
        "  return list[std::rand() % list.size()];",
        "}")),
    "lists_remove_random_item": (("cstdlib", "vector"), _helper(
        "template <typename List>",
        "int %F%(List&& list) {",
        "  int index = std::rand() % list.size();",
        "  int value = list[index];",
        "  list.erase(list.begin() + index);",
        "  return value;",
        "}")),
    "lists_get_sublist": (("string", "vector"), _helper(
        "std::vector<int> %F%(const std::vector<int>& list, const std::string& where1, int at1,",
        "    const std::string& where2, int at2) {",
        "  auto position = [&list](const std::string& where, int at) {",
        "    if (where == \"FROM_END\") {",
        "      return (int) list.size() - 1 - at;",
        "    } else if (where == \"FIRST\") {",
        "      return 0;",
        "    } else if (where == \"LAST\") {",
        "      return (int) list.size() - 1;",
        "    }",
        "    return at;",
        "  };",
        "  int start = position(where1, at1);",
        "  int end = position(where2, at2) + 1;",
        "  return std::vector<int>(list.begin() + start, list.begin() + end);",
        "}")),
    "lists_sort": (("algorithm", "string", "vector"), _helper(
        "std::vector<int> %F%(std::vector<int> list, const std::string& type, int direction) {",
        "  std::sort(list.begin(), list.end(), [&type, direction](int a, int b) {",
        "    if (type == \"NUMERIC\") {",
        "      return direction > 0 ? a < b : b < a;",
        "    }",
        "    std::string x = std::to_string(a);",
        "    std::string y = std::to_string(b);",
        "    return direction > 0 ? x < y : y < x;",
        "  });",
        "  return list;",
        "}")),
    "text_split": (("string", "vector"), _helper(
        "std::vector<std::string> %F%(const std::string& text, const std::string& delimiter) {",
        "  std::vector<std::string> parts;",
        "  if (delimiter.empty()) {",
        "    for (char c : text) {",
        "      parts.push_back(std::string(1, c));",
        "    }",
        "    return parts;",
        "  }",
        "  size_t start = 0;",
        "  size_t index = text.find(delimiter);",
        "  while (index != std::string::npos) {",
        "    parts.push_back(text.substr(start, index - start));",
        "    start = index + delimiter.size();",
        "    index = text.find(delimiter, start);",
        "  }",
        "  parts.push_back(text.substr(start));",
        "  return parts;",
        "}")),
    "lists_join": (("sstream", "string"), _helper(
        "template <typename List>",
        "std::string %F%(const List& list, const std::string& delimiter) {",
        "  std::ostringstream out;",
        "  for (size_t i = 0; i < list.size(); i++) {",
        "    if (i > 0) {",
        "      out << delimiter;",
        "    }",
        "    out << list[i];",
        "  }",
        "  return out.str();",
        "}")),
    "lists_reverse": (("algorithm", "vector"), _helper(
        "std::vector<int> %F%(std::vector<int> list) {",
        "  std::reverse(list.begin(), list.end());",
        "  return list;",
        "}")),
    "colour_random": (("cstdio", "cstdlib", "string"), _helper(
        "std::string %F%() {",
        "  char buffer[8];",
        "  std::snprintf(buffer, sizeof(buffer), \"#%06x\", std::rand() % 0x1000000);",
        "  return buffer;",
        "}")),
    "colour_rgb": (("algorithm", "cmath", "cstdio", "string"), _helper(
        "std::string %F%(double r, double g, double b) {",
        "  auto channel = [](double value) {",
        "    return (int) std::round(std::max(std::min(value, 100.0), 0.0) * 2.55);",
        "  };",
        "  char buffer[8];",
        "  std::snprintf(buffer, sizeof(buffer), \"#%02x%02x%02x\", channel(r), channel(g), channel(b));",
        "  return buffer;",
        "}")),
    "colour_blend": (("algorithm", "cmath", "cstdio", "string"), _helper(
        "std::string %F%(const std::string& c1, const std::string& c2, double ratio) {",
        "  ratio = std::max(std::min(ratio, 1.0), 0.0);",
        "  auto mix = [&c1, &c2, ratio](int offset) {",
        "    int a = std::stoi(c1.substr(offset, 2), nullptr, 16);",
        "    int b = std::stoi(c2.substr(offset, 2), nullptr, 16);",
        "    return (int) std::round(a * (1 - ratio) + b * ratio);",
        "  };",
        "  char buffer[8];",
        "  std::snprintf(buffer, sizeof(buffer), \"#%02x%02x%02x\", mix(1), mix(3), mix(5));",
        "  return buffer;",
        "}")),
}

_COMPARE_OPERATORS = {"EQ": "==", "NEQ": "!=", "LT": "<", "LTE": "<=", "GT": ">", "GTE": ">="}

# operator, order of the result and of the left operand, order of the right operand
_ARITHMETIC = {
    "ADD": (" + ", Order.ADDITIVE, Order.ADDITIVE),
    "MINUS": (" - ", Order.ADDITIVE, Order.MULTIPLICATIVE),
    "MULTIPLY": (" * ", Order.MULTIPLICATIVE, Order.PTR_TO_MEM),
    "DIVIDE": (" / ", Order.MULTIPLICATIVE, Order.PTR_TO_MEM),
    "POWER": (None, Order.NONE, Order.NONE),
}

# Single-operand math: call template and the order of the result.
_MATH_FUNCTIONS = {
    "NEG": None,
    "ABS": ("std::abs({})", Order.UNARY_POSTFIX),
    "ROOT": ("std::sqrt({})", Order.UNARY_POSTFIX),
    "LN": ("std::log({})", Order.UNARY_POSTFIX),
    "LOG10": ("std::log10({})", Order.UNARY_POSTFIX),
    "EXP": ("std::exp({})", Order.UNARY_POSTFIX),
    "POW10": ("std::pow(10, {})", Order.UNARY_POSTFIX),
    "ROUND": ("std::round({})", Order.UNARY_POSTFIX),
    "ROUNDUP": ("std::ceil({})", Order.UNARY_POSTFIX),
    "ROUNDDOWN": ("std::floor({})", Order.UNARY_POSTFIX),
    "SIN": ("std::sin({} / 180 * M_PI)", Order.UNARY_POSTFIX),
    "COS": ("std::cos({} / 180 * M_PI)", Order.UNARY_POSTFIX),
    "TAN": ("std::tan({} / 180 * M_PI)", Order.UNARY_POSTFIX),
    "ASIN": ("std::asin({}) / M_PI * 180", Order.MULTIPLICATIVE),
    "ACOS": ("std::acos({}) / M_PI * 180", Order.MULTIPLICATIVE),
    "ATAN": ("std::atan({}) / M_PI * 180", Order.MULTIPLICATIVE),
}

_CONSTANTS = {
    "PI": ("M_PI", Order.ATOMIC),
    "E": ("M_E", Order.ATOMIC),
    "GOLDEN_RATIO": ("(1 + std::sqrt(5)) / 2", Order.MULTIPLICATIVE),
    "SQRT2": ("M_SQRT2", Order.ATOMIC),
    "SQRT1_2": ("M_SQRT1_2", Order.ATOMIC),
    "INFINITY": ("INFINITY", Order.ATOMIC),
}

# suffix, order of the checked number, order of the result
_NUMBER_PROPERTIES = {
    "EVEN": (" % 2 == 0", Order.MULTIPLICATIVE, Order.EQUALITY),
    "ODD": (" % 2 != 0", Order.MULTIPLICATIVE, Order.EQUALITY),
    "WHOLE": (None, Order.NONE, Order.EQUALITY),
    "POSITIVE": (" > 0", Order.RELATIONAL, Order.RELATIONAL),
    "NEGATIVE": (" < 0", Order.RELATIONAL, Order.RELATIONAL),
    "DIVISIBLE_BY": (None, Order.MULTIPLICATIVE, Order.EQUALITY),
    "PRIME": (None, Order.NONE, Order.UNARY_POSTFIX),
}

_LIST_MATH_HELPERS = {
    "SUM": "math_sum",
    "MIN": "math_min",
    "MAX": "math_max",
    "AVERAGE": "math_mean",
    "MEDIAN": "math_median",
    "MODE": "math_modes",
    "STD_DEV": "math_standard_deviation",
    "RANDOM": "math_random_list",
}

_CASE_HELPERS = {
    "UPPERCASE": "text_to_upper",
    "LOWERCASE": "text_to_lower",
    "TITLECASE": "text_to_title_case",
}

_TRIM_FLAGS = {
    "LEFT": "true, false",
    "RIGHT": "false, true",
    "BOTH": "true, true",
}


class CppPrinter(Generator):
    """
    Emits C++ from a block workspace.

    Numbers are ints, text is std::string and lists are std::vector<int>.
    Top-level statements go into main(); variables, includes and helper
    functions are collected as definitions ahead of it.
    """

    language = "cpp"
    Order = Order
    COMMENT_PREFIX = "// "
    DOC_COMMENT_PREFIX = "/// "

    @property
    def variable_type(self) -> str:
        if self.manifest is not None and self.manifest.variable_type:
            return self.manifest.variable_type
        return "int"

    def init(self, ctx: GenerationContext):
        super().init(ctx)
        names = [ctx.name_db.get_name(v.var_id, NameType.VARIABLE)
                 for v in ctx.workspace.all_used_variables()]
        if names:
            ctx.add_definition("variables", f"{self.variable_type} {', '.join(names)};")
        # Prototypes let a procedure call one defined further down.
        prototypes = [self.procedure_signature(ctx, block) + ";"
                      for block in ctx.workspace.procedure_definitions() if block.enabled]
        if prototypes:
            ctx.add_definition("prototypes", "\n".join(prototypes))

    def procedure_signature(self, ctx: GenerationContext, block: Block) -> str:
        return_block = block.get_input_target("RETURN")
        has_return = return_block is not None and return_block.enabled
        return_type = self.variable_type if has_return else "void"
        args = [f"{self.variable_type} {ctx.name_db.get_name(name, NameType.VARIABLE)}"
                for name in block.get_vars()]
        return f"{return_type} {self.get_procedure_name(ctx, block)}({', '.join(args)})"

    def is_import(self, definition: str) -> bool:
        return definition.startswith("#include")

    def wrap_program(self, ctx: GenerationContext, code: str) -> str:
        body = self.prefix_lines(code, self.indent) if code else ""
        return f"int main() {{\n{body}{self.indent}return 0;\n}}\n"

    def scrub_naked_value(self, line: str) -> str:
        return line + ";\n"

    def comment_prefix_for(self, block: Block) -> str:
        if block.block_type in PROCEDURE_DEFINITION_TYPES:
            return self.DOC_COMMENT_PREFIX
        return self.COMMENT_PREFIX

    def quote(self, text: str) -> str:
        """Write text as a double-quoted C++ literal."""
        out = ['"']
        for ch in text:
            code = ord(ch)
            if ch == "\\":
                out.append("\\\\")
            elif ch == '"':
                out.append('\\"')
            elif ch == "\n":
                out.append("\\n")
            elif ch == "\t":
                out.append("\\t")
            elif ch == "\r":
                out.append("\\r")
            elif ch == self.interpolation_marker or code < 0x20 or code == 0x7F:
                # Octal escapes stop after three digits.
                out.append("\\%03o" % code)
            elif 0xD800 <= code <= 0xDFFF:
                raise EncodingError(f"Lone surrogate U+{code:04X} cannot be written as C++ text")
            else:
                out.append(ch)
        out.append('"')
        return "".join(out)

    def multiline_quote(self, text: str) -> ValueCode:
        lines = text.split("\n")
        parts = [self.quote(line + "\n") for line in lines[:-1]]
        parts.append(self.quote(lines[-1]))
        # Adjacent literals are concatenated by the compiler.
        return "\n".join(parts), Order.ATOMIC

    # Shared helpers

    def include(self, ctx: GenerationContext, *headers: str):
        for header in headers:
            ctx.add_definition(f"include_cpp_{header}", f"#include <{header}>")

    def helper(self, ctx: GenerationContext, key: str) -> str:
        headers, template = HELPERS[key]
        self.include(ctx, *headers)
        return self.provide_function(ctx, key, template)

    def cache(self, ctx: GenerationContext, code: str, name: str = "tmp_list") -> Tuple[str, str]:
        """Bind a non-trivial expression to a fresh reference so it is evaluated once."""
        if _SIMPLE_RE.match(code):
            return "", code
        var = ctx.name_db.get_distinct_name(name, NameType.VARIABLE)
        return f"auto&& {var} = {code};\n", var

    def as_string(self, code: str) -> str:
        """Make a text expression usable as a std::string object."""
        if code.startswith('"'):
            return f"std::string({code})"
        return code

    # Logic

    @rule(BlockType.CONTROLS_IF, BlockType.CONTROLS_IFELSE)
    def controls_if(self, ctx, block):
        code = ""
        if self.options.statement_prefix:
            code += self.inject_id(self.options.statement_prefix, block)
        n = 0
        while True:
            condition = self.value_to_code(ctx, block, f"IF{n}", Order.NONE) or "false"
            branch = self.branch_with_suffix(ctx, block, f"DO{n}")
            code += f"{'else ' if n else ''}if ({condition}) {{\n{branch}}}\n"
            n += 1
            if block.get_input(f"IF{n}") is None:
                break
        if block.get_input("ELSE") is not None or self.options.statement_suffix:
            branch = self.branch_with_suffix(ctx, block, "ELSE")
            code += f"else {{\n{branch}}}\n"
        return code

    @rule(BlockType.LOGIC_COMPARE)
    def logic_compare(self, ctx, block):
        operator = self.option(block, "OP", _COMPARE_OPERATORS)
        if operator in ("==", "!="):
            order, right_order = Order.EQUALITY, Order.RELATIONAL
        else:
            order, right_order = Order.RELATIONAL, Order.SHIFT
        argument0 = self.value_to_code(ctx, block, "A", order) or "0"
        argument1 = self.value_to_code(ctx, block, "B", right_order) or "0"
        return f"{argument0} {operator} {argument1}", order

    @rule(BlockType.LOGIC_OPERATION)
    def logic_operation(self, ctx, block):
        operator = self.option(block, "OP", {"AND": "&&", "OR": "||"})
        order = Order.LOGICAL_AND if operator == "&&" else Order.LOGICAL_OR
        argument0 = self.value_to_code(ctx, block, "A", order)
        argument1 = self.value_to_code(ctx, block, "B", order)
        if not argument0 and not argument1:
            argument0 = argument1 = "false"
        else:
            # A single missing operand has no effect on the result.
            default = "true" if operator == "&&" else "false"
            argument0 = argument0 or default
            argument1 = argument1 or default
        return f"{argument0} {operator} {argument1}", order

    @rule(BlockType.LOGIC_NEGATE)
    def logic_negate(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "BOOL", Order.UNARY_PREFIX) or "true"
        return f"!{argument0}", Order.UNARY_PREFIX

    @rule(BlockType.LOGIC_BOOLEAN)
    def logic_boolean(self, ctx, block):
        return self.option(block, "BOOL", {"TRUE": "true", "FALSE": "false"}), Order.ATOMIC

    @rule(BlockType.LOGIC_NULL)
    def logic_null(self, ctx, block):
        return "nullptr", Order.ATOMIC

    @rule(BlockType.LOGIC_TERNARY)
    def logic_ternary(self, ctx, block):
        value_if = self.value_to_code(ctx, block, "IF", Order.LOGICAL_OR) or "false"
        value_then = self.value_to_code(ctx, block, "THEN", Order.CONDITIONAL) or "0"
        value_else = self.value_to_code(ctx, block, "ELSE", Order.CONDITIONAL) or "0"
        return f"{value_if} ? {value_then} : {value_else}", Order.CONDITIONAL

    # Loops

    @rule(BlockType.CONTROLS_REPEAT_EXT, BlockType.CONTROLS_REPEAT)
    def controls_repeat(self, ctx, block):
        if block.has_field("TIMES"):
            repeats = format_number(self.number_field(block, "TIMES"))
        else:
            repeats = self.value_to_code(ctx, block, "TIMES", Order.ASSIGNMENT) or "0"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block)
        code = ""
        loop_var = ctx.name_db.get_distinct_name("count", NameType.VARIABLE)
        end_var = repeats
        if not _SIMPLE_RE.match(repeats) and not is_number(repeats):
            end_var = ctx.name_db.get_distinct_name("repeat_end", NameType.VARIABLE)
            code += f"int {end_var} = {repeats};\n"
        code += (f"for (int {loop_var} = 0; {loop_var} < {end_var}; {loop_var}++) {{\n"
                 f"{branch}}}\n")
        return code

    @rule(BlockType.CONTROLS_WHILE_UNTIL)
    def controls_while_until(self, ctx, block):
        until = self.choice(block, "MODE") == "UNTIL"
        order = Order.UNARY_PREFIX if until else Order.NONE
        argument0 = self.value_to_code(ctx, block, "BOOL", order) or "false"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block)
        if until:
            argument0 = f"!{argument0}"
        return f"while ({argument0}) {{\n{branch}}}\n"

    @rule(BlockType.CONTROLS_FOR)
    def controls_for(self, ctx, block):
        variable0 = self.get_variable_name(ctx, block)
        argument0 = self.value_to_code(ctx, block, "FROM", Order.ASSIGNMENT) or "0"
        argument1 = self.value_to_code(ctx, block, "TO", Order.ASSIGNMENT) or "0"
        increment = self.value_to_code(ctx, block, "BY", Order.ASSIGNMENT) or "1"
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block)

        if is_number(argument0) and is_number(argument1) and is_number(increment):
            up = float(argument0) <= float(argument1)
            code = (f"for ({variable0} = {argument0}; {variable0}"
                    f"{' <= ' if up else ' >= '}{argument1}; {variable0}")
            step = abs(float(increment))
            if step == 1:
                code += "++" if up else "--"
            else:
                code += f"{' += ' if up else ' -= '}{format_number(step)}"
            return code + f") {{\n{branch}}}\n"

        code = ""
        # Bounds are cached so each expression is evaluated once.
        start_var = argument0
        if not _SIMPLE_RE.match(argument0) and not is_number(argument0):
            start_var = ctx.name_db.get_distinct_name(f"{variable0}_start", NameType.VARIABLE)
            code += f"{self.variable_type} {start_var} = {argument0};\n"
        end_var = argument1
        if not _SIMPLE_RE.match(argument1) and not is_number(argument1):
            end_var = ctx.name_db.get_distinct_name(f"{variable0}_end", NameType.VARIABLE)
            code += f"{self.variable_type} {end_var} = {argument1};\n"
        inc_var = ctx.name_db.get_distinct_name(f"{variable0}_inc", NameType.VARIABLE)
        if is_number(increment):
            code += f"{self.variable_type} {inc_var} = {format_number(abs(float(increment)))};\n"
        else:
            self.include(ctx, "cstdlib")
            code += f"{self.variable_type} {inc_var} = std::abs({increment});\n"
        code += f"if ({start_var} > {end_var}) {{\n{self.indent}{inc_var} = -{inc_var};\n}}\n"
        code += (f"for ({variable0} = {start_var}; {inc_var} >= 0 ? {variable0} <= {end_var} : "
                 f"{variable0} >= {end_var}; {variable0} += {inc_var}) {{\n{branch}}}\n")
        return code

    @rule(BlockType.CONTROLS_FOR_EACH)
    def controls_for_each(self, ctx, block):
        variable0 = self.get_variable_name(ctx, block)
        argument0 = self.value_to_code(ctx, block, "LIST", Order.ASSIGNMENT) or EMPTY_LIST
        branch = self.statement_to_code(ctx, block, "DO")
        branch = self.add_loop_trap(ctx, branch, block)
        return f"for (auto {variable0} : {argument0}) {{\n{branch}}}\n"

    @rule(BlockType.CONTROLS_FLOW_STATEMENTS)
    def controls_flow_statements(self, ctx, block):
        flow = self.option(block, "FLOW", {"BREAK": "break;\n", "CONTINUE": "continue;\n"})
        xfix = ""
        if self.options.statement_prefix:
            xfix += self.inject_id(self.options.statement_prefix, block)
        if self.options.statement_suffix:
            # The regular suffix is skipped once control leaves the block.
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
            self.include(ctx, "cmath")
            return "NAN", Order.ATOMIC
        if math.isinf(value):
            self.include(ctx, "cmath")
            if value > 0:
                return "INFINITY", Order.ATOMIC
            return "-INFINITY", Order.UNARY_PREFIX
        order = Order.UNARY_PREFIX if value < 0 else Order.ATOMIC
        return format_number(value), order

    @rule(BlockType.MATH_ARITHMETIC)
    def math_arithmetic(self, ctx, block):
        operator, order, right_order = self.option(block, "OP", _ARITHMETIC)
        argument0 = self.value_to_code(ctx, block, "A", order) or "0"
        argument1 = self.value_to_code(ctx, block, "B", right_order) or "0"
        if operator is None:
            self.include(ctx, "cmath")
            return f"std::pow({argument0}, {argument1})", Order.UNARY_POSTFIX
        return f"{argument0}{operator}{argument1}", order

    @rule(BlockType.MATH_SINGLE, BlockType.MATH_ROUND, BlockType.MATH_TRIG)
    def math_single(self, ctx, block):
        operator = block.get_field_value("OP")
        function = self.option(block, "OP", _MATH_FUNCTIONS)
        if function is None:
            arg = self.value_to_code(ctx, block, "NUM", Order.UNARY_PREFIX) or "0"
            if arg.startswith("-"):
                # --3 would lex as a decrement.
                arg = " " + arg
            return f"-{arg}", Order.UNARY_PREFIX

        self.include(ctx, "cmath")
        if operator in ("SIN", "COS", "TAN"):
            arg = self.value_to_code(ctx, block, "NUM", Order.MULTIPLICATIVE) or "0"
        else:
            arg = self.value_to_code(ctx, block, "NUM", Order.NONE) or "0"
        template, order = function
        return template.format(arg), order

    @rule(BlockType.MATH_CONSTANT)
    def math_constant(self, ctx, block):
        code, order = self.option(block, "CONSTANT", _CONSTANTS)
        self.include(ctx, "cmath")
        return code, order

    @rule(BlockType.MATH_NUMBER_PROPERTY)
    def math_number_property(self, ctx, block):
        prop = block.get_field_value("PROPERTY")
        suffix, input_order, output_order = self.option(block, "PROPERTY", _NUMBER_PROPERTIES)
        number = self.value_to_code(ctx, block, "NUMBER_TO_CHECK", input_order) or "0"
        if prop == "PRIME":
            function_name = self.helper(ctx, "math_isPrime")
            return f"{function_name}({number})", output_order
        if prop == "WHOLE":
            self.include(ctx, "cmath")
            return f"std::fmod({number}, 1) == 0", output_order
        if prop == "DIVISIBLE_BY":
            divisor = self.value_to_code(ctx, block, "DIVISOR", Order.PTR_TO_MEM) or "0"
            if divisor == "0":
                return "false", Order.ATOMIC
            return f"{number} % {divisor} == 0", output_order
        return number + suffix, output_order

    @rule(BlockType.MATH_CHANGE)
    def math_change(self, ctx, block):
        delta = self.value_to_code(ctx, block, "DELTA", Order.ASSIGNMENT) or "0"
        var_name = self.get_variable_name(ctx, block)
        return f"{var_name} += {delta};\n"

    @rule(BlockType.MATH_ON_LIST)
    def math_on_list(self, ctx, block):
        key = self.option(block, "OP", _LIST_MATH_HELPERS)
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or EMPTY_LIST
        function_name = self.helper(ctx, key)
        return f"{function_name}({values})", Order.UNARY_POSTFIX

    @rule(BlockType.MATH_MODULO)
    def math_modulo(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "DIVIDEND", Order.MULTIPLICATIVE) or "0"
        argument1 = self.value_to_code(ctx, block, "DIVISOR", Order.PTR_TO_MEM) or "0"
        return f"{argument0} % {argument1}", Order.MULTIPLICATIVE

    @rule(BlockType.MATH_CONSTRAIN)
    def math_constrain(self, ctx, block):
        self.include(ctx, "algorithm")
        argument0 = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "LOW", Order.NONE) or "0"
        argument2 = self.value_to_code(ctx, block, "HIGH", Order.NONE)
        if not argument2:
            self.include(ctx, "limits")
            argument2 = "std::numeric_limits<int>::max()"
        return f"std::min(std::max({argument0}, {argument1}), {argument2})", Order.UNARY_POSTFIX

    @rule(BlockType.MATH_RANDOM_INT)
    def math_random_int(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "FROM", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "TO", Order.NONE) or "0"
        function_name = self.helper(ctx, "math_random_int")
        return f"{function_name}({argument0}, {argument1})", Order.UNARY_POSTFIX

    @rule(BlockType.MATH_RANDOM_FLOAT)
    def math_random_float(self, ctx, block):
        self.include(ctx, "cstdlib")
        return "std::rand() / (RAND_MAX + 1.0)", Order.MULTIPLICATIVE

    @rule(BlockType.MATH_ATAN2)
    def math_atan2(self, ctx, block):
        self.include(ctx, "cmath")
        argument0 = self.value_to_code(ctx, block, "X", Order.NONE) or "0"
        argument1 = self.value_to_code(ctx, block, "Y", Order.NONE) or "0"
        return f"std::atan2({argument1}, {argument0}) / M_PI * 180", Order.MULTIPLICATIVE

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
            self.include(ctx, "string")
            return "std::string()", Order.UNARY_POSTFIX
        to_string = self.helper(ctx, "text_to_string")
        elements = []
        for i in range(count):
            element = self.value_to_code(ctx, block, f"ADD{i}", Order.NONE) or '""'
            elements.append(f"{to_string}({element})")
        if count == 1:
            return elements[0], Order.UNARY_POSTFIX
        return " + ".join(elements), Order.ADDITIVE

    @rule(BlockType.TEXT_APPEND)
    def text_append(self, ctx, block):
        var_name = self.get_variable_name(ctx, block)
        value = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        to_string = self.helper(ctx, "text_to_string")
        return f"{var_name} += {to_string}({value});\n"

    @rule(BlockType.TEXT_LENGTH)
    def text_length(self, ctx, block):
        text = self.value_to_code(ctx, block, "VALUE", Order.UNARY_POSTFIX) or '""'
        self.include(ctx, "string")
        return f"{self.as_string(text)}.size()", Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_IS_EMPTY)
    def text_is_empty(self, ctx, block):
        text = self.value_to_code(ctx, block, "VALUE", Order.UNARY_POSTFIX) or '""'
        self.include(ctx, "string")
        return f"{self.as_string(text)}.empty()", Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_INDEX_OF)
    def text_index_of(self, ctx, block):
        key = "text_index_of" if self.choice(block, "END") == "FIRST" else "text_last_index_of"
        substring = self.value_to_code(ctx, block, "FIND", Order.NONE) or '""'
        text = self.value_to_code(ctx, block, "VALUE", Order.NONE) or '""'
        function_name = self.helper(ctx, key)
        code = f"{function_name}({text}, {substring})"
        if ctx.one_based_index:
            return f"{code} + 1", Order.ADDITIVE
        return code, Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_CHAR_AT)
    def text_char_at(self, ctx, block):
        where = self.choice(block, "WHERE", default="FROM_START")
        text_order = Order.UNARY_POSTFIX if where in ("FIRST", "FROM_START") else Order.NONE
        text = self.value_to_code(ctx, block, "VALUE", text_order) or '""'
        self.include(ctx, "string")
        if where == "FIRST":
            return f"{self.as_string(text)}.substr(0, 1)", Order.UNARY_POSTFIX
        if where == "FROM_START":
            at = self.get_adjusted(ctx, block, "AT")
            return f"{self.as_string(text)}.substr({at}, 1)", Order.UNARY_POSTFIX
        if where == "RANDOM":
            function_name = self.helper(ctx, "text_random_letter")
            return f"{function_name}({text})", Order.UNARY_POSTFIX
        at = "1" if where == "LAST" else self.get_adjusted(ctx, block, "AT", 1)
        function_name = self.helper(ctx, "text_get_from_end")
        return f"{function_name}({text}, {at})", Order.UNARY_POSTFIX

    def slice_bound(self, ctx: GenerationContext, block: Block, seq: str, where: str,
                    at_id: str, closing: bool) -> str:
        """Iterator expression for one end of a substring or sublist."""
        if where == "FIRST":
            return f"{seq}.begin()"
        if where == "LAST":
            return f"{seq}.end()"
        if where == "FROM_START":
            at = self.get_adjusted(ctx, block, at_id, 1 if closing else 0, order=Order.MULTIPLICATIVE)
            return f"{seq}.begin() + {at}"
        at = self.get_adjusted(ctx, block, at_id, 0 if closing else 1, order=Order.MULTIPLICATIVE)
        return f"{seq}.end() - {at}"

    @rule(BlockType.TEXT_GET_SUBSTRING)
    def text_get_substring(self, ctx, block):
        where1 = self.choice(block, "WHERE1")
        where2 = self.choice(block, "WHERE2")
        text = self.value_to_code(ctx, block, "STRING", Order.NONE) or '""'
        self.include(ctx, "string")
        if _SIMPLE_RE.match(text):
            start = self.slice_bound(ctx, block, text, where1, "AT1", closing=False)
            end = self.slice_bound(ctx, block, text, where2, "AT2", closing=True)
            return f"std::string({start}, {end})", Order.UNARY_POSTFIX
        at1 = self.get_adjusted(ctx, block, "AT1")
        at2 = self.get_adjusted(ctx, block, "AT2")
        function_name = self.helper(ctx, "text_get_substring")
        code = f'{function_name}({text}, "{where1}", {at1}, "{where2}", {at2})'
        return code, Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_CHANGE_CASE)
    def text_change_case(self, ctx, block):
        key = self.option(block, "CASE", _CASE_HELPERS)
        text = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        function_name = self.helper(ctx, key)
        return f"{function_name}({text})", Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_TRIM)
    def text_trim(self, ctx, block):
        flags = self.option(block, "MODE", _TRIM_FLAGS)
        text = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        function_name = self.helper(ctx, "text_trim")
        return f"{function_name}({text}, {flags})", Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_PRINT)
    def text_print(self, ctx, block):
        msg = self.value_to_code(ctx, block, "TEXT", Order.ADDITIVE) or '""'
        self.include(ctx, "iostream")
        return f"std::cout << {msg} << std::endl;\n"

    @rule(BlockType.TEXT_PROMPT_EXT, BlockType.TEXT_PROMPT)
    def text_prompt(self, ctx, block):
        if block.has_field("TEXT"):
            msg = self.quote(block.get_field_value("TEXT") or "")
        else:
            msg = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        function_name = self.helper(ctx, "text_prompt")
        code = f"{function_name}({msg})"
        if self.choice(block, "TYPE", default="TEXT") == "NUMBER":
            code = f"std::stod({code})"
        return code, Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_COUNT)
    def text_count(self, ctx, block):
        text = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        sub = self.value_to_code(ctx, block, "SUB", Order.NONE) or '""'
        function_name = self.helper(ctx, "text_count")
        return f"{function_name}({text}, {sub})", Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_REPLACE)
    def text_replace(self, ctx, block):
        text = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        from_text = self.value_to_code(ctx, block, "FROM", Order.NONE) or '""'
        to_text = self.value_to_code(ctx, block, "TO", Order.NONE) or '""'
        function_name = self.helper(ctx, "text_replace")
        return f"{function_name}({text}, {from_text}, {to_text})", Order.UNARY_POSTFIX

    @rule(BlockType.TEXT_REVERSE)
    def text_reverse(self, ctx, block):
        text = self.value_to_code(ctx, block, "TEXT", Order.NONE) or '""'
        function_name = self.helper(ctx, "text_reverse")
        return f"{function_name}({text})", Order.UNARY_POSTFIX

    # Lists

    @rule(BlockType.LISTS_CREATE_EMPTY)
    def lists_create_empty(self, ctx, block):
        self.include(ctx, "vector")
        return EMPTY_LIST, Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_CREATE_WITH)
    def lists_create_with(self, ctx, block):
        self.include(ctx, "vector")
        elements = [self.value_to_code(ctx, block, f"ADD{i}", Order.NONE) or "0"
                    for i in range(block.item_count)]
        return f"{LIST_TYPE}{{{', '.join(elements)}}}", Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_REPEAT)
    def lists_repeat(self, ctx, block):
        self.include(ctx, "vector")
        element = self.value_to_code(ctx, block, "ITEM", Order.NONE) or "0"
        repeat_count = self.value_to_code(ctx, block, "NUM", Order.NONE) or "0"
        return f"{LIST_TYPE}({repeat_count}, {element})", Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_LENGTH)
    def lists_length(self, ctx, block):
        values = self.value_to_code(ctx, block, "VALUE", Order.UNARY_POSTFIX) or EMPTY_LIST
        return f"{values}.size()", Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_IS_EMPTY)
    def lists_is_empty(self, ctx, block):
        values = self.value_to_code(ctx, block, "VALUE", Order.UNARY_POSTFIX) or EMPTY_LIST
        return f"{values}.empty()", Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_INDEX_OF)
    def lists_index_of(self, ctx, block):
        key = "lists_index_of" if self.choice(block, "END") == "FIRST" else "lists_last_index_of"
        item = self.value_to_code(ctx, block, "FIND", Order.NONE) or "0"
        values = self.value_to_code(ctx, block, "VALUE", Order.NONE) or EMPTY_LIST
        function_name = self.helper(ctx, key)
        code = f"{function_name}({values}, {item})"
        if ctx.one_based_index:
            return f"{code} + 1", Order.ADDITIVE
        return code, Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_GET_INDEX)
    def lists_get_index(self, ctx, block):
        mode = self.choice(block, "MODE", default="GET")
        where = self.choice(block, "WHERE", default="FROM_START")
        list_order = Order.NONE if where in ("RANDOM", "FROM_END") else Order.UNARY_POSTFIX
        values = self.value_to_code(ctx, block, "VALUE", list_order) or EMPTY_LIST

        if mode == "REMOVE":
            return self._remove_from_list(ctx, block, values, where)

        if where == "FIRST":
            if mode == "GET":
                return f"{values}.front()", Order.UNARY_POSTFIX
            function_name = self.helper(ctx, "lists_remove_at")
            return f"{function_name}({values}, 0)", Order.UNARY_POSTFIX
        if where == "LAST":
            if mode == "GET":
                return f"{values}.back()", Order.UNARY_POSTFIX
            function_name = self.helper(ctx, "lists_remove_last")
            return f"{function_name}({values})", Order.UNARY_POSTFIX
        if where == "FROM_START":
            at = self.get_adjusted(ctx, block, "AT")
            if mode == "GET":
                return f"{values}[{at}]", Order.UNARY_POSTFIX
            function_name = self.helper(ctx, "lists_remove_at")
            return f"{function_name}({values}, {at})", Order.UNARY_POSTFIX
        if where == "FROM_END":
            if _SIMPLE_RE.match(values):
                at = self.get_adjusted(ctx, block, "AT", 1, order=Order.MULTIPLICATIVE)
                if mode == "GET":
                    return f"{values}[{values}.size() - {at}]", Order.UNARY_POSTFIX
                function_name = self.helper(ctx, "lists_remove_at")
                return f"{function_name}({values}, {values}.size() - {at})", Order.UNARY_POSTFIX
            # The list expression must be evaluated once, so hand it to a helper.
            at = self.get_adjusted(ctx, block, "AT", 1)
            key = "lists_get_from_end" if mode == "GET" else "lists_remove_from_end"
            function_name = self.helper(ctx, key)
            return f"{function_name}({values}, {at})", Order.UNARY_POSTFIX
        key = "lists_get_random_item" if mode == "GET" else "lists_remove_random_item"
        function_name = self.helper(ctx, key)
        return f"{function_name}({values})", Order.UNARY_POSTFIX

    def _remove_from_list(self, ctx: GenerationContext, block: Block, values: str, where: str) -> str:
        if where == "LAST":
            return f"{values}.pop_back();\n"
        setup, values = self.cache(ctx, values)
        if where == "FIRST":
            return setup + f"{values}.erase({values}.begin());\n"
        if where == "FROM_START":
            at = self.get_adjusted(ctx, block, "AT", order=Order.MULTIPLICATIVE)
            return setup + f"{values}.erase({values}.begin() + {at});\n"
        if where == "FROM_END":
            at = self.get_adjusted(ctx, block, "AT", 1, order=Order.MULTIPLICATIVE)
            return setup + f"{values}.erase({values}.end() - {at});\n"
        self.include(ctx, "cstdlib")
        x_var = ctx.name_db.get_distinct_name("tmp_x", NameType.VARIABLE)
        return (setup + f"int {x_var} = std::rand() % {values}.size();\n"
                f"{values}.erase({values}.begin() + {x_var});\n")

    @rule(BlockType.LISTS_SET_INDEX)
    def lists_set_index(self, ctx, block):
        mode = self.choice(block, "MODE", default="SET")
        where = self.choice(block, "WHERE", default="FROM_START")
        values = self.value_to_code(ctx, block, "LIST", Order.UNARY_POSTFIX) or EMPTY_LIST
        value = self.value_to_code(ctx, block, "TO", Order.ASSIGNMENT) or "0"

        if where == "FIRST":
            if mode == "SET":
                return f"{values}.front() = {value};\n"
            setup, values = self.cache(ctx, values)
            return setup + f"{values}.insert({values}.begin(), {value});\n"
        if where == "LAST":
            if mode == "SET":
                return f"{values}.back() = {value};\n"
            return f"{values}.push_back({value});\n"
        if where == "FROM_START":
            if mode == "SET":
                at = self.get_adjusted(ctx, block, "AT")
                return f"{values}[{at}] = {value};\n"
            at = self.get_adjusted(ctx, block, "AT", order=Order.MULTIPLICATIVE)
            setup, values = self.cache(ctx, values)
            return setup + f"{values}.insert({values}.begin() + {at}, {value});\n"
        if where == "FROM_END":
            at = self.get_adjusted(ctx, block, "AT", 1, order=Order.MULTIPLICATIVE)
            setup, values = self.cache(ctx, values)
            if mode == "SET":
                return setup + f"{values}[{values}.size() - {at}] = {value};\n"
            return setup + f"{values}.insert({values}.end() - {at}, {value});\n"

        self.include(ctx, "cstdlib")
        setup, values = self.cache(ctx, values)
        x_var = ctx.name_db.get_distinct_name("tmp_x", NameType.VARIABLE)
        code = setup + f"int {x_var} = std::rand() % {values}.size();\n"
        if mode == "SET":
            return code + f"{values}[{x_var}] = {value};\n"
        return code + f"{values}.insert({values}.begin() + {x_var}, {value});\n"

    @rule(BlockType.LISTS_GET_SUBLIST)
    def lists_get_sublist(self, ctx, block):
        where1 = self.choice(block, "WHERE1")
        where2 = self.choice(block, "WHERE2")
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or EMPTY_LIST
        self.include(ctx, "vector")
        if _SIMPLE_RE.match(values):
            start = self.slice_bound(ctx, block, values, where1, "AT1", closing=False)
            end = self.slice_bound(ctx, block, values, where2, "AT2", closing=True)
            return f"{LIST_TYPE}({start}, {end})", Order.UNARY_POSTFIX
        at1 = self.get_adjusted(ctx, block, "AT1")
        at2 = self.get_adjusted(ctx, block, "AT2")
        function_name = self.helper(ctx, "lists_get_sublist")
        code = f'{function_name}({values}, "{where1}", {at1}, "{where2}", {at2})'
        return code, Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_SORT)
    def lists_sort(self, ctx, block):
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or EMPTY_LIST
        direction = self.choice(block, "DIRECTION", default="1")
        sort_type = self.choice(block, "TYPE", default="NUMERIC")
        function_name = self.helper(ctx, "lists_sort")
        return f'{function_name}({values}, "{sort_type}", {direction})', Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_SPLIT)
    def lists_split(self, ctx, block):
        mode = self.choice(block, "MODE")
        value_input = self.value_to_code(ctx, block, "INPUT", Order.NONE)
        delimiter = self.value_to_code(ctx, block, "DELIM", Order.NONE) or '""'
        if mode == "SPLIT":
            function_name = self.helper(ctx, "text_split")
            value_input = value_input or '""'
        else:
            function_name = self.helper(ctx, "lists_join")
            value_input = value_input or EMPTY_LIST
        return f"{function_name}({value_input}, {delimiter})", Order.UNARY_POSTFIX

    @rule(BlockType.LISTS_REVERSE)
    def lists_reverse(self, ctx, block):
        values = self.value_to_code(ctx, block, "LIST", Order.NONE) or EMPTY_LIST
        function_name = self.helper(ctx, "lists_reverse")
        return f"{function_name}({values})", Order.UNARY_POSTFIX

    # Procedures

    @rule(BlockType.PROCEDURES_DEFRETURN, BlockType.PROCEDURES_DEFNORETURN)
    def procedures_defreturn(self, ctx, block):
        func_name = self.get_procedure_name(ctx, block)
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
            # The body ran, so revisit this block for the return.
            xfix2 = xfix1
        if return_value:
            return_value = f"{self.indent}return {return_value};\n"
        code = (f"{self.procedure_signature(ctx, block)} {{\n"
                f"{xfix1}{loop_trap}{branch}{xfix2}{return_value}}}")
        code = self.scrub(ctx, block, code)
        # '%' keeps procedures apart from helper functions in the definitions.
        ctx.add_definition(f"%{func_name}", code)
        return None

    @rule(BlockType.PROCEDURES_CALLRETURN)
    def procedures_callreturn(self, ctx, block):
        func_name = self.get_procedure_name(ctx, block)
        args = [self.value_to_code(ctx, block, f"ARG{i}", Order.NONE) or "0"
                for i in range(len(block.get_vars()))]
        return f"{func_name}({', '.join(args)})", Order.UNARY_POSTFIX

    @rule(BlockType.PROCEDURES_CALLNORETURN)
    def procedures_callnoreturn(self, ctx, block):
        code, _ = self.procedures_callreturn(ctx, block)
        return code + ";\n"

    @rule(BlockType.PROCEDURES_IFRETURN)
    def procedures_ifreturn(self, ctx, block):
        condition = self.value_to_code(ctx, block, "CONDITION", Order.NONE) or "false"
        code = f"if ({condition}) {{\n"
        if self.options.statement_suffix:
            # The regular suffix is skipped when the return fires.
            code += self.prefix_lines(self.inject_id(self.options.statement_suffix, block), self.indent)
        if block.has_return_value:
            value = self.value_to_code(ctx, block, "VALUE", Order.NONE) or "0"
            code += f"{self.indent}return {value};\n"
        else:
            code += f"{self.indent}return;\n"
        return code + "}\n"

    # Variables

    @rule(BlockType.VARIABLES_GET, BlockType.VARIABLES_GET_DYNAMIC)
    def variables_get(self, ctx, block):
        return self.get_variable_name(ctx, block), Order.ATOMIC

    @rule(BlockType.VARIABLES_SET, BlockType.VARIABLES_SET_DYNAMIC)
    def variables_set(self, ctx, block):
        argument0 = self.value_to_code(ctx, block, "VALUE", Order.ASSIGNMENT) or "0"
        var_name = self.get_variable_name(ctx, block)
        return f"{var_name} = {argument0};\n"

    # Colour

    @rule(BlockType.COLOUR_PICKER)
    def colour_picker(self, ctx, block):
        return self.quote(block.get_field_value("COLOUR") or "#000000"), Order.ATOMIC

    @rule(BlockType.COLOUR_RANDOM)
    def colour_random(self, ctx, block):
        function_name = self.helper(ctx, "colour_random")
        return f"{function_name}()", Order.UNARY_POSTFIX

    @rule(BlockType.COLOUR_RGB)
    def colour_rgb(self, ctx, block):
        red = self.value_to_code(ctx, block, "RED", Order.NONE) or "0"
        green = self.value_to_code(ctx, block, "GREEN", Order.NONE) or "0"
        blue = self.value_to_code(ctx, block, "BLUE", Order.NONE) or "0"
        function_name = self.helper(ctx, "colour_rgb")
        return f"{function_name}({red}, {green}, {blue})", Order.UNARY_POSTFIX

    @rule(BlockType.COLOUR_BLEND)
    def colour_blend(self, ctx, block):
        black = self.quote("#000000")
        colour1 = self.value_to_code(ctx, block, "COLOUR1", Order.NONE) or black
        colour2 = self.value_to_code(ctx, block, "COLOUR2", Order.NONE) or black
        ratio = self.value_to_code(ctx, block, "RATIO", Order.NONE) or "0.5"
        function_name = self.helper(ctx, "colour_blend")
        return f"{function_name}({colour1}, {colour2}, {ratio})", Order.UNARY_POSTFIX
