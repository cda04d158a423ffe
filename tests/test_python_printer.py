"""
Tests for the Python printer.

Generated programs are compiled, and the ones that need no input are run,
so the checks cover behaviour as well as text.
"""

import ast

import pytest

from packages.codegen.ir_builder import IRBuilder
from packages.codegen.python_printer import PythonPrinter
from packages.core.settings import GeneratorOptions
from tests.blocks import (
    arith, block, boolean, call, chain, get, list_of, num, print_, set_, text, workspace,
)


@pytest.fixture
def py():
    return PythonPrinter()


def generate(printer, *tops, variables=None, one_based=None):
    ws = IRBuilder().build_workspace(workspace(*tops, variables=variables, one_based=one_based))
    return printer.generate(ws)


def run(printer, *tops, variables=None, one_based=None):
    """Generate, execute and return the module namespace."""
    source = generate(printer, *tops, variables=variables, one_based=one_based).text
    namespace = {}
    exec(compile(source, "<generated>", "exec"), namespace)
    return namespace


def value_code(printer, value, variables=None):
    """Emit one value block left on its own, without the trailing newline."""
    return generate(printer, value, variables=variables).code[:-1]


# --------------------------------------------------------------------------- #
# Program layout
# --------------------------------------------------------------------------- #


class TestProgram:
    def test_variables_are_initialized(self, py):
        result = generate(py, set_("vx", num(42)), variables={"vx": "x"})
        assert result.text == "x = None\n\nx = 42\n"

    def test_imports_are_separated(self, py):
        value = block("math_single", {"OP": "ROOT"}, {"NUM": num(16)})
        result = generate(py, print_(value))
        assert result.imports == ["import math"]
        assert result.text == "import math\n\nprint(math.sqrt(16))\n"

    def test_empty_workspace(self, py):
        assert generate(py).text == ""

    def test_if_elseif_else(self, py):
        program = block(
            "controls_if",
            inputs={
                "IF0": boolean(True), "DO0": print_(text("a")),
                "IF1": boolean(False), "DO1": print_(text("b")),
                "ELSE": print_(text("c")),
            },
            extra_state={"elseIfCount": 1, "hasElse": True},
        )
        assert generate(py, program).code == (
            "if True:\n"
            "  print('a')\n"
            "elif False:\n"
            "  print('b')\n"
            "else:\n"
            "  print('c')\n"
        )

    def test_empty_bodies_get_pass(self, py):
        assert generate(py, block("controls_if")).code == "if False:\n  pass\n"
        loop = block("controls_repeat_ext", inputs={"TIMES": num(3)})
        assert generate(py, loop).code == "for count in range(3):\n  pass\n"

    def test_configured_indent(self):
        printer = PythonPrinter(options=GeneratorOptions(indent="    "))
        program = block("controls_if", inputs={"IF0": boolean(True), "DO0": print_(text("a"))})
        assert generate(printer, program).code == "if True:\n    print('a')\n"


# --------------------------------------------------------------------------- #
# Precedence
# --------------------------------------------------------------------------- #


class TestPrecedence:
    def test_negative_base_of_power_is_wrapped(self, py):
        value = arith("POWER", num(-2), num(2))
        assert value_code(py, value) == "(-2) ** 2"
        assert run(py, set_("vx", value), variables={"vx": "x"})["x"] == 4

    def test_negated_power_needs_no_parentheses(self, py):
        value = block("math_single", {"OP": "NEG"}, {"NUM": arith("POWER", num(2), num(2))})
        assert value_code(py, value) == "-2 ** 2"
        assert run(py, set_("vx", value), variables={"vx": "x"})["x"] == -4

    def test_comparisons_do_not_chain(self, py):
        inner = block("logic_compare", {"OP": "LT"}, {"A": num(1), "B": num(2)})
        value = block("logic_compare", {"OP": "EQ"}, {"A": inner, "B": boolean(True)})
        assert value_code(py, value) == "(1 < 2) == True"

    def test_nested_ternary_in_then_is_wrapped(self, py):
        inner = block("logic_ternary", inputs={"IF": boolean(True), "THEN": num(1), "ELSE": num(2)})
        value = block("logic_ternary", inputs={"IF": boolean(False), "THEN": inner, "ELSE": num(3)})
        assert value_code(py, value) == "(1 if True else 2) if False else 3"

    def test_not_of_comparison(self, py):
        compare = block("logic_compare", {"OP": "EQ"}, {"A": num(1), "B": num(2)})
        assert value_code(py, block("logic_negate", inputs={"BOOL": compare})) == "not 1 == 2"


# --------------------------------------------------------------------------- #
# Indexing
# --------------------------------------------------------------------------- #


class TestIndexing:
    variables = {"vl": "l", "vn": "n", "vx": "x", "vt": "t"}

    def test_dynamic_index_is_forced_to_int(self, py):
        value = block("lists_getIndex", {"MODE": "GET", "WHERE": "FROM_START"},
                      {"VALUE": get("vl"), "AT": get("vn")})
        assert value_code(py, value, self.variables) == "l[int(n - 1)]"

    def test_last_item_from_end(self, py):
        program = chain(
            set_("vl", list_of(num(3), num(1), num(2))),
            set_("vx", block("lists_getIndex", {"MODE": "GET", "WHERE": "FROM_END"},
                             {"VALUE": get("vl"), "AT": num(1)})),
        )
        source = generate(py, program, variables=self.variables).code
        assert source == "l = [3, 1, 2]\nx = l[-1]\n"
        assert run(py, program, variables=self.variables)["x"] == 2

    def test_substring_literal_bounds(self, py):
        value = block("text_getSubstring", {"WHERE1": "FROM_START", "WHERE2": "FROM_END"},
                      {"STRING": text("hello"), "AT1": num(2), "AT2": num(2)})
        assert value_code(py, value) == "'hello'[1:-1]"

    def test_substring_dynamic_end_keeps_tail(self, py):
        program = chain(
            set_("vt", text("hello")),
            set_("vn", num(1)),
            set_("vx", block("text_getSubstring", {"WHERE1": "FIRST", "WHERE2": "FROM_END"},
                             {"STRING": get("vt"), "AT2": get("vn")})),
        )
        source = generate(py, program, variables=self.variables).text
        assert "x = t[:-int(n - 1) or sys.maxsize]\n" in source
        assert "import sys" in source
        assert run(py, program, variables=self.variables)["x"] == "hello"

    def test_zero_based_workspace(self, py):
        value = block("lists_getIndex", {"MODE": "GET", "WHERE": "FROM_START"},
                      {"VALUE": get("vl"), "AT": num(0)})
        ws = IRBuilder().build_workspace(workspace(value, variables=self.variables, one_based=False))
        assert py.generate(ws).code == "l[0]\n"

    def test_index_of_is_one_based(self, py):
        program = set_("vx", block("lists_indexOf", {"END": "FIRST"},
                                   {"VALUE": list_of(num(5), num(6)), "FIND": num(6)}))
        assert run(py, program, variables=self.variables)["x"] == 2

    def test_missing_item_index_is_zero(self, py):
        program = set_("vx", block("lists_indexOf", {"END": "LAST"},
                                   {"VALUE": list_of(num(5)), "FIND": num(9)}))
        assert run(py, program, variables=self.variables)["x"] == 0


# --------------------------------------------------------------------------- #
# Running programs
# --------------------------------------------------------------------------- #


class TestExecution:
    def test_counting_loop(self, py):
        program = chain(
            set_("vs", num(0)),
            block("controls_for", {"VAR": {"id": "vi"}},
                  {"FROM": num(1), "TO": num(3), "BY": num(1),
                   "DO": block("math_change", {"VAR": {"id": "vs"}}, {"DELTA": get("vi")})}),
        )
        variables = {"vs": "total", "vi": "i"}
        assert "for i in range(1, 4):" in generate(py, program, variables=variables).code
        assert run(py, program, variables=variables)["total"] == 6

    def test_counting_down_with_dynamic_start(self, py):
        program = chain(
            set_("vs", num(0)),
            set_("va", num(3)),
            block("controls_for", {"VAR": {"id": "vi"}},
                  {"FROM": get("va"), "TO": num(1), "BY": num(1),
                   "DO": block("math_change", {"VAR": {"id": "vs"}}, {"DELTA": get("vi")})}),
        )
        variables = {"vs": "total", "vi": "i", "va": "a"}
        result = generate(py, program, variables=variables)
        assert "for i in generic_range(a, 1, 1):" in result.code
        assert run(py, program, variables=variables)["total"] == 6

    def test_prime_helper(self, py):
        value = block("math_number_property", {"PROPERTY": "PRIME"}, {"NUMBER_TO_CHECK": num(7)})
        namespace = run(py, set_("vx", value), variables={"vx": "x"})
        assert namespace["x"] is True

    def test_text_join_many(self, py):
        value = block("text_join", inputs={"ADD0": text("a"), "ADD1": num(1), "ADD2": text("b")},
                      extra_state={"itemCount": 3})
        assert run(py, set_("vx", value), variables={"vx": "x"})["x"] == "a1b"

    def test_sort_descending(self, py):
        value = block("lists_sort", {"TYPE": "NUMERIC", "DIRECTION": "-1"},
                      {"LIST": list_of(num(3), num(1), num(2))})
        assert run(py, set_("vx", value), variables={"vx": "x"})["x"] == [3, 2, 1]

    def test_procedure_with_globals(self, py):
        definition = block(
            "procedures_defreturn", {"NAME": "twice"},
            {"RETURN": arith("MULTIPLY", get("vn"), num(2))},
            extra_state={"params": [{"name": "n", "id": "vn"}]},
        )
        use = set_("vx", call("twice", num(21), params=["n"]))
        variables = {"vx": "x", "vn": "n"}
        source = generate(py, definition, use, variables=variables).text
        assert "def twice(n):\n  global x\n  return n * 2\n" in source
        assert run(py, definition, use, variables=variables)["x"] == 42

    def test_list_expression_is_evaluated_once(self, py):
        definition = block("procedures_defreturn", {"NAME": "getList"},
                           {"RETURN": list_of(num(1), num(2))})
        statement = block("lists_setIndex", {"MODE": "SET", "WHERE": "RANDOM"},
                          {"LIST": call("getList"), "TO": num(5)})
        code = generate(py, definition, statement).code
        assert code.count("getList()") == 1


# --------------------------------------------------------------------------- #
# Literals
# --------------------------------------------------------------------------- #


class TestQuote:
    def test_prefers_single_quotes(self, py):
        assert py.quote("hi") == "'hi'"

    def test_switches_quotes_like_repr(self, py):
        assert py.quote("it's") == "\"it's\""

    def test_both_quotes(self, py):
        assert py.quote("a'b\"c") == "'a\\'b\"c'"

    @pytest.mark.parametrize("value", ["tab\there", "nul\x00", "back\\slash", "lone\ud800", "é"])
    def test_literal_reads_back(self, py, value):
        assert ast.literal_eval(py.quote(value)) == value

    def test_multiline_text_runs(self, py):
        program = set_("vx", block("text_multiline", {"TEXT": "a\nb"}))
        assert run(py, program, variables={"vx": "x"})["x"] == "a\nb"
