"""
Tests for the C++ printer.

Expected output is compared textually; the programs are not compiled.
"""

import pytest

from packages.codegen.cpp_printer import CppPrinter
from packages.codegen.errors import EncodingError
from packages.codegen.ir_builder import IRBuilder
from tests.blocks import (
    arith, block, boolean, call, chain, get, list_of, num, print_, set_, text, workspace,
)


@pytest.fixture
def cpp():
    return CppPrinter()


def generate(printer, *tops, variables=None, one_based=None):
    ws = IRBuilder().build_workspace(workspace(*tops, variables=variables, one_based=one_based))
    return printer.generate(ws)


SIMPLE_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "t": "\t", "r": "\r"}


def unescape_cpp(body):
    """Decode the escapes a C++ compiler would in a string literal body."""
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            assert ch != '"', "unescaped quote ends the literal early"
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in SIMPLE_ESCAPES:
            out.append(SIMPLE_ESCAPES[nxt])
            i += 2
            continue
        digits = ""
        while len(digits) < 3 and i + 1 + len(digits) < len(body) and body[i + 1 + len(digits)] in "01234567":
            digits += body[i + 1 + len(digits)]
        assert digits, f"unknown escape \\{nxt}"
        out.append(chr(int(digits, 8)))
        i += 1 + len(digits)
    return "".join(out)


# --------------------------------------------------------------------------- #
# Program layout
# --------------------------------------------------------------------------- #


class TestProgram:
    def test_statements_go_into_main(self, cpp):
        result = generate(cpp, set_("vx", arith("ADD", num(1), arith("MULTIPLY", num(2), num(3)))),
                          variables={"vx": "x"})
        assert result.text == "int x;\n\nint main() {\n  x = 1 + 2 * 3;\n  return 0;\n}\n"

    def test_includes_come_first(self, cpp):
        result = generate(cpp, print_(text("hi")))
        assert result.imports == ["#include <iostream>"]
        assert result.text.startswith("#include <iostream>\n\nint main() {\n")
        assert '  std::cout << "hi" << std::endl;\n' in result.text

    def test_empty_workspace_still_has_main(self, cpp):
        assert generate(cpp).text == "int main() {\n  return 0;\n}\n"

    def test_result_as_dict(self, cpp):
        payload = generate(cpp, print_(text("hi"))).to_dict()
        assert set(payload) == {"code", "body", "imports", "definitions"}
        assert payload["body"] == 'std::cout << "hi" << std::endl;\n'


# --------------------------------------------------------------------------- #
# Control flow
# --------------------------------------------------------------------------- #


class TestControlFlow:
    def test_if_elseif_else(self, cpp):
        program = block(
            "controls_if",
            inputs={
                "IF0": boolean(True), "DO0": print_(text("a")),
                "IF1": boolean(False), "DO1": print_(text("b")),
                "ELSE": print_(text("c")),
            },
            extra_state={"elseIfCount": 1, "hasElse": True},
        )
        assert generate(cpp, program).code == (
            'if (true) {\n'
            '  std::cout << "a" << std::endl;\n'
            '}\n'
            'else if (false) {\n'
            '  std::cout << "b" << std::endl;\n'
            '}\n'
            'else {\n'
            '  std::cout << "c" << std::endl;\n'
            '}\n'
        )

    def test_repeat_uses_fresh_counter(self, cpp):
        loop = block("controls_repeat_ext", inputs={"TIMES": num(5)})
        assert generate(cpp, loop).code == "for (int count = 0; count < 5; count++) {\n}\n"

    def test_repeat_counter_avoids_user_variable(self, cpp):
        loop = block("controls_repeat_ext", inputs={"TIMES": num(2), "DO": set_("vc", num(1))})
        code = generate(cpp, loop, variables={"vc": "count"}).code
        assert code.startswith("for (int count2 = 0; count2 < 2; count2++) {\n  count = 1;\n")

    def test_repeat_caches_expression_bound(self, cpp):
        loop = block("controls_repeat_ext", inputs={"TIMES": arith("ADD", get("vn"), num(1))})
        code = generate(cpp, loop, variables={"vn": "n"}).code
        assert code == ("int repeat_end = n + 1;\n"
                        "for (int count = 0; count < repeat_end; count++) {\n}\n")

    def test_numeric_for(self, cpp):
        loop = block("controls_for", {"VAR": {"id": "vi"}},
                     {"FROM": num(1), "TO": num(10), "BY": num(2)})
        code = generate(cpp, loop, variables={"vi": "i"}).code
        assert code == "for (i = 1; i <= 10; i += 2) {\n}\n"

    def test_counting_down(self, cpp):
        loop = block("controls_for", {"VAR": {"id": "vi"}},
                     {"FROM": num(3), "TO": num(1), "BY": num(1)})
        assert generate(cpp, loop, variables={"vi": "i"}).code == "for (i = 3; i >= 1; i--) {\n}\n"

    def test_until_negates_condition(self, cpp):
        loop = block("controls_whileUntil", {"MODE": "UNTIL"},
                     {"BOOL": block("logic_compare", {"OP": "EQ"}, {"A": get("vn"), "B": num(3)})})
        code = generate(cpp, loop, variables={"vn": "n"}).code
        assert code == "while (!(n == 3)) {\n}\n"

    def test_break_inside_loop(self, cpp):
        loop = block("controls_repeat", {"TIMES": 3},
                     {"DO": block("controls_flow_statements", {"FLOW": "BREAK"})})
        assert "  break;\n" in generate(cpp, loop).code


# --------------------------------------------------------------------------- #
# Expressions
# --------------------------------------------------------------------------- #


def value_code(printer, value, variables=None):
    """Emit one value block left on its own, without the trailing ';'."""
    return generate(printer, value, variables=variables).code[:-2]


class TestExpressions:
    def test_power_uses_std_pow(self, cpp):
        result = generate(cpp, arith("POWER", num(2), num(3)))
        assert result.code == "std::pow(2, 3);\n"
        assert "#include <cmath>" in result.imports

    def test_double_negation_is_spaced(self, cpp):
        assert value_code(cpp, block("math_single", {"OP": "NEG"}, {"NUM": num(-5)})) == "- -5"

    def test_logic_with_one_operand(self, cpp):
        value = block("logic_operation", {"OP": "AND"}, {"A": boolean(False)})
        assert value_code(cpp, value) == "false && true"

    def test_ternary(self, cpp):
        value = block("logic_ternary", inputs={"IF": boolean(True), "THEN": num(1), "ELSE": num(2)})
        assert value_code(cpp, value) == "true ? 1 : 2"

    def test_list_literal(self, cpp):
        assert value_code(cpp, list_of(num(1), num(2))) == "std::vector<int>{1, 2}"

    def test_text_join_uses_helper(self, cpp):
        value = block("text_join", inputs={"ADD0": text("n = "), "ADD1": get("vn")},
                      extra_state={"itemCount": 2})
        result = generate(cpp, value, variables={"vn": "n"})
        assert result.code == 'text_to_string("n = ") + text_to_string(n);\n'
        assert any(d.startswith("template <typename T>\nstd::string text_to_string(")
                   for d in result.definitions)

    def test_helper_defined_once(self, cpp):
        prime = block("math_number_property", {"PROPERTY": "PRIME"}, {"NUMBER_TO_CHECK": num(7)})
        program = chain(print_(prime), print_(
            block("math_number_property", {"PROPERTY": "PRIME"}, {"NUMBER_TO_CHECK": num(9)})))
        result = generate(cpp, program)
        assert sum(1 for d in result.definitions if "bool math_isPrime(int n)" in d) == 1


# --------------------------------------------------------------------------- #
# Single evaluation of list expressions
# --------------------------------------------------------------------------- #


class TestSingleEvaluation:
    def test_insert_caches_list_expression(self, cpp):
        statement = block("lists_setIndex", {"MODE": "INSERT", "WHERE": "FROM_START"},
                          {"LIST": call("getList"), "AT": num(1), "TO": num(5)})
        code = generate(cpp, statement).code
        assert code == ("auto&& tmp_list = getList();\n"
                        "tmp_list.insert(tmp_list.begin() + 0, 5);\n")
        assert code.count("getList()") == 1

    def test_simple_list_is_not_cached(self, cpp):
        statement = block("lists_setIndex", {"MODE": "SET", "WHERE": "FROM_END"},
                          {"LIST": get("vl"), "AT": num(2), "TO": num(0)})
        code = generate(cpp, statement, variables={"vl": "l"}).code
        assert code == "l[l.size() - 2] = 0;\n"


# --------------------------------------------------------------------------- #
# Procedures
# --------------------------------------------------------------------------- #


class TestProcedures:
    def test_definition_precedes_main(self, cpp):
        definition = block(
            "procedures_defreturn", {"NAME": "twice"},
            {"RETURN": arith("MULTIPLY", get("vn"), num(2))},
            extra_state={"params": [{"name": "n", "id": "vn"}]},
        )
        use = set_("vx", call("twice", num(21), params=["n"]))
        text_out = generate(cpp, definition, use, variables={"vx": "x", "vn": "n"}).text
        assert "int twice(int n) {\n  return n * 2;\n}" in text_out
        assert "  x = twice(21);\n" in text_out
        assert text_out.index("int twice") < text_out.index("int main")

    def test_void_procedure(self, cpp):
        definition = block("procedures_defnoreturn", {"NAME": "hello"},
                           {"STACK": print_(text("hi"))})
        text_out = generate(cpp, definition, call("hello", returns=False)).text
        assert 'void hello() {\n  std::cout << "hi" << std::endl;\n}' in text_out
        assert "  hello();\n" in text_out

    def test_reserved_procedure_name_is_renamed(self, cpp):
        definition = block("procedures_defnoreturn", {"NAME": "double"})
        text_out = generate(cpp, definition, call("double", returns=False)).text
        assert "void double2() {" in text_out
        assert "double2();" in text_out

    def test_prototypes_allow_calls_to_later_procedures(self, cpp):
        first = block("procedures_defnoreturn", {"NAME": "first"},
                      {"STACK": call("second", returns=False)})
        second = block("procedures_defnoreturn", {"NAME": "second"},
                       {"STACK": print_(text("hi"))})
        text_out = generate(cpp, first, second, call("first", returns=False)).text
        assert "void first();\nvoid second();" in text_out
        assert text_out.index("void second();") < text_out.index("void first() {")
        assert text_out.index("void first() {") < text_out.index("void second() {")

    def test_prototype_matches_signature(self, cpp):
        definition = block(
            "procedures_defreturn", {"NAME": "twice"},
            {"RETURN": arith("MULTIPLY", get("vn"), num(2))},
            extra_state={"params": [{"name": "n", "id": "vn"}]},
        )
        text_out = generate(cpp, definition, variables={"vn": "n"}).text
        assert "int twice(int n);\n" in text_out
        assert text_out.index("int twice(int n);") < text_out.index("int twice(int n) {")

    def test_disabled_procedure_has_no_prototype(self, cpp):
        definition = block("procedures_defnoreturn", {"NAME": "hidden"}, enabled=False)
        assert "hidden" not in generate(cpp, definition).text


# --------------------------------------------------------------------------- #
# Literals
# --------------------------------------------------------------------------- #


class TestQuote:
    def test_escapes(self, cpp):
        assert cpp.quote('a"b\\c\n') == '"a\\"b\\\\c\\n"'

    def test_interpolation_marker_is_escaped(self, cpp):
        assert cpp.quote("$x") == '"\\044x"'

    def test_control_character_uses_octal(self, cpp):
        assert cpp.quote("\x01") == '"\\001"'

    @pytest.mark.parametrize("value", [
        'back\\slash', 'say "hi"', "two\nlines", "$name", "\x01\x7f", "??/", "tab\there\r",
    ])
    def test_literal_reads_back(self, cpp, value):
        literal = cpp.quote(value)
        assert literal[0] == literal[-1] == '"'
        assert unescape_cpp(literal[1:-1]) == value

    def test_lone_surrogate_is_rejected(self, cpp):
        with pytest.raises(EncodingError):
            cpp.quote("\ud800")

    def test_multiline_text(self, cpp):
        code, _ = cpp.multiline_quote("a\nb")
        assert code == '"a\\n"\n"b"'
