"""Tests for the CodeGenerator facade."""

import json

import pytest

from packages.codegen import CodeGenerator, CppPrinter, PythonPrinter, __version__
from packages.core.settings import GeneratorOptions
from tests.blocks import block, call, chain, get, list_of, num, print_, set_, text, workspace


@pytest.fixture
def generator():
    return CodeGenerator()


@pytest.fixture
def program():
    return workspace(print_(text("hi")))


class TestCodeGenerator:
    def test_version(self):
        assert __version__ == "0.1.0"

    def test_printers_are_reused(self, generator):
        printer = generator.get_printer("python")
        assert isinstance(printer, PythonPrinter)
        assert generator.get_printer("py") is printer
        assert isinstance(generator.get_printer("c++"), CppPrinter)

    def test_generate_code(self, generator, program):
        assert generator.generate_code(program, "python") == "print('hi')\n"

    def test_generate_from_file(self, generator, program, tmp_path):
        path = tmp_path / "program.json"
        path.write_text(json.dumps(program))
        assert generator.generate(path, "python").text == "print('hi')\n"

    def test_generate_all_writes_files(self, generator, program, tmp_path):
        outputs = generator.generate_all(program, tmp_path, base_filename="hello")
        assert set(outputs) == {"cpp", "python"}
        assert (tmp_path / "hello.py").read_text() == "print('hi')\n"
        assert "int main() {" in (tmp_path / "hello.cpp").read_text()

    def test_options_set_index_default(self, program):
        generator = CodeGenerator(options=GeneratorOptions(one_based_index=False))
        assert generator.build_workspace(program).one_based_index is False

    def test_validate_returns_dicts(self, generator):
        issues = generator.validate(workspace(num(1)))
        assert issues[0]["issue_type"] == "naked_value"


# Every block type in one workspace, to check that both printers handle all of
# them and that the Python output is syntactically valid.
def kitchen_sink():
    def p(value):
        return print_(value)

    def math(type_, op, **inputs):
        return block(type_, {"OP": op}, inputs)

    values = [
        block("logic_compare", {"OP": "NEQ"}, {"A": get("vx"), "B": num(1)}),
        block("logic_operation", {"OP": "OR"}, {"A": block("logic_boolean", {"BOOL": "TRUE"}),
                                                "B": block("logic_negate")}),
        block("logic_null"),
        block("logic_ternary", inputs={"IF": get("vx"), "THEN": num(1), "ELSE": num(2)}),
        math("math_single", "ABS", NUM=num(-3)),
        math("math_round", "ROUNDUP", NUM=num(1.5)),
        math("math_trig", "SIN", NUM=num(30)),
        math("math_trig", "ATAN", NUM=num(1)),
        block("math_constant", {"CONSTANT": "GOLDEN_RATIO"}),
        block("math_number_property", {"PROPERTY": "EVEN"}, {"NUMBER_TO_CHECK": get("vx")}),
        block("math_number_property", {"PROPERTY": "DIVISIBLE_BY"},
              {"NUMBER_TO_CHECK": get("vx"), "DIVISOR": num(3)}),
        math("math_on_list", "SUM", LIST=get("vl")),
        math("math_on_list", "MEDIAN", LIST=get("vl")),
        math("math_on_list", "MODE", LIST=get("vl")),
        math("math_on_list", "STD_DEV", LIST=get("vl")),
        math("math_on_list", "RANDOM", LIST=get("vl")),
        block("math_modulo", inputs={"DIVIDEND": num(7), "DIVISOR": num(3)}),
        block("math_constrain", inputs={"VALUE": get("vx"), "LOW": num(0), "HIGH": num(10)}),
        block("math_random_int", inputs={"FROM": num(1), "TO": num(6)}),
        block("math_random_float"),
        block("math_atan2", inputs={"X": num(1), "Y": num(1)}),
        block("text_multiline", {"TEXT": "a\nb"}),
        block("text_length", inputs={"VALUE": get("vt")}),
        block("text_isEmpty", inputs={"VALUE": get("vt")}),
        block("text_indexOf", {"END": "LAST"}, {"VALUE": get("vt"), "FIND": text("l")}),
        block("text_charAt", {"WHERE": "FROM_END"}, {"VALUE": get("vt"), "AT": num(2)}),
        block("text_charAt", {"WHERE": "RANDOM"}, {"VALUE": get("vt")}),
        block("text_getSubstring", {"WHERE1": "FROM_END", "WHERE2": "LAST"},
              {"STRING": get("vt"), "AT1": num(3)}),
        block("text_changeCase", {"CASE": "TITLECASE"}, {"TEXT": get("vt")}),
        block("text_trim", {"MODE": "LEFT"}, {"TEXT": get("vt")}),
        block("text_prompt_ext", {"TYPE": "NUMBER"}, {"TEXT": text("n?")}),
        block("text_count", inputs={"TEXT": get("vt"), "SUB": text("l")}),
        block("text_replace", inputs={"TEXT": get("vt"), "FROM": text("l"), "TO": text("L")}),
        block("text_reverse", inputs={"TEXT": get("vt")}),
        block("lists_create_empty"),
        block("lists_repeat", inputs={"ITEM": num(0), "NUM": num(3)}),
        block("lists_length", inputs={"VALUE": get("vl")}),
        block("lists_isEmpty", inputs={"VALUE": get("vl")}),
        block("lists_indexOf", {"END": "FIRST"}, {"VALUE": get("vl"), "FIND": num(2)}),
        block("lists_getIndex", {"MODE": "GET_REMOVE", "WHERE": "LAST"}, {"VALUE": get("vl")}),
        block("lists_getIndex", {"MODE": "GET", "WHERE": "RANDOM"}, {"VALUE": get("vl")}),
        block("lists_getSublist", {"WHERE1": "FROM_START", "WHERE2": "FROM_END"},
              {"LIST": get("vl"), "AT1": num(1), "AT2": get("vx")}),
        block("lists_sort", {"TYPE": "IGNORE_CASE", "DIRECTION": "1"}, {"LIST": get("vl")}),
        block("lists_split", {"MODE": "SPLIT"}, {"INPUT": get("vt"), "DELIM": text(",")}),
        block("lists_reverse", inputs={"LIST": get("vl")}),
        block("colour_picker", {"COLOUR": "#ff0000"}),
        block("colour_random"),
        block("colour_rgb", inputs={"RED": num(100), "GREEN": num(50), "BLUE": num(0)}),
        block("colour_blend", inputs={"COLOUR1": block("colour_picker", {"COLOUR": "#ffffff"}),
                                      "COLOUR2": block("colour_picker", {"COLOUR": "#000000"}),
                                      "RATIO": num(0.5)}),
        call("calc", num(3), params=["a"]),
        block("variables_get_dynamic", {"VAR": {"id": "vx"}}),
    ]
    statements = [
        set_("vx", num(1)),
        set_("vl", list_of(num(1), num(2), num(3))),
        set_("vt", text("hello")),
        block("controls_repeat", {"TIMES": 2},
              {"DO": block("controls_flow_statements", {"FLOW": "CONTINUE"})}),
        block("controls_whileUntil", {"MODE": "WHILE"},
              {"BOOL": block("logic_boolean", {"BOOL": "FALSE"}),
               "DO": block("controls_flow_statements", {"FLOW": "BREAK"})}),
        block("controls_forEach", {"VAR": {"id": "vi"}}, {"LIST": get("vl"), "DO": p(get("vi"))}),
        block("controls_ifelse", inputs={"IF0": get("vx"), "DO0": p(num(1)), "ELSE": p(num(2))}),
        block("math_change", {"VAR": {"id": "vx"}}, {"DELTA": num(1)}),
        block("text_append", {"VAR": {"id": "vt"}}, {"TEXT": text("!")}),
        block("lists_setIndex", {"MODE": "INSERT", "WHERE": "FIRST"},
              {"LIST": get("vl"), "TO": num(0)}),
        block("lists_setIndex", {"MODE": "SET", "WHERE": "FROM_START"},
              {"LIST": get("vl"), "AT": get("vx"), "TO": num(9)}),
        block("lists_getIndex", {"MODE": "REMOVE", "WHERE": "FROM_END"},
              {"VALUE": get("vl"), "AT": num(1)}),
        call("shout", returns=False),
        block("variables_set_dynamic", {"VAR": {"id": "vx"}}, {"VALUE": num(5)}),
    ] + [p(value) for value in values]

    definitions = [
        block("procedures_defreturn", {"NAME": "calc"},
              {"STACK": block("procedures_ifreturn", inputs={"CONDITION": get("va"), "VALUE": num(0)},
                              extra_state={"hasReturnValue": True}),
               "RETURN": block("math_arithmetic", {"OP": "DIVIDE"}, {"A": get("va"), "B": num(2)})},
              extra_state={"params": [{"name": "a", "id": "va"}]}),
        block("procedures_defnoreturn", {"NAME": "shout"},
              {"STACK": block("procedures_ifreturn", inputs={"CONDITION": get("vx")},
                              extra_state={"hasReturnValue": False})}),
    ]
    variables = {"vx": "x", "vl": "l", "vt": "t", "vi": "item"}
    return workspace(*definitions, chain(*statements), variables=variables)


class TestEveryBlock:
    def test_cpp(self, generator):
        text_out = generator.generate_code(kitchen_sink(), "cpp")
        assert "int main() {" in text_out
        assert "int calc(int a) {" in text_out
        assert "void shout() {" in text_out

    def test_python_compiles(self, generator):
        text_out = generator.generate_code(kitchen_sink(), "python")
        compile(text_out, "<generated>", "exec")
        assert "def calc(a):" in text_out
        assert "def shout():" in text_out
