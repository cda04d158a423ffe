"""Tests for loading Blockly JSON, YAML and XML workspaces into the IR."""

import json

import pytest

from packages.codegen.errors import UnknownBlockError, WorkspaceLoadError
from packages.codegen.ir import BlockType, InputType
from packages.codegen.ir_builder import IRBuilder
from packages.codegen.python_printer import PythonPrinter
from packages.sdk.schema import SchemaValidationError
from tests.blocks import block, call, chain, get, num, print_, set_, text, workspace


SAMPLE_XML = """
<xml xmlns="https://developers.google.com/blockly/xml">
  <variables>
    <variable id="v1">x</variable>
  </variables>
  <block type="variables_set" id="s1" x="10" y="10">
    <field name="VAR" id="v1">x</field>
    <value name="VALUE">
      <block type="math_number" id="n1"><field name="NUM">42</field></block>
    </value>
    <next>
      <block type="text_print" id="p1">
        <value name="TEXT">
          <shadow type="text" id="t1"><field name="TEXT">hi</field></shadow>
        </value>
      </block>
    </next>
  </block>
</xml>
"""


@pytest.fixture
def builder():
    return IRBuilder()


class TestJsonWorkspace:
    def test_chain_and_inputs(self, builder):
        doc = workspace(chain(set_("v1", num(1), block_id="a"), print_(get("v1"), block_id="b")),
                        variables={"v1": "x"})
        ws = builder.build_workspace(doc)
        top = ws.top_blocks[0]
        assert top.block_type == BlockType.VARIABLES_SET
        assert top.next_block.block_id == "b"
        assert top.next_block.parent is top
        assert top.get_input("VALUE").input_type == InputType.VALUE
        assert ws.get_variable("x").var_id == "v1"

    def test_missing_ids_are_generated(self, builder):
        ws = builder.build_workspace(workspace(print_(text("a"))))
        ids = {b.block_id for b in ws.get_all_blocks()}
        assert len(ids) == 2
        assert all(i.startswith("block_") for i in ids)

    def test_variable_by_name_is_created(self, builder):
        doc = workspace(block("variables_set", {"VAR": {"name": "score"}}, {"VALUE": num(1)}))
        ws = builder.build_workspace(doc)
        assert ws.get_variable("score") is not None

    def test_statement_slots(self, builder):
        loop = block("controls_repeat_ext", inputs={"TIMES": num(2), "DO": print_(text("a"))})
        ws = builder.build_workspace(workspace(loop))
        assert ws.top_blocks[0].get_input("DO").input_type == InputType.STATEMENT

    def test_mutator_inputs_are_declared(self, builder):
        program = block("controls_if", extra_state={"elseIfCount": 2, "hasElse": True})
        ws = builder.build_workspace(workspace(program))
        assert set(ws.top_blocks[0].inputs) == {"IF0", "DO0", "IF1", "DO1", "IF2", "DO2", "ELSE"}

    def test_call_arguments_are_declared(self, builder):
        ws = builder.build_workspace(workspace(call("f", params=["a", "b"])))
        assert set(ws.top_blocks[0].inputs) == {"ARG0", "ARG1"}

    def test_procedure_parameters_become_variables(self, builder):
        definition = block("procedures_defnoreturn", {"NAME": "f"},
                           extra_state={"params": [{"name": "size", "id": "p1"}]})
        ws = builder.build_workspace(workspace(definition))
        assert ws.get_variable_by_id("p1").name == "size"

    def test_xml_mutation_string_in_extra_state(self, builder):
        program = block("controls_if", extra_state='<mutation elseif="1"></mutation>')
        ws = builder.build_workspace(workspace(program))
        assert "IF1" in ws.top_blocks[0].inputs

    def test_disabled_flag(self, builder):
        ws = builder.build_workspace(workspace(print_(text("a"), disabled=True)))
        assert ws.top_blocks[0].enabled is False

    def test_workspace_option_overrides_default(self, builder):
        ws = builder.build_workspace(workspace(one_based=False))
        assert ws.one_based_index is False

    def test_unknown_block_type(self, builder):
        with pytest.raises(UnknownBlockError) as exc_info:
            builder.build_workspace(workspace(block("robot_move", block_id="r1")))
        assert exc_info.value.block_id == "r1"

    def test_schema_violation(self, builder):
        with pytest.raises(SchemaValidationError):
            builder.build_workspace({"blocks": {"blocks": [{"id": "no-type"}]}})


class TestDocuments:
    def test_json_file(self, builder, tmp_path):
        path = tmp_path / "program.json"
        path.write_text(json.dumps(workspace(print_(text("a")))))
        ws = builder.build(str(path))
        assert ws.top_blocks[0].block_type == BlockType.TEXT_PRINT

    def test_yaml_text(self, builder):
        document = (
            "blocks:\n"
            "  blocks:\n"
            "    - type: text_print\n"
            "      inputs:\n"
            "        TEXT:\n"
            "          block: {type: text, fields: {TEXT: hi}}\n"
        )
        ws = builder.build(document)
        assert ws.top_blocks[0].get_input_target("TEXT").get_field_value("TEXT") == "hi"

    def test_missing_file(self, builder, tmp_path):
        with pytest.raises(WorkspaceLoadError):
            builder.build(str(tmp_path / "nope.json"))

    def test_malformed_text(self, builder):
        with pytest.raises(WorkspaceLoadError):
            builder.build("{unclosed")

    def test_non_mapping_document(self, builder):
        with pytest.raises(WorkspaceLoadError):
            builder.build("- a\n- b\n")


class TestXmlWorkspace:
    def test_blocks_fields_and_shadows(self, builder):
        ws = builder.build(SAMPLE_XML)
        top = ws.top_blocks[0]
        assert top.get_field_value("VAR") == "v1"
        assert top.next_block.block_type == BlockType.TEXT_PRINT
        assert top.next_block.get_input_target("TEXT").block_id == "t1"

    def test_generates_same_program_as_json(self, builder):
        printer = PythonPrinter()
        assert printer.generate(builder.build(SAMPLE_XML)).text == "x = None\n\nx = 42\nprint('hi')\n"

    def test_if_mutation(self, builder):
        xml = ('<xml><block type="controls_if"><mutation elseif="1" else="1"></mutation>'
               '</block></xml>')
        ws = builder.build_workspace_from_xml(xml)
        assert {"IF1", "DO1", "ELSE"} <= set(ws.top_blocks[0].inputs)

    def test_procedure_args(self, builder):
        xml = ('<xml><block type="procedures_defreturn">'
               '<mutation><arg name="a" varid="va"></arg></mutation>'
               '<field name="NAME">f</field></block></xml>')
        ws = builder.build_workspace_from_xml(xml)
        assert ws.top_blocks[0].get_vars() == ["a"]
        assert ws.get_variable_by_id("va").name == "a"

    def test_index_option_on_root(self, builder):
        ws = builder.build_workspace_from_xml('<xml oneBasedIndex="false"></xml>')
        assert ws.one_based_index is False

    def test_not_xml_root(self, builder):
        with pytest.raises(WorkspaceLoadError):
            builder.build_workspace_from_xml("<workspace></workspace>")

    def test_malformed_xml(self, builder):
        with pytest.raises(WorkspaceLoadError):
            builder.build_workspace_from_xml("<xml><block></xml>")
