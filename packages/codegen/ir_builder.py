"""Builder for converting serialized Blockly workspaces to IR."""

from pathlib import Path
from typing import Dict, List, Any, Optional, Union
import re
import logging
import xml.etree.ElementTree as ET

import yaml

from packages.sdk.schema import validate_workspace_document
from .errors import UnknownBlockError, WorkspaceLoadError
from .ir import Block, BlockType, InputType, Workspace, PROCEDURE_DEFINITION_TYPES

logger = logging.getLogger(__name__)

_STATEMENT_SLOT_RE = re.compile(r"^(DO\d*|STACK)$")

Document = Union[Dict[str, Any], str, Path]


def _local_name(tag: str) -> str:
    """Strip the XML namespace from a tag."""
    return tag.rsplit("}", 1)[-1]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class IRBuilder:
    """Builds a Workspace from the Blockly JSON or XML serialization."""

    def __init__(self, one_based_index: bool = True):
        self.one_based_index = one_based_index
        self.id_counter = 0

    def _generate_id(self, prefix="block"):
        """Generate an id for a block serialized without one."""
        self.id_counter += 1
        return f"{prefix}_{self.id_counter}"

    # Document input

    def load_document(self, document: Document) -> Union[Dict[str, Any], str]:
        """Turn a path or text into a parsed JSON/YAML mapping, or XML text."""
        if isinstance(document, dict):
            return document
        if isinstance(document, Path) or (isinstance(document, str) and "\n" not in document
                                          and not document.lstrip().startswith(("{", "<"))):
            path = Path(document)
            if not path.exists():
                raise WorkspaceLoadError(f"Workspace file not found: {path}")
            document = path.read_text(encoding="utf-8")
        if document.lstrip().startswith("<"):
            return document
        try:
            data = yaml.safe_load(document)
        except yaml.YAMLError as e:
            raise WorkspaceLoadError(f"Workspace document is not valid JSON or YAML: {e}") from e
        if not isinstance(data, dict):
            raise WorkspaceLoadError("Workspace document must be a mapping")
        return data

    def build(self, document: Document) -> Workspace:
        """Build from any supported input: mapping, JSON/YAML/XML text or a file path."""
        loaded = self.load_document(document)
        if isinstance(loaded, str):
            return self.build_workspace_from_xml(loaded)
        return self.build_workspace(loaded)

    # JSON serialization

    def build_workspace(self, document: Document) -> Workspace:
        """Convert a Blockly JSON workspace document to a Workspace."""
        data = self.load_document(document)
        if isinstance(data, str):
            raise WorkspaceLoadError("Expected a JSON workspace, got XML")
        validate_workspace_document(data)

        options = data.get("options", {})
        workspace = Workspace(one_based_index=options.get("oneBasedIndex", self.one_based_index))
        for var_def in data.get("variables", []):
            workspace.create_variable(var_def["name"], var_def.get("id"), var_def.get("type", ""))

        for block_def in data.get("blocks", {}).get("blocks", []):
            block = self._build_json_block(block_def, workspace)
            workspace.add_top_block(block)

        self._declare_parameters(workspace)
        logger.debug(f"Built workspace with {len(workspace.top_blocks)} top blocks "
                     f"and {len(workspace.variables)} variables")
        return workspace

    def _build_json_block(self, block_def: Dict[str, Any], workspace: Workspace) -> Block:
        # Statement chains are linked iteratively; only nested inputs recurse.
        head: Optional[Block] = None
        previous: Optional[Block] = None
        current_def: Optional[Dict[str, Any]] = block_def
        while current_def is not None:
            block = self._new_block(current_def.get("type"), current_def.get("id"))
            for name, value in current_def.get("fields", {}).items():
                block.set_field_value(name, self._json_field_value(value, name, workspace))
            if "enabled" in current_def:
                block.enabled = _as_bool(current_def["enabled"])
            elif "disabled" in current_def:
                block.enabled = not _as_bool(current_def["disabled"])
            comment = current_def.get("icons", {}).get("comment", {}).get("text")
            block.comment = comment if comment is not None else current_def.get("comment")
            block.extra_state = self._json_extra_state(current_def.get("extraState"))

            for name, slot_def in current_def.get("inputs", {}).items():
                child_def = slot_def.get("block") or slot_def.get("shadow")
                if child_def is None:
                    continue
                child = self._build_json_block(child_def, workspace)
                block.connect_input(name, self._slot_type(name, child), child)
            self._declare_mutator_inputs(block)

            if previous is None:
                head = block
            else:
                previous.set_next(block)
            previous = block
            next_def = current_def.get("next")
            current_def = (next_def.get("block") or next_def.get("shadow")) if next_def else None
        return head

    def _json_field_value(self, value: Any, name: str, workspace: Workspace) -> Any:
        if isinstance(value, dict):
            # Variable fields are serialized as {"id": ...} or {"name": ...}.
            if "id" in value:
                if workspace.get_variable_by_id(value["id"]) is None and value.get("name"):
                    workspace.create_variable(value["name"], value["id"], value.get("type", ""))
                return value["id"]
            if "name" in value:
                return workspace.create_variable(value["name"]).var_id
        return value

    def _json_extra_state(self, state: Any) -> Dict[str, Any]:
        if state is None:
            return {}
        if isinstance(state, str):
            # Blocks without JSON hooks serialize their XML mutation as text.
            try:
                return self._mutation_state(ET.fromstring(state))
            except ET.ParseError as e:
                raise WorkspaceLoadError(f"Invalid mutation {state!r}: {e}") from e
        if isinstance(state, dict):
            return dict(state)
        raise WorkspaceLoadError(f"Unsupported extraState {state!r}")

    # XML serialization

    def build_workspace_from_xml(self, text: Union[str, Path]) -> Workspace:
        """Convert Blockly XML (<xml><variables/><block .../></xml>) to a Workspace."""
        if isinstance(text, Path):
            text = text.read_text(encoding="utf-8")
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise WorkspaceLoadError(f"Workspace XML is not well formed: {e}") from e
        if _local_name(root.tag) != "xml":
            raise WorkspaceLoadError(f"Expected <xml> root element, got <{_local_name(root.tag)}>")

        one_based = root.get("oneBasedIndex")
        workspace = Workspace(one_based_index=_as_bool(one_based) if one_based is not None
                              else self.one_based_index)
        for child in root:
            if _local_name(child.tag) == "variables":
                for var_el in child:
                    workspace.create_variable(var_el.text or "", var_el.get("id"), var_el.get("type", ""))

        for child in root:
            if _local_name(child.tag) in ("block", "shadow"):
                workspace.add_top_block(self._build_xml_block(child, workspace))

        self._declare_parameters(workspace)
        logger.debug(f"Built workspace from XML with {len(workspace.top_blocks)} top blocks")
        return workspace

    def _build_xml_block(self, element: ET.Element, workspace: Workspace) -> Block:
        head: Optional[Block] = None
        previous: Optional[Block] = None
        current: Optional[ET.Element] = element
        while current is not None:
            block = self._new_block(current.get("type"), current.get("id"))
            if current.get("disabled") is not None:
                block.enabled = not _as_bool(current.get("disabled"))
            if current.get("enabled") is not None:
                block.enabled = _as_bool(current.get("enabled"))

            next_el = None
            for child in current:
                tag = _local_name(child.tag)
                if tag == "field":
                    block.set_field_value(child.get("name"), self._xml_field_value(child, workspace))
                elif tag == "mutation":
                    block.extra_state = self._mutation_state(child)
                elif tag == "comment":
                    block.comment = child.text or ""
                elif tag in ("value", "statement"):
                    target = self._xml_child_block(child)
                    if target is not None:
                        input_type = InputType.VALUE if tag == "value" else InputType.STATEMENT
                        block.connect_input(child.get("name"), input_type,
                                            self._build_xml_block(target, workspace))
                elif tag == "next":
                    next_el = self._xml_child_block(child)
            self._declare_mutator_inputs(block)

            if previous is None:
                head = block
            else:
                previous.set_next(block)
            previous = block
            current = next_el
        return head

    @staticmethod
    def _xml_child_block(element: ET.Element) -> Optional[ET.Element]:
        """The <block> inside a <value>/<statement>/<next>, falling back to its <shadow>."""
        shadow = None
        for child in element:
            tag = _local_name(child.tag)
            if tag == "block":
                return child
            if tag == "shadow":
                shadow = child
        return shadow

    def _xml_field_value(self, element: ET.Element, workspace: Workspace) -> Any:
        text = element.text or ""
        var_id = element.get("id")
        if element.get("name") == "VAR" or var_id is not None:
            if var_id is not None:
                if workspace.get_variable_by_id(var_id) is None:
                    workspace.create_variable(text, var_id, element.get("variabletype", ""))
                return var_id
            return workspace.create_variable(text).var_id
        return text

    def _mutation_state(self, element: ET.Element) -> Dict[str, Any]:
        """Normalize an XML <mutation> to the JSON extraState keys."""
        state: Dict[str, Any] = {}
        attrs = element.attrib
        if "elseif" in attrs:
            state["elseIfCount"] = int(attrs["elseif"])
        if "else" in attrs:
            state["hasElse"] = _as_bool(attrs["else"])
        if "items" in attrs:
            state["itemCount"] = int(attrs["items"])
        if "name" in attrs:
            state["name"] = attrs["name"]
        if "value" in attrs:
            state["hasReturnValue"] = _as_bool(attrs["value"])
        if "statement" in attrs:
            state["isStatement"] = _as_bool(attrs["statement"])
        if "divisor_input" in attrs:
            state["divisorInput"] = _as_bool(attrs["divisor_input"])
        params: List[Dict[str, Any]] = []
        for child in element:
            if _local_name(child.tag) == "arg":
                param = {"name": child.get("name", "")}
                if child.get("varid"):
                    param["id"] = child.get("varid")
                params.append(param)
        if params:
            state["params"] = params
        return state

    # Shared

    def _new_block(self, type_name: Optional[str], block_id: Optional[str]) -> Block:
        block_id = block_id or self._generate_id()
        try:
            block_type = BlockType(type_name)
        except ValueError:
            raise UnknownBlockError(f"Unknown block type '{type_name}'",
                                    block_id=block_id, block_type=type_name)
        return Block(block_type, block_id)

    @staticmethod
    def _slot_type(name: str, child: Block) -> InputType:
        if _STATEMENT_SLOT_RE.match(name) or not child.has_output:
            return InputType.STATEMENT
        return InputType.VALUE

    def _declare_mutator_inputs(self, block: Block):
        """Declare the dynamic inputs a block's mutator state promises, connected or not."""
        state = block.extra_state
        if block.block_type == BlockType.CONTROLS_IF:
            block.declare_input("IF0", InputType.VALUE)
            block.declare_input("DO0", InputType.STATEMENT)
            for i in range(1, int(state.get("elseIfCount", 0)) + 1):
                block.declare_input(f"IF{i}", InputType.VALUE)
                block.declare_input(f"DO{i}", InputType.STATEMENT)
            if _as_bool(state.get("hasElse", False)):
                block.declare_input("ELSE", InputType.STATEMENT)
        elif block.block_type == BlockType.CONTROLS_IFELSE:
            block.declare_input("IF0", InputType.VALUE)
            block.declare_input("DO0", InputType.STATEMENT)
            block.declare_input("ELSE", InputType.STATEMENT)
        elif block.block_type in (BlockType.TEXT_JOIN, BlockType.LISTS_CREATE_WITH):
            if "itemCount" in state:
                for i in range(int(state["itemCount"])):
                    block.declare_input(f"ADD{i}", InputType.VALUE)
        elif block.block_type in (BlockType.PROCEDURES_CALLRETURN, BlockType.PROCEDURES_CALLNORETURN):
            for i in range(len(block.get_vars())):
                block.declare_input(f"ARG{i}", InputType.VALUE)

    def _declare_parameters(self, workspace: Workspace):
        """Procedure parameters are workspace variables too."""
        for definition in workspace.top_blocks:
            if definition.block_type not in PROCEDURE_DEFINITION_TYPES:
                continue
            for param in definition.extra_state.get("params", []):
                if isinstance(param, dict):
                    workspace.create_variable(param.get("name", ""), param.get("id"))
                else:
                    workspace.create_variable(str(param))
