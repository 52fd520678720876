import json

import pytest

from cdm import CdmInterchange
from edi_errors import IncompleteContainerError, NotationShapeError
from edi_generator import EdiGenerator, generate
from edi_parser import parse, parse_document
from notation_converter import notation_to_json

pytestmark = pytest.mark.unit


@pytest.mark.format
@pytest.mark.parametrize("fixture_name", ["purchase_order_edi", "purchase_order_crlf_edi", "two_group_edi"])
def test_replicates_the_source_through_notation(fixture_name: str, request):
    edi = request.getfixturevalue(fixture_name)
    notation = parse(edi, strict=True).to_json()

    assert EdiGenerator(notation).to_string() == edi


@pytest.mark.format
@pytest.mark.parametrize("fixture_name", ["purchase_order_edi", "purchase_order_crlf_edi", "two_group_edi"])
def test_replicates_the_source_to_and_from_json(fixture_name: str, request):
    edi = request.getfixturevalue(fixture_name)
    json_text = notation_to_json(parse(edi, strict=True).to_json())

    assert EdiGenerator(json.loads(json_text)).to_string() == edi


def test_generates_from_a_parsed_tree(two_group_edi: str):
    interchange = parse(two_group_edi)
    assert generate(interchange) == two_group_edi


def test_generates_a_document_from_a_list_of_notations(purchase_order_edi: str, two_group_edi: str):
    edi = purchase_order_edi + two_group_edi.replace("\n", "")
    notations = [n.model_dump(mode="json") for n in parse_document(edi).to_json()]

    assert EdiGenerator(notations).to_string() == edi


def test_constructor_options_override_tree_delimiters(purchase_order_edi: str):
    generator = EdiGenerator(parse(purchase_order_edi), options={"element_delimiter": "|", "segment_terminator": "\n",
                                                                 "end_of_line": ""})
    lines = generator.to_string().split("\n")

    assert lines[1] == "GS|PO|SENDERID|RECEIVERID|20240715|1200|1|X|004010"
    assert lines[6] == "PO1|1|10|EA|9.99||BP|ITEM-1|VP|SKU:RED:L"


def test_call_options_override_constructor_options(purchase_order_edi: str):
    generator = EdiGenerator(parse(purchase_order_edi), options={"format": True, "end_of_line": "\n"})
    assert generator.to_string().count("\n") == 10
    assert generator.to_string({"format": False}) == purchase_order_edi


def test_sub_element_override_reaches_composites(purchase_order_edi: str):
    edi = generate(parse(purchase_order_edi), {"sub_element_delimiter": ">"})
    assert "*VP*SKU>RED>L~" in edi


def test_generation_does_not_touch_the_tree(purchase_order_edi: str):
    interchange = parse(purchase_order_edi)
    generate(interchange, {"element_delimiter": "|"})
    assert interchange.to_string() == purchase_order_edi


def test_headerless_interchange_cannot_be_generated():
    with pytest.raises(IncompleteContainerError):
        generate(CdmInterchange())


@pytest.mark.parametrize("source", [42, "ISA*00~", [], [[{"header": []}]]])
def test_unsupported_sources_are_rejected(source):
    with pytest.raises(NotationShapeError):
        EdiGenerator(source)


def test_final_line_break_can_be_requested(purchase_order_edi: str):
    edi = generate(parse(purchase_order_edi), {"final_line_break": "\r\n"})
    assert edi == purchase_order_edi + "\r\n"
