# FILE: tests/edi_parser/test_edi_parser_edge_cases.py
import pytest

from edi_errors import DelimiterDetectionError, StructuralError
from edi_parser import EdiParser, parse

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("strict", [True, False])
def test_parser_rejects_empty_edi(strict: bool):
    """
    Tests that there is nothing to detect delimiters from in an empty document.
    """
    with pytest.raises(DelimiterDetectionError):
        EdiParser(edi_string="", strict=strict)


def test_parser_rejects_whitespace_only_edi():
    with pytest.raises(DelimiterDetectionError):
        EdiParser(edi_string="   \n  \r\n  \t  ", strict=False)


def test_parser_rejects_truncated_isa():
    with pytest.raises(DelimiterDetectionError, match="too short"):
        parse("ISA*00*~")


def test_parser_rejects_isa_with_wrong_element_count(purchase_order_edi: str):
    # Same length, but one element delimiter is gone.
    malformed = purchase_order_edi.replace("*00401*", "-00401*", 1)
    with pytest.raises(DelimiterDetectionError, match="malformed"):
        parse(malformed)


def test_parser_rejects_colliding_delimiters(purchase_order_edi: str):
    # The terminator at offset 105 becomes the element delimiter.
    colliding = purchase_order_edi[:105] + "*" + purchase_order_edi[106:]
    with pytest.raises(DelimiterDetectionError):
        parse(colliding)


def test_leading_whitespace_is_strict_error_and_lenient_warning(purchase_order_edi: str):
    padded = "\r\n  " + purchase_order_edi
    with pytest.raises(DelimiterDetectionError):
        parse(padded)

    interchange = parse(padded, strict=False)
    assert "whitespace" in interchange.warnings[0].message
    # Offsets still point into the text as given.
    assert interchange.functional_groups[0].header.offset == 110
    assert interchange.to_string() == purchase_order_edi


def test_unterminated_trailing_segment(purchase_order_edi: str):
    unterminated = purchase_order_edi[:-1]
    with pytest.raises(StructuralError, match="not closed by the segment terminator"):
        parse(unterminated)

    interchange = parse(unterminated, strict=False)
    assert interchange.trailer.get_element(2) == "000000001"
    assert interchange.to_string() == purchase_order_edi


def test_empty_segment_between_terminators(purchase_order_segments):
    purchase_order_segments[4] = "~" + purchase_order_segments[4]
    edi = "".join(purchase_order_segments)
    with pytest.raises(StructuralError, match="Empty segment"):
        parse(edi)

    interchange = parse(edi, strict=False)
    assert [w.message for w in interchange.warnings] == ["Empty segment."]
    assert len(interchange.functional_groups[0].transactions[0].segments) == 5


def test_invalid_segment_tag(purchase_order_segments):
    purchase_order_segments[4] = "R-F*DP*038~"
    edi = "".join(purchase_order_segments)
    with pytest.raises(StructuralError, match="Invalid segment tag"):
        parse(edi)

    interchange = parse(edi, strict=False)
    assert "R-F*DP*038" in interchange.warnings[0].message


def test_newline_as_segment_terminator():
    isa = "ISA*00*          *00*          *ZZ*SENDERID       *ZZ*RECEIVERID     *240715*1200*^*00501*000000007*0*P*:\n"
    edi = isa + "GS*PO*S*R*20240715*1200*7*X*005010\nST*850*0001\nBEG*00*SA*1**20240715\nSE*3*0001\nGE*1*7\nIEA*1*000000007\n"

    parser = EdiParser(edi)
    assert parser.segment_terminator == "\n"
    assert parser.options.end_of_line == ""

    interchange = parser.parse()
    assert interchange.functional_groups[0].transactions[0].segments[0].tag == "BEG"
    assert interchange.to_string() == edi
