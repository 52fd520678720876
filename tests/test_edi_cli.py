import json
from pathlib import Path

import pytest

from edi_cli import main

pytestmark = pytest.mark.unit


def _write(path: Path, text: str) -> Path:
    with open(path, 'w', newline='') as f:
        f.write(text)
    return path


def _read(path: Path) -> str:
    with open(path, 'r', newline='') as f:
        return f.read()


@pytest.mark.format
def test_edi_to_json_to_edi_is_byte_identical(tmp_path: Path, purchase_order_crlf_edi: str):
    edi_file = _write(tmp_path / "po.edi", purchase_order_crlf_edi)
    json_file = tmp_path / "po.json"
    rebuilt_file = tmp_path / "rebuilt.edi"

    assert main(["to-json", str(edi_file), str(json_file)]) == 0
    payload = json.loads(json_file.read_text())
    assert payload["options"]["end_of_line"] == "\r\n"
    assert payload["functional_groups"][0]["transactions"][0]["header"] == ["850", "0001"]

    assert main(["to-edi", str(json_file), str(rebuilt_file)]) == 0
    assert _read(rebuilt_file) == purchase_order_crlf_edi


def test_default_output_paths(tmp_path: Path, two_group_edi: str):
    edi_file = _write(tmp_path / "orders.x12", two_group_edi)

    assert main(["to-json", str(edi_file)]) == 0
    assert (tmp_path / "orders.json").exists()

    assert main(["to-edi", str(tmp_path / "orders.json")]) == 0
    assert _read(tmp_path / "orders.edi") == two_group_edi


def test_several_interchanges_are_written_as_a_list(tmp_path: Path, purchase_order_edi: str, two_group_edi: str):
    edi = purchase_order_edi + two_group_edi.replace("\n", "")
    edi_file = _write(tmp_path / "batch.edi", edi)

    assert main(["to-json", str(edi_file)]) == 0
    payload = json.loads((tmp_path / "batch.json").read_text())
    assert isinstance(payload, list) and len(payload) == 2

    assert main(["to-edi", str(tmp_path / "batch.json")]) == 0
    assert _read(tmp_path / "batch.edi") == edi


def test_to_edi_applies_format_overrides(tmp_path: Path, purchase_order_edi: str):
    edi_file = _write(tmp_path / "po.edi", purchase_order_edi)
    assert main(["to-json", str(edi_file)]) == 0

    out_file = tmp_path / "formatted.edi"
    assert main(["to-edi", str(tmp_path / "po.json"), str(out_file), "--format", "--end-of-line", "crlf",
                 "--element-delimiter", "|"]) == 0
    lines = _read(out_file).split("\r\n")
    assert len(lines) == 11
    assert lines[2] == "ST|850|0001~"


def test_strict_and_lenient_parsing_of_a_broken_file(tmp_path: Path, purchase_order_segments):
    broken = "".join(s for s in purchase_order_segments if not s.startswith("SE*"))
    edi_file = _write(tmp_path / "broken.edi", broken)

    assert main(["to-json", str(edi_file)]) == 1
    assert not (tmp_path / "broken.json").exists()

    assert main(["to-json", str(edi_file), "--lenient"]) == 0
    assert main(["to-edi", str(tmp_path / "broken.json")]) == 0
    assert _read(tmp_path / "broken.edi") == "".join(purchase_order_segments)


def test_missing_input_file(tmp_path: Path):
    assert main(["to-json", str(tmp_path / "nope.edi")]) == 1
    assert main(["to-edi", str(tmp_path / "nope.json")]) == 1


def test_invalid_notation_file(tmp_path: Path):
    (tmp_path / "bad.json").write_text(json.dumps({"functional_groups": []}))
    assert main(["to-edi", str(tmp_path / "bad.json")]) == 1

    (tmp_path / "garbage.json").write_text("{not json")
    assert main(["to-edi", str(tmp_path / "garbage.json")]) == 1


@pytest.mark.format
def test_file_ending_in_a_newline_round_trips(tmp_path: Path, two_group_edi: str):
    edi_file = _write(tmp_path / "orders.edi", two_group_edi + "\n")

    assert main(["to-json", str(edi_file), str(tmp_path / "orders.json")]) == 0
    assert main(["to-edi", str(tmp_path / "orders.json"), str(tmp_path / "rebuilt.edi")]) == 0
    assert _read(tmp_path / "rebuilt.edi") == two_group_edi + "\n"
