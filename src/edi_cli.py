"""
X12 EDI <-> JSON command line tool.

Usage:
    x12-edi to-json input.edi                        # Parse input.edi -> input.json
    x12-edi to-json input.edi output.json --lenient  # Keep going on structural problems
    x12-edi to-edi input.json                        # Rebuild input.json -> input.edi
    x12-edi to-edi input.json output.edi --format --end-of-line crlf
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from edi_errors import X12Error
from edi_generator import EdiGenerator
from edi_parser import parse_document
from segment_manager import SegmentManager

END_OF_LINE_CHOICES = {"crlf": "\r\n", "lf": "\n", "cr": "\r", "none": ""}


def convert_edi_to_json(input_file: str, output_file: str, strict: bool = True,
                        validate_trailers: bool = False, segments_dir: Optional[str] = None) -> int:
    """Parse an EDI file and save its generic notation as JSON."""

    print(f"EDI Parser - Processing {input_file}")
    print("=" * 50)

    try:
        # newline='' keeps CR/LF exactly as stored so the round trip stays byte-exact.
        with open(input_file, 'r', newline='') as f:
            edi_content = f.read()
        print(f"Loaded {len(edi_content)} characters")

        segment_definitions = SegmentManager(segments_dir).get_table() if segments_dir else None

        document = parse_document(edi_content, strict=strict, segment_definitions=segment_definitions,
                                  validate_trailers=validate_trailers)
        print("EDI parsed successfully!")

        print("\nParsing Results:")
        print(f"  Interchanges: {len(document.interchanges)}")
        for interchange in document.interchanges:
            print(f"  Interchange Control Number: {interchange.header.get_element(13)}")
            print(f"    Functional Groups: {len(interchange.functional_groups)}")
            print(f"    Transaction Sets: {sum(len(g.transactions) for g in interchange.functional_groups)}")

        if document.warnings:
            print(f"\nParsing produced {len(document.warnings)} warnings:")
            for i, warning in enumerate(document.warnings[:5]):
                print(f"  {i+1}. {warning.message}")
            if len(document.warnings) > 5:
                print(f"  ... and {len(document.warnings) - 5} more warnings")

        notations = [n.model_dump(mode="json") for n in document.to_json()]
        payload: Any = notations[0] if len(notations) == 1 else notations
        json_output = json.dumps(payload, indent=2)

        with open(output_file, 'w') as f:
            f.write(json_output)

        print(f"\nJSON output saved to: {output_file}")
        return 0

    except FileNotFoundError as e:
        print(f"Error: File not found: {e}")
        return 1
    except X12Error as e:
        print(f"Error during EDI parsing: {e}")
        return 1


def convert_json_to_edi(input_file: str, output_file: str, overrides: Dict[str, Any]) -> int:
    """Rebuild EDI text from a generic notation JSON file."""

    print(f"EDI Generator - Processing {input_file}")
    print("=" * 50)

    try:
        with open(input_file, 'r') as f:
            payload = json.load(f)

        edi_output = EdiGenerator(payload, options=overrides or None).to_string()

        with open(output_file, 'w', newline='') as f:
            f.write(edi_output)

        print(f"EDI output saved to: {output_file}")
        print(f"Output size: {len(edi_output):,} characters")
        return 0

    except FileNotFoundError as e:
        print(f"Error: File not found: {e}")
        return 1
    except json.JSONDecodeError as e:
        print(f"Error: {input_file} is not valid JSON: {e}")
        return 1
    except (X12Error, ValueError) as e:
        print(f"Error during EDI generation: {e}")
        return 1


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert X12 EDI files to JSON notation and back",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--log-level', default='WARNING', help='Logging level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    to_json = subparsers.add_parser('to-json', help='Parse EDI into JSON notation')
    to_json.add_argument('input_file', help='Input EDI file')
    to_json.add_argument('output_file', nargs='?', help='Output JSON file (default: input_file.json)')
    to_json.add_argument('--lenient', action='store_true', help='Record structural problems as warnings')
    to_json.add_argument('--validate-trailers', action='store_true', help='Check trailer counts and control numbers')
    to_json.add_argument('--segments', dest='segments_dir', help='Directory of segment definition JSON files')

    to_edi = subparsers.add_parser('to-edi', help='Generate EDI from JSON notation')
    to_edi.add_argument('input_file', help='Input JSON file')
    to_edi.add_argument('output_file', nargs='?', help='Output EDI file (default: input_file.edi)')
    to_edi.add_argument('--format', action='store_true', default=None, help='Put each segment on its own line')
    to_edi.add_argument('--end-of-line', choices=sorted(END_OF_LINE_CHOICES), help='Line ending used with --format')
    to_edi.add_argument('--element-delimiter', help='Override the element delimiter')
    to_edi.add_argument('--sub-element-delimiter', help='Override the sub-element delimiter')
    to_edi.add_argument('--segment-terminator', help='Override the segment terminator')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command line argument parsing."""
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
        stream=sys.stderr,
    )

    if not Path(args.input_file).exists():
        print(f"Error: Input file not found: {args.input_file}")
        return 1

    if args.command == 'to-json':
        output_file = args.output_file or str(Path(args.input_file).with_suffix('.json'))
        return convert_edi_to_json(args.input_file, output_file, strict=not args.lenient,
                                   validate_trailers=args.validate_trailers, segments_dir=args.segments_dir)

    output_file = args.output_file or str(Path(args.input_file).with_suffix('.edi'))
    overrides: Dict[str, Any] = {}
    if args.format is not None:
        overrides['format'] = args.format
    if args.end_of_line is not None:
        overrides['end_of_line'] = END_OF_LINE_CHOICES[args.end_of_line]
    if args.element_delimiter:
        overrides['element_delimiter'] = args.element_delimiter
    if args.sub_element_delimiter:
        overrides['sub_element_delimiter'] = args.sub_element_delimiter
    if args.segment_terminator:
        overrides['segment_terminator'] = args.segment_terminator
    return convert_json_to_edi(args.input_file, output_file, overrides)


if __name__ == "__main__":
    sys.exit(main())
