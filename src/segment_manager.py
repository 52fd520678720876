import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from segment_definitions import BUILTIN_SEGMENTS, SegmentDefinition, SegmentDefinitionTable

logger = logging.getLogger(__name__)


class SegmentManager:
    """
    Loads known-segment tables from a directory of JSON files.

    Each file holds one SegmentDefinitionTable. Loaded tables are layered over
    the built-in envelope definitions in file-name order, so a file can
    tighten or extend the element counts the parser checks in strict mode.
    """

    def __init__(self, definitions_path: Optional[str] = None):
        self.definitions_path = Path(definitions_path) if definitions_path else None
        self._tables: Dict[str, SegmentDefinitionTable] = {}
        self._load_tables()

    def _load_tables(self):
        """Load definition tables from the definitions directory."""
        if self.definitions_path is None:
            return
        if not self.definitions_path.exists():
            logger.warning(f"Segment definitions path does not exist: {self.definitions_path}")
            return

        logger.info(f"Loading segment definitions from: {self.definitions_path}")

        for table_file in sorted(self.definitions_path.glob("*.json")):
            try:
                with open(table_file, 'r') as f:
                    table_data = json.load(f)
                    table = SegmentDefinitionTable.model_validate(table_data)
                    self._tables[table_file.name] = table
                    logger.info(f"Loaded segment table: {table_file.name} ({len(table.segmentDefinitions)} segments)")
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Failed to load segment table {table_file.name}: {e}")

    def get_table(self, table_name: Optional[str] = None) -> SegmentDefinitionTable:
        """
        Get the effective definition table.

        Args:
            table_name: File name of one loaded table (e.g., "850.json"). When
                omitted, every loaded table is layered over the built-ins.

        Returns:
            SegmentDefinitionTable to hand to the parser.

        Raises:
            KeyError: If table_name was not loaded.
        """
        if table_name is not None:
            if table_name not in self._tables:
                raise KeyError(f"Segment table not found: {table_name}")
            return BUILTIN_SEGMENTS.merged_with(self._tables[table_name])

        effective = BUILTIN_SEGMENTS
        for name in sorted(self._tables):
            effective = effective.merged_with(self._tables[name])
        return effective

    def get_definition(self, tag: str) -> Optional[SegmentDefinition]:
        return self.get_table().get(tag)

    def list_tables(self) -> List[str]:
        """List loaded table file names."""
        return list(self._tables.keys())

    def reload_tables(self):
        """Reload all tables from the filesystem."""
        self._tables.clear()
        self._load_tables()
