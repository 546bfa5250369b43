"""
Storage Backends - Durable collections of JSON records
The annotation store treats persistence as a dictionary of named
collections, each a list of JSON-compatible records. Backends raise
StorageError for any failure; deciding how to degrade is the store's job.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from co_reader.exceptions import StorageError
from co_reader.utils.file_utils import read_text_file, write_text_atomic

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

COLLECTION_PREFIX = "coreader_"


class StorageBackend:
    """Interface of a persistence backend"""

    def load(self, collection: str) -> List[Record]:
        """All records of a collection; an unknown collection is empty"""
        raise NotImplementedError

    def save(self, collection: str, records: List[Record]):
        """Replace the records of a collection"""
        raise NotImplementedError


class InMemoryBackend(StorageBackend):
    """Keeps collections in process memory; records are copied in and out"""

    def __init__(self):
        self.collections: Dict[str, List[Record]] = {}

    def load(self, collection: str) -> List[Record]:
        return copy.deepcopy(self.collections.get(collection, []))

    def save(self, collection: str, records: List[Record]):
        self.collections[collection] = copy.deepcopy(records)


class JsonFileBackend(StorageBackend):
    """One JSON file per collection, e.g. ``coreader_highlights.json``"""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def collection_path(self, collection: str) -> Path:
        return self.directory / f"{COLLECTION_PREFIX}{collection}.json"

    def load(self, collection: str) -> List[Record]:
        path = self.collection_path(collection)
        if not path.exists():
            return []
        try:
            content = read_text_file(str(path))
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

        if not content.strip():
            return []
        try:
            records = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt collection file {path}: {e}") from e
        if not isinstance(records, list):
            raise StorageError(f"Collection file {path} does not hold a list")
        return records

    def save(self, collection: str, records: List[Record]):
        path = self.collection_path(collection)
        try:
            write_text_atomic(str(path), json.dumps(records, ensure_ascii=False, indent=2))
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        logger.debug(f"Saved {len(records)} records to {path}")
