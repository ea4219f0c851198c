"""Whole-file JSON persistence for member and gallery records."""
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generic, List, Optional, Tuple, Type, TypeVar

from loguru import logger
from pydantic import ValidationError

from shared.errors import StoreError
from shared.models import CamelModel, FamilyMember, GalleryPhoto

RecordT = TypeVar("RecordT", bound=CamelModel)


class JsonRecordStore(Generic[RecordT]):
    """A JSON array file of records, rewritten in full on every mutation.

    There is no locking: two overlapping read-modify-write cycles resolve as
    last-write-wins.

    A file that cannot be parsed reads as empty. The first mutation after
    that copies the unparseable file to ``<name>.corrupt`` before replacing it.
    """

    def __init__(self, path, model: Type[RecordT]):
        self.path = Path(path)
        self.model = model

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".corrupt")

    def init(self):
        """Create the file with an empty array if it is missing or blank."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists() or not self.path.read_text(encoding="utf-8").strip():
            self.write([])
            logger.info(f"Initialized record file at {self.path}")

    def _load(self) -> Tuple[List[RecordT], Optional[str]]:
        """Records on disk, plus a description of the problem if unparseable."""
        if not self.path.exists():
            return [], None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Could not read {self.path.name}: {e}") from e
        if not raw.strip():
            return [], None
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                return [], f"{self.path.name} does not contain a JSON array"
            return [self.model.model_validate(item) for item in data], None
        except (json.JSONDecodeError, ValidationError) as e:
            return [], f"Could not parse {self.path.name}: {e}"

    def read(self) -> List[RecordT]:
        records, problem = self._load()
        if problem:
            logger.error(f"Corrupt record file {self.path}, reading as empty: {problem}")
        return records

    def check(self) -> Optional[str]:
        """None when the file is absent or parses cleanly."""
        return self._load()[1]

    def _read_for_update(self) -> List[RecordT]:
        records, problem = self._load()
        if problem:
            logger.error(f"Corrupt record file {self.path}: {problem}")
            try:
                shutil.copy2(self.path, self.backup_path)
            except OSError as e:
                raise StoreError(f"Could not back up {self.path.name}: {e}") from e
            logger.warning(f"Saved unparseable {self.path.name} to {self.backup_path.name}")
        return records

    def write(self, records: List[RecordT]):
        payload = [record.to_json() for record in records]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", delete=False, dir=str(self.path.parent), suffix=".tmp"
            ) as tmp:
                json.dump(payload, tmp, indent=2, ensure_ascii=False)
                tmp_name = tmp.name
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StoreError(f"Could not write {self.path.name}: {e}") from e

    def get(self, record_id: str) -> Optional[RecordT]:
        for record in self.read():
            if record.id == record_id:
                return record
        return None

    def ids(self) -> set:
        return {record.id for record in self.read()}

    def append(self, record: RecordT) -> RecordT:
        records = self._read_for_update()
        records.append(record)
        self.write(records)
        return record

    def extend(self, new_records: List[RecordT]) -> List[RecordT]:
        records = self._read_for_update()
        records.extend(new_records)
        self.write(records)
        return new_records

    def replace(self, record: RecordT) -> bool:
        """Swap in a record with the same id, keeping its position."""
        records = self.read()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                self.write(records)
                return True
        return False

    def remove(self, record_id: str) -> Optional[RecordT]:
        records = self.read()
        for index, existing in enumerate(records):
            if existing.id == record_id:
                removed = records.pop(index)
                self.write(records)
                return removed
        return None


class MemberStore(JsonRecordStore[FamilyMember]):
    def __init__(self, path):
        super().__init__(path, FamilyMember)


class GalleryStore(JsonRecordStore[GalleryPhoto]):
    def __init__(self, path):
        super().__init__(path, GalleryPhoto)
