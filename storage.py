import json
import logging
import os
from typing import Any, Iterator, Optional, Sequence

from models import Record

logger = logging.getLogger(__name__)


def load_data(path: str, default: Sequence[dict] = ()) -> list:
    '''Read a JSON array from ``path``.

    A missing file is created from ``default``. Any other failure is logged
    and ``default`` is returned without touching the file.
    '''
    try:
        with open(path, 'r', encoding='utf-8') as handle:
            data = json.load(handle)
    except FileNotFoundError:
        data = list(default)
        save_data(path, data)
        return data
    except (OSError, ValueError) as e:
        logger.error(f'Failed to read data file {path}: {e}')
        return list(default)
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        logger.error(f'Data file {path} does not hold a JSON array of objects')
        return list(default)
    return data


def save_data(path: str, data: Sequence[dict]) -> bool:
    try:
        with open(path, 'w', encoding='utf-8') as handle:
            json.dump(list(data), handle, indent=4, ensure_ascii=False)
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.error(f'Failed to write data file {path}: {e}')
        return False


class JsonCollection:
    '''In-memory list of records mirrored to a JSON file.

    Every mutation rewrites the file before returning. Ids come from a
    counter that starts past the largest loaded id and only moves forward.
    '''

    def __init__(self, path: str, record_type: type, default: Sequence[dict] = ()):
        self.path : str = path
        self.record_type : type = record_type
        directory : str = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        try:
            self._records : list = [record_type.from_record(item) for item in load_data(path, default)]
            self.next_id : int = max((int(r.id) for r in self._records), default=0) + 1
        except (TypeError, ValueError) as e:
            logger.error(f'Invalid record in data file {path}: {e}')
            self._records = [record_type.from_record(item) for item in default]
            self.next_id = max((r.id for r in self._records), default=0) + 1

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._records))

    def all(self) -> list:
        return list(self._records)

    def get(self, record_id: Optional[int]) -> Optional[Any]:
        if record_id is None:
            return None
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def find(self, **criteria: Any) -> Optional[Any]:
        for record in self._records:
            if all(getattr(record, key) == value for key, value in criteria.items()):
                return record
        return None

    def insert(self, **values: Any) -> Record:
        record : Record = self.record_type(id=self.next_id, **values)
        self.next_id += 1
        self._records.append(record)
        self.save()
        return record

    def update(self, record_id: int, **values: Any) -> Optional[Any]:
        record = self.get(record_id)
        if record is None:
            return None
        for key, value in values.items():
            if key == 'id':
                raise ValueError('record ids are immutable')
            setattr(record, key, value)
        self.save()
        return record

    def delete(self, record_id: int) -> bool:
        record = self.get(record_id)
        if record is None:
            return False
        self._records.remove(record)
        self.save()
        return True

    def save(self) -> bool:
        return save_data(self.path, [record.to_record() for record in self._records])
