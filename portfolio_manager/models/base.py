"""
Shared helpers for the persisted data model.

Records are stored with camelCase keys so documents written by earlier
versions of the application load unchanged.
"""

import uuid
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Dict


def generate_id() -> str:
    """Short random identifier for containers and holdings."""
    return uuid.uuid4().hex[:16]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the trailing 'Z' JavaScript writes."""
    if isinstance(value, datetime):
        return value
    if not value:
        return utcnow()
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def to_camel(name: str) -> str:
    first, *rest = name.split('_')
    return first + ''.join(part.title() for part in rest)


class RecordMixin:
    """
    Conversion between dataclasses and storage records.

    Subclasses may define ``_record_aliases`` for keys that do not follow the
    plain camelCase rule and ``_children`` for list fields holding nested
    records.
    """

    _record_aliases: Dict[str, str] = {}
    _children: Dict[str, type] = {}

    @classmethod
    def record_key(cls, name: str) -> str:
        return cls._record_aliases.get(name, to_camel(name))

    def to_record(self) -> Dict[str, Any]:
        record = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif f.name in self._children:
                value = [child.to_record() for child in value]
            record[self.record_key(f.name)] = value
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            key = cls.record_key(f.name)
            if key not in record:
                continue
            value = record[key]
            if f.name in cls._children:
                child_cls = cls._children[f.name]
                value = [child_cls.from_record(item) for item in value or []]
            elif f.name.endswith('_at'):
                value = parse_timestamp(value)
            kwargs[f.name] = value
        return cls(**kwargs)


