import math
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

email_regex = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

HIDDEN_FIELDS = ("__v", "passwordHash")


def parse_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(str(value).strip())
    except (InvalidId, TypeError):
        return None


def parse_object_id_list(values: Iterable) -> List[ObjectId]:
    object_ids: List[ObjectId] = []
    for value in values or []:
        object_id = parse_object_id(value)
        if object_id is not None and object_id not in object_ids:
            object_ids.append(object_id)
    return object_ids


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def is_valid_email(value: Optional[str]) -> bool:
    normalized = normalize_email(value)
    return bool(normalized and email_regex.match(normalized))


def safe_float(value, default=0.0):
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if math.isfinite(numeric):
        return numeric
    return default


def safe_positive_int(value, default=0):
    try:
        numeric = int(float(value))
    except (TypeError, ValueError):
        return default
    return max(default, numeric)


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat() + "Z" if value.tzinfo is None else value.isoformat()
    if isinstance(value, dict):
        return serialize_document(value)
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


def serialize_document(document: Optional[Dict]) -> Optional[Dict[str, Any]]:
    """Render a stored document for the wire.

    ``_id`` is exposed as ``id``; bookkeeping and credential fields are
    dropped.
    """
    if document is None:
        return None

    serialized: Dict[str, Any] = {}
    for key, value in document.items():
        if key in HIDDEN_FIELDS:
            continue
        serialized["id" if key == "_id" else key] = serialize_value(value)
    return serialized


def serialize_documents(documents: Iterable[Dict]) -> List[Dict[str, Any]]:
    return [serialize_document(document) for document in documents]
