"""Uniform JSON wrapper returned by every endpoint.

Every response carries a ``header`` with an ``error`` flag and a human
readable ``message``. A ``body`` holding ``data`` is added only when there is
something to return: a non-null payload that, for sequences, has at least one
element.
"""

from typing import Any, Dict

from flask import jsonify, request
from werkzeug.exceptions import BadRequest

SEQUENCE_TYPES = (list, tuple)
JSON_OBJECT_MESSAGE = "Request body must be a JSON object."


def is_empty_sequence(payload: Any) -> bool:
    return isinstance(payload, SEQUENCE_TYPES) and len(payload) == 0


def build_envelope(payload: Any, message: str) -> Dict[str, Any]:
    """Wrap ``payload`` and ``message`` in the response envelope.

    A ``None`` payload always yields ``error: 1``, even when the caller meant
    to report success without data. Callers that need an explicit success
    flag without data use :func:`build_status_envelope`.
    """
    if payload is None:
        return {"header": {"error": 1, "message": message}}

    header = {"error": 0, "message": message}
    if is_empty_sequence(payload):
        return {"header": header}

    if isinstance(payload, tuple):
        payload = list(payload)
    return {"header": header, "body": {"data": payload}}


def build_status_envelope(success: bool, message: str) -> Dict[str, Any]:
    return {
        "header": {"error": 0 if success else 1, "message": message},
        "body": {"success": success},
    }


def envelope_response(payload: Any, message: str, status_code: int = 200):
    return jsonify(build_envelope(payload, message)), status_code


def status_response(success: bool, message: str, status_code: int = 200):
    return jsonify(build_status_envelope(success, message)), status_code


def read_json_object() -> Dict[str, Any]:
    """Return the JSON request body, or ``{}`` when there is none.

    Bodies that parse to anything other than an object are rejected with a
    400 so handlers can rely on ``payload.get``.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest(JSON_OBJECT_MESSAGE)
    return payload
