# lambdas/api/request_parser.py
import json
import re
from typing import Optional

from .exceptions import InvalidRequestError

MAX_MICROPOST_LENGTH = 140

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_ID_RE = re.compile(r"[1-9][0-9]*")


def parse_json_body(body: Optional[str]) -> dict:
    """
    Decodes a JSON object request body.

    Raises:
        InvalidRequestError: If the body is missing, not JSON, or not an object.
    """
    if not body:
        raise InvalidRequestError("Request body is required.")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise InvalidRequestError("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be a JSON object.")
    return payload


def parse_id(value: str, name: str) -> int:
    """Parses a numeric path parameter such as user_id."""
    if not value or not _ID_RE.fullmatch(value):
        raise InvalidRequestError("Invalid path parameter.", {name: "must be a positive integer"})
    return int(value)


def _required_string(payload: dict, name: str, errors: dict) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        errors[name] = "is required"
        return ""
    return value


def parse_hello_request(body: Optional[str]) -> str:
    payload = parse_json_body(body)
    errors = {}
    name = _required_string(payload, "name", errors)
    if errors:
        raise InvalidRequestError("Please check the input values.", errors)
    return name


def parse_user_request(body: Optional[str]) -> tuple[str, str]:
    """
    Validates a user create/update body.

    Returns:
        A tuple of (user_name, email).
    """
    payload = parse_json_body(body)
    errors = {}
    user_name = _required_string(payload, "user_name", errors)
    email = _required_string(payload, "email", errors)
    if email and not _EMAIL_RE.match(email):
        errors["email"] = "must be a valid email address"
    if errors:
        raise InvalidRequestError("Please check the input values.", errors)
    return user_name, email


def parse_micropost_request(body: Optional[str]) -> str:
    payload = parse_json_body(body)
    errors = {}
    content = _required_string(payload, "content", errors)
    if len(content) > MAX_MICROPOST_LENGTH:
        errors["content"] = f"must be at most {MAX_MICROPOST_LENGTH} characters"
    if errors:
        raise InvalidRequestError("Please check the input values.", errors)
    return content
