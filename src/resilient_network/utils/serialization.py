"""
Request body serialization and response body parsing.

Structured bodies (dict / list) are sent as JSON; responses that declare a
JSON content type are decoded into ``RequestResult.parsed``.
"""

import json
from typing import Any, Dict, Mapping, Optional, Tuple, Union

Body = Union[str, bytes, Dict[str, Any], list, None]

JSON_CONTENT_TYPE = "application/json"


def serialize_body(
    body: Body,
    headers: Mapping[str, str],
) -> Tuple[Optional[Union[str, bytes]], Dict[str, str]]:
    """
    Prepare a request body for the transport.

    Args:
        body: Raw body as passed to ``Network.request()``
        headers: Already merged request headers

    Returns:
        (serialized body, headers) - headers gain ``Content-Type`` for JSON
        bodies unless the caller set one

    Example:
        >>> serialize_body({"a": 1}, {})
        ('{"a": 1}', {'Content-Type': 'application/json'})
    """
    out_headers = dict(headers)

    if body is None or isinstance(body, (str, bytes)):
        return body, out_headers

    if isinstance(body, (dict, list)):
        if not _has_header(out_headers, "Content-Type"):
            out_headers["Content-Type"] = JSON_CONTENT_TYPE
        return json.dumps(body), out_headers

    raise TypeError(f"Unsupported body type: {type(body).__name__}")


def parse_body(body: Optional[str], headers: Mapping[str, str]) -> Any:
    """
    Decode a JSON response body.

    Returns None for non-JSON content types, empty bodies and bodies that
    fail to decode.
    """
    if not body:
        return None

    content_type = _get_header(headers, "Content-Type") or ""
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != JSON_CONTENT_TYPE and not media_type.endswith("+json"):
        return None

    try:
        return json.loads(body)
    except ValueError:
        return None


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    return _get_header(headers, name) is not None


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
