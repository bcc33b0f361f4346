"""
Remote error decoding.

S3-compatible stores report failures in a documented envelope:

    <?xml version="1.0" encoding="UTF-8"?>
    <Error>
        <Code>NoSuchUpload</Code>
        <Message>The specified upload does not exist.</Message>
    </Error>

botocore already parses that envelope into ``ClientError.response``; other
failure paths (credential providers, raw HTTP errors) only carry the body as
text. Both shapes are decoded here, falling back to the raw text.
"""
from typing import Any, Optional
import xml.etree.ElementTree as ET
import logging

logger = logging.getLogger(__name__)


def _message_from_response(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    error = response.get("Error")
    if not isinstance(error, dict):
        return None
    message = error.get("Message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def _message_from_xml(text: str) -> Optional[str]:
    body = text.strip()
    if not body.startswith("<"):
        return None
    try:
        root = ET.fromstring(body)
    except (ET.ParseError, ValueError) as exc:
        logger.debug("Error body is not well-formed XML: %s", exc)
        return None

    # Namespaced envelopes are matched by local name
    for element in root.iter():
        tag = element.tag.rsplit("}", 1)[-1]
        if tag == "Message" and element.text and element.text.strip():
            return element.text.strip()
    return None


def decode_error_message(exc: BaseException) -> str:
    """
    Extract the human-readable message from a backend error.

    Args:
        exc: Exception raised by the storage backend

    Returns:
        The envelope's Message text, or the raw error text
    """
    message = _message_from_response(getattr(exc, "response", None))
    if message:
        return message

    raw = str(exc)
    return _message_from_xml(raw) or raw
