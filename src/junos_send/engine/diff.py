"""Turn raw RPC reply payloads into text for the operator.

Two reply shapes matter:

- compare replies: <configuration-information><configuration-output>
  holding the candidate-vs-running diff
- operational replies: <output> wrapping the ascii command output
"""
import re
from xml.sax.saxutils import unescape

from lxml import etree


class DiffParseError(Exception):
    """Raised when a compare reply cannot be read."""
    pass


OUTPUT_TAG = re.compile(r"</?(?:[\w.-]+:)?output(?:\s[^>]*)?/?>")


def extract_diff(payload: str) -> str:
    """Extract the diff text from a compare reply payload.

    An empty diff (no configuration-output element, or an empty one)
    means the candidate matches the running configuration.

    Raises:
        DiffParseError: the payload is not well-formed XML
    """
    if not payload.strip():
        return ""

    try:
        # Wrap so several top-level elements still parse
        root = etree.fromstring(f"<reply>{payload}</reply>".encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise DiffParseError(f"Unreadable compare reply: {e}") from e

    # {*} matches the element with or without a namespace
    node = root.find(".//{*}configuration-output")
    if node is None:
        return ""
    return (node.text or "").strip("\n")


def strip_output(payload: str) -> str:
    """Strip <output> wrapper markup from an operational reply."""
    text = OUTPUT_TAG.sub("", payload)
    return unescape(text, {"&quot;": '"', "&apos;": "'"})
