"""Plain-text body extraction for tracker mails.

Commands only ever look at the first line of the body, so this module's job
is to find the human-written text: prefer text/plain, fall back to HTML
converted to text, and drop everything from the first blank line on (the
usual place for a signature or quoted reply).
"""

import logging
import re
from email.message import Message
from typing import Optional, Tuple

from bs4 import BeautifulSoup, NavigableString

from .errors import InvalidMessage

logger = logging.getLogger(__name__)

# A line holding nothing but whitespace
SIGNATURE_DELIMITER_RE = re.compile(r"\n[^\S\n]*\n")

HTML_WHITESPACE_RE = re.compile(r"\s+")

# Elements rendered on lines of their own
BLOCK_TAGS = [
    "address", "blockquote", "dd", "div", "dl", "dt", "h1", "h2", "h3", "h4",
    "h5", "h6", "hr", "li", "ol", "p", "pre", "table", "tr", "ul",
]

_PLAIN = 2
_HTML = 1
_NESTED = 0


def html_to_text(html: str) -> str:
    """Strip tags from HTML, keeping block elements on their own lines.

    Entities are decoded and whitespace inside the markup collapses to one
    space, so the result reads as the message was displayed, with no
    markup of any kind added.
    """
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "head"]):
        element.decompose()

    for string in soup.find_all(string=True):
        # Comments and doctypes are skipped by get_text()
        if type(string) is NavigableString:
            string.replace_with(HTML_WHITESPACE_RE.sub(" ", string))
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_before("\n")
        block.insert_after("\n")

    return "\n".join(line.strip() for line in soup.get_text().splitlines())


def decode_part(part: Message) -> str:
    """Decode a leaf part's payload to text.

    get_payload(decode=True) undoes base64 and quoted-printable; any other
    transfer encoding is returned as the raw bytes. The declared charset is
    used, defaulting to UTF-8.
    """
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        logger.warning(f"Unknown charset {charset!r}, decoding as UTF-8")
        return payload.decode("utf-8", errors="replace")


def _is_attachment(part: Message) -> bool:
    disposition = part.get("Content-Disposition")
    return bool(disposition) and disposition.strip().lower().startswith("attachment")


def _select_text(part: Message) -> Optional[Tuple[int, str]]:
    """Find the best text in `part`, returning (preference, text).

    At each multipart level a non-empty text/plain part wins over
    text/html, which wins over whatever nested multiparts produced.
    """
    content_type = part.get_content_type()

    if part.is_multipart():
        best: Optional[Tuple[int, str]] = None
        for child in part.get_payload():
            if _is_attachment(child):
                continue
            candidate = _select_text(child)
            if candidate is None:
                continue
            preference, text = candidate
            if child.is_multipart():
                preference = _NESTED
            if best is None or _rank(candidate[1], preference) > _rank(best[1], best[0]):
                best = (preference, text)
        return best

    if content_type == "text/plain":
        return _PLAIN, decode_part(part)
    if content_type == "text/html":
        return _HTML, html_to_text(decode_part(part))
    return None


def _rank(text: str, preference: int) -> Tuple[bool, int]:
    # Empty text only wins when there is nothing else
    return bool(text.strip()), preference


def strip_signature(text: str) -> str:
    """Trim the text and cut it at the first blank line.

    Example:
        >>> strip_signature("Tool notes\\n\\nSent from my phone")
        'Tool notes'
    """
    text = text.replace("\r\n", "\n").strip()
    text = SIGNATURE_DELIMITER_RE.split(text, maxsplit=1)[0]
    return text.strip()


def extract_body(message: Message) -> str:
    """Extract the signature-stripped plain-text body of `message`.

    Raises:
        InvalidMessage: If the message has no decodable text part
    """
    selected = _select_text(message)
    if selected is None:
        logger.warning(
            f"No text part found in message of type {message.get_content_type()}"
        )
        raise InvalidMessage()
    return strip_signature(selected[1])


def first_line(text: str) -> str:
    """First line of `text`, trimmed."""
    return text.strip().split("\n", 1)[0].strip()
