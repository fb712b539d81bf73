"""Subject line commands.

Two commands are recognised, case-insensitively, optionally behind one
reply/forward marker such as "Re:" or "Fwd:":

    Borrowed <tool>          record that the sender has <tool>
    Alias [<addresses>]      set the sender's display alias from the body,
                             optionally delegating trust to <addresses>

`+` is accepted in place of the space because mailto: links generated for
QR codes may encode it that way.
"""

import re
from dataclasses import dataclass
from typing import Union


# One leading "Re:", "Fwd:", "AW:" ... marker
REPLY_PREFIX_RE = re.compile(r"^\s*(\w*:\s*)?")

BORROW_RE = re.compile(r"^Borrowed[ +](.*)$", re.IGNORECASE | re.DOTALL)

ALIAS_RE = re.compile(r"^(\w*:\s*)?Alias(?:[ +](.*))?\b", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class BorrowCommand:
    """Sender has borrowed `tool`."""
    tool: str


@dataclass(frozen=True)
class AliasCommand:
    """Sender sets their alias; `delegates_text`, after the separator, may name delegates."""
    delegates_text: str


@dataclass(frozen=True)
class UnknownCommand:
    """Subject did not match any command."""
    subject: str


Command = Union[BorrowCommand, AliasCommand, UnknownCommand]


def classify(subject: str) -> Command:
    """Classify a subject line into exactly one command.

    Example:
        >>> classify("Re: Borrowed drill")
        BorrowCommand(tool='drill')
        >>> classify("Alias bob@family.net")
        AliasCommand(delegates_text='bob@family.net')
        >>> classify("Alias+bob@family.net")
        AliasCommand(delegates_text='bob@family.net')
    """
    subject = (subject or "").strip()

    unprefixed = REPLY_PREFIX_RE.sub("", subject, count=1)
    borrow = BORROW_RE.match(unprefixed)
    if borrow:
        tool = borrow.group(1).strip()
        if tool:
            return BorrowCommand(tool=tool)
        return UnknownCommand(subject=subject)

    alias = ALIAS_RE.match(subject)
    if alias:
        return AliasCommand(delegates_text=alias.group(2) or "")

    return UnknownCommand(subject=subject)
