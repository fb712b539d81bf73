"""Unit tests for subject line command classification"""

import pytest

from tooltracker.domain.mail.addresses import find_addresses
from tooltracker.domain.mail.commands import (
    AliasCommand,
    BorrowCommand,
    UnknownCommand,
    classify,
)


class TestBorrowed:
    """Test the Borrowed command"""

    def test_borrowed(self):
        assert classify("Borrowed tool1") == BorrowCommand(tool="tool1")

    def test_case_insensitive(self):
        assert classify("BORROWED tool1") == BorrowCommand(tool="tool1")

    def test_plus_separator_from_mailto_links(self):
        assert classify("Borrowed+tool1") == BorrowCommand(tool="tool1")

    @pytest.mark.parametrize("prefix", ["Re: ", "RE:", "Fwd: ", "AW: "])
    def test_reply_prefix(self, prefix):
        assert classify(f"{prefix}Borrowed tool1") == BorrowCommand(tool="tool1")

    def test_tool_name_keeps_inner_spaces(self):
        assert classify("Borrowed  Cordless drill ") == BorrowCommand(tool="Cordless drill")

    def test_missing_tool_is_unknown(self):
        assert isinstance(classify("Borrowed "), UnknownCommand)


class TestAlias:
    """Test the Alias command"""

    def test_alias_without_delegates(self):
        assert classify("Alias") == AliasCommand(delegates_text="")

    def test_alias_with_delegates(self):
        command = classify("Alias user3@b.example.com")
        assert command == AliasCommand(delegates_text="user3@b.example.com")

    def test_plus_separator_is_not_part_of_delegates(self):
        command = classify("Alias+bob@family.net")
        assert command == AliasCommand(delegates_text="bob@family.net")
        assert [str(a) for a in find_addresses(command.delegates_text)] == ["bob@family.net"]

    def test_plus_separator_without_delegates(self):
        assert classify("Alias+") == AliasCommand(delegates_text="")

    def test_reply_to_invitation(self):
        assert classify("Re: Alias") == AliasCommand(delegates_text="")

    def test_word_boundary(self):
        assert isinstance(classify("Aliases"), UnknownCommand)


class TestUnknown:
    """Test subjects that are not commands"""

    @pytest.mark.parametrize("subject", ["", "Hello", "Returned tool1"])
    def test_unknown(self, subject):
        assert isinstance(classify(subject), UnknownCommand)
