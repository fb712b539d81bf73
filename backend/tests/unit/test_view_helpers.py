"""Unit tests for tracker view presentation and input validation"""

import base64
import re

import pytest
from pydantic import ValidationError

from tooltracker.infrastructure.repositories import Item
from tooltracker.tracker.schemas import MAX_IMAGE_BYTES, ToolUpdate
from tooltracker.domain.tags import DEFAULT_FILTER, TagType
from tooltracker.tracker.service import (
    active_tags,
    borrow_link,
    display_name,
    hide_email,
    tag_toggles,
)

from fixtures.mail import KNOWN_SENDERS, USER1

KNOWN = re.compile(KNOWN_SENDERS)


class TestHideEmail:
    """Test address shortening"""

    def test_known_sender_shows_user(self):
        assert hide_email(USER1, KNOWN) == "user1"

    def test_short_user(self):
        assert hide_email("bob@family.net", KNOWN) == "bob"

    def test_long_user_is_cut(self):
        assert hide_email("someone.else@family.net", KNOWN) == "someon...@family.net"

    def test_not_an_address(self):
        assert hide_email("nobody") == "nobody"


class TestDisplayName:
    """Test who is shown as having a tool"""

    def test_alias_wins(self):
        item = Item(tool="drill", last_seen_by="someone.else@family.net", alias="Bob")
        assert display_name(item, KNOWN) == "Bob"

    def test_hidden_address_without_alias(self):
        item = Item(tool="drill", last_seen_by="someone.else@family.net")
        assert display_name(item, KNOWN) == "someon...@family.net"


class TestBorrowLink:
    """Test mailto: links"""

    def test_link(self):
        assert borrow_link("tooltracker", "a.example.com", "tool1") == (
            "mailto:tooltracker@a.example.com?subject=Borrowed+tool1"
        )

    def test_link_escapes_tool_name(self):
        link = borrow_link("tooltracker", "a.example.com", "saw & blade")
        assert link.endswith("?subject=Borrowed+saw+%26+blade")


class TestTagFilterLinks:
    """Test the filters offered next to each tag"""

    def test_toggles_extend_current_filter(self):
        [toggle] = tag_toggles(DEFAULT_FILTER, ["power"])
        assert toggle.tag == "power"
        assert toggle.any == "-hidden power"
        assert toggle.all == "-hidden +power"
        assert toggle.exclude == "-hidden -power"

    def test_toggle_retypes_tag_already_in_filter(self):
        [toggle] = tag_toggles({"power": TagType.ANY}, ["power"])
        assert toggle.all == "+power"
        assert toggle.exclude == "-power"

    def test_active_tags_can_be_removed(self):
        active = active_tags({"hidden": TagType.NOT, "power": TagType.ALL})
        assert [(tag.token, tag.remove) for tag in active] == [
            ("-hidden", "+power"),
            ("+power", "-hidden"),
        ]

    def test_no_tags(self):
        assert tag_toggles({}, []) == []
        assert active_tags({}) == []


class TestToolUpdate:
    """Test tool edit validation"""

    def test_tags_normalized(self):
        update = ToolUpdate(tags=["+power", "metric -power", "42"])
        assert update.tags == ["power", "metric"]

    def test_omitted_fields(self):
        update = ToolUpdate()
        assert update.tags is None
        assert update.image is None

    def test_image_roundtrip(self):
        encoded = base64.b64encode(b"\x89PNG....").decode()
        assert ToolUpdate(image=encoded).image == encoded

    def test_image_not_base64(self):
        with pytest.raises(ValidationError):
            ToolUpdate(image="not base64!")

    def test_image_too_large(self):
        encoded = base64.b64encode(b"x" * (MAX_IMAGE_BYTES + 1)).decode()
        with pytest.raises(ValidationError):
            ToolUpdate(image=encoded)

    def test_description_too_long(self):
        with pytest.raises(ValidationError):
            ToolUpdate(description="x" * 2001)
