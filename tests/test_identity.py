"""
Tests for identity resolution from the handshake path.
"""

import re
import uuid

import pytest

from relay_gateway.components.identity.resolver import (
    generate_anonymous_identity,
    is_valid_uuid,
    resolve_identity,
)
from tests.conftest import VALID_UUID

ANON_PATTERN = re.compile(r"^anon-[0-9a-f]{20}$")


class TestUuidPaths:
    """Paths of the form /uuid/<value>."""

    @pytest.mark.parametrize(
        "value",
        [
            VALID_UUID,
            str(uuid.uuid1()),
            str(uuid.uuid4()),
            "00000000-0000-0000-0000-000000000000",
            "ffffffff-ffff-ffff-ffff-ffffffffffff",
        ],
    )
    def test_valid_uuid_becomes_identity(self, value):
        assert resolve_identity(f"/uuid/{value}") == value

    def test_identity_is_not_normalized(self):
        """Upper-case UUIDs are accepted and kept exactly as sent."""
        value = VALID_UUID.upper()
        assert resolve_identity(f"/uuid/{value}") == value

    def test_extra_segments_are_ignored(self):
        assert resolve_identity(f"/uuid/{VALID_UUID}/extra") == VALID_UUID

    @pytest.mark.parametrize(
        "path",
        [
            "/uuid/mock-uuid",
            "/uuid/",
            "/uuid",
            f"/uuid/{VALID_UUID[:-1]}",
            f"/uuid/{{{VALID_UUID}}}",
            f"/uuid/{VALID_UUID.replace('-', '')}",
            # Version nibble 0 is not a valid RFC layout
            "/uuid/0f8fad5b-d9cb-069f-a165-70867728950e",
        ],
    )
    def test_invalid_uuid_falls_back_to_anonymous(self, path):
        assert ANON_PATTERN.match(resolve_identity(path))


class TestAnonymousIdentities:
    """Connections that do not claim an identity."""

    @pytest.mark.parametrize("path", ["/", "", None, "/chat", f"/other/{VALID_UUID}"])
    def test_other_paths_are_anonymous(self, path):
        assert ANON_PATTERN.match(resolve_identity(path))

    def test_anonymous_identities_differ(self):
        identities = {generate_anonymous_identity() for _ in range(50)}
        assert len(identities) == 50

    def test_anonymous_shape(self):
        identity = generate_anonymous_identity()
        assert identity.startswith("anon-")
        assert len(identity) == len("anon-") + 20


class TestUuidValidation:
    def test_accepts_canonical_form(self):
        assert is_valid_uuid(VALID_UUID)

    @pytest.mark.parametrize("value", ["", "abc", "anon-0123456789abcdef0123", " " + VALID_UUID])
    def test_rejects_other_strings(self, value):
        assert not is_valid_uuid(value)
