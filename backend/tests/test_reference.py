"""Tests for payment reference generation."""

import re
from unittest.mock import patch

from premium.services.reference import generate_reference

REFERENCE_PATTERN = re.compile(r"^premium_u1_\d{13}_[0-9a-f]{12}$")


class TestGenerateReference:
    def test_format(self):
        """Test the reference carries prefix, subject, millisecond timestamp and suffix."""
        reference = generate_reference("u1")
        assert REFERENCE_PATTERN.match(reference)

    def test_unique_over_many_calls(self):
        """Test that 10,000 references for the same subject never collide."""
        references = {generate_reference("u1") for _ in range(10_000)}
        assert len(references) == 10_000

    def test_unique_within_same_millisecond(self):
        """Test that a frozen clock still yields distinct references."""
        with patch("premium.services.reference.time.time_ns", return_value=1_700_000_000_000_000_000):
            first = generate_reference("u1")
            second = generate_reference("u1")

        assert first != second
        assert first.startswith("premium_u1_1700000000000_")

    def test_custom_prefix(self):
        assert generate_reference("u1", prefix="gold").startswith("gold_u1_")

    def test_unsafe_subject_characters_replaced(self):
        """Test that the subject cannot break the verify URL path."""
        reference = generate_reference("user/42?x=1")
        assert reference.startswith("premium_user-42-x-1_")
        assert "/" not in reference and "?" not in reference

    def test_empty_subject(self):
        assert generate_reference("").startswith("premium_anon_")
