"""Payment reference generation."""

import re
import secrets
import time

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9-]")


def generate_reference(subject_id: str, prefix: str = "premium") -> str:
    """Build a unique reference for one payment attempt.

    Format: ``{prefix}_{subject}_{epoch_millis}_{random}``. The subject is
    reduced to URL-safe characters because the reference is placed in the
    verify URL path. The 48-bit random suffix keeps references distinct for
    repeated calls within the same millisecond.
    """
    subject = _UNSAFE_CHARS.sub("-", subject_id) or "anon"
    timestamp = time.time_ns() // 1_000_000
    return f"{prefix}_{subject}_{timestamp}_{secrets.token_hex(6)}"
