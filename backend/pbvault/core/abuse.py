# pbvault/core/abuse.py

import re

# Executable headers are refused outright when abuse detection is on
EXECUTABLE_MAGIC = (b"MZ", b"\x7fELF", b"\xcf\xfa\xed\xfe", b"\xca\xfe\xba\xbe")


def content_is_valid(data: bytes, blocked_patterns=()) -> bool:
    """Pass/fail content check applied to uploads before encryption."""
    if not data:
        return False
    if data.startswith(EXECUTABLE_MAGIC):
        return False
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    for pattern in blocked_patterns:
        if re.search(pattern, text, flags=re.IGNORECASE):
            return False
    return True
