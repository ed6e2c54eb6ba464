import re

# Honorific only counts when a period or whitespace follows it, so a
# normalized name (no separators left) is never stripped twice.
_HONORIFIC = re.compile(r"^\s*(?:mrs|mr|ms|dr)(?:\.\s*|\s+)", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def normalize_name(name):
    """
    Canonical form of an account holder name for receiver comparison.
    "Dr. Jane O'Brien" -> "JANEOBRIEN", "Mr Smith" -> "SMITH".
    """
    if not name:
        return ""
    stripped = _HONORIFIC.sub("", name, count=1)
    return _NON_ALNUM.sub("", stripped).upper().strip()
