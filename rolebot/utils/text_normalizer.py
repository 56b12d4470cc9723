import re

MAX_NAME_LENGTH = 100


def normalize_text(text: str) -> str:
    """Collapse line breaks and runs of spaces/tabs into single spaces.

    Args:
        text: Raw user input.

    Returns:
        str: Single-line, trimmed text.
    """
    text = text.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()


def normalize_role_name(name: str | None) -> str:
    """Case-fold, trim and cap a role name.

    An empty result means the name is unusable; callers reject it.
    """
    if not name:
        return ""
    return normalize_text(name).casefold()[:MAX_NAME_LENGTH].strip()


def normalize_handle(handle: str | None) -> str:
    """Case-fold, trim, strip a leading "@" and cap a user handle."""
    if not handle:
        return ""
    handle = normalize_text(handle).lstrip("@").strip()
    return handle.casefold()[:MAX_NAME_LENGTH].strip()
