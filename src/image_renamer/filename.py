"""Build sanitized filenames from AI-generated keywords."""

from collections.abc import Sequence


MAX_NAME_LENGTH = 230
KEYWORD_SEPARATOR = "-"
INVALID_FILENAME_CHARS = frozenset('<>:"/\\|?*')


def sanitize_keyword(keyword: str) -> str:
    """
    Strip characters that are invalid in filenames and replace spaces with underscores.

    Examples:
        >>> sanitize_keyword("big dog")
        'big_dog'
        >>> sanitize_keyword("dog:/")
        'dog'

    """
    cleaned = "".join(ch for ch in keyword if ch not in INVALID_FILENAME_CHARS)
    return cleaned.replace(" ", "_")


def create_file_name(keywords: Sequence[str], extension: str) -> str:
    """
    Join keywords into a filename, respecting a cumulative length budget.

    Each keyword costs its sanitized length plus one separator. Keywords are taken in
    order until the running total exceeds MAX_NAME_LENGTH; that keyword and every one
    after it are dropped. Empty sanitized keywords still cost one and are still joined,
    so ``["cat", "", "dog"]`` yields ``cat--dog``.

    Args:
        keywords: Keywords in the order returned by the model.
        extension: File extension without the leading dot. Not validated.

    Returns:
        ``<joined-keywords>.<extension>``, or an empty string if no keyword survived.

    """
    if not keywords:
        return ""

    parts: list[str] = []
    used = 0
    for keyword in keywords:
        part = sanitize_keyword(keyword)
        used += len(part) + 1
        if used > MAX_NAME_LENGTH:
            break
        parts.append(part)

    joined = KEYWORD_SEPARATOR.join(parts)
    if not joined:
        return ""
    return f"{joined}.{extension}"
