"""Response text helpers"""
import unicodedata


def strip_trailing_padding(text: str) -> str:
    """Drop trailing whitespace and control characters servers pad replies with."""
    end = len(text)
    while end and (text[end - 1].isspace() or unicodedata.category(text[end - 1]) == "Cc"):
        end -= 1
    return text[:end]
