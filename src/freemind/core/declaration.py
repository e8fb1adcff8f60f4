"""The XML declaration at the head of a registry document."""

import re

UTF8 = "utf-8"

_ENCODING = re.compile(
    r"""\A(\ufeff?<\?xml\s[^>]*?\bencoding\s*=\s*)(["'])([A-Za-z][A-Za-z0-9._-]*)\2"""
)


def declared_encoding(head: str) -> str | None:
    """The encoding named by the declaration at the start of ``head``, if any."""
    match = _ENCODING.match(head)
    return match.group(3) if match else None


def with_utf8_declaration(text: str) -> str:
    """Return ``text`` with a declared encoding other than utf-8 changed to utf-8.

    Documents are handled as ``str``, parsed from and uploaded as utf-8 bytes,
    so any other declared encoding would no longer describe them.
    """
    match = _ENCODING.match(text)
    if match is None or match.group(3).lower() == UTF8:
        return text
    quote = match.group(2)
    return f"{match.group(1)}{quote}{UTF8}{quote}{text[match.end():]}"
