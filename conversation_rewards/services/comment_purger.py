"""Comment purging service.

Handles:
- Quoted line removal (lines starting with ``>``)
- Bot command removal (lines starting with ``/``)
- Collapsing line breaks into a single line
"""

import re

_QUOTED_LINE = re.compile(r"^>.*$", flags=re.MULTILINE)
_COMMAND_LINE = re.compile(r"^/.*$", flags=re.MULTILINE)
_LINE_BREAKS = re.compile(r"[\r\n]+")


def purge_comment_body(body: str) -> str:
    """Reduce a raw comment body to the plain text worth scoring.

    Args:
        body: Raw comment body (markdown)

    Returns:
        Single-line text, empty if nothing scorable remains

    Example:
        >>> purge_comment_body("> quoted\\nActual reply")
        'Actual reply'
        >>> purge_comment_body("/start")
        ''
    """
    text = _QUOTED_LINE.sub("", body)
    text = _COMMAND_LINE.sub("", text)
    text = _LINE_BREAKS.sub(" ", text)
    return text.strip()
