"""
Section-oriented note parsing for notesync.

Splits a note into heading-scoped sections without a markdown parser: a line
is a heading when it starts with '#' characters and is not inside a fenced
code block.
"""

import re
from typing import List, Optional, Tuple

from ..models import Section

HEADING_PATTERN = re.compile(r'^(#{1,6})[ \t]+(.*)$')
CLOSING_HASHES_PATTERN = re.compile(r'[ \t]+#+[ \t]*$')
FENCE_PATTERN = re.compile(r'^[ ]{0,3}(`{3,}|~{3,})')


def parse_sections(content: str) -> Tuple[List[Section], List[str]]:
    """
    Parse a note into nested sections.

    Content before the first heading is collected in a pseudo-section with
    ``heading_level`` 0 and an empty title; it is dropped when empty.

    Args:
        content: Note body

    Returns:
        Tuple of (top-level sections, H1 titles in order)
    """
    lines = content.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    initial = Section(title="", heading_level=0)
    current = initial
    body: List[str] = []
    result: List[Section] = []
    stack: List[Section] = []
    h1_headings: List[str] = []
    fence_char: Optional[str] = None

    for line in lines:
        fence = FENCE_PATTERN.match(line)
        if fence:
            char = fence.group(1)[0]
            if fence_char is None:
                fence_char = char
            elif fence_char == char:
                fence_char = None
            body.append(line)
            continue

        heading = HEADING_PATTERN.match(line) if fence_char is None else None
        if heading is None:
            body.append(line)
            continue

        current.content = "\n".join(body).strip()
        if current is initial and initial.content:
            result.append(initial)

        level = len(heading.group(1))
        title = CLOSING_HASHES_PATTERN.sub("", heading.group(2)).strip()
        section = Section(title=title, heading_level=level)

        if level == 1:
            h1_headings.append(title)

        while stack and stack[-1].heading_level >= level:
            stack.pop()

        if stack:
            stack[-1].children.append(section)
        else:
            result.append(section)

        stack.append(section)
        current = section
        body = []

    current.content = "\n".join(body).strip()
    if current is initial and initial.content:
        result.append(initial)

    return result, h1_headings
