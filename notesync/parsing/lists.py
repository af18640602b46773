"""
Line-based list parsing for notesync.

The markdown parser tells us where a list starts and ends; the list itself is
rebuilt from its raw source lines, using indentation width as the nesting key.
"""

import re
from typing import List, Optional, Sequence, Tuple

from ..models import Block, EmptyBlock, ListBlock, ListItemBlock, ParagraphBlock

LIST_ITEM_PATTERN = re.compile(
    r'^(?P<indent>[ ]*)'
    r'(?P<bullet>[-*+]|\d{1,9}[.)])'
    r'(?:[ ]+(?P<box>\[[ xX]\])(?=[ ]|$))?'
    r'(?:[ ]+(?P<text>.*))?$'
)


def _make_item(match: "re.Match[str]") -> ListItemBlock:
    bullet = match.group("bullet")
    box = match.group("box")
    text = (match.group("text") or "").strip()

    if box:
        return ListItemBlock(
            content=text,
            list_type="checkbox",
            marker=f"{bullet} {box}",
            checked=box[1].lower() == "x"
        )

    list_type = "ordered" if bullet[0].isdigit() else "unordered"
    return ListItemBlock(content=text, list_type=list_type, marker=bullet)


def parse_list_lines(lines: Sequence[str], tab_width: int = 4) -> ListBlock:
    """
    Build a nested list from the raw source lines of a markdown list.

    An item indented deeper than the list it follows becomes the first item of
    a nested list under the previous item. Lines that are not list items are
    continuation text of the previous item. Blank lines are kept on the item
    that follows them, or as empty lines inside the continuation text.

    Args:
        lines: Source lines spanned by the list
        tab_width: Number of spaces a tab expands to

    Returns:
        The top-level ListBlock
    """
    root = ListBlock()
    # (indent, list) pairs from the outermost list inwards
    stack: List[Tuple[int, ListBlock]] = []
    last_item: Optional[ListItemBlock] = None
    blank_lines: List[Block] = []

    for raw_line in lines:
        line = raw_line.replace("\t", " " * tab_width)
        if not line.strip():
            blank_lines.append(EmptyBlock() if raw_line == "" else ParagraphBlock(content=""))
            continue

        match = LIST_ITEM_PATTERN.match(line)
        if not match:
            if last_item is not None:
                text = line.strip()
                if last_item.content:
                    text = "\n".join([last_item.content] + ["" for _ in blank_lines] + [text])
                last_item.content = text
                blank_lines = []
            continue

        indent = len(match.group("indent"))
        item = _make_item(match)
        item.blank_lines_before = blank_lines
        blank_lines = []

        if not stack:
            stack.append((indent, root))
        else:
            while len(stack) > 1 and stack[-1][0] > indent:
                stack.pop()

            top_indent, top_list = stack[-1]
            if indent > top_indent and top_list.content:
                parent = top_list.content[-1]
                if not parent.children:
                    parent.children.append(ListBlock())
                stack.append((indent, parent.children[0]))

        stack[-1][1].content.append(item)
        last_item = item

    return root
