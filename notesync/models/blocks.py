"""
Block models for notesync.

A note is converted into a tree of blocks. Each block variant carries a literal
``block_type`` tag, and ``Block`` is the closed union of all variants, so a
serialized tree can be validated back into the right classes.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class HeadingBlock(BaseModel):
    """
    A heading and every block that belongs to its scope.
    """

    block_type: Literal["heading"] = "heading"

    heading_level: int = Field(
        ...,
        ge=1,
        description="Heading depth, 1 for '#'"
    )

    content: str = Field(
        ...,
        description="Raw inline markdown of the heading text"
    )

    children: List["Block"] = Field(
        default_factory=list,
        description="Blocks nested under this heading, including deeper headings"
    )


class ParagraphBlock(BaseModel):
    """A single line of inline markdown."""

    block_type: Literal["paragraph"] = "paragraph"
    content: str = ""


class ListItemBlock(BaseModel):
    """
    One item of a list, with an optional nested list.
    """

    block_type: Literal["list_item"] = "list_item"

    content: str = Field(
        ...,
        description="Item text without its marker; continuation lines joined by newlines"
    )

    list_type: Literal["ordered", "unordered", "checkbox"] = Field(
        ...,
        description="Kind of marker the item uses"
    )

    marker: str = Field(
        ...,
        description="Literal marker token, e.g. '-', '3.' or '- [x]'"
    )

    checked: Optional[bool] = Field(
        default=None,
        description="Checkbox state, only set for checkbox items"
    )

    children: List["ListBlock"] = Field(
        default_factory=list,
        description="At most one nested list"
    )

    blank_lines_before: List["Block"] = Field(
        default_factory=list,
        description="EmptyBlock or empty ParagraphBlock per blank line between the previous item and this one"
    )


class ListBlock(BaseModel):
    """A forest of list items."""

    block_type: Literal["list"] = "list"
    content: List[ListItemBlock] = Field(default_factory=list)


class RowBlock(BaseModel):
    """A table row."""

    block_type: Literal["row"] = "row"
    is_heading: bool = False
    values: List[str] = Field(default_factory=list)


class TableBlock(BaseModel):
    block_type: Literal["table"] = "table"
    rows: List[RowBlock] = Field(default_factory=list)


class ImageBlock(BaseModel):
    block_type: Literal["image"] = "image"
    img_src: str
    img_caption: str = ""


class CodeBlock(BaseModel):
    """Literal code; never touched by link rewriting or re-rendering."""

    block_type: Literal["code"] = "code"
    content: str = ""
    language: Optional[str] = None


class BlockQuoteBlock(BaseModel):
    block_type: Literal["blockquote"] = "blockquote"
    content: str = ""


class MathBlock(BaseModel):
    block_type: Literal["math"] = "math"
    content: str = ""
    markup_type: str = "latex"


class EmptyBlock(BaseModel):
    """Marks one empty source line."""

    block_type: Literal["empty_line"] = "empty_line"


Block = Annotated[
    Union[
        HeadingBlock,
        ParagraphBlock,
        ListBlock,
        ListItemBlock,
        TableBlock,
        RowBlock,
        ImageBlock,
        CodeBlock,
        BlockQuoteBlock,
        MathBlock,
        EmptyBlock,
    ],
    Field(discriminator="block_type"),
]


# Resolve the self-referencing forward annotations
HeadingBlock.model_rebuild()
ListItemBlock.model_rebuild()
ListBlock.model_rebuild()
