"""Manuscript parsing, validation and compilation."""

from .assembler import assemble_manuscript, build_manuscript, resolve_group_states
from .comments import parse_comment_appendix, render_comment_appendix, strip_comment_appendix
from .header import format_header, parse_header
from .inspector import inspect_project, parse_document

__all__ = [
    "assemble_manuscript",
    "build_manuscript",
    "resolve_group_states",
    "parse_comment_appendix",
    "render_comment_appendix",
    "strip_comment_appendix",
    "format_header",
    "parse_header",
    "inspect_project",
    "parse_document",
]
