"""Front-matter parsing and slug validation for blog posts.

Two parsers share the same block detection:

* :func:`parse_front_matter` loads the block as full YAML (PyYAML) and is used
  when only the attribute values matter, e.g. reading the slug.
* :func:`parse_simple_front_matter` is a small line-based parser for the
  subset posts actually use (scalars, quoted scalars, block scalars, block
  and flow arrays).

Both return a tagged result instead of raising: :class:`ParseSuccess` or
:class:`ParseFailure`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .utils import is_valid_slug, slugify

KEY_LINE = re.compile(r"^(\w+):\s*(.*)$")
BLOCK_SCALAR = re.compile(r"^([|>])([+-]?)[1-9]?([+-]?)$")
DELIMITER = "---"


@dataclass
class ParseError:
    line: int
    message: str

    def __str__(self) -> str:
        if self.line:
            return f"line {self.line}: {self.message}"
        return self.message


@dataclass
class ParseSuccess:
    attributes: Dict[str, Any]
    body: str
    warnings: List[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


@dataclass
class ParseFailure:
    errors: List[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False

    def describe(self) -> str:
        return "; ".join(str(error) for error in self.errors)


ParseResult = Union[ParseSuccess, ParseFailure]


def split_front_matter(text: str) -> Optional[Tuple[str, str]]:
    """Split ``text`` into its front-matter block and body.

    The block has to open on the first line. Returns ``None`` when there is no
    block or it is never closed.
    """
    lines = text.lstrip("\ufeff").split("\n")
    if not lines or lines[0].strip() != DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index].strip() == DELIMITER:
            block = "\n".join(line.rstrip("\r") for line in lines[1:index])
            body = "\n".join(lines[index + 1 :])
            return block, body
    return None


def _missing_block(text: str) -> ParseFailure:
    if text.lstrip("\ufeff").split("\n", 1)[0].strip() == DELIMITER:
        return ParseFailure([ParseError(1, "front matter block is never closed")])
    return ParseFailure([ParseError(0, "no front matter block")])


def parse_front_matter(text: str) -> ParseResult:
    """Parse the front-matter block of ``text`` as YAML."""
    split = split_front_matter(text)
    if split is None:
        return _missing_block(text)
    block, body = split
    try:
        data = yaml.safe_load(block) if block.strip() else {}
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 if mark is not None else 0
        return ParseFailure([ParseError(line, f"invalid YAML: {exc}")])
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return ParseFailure([ParseError(0, "front matter is not a mapping")])
    return ParseSuccess(attributes=data, body=body)


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def _parse_scalar(value: str) -> Union[str, List[str]]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        items = [_strip_quotes(item) for item in value[1:-1].split(",")]
        return [item for item in items if item]
    return _strip_quotes(value)


def _fold_block(style: str, chomp: str, lines: List[str]) -> str:
    """Join the lines of a ``|`` or ``>`` block scalar the way YAML does."""
    lines = list(lines)
    while lines and not lines[-1].strip():
        lines.pop()
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    margin = min(indents) if indents else 0
    lines = [line[margin:] for line in lines]
    if style == "|":
        value = "\n".join(lines)
    else:
        paragraphs: List[str] = []
        current: List[str] = []
        for line in lines:
            if line.strip():
                current.append(line.strip())
                continue
            paragraphs.append(" ".join(current))
            current = []
        paragraphs.append(" ".join(current))
        value = "\n".join(paragraphs)
    if not value or chomp == "-":
        return value
    return value + "\n"


def parse_simple_front_matter(text: str) -> ParseResult:
    """Parse the YAML subset used by post front matter.

    ``key: value`` lines set scalars. A key with an empty value opens a block
    array that collects the following ``- item`` lines; a blank line or any
    other line closes it, and a closing ``key: value`` line is parsed as usual.
    ``key: |`` and ``key: >`` open block scalars made of the indented lines
    that follow, and an indented line after a plain scalar continues it.

    Other lines are ignored and reported in ``ParseSuccess.warnings``. Only a
    missing block and ``- item`` lines outside an array fail the parse.
    """
    split = split_front_matter(text)
    if split is None:
        return _missing_block(text)
    block, body = split

    attributes: Dict[str, Any] = {}
    errors: List[ParseError] = []
    warnings: List[ParseError] = []
    array_key: Optional[str] = None
    items: List[str] = []
    scalar_key: Optional[str] = None
    scalar_style = scalar_chomp = ""
    scalar_lines: List[str] = []
    continued_key: Optional[str] = None

    for number, raw in enumerate(block.split("\n"), start=1):
        line = raw.strip()
        indented = raw[:1] in (" ", "\t")
        if scalar_key is not None:
            if indented or not line:
                scalar_lines.append(raw.rstrip())
                continue
            attributes[scalar_key] = _fold_block(scalar_style, scalar_chomp, scalar_lines)
            scalar_key = None
        if line.startswith("#"):
            continue
        if array_key is not None:
            if line.startswith("- "):
                items.append(_strip_quotes(line[2:]))
                continue
            attributes[array_key] = items
            array_key, items = None, []
        if not line:
            continued_key = None
            continue
        if line.startswith("-"):
            errors.append(ParseError(number, "list item outside of an array"))
            continue
        if indented and continued_key is not None:
            attributes[continued_key] = f"{attributes[continued_key]} {line}"
            continue
        continued_key = None
        match = KEY_LINE.match(line)
        if not match:
            warnings.append(ParseError(number, f"ignored line {line!r}"))
            continue
        key, value = match.groups()
        block_scalar = BLOCK_SCALAR.match(value.strip())
        if value.strip() == "":
            array_key, items = key, []
        elif block_scalar:
            scalar_key, scalar_lines = key, []
            scalar_style = block_scalar.group(1)
            scalar_chomp = block_scalar.group(2) or block_scalar.group(3)
        else:
            attributes[key] = _parse_scalar(value)
            if isinstance(attributes[key], str):
                continued_key = key

    if scalar_key is not None:
        attributes[scalar_key] = _fold_block(scalar_style, scalar_chomp, scalar_lines)
    if array_key is not None:
        attributes[array_key] = items
    if errors:
        return ParseFailure(errors)
    return ParseSuccess(attributes=attributes, body=body, warnings=warnings)


@dataclass
class SlugCheck:
    """Outcome of validating the ``slug`` attribute.

    ``error`` means the file must be skipped; ``warning`` is advisory only.
    """

    slug: Optional[str] = None
    error: Optional[str] = None
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def check_slug(attributes: Dict[str, Any]) -> SlugCheck:
    if "slug" not in attributes or attributes["slug"] is None:
        return SlugCheck(error="no slug found in front matter")
    slug = attributes["slug"]
    if not isinstance(slug, str):
        return SlugCheck(error=f"slug must be a string, got {type(slug).__name__}")
    if not slug.strip():
        return SlugCheck(error="slug is empty")
    if "/" in slug or "\\" in slug or slug in {".", ".."}:
        return SlugCheck(error=f"slug {slug!r} is not a usable file name")
    if not is_valid_slug(slug):
        return SlugCheck(
            slug=slug,
            warning=(
                f"slug {slug!r} is not lowercase-hyphenated "
                f"(expected something like {slugify(slug)!r})"
            ),
        )
    return SlugCheck(slug=slug)
