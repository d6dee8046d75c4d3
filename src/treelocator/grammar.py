from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, Literal

from .models import MalformedPathError

PARENT_CHILD_SEPARATOR = "/"
SUB_PART_SEPARATOR = "#"
ROOT_TOKEN = "Root"
DOM_CHILD_TOKEN = "domChild"

_RESERVED_CHARACTERS = frozenset("/#[]")
_INDEXED_SEGMENT_PATTERN = re.compile(r"([^/#\[\]]+)\[([0-9]+)\]")

SegmentKind = Literal["root", "application_root", "identifier", "typed", "dom_child"]


@dataclass(frozen=True, slots=True)
class PathSegment:
    kind: SegmentKind
    name: str = ""
    index: int = 0

    def render(self) -> str:
        if self.kind == "application_root":
            return ""
        if self.kind in ("root", "identifier"):
            return self.name
        if self.kind == "dom_child":
            return format_segment(DOM_CHILD_TOKEN, self.index)
        return format_segment(self.name, self.index)


@dataclass(frozen=True, slots=True)
class ParsedPath:
    segments: tuple[PathSegment, ...]
    sub_part: str | None = None

    @property
    def structural(self) -> tuple[PathSegment, ...]:
        return tuple(segment for segment in self.segments if segment.kind != "dom_child")

    @property
    def dom_indices(self) -> tuple[int, ...]:
        return tuple(segment.index for segment in self.segments if segment.kind == "dom_child")

    def render(self) -> str:
        text = PARENT_CHILD_SEPARATOR.join(segment.render() for segment in self.segments)
        if self.sub_part is not None:
            text = join_sub_part(text, self.sub_part)
        return text


def is_valid_type_name(name: str) -> bool:
    if not name or not name.isascii():
        return False
    return not any(char in _RESERVED_CHARACTERS for char in name)


def format_segment(type_name: str, index: int) -> str:
    if not is_valid_type_name(type_name):
        raise MalformedPathError(f"Type name {type_name!r} cannot be used in a locator.", type_name)
    if index < 0:
        raise MalformedPathError(f"Index {index} is negative.", type_name)
    return f"{type_name}[{index}]"


def append_segment(base: str, type_name: str, index: int) -> str:
    return f"{base}{PARENT_CHILD_SEPARATOR}{format_segment(type_name, index)}"


def format_dom_path(indices: Iterable[int]) -> str:
    return "".join(f"{PARENT_CHILD_SEPARATOR}{format_segment(DOM_CHILD_TOKEN, index)}" for index in indices)


def join_sub_part(path: str, name: str) -> str:
    return f"{path}{SUB_PART_SEPARATOR}{name}"


def parse_segment(text: str) -> tuple[str, int]:
    match = _INDEXED_SEGMENT_PATTERN.fullmatch(text)
    if match is None:
        if "[" in text and "]" not in text:
            raise MalformedPathError(f"Segment {text!r} has an unterminated index bracket.", text)
        raise MalformedPathError(f"Segment {text!r} is not of the form Type[index].", text)
    return match.group(1), int(match.group(2))


def parse_path(text: str, *, root_token: str = ROOT_TOKEN) -> ParsedPath:
    if not isinstance(text, str):
        raise MalformedPathError(f"Locator must be a string, got {type(text).__name__}.")
    if not text.isascii():
        raise MalformedPathError("Locator must be ASCII.", text)

    structural, separator, sub_part = text.partition(SUB_PART_SEPARATOR)
    if separator and not sub_part:
        raise MalformedPathError("Sub-part suffix is empty.", text)

    segments: list[PathSegment] = []
    in_dom_path = False
    for position, part in enumerate(structural.split(PARENT_CHILD_SEPARATOR)):
        if position == 0:
            segments.append(_parse_first_segment(part, root_token))
            continue
        if not part:
            raise MalformedPathError("Locator contains an empty segment.", text)

        name, index = parse_segment(part)
        if name == DOM_CHILD_TOKEN:
            in_dom_path = True
            segments.append(PathSegment("dom_child", DOM_CHILD_TOKEN, index))
        elif in_dom_path:
            raise MalformedPathError(f"Segment {part!r} follows a {DOM_CHILD_TOKEN} segment.", part)
        else:
            segments.append(PathSegment("typed", name, index))

    if in_dom_path and separator:
        raise MalformedPathError(f"A sub-part suffix cannot follow {DOM_CHILD_TOKEN} segments.", text)

    return ParsedPath(tuple(segments), sub_part if separator else None)


def _parse_first_segment(part: str, root_token: str) -> PathSegment:
    if not part:
        return PathSegment("application_root")
    if part == root_token:
        return PathSegment("root", part)
    if "[" in part or "]" in part:
        # Bare typed segments have no container to be resolved against.
        parse_segment(part)
        raise MalformedPathError(f"Segment {part!r} needs a leading {PARENT_CHILD_SEPARATOR}.", part)
    return PathSegment("identifier", part)
