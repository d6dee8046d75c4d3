from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Protocol

from .grammar import PathSegment
from .models import ComponentNode, NodeNotFoundError

RULE_SET_VERSION = 1

ORDERED_LAYOUT_TYPES = ("VerticalLayout", "HorizontalLayout", "OrderedLayout")
GRID_LAYOUT_TYPE = "GridLayout"
TAB_SHEET_PANEL_TYPE = "TabSheetPanel"
REMOVED_POSITIONING_PANEL = "AbsolutePanel"
CHILD_WRAPPER_TYPE = "ChildComponentContainer"
CAPTION_TYPE = "Caption"


@dataclass(frozen=True, slots=True)
class Remap:
    """Outcome of running compatibility rules against one typed segment.

    ``consume`` means the segment is dropped and the cursor stays where it is.
    """

    segment: PathSegment
    next_segment: PathSegment | None = None
    consume: bool = False


class CompatibilityRule(Protocol):
    container_types: frozenset[str]

    def apply(
        self,
        container: ComponentNode,
        segment: PathSegment,
        next_segment: PathSegment | None,
    ) -> Remap | None: ...

    def to_config(self) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class SkipSegment:
    container_types: frozenset[str]
    segment_type: str

    def apply(
        self,
        container: ComponentNode,
        segment: PathSegment,
        next_segment: PathSegment | None,
    ) -> Remap | None:
        if segment.name != self.segment_type:
            return None
        return Remap(segment, next_segment, consume=True)

    def to_config(self) -> dict[str, Any]:
        return {"rule": "skip_segment", "containers": sorted(self.container_types), "segment": self.segment_type}


@dataclass(frozen=True, slots=True)
class ForceIndexZero:
    container_types: frozenset[str]

    def apply(
        self,
        container: ComponentNode,
        segment: PathSegment,
        next_segment: PathSegment | None,
    ) -> Remap | None:
        if segment.index == 0:
            return None
        return Remap(replace(segment, index=0), next_segment)

    def to_config(self) -> dict[str, Any]:
        return {"rule": "force_index_zero", "containers": sorted(self.container_types)}


@dataclass(frozen=True, slots=True)
class CollapseWrapper:
    container_types: frozenset[str]
    wrapper_type: str = CHILD_WRAPPER_TYPE
    caption_type: str = CAPTION_TYPE

    def apply(
        self,
        container: ComponentNode,
        segment: PathSegment,
        next_segment: PathSegment | None,
    ) -> Remap | None:
        if segment.name != self.wrapper_type or next_segment is None or next_segment.kind != "typed":
            return None

        # The wrapper index counted every non-caption child of the layout.
        remaining = segment.index
        next_index = 0
        for child in container.children or ():
            matching_type = child.type_name == next_segment.name
            if matching_type and remaining == 0:
                break
            if remaining < 0:
                raise NodeNotFoundError(
                    f"{container.type_name} has no {next_segment.name} at wrapper position {segment.index}."
                )
            if matching_type:
                next_index += 1
            if child.type_name != self.caption_type:
                remaining -= 1

        return Remap(segment, replace(next_segment, index=next_index), consume=True)

    def to_config(self) -> dict[str, Any]:
        return {
            "rule": "collapse_wrapper",
            "containers": sorted(self.container_types),
            "wrapper": self.wrapper_type,
            "caption": self.caption_type,
        }


@dataclass(frozen=True, slots=True)
class CompatibilityRuleSet:
    version: int = RULE_SET_VERSION
    rules: tuple[CompatibilityRule, ...] = field(default_factory=tuple)

    def rules_for(self, container_type: str) -> list[CompatibilityRule]:
        return [rule for rule in self.rules if container_type in rule.container_types]

    def extended(self, *rules: CompatibilityRule) -> CompatibilityRuleSet:
        return CompatibilityRuleSet(self.version, self.rules + tuple(rules))

    def remap(
        self,
        container: ComponentNode,
        segment: PathSegment,
        next_segment: PathSegment | None,
    ) -> Remap:
        current = Remap(segment, next_segment)
        for rule in self.rules_for(container.type_name):
            result = rule.apply(container, current.segment, current.next_segment)
            if result is None:
                continue
            current = result
            if current.consume:
                break
        return current

    def to_config(self) -> list[dict[str, Any]]:
        return [rule.to_config() for rule in self.rules]


def default_rule_set() -> CompatibilityRuleSet:
    layouts = frozenset((*ORDERED_LAYOUT_TYPES, GRID_LAYOUT_TYPE))
    return CompatibilityRuleSet(
        RULE_SET_VERSION,
        (
            SkipSegment(frozenset((GRID_LAYOUT_TYPE,)), REMOVED_POSITIONING_PANEL),
            ForceIndexZero(frozenset((TAB_SHEET_PANEL_TYPE,))),
            CollapseWrapper(layouts),
        ),
    )


def rule_from_config(entry: Mapping[str, Any]) -> CompatibilityRule:
    kind = str(entry.get("rule") or "").strip()
    containers = frozenset(str(item) for item in _as_list(entry.get("containers")) if str(item).strip())
    if not containers:
        raise ValueError(f"Compatibility rule {kind or '?'} has no container types.")

    if kind == "skip_segment":
        segment = str(entry.get("segment") or "").strip()
        if not segment:
            raise ValueError("skip_segment rule requires a segment type.")
        return SkipSegment(containers, segment)
    if kind == "force_index_zero":
        return ForceIndexZero(containers)
    if kind == "collapse_wrapper":
        return CollapseWrapper(
            containers,
            wrapper_type=str(entry.get("wrapper") or CHILD_WRAPPER_TYPE),
            caption_type=str(entry.get("caption") or CAPTION_TYPE),
        )
    raise ValueError(f"Unknown compatibility rule {kind!r}.")


def rule_set_from_config(entries: Iterable[Mapping[str, Any]], version: int = RULE_SET_VERSION) -> CompatibilityRuleSet:
    return CompatibilityRuleSet(version, tuple(rule_from_config(entry) for entry in entries))


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)
