from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Literal, Protocol, Sequence

LocatorStatus = Literal["found", "not_found", "malformed_path"]


class NodeKind(str, Enum):
    ROOT_PANEL = "root-panel"
    APPLICATION_ROOT = "application-root"
    SECONDARY_WINDOW = "window"
    COMPONENT = "component"


class LocatorError(Exception):
    """Base class for failures raised while computing or resolving a locator."""


class NodeNotFoundError(LocatorError):
    pass


class MalformedPathError(LocatorError):
    def __init__(self, message: str, segment: str | None = None) -> None:
        super().__init__(message)
        self.segment = segment


class ElementNode(Protocol):
    """A raw node of the rendered tree.

    ``parent_element`` must not own the parent; implementations keep a weak
    link or ask the tree owner.
    """

    @property
    def parent_element(self) -> ElementNode | None: ...

    @property
    def child_elements(self) -> Sequence[ElementNode]: ...


class SubPartProvider(Protocol):
    def sub_part_name(self, element: ElementNode) -> str | None: ...

    def sub_part_element(self, name: str) -> ElementNode | None: ...


class ComponentNode(Protocol):
    """An addressable node of the logical tree.

    ``children`` is ``None`` when the component cannot enumerate its children
    in a stable order.
    """

    @property
    def type_name(self) -> str: ...

    @property
    def element(self) -> ElementNode: ...

    @property
    def parent(self) -> ComponentNode | None: ...

    @property
    def children(self) -> Iterable[ComponentNode] | None: ...

    @property
    def kind(self) -> NodeKind: ...

    @property
    def debug_id(self) -> str | None: ...

    @property
    def sub_parts(self) -> SubPartProvider | None: ...

    def is_displayed(self) -> bool: ...


class ConnectorRegistry(Protocol):
    def connector_id_for_element(self, element: ElementNode) -> str | None: ...

    def component_for_id(self, connector_id: str) -> ComponentNode | None: ...

    def root_panel(self) -> ComponentNode | None: ...

    def application_root(self) -> ComponentNode | None: ...

    def secondary_windows(self) -> Sequence[ComponentNode]: ...

    def context_menu(self) -> ComponentNode | None: ...


@dataclass(frozen=True, slots=True)
class Resolution:
    status: LocatorStatus
    value: Any = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "found"

    @classmethod
    def found(cls, value: Any) -> Resolution:
        return cls("found", value, "Locator resolved.")

    @classmethod
    def not_found(cls, message: str) -> Resolution:
        return cls("not_found", None, message)

    @classmethod
    def malformed(cls, message: str) -> Resolution:
        return cls("malformed_path", None, message)
