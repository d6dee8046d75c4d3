from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count
from typing import Iterator
import weakref

from .models import ComponentNode, ElementNode, NodeKind, SubPartProvider


@dataclass(eq=False, slots=True, weakref_slot=True)
class SnapshotElement:
    tag: str = "div"
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""
    hidden: bool = False
    _parent: weakref.ref[SnapshotElement] | None = field(default=None, init=False, repr=False)
    _children: list[SnapshotElement] = field(default_factory=list, init=False, repr=False)

    @property
    def parent_element(self) -> SnapshotElement | None:
        return self._parent() if self._parent is not None else None

    @property
    def child_elements(self) -> tuple[SnapshotElement, ...]:
        return tuple(self._children)

    def append(self, child: SnapshotElement) -> SnapshotElement:
        current = child.parent_element
        if current is not None:
            current.remove(child)
        child._parent = weakref.ref(self)
        self._children.append(child)
        return child

    def remove(self, child: SnapshotElement) -> None:
        self._children.remove(child)
        child._parent = None

    def attribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    def iter_subtree(self) -> Iterator[SnapshotElement]:
        pending = [self]
        while pending:
            element = pending.pop()
            yield element
            pending.extend(reversed(element._children))


@dataclass(eq=False, slots=True, weakref_slot=True)
class SnapshotComponent:
    type_name: str
    element: SnapshotElement = field(default_factory=SnapshotElement)
    kind: NodeKind = NodeKind.COMPONENT
    debug_id: str | None = None
    iterable: bool = True
    displayed: bool = True
    sub_parts: SubPartProvider | None = None
    _parent: weakref.ref[SnapshotComponent] | None = field(default=None, init=False, repr=False)
    _children: list[SnapshotComponent] = field(default_factory=list, init=False, repr=False)

    @property
    def parent(self) -> SnapshotComponent | None:
        return self._parent() if self._parent is not None else None

    @property
    def children(self) -> tuple[SnapshotComponent, ...] | None:
        if not self.iterable:
            return None
        return tuple(self._children)

    def add(self, child: SnapshotComponent, *, attach_element: bool = True) -> SnapshotComponent:
        current = child.parent
        if current is not None:
            current.remove(child)
        child._parent = weakref.ref(self)
        self._children.append(child)
        if attach_element:
            self.element.append(child.element)
        return child

    def remove(self, child: SnapshotComponent) -> None:
        self._children.remove(child)
        child._parent = None
        if child.element.parent_element is self.element:
            self.element.remove(child.element)

    def is_displayed(self) -> bool:
        return self.displayed


@dataclass(slots=True)
class AttributeSubParts:
    """Names elements inside ``root`` by the value of one of their attributes."""

    root: SnapshotElement
    attribute: str = "data-locator-subpart"

    def sub_part_name(self, element: ElementNode) -> str | None:
        if not isinstance(element, SnapshotElement):
            return None
        name = element.attribute(self.attribute)
        if not name or not self._owns(element):
            return None
        return name

    def sub_part_element(self, name: str) -> SnapshotElement | None:
        for element in self.root.iter_subtree():
            if element.attribute(self.attribute) == name:
                return element
        return None

    def _owns(self, element: SnapshotElement) -> bool:
        current: SnapshotElement | None = element
        while current is not None:
            if current is self.root:
                return True
            current = current.parent_element
        return False


class SnapshotRegistry:
    """In-memory connector registry over ``SnapshotComponent`` trees."""

    def __init__(
        self,
        root_panel: SnapshotComponent | None = None,
        application_root: SnapshotComponent | None = None,
        document: SnapshotElement | None = None,
    ) -> None:
        self._root_panel = root_panel
        self._application_root = application_root
        self.document = document
        self._components: dict[str, SnapshotComponent] = {}
        self._ids: weakref.WeakKeyDictionary[SnapshotElement, str] = weakref.WeakKeyDictionary()
        self._windows: list[SnapshotComponent] = []
        self._context_menu: SnapshotComponent | None = None
        self._auto_ids = count(1)

    def register(self, component: SnapshotComponent, connector_id: str | None = None) -> SnapshotComponent:
        key = connector_id or None
        while key is None or (not connector_id and key in self._components):
            key = f"auto-{next(self._auto_ids)}"
        if key in self._components:
            raise ValueError(f"Connector id {key!r} is already registered.")
        self._components[key] = component
        self._ids[component.element] = key
        return component

    def register_tree(self, root: SnapshotComponent) -> SnapshotComponent:
        pending = [root]
        while pending:
            component = pending.pop()
            if component.element not in self._ids:
                self.register(component)
            pending.extend(reversed(component._children))
        return root

    def set_root_panel(self, component: SnapshotComponent | None) -> None:
        self._root_panel = component

    def set_application_root(self, component: SnapshotComponent | None) -> None:
        self._application_root = component

    def open_window(self, window: SnapshotComponent) -> SnapshotComponent:
        if window.kind is not NodeKind.SECONDARY_WINDOW:
            raise ValueError(f"{window.type_name} is not a secondary window.")
        if window not in self._windows:
            self._windows.append(window)
        return window

    def close_window(self, window: SnapshotComponent) -> None:
        if window in self._windows:
            self._windows.remove(window)

    def set_context_menu(self, component: SnapshotComponent | None) -> None:
        self._context_menu = component

    def connector_id_for_element(self, element: ElementNode) -> str | None:
        if not isinstance(element, SnapshotElement):
            return None
        return self._ids.get(element)

    def component_for_id(self, connector_id: str) -> ComponentNode | None:
        return self._components.get(connector_id)

    def root_panel(self) -> SnapshotComponent | None:
        return self._root_panel

    def application_root(self) -> SnapshotComponent | None:
        return self._application_root

    def secondary_windows(self) -> list[SnapshotComponent]:
        return list(self._windows)

    def context_menu(self) -> SnapshotComponent | None:
        return self._context_menu
