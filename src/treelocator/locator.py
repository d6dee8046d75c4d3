from __future__ import annotations

import logging
from typing import Iterable

from .compat import CompatibilityRuleSet
from .config import LocatorConfig
from .grammar import (
    PARENT_CHILD_SEPARATOR,
    PathSegment,
    append_segment,
    format_dom_path,
    format_segment,
    join_sub_part,
    parse_path,
)
from .models import (
    ComponentNode,
    ConnectorRegistry,
    ElementNode,
    LocatorError,
    MalformedPathError,
    NodeKind,
    NodeNotFoundError,
    Resolution,
)

LOGGER = logging.getLogger("treelocator.locator")


class ComponentLocator:
    """Builds string locators for elements and resolves them back.

    Both directions re-walk the live tree on every call; nothing is cached.
    ``path_for_node`` and ``node_for_path`` report failures as ``None``, the
    ``explain_*`` variants return a :class:`Resolution` with the reason.
    """

    def __init__(
        self,
        registry: ConnectorRegistry,
        config: LocatorConfig | None = None,
        rules: CompatibilityRuleSet | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or LocatorConfig()
        self.rules = rules if rules is not None else self.config.rule_set()

    def path_for_node(self, element: ElementNode) -> str | None:
        return self.explain_node(element).value

    def node_for_path(self, path: str) -> ElementNode | None:
        return self.explain_path(path).value

    def path_for_component(self, component: ComponentNode) -> str | None:
        try:
            return self._path_for_component(component)
        except LocatorError as exc:
            LOGGER.debug("No locator for %s: %s", component.type_name, exc)
            return None

    def component_for_path(self, path: str) -> ComponentNode | None:
        try:
            parsed = parse_path(path, root_token=self.config.root_token)
            return self._resolve_component(parsed.structural)
        except LocatorError as exc:
            LOGGER.debug("Could not resolve component for %r: %s", path, exc)
            return None

    def explain_node(self, element: ElementNode) -> Resolution:
        try:
            path = self._path_for_element(element)
        except LocatorError as exc:
            LOGGER.debug("No locator for element: %s", exc)
            return Resolution.not_found(str(exc))
        return Resolution.found(path)

    def explain_path(self, path: str) -> Resolution:
        try:
            parsed = parse_path(path, root_token=self.config.root_token)
            component = self._resolve_component(parsed.structural)
            if not component.is_displayed():
                raise NodeNotFoundError(f"{component.type_name} is not attached and displayed.")
            if parsed.sub_part is not None:
                element = self._resolve_sub_part(component, parsed.sub_part)
            else:
                element = _element_by_dom_path(component.element, parsed.dom_indices)
        except MalformedPathError as exc:
            LOGGER.debug("Malformed locator %r: %s", path, exc)
            return Resolution.malformed(str(exc))
        except NodeNotFoundError as exc:
            LOGGER.debug("Locator %r did not resolve: %s", path, exc)
            return Resolution.not_found(str(exc))
        return Resolution.found(element)

    # Element -> path

    def _path_for_element(self, target: ElementNode) -> str:
        component = self._reference_component(target)
        path = self._path_for_component(component)
        if component.element == target:
            return path

        provider = component.sub_parts
        if provider is not None:
            name = provider.sub_part_name(target)
            if name and name.isascii():
                return join_sub_part(path, name)

        return path + format_dom_path(_dom_indices(target, component.element))

    def _reference_component(self, target: ElementNode) -> ComponentNode:
        connector_id: str | None = None
        current: ElementNode | None = target
        while current is not None:
            connector_id = self.registry.connector_id_for_element(current)
            if connector_id is not None:
                break
            current = current.parent_element

        component = self.registry.component_for_id(connector_id) if connector_id is not None else None
        if component is not None:
            # A sub-part provider below the connector can address the target more precisely.
            candidate: ComponentNode | None = _descend_toward(target, component)
            while candidate is not None and candidate != component:
                if candidate.sub_parts is not None:
                    return candidate
                candidate = candidate.parent
            return component

        component = self._root_panel_component(target)
        if component is None:
            raise NodeNotFoundError("No addressable component contains the element.")
        return component

    def _root_panel_component(self, target: ElementNode) -> ComponentNode | None:
        root_panel = self.registry.root_panel()
        if root_panel is None:
            return None

        for child in root_panel.children or ():
            if not _contains(child.element, target):
                continue
            found = _descend_toward(target, child)
            candidate: ComponentNode | None = found
            while candidate is not None:
                if candidate.sub_parts is not None:
                    return candidate
                candidate = candidate.parent
            return found
        return None

    def _path_for_component(self, component: ComponentNode | None) -> str:
        if component is None:
            raise NodeNotFoundError("Component has no parent chain to a root.")

        kind = component.kind
        if kind is NodeKind.APPLICATION_ROOT:
            return ""
        if kind is NodeKind.SECONDARY_WINDOW:
            position = _position_of(component, self.registry.secondary_windows())
            if position is None:
                raise NodeNotFoundError(f"{component.type_name} is not an open secondary window.")
            return PARENT_CHILD_SEPARATOR + format_segment(self.config.window_token, position)
        if kind is NodeKind.ROOT_PANEL:
            return self.config.root_token

        parent = component.parent
        base_path = self._path_for_component(parent)
        children = parent.children if parent is not None else None
        if children is None:
            raise NodeNotFoundError(f"{parent.type_name} cannot enumerate its children.")

        type_name = component.type_name
        position = 0
        for child in children:
            if child == component:
                return append_segment(base_path, type_name, position)
            if child.type_name == type_name:
                position += 1
        raise NodeNotFoundError(f"{type_name} is not among the children of {parent.type_name}.")

    # Path -> element

    def _resolve_component(self, segments: Iterable[PathSegment]) -> ComponentNode:
        steps = list(segments)
        component: ComponentNode | None = None
        position = 0
        while position < len(steps):
            segment = steps[position]
            if segment.kind == "root":
                component = self.registry.root_panel()
            elif segment.kind == "application_root":
                component = self.registry.application_root()
            elif segment.kind == "identifier":
                component = self._component_for_identifier(segment.name)
            elif component is None:
                raise MalformedPathError(f"Segment {segment.render()!r} has no container.", segment.render())
            else:
                children = component.children
                if children is None:
                    raise NodeNotFoundError(f"{component.type_name} cannot enumerate its children.")

                following = steps[position + 1] if position + 1 < len(steps) else None
                remap = self.rules.remap(component, segment, following)
                if following is not None and remap.next_segment is not None:
                    steps[position + 1] = remap.next_segment
                if remap.consume:
                    position += 1
                    continue

                segment = remap.segment
                if segment.name == self.config.context_menu_token:
                    menu = self.registry.context_menu()
                    if menu is None:
                        raise NodeNotFoundError("No context menu is open.")
                    return menu
                if segment.name == self.config.window_token:
                    windows = self.registry.secondary_windows()
                    component = windows[segment.index] if segment.index < len(windows) else None
                else:
                    component = _nth_of_type(children, segment.name, segment.index)
                if component is None:
                    raise NodeNotFoundError(f"No {segment.render()} under the current container.")

            if component is None:
                raise NodeNotFoundError(f"Segment {segment.render()!r} did not resolve.")
            position += 1

        if component is None:
            raise NodeNotFoundError("Locator has no segments.")
        return component

    def _component_for_identifier(self, identifier: str) -> ComponentNode | None:
        component = self.registry.component_for_id(identifier)
        if component is not None:
            return component

        # Not a live connector id, so treat it as a legacy static debug id.
        debug_id = identifier
        prefix = self.config.legacy_id_prefix
        if prefix and identifier.startswith(prefix):
            debug_id = identifier[len(prefix):]
        roots = [self.registry.application_root(), *self.registry.secondary_windows()]
        return _find_by_debug_id([root for root in roots if root is not None], debug_id)

    def _resolve_sub_part(self, component: ComponentNode, name: str) -> ElementNode:
        provider = component.sub_parts
        if provider is None:
            raise NodeNotFoundError(f"{component.type_name} does not resolve sub-parts.")
        element = provider.sub_part_element(name)
        if element is None:
            raise NodeNotFoundError(f"{component.type_name} has no sub-part {name!r}.")
        return element


def _contains(ancestor: ElementNode, element: ElementNode) -> bool:
    current: ElementNode | None = element
    while current is not None:
        if current == ancestor:
            return True
        current = current.parent_element
    return False


def _descend_toward(target: ElementNode, ancestor: ComponentNode) -> ComponentNode:
    current = ancestor
    while True:
        for child in current.children or ():
            if _contains(child.element, target):
                current = child
                break
        else:
            return current


def _position_of(component: ComponentNode, candidates: Iterable[ComponentNode]) -> int | None:
    for position, candidate in enumerate(candidates):
        if candidate == component:
            return position
    return None


def _nth_of_type(candidates: Iterable[ComponentNode], type_name: str, index: int) -> ComponentNode | None:
    remaining = index
    for candidate in candidates:
        if candidate.type_name != type_name:
            continue
        if remaining == 0:
            return candidate
        remaining -= 1
    return None


def _find_by_debug_id(roots: list[ComponentNode], debug_id: str) -> ComponentNode | None:
    pending = list(reversed(roots))
    while pending:
        component = pending.pop()
        if component.debug_id == debug_id:
            return component
        pending.extend(reversed(list(component.children or ())))
    return None


def _dom_indices(target: ElementNode, base: ElementNode) -> list[int]:
    indices: list[int] = []
    element = target
    while True:
        parent = element.parent_element
        if parent is None:
            raise NodeNotFoundError("Element is not inside its reference component.")
        position = next((index for index, child in enumerate(parent.child_elements) if child == element), None)
        if position is None:
            raise NodeNotFoundError("Element is missing from its parent's children.")
        indices.append(position)
        if parent == base:
            break
        element = parent
    indices.reverse()
    return indices


def _element_by_dom_path(base: ElementNode, indices: Iterable[int]) -> ElementNode:
    element = base
    for index in indices:
        children = element.child_elements
        if index >= len(children):
            raise NodeNotFoundError(f"Element has no child at position {index}.")
        element = children[index]
    return element
