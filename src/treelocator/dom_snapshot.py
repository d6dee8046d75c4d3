from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from playwright.sync_api import Error as PlaywrightError

from .config import LocatorAttributes
from .models import NodeKind
from .tree import AttributeSubParts, SnapshotComponent, SnapshotElement, SnapshotRegistry

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Page

LOGGER = logging.getLogger("treelocator.dom")

ROOT_PANEL_TYPE = "RootPanel"
MAX_TEXT_LENGTH = 120

_KIND_VALUES = {
    "root-panel": NodeKind.ROOT_PANEL,
    "application-root": NodeKind.APPLICATION_ROOT,
    "window": NodeKind.SECONDARY_WINDOW,
}
_CONTEXT_MENU_KIND = "context-menu"

_SNAPSHOT_SCRIPT = """
() => {
  const walk = (el) => {
    const attributes = {};
    for (const attr of el.attributes) {
      attributes[attr.name] = attr.value;
    }
    const ownText = Array.from(el.childNodes)
      .filter((node) => node.nodeType === Node.TEXT_NODE)
      .map((node) => node.textContent || '')
      .join(' ')
      .trim()
      .replace(/\\s+/g, ' ')
      .slice(0, %d);
    const hidden = !(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
    return {
      tag: el.tagName.toLowerCase(),
      attributes,
      text: ownText,
      hidden,
      children: Array.from(el.children).map(walk),
    };
  };
  return walk(document.body);
}
""" % MAX_TEXT_LENGTH

_CHILD_INDEX_SCRIPT = """
(el) => {
  const indices = [];
  let current = el;
  while (current && current !== document.body) {
    const parent = current.parentElement;
    if (!parent) {
      return null;
    }
    indices.push(Array.prototype.indexOf.call(parent.children, current));
    current = parent;
  }
  return current === document.body ? indices.reverse() : null;
}
"""

_ELEMENT_AT_SCRIPT = """
(indices) => {
  let current = document.body;
  for (const index of indices) {
    if (!current || index >= current.children.length) {
      return null;
    }
    current = current.children[index];
  }
  return current;
}
"""


def capture_snapshot(page: Page, attributes: LocatorAttributes | None = None) -> SnapshotRegistry:
    payload = page.evaluate(_SNAPSHOT_SCRIPT)
    return build_snapshot(payload, attributes)


def build_snapshot(payload: Mapping[str, Any], attributes: LocatorAttributes | None = None) -> SnapshotRegistry:
    """Build a registry from a serialized ``document.body`` tree.

    Elements carrying the type attribute become components. Their parent is
    the nearest ancestor component, or the body, which stands in as the root
    panel unless another element claims that kind.
    """

    attrs = attributes or LocatorAttributes()
    document = _build_element(payload)
    root_panel = SnapshotComponent(ROOT_PANEL_TYPE, document, kind=NodeKind.ROOT_PANEL)
    registry = SnapshotRegistry(root_panel=root_panel, document=document)
    registry.register(root_panel)

    windows: list[tuple[int, int, SnapshotComponent]] = []
    pending: list[tuple[SnapshotElement, SnapshotComponent]] = [(child, root_panel) for child in reversed(document.child_elements)]
    while pending:
        element, owner = pending.pop()
        component = _component_for(element, attrs)
        if component is not None:
            owner.add(component, attach_element=False)
            connector_id = (element.attribute(attrs.connector_id) or "").strip() or None
            if connector_id is not None and registry.component_for_id(connector_id) is not None:
                LOGGER.warning("Duplicate connector id %r on <%s>; using a generated id.", connector_id, element.tag)
                connector_id = None
            registry.register(component, connector_id)
            raw_kind = (element.attribute(attrs.kind) or "").strip().lower()
            if component.kind is NodeKind.ROOT_PANEL:
                registry.set_root_panel(component)
            elif component.kind is NodeKind.APPLICATION_ROOT and registry.application_root() is None:
                registry.set_application_root(component)
            elif component.kind is NodeKind.SECONDARY_WINDOW:
                windows.append((_window_order(element, attrs), len(windows), component))
            elif raw_kind == _CONTEXT_MENU_KIND:
                registry.set_context_menu(component)
            owner = component
        pending.extend((child, owner) for child in reversed(element.child_elements))

    for _order, _position, window in sorted(windows, key=lambda item: (item[0], item[1])):
        if window.displayed:
            registry.open_window(window)

    LOGGER.debug("Snapshot built with %d open windows.", len(registry.secondary_windows()))
    return registry


def element_for_handle(registry: SnapshotRegistry, handle: ElementHandle) -> SnapshotElement | None:
    if registry.document is None:
        return None
    try:
        indices = handle.evaluate(_CHILD_INDEX_SCRIPT)
    except PlaywrightError as exc:
        LOGGER.debug("Could not read element position: %s", exc)
        return None
    if indices is None:
        return None

    element = registry.document
    for index in indices:
        children = element.child_elements
        if not isinstance(index, int) or index < 0 or index >= len(children):
            return None
        element = children[index]
    return element


def handle_for_element(page: Page, element: SnapshotElement) -> ElementHandle | None:
    indices: list[int] = []
    current = element
    while True:
        parent = current.parent_element
        if parent is None:
            break
        indices.append(parent.child_elements.index(current))
        current = parent
    indices.reverse()

    try:
        handle = page.evaluate_handle(_ELEMENT_AT_SCRIPT, indices)
    except PlaywrightError as exc:
        LOGGER.debug("Could not locate element in page: %s", exc)
        return None
    return handle.as_element()


def describe_element(element: SnapshotElement) -> str:
    pieces = [element.tag]
    for key in sorted(element.attributes):
        pieces.append(f'{key}="{element.attributes[key]}"')
    summary = "<" + " ".join(pieces) + ">"
    if element.text:
        summary += f" {element.text}"
    return summary


def _build_element(payload: Mapping[str, Any]) -> SnapshotElement:
    root = _element_from_payload(payload)
    pending: list[tuple[SnapshotElement, Mapping[str, Any]]] = [(root, payload)]
    while pending:
        element, raw = pending.pop()
        for raw_child in raw.get("children") or ():
            if not isinstance(raw_child, Mapping):
                continue
            child = element.append(_element_from_payload(raw_child))
            pending.append((child, raw_child))
    return root


def _element_from_payload(raw: Mapping[str, Any]) -> SnapshotElement:
    raw_attributes = raw.get("attributes") or {}
    attributes = {str(key): str(value) for key, value in raw_attributes.items() if value is not None}
    tag = str(raw.get("tag") or "div").strip().lower() or "div"
    return SnapshotElement(
        tag=tag,
        attributes=attributes,
        text=str(raw.get("text") or ""),
        hidden=bool(raw.get("hidden")),
    )


def _component_for(element: SnapshotElement, attrs: LocatorAttributes) -> SnapshotComponent | None:
    type_name = (element.attribute(attrs.type_name) or "").strip()
    if not type_name:
        return None

    raw_kind = (element.attribute(attrs.kind) or "").strip().lower()
    hidden = element.hidden or element.attribute(attrs.hidden) is not None
    sub_parts = None
    if element.attribute(attrs.sub_part_provider) is not None:
        sub_parts = AttributeSubParts(element, attrs.sub_part)

    return SnapshotComponent(
        type_name,
        element,
        kind=_KIND_VALUES.get(raw_kind, NodeKind.COMPONENT),
        debug_id=(element.attribute(attrs.debug_id) or "").strip() or None,
        displayed=not hidden,
        sub_parts=sub_parts,
    )


def _window_order(element: SnapshotElement, attrs: LocatorAttributes) -> int:
    try:
        return int(element.attribute(attrs.window_order) or 0)
    except ValueError:
        return 0
