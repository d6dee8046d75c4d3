from typing import Any

from playwright.sync_api import Error as PlaywrightError

from treelocator.config import LocatorAttributes
from treelocator.dom_snapshot import (
    build_snapshot,
    capture_snapshot,
    describe_element,
    element_for_handle,
    handle_for_element,
)
from treelocator.locator import ComponentLocator
from treelocator.models import NodeKind
from treelocator.tree import SnapshotElement


def _node(tag: str, attributes: dict[str, str] | None = None, *children: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"tag": tag, "attributes": attributes or {}, "children": list(children), **extra}


def _typed(type_name: str, *children: dict[str, Any], **attributes: str) -> dict[str, Any]:
    attrs = {"data-locator-type": type_name}
    attrs.update({f"data-locator-{key.replace('_', '-')}": value for key, value in attributes.items()})
    return _node("div", attrs, *children)


def _application_payload() -> dict[str, Any]:
    return _node(
        "body",
        None,
        _typed(
            "UI",
            _typed(
                "VerticalLayout",
                _node("button", {"data-locator-type": "Button"}, text="Save"),
                _node("div", {"class": "slot"}, _node("button", {"data-locator-type": "Button"}, _node("span"))),
                _typed("DateField", _node("button", {"data-locator-subpart": "popupButton"}), subpart_provider=""),
            ),
            kind="application-root",
            id="ui",
        ),
    )


class FakeHandle:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error

    def evaluate(self, _script: str) -> Any:
        if self.error is not None:
            raise self.error
        return self.result


class FakeJSHandle:
    def __init__(self, element: Any) -> None:
        self.element = element

    def as_element(self) -> Any:
        return self.element


class FakePage:
    def __init__(self, payload: dict[str, Any] | None = None) -> None:
        self.payload = payload
        self.handle_arguments: list[Any] = []

    def evaluate(self, _script: str) -> Any:
        return self.payload

    def evaluate_handle(self, _script: str, argument: Any) -> FakeJSHandle:
        self.handle_arguments.append(argument)
        return FakeJSHandle("element-handle")


def test_snapshot_components_follow_nearest_typed_ancestor() -> None:
    registry = build_snapshot(_application_payload())
    ui = registry.application_root()
    assert ui is not None
    assert ui.type_name == "UI"
    assert registry.component_for_id("ui") is ui

    layout = ui.children[0]
    assert [child.type_name for child in layout.children] == ["Button", "Button", "DateField"]
    assert layout.children[1].element.parent_element.attribute("class") == "slot"


def test_snapshot_paths_round_trip() -> None:
    registry = build_snapshot(_application_payload())
    locator = ComponentLocator(registry)
    layout = registry.application_root().children[0]
    span = layout.children[1].element.child_elements[0]
    popup = layout.children[2].element.child_elements[0]

    assert locator.path_for_node(span) == "/VerticalLayout[0]/Button[1]/domChild[0]"
    assert locator.path_for_node(popup) == "/VerticalLayout[0]/DateField[0]#popupButton"
    assert locator.node_for_path("/VerticalLayout[0]/Button[1]/domChild[0]") is span
    assert locator.node_for_path("/VerticalLayout[0]/DateField[0]#popupButton") is popup


def test_windows_open_in_declared_order() -> None:
    payload = _node(
        "body",
        None,
        _typed("Window", kind="window", window="2"),
        _typed("Window", kind="window", window="1"),
        _typed("Window", kind="window", window="3", hidden=""),
    )
    registry = build_snapshot(payload)
    first, second, hidden = registry.root_panel().children

    assert registry.secondary_windows() == [second, first]
    assert first.kind is NodeKind.SECONDARY_WINDOW
    locator = ComponentLocator(registry)
    assert locator.path_for_node(first.element) == "/Window[1]"
    assert locator.path_for_node(hidden.element) is None


def test_context_menu_and_root_panel_kinds() -> None:
    payload = _node("body", None, _typed("Overlay", kind="root-panel"), _typed("Menu", kind="context-menu"))
    registry = build_snapshot(payload)

    assert registry.root_panel().type_name == "Overlay"
    assert registry.context_menu().type_name == "Menu"


def test_hidden_elements_are_not_displayed() -> None:
    payload = _node("body", None, _typed("UI", _node("div", {"data-locator-type": "Label"}, hidden=True), kind="application-root"))
    registry = build_snapshot(payload)
    label = registry.application_root().children[0]

    assert not label.is_displayed()
    assert ComponentLocator(registry).node_for_path("/Label[0]") is None


def test_duplicate_connector_ids_get_generated_ids() -> None:
    payload = _node("body", None, _typed("Panel", id="dup"), _typed("Panel", id="dup"))
    registry = build_snapshot(payload)
    first, second = registry.root_panel().children

    assert registry.component_for_id("dup") is first
    generated = registry.connector_id_for_element(second.element)
    assert generated is not None and generated != "dup"


def test_custom_attribute_names() -> None:
    attributes = LocatorAttributes(type_name="data-component", kind="data-role")
    payload = _node("body", None, _node("main", {"data-component": "Shell", "data-role": "application-root"}))
    registry = build_snapshot(payload, attributes)
    assert registry.application_root().type_name == "Shell"


def test_payload_defaults_are_normalized() -> None:
    registry = build_snapshot({"children": [{"attributes": {"data-locator-type": "Panel", "skip": None}}, "noise"]})
    panel = registry.root_panel().children[0]
    assert registry.document.tag == "div"
    assert panel.element.attributes == {"data-locator-type": "Panel"}


def test_capture_snapshot_evaluates_page() -> None:
    registry = capture_snapshot(FakePage(_application_payload()))
    assert registry.application_root().type_name == "UI"


def test_element_for_handle_walks_child_indices() -> None:
    registry = build_snapshot(_application_payload())
    layout = registry.application_root().children[0]

    assert element_for_handle(registry, FakeHandle([0, 0, 1, 0])) is layout.children[1].element
    assert element_for_handle(registry, FakeHandle([])) is registry.document
    assert element_for_handle(registry, FakeHandle(None)) is None
    assert element_for_handle(registry, FakeHandle([7])) is None
    assert element_for_handle(registry, FakeHandle(error=PlaywrightError("boom"))) is None


def test_handle_for_element_sends_child_indices() -> None:
    registry = build_snapshot(_application_payload())
    layout = registry.application_root().children[0]
    page = FakePage()

    assert handle_for_element(page, layout.children[2].element) == "element-handle"
    assert page.handle_arguments == [[0, 0, 2]]


def test_describe_element() -> None:
    element = SnapshotElement("button", {"id": "save", "class": "primary"}, text="Save")
    assert describe_element(element) == '<button class="primary" id="save"> Save'
    assert describe_element(SnapshotElement("span")) == "<span>"
