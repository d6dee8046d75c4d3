import pytest

from treelocator.compat import (
    CollapseWrapper,
    CompatibilityRuleSet,
    ForceIndexZero,
    SkipSegment,
    default_rule_set,
    rule_from_config,
    rule_set_from_config,
)
from treelocator.config import LocatorConfig
from treelocator.grammar import PathSegment
from treelocator.locator import ComponentLocator
from treelocator.models import NodeKind
from treelocator.tree import SnapshotComponent, SnapshotElement, SnapshotRegistry


def _application(*children: SnapshotComponent) -> tuple[SnapshotRegistry, SnapshotComponent]:
    root_panel = SnapshotComponent("RootPanel", SnapshotElement("body"), kind=NodeKind.ROOT_PANEL)
    ui = root_panel.add(SnapshotComponent("UI", kind=NodeKind.APPLICATION_ROOT))
    for child in children:
        ui.add(child)
    registry = SnapshotRegistry(root_panel=root_panel, application_root=ui)
    registry.register_tree(root_panel)
    return registry, ui


def _form_layout() -> tuple[SnapshotComponent, list[SnapshotComponent]]:
    layout = SnapshotComponent("VerticalLayout")
    members = [
        layout.add(SnapshotComponent("Label")),
        layout.add(SnapshotComponent("Caption")),
        layout.add(SnapshotComponent("TextField")),
        layout.add(SnapshotComponent("Button")),
        layout.add(SnapshotComponent("Button")),
    ]
    return layout, members


def test_wrapper_index_maps_to_typed_index() -> None:
    layout, members = _form_layout()
    registry, _ui = _application(layout)
    locator = ComponentLocator(registry)

    assert locator.node_for_path("/VerticalLayout[0]/ChildComponentContainer[2]/Button[0]") is members[3].element
    assert locator.node_for_path("/VerticalLayout[0]/ChildComponentContainer[3]/Button[0]") is members[4].element
    assert locator.node_for_path("/VerticalLayout[0]/ChildComponentContainer[1]/TextField[0]") is members[2].element


def test_wrapper_index_past_match_is_not_found() -> None:
    layout, _members = _form_layout()
    registry, _ui = _application(layout)
    locator = ComponentLocator(registry)

    result = locator.explain_path("/VerticalLayout[0]/ChildComponentContainer[1]/Button[0]")
    assert result.status == "not_found"
    assert locator.node_for_path("/VerticalLayout[0]/ChildComponentContainer[9]/Button[0]") is None


def test_removed_positioning_panel_is_skipped_in_grids() -> None:
    grid = SnapshotComponent("GridLayout")
    grid.add(SnapshotComponent("Button"))
    second = grid.add(SnapshotComponent("Button"))
    registry, _ui = _application(grid)
    locator = ComponentLocator(registry)

    assert locator.node_for_path("/GridLayout[0]/AbsolutePanel[0]/Button[1]") is second.element
    assert locator.node_for_path("/GridLayout[0]/Button[1]") is second.element


def test_tab_sheet_panel_index_is_forced_to_zero() -> None:
    tabs = SnapshotComponent("TabSheetPanel")
    content = tabs.add(SnapshotComponent("Panel"))
    registry, _ui = _application(tabs)
    locator = ComponentLocator(registry)

    assert locator.node_for_path("/TabSheetPanel[0]/Panel[3]") is content.element


def test_wrapper_segment_under_unknown_container_is_not_found() -> None:
    panel = SnapshotComponent("Panel")
    panel.add(SnapshotComponent("Button"))
    registry, _ui = _application(panel)
    locator = ComponentLocator(registry)

    assert locator.explain_path("/Panel[0]/ChildComponentContainer[0]/Button[0]").status == "not_found"


def test_legacy_path_recorded_on_old_tree_finds_same_button_on_new_tree() -> None:
    layout, members = _form_layout()
    registry, _ui = _application(layout)
    locator = ComponentLocator(registry)

    current_path = locator.path_for_node(members[4].element)
    assert current_path == "/VerticalLayout[0]/Button[1]"
    legacy_path = "/VerticalLayout[0]/ChildComponentContainer[3]/Button[0]"
    assert locator.node_for_path(legacy_path) is locator.node_for_path(current_path)


def test_empty_rule_set_leaves_legacy_paths_unresolved() -> None:
    layout, _members = _form_layout()
    registry, _ui = _application(layout)
    locator = ComponentLocator(registry, rules=CompatibilityRuleSet())

    assert locator.node_for_path("/VerticalLayout[0]/ChildComponentContainer[2]/Button[0]") is None


def test_rules_are_selected_by_container_type() -> None:
    rules = default_rule_set()
    assert [type(rule) for rule in rules.rules_for("GridLayout")] == [SkipSegment, CollapseWrapper]
    assert [type(rule) for rule in rules.rules_for("TabSheetPanel")] == [ForceIndexZero]
    assert rules.rules_for("Panel") == []


def test_remap_without_matching_rule_is_identity() -> None:
    segment = PathSegment("typed", "Button", 2)
    remap = default_rule_set().remap(SnapshotComponent("Panel"), segment, None)
    assert remap.segment == segment
    assert not remap.consume


def test_default_rules_round_trip_through_config() -> None:
    rules = default_rule_set()
    assert rule_set_from_config(rules.to_config(), rules.version) == rules
    assert LocatorConfig().rule_set() == rules


def test_extended_rule_set_adds_new_shape() -> None:
    accordion = SnapshotComponent("Accordion")
    content = accordion.add(SnapshotComponent("Panel"))
    registry, _ui = _application(accordion)
    rules = default_rule_set().extended(SkipSegment(frozenset({"Accordion"}), "AccordionItem"))
    locator = ComponentLocator(registry, rules=rules)

    assert locator.node_for_path("/Accordion[0]/AccordionItem[4]/Panel[0]") is content.element
    assert len(rules.rules) == len(default_rule_set().rules) + 1


def test_rule_from_config_parses_each_kind() -> None:
    assert rule_from_config({"rule": "skip_segment", "containers": "Grid", "segment": "Cell"}) == SkipSegment(
        frozenset({"Grid"}), "Cell"
    )
    assert rule_from_config({"rule": "force_index_zero", "containers": ["Tabs"]}) == ForceIndexZero(frozenset({"Tabs"}))
    wrapper = rule_from_config({"rule": "collapse_wrapper", "containers": ["Form"], "wrapper": "Slot"})
    assert wrapper == CollapseWrapper(frozenset({"Form"}), "Slot", "Caption")


@pytest.mark.parametrize(
    "entry",
    [
        {"rule": "rename", "containers": ["Grid"]},
        {"rule": "skip_segment", "containers": []},
        {"rule": "skip_segment", "containers": ["Grid"]},
        {"containers": ["Grid"]},
    ],
)
def test_invalid_rule_entries_are_rejected(entry: dict) -> None:
    with pytest.raises(ValueError):
        rule_from_config(entry)
