from __future__ import annotations

from .compat import CompatibilityRuleSet, default_rule_set
from .config import LocatorConfig, load_locator_config
from .grammar import ParsedPath, PathSegment, parse_path
from .locator import ComponentLocator
from .models import (
    ComponentNode,
    ConnectorRegistry,
    ElementNode,
    LocatorError,
    MalformedPathError,
    NodeKind,
    NodeNotFoundError,
    Resolution,
    SubPartProvider,
)

__version__ = "0.1.0"

__all__ = [
    "CompatibilityRuleSet",
    "ComponentLocator",
    "ComponentNode",
    "ConnectorRegistry",
    "ElementNode",
    "LocatorConfig",
    "LocatorError",
    "MalformedPathError",
    "NodeKind",
    "NodeNotFoundError",
    "ParsedPath",
    "PathSegment",
    "Resolution",
    "SubPartProvider",
    "default_rule_set",
    "load_locator_config",
    "parse_path",
]
