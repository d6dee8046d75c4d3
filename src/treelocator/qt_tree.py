from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterator

from PySide6.QtCore import QEvent, QObject, Qt
from PySide6.QtWidgets import QApplication, QMainWindow, QWidget

from .models import NodeKind, SubPartProvider

LOGGER = logging.getLogger("treelocator.qt")

ANONYMOUS_ID_PREFIX = "qt:"
TRACKED_WINDOW_TYPES = (Qt.WindowType.Window, Qt.WindowType.Dialog)


def _child_widgets(widget: QWidget) -> list[QWidget]:
    return [child for child in widget.children() if isinstance(child, QWidget) and not child.isWindow()]


@dataclass(frozen=True, slots=True)
class QtElement:
    widget: QWidget

    @property
    def parent_element(self) -> QtElement | None:
        if self.widget.isWindow():
            return None
        parent = self.widget.parentWidget()
        return QtElement(parent) if parent is not None else None

    @property
    def child_elements(self) -> tuple[QtElement, ...]:
        return tuple(QtElement(child) for child in _child_widgets(self.widget))


@dataclass(frozen=True, slots=True)
class QtComponent:
    widget: QWidget
    registry: QtRegistry

    @property
    def type_name(self) -> str:
        return type(self.widget).__name__

    @property
    def element(self) -> QtElement:
        return QtElement(self.widget)

    @property
    def parent(self) -> QtComponent | None:
        if self.widget.isWindow():
            return None
        parent = self.widget.parentWidget()
        return QtComponent(parent, self.registry) if parent is not None else None

    @property
    def children(self) -> tuple[QtComponent, ...]:
        return tuple(QtComponent(child, self.registry) for child in _child_widgets(self.widget))

    @property
    def kind(self) -> NodeKind:
        return self.registry.kind_of(self.widget)

    @property
    def debug_id(self) -> str | None:
        return self.widget.accessibleName() or None

    @property
    def sub_parts(self) -> SubPartProvider | None:
        return None

    def is_displayed(self) -> bool:
        return self.widget.isVisible()


class WindowTracker(QObject):
    """Records top-level windows in the order they are shown.

    The tracker has no Qt parent. Its owner removes it from the application
    with :meth:`detach`; deleting the tracker also removes the filter.
    """

    def __init__(self, main_window: QWidget) -> None:
        super().__init__()
        self._main_window = main_window
        self._windows: list[QWidget] = []
        self._application: QApplication | None = None

    def attach(self, application: QApplication) -> None:
        if self._application is None:
            application.installEventFilter(self)
            self._application = application

    def detach(self) -> None:
        if self._application is not None:
            self._application.removeEventFilter(self)
            self._application = None
        self._windows.clear()

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        if isinstance(watched, QWidget) and watched is not self._main_window and watched.isWindow():
            if watched.windowType() in TRACKED_WINDOW_TYPES:
                if event.type() == QEvent.Type.Show:
                    self.window_shown(watched)
                elif event.type() in (QEvent.Type.Hide, QEvent.Type.Close):
                    self.window_hidden(watched)
        return False

    def window_shown(self, window: QWidget) -> None:
        if window not in self._windows:
            self._windows.append(window)
            LOGGER.debug("Tracking window %s as #%d.", type(window).__name__, len(self._windows) - 1)

    def window_hidden(self, window: QWidget) -> None:
        if window in self._windows:
            self._windows.remove(window)

    def windows(self) -> list[QWidget]:
        return list(self._windows)


class QtRegistry:
    """Connector registry over a live PySide6 widget tree.

    The main window is the root panel and its central widget the application
    root. A widget's ``objectName()`` is its connector id when no other widget
    in the tree shares it; other widgets get a per-process id that is only
    meaningful while the widget lives. Call :meth:`close` when done.
    """

    def __init__(self, main_window: QMainWindow, app: QApplication | None = None) -> None:
        self.main_window = main_window
        self.tracker = WindowTracker(main_window)
        application = app or QApplication.instance()
        if application is not None:
            self.tracker.attach(application)
        main_window.destroyed.connect(self.tracker.detach)

    def close(self) -> None:
        self.tracker.detach()

    def kind_of(self, widget: QWidget) -> NodeKind:
        if widget is self.main_window:
            return NodeKind.ROOT_PANEL
        if widget is self.main_window.centralWidget():
            return NodeKind.APPLICATION_ROOT
        if widget in self.tracker.windows():
            return NodeKind.SECONDARY_WINDOW
        return NodeKind.COMPONENT

    def connector_id_for_element(self, element: QtElement) -> str | None:
        if not isinstance(element, QtElement):
            return None
        name = element.widget.objectName()
        # Qt reuses names such as qt_scrollarea_viewport across widgets.
        if name and not name.startswith(ANONYMOUS_ID_PREFIX) and len(self._widgets_named(name)) == 1:
            return name
        return _anonymous_id(element.widget)

    def component_for_id(self, connector_id: str) -> QtComponent | None:
        if connector_id.startswith(ANONYMOUS_ID_PREFIX):
            for widget in self._iter_widgets():
                if _anonymous_id(widget) == connector_id:
                    return QtComponent(widget, self)
            return None

        named = self._widgets_named(connector_id)
        if len(named) != 1:
            if named:
                LOGGER.debug("Connector id %r is shared by %d widgets.", connector_id, len(named))
            return None
        return QtComponent(named[0], self)

    def root_panel(self) -> QtComponent:
        return QtComponent(self.main_window, self)

    def application_root(self) -> QtComponent | None:
        central = self.main_window.centralWidget()
        return QtComponent(central, self) if central is not None else None

    def secondary_windows(self) -> list[QtComponent]:
        return [QtComponent(window, self) for window in self.tracker.windows() if window.isVisible()]

    def context_menu(self) -> QtComponent | None:
        popup = QApplication.activePopupWidget()
        return QtComponent(popup, self) if popup is not None else None

    def _iter_widgets(self) -> Iterator[QWidget]:
        pending: list[QWidget] = [self.main_window, *self.tracker.windows()]
        while pending:
            widget = pending.pop(0)
            yield widget
            pending.extend(_child_widgets(widget))

    def _widgets_named(self, name: str) -> list[QWidget]:
        return [widget for widget in self._iter_widgets() if widget.objectName() == name]


def _anonymous_id(widget: QWidget) -> str:
    return f"{ANONYMOUS_ID_PREFIX}{id(widget):x}"
