"""Main PyQt application entry point."""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from PyQt6.QtCore import QDate, QPoint, Qt, pyqtSignal
from PyQt6.QtGui import QAction, QActionGroup, QCloseEvent, QColor, QKeySequence
from PyQt6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QComboBox,
    QDateEdit,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QHeaderView,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMenu,
    QMessageBox,
    QSpinBox,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from .config import DEFAULT_SETTINGS, TimelineSettings
from .dates import default_repeat_until, format_range, to_iso, visible_days
from .drag import DragSession, DragState, pixels_to_days, translate
from .errors import TimelineError
from .lanes import RowLayout
from .models import DragMode, Ends, Frequency, GroupMode, LaneAssignment, RecurrenceRule, Scope, Task
from .planner import Planner
from .recurrence import infer_frequency
from .scope import has_following, requires_scope_prompt, series_of
from .storage import InMemoryRecordStore, load_tasks, save_tasks

logger = logging.getLogger(__name__)

GROUP_COLUMN = 0
_DRAG_HANDLE_TOLERANCE = 6
_GROUP_COLUMN_WIDTH = 180
_UNASSIGNED_LABEL = "Unassigned"
_BAR_COLORS = ["#1976d2", "#8d6e63", "#2e7d32", "#6a1b9a", "#ef6c00", "#00838f", "#c62828"]
_WEEKEND_COLOR = QColor("#f5f5f5")
_TODAY_COLOR = QColor("#fff8e1")


def bar_color(task: Task) -> QColor:
    """Stable colour per project so bars of one project match across rows."""
    if task.project_id is None:
        return QColor(_BAR_COLORS[0])
    index = sum(ord(char) for char in task.project_id) % len(_BAR_COLORS)
    return QColor(_BAR_COLORS[index])


@dataclass(slots=True)
class ActiveDrag:
    task_id: str
    row: int
    session: DragSession


class TimelineTableWidget(QTableWidget):
    """Grid with one row per (group, lane) and one column per visible day.

    Dragging a bar only repaints its row; the new dates are emitted through
    `reschedule_requested` on release and the owner answers with
    `finish_drag` once the store has accepted or rejected them.
    """

    reschedule_requested = pyqtSignal(str, object, object)
    task_activated = pyqtSignal(str)
    repeat_requested = pyqtSignal(str)
    duplicate_requested = pyqtSignal(str)
    rename_requested = pyqtSignal(str)
    delete_requested = pyqtSignal(str)

    def __init__(self, settings: TimelineSettings = DEFAULT_SETTINGS, parent: Optional[QWidget] = None) -> None:
        super().__init__(0, 1, parent)
        self.settings = settings
        self.timeline_start_col = GROUP_COLUMN + 1
        self.days: List[date] = []
        self._day_index: Dict[date, int] = {}
        self._row_assignments: List[List[LaneAssignment]] = []
        self._tasks: Dict[str, Task] = {}
        self._drag: Optional[ActiveDrag] = None
        self._today = date.today()
        self._setup_table()

    def _setup_table(self) -> None:
        self.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        self.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.customContextMenuRequested.connect(self._show_context_menu)
        self.verticalHeader().setVisible(False)
        self.setMouseTracking(True)

    # --- Layout ----------------------------------------------------------------

    def set_layout(self, rows: Sequence[RowLayout], today: Optional[date] = None) -> None:
        """Rebuild the grid from freshly packed rows."""
        if self._drag is not None and self._drag.session.state is DragState.DRAGGING:
            self.cancel_drag()
        today = today or date.today()
        self._today = today
        self._tasks = {item.task.id: item.task for row in rows for item in row.assignments}
        self.days = visible_days(today, [(task.start, task.end) for task in self._tasks.values()], week_aligned=True)
        self._day_index = {day: index for index, day in enumerate(self.days)}

        self._row_assignments = []
        labels: List[str] = []
        heights: List[int] = []
        for row in rows:
            lanes = max(1, row.lane_count)
            per_lane: List[List[LaneAssignment]] = [[] for _ in range(lanes)]
            for item in row.assignments:
                per_lane[item.lane].append(item)
            for lane in range(lanes):
                self._row_assignments.append(per_lane[lane])
                labels.append(self._group_label(row.key) if lane == 0 else "")
                heights.append(row.height // lanes)

        self.clear()
        self.setRowCount(len(self._row_assignments))
        self.setColumnCount(self.timeline_start_col + len(self.days))
        self.setHorizontalHeaderLabels(["Group"] + [str(day.day) for day in self.days])
        for offset, day in enumerate(self.days):
            header_item = self.horizontalHeaderItem(self.timeline_start_col + offset)
            if header_item is not None:
                header_item.setToolTip(to_iso(day))
        self._configure_column_widths()

        for table_row, label in enumerate(labels):
            self.setRowHeight(table_row, heights[table_row])
            self.setItem(table_row, GROUP_COLUMN, QTableWidgetItem(label))
            self._render_row(table_row)

        if self.rowCount() and today in self._day_index:
            self.scrollToItem(self.item(0, self.timeline_start_col + self._day_index[today]))

    def _group_label(self, key: Optional[str]) -> str:
        return _UNASSIGNED_LABEL if key is None else key

    def _configure_column_widths(self) -> None:
        header = self.horizontalHeader()
        for col in range(self.columnCount()):
            header.setSectionResizeMode(col, QHeaderView.ResizeMode.Fixed)
            width = _GROUP_COLUMN_WIDTH if col == GROUP_COLUMN else self.settings.day_width
            self.setColumnWidth(col, width)

    def _render_row(self, table_row: int, *, override: Optional[tuple] = None) -> None:
        """Paint one lane; ``override`` is (task_id, start, end) for a bar mid-drag."""
        today = self._today
        for offset, day in enumerate(self.days):
            col = self.timeline_start_col + offset
            item = self.item(table_row, col)
            if item is None:
                item = QTableWidgetItem("")
                self.setItem(table_row, col, item)
            item.setText("")
            item.setToolTip("")
            item.setData(Qt.ItemDataRole.UserRole, None)
            if day == today:
                item.setBackground(_TODAY_COLOR)
            elif day.weekday() >= 5:
                item.setBackground(_WEEKEND_COLOR)
            else:
                item.setBackground(QColor("white"))

        for assignment in self._row_assignments[table_row]:
            task = assignment.task
            start, end = task.start, task.end
            if override is not None and override[0] == task.id:
                start, end = override[1], override[2]
            self._paint_bar(table_row, task, start, end)

    def _paint_bar(self, table_row: int, task: Task, start: date, end: date) -> None:
        color = bar_color(task)
        tooltip = f"{task.title}\n{format_range(start, end)}"
        first = True
        for day in self.days[self._clamp_index(start):self._clamp_index(end) + 1]:
            if day < start or day > end:
                continue
            item = self.item(table_row, self.timeline_start_col + self._day_index[day])
            item.setBackground(color)
            item.setData(Qt.ItemDataRole.UserRole, task.id)
            item.setToolTip(tooltip)
            if first:
                item.setText(task.title)
                first = False

    def _clamp_index(self, value: date) -> int:
        if not self.days:
            return 0
        if value <= self.days[0]:
            return 0
        if value >= self.days[-1]:
            return len(self.days) - 1
        return self._day_index[value]

    def task_at(self, row: int, col: int) -> Optional[Task]:
        if row < 0 or col < self.timeline_start_col:
            return None
        item = self.item(row, col)
        if item is None:
            return None
        task_id = item.data(Qt.ItemDataRole.UserRole)
        return self._tasks.get(task_id) if task_id else None

    # --- Context menu ------------------------------------------------------------

    def _show_context_menu(self, position: QPoint) -> None:
        """Per-task actions (repeat/duplicate/rename/delete)."""
        index = self.indexAt(position)
        if not index.isValid():
            return
        task = self.task_at(index.row(), index.column())
        if task is None:
            return
        menu = QMenu(self)
        repeat_action = menu.addAction("Repeat...")
        duplicate_action = menu.addAction("Duplicate")
        rename_action = menu.addAction("Rename...")
        menu.addSeparator()
        delete_action = menu.addAction("Delete")
        action = menu.exec(self.viewport().mapToGlobal(position))
        if action == repeat_action:
            self.repeat_requested.emit(task.id)
        elif action == duplicate_action:
            self.duplicate_requested.emit(task.id)
        elif action == rename_action:
            self.rename_requested.emit(task.id)
        elif action == delete_action:
            self.delete_requested.emit(task.id)

    # Drag handling -----------------------------------------------------
    def mousePressEvent(self, event):  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton and self._drag is None:
            pointer_x = int(event.position().x())
            row = self.rowAt(int(event.position().y()))
            col = self.columnAt(pointer_x)
            task = self.task_at(row, col)
            if task is not None:
                session = DragSession(task.start, task.end, settings=self.settings)
                session.begin(self._drag_mode(task, pointer_x), pointer_x)
                self._drag = ActiveDrag(task_id=task.id, row=row, session=session)
                return
        super().mousePressEvent(event)

    def _drag_mode(self, task: Task, pointer_x: int) -> DragMode:
        # Grabbing near, but not exactly on, an edge still resizes.
        start_edge = self._day_left_edge(task.start)
        end_edge = self._day_right_edge(task.end)
        if start_edge is not None and abs(pointer_x - start_edge) <= _DRAG_HANDLE_TOLERANCE:
            return DragMode.RESIZE_LEFT
        if end_edge is not None and abs(pointer_x - end_edge) <= _DRAG_HANDLE_TOLERANCE:
            return DragMode.RESIZE_RIGHT
        return DragMode.MOVE

    def mouseMoveEvent(self, event):  # type: ignore[override]
        if self._drag is not None:
            session = self._drag.session
            if session.state is not DragState.DRAGGING:
                # Waiting on the commit; keep the released preview.
                return
            offset = session.update(event.position().x())
            visual_days = pixels_to_days(offset, session.day_width, session.threshold)
            start, end = translate(session.start, session.end, session.mode, visual_days)
            self._render_row(self._drag.row, override=(self._drag.task_id, start, end))
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):  # type: ignore[override]
        if self._drag is None:
            super().mouseReleaseEvent(event)
            return
        drag = self._drag
        outcome = drag.session.release()
        if not outcome.needs_commit:
            self._drag = None
            self._render_row(drag.row)
            if outcome.is_click:
                self.task_activated.emit(drag.task_id)
            return
        start, end = outcome.dates
        self.reschedule_requested.emit(drag.task_id, start, end)

    def keyPressEvent(self, event):  # type: ignore[override]
        if (
            event.key() == Qt.Key.Key_Escape
            and self._drag is not None
            and self._drag.session.state is DragState.DRAGGING
        ):
            self.cancel_drag()
            return
        super().keyPressEvent(event)

    def cancel_drag(self) -> None:
        """Abandon the drag in progress; persisted dates are left alone."""
        drag = self._drag
        if drag is None:
            return
        drag.session.cancel()
        self._drag = None
        self._render_row(drag.row)

    def finish_drag(self, succeeded: bool) -> None:
        """Close the committing drag; a failed commit repaints the old dates."""
        drag = self._drag
        if drag is None:
            return
        drag.session.finish(succeeded)
        self._drag = None
        if not succeeded and drag.row < self.rowCount():
            self._render_row(drag.row)

    def _day_left_edge(self, day: date) -> Optional[int]:
        """Translate a day into viewport pixels for drag math."""
        if day not in self._day_index:
            return None
        col = self.timeline_start_col + self._day_index[day]
        return max(0, self.columnViewportPosition(col))

    def _day_right_edge(self, day: date) -> Optional[int]:
        """Same as `_day_left_edge`, but returns the right-hand boundary."""
        if day not in self._day_index:
            return None
        col = self.timeline_start_col + self._day_index[day]
        return max(0, self.columnViewportPosition(col) + self.columnWidth(col))


class ScopeDialog(QMessageBox):
    """Ask how far an edit or delete on a repeated task should reach."""

    def __init__(self, action: str, offer_following: bool, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setIcon(QMessageBox.Icon.Question)
        self.setWindowTitle(f"{action} repeated task")
        self.setText(f"{action} only this task, this and following repeats, or the whole series?")
        if action == "Delete":
            self.setInformativeText("Previous repeats stay.")
        following = "This && following" if offer_following else "This && following (no later repeats)"
        self._buttons = {
            self.addButton("This task", QMessageBox.ButtonRole.AcceptRole): Scope.SINGLE,
            self.addButton(following, QMessageBox.ButtonRole.AcceptRole): Scope.FOLLOWING,
            self.addButton("All in series", QMessageBox.ButtonRole.AcceptRole): Scope.ALL,
        }
        self.addButton(QMessageBox.StandardButton.Cancel)

    def scopes(self) -> List[Scope]:
        return list(self._buttons.values())

    def choose(self) -> Optional[Scope]:
        self.exec()
        return self._buttons.get(self.clickedButton())


class RepeatDialog(QDialog):
    """Collect a repeat rule for the selected task."""

    def __init__(self, task: Task, series: Sequence[Task], parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Repeat task")
        self.frequency = QComboBox()
        for frequency in Frequency:
            self.frequency.addItem(frequency.value.capitalize(), frequency.value)
        self.ends = QComboBox()
        for ends in Ends:
            self.ends.addItem(ends.value.capitalize(), ends.value)
        self.until = QDateEdit()
        self.until.setCalendarPopup(True)
        self.until.setDisplayFormat("yyyy-MM-dd")
        self.count = QSpinBox()
        self.count.setRange(0, 500)
        self.count.setValue(4)

        until = default_repeat_until(task.start)
        inferred = infer_frequency(series)
        if inferred is not Frequency.NONE:
            self.frequency.setCurrentIndex(self.frequency.findData(inferred.value))
            until = max(item.start for item in series)
        self.until.setDate(QDate(until.year, until.month, until.day))

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(f"{task.title} ({format_range(task.start, task.end)})"))
        form = QFormLayout()
        form.addRow("Repeats", self.frequency)
        form.addRow("Ends", self.ends)
        form.addRow("On", self.until)
        form.addRow("After (times)", self.count)
        layout.addLayout(form)
        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)
        self.ends.currentIndexChanged.connect(self._sync_enabled)
        self._sync_enabled()

    def _sync_enabled(self) -> None:
        ends = Ends(self.ends.currentData())
        self.until.setEnabled(ends is Ends.ON)
        self.count.setEnabled(ends is Ends.AFTER)

    def rule(self) -> RecurrenceRule:
        ends = Ends(self.ends.currentData())
        picked = self.until.date()
        return RecurrenceRule(
            frequency=Frequency(self.frequency.currentData()),
            ends=ends,
            until=date(picked.year(), picked.month(), picked.day()) if ends is Ends.ON else None,
            count=self.count.value() if ends is Ends.AFTER else None,
        )


class MainWindow(QMainWindow):
    """Primary window with menus and the timeline grid."""

    def __init__(self, planner: Optional[Planner] = None, settings: TimelineSettings = DEFAULT_SETTINGS) -> None:
        super().__init__()
        self.setWindowTitle("Team Timeline")
        self.current_path: Optional[Path] = None
        self.planner = planner or Planner(InMemoryRecordStore(), settings=settings)
        self.table = TimelineTableWidget(self.planner.settings)
        # Re-layout whenever the planner commits a change.
        self.planner.subscribe(self.table.set_layout)
        self.table.reschedule_requested.connect(self._handle_reschedule)
        self.table.task_activated.connect(self._show_task)
        self.table.repeat_requested.connect(self.action_repeat)
        self.table.duplicate_requested.connect(self.action_duplicate)
        self.table.rename_requested.connect(self.action_rename)
        self.table.delete_requested.connect(self.action_delete)
        self._build_layout()
        self._build_menu()
        self.table.set_layout(self.planner.layout())
        self.resize(1200, 700)

    def _build_layout(self) -> None:
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.addWidget(self.table)
        self.setCentralWidget(container)

    def _build_menu(self) -> None:
        """Create File/View menus along with shortcuts."""
        menu = self.menuBar()
        file_menu = menu.addMenu("File")

        new_action = QAction("New", self)
        new_action.triggered.connect(self.action_new)
        file_menu.addAction(new_action)

        open_action = QAction("Open", self)
        open_action.triggered.connect(self.action_open)
        file_menu.addAction(open_action)

        save_action = QAction("Save", self)
        save_action.triggered.connect(self.action_save)
        file_menu.addAction(save_action)

        file_menu.addSeparator()
        quit_action = QAction("Quit", self)
        quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        view_menu = menu.addMenu("View")
        group = QActionGroup(self)
        for mode, label in ((GroupMode.ASSIGNEE, "Group by assignee"), (GroupMode.PROJECT, "Group by project")):
            action = QAction(label, self, checkable=True)
            action.setChecked(mode is self.planner.group_mode)
            action.triggered.connect(lambda _checked, mode=mode: self.planner.set_group_mode(mode))
            group.addAction(action)
            view_menu.addAction(action)

    def _report(self, title: str, exc: Exception) -> None:
        logger.warning("%s: %s", title, exc)
        QMessageBox.warning(self, title, str(exc))

    def _ask_scope(self, task: Task, action: str) -> Optional[Scope]:
        """Return the scope for a mutation; plain tasks skip the prompt."""
        if not requires_scope_prompt(task):
            return Scope.SINGLE
        dialog = ScopeDialog(action, has_following(task, self.planner.tasks), self)
        return dialog.choose()

    # Timeline events ---------------------------------------------------
    def _handle_reschedule(self, task_id: str, start: date, end: date) -> None:
        task = self.planner.get(task_id)
        scope = self._ask_scope(task, "Reschedule")
        if scope is None:
            self.table.finish_drag(False)
            return
        try:
            self.planner.update_task(task_id, {"start": start, "end": end}, scope)
        except TimelineError as exc:
            self.table.finish_drag(False)
            self._report("Reschedule failed", exc)
            return
        self.table.finish_drag(True)
        self.statusBar().showMessage(f"Moved {task.title} to {format_range(start, end)}", 3000)

    def _show_task(self, task_id: str) -> None:
        task = self.planner.get(task_id)
        details = [format_range(task.start, task.end)]
        if task.assignee_ids:
            details.append("Assignees: " + ", ".join(task.assignee_ids))
        if task.project_id:
            details.append(f"Project: {task.project_id}")
        if task.repeat_id:
            series = series_of(task, self.planner.tasks)
            details.append(f"Repeats: {infer_frequency(series).value} ({len(series)} in series)")
        QMessageBox.information(self, task.title, "\n".join(details))

    def action_repeat(self, task_id: str) -> None:
        task = self.planner.get(task_id)
        dialog = RepeatDialog(task, series_of(task, self.planner.tasks), self)
        if dialog.exec() != QDialog.DialogCode.Accepted:
            return
        try:
            created = self.planner.create_repeats(task_id, dialog.rule())
        except TimelineError as exc:
            self._report("Repeat failed", exc)
            return
        self.statusBar().showMessage(f"Created {len(created)} tasks.", 3000)

    def action_duplicate(self, task_id: str) -> None:
        try:
            copy = self.planner.duplicate_task(task_id)
        except TimelineError as exc:
            self._report("Duplicate failed", exc)
            return
        self.statusBar().showMessage(f"Duplicated to {format_range(copy.start, copy.end)}", 3000)

    def action_rename(self, task_id: str) -> None:
        task = self.planner.get(task_id)
        title, ok = QInputDialog.getText(self, "Rename task", "Title", text=task.title)
        if not ok or not title.strip() or title.strip() == task.title:
            return
        scope = self._ask_scope(task, "Rename")
        if scope is None:
            return
        try:
            self.planner.update_task(task_id, {"title": title.strip()}, scope)
        except TimelineError as exc:
            self._report("Rename failed", exc)

    def action_delete(self, task_id: str) -> None:
        task = self.planner.get(task_id)
        if requires_scope_prompt(task):
            scope = self._ask_scope(task, "Delete")
        elif QMessageBox.question(self, "Delete task?", f"Delete {task.title}?") == QMessageBox.StandardButton.Yes:
            scope = Scope.SINGLE
        else:
            scope = None
        if scope is None:
            return
        try:
            removed = self.planner.delete_task(task_id, scope)
        except TimelineError as exc:
            self._report("Delete failed", exc)
            return
        self.statusBar().showMessage(f"Deleted {len(removed)} task(s)", 3000)

    # Menu actions ------------------------------------------------------
    def action_new(self) -> None:
        """Reset the timeline to a clean slate."""
        self.planner.replace_all([])
        self.current_path = None
        self.statusBar().showMessage("Started new timeline", 3000)

    def action_open(self) -> None:
        """Load a saved CSV snapshot into the planner."""
        path, _ = QFileDialog.getOpenFileName(
            self,
            "Open timeline",
            filter="CSV Files (*.csv)",
        )
        if not path:
            return
        try:
            tasks = load_tasks(path)
            self.planner.replace_all(tasks)
        except (OSError, ValueError, TimelineError) as exc:
            QMessageBox.critical(self, "Open failed", str(exc))
            return
        self.current_path = Path(path)
        self.statusBar().showMessage(f"Loaded timeline from {path}", 3000)

    def action_save(self) -> None:
        """Write the current snapshot to CSV."""
        if not self.current_path:
            path, _ = QFileDialog.getSaveFileName(
                self,
                "Save timeline",
                filter="CSV Files (*.csv)",
                initialFilter="CSV Files (*.csv)",
            )
            if not path:
                return
            self.current_path = Path(path)
        save_tasks(self.current_path, self.planner.tasks)
        self.statusBar().showMessage(f"Saved to {self.current_path}", 3000)

    def closeEvent(self, event: QCloseEvent) -> None:  # pragma: no cover - requires UI
        """Ask for confirmation before closing the application."""
        if QMessageBox.question(self, "Quit", "Close Team Timeline?") == QMessageBox.StandardButton.Yes:
            event.accept()
        else:
            event.ignore()


def run() -> None:
    """Entry point used by `python -m team_timeline`."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    app = QApplication(sys.argv)
    window = MainWindow()
    if len(sys.argv) > 1:
        try:
            window.planner.replace_all(load_tasks(sys.argv[1]))
            window.current_path = Path(sys.argv[1])
        except (OSError, ValueError) as exc:
            logger.warning("Could not open %s: %s", sys.argv[1], exc)
    window.show()
    app.exec()


if __name__ == "__main__":
    run()
