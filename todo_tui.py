#!/usr/bin/env python3
# todo_tui: full-screen terminal todo list backed by a JSON file
#
# Hotkeys (browse)
#   q       save and quit
#   n       add tasks (Enter saves a task, Esc stops adding)
#   s       search by prefix (typing filters live, Esc stops searching)
#   ↑/↓     move selection
#   Enter   check/uncheck the selected task
#   Delete  delete the selected task
#   Esc     clear selection
#
# Environment
# - TODO_DB: path of the JSON task file (or pass --db / a YAML --config)
#
# Notes
# - The file is read once at startup and written once, on quit.
# - Search matches the start of the task text, case-sensitively.

from __future__ import annotations

import argparse
import contextlib
import json
import os
from pathlib import Path
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple, Union

import yaml
from prompt_toolkit import Application
from prompt_toolkit.data_structures import Point
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import Frame
import logging
from logging.handlers import RotatingFileHandler


logger = logging.getLogger('todo_tui')

ENV_DB_VAR = "TODO_DB"
DEFAULT_LOG_PATH = os.path.expanduser("~/.todo_tui.log")

EXIT_CONFIG = 1
EXIT_LOAD = 2
EXIT_SAVE = 3
EXIT_RUNTIME = 4


# -----------------------------
# Config
# -----------------------------
class ConfigError(ValueError):
    """Startup configuration is missing or unusable."""


@dataclass
class Config:
    db_path: Path
    create: bool = False
    log_level: str = "ERROR"
    log_path: str = DEFAULT_LOG_PATH


def _load_config_file(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Config: cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config: {path} is not valid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config: {path} must contain a mapping at the top level.")
    return raw


def load_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Resolve settings: CLI flags, then the YAML file, then the environment."""
    if environ is None:
        environ = os.environ
    file_cfg = _load_config_file(args.config) if getattr(args, "config", None) else {}
    db_path = getattr(args, "db", None) or file_cfg.get("db_path") or environ.get(ENV_DB_VAR)
    if not db_path:
        raise ConfigError(
            f"No task file configured. Set {ENV_DB_VAR} to the path of your JSON task file "
            "(or pass --db PATH / a --config file with db_path)."
        )
    log_level = getattr(args, "log_level", None) or file_cfg.get("log_level") or "ERROR"
    log_path = getattr(args, "log_file", None) or file_cfg.get("log_file") or DEFAULT_LOG_PATH
    return Config(
        db_path=Path(os.path.expanduser(str(db_path))),
        create=bool(getattr(args, "create", False)),
        log_level=str(log_level),
        log_path=os.path.expanduser(str(log_path)),
    )


def setup_logging(log_level: str = 'ERROR', log_path: str = DEFAULT_LOG_PATH) -> None:
    # Always reset handlers so CLI --log-level reliably controls file output.
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.DEBUG)
    d = os.path.dirname(log_path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)
    fh = RotatingFileHandler(log_path, maxBytes=2000000, backupCount=2, encoding='utf-8')
    lvl = getattr(logging, log_level.upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.ERROR
    fh.setLevel(lvl)
    fh.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
    logger.addHandler(fh)


# -----------------------------
# Task store
# -----------------------------
class StoreError(Exception):
    """The task file could not be read, parsed or written."""


@dataclass
class Task:
    text: str
    completed: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {"text": self.text, "completed": self.completed}


def _task_from_raw(raw: object, position: int) -> Task:
    if not isinstance(raw, dict):
        raise StoreError(f"Entry {position}: expected an object, got {type(raw).__name__}")
    text = raw.get("text")
    completed = raw.get("completed")
    if not isinstance(text, str):
        raise StoreError(f"Entry {position}: 'text' must be a string")
    if not isinstance(completed, bool):
        raise StoreError(f"Entry {position}: 'completed' must be true or false")
    return Task(text=text, completed=completed)


class TaskStore:
    """JSON array file holding the whole task list.

    The file is read once by :meth:`load` and replaced as a whole by
    :meth:`save`; there are no partial writes.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def create_if_missing(self) -> bool:
        if self.path.exists():
            return False
        self.save([])
        logger.info("Created empty task file %s", self.path)
        return True

    def load(self) -> List[Task]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                contents = f.read()
        except OSError as exc:
            raise StoreError(f"Cannot read {self.path}: {exc.strerror or exc}") from exc
        try:
            raw = json.loads(contents)
        except json.JSONDecodeError as exc:
            raise StoreError(f"{self.path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, list):
            raise StoreError(f"{self.path} must contain a JSON array of tasks")
        tasks = [_task_from_raw(item, pos) for pos, item in enumerate(raw)]
        logger.debug("Loaded %d tasks from %s", len(tasks), self.path)
        return tasks

    def save(self, tasks: List[Task]) -> None:
        payload = json.dumps([t.to_dict() for t in tasks], ensure_ascii=False, separators=(",", ":"))
        directory = self.path.parent
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(directory))
        except OSError as exc:
            raise StoreError(f"Cannot write {self.path}: {exc.strerror or exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            if self.path.exists():
                shutil.copymode(self.path, tmp_path)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise StoreError(f"Cannot write {self.path}: {exc.strerror or exc}") from exc
        logger.debug("Saved %d tasks to %s", len(tasks), self.path)


# -----------------------------
# Application state
# -----------------------------
@dataclass
class Normal:
    selected: Optional[int] = None


@dataclass
class Adding:
    draft: str = ""


@dataclass
class Search:
    pass


Mode = Union[Normal, Adding, Search]


@dataclass
class AppState:
    tasks: List[Task] = field(default_factory=list)
    mode: Mode = field(default_factory=Normal)
    # Outlives the Search mode: the filter stays on after Esc.
    search: str = ""

    @property
    def selected(self) -> Optional[int]:
        return self.mode.selected if isinstance(self.mode, Normal) else None

    @property
    def draft(self) -> str:
        return self.mode.draft if isinstance(self.mode, Adding) else ""

    @property
    def mode_name(self) -> str:
        if isinstance(self.mode, Adding):
            return "adding"
        if isinstance(self.mode, Search):
            return "search"
        return "normal"


# -----------------------------
# Input modes
# -----------------------------
class KeyKind(Enum):
    PRESS = "press"
    REPEAT = "repeat"
    RELEASE = "release"


class Key(Enum):
    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    ESCAPE = "escape"
    BACKSPACE = "backspace"
    DELETE = "delete"
    CHAR = "char"
    OTHER = "other"


@dataclass(frozen=True)
class KeyEvent:
    key: Key
    char: str = ""
    kind: KeyKind = KeyKind.PRESS

    @classmethod
    def typed(cls, char: str) -> "KeyEvent":
        return cls(Key.CHAR, char)


def key_event_from_data(data: str) -> KeyEvent:
    """Map raw key data to a typed character, or OTHER for control input."""
    if len(data) == 1 and data.isprintable():
        return KeyEvent.typed(data)
    return KeyEvent(Key.OTHER, data)


class Outcome(Enum):
    CONTINUE = "continue"
    QUIT = "quit"


def _switch_mode(state: AppState, mode: Mode) -> None:
    logger.debug("mode %s -> %s", state.mode_name, type(mode).__name__.lower())
    state.mode = mode


def _step(selected: Optional[int], delta: int, count: int) -> Optional[int]:
    if count == 0:
        return None
    if selected is None:
        return 0
    return max(0, min(count - 1, selected + delta))


def _handle_normal(state: AppState, mode: Normal, event: KeyEvent) -> Outcome:
    if event.key is Key.CHAR:
        if event.char == "q":
            return Outcome.QUIT
        if event.char == "n":
            _switch_mode(state, Adding())
        elif event.char == "s":
            _switch_mode(state, Search())
        return Outcome.CONTINUE

    rows = project(state.tasks, state.search)
    selected = mode.selected
    if selected is not None and selected >= len(rows):
        selected = None

    if event.key is Key.UP:
        mode.selected = _step(mode.selected, -1, len(rows))
    elif event.key is Key.DOWN:
        mode.selected = _step(mode.selected, 1, len(rows))
    elif event.key is Key.DELETE and selected is not None:
        removed = state.tasks.pop(rows[selected].index)
        logger.debug("deleted task %r", removed.text)
        remaining = len(rows) - 1
        target = selected - 1 if selected > 0 else 0
        mode.selected = min(target, remaining - 1) if remaining else None
    elif event.key is Key.ENTER and selected is not None:
        task = state.tasks[rows[selected].index]
        task.completed = not task.completed
        logger.debug("toggled task %r completed=%s", task.text, task.completed)
    elif event.key is Key.ESCAPE:
        mode.selected = None
    return Outcome.CONTINUE


def _handle_adding(state: AppState, mode: Adding, event: KeyEvent) -> None:
    if event.key is Key.ESCAPE:
        _switch_mode(state, Normal())
    elif event.key is Key.CHAR:
        mode.draft += event.char
    elif event.key is Key.BACKSPACE:
        mode.draft = mode.draft[:-1]
    elif event.key is Key.ENTER and mode.draft:
        state.tasks.append(Task(text=mode.draft))
        logger.debug("added task %r", mode.draft)
        mode.draft = ""


def _handle_search(state: AppState, event: KeyEvent) -> None:
    if event.key is Key.ESCAPE:
        _switch_mode(state, Normal())
    elif event.key is Key.CHAR:
        state.search += event.char
    elif event.key is Key.BACKSPACE:
        state.search = state.search[:-1]


def handle_key(state: AppState, event: KeyEvent) -> Outcome:
    """Apply one key event to ``state``.

    Only fresh presses count; repeats and releases are dropped. Returns
    ``Outcome.QUIT`` when the user asked to save and leave, which is left
    to the caller.
    """
    if event.kind is not KeyKind.PRESS:
        return Outcome.CONTINUE
    mode = state.mode
    if isinstance(mode, Normal):
        return _handle_normal(state, mode, event)
    if isinstance(mode, Adding):
        _handle_adding(state, mode, event)
    else:
        _handle_search(state, event)
    return Outcome.CONTINUE


# -----------------------------
# List projection
# -----------------------------
@dataclass(frozen=True)
class DisplayItem:
    index: int          # position in the unfiltered task list
    completed: bool
    prefix: str         # matched search prefix, highlighted
    rest: str

    @property
    def text(self) -> str:
        return self.prefix + self.rest


def matches(text: str, search: str) -> bool:
    return not search or text.startswith(search)


def project(tasks: List[Task], search: str) -> List[DisplayItem]:
    cut = len(search)
    return [
        DisplayItem(index=i, completed=t.completed, prefix=t.text[:cut], rest=t.text[cut:])
        for i, t in enumerate(tasks)
        if matches(t.text, search)
    ]


# -----------------------------
# Rendering
# -----------------------------
BASE_STYLE: Dict[str, str] = {
    'frame.border': '#5f5f5f',
    'frame.label': 'bold #ffd75f',
    'input': '#f0f0f0',
    'input.active': 'ansiyellow',
    'task': '#f0f0f0',
    'task.done': 'strike',
    'task.match': 'bold ansiyellow',
    'task.selected': 'bold #000000 bg:ansiyellow',
    'list.empty': 'italic #808080',
    'help': '#d0d0d0',
    'help.key': 'bold #ffffff',
    'help.filter': '#87d7ff',
}

POINTER = "->"
DONE_MARK = "✔  "
OPEN_MARK = "   "

HELP_ITEMS: Dict[str, List[Tuple[str, str]]] = {
    'normal': [
        ("q", "exit"),
        ("n", "new task"),
        ("s", "search"),
        ("Enter", "check/uncheck task"),
        ("↑/↓", "navigate list"),
        ("Delete", "delete task"),
        ("Esc", "clear selection"),
    ],
    'adding': [("Esc", "stop adding"), ("Enter", "save task")],
    'search': [("Esc", "stop searching")],
}


def build_list_fragments(items: List[DisplayItem], selected: Optional[int], filtering: bool = False) -> List[Tuple[str, str]]:
    if not items:
        hint = "No tasks match the search." if filtering else "No tasks yet. Press n to add one."
        return [("class:list.empty", hint)]
    frags: List[Tuple[str, str]] = []
    for row, item in enumerate(items):
        chosen = row == selected
        row_style = "class:task.selected" if chosen else "class:task"
        text_style = row_style + " class:task.done" if item.completed else row_style
        if row:
            frags.append(("", "\n"))
        frags.append((row_style, POINTER if chosen else " " * len(POINTER)))
        frags.append((row_style, DONE_MARK if item.completed else OPEN_MARK))
        if item.prefix:
            frags.append((text_style + " class:task.match", item.prefix))
        if item.rest:
            frags.append((text_style, item.rest))
    return frags


def build_help_fragments(state: AppState) -> List[Tuple[str, str]]:
    frags: List[Tuple[str, str]] = []
    for i, (key, label) in enumerate(HELP_ITEMS[state.mode_name]):
        if i:
            frags.append(("class:help", " | "))
        frags.append(("class:help.key", key))
        frags.append(("class:help", f" {label}"))
    if state.search and not isinstance(state.mode, Search):
        frags.append(("class:help.filter", f"   filter: {state.search}"))
    return frags


def build_input_fragments(value: str) -> List[Tuple[str, str]]:
    # Cursor columns are character indexes that the window maps to cells;
    # the trailing blank gives the end-of-text column a cell to map to.
    return [("", value), ("", " ")]


# -----------------------------
# UI
# -----------------------------
NAMED_KEYS: Dict[str, Key] = {
    'up': Key.UP,
    'down': Key.DOWN,
    'enter': Key.ENTER,
    'backspace': Key.BACKSPACE,
    'delete': Key.DELETE,
}


def _save_on_quit(state: AppState, store: TaskStore) -> Optional[StoreError]:
    try:
        store.save(state.tasks)
    except StoreError as exc:
        logger.error("Save failed: %s", exc)
        return exc
    logger.info("Saved %d tasks on quit", len(state.tasks))
    return None


def build_application(state: AppState, store: TaskStore) -> Application:
    """Full-screen list with a search box above and a new-task box below.

    Key handling goes through :func:`handle_key`; the windows only read
    ``state``. The application's result is ``None`` after a clean quit or
    the :class:`StoreError` raised while saving.
    """
    is_adding = Condition(lambda: isinstance(state.mode, Adding))
    is_search = Condition(lambda: isinstance(state.mode, Search))

    search_window = Window(
        content=FormattedTextControl(
            text=lambda: build_input_fragments(state.search),
            focusable=True,
            get_cursor_position=lambda: Point(x=len(state.search), y=0),
        ),
        height=1,
        style=lambda: 'class:input.active' if is_search() else 'class:input',
        always_hide_cursor=~is_search,
    )
    list_window = Window(
        content=FormattedTextControl(
            text=lambda: build_list_fragments(project(state.tasks, state.search), state.selected, bool(state.search)),
            focusable=True,
            get_cursor_position=lambda: Point(x=0, y=state.selected or 0),
        ),
        wrap_lines=False,
        always_hide_cursor=True,
    )
    draft_window = Window(
        content=FormattedTextControl(
            text=lambda: build_input_fragments(state.draft),
            focusable=True,
            get_cursor_position=lambda: Point(x=len(state.draft), y=0),
        ),
        height=1,
        style=lambda: 'class:input.active' if is_adding() else 'class:input',
        always_hide_cursor=~is_adding,
    )
    help_window = Window(
        content=FormattedTextControl(text=lambda: build_help_fragments(state)),
        height=1,
        style='class:help',
    )
    root = HSplit([
        Frame(search_window, title="Search"),
        Frame(list_window, title="Tasks"),
        Frame(draft_window, title="New Task"),
        help_window,
    ])

    def focus_target() -> Window:
        if isinstance(state.mode, Adding):
            return draft_window
        if isinstance(state.mode, Search):
            return search_window
        return list_window

    kb = KeyBindings()

    def dispatch(event, key_event: KeyEvent) -> None:
        if handle_key(state, key_event) is Outcome.QUIT:
            event.app.exit(result=_save_on_quit(state, store))
            return
        event.app.layout.focus(focus_target())

    for key_name, key in NAMED_KEYS.items():

        @kb.add(key_name)
        def _(event, key=key):
            dispatch(event, KeyEvent(key))

    # Esc is also a prefix of longer sequences; handle it without waiting.
    @kb.add('escape', eager=True)
    def _(event):
        dispatch(event, KeyEvent(Key.ESCAPE))

    # Unfiltered so a paste in browse mode never falls through to Keys.Any.
    @kb.add(Keys.BracketedPaste)
    def _(event):
        if isinstance(state.mode, Normal):
            return
        for ch in event.data:
            if ch.isprintable():
                dispatch(event, KeyEvent.typed(ch))

    @kb.add(Keys.Any)
    def _(event):
        dispatch(event, key_event_from_data(event.data))

    return Application(
        layout=Layout(root, focused_element=list_window),
        key_bindings=kb,
        style=Style.from_dict(BASE_STYLE),
        full_screen=True,
    )


def run_ui(state: AppState, store: TaskStore) -> Optional[StoreError]:
    # prompt_toolkit restores the terminal (raw mode, alternate screen) on
    # every way out of run(), including exceptions.
    app = build_application(state, store)
    return app.run()


# -----------------------------
# CLI
# -----------------------------
def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Terminal todo list stored in a JSON file")
    ap.add_argument("--db", help=f"Path to the JSON task file (default: ${ENV_DB_VAR})")
    ap.add_argument("--config", help="Path to a YAML config with db_path / log_level / log_file")
    ap.add_argument("--create", action="store_true", help="Create an empty task file if it does not exist")
    ap.add_argument("--log-level", default=None, help="File log level (DEBUG, INFO, WARNING, ERROR)")
    ap.add_argument("--log-file", default=None, help=f"Log file path (default {DEFAULT_LOG_PATH})")
    ap.add_argument("--no-ui", action="store_true", help="Print a summary of the task file and exit")
    return ap


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)

    # Everything that can fail on bad input happens before the terminal is touched.
    try:
        cfg = load_config(args)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        sys.exit(EXIT_CONFIG)
    try:
        setup_logging(cfg.log_level, cfg.log_path)
    except OSError as e:
        print(f"Cannot open log file {cfg.log_path}: {e.strerror or e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG)

    store = TaskStore(cfg.db_path)
    try:
        if cfg.create:
            store.create_if_missing()
        tasks = store.load()
    except StoreError as e:
        logger.error("Load failed: %s", e)
        print(f"Failed to load tasks: {e}", file=sys.stderr)
        sys.exit(EXIT_LOAD)

    if args.no_ui:
        done_ct = sum(1 for t in tasks if t.completed)
        print(f"Tasks: {len(tasks)} (done {done_ct})")
        return

    state = AppState(tasks=tasks)
    try:
        save_error = run_ui(state, store)
    except Exception as e:
        logger.exception("Terminal UI failed: %s", e)
        print(f"Terminal error: {e}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME)
    if save_error is not None:
        print(f"Failed to save tasks: {save_error}", file=sys.stderr)
        sys.exit(EXIT_SAVE)


if __name__ == "__main__":
    main()
