import todo_tui as tt

NAMED_KEYS = {
    'up': tt.Key.UP,
    'down': tt.Key.DOWN,
    'enter': tt.Key.ENTER,
    'esc': tt.Key.ESCAPE,
    'backspace': tt.Key.BACKSPACE,
    'delete': tt.Key.DELETE,
    'other': tt.Key.OTHER,
}


def key(name: str) -> tt.KeyEvent:
    if name in NAMED_KEYS:
        return tt.KeyEvent(NAMED_KEYS[name])
    return tt.KeyEvent.typed(name)


def press(state: tt.AppState, *names: str) -> tt.Outcome:
    outcome = tt.Outcome.CONTINUE
    for name in names:
        outcome = tt.handle_key(state, key(name))
    return outcome


def type_text(state: tt.AppState, text: str) -> None:
    for ch in text:
        tt.handle_key(state, tt.KeyEvent.typed(ch))


def make_state(*texts: str, done=(), search: str = '', selected=None) -> tt.AppState:
    tasks = [tt.Task(text=t, completed=i in done) for i, t in enumerate(texts)]
    return tt.AppState(tasks=tasks, mode=tt.Normal(selected=selected), search=search)


def snapshot(state: tt.AppState):
    return [(t.text, t.completed) for t in state.tasks]


__all__ = ['key', 'press', 'type_text', 'make_state', 'snapshot']
