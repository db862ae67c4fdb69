from types import SimpleNamespace

import pytest
from prompt_toolkit.application import create_app_session
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

import todo_tui as tt


@pytest.fixture
def ui_context(tmp_path):
    """Build the real application inside a headless prompt_toolkit session."""
    store = tt.TaskStore(tmp_path / 'tasks.json')
    state = tt.AppState(tasks=[
        tt.Task('Buy milk'),
        tt.Task('Walk dog', completed=True),
        tt.Task('Buy bread'),
    ])
    with create_pipe_input() as pipe_input:
        with create_app_session(input=pipe_input, output=DummyOutput()):
            app = tt.build_application(state, store)
            yield SimpleNamespace(app=app, kb=app.key_bindings, state=state, store=store)
