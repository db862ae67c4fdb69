from types import SimpleNamespace

from prompt_toolkit.keys import Keys


def get_binding(kb, key):
    """Return the handler registered for exactly ``key``."""
    for binding in kb.bindings:
        if tuple(binding.keys) == (key,):
            return binding.handler
    raise AssertionError(f'Binding for {key!r} not found')


def dummy_event(app, data=''):
    return SimpleNamespace(data=data, app=app)


def exit_recorder(app):
    """Stand-in app whose exit() records the result instead of stopping a loop."""
    results = []
    fake = SimpleNamespace(layout=app.layout, exit=lambda result=None: results.append(result))
    return fake, results


def type_keys(ctx, text):
    any_key = get_binding(ctx.kb, Keys.Any)
    for ch in text:
        any_key(dummy_event(ctx.app, data=ch))


def press_named(ctx, key, app=None):
    get_binding(ctx.kb, key)(dummy_event(app or ctx.app))


def visible_text(window):
    content = window.content.text()
    if isinstance(content, str):
        return content
    return ''.join(text for _style, text in content)


__all__ = ['get_binding', 'dummy_event', 'exit_recorder', 'type_keys', 'press_named', 'visible_text']
