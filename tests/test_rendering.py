import todo_tui as tt


def _lines(frags):
    return ''.join(text for _style, text in frags).split('\n')


def test_list_fragments_mark_completed_and_selected_rows():
    items = tt.project([tt.Task('open'), tt.Task('done', True)], '')
    frags = tt.build_list_fragments(items, selected=1)

    assert _lines(frags) == ['     open', '->✔  done']
    done_styles = [style for style, text in frags if text == 'done']
    assert done_styles == ['class:task.selected class:task.done']


def test_list_fragments_highlight_search_prefix():
    items = tt.project([tt.Task('Buy milk'), tt.Task('Buy eggs', True)], 'Buy')
    frags = tt.build_list_fragments(items, selected=None, filtering=True)

    highlighted = [(style, text) for style, text in frags if 'task.match' in style]
    assert [text for _style, text in highlighted] == ['Buy', 'Buy']
    assert highlighted[1][0] == 'class:task class:task.done class:task.match'
    assert ('class:task', ' milk') in frags
    assert ('class:task class:task.done', ' eggs') in frags


def test_empty_list_hints():
    assert tt.build_list_fragments([], None) == [('class:list.empty', 'No tasks yet. Press n to add one.')]
    assert tt.build_list_fragments([], None, filtering=True) == [('class:list.empty', 'No tasks match the search.')]


def test_help_bar_follows_mode():
    state = tt.AppState()
    text = ''.join(t for _s, t in tt.build_help_fragments(state))
    assert text.startswith('q exit | n new task | s search')

    state.mode = tt.Adding()
    text = ''.join(t for _s, t in tt.build_help_fragments(state))
    assert text == 'Esc stop adding | Enter save task'

    state.mode = tt.Search()
    state.search = 'Bu'
    text = ''.join(t for _s, t in tt.build_help_fragments(state))
    assert text == 'Esc stop searching'


def test_help_bar_shows_active_filter_outside_search():
    state = tt.AppState(search='Bu')
    frags = tt.build_help_fragments(state)
    assert frags[-1] == ('class:help.filter', '   filter: Bu')
