import copy

from badgeforge.canvas.history import HistoryManager
from badgeforge.canvas.object import BoundText
from badgeforge.canvas.template import Template


def _template():
    t = Template()
    t.add_field(BoundText(id="a", x=10, y=10, content="{{firstName}}"))
    return t


def test_undo_restores_previous_fields():
    t = _template()
    h = HistoryManager(t)
    before = copy.deepcopy(t.fields)
    h.push()
    t.update_field("a", x=99)
    assert h.undo()
    assert t.fields == before


def test_undo_then_redo_is_identity():
    t = _template()
    h = HistoryManager(t)
    h.push()
    t.add_field(BoundText(id="b", content="x"))
    after = copy.deepcopy(t.fields)
    h.undo()
    h.redo()
    assert t.fields == after


def test_push_clears_redo():
    t = _template()
    h = HistoryManager(t)
    h.push()
    t.update_field("a", x=20)
    h.undo()
    assert h.can_redo
    h.push()
    assert not h.can_redo


def test_empty_stacks_are_noops():
    t = _template()
    h = HistoryManager(t)
    assert not h.undo()
    assert not h.redo()
    assert t.fields[0].x == 10


def test_snapshots_are_independent_copies():
    t = _template()
    h = HistoryManager(t)
    h.push()
    t.fields[0].x = 500
    h.undo()
    assert t.fields[0].x == 10


def test_limit_drops_oldest():
    t = _template()
    h = HistoryManager(t, limit=2)
    for x in (1, 2, 3):
        h.push()
        t.update_field("a", x=x)
    assert len(h.undo_stack) == 2
    h.undo()
    h.undo()
    assert not h.undo()
    assert t.fields[0].x == 1


def test_clear():
    t = _template()
    h = HistoryManager(t)
    h.push()
    h.clear()
    assert not h.can_undo and not h.can_redo
