from unittest.mock import Mock

import pikepdf
import pytest

from badgeforge.canvas.catalog import TEST_PRINT_RECORD
from badgeforge.canvas.errors import ImageDecodeError
from badgeforge.canvas.object import BoundText, FieldStyle
from badgeforge.canvas.surface import DesignerSession
from badgeforge.canvas.template import Template


def _session(*boxes, snap=False):
    t = Template()
    for i, (x, y, w, h) in enumerate(boxes):
        t.add_field(BoundText(id=f"f{i}", x=x, y=y, width=w, height=h, content=f"T{i}"))
    return DesignerSession(t, snap_to_grid=snap, grid_size=5)


def _xs(s):
    return [f.x for f in s.template.fields]


# Hit testing
def test_hit_test_returns_topmost():
    s = _session((0, 0, 100, 100), (50, 50, 100, 100))
    assert s.hit_test(60, 60).id == "f1"
    assert s.hit_test(10, 10).id == "f0"
    assert s.hit_test(300, 300) is None


def test_hit_test_edges_inclusive():
    s = _session((10, 10, 20, 20))
    assert s.hit_test(30, 30).id == "f0"
    assert s.hit_test(10, 10).id == "f0"


def test_hit_test_uses_rotated_bounds():
    s = _session((100, 100, 100, 20))
    s.template.update_field("f0", rotation=90)
    # Rotated 90 degrees about (150, 110): now 20 wide, 100 tall
    assert s.hit_test(150, 150) is not None
    assert s.hit_test(190, 110) is None


# Dragging
def test_drag_moves_field_and_pushes_once():
    s = _session((50, 50, 100, 20))
    s.press(60, 60)
    s.drag(70, 65)
    s.drag(80, 90)
    assert s.release()
    f = s.template.fields[0]
    assert (f.x, f.y) == (70, 80)
    assert len(s.history.undo_stack) == 1
    s.undo()
    assert (s.template.fields[0].x, s.template.fields[0].y) == (50, 50)


def test_drag_snaps_to_grid():
    s = _session((50, 50, 100, 20), snap=True)
    s.press(60, 60)
    s.drag(63, 67)
    f = s.template.fields[0]
    assert (f.x, f.y) == (55, 55)


def test_press_without_move_records_nothing():
    s = _session((50, 50, 100, 20), snap=True)
    s.press(60, 60)
    s.drag(61, 61)
    assert not s.release()
    assert not s.history.can_undo


def test_press_on_empty_clears_selection():
    s = _session((50, 50, 100, 20))
    s.press(60, 60)
    assert s.selection == ["f0"]
    s.press(400, 400)
    assert s.selection == []


def test_toggle_builds_multi_selection_and_drags_together():
    s = _session((0, 0, 20, 20), (100, 100, 20, 20))
    s.press(5, 5)
    s.release()
    s.press(105, 105, toggle=True)
    assert s.selection == ["f0", "f1"]
    s.press(105, 105)
    assert s.selection[0] == "f1"
    s.drag(115, 125)
    s.release()
    assert [(f.x, f.y) for f in s.template.fields] == [(10, 20), (110, 120)]
    assert len(s.history.undo_stack) == 1


def test_duplicate_mid_drag_ends_the_drag():
    s = _session((50, 50, 100, 20))
    s.press(60, 60)
    assert s.drag(70, 70)
    copies = s.duplicate_selected()
    assert not s.drag(80, 80)
    assert (s.template.fields[0].x, s.template.fields[0].y) == (60, 60)
    assert (copies[0].x, copies[0].y) == (70, 70)
    assert not s.release()


def test_select_all_mid_drag_ends_the_drag():
    s = _session((50, 50, 100, 20), (300, 300, 20, 20))
    s.press(60, 60)
    s.select_all()
    assert not s.drag(80, 80)
    assert _xs(s) == [50, 300]


def test_undo_mid_drag_is_not_reapplied():
    s = _session((50, 50, 100, 20))
    s.press(60, 60)
    s.drag(70, 70)
    assert s.undo()
    assert not s.drag(90, 90)
    assert (s.template.fields[0].x, s.template.fields[0].y) == (50, 50)
    assert s.history.can_redo


def test_toggle_removes_from_selection():
    s = _session((0, 0, 20, 20))
    s.press(5, 5, toggle=True)
    s.press(5, 5, toggle=True)
    assert s.selection == []


# Align / distribute / center
def test_align_left():
    s = _session((10, 0, 20, 20), (40, 30, 20, 20), (70, 60, 20, 20))
    s.select_all()
    assert s.align("left")
    assert _xs(s) == [10, 10, 10]
    assert len(s.history.undo_stack) == 1


def test_align_center_uses_mean_of_centers():
    s = _session((0, 0, 20, 20), (100, 50, 20, 20))
    s.select_all()
    s.align("center")
    assert _xs(s) == [50, 50]


def test_align_right_and_bottom():
    s = _session((0, 0, 20, 10), (100, 50, 50, 30))
    s.select_all()
    s.align("right")
    assert _xs(s) == [130, 100]
    s.align("bottom")
    assert [f.y for f in s.template.fields] == [70, 50]


def test_align_needs_two_fields():
    s = _session((10, 0, 20, 20), (40, 0, 20, 20))
    s.select("f0")
    assert not s.align("left")
    assert not s.history.can_undo


def test_align_noop_records_nothing():
    s = _session((10, 0, 20, 20), (10, 40, 20, 20))
    s.select_all()
    assert not s.align("left")
    assert not s.history.can_undo


def test_align_rejects_unknown_mode():
    s = _session((10, 0, 20, 20), (40, 0, 20, 20))
    s.select_all()
    with pytest.raises(ValueError):
        s.align("diagonal")


def test_distribute_horizontal_equal_gaps():
    s = _session((10, 0, 20, 20), (30, 0, 20, 20), (90, 0, 20, 20))
    s.select_all()
    assert s.distribute_horizontal()
    assert _xs(s) == [10, 50, 90]


def test_distribute_needs_three():
    s = _session((10, 0, 20, 20), (90, 0, 20, 20))
    s.select_all()
    assert not s.distribute_horizontal()


def test_distribute_vertical():
    s = _session((0, 0, 20, 10), (0, 12, 20, 10), (0, 100, 20, 10))
    s.select_all()
    s.distribute_vertical()
    assert [f.y for f in s.template.fields] == [0, 50, 100]


def test_center_on_canvas():
    s = _session((0, 0, 100, 20))
    s.select("f0")
    s.center_on_canvas("horizontal")
    assert (s.primary.x, s.primary.y) == (238, 0)
    s.center_on_canvas("both")
    assert (s.primary.x, s.primary.y) == (238, 422)


# Adding and editing
def test_add_bound_field_positions_and_selects():
    s = DesignerSession(Template(), snap_to_grid=False)
    f = s.add_bound_field("firstName")
    assert f.content == "{{firstName}}"
    assert (f.x, f.y) == (238, 422)
    assert s.selection == [f.id]
    g = s.add_custom_text("Hello")
    assert (g.x, g.y) == (248, 422)
    assert len(s.history.undo_stack) == 2


def test_add_image_sizes_to_picture(png_factory):
    s = DesignerSession(Template(), snap_to_grid=False)
    f = s.add_image(png_factory((300, 150)))
    assert (f.width, f.height) == (150, 75)


def test_add_image_rejects_non_image():
    s = DesignerSession(Template(), snap_to_grid=False)
    with pytest.raises(ImageDecodeError):
        s.add_image(b"not an image")
    assert s.template.fields == []
    assert not s.history.can_undo


def test_undo_add_drops_stale_selection():
    s = DesignerSession(Template(), snap_to_grid=False)
    s.add_bound_field("city")
    s.undo()
    assert s.template.fields == []
    assert s.selection == []
    s.redo()
    assert len(s.template.fields) == 1


def test_rotate_toggles_between_0_and_180():
    s = _session((0, 0, 20, 20))
    s.select("f0")
    s.rotate_selected()
    assert s.primary.style.rotation == 180
    s.rotate_selected()
    assert s.primary.style.rotation == 0


def test_update_selected_only_records_real_changes():
    s = _session((0, 0, 20, 20))
    s.select("f0")
    assert not s.update_selected(font_size=12)
    assert s.update_selected(font_size=20, bold=True)
    assert s.primary.style == FieldStyle(font_size=20, bold=True)
    assert len(s.history.undo_stack) == 1


def test_set_text_align_validates():
    s = _session((0, 0, 20, 20))
    s.select("f0")
    assert s.set_text_align("center")
    with pytest.raises(ValueError):
        s.set_text_align("justify")


def test_nudge_and_delete():
    s = _session((0, 0, 20, 20), (50, 50, 20, 20))
    s.select("f1")
    s.nudge(-5, 1)
    assert (s.primary.x, s.primary.y) == (45, 51)
    assert s.delete_selected()
    assert [f.id for f in s.template.fields] == ["f0"]
    assert not s.delete_selected()


def test_duplicate_gets_new_id_and_offset():
    s = _session((0, 0, 20, 20))
    s.select("f0")
    (dup,) = s.duplicate_selected()
    assert dup.id != "f0"
    assert (dup.x, dup.y) == (10, 10)
    assert dup.content == "T0"
    assert s.selection == [dup.id]


def test_nudge_z_reorders():
    s = _session((0, 0, 20, 20), (0, 0, 20, 20), (0, 0, 20, 20))
    s.select("f0")
    assert s.nudge_z(1)
    assert [f.id for f in s.template.fields] == ["f1", "f0", "f2"]
    assert s.bring_to_front()
    assert [f.id for f in s.template.fields][-1] == "f0"
    assert not s.bring_to_front()


def test_clear_fields():
    s = _session((0, 0, 20, 20))
    assert s.clear_fields()
    assert not s.clear_fields()
    s.undo()
    assert len(s.template.fields) == 1


# Background, preview, listeners
def test_background_changes_are_not_history(png_bytes):
    s = DesignerSession(Template(), snap_to_grid=False)
    s.set_background(png_bytes)
    assert s.template.background.clean == png_bytes
    assert not s.history.can_undo
    with pytest.raises(ImageDecodeError):
        s.set_background(b"junk")
    assert s.template.background.clean == png_bytes


def test_listeners_notified_and_unsubscribed():
    s = _session((0, 0, 20, 20))
    cb = Mock()
    unsubscribe = s.subscribe(cb)
    s.select("f0")
    cb.assert_called_once_with(s)
    unsubscribe()
    s.clear_selection()
    assert cb.call_count == 1


def test_record_navigation():
    s = DesignerSession(Template(), snap_to_grid=False)
    s.set_preview_records([{"firstName": "A"}, {"firstName": "B"}])
    assert not s.previous_record()
    assert s.next_record()
    assert s.current_record["firstName"] == "B"
    assert not s.next_record()
    s.set_preview_records([])
    assert s.current_record["firstName"] == "John"


def test_load_template_resets_history_and_selection():
    s = _session((0, 0, 20, 20))
    s.select("f0")
    s.nudge(1, 0)
    s.load_template(Template(name="Other"))
    assert s.selection == []
    assert not s.history.can_undo
    assert s.history.template is s.template


# Export to files
def test_export_test_page_uses_fixed_record(tmp_path):
    exporter = Mock()
    s = DesignerSession(Template(), snap_to_grid=False, exporter=exporter)
    s.export_test_page(tmp_path / "test.pdf")
    path, template, record = exporter.render_to_file.call_args.args
    assert path == tmp_path / "test.pdf"
    assert template is s.template
    assert record == TEST_PRINT_RECORD


def test_export_to_file_uses_current_record(tmp_path, full_template):
    s = DesignerSession(full_template, snap_to_grid=False)
    s.set_preview_records([{"firstName": "Ada"}])
    out = s.export_to_file(tmp_path / "badge.pdf")
    assert out.read_bytes().startswith(b"%PDF")


def test_export_batch_to_file_writes_one_page_per_record(tmp_path, full_template):
    s = DesignerSession(full_template, snap_to_grid=False)
    s.set_preview_records([{"firstName": "Ada"}, {"firstName": "Grace"}])
    out = s.export_batch_to_file(tmp_path / "all.pdf")
    with pikepdf.Pdf.open(out) as pdf:
        assert len(pdf.pages) == 2
