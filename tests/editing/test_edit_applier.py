"""Tests for EditApplier: anchor resolution, ordering, safety."""

import pytest

from mandark.editing.document import compile_document
from mandark.editing.edit_applier import (
    APPLIED, FAILED, SKIPPED, EditApplier, ResolvedEdit, apply_edits_to_lines,
    render_lines,
)
from mandark.editing.history import HistoryStore
from mandark.editing.packets import EditPacket, Operation, VerificationResult


def _write(root, name, text):
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(text.encode("utf-8"))
    return path


def _compile(root, *names):
    return compile_document([str(root / n) for n in names], root=str(root)).document


def _replace(path, start, end, *content):
    return EditPacket(path, Operation.REPLACE_LINES, start, end, content)


def _insert(path, after, *content):
    return EditPacket(path, Operation.INSERT_AFTER_LINE, after, new_content=content)


def _delete(path, start, end):
    return EditPacket(path, Operation.DELETE_LINES, start, end)


def _accepted(*packets):
    return [VerificationResult.accepted(p) for p in packets]


@pytest.fixture
def history(tmp_path):
    return HistoryStore(str(tmp_path / "state" / "history.json"))


def _apply(document, history, *packets, on_progress=None):
    applier = EditApplier(document, history, on_progress=on_progress)
    return applier.apply(_accepted(*packets))


class TestApplyToLines:
    def test_replace_then_insert_example(self):
        lines = ["1", "2", "3", "4", "5"]
        edits = [
            ResolvedEdit(_replace("f", 2, 3, "X", "Y", "Z"), 0, 1, 3),
            ResolvedEdit(_insert("f", 1, "H"), 1, 1, 1),
        ]
        assert apply_edits_to_lines(lines, edits) == ["1", "H", "X", "Y", "Z", "4", "5"]

    def test_same_anchor_insertions_keep_emission_order(self):
        edits = [
            ResolvedEdit(_insert("f", 1, "a"), 0, 1, 1),
            ResolvedEdit(_insert("f", 1, "b"), 1, 1, 1),
        ]
        assert apply_edits_to_lines(["x", "y"], edits) == ["x", "a", "b", "y"]

    def test_render_preserves_line_endings(self):
        assert render_lines(["a", "b"], "x\r\ny\r\n") == "a\r\nb\r\n"
        assert render_lines(["a", "b"], "x\ny") == "a\nb"
        assert render_lines([], "x\n") == ""


class TestEditApplier:
    def test_replace_and_insert_in_one_file(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n3\n4\n5\n")
        doc = _compile(tmp_path, "a.txt")
        result = _apply(doc, history,
                        _replace("a.txt", 2, 3, "X", "Y", "Z"),
                        _insert("a.txt", 1, "H"))
        assert result.applied == 2
        assert (tmp_path / "a.txt").read_text() == "1\nH\nX\nY\nZ\n4\n5\n"
        assert result.files_modified == ["a.txt"]

    def test_anchors_refer_to_original_lines(self, tmp_path, history):
        """An early deletion must not shift a later edit's target."""
        _write(tmp_path, "a.txt", "a\nb\nc\nd\ne\n")
        doc = _compile(tmp_path, "a.txt")
        _apply(doc, history, _delete("a.txt", 1, 2), _replace("a.txt", 4, 4, "D"))
        assert (tmp_path / "a.txt").read_text() == "c\nD\ne\n"

    def test_disjoint_edits_are_order_independent(self, tmp_path, history):
        packets = [
            _delete("a.txt", 2, 2),
            _insert("a.txt", 3, "new"),
            _replace("a.txt", 5, 6, "E"),
        ]
        outputs = []
        for ordering in (packets, list(reversed(packets))):
            _write(tmp_path, "a.txt", "1\n2\n3\n4\n5\n6\n")
            doc = _compile(tmp_path, "a.txt")
            _apply(doc, history, *ordering)
            outputs.append((tmp_path / "a.txt").read_text())
        assert outputs[0] == outputs[1] == "1\n3\nnew\n4\nE\n"

    def test_tags_are_global_across_files(self, tmp_path, history):
        _write(tmp_path, "a.txt", "a1\na2\n")
        _write(tmp_path, "src/b.txt", "b1\nb2\nb3\n")
        doc = _compile(tmp_path, "a.txt", "src/b.txt")
        result = _apply(doc, history,
                        _replace("src/b.txt", 4, 4, "B2"),
                        _insert("a.txt", 2, "a3"))
        assert result.applied == 2
        assert (tmp_path / "a.txt").read_text() == "a1\na2\na3\n"
        assert (tmp_path / "src" / "b.txt").read_text() == "b1\nB2\nb3\n"
        assert sorted(result.files_modified) == ["a.txt", "src/b.txt"]

    def test_overlapping_later_packet_is_skipped(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n3\n4\n")
        doc = _compile(tmp_path, "a.txt")
        result = _apply(doc, history,
                        _replace("a.txt", 1, 2, "X"),
                        _replace("a.txt", 2, 3, "Y"))
        assert (result.applied, result.skipped) == (1, 1)
        assert (tmp_path / "a.txt").read_text() == "X\n3\n4\n"
        assert "overlaps" in result.errors[0]

    def test_insert_inside_replaced_range_is_skipped(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n3\n")
        doc = _compile(tmp_path, "a.txt")
        result = _apply(doc, history,
                        _replace("a.txt", 1, 3, "X"),
                        _insert("a.txt", 2, "in"))
        assert result.skipped == 1
        assert (tmp_path / "a.txt").read_text() == "X\n"

    def test_insert_at_range_boundary_is_allowed(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n3\n")
        doc = _compile(tmp_path, "a.txt")
        result = _apply(doc, history,
                        _replace("a.txt", 2, 3, "X"),
                        _insert("a.txt", 1, "H"))
        assert result.skipped == 0
        assert (tmp_path / "a.txt").read_text() == "1\nH\nX\n"

    def test_crlf_and_missing_final_newline_preserved(self, tmp_path, history):
        _write(tmp_path, "win.txt", "a\r\nb\r\nc\r\n")
        _write(tmp_path, "tail.txt", "x\ny")
        doc = _compile(tmp_path, "win.txt", "tail.txt")
        _apply(doc, history, _replace("win.txt", 2, 2, "B"), _insert("tail.txt", 5, "z"))
        assert (tmp_path / "win.txt").read_bytes() == b"a\r\nB\r\nc\r\n"
        assert (tmp_path / "tail.txt").read_bytes() == b"x\ny\nz"

    def test_rejected_packets_are_skipped(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n")
        doc = _compile(tmp_path, "a.txt")
        packet = _replace("a.txt", 1, 1, "X")
        applier = EditApplier(doc, history)
        result = applier.apply([VerificationResult.rejected(packet, "wrong")])
        assert (result.applied, result.skipped) == (0, 1)
        assert (tmp_path / "a.txt").read_text() == "1\n"
        assert history.load() is None

    def test_corrected_packet_is_applied_instead(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n")
        doc = _compile(tmp_path, "a.txt")
        original = _replace("a.txt", 1, 1, "wrong")
        fixed = _replace("a.txt", 2, 2, "right")
        applier = EditApplier(doc, history)
        result = applier.apply([VerificationResult.corrected(original, fixed)])
        assert result.applied == 1
        assert (tmp_path / "a.txt").read_text() == "1\nright\n"

    def test_file_changed_since_compile_fails_only_that_file(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n")
        _write(tmp_path, "b.txt", "3\n4\n")
        doc = _compile(tmp_path, "a.txt", "b.txt")
        _write(tmp_path, "a.txt", "1\n2\nextra\n")

        events = []
        result = _apply(doc, history,
                        _replace("a.txt", 1, 1, "X"),
                        _replace("b.txt", 3, 3, "Y"),
                        on_progress=lambda p, status, detail: events.append(status))

        assert result.partial_failure
        assert result.failed == 1
        assert "a.txt" in result.failed_files
        assert (tmp_path / "a.txt").read_text() == "1\n2\nextra\n"
        assert (tmp_path / "b.txt").read_text() == "Y\n4\n"
        assert sorted(events) == sorted([FAILED, APPLIED])

    def test_deleted_file_is_reported_not_raised(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n")
        doc = _compile(tmp_path, "a.txt")
        (tmp_path / "a.txt").unlink()
        result = _apply(doc, history, _replace("a.txt", 1, 1, "X"))
        assert result.failed == 1
        assert not (tmp_path / "a.txt").exists()

    def test_out_of_range_packet_is_skipped(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n")
        doc = _compile(tmp_path, "a.txt")
        events = []
        result = _apply(doc, history, _replace("a.txt", 1, 2, "X"),
                        on_progress=lambda p, status, detail: events.append((status, detail)))
        assert result.skipped == 1
        assert events[0][0] == SKIPPED

    def test_originals_recorded_before_write(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n")
        doc = _compile(tmp_path, "a.txt")
        _apply(doc, history, _delete("a.txt", 1, 1))

        entry = history.load()
        assert entry.complete
        assert entry.affected_files == {str(tmp_path / "a.txt"): "1\n2\n"}
        assert not history.in_run

    def test_deleting_every_line_leaves_empty_file(self, tmp_path, history):
        _write(tmp_path, "a.txt", "1\n2\n")
        doc = _compile(tmp_path, "a.txt")
        _apply(doc, history, _delete("a.txt", 1, 2))
        assert (tmp_path / "a.txt").read_bytes() == b""
