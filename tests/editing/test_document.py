"""Tests for the document compiler."""

import os

import pytest

from mandark.editing.document import (
    build_document, compile_document, split_source_lines, write_compiled,
)
from mandark.editing.errors import NoFilesFound, PathNotFound
from mandark.editing.packets import EditPacket, Operation


@pytest.fixture
def project(tmp_path):
    (tmp_path / "a.txt").write_text("alpha\nbeta\ngamma\n", encoding="utf-8")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "b.py").write_text("x = 1\ny = 2\n", encoding="utf-8")
    (tmp_path / "src" / "c.py").write_text("z = 3", encoding="utf-8")
    return tmp_path


class TestSplitSourceLines:
    def test_trailing_newline_adds_no_line(self):
        assert split_source_lines("a\nb\n") == ["a", "b"]

    def test_no_trailing_newline(self):
        assert split_source_lines("a\nb") == ["a", "b"]

    def test_crlf_and_cr(self):
        assert split_source_lines("a\r\nb\rc\n") == ["a", "b", "c"]

    def test_empty(self):
        assert split_source_lines("") == []

    def test_blank_lines_preserved(self):
        assert split_source_lines("a\n\n\nb\n") == ["a", "", "", "b"]

    def test_form_feed_is_not_a_line_break(self):
        assert split_source_lines("a\x0cb\n") == ["a\x0cb"]


class TestBuildDocument:
    def test_tags_are_dense_across_files(self, tmp_path):
        doc = build_document(
            [("a.txt", "1\n2\n3\n"), ("b.txt", "4\n5\n")], root=str(tmp_path)
        )
        assert [s.start_line for s in doc.files] == [1, 4]
        assert [s.line_count for s in doc.files] == [3, 2]
        assert doc.total_lines == 5
        assert "### FILE: a.txt (lines 1-3)" in doc.text
        assert "### FILE: b.txt (lines 4-5)" in doc.text
        assert "4| 4" in doc.text

    def test_resolve_maps_tag_to_file_and_local_line(self, tmp_path):
        doc = build_document(
            [("a.txt", "1\n2\n3\n"), ("b.txt", "4\n5\n")], root=str(tmp_path)
        )
        span, local = doc.resolve(4)
        assert span.path == "b.txt"
        assert local == 1
        span, local = doc.resolve(3)
        assert span.path == "a.txt"
        assert local == 3

    def test_resolve_out_of_range(self, tmp_path):
        doc = build_document([("a.txt", "1\n")], root=str(tmp_path))
        with pytest.raises(KeyError):
            doc.resolve(2)
        with pytest.raises(KeyError):
            doc.resolve(0)

    def test_empty_file_gets_header_but_no_tags(self, tmp_path):
        doc = build_document(
            [("empty.txt", ""), ("b.txt", "x\n")], root=str(tmp_path)
        )
        assert "### FILE: empty.txt (lines none)" in doc.text
        assert doc.files[1].start_line == 1
        span, _ = doc.resolve(1)
        assert span.path == "b.txt"

    def test_line_tags_prefix_every_line(self, tmp_path):
        doc = build_document([("a.txt", "foo\n  bar\n")], root=str(tmp_path))
        lines = doc.text.splitlines()
        assert lines == ["### FILE: a.txt (lines 1-2)", "1| foo", "2|   bar"]

    def test_span_for_path_accepts_variants(self, tmp_path):
        doc = build_document([("src/b.py", "x\n")], root=str(tmp_path))
        assert doc.span_for_path("src/b.py") is not None
        assert doc.span_for_path("./src/b.py") is not None
        assert doc.span_for_path(str(tmp_path / "src" / "b.py")) is not None
        assert doc.span_for_path("src/missing.py") is None

    def test_excerpt_clips_to_file(self, tmp_path):
        doc = build_document(
            [("a.txt", "1\n2\n3\n"), ("b.txt", "4\n5\n")], root=str(tmp_path)
        )
        assert doc.excerpt(2, 2, context=5) == "1| 1\n2| 2\n3| 3"

    def test_lines_for_span_and_packets(self, tmp_path):
        doc = build_document(
            [("a.txt", "1\n2\n3\n"), ("b.txt", "4\n5\n")], root=str(tmp_path)
        )
        assert doc.lines_for(doc.files[1]) == [(4, "4"), (5, "5")]
        replace = EditPacket("a.txt", Operation.REPLACE_LINES, 2, 3, ("x",))
        assert doc.lines_for(replace) == [(2, "2"), (3, "3")]
        insert = EditPacket("b.txt", Operation.INSERT_AFTER_LINE, 4, new_content=("y",))
        assert doc.lines_for(insert) == [(4, "4")]

    def test_lines_for_rejects_foreign_anchors(self, tmp_path):
        doc = build_document(
            [("a.txt", "1\n2\n3\n"), ("b.txt", "4\n5\n")], root=str(tmp_path)
        )
        with pytest.raises(KeyError):
            doc.lines_for(EditPacket("a.txt", Operation.DELETE_LINES, 3, 4))
        with pytest.raises(KeyError):
            doc.lines_for(EditPacket("c.txt", Operation.DELETE_LINES, 1, 1))


class TestCompileDocument:
    def test_folder_expands_recursively_in_order(self, project):
        result = compile_document([str(project)], root=str(project))
        paths = [s.path for s in result.document.files]
        assert paths == ["a.txt", "src/b.py", "src/c.py"]
        assert result.file_count == 3
        assert result.document.total_lines == 6

    def test_duplicates_are_removed(self, project):
        result = compile_document(
            [str(project / "a.txt"), str(project), str(project / "a.txt")],
            root=str(project),
        )
        paths = [s.path for s in result.document.files]
        assert paths == ["a.txt", "src/b.py", "src/c.py"]

    def test_binary_files_are_skipped_and_counted(self, project):
        (project / "image.png").write_bytes(b"\x89PNG\r\n\x1a\n")
        (project / "blob.dat").write_bytes(b"abc\x00def")
        (project / "latin1.txt").write_bytes("caf\xe9".encode("latin-1"))
        result = compile_document([str(project)], root=str(project))
        assert result.skipped_binary == 3
        assert result.file_count == 3

    def test_skip_dirs_are_not_walked(self, project):
        (project / ".git").mkdir()
        (project / ".git" / "config").write_text("[core]\n")
        (project / "node_modules").mkdir()
        (project / "node_modules" / "lib.js").write_text("x\n")
        result = compile_document([str(project)], root=str(project))
        paths = [s.path for s in result.document.files]
        assert ".git/config" not in paths
        assert "node_modules/lib.js" not in paths

    def test_missing_path_aborts(self, project):
        with pytest.raises(PathNotFound) as exc_info:
            compile_document([str(project / "a.txt"), str(project / "nope.py")])
        assert "nope.py" in str(exc_info.value)

    def test_no_files_found(self, tmp_path):
        (tmp_path / "empty").mkdir()
        with pytest.raises(NoFilesFound):
            compile_document([str(tmp_path / "empty")])

    def test_only_binary_files_is_no_files_found(self, tmp_path):
        (tmp_path / "x.bin").write_bytes(b"\x00\x01")
        with pytest.raises(NoFilesFound):
            compile_document([str(tmp_path)])

    def test_write_compiled_is_verbatim(self, project, tmp_path):
        result = compile_document([str(project / "a.txt")], root=str(project))
        out = tmp_path / "compiled-code.txt"
        write_compiled(result.document, str(out))
        assert out.read_text(encoding="utf-8") == result.document.text
        assert out.read_text(encoding="utf-8").splitlines()[1] == "1| alpha"

    def test_relative_root_defaults_to_cwd(self, project, monkeypatch):
        monkeypatch.chdir(project)
        result = compile_document(["src"])
        assert [s.path for s in result.document.files] == ["src/b.py", "src/c.py"]
        assert os.path.samefile(result.document.files[0].abs_path, project / "src" / "b.py")
