import pytest

from copyrepo.core import (
    SEPARATOR,
    FileReadError,
    FileRecord,
    number_lines,
    render_file,
    render_files,
    split_lines,
)


def _record(tmp_path, name, data):
    p = tmp_path / name
    if isinstance(data, bytes):
        p.write_bytes(data)
    else:
        p.write_bytes(data.encode("utf-8"))
    return FileRecord(path=p, rel_path=name)


def test_block_layout(tmp_path):
    block = render_file(_record(tmp_path, "a.txt", "foo\nbar\n"))
    assert block == f"/a.txt:\n{SEPARATOR}\n1 | foo\n2 | bar\n{SEPARATOR}"
    assert len(SEPARATOR) == 80 and set(SEPARATOR) == {"-"}


def test_crlf_and_lf_are_both_terminators(tmp_path):
    block = render_file(_record(tmp_path, "w.txt", "one\r\ntwo\nthree"))
    body = block.split("\n")[2:-1]
    assert body == ["1 | one", "2 | two", "3 | three"]


def test_bare_cr_is_kept_in_line(tmp_path):
    assert split_lines("a\rb\n") == ["a\rb"]


def test_empty_file_renders_single_empty_line(tmp_path):
    block = render_file(_record(tmp_path, "e.txt", ""))
    assert block.split("\n")[2] == "1 | "


def test_numbers_are_padded_to_digit_count():
    body = number_lines([f"l{i}" for i in range(1, 101)]).split("\n")
    assert len(body) == 100
    assert body[0] == "  1 | l1"
    assert body[9] == " 10 | l10"
    assert body[99] == "100 | l100"
    numbers = [int(row.split("|")[0]) for row in body]
    assert numbers == list(range(1, 101))


def test_blank_lines_inside_file_are_numbered(tmp_path):
    assert split_lines("a\n\nb\n\n") == ["a", "", "b", ""]


def test_invalid_utf8_is_fatal(tmp_path):
    with pytest.raises(FileReadError, match="not valid UTF-8"):
        render_file(_record(tmp_path, "blob.dat", b"\xff\xfe\xfa"))


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(FileReadError):
        render_file(FileRecord(path=tmp_path / "gone.txt", rel_path="gone.txt"))


def test_render_files_keeps_input_order(tmp_path):
    records = [_record(tmp_path, f"f{i:02d}.txt", "x" * (100 - i)) for i in range(30)]
    blocks = render_files(list(reversed(records)), workers=8)
    assert [b.split("\n")[0] for b in blocks] == [
        f"/{r.rel_path}:" for r in reversed(records)
    ]


def test_render_files_empty():
    assert render_files([]) == []


def test_single_trailing_newline_adds_no_empty_line():
    assert split_lines("foo\nbar\n") == ["foo", "bar"]
    assert split_lines("foo\r\nbar\r\n") == ["foo", "bar"]
