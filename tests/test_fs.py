import os

import pytest

from webserv.fs import (
    append_file,
    create_file,
    delete_file,
    is_directory,
    is_file,
    last_modified_date,
    list_files,
    resolve,
)


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a.txt").write_text("alpha")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "b.txt").write_text("beta")
    return tmp_path


def test_is_file_and_is_directory(tree):
    assert is_file(str(tree / "a.txt")) is True
    assert is_file(str(tree / "sub")) is False
    assert is_file(str(tree / "missing")) is False
    assert is_directory(str(tree / "sub")) is True
    assert is_directory(str(tree / "a.txt")) is False
    assert is_directory(str(tree / "missing")) is False


def test_list_files_recursive(tree):
    root = str(tree)
    assert list_files(root) == {
        "a.txt": f"{root}/a.txt",
        "b.txt": f"{root}/sub/b.txt",
    }


def test_list_files_flat(tree):
    root = str(tree)
    assert list_files(root, recursive=False) == {
        "a.txt": f"{root}/a.txt",
        "sub": f"{root}/sub",
    }


def test_list_files_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        list_files(str(tmp_path / "nope"))


def test_create_then_append(tmp_path):
    target = str(tmp_path / "out.txt")
    create_file(target, "first\r\n")
    append_file(target, "second")
    with open(target, "rb") as handle:
        assert handle.read() == b"first\r\nsecond"


def test_create_replaces_content(tmp_path):
    target = str(tmp_path / "out.bin")
    create_file(target, b"old content")
    create_file(target, b"new")
    with open(target, "rb") as handle:
        assert handle.read() == b"new"


def test_create_in_missing_directory_raises(tmp_path):
    with pytest.raises(OSError):
        create_file(str(tmp_path / "missing" / "x.txt"), "data")


def test_delete_file_and_empty_directory(tree):
    delete_file(str(tree / "a.txt"))
    assert not (tree / "a.txt").exists()
    empty = tree / "empty"
    empty.mkdir()
    delete_file(str(empty))
    assert not empty.exists()


def test_delete_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        delete_file(str(tmp_path / "missing"))


def test_last_modified_date_at_epoch(tmp_path):
    target = tmp_path / "f.txt"
    target.write_text("x")
    os.utime(target, (0, 0))
    assert last_modified_date(str(target)) == "Thu, 01 Jan 1970 00:00:00 GMT"


def test_last_modified_date_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        last_modified_date(str(tmp_path / "missing"))


def test_resolve_joins_without_double_slash():
    assert resolve("/var/www/", "/index.html") == "/var/www/index.html"


def test_resolve_keeps_root_that_already_ends_with_path():
    assert resolve("/srv/static", "/static") == "/srv/static"


def test_resolve_empty_path():
    assert resolve("./public", "") == "./public"