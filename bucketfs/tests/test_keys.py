"""
Unit Tests: Path/Key Codec

Tests:
    - Path normalization rules
    - File and directory key derivation
    - Key to path inversion
"""

import pytest

from bucketfs.fs.keys import (
    PathKeyCodec,
    basename,
    join_paths,
    normalize_path,
    parent_path,
)


class TestNormalizePath:
    """Tests for path normalization."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("", "/"),
            ("/", "/"),
            ("a", "/a"),
            ("/a//b/", "/a/b"),
            ("/a/./b", "/a/b"),
            ("/a/../b", "/b"),
            ("/../../a", "/a"),
            ("a/b/c/../..", "/a"),
        ],
    )
    def test_normalize(self, path, expected):
        assert normalize_path(path) == expected

    def test_join_paths(self):
        assert join_paths("/a/", "/b", "c/") == "/a/b/c"
        assert join_paths("/", "x") == "/x"

    def test_parent_and_basename(self):
        assert parent_path("/a/b/c.txt") == "/a/b"
        assert parent_path("/a") == "/"
        assert parent_path("/") == "/"
        assert basename("/a/b/c.txt") == "c.txt"
        assert basename("/") == ""


class TestPathKeyCodec:
    """Tests for key derivation."""

    def test_root_maps_to_repository(self):
        codec = PathKeyCodec("repo")
        assert codec.to_key("", is_directory=False) == "repo"
        assert codec.to_key("/", is_directory=False) == "repo"
        assert codec.to_key("/", is_directory=True) == "repo/"
        assert codec.root_key == "repo/"

    def test_file_and_directory_keys(self):
        codec = PathKeyCodec("repo")
        assert codec.file_key("/a/b.txt") == "repo/a/b.txt"
        assert codec.directory_key("/a/b") == "repo/a/b/"

    def test_directory_keys_end_with_separator_files_never(self):
        codec = PathKeyCodec("repo")
        for path in ("/", "/a", "/a/b/", "/a/./b//c"):
            assert codec.directory_key(path).endswith("/")
            assert not codec.file_key(path).endswith("/")

    def test_equal_segments_give_equal_keys(self):
        codec = PathKeyCodec("repo")
        assert codec.file_key("/a//b/./c") == codec.file_key("a/b/c")
        assert codec.file_key("/a/x/../b") == codec.file_key("/a/b")

    def test_dotdot_never_escapes_repository(self):
        codec = PathKeyCodec("repo")
        assert codec.file_key("/../../etc/passwd") == "repo/etc/passwd"

    def test_nested_repository_is_normalized(self):
        codec = PathKeyCodec("/team//repo/")
        assert codec.repository == "team/repo"
        assert codec.file_key("/f") == "team/repo/f"

    @pytest.mark.parametrize("repository", ["", "/", "//", "."])
    def test_empty_repository_rejected(self, repository):
        with pytest.raises(ValueError):
            PathKeyCodec(repository)

    def test_to_path_inverts_to_key(self):
        codec = PathKeyCodec("repo")
        assert codec.to_path("repo/a/b.txt") == "/a/b.txt"
        assert codec.to_path("repo/a/b/") == "/a/b"
        assert codec.to_path("repo/") == "/"
        assert codec.to_path("repo") == "/"

    def test_to_path_outside_repository(self):
        codec = PathKeyCodec("repo")
        with pytest.raises(ValueError):
            codec.to_path("other/a")
