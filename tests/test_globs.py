"""Tests for glob matching and filesystem scans."""

from __future__ import annotations

import pytest

from abiforge.globs import match_glob, matches, pattern_root, scan, watch_roots


class TestMatchGlob:
    @pytest.mark.parametrize(
        "pattern,path,expected",
        [
            ("/a/**/*.json", "/a/x/y/Z.json", True),
            ("/a/**/*.json", "/a/Z.json", True),
            ("/a/*.json", "/a/x/Z.json", True),
            ("/a/**/x/**/*.json", "/a/x/Z.json", True),
            ("/a/**/*.json", "/b/Z.json", False),
            ("/a/**/build-info/**", "/a/build-info/1.json", True),
            ("/a/**/*.dbg.json", "/a/T.sol/T.dbg.json", True),
            ("/a/?.json", "/a/T.json", True),
            ("/a/[AB].json", "/a/C.json", False),
            ("/a/[!AB].json", "/a/C.json", True),
            ("/a/*.json", "/a/T.json.bak", False),
        ],
    )
    def test_patterns(self, pattern, path, expected):
        assert match_glob(path, pattern) is expected


class TestMatches:
    def test_exclusion_wins(self):
        patterns = ["/a/**/*.json", "!/a/**/*.dbg.json"]
        assert matches("/a/T.sol/T.json", patterns)
        assert not matches("/a/T.sol/T.dbg.json", patterns)

    def test_plain_directory_matches_contents(self):
        assert matches("/src/contracts/A.sol", ["/src/contracts"])
        assert not matches("/src/contracts2/A.sol", ["/src/contracts"])

    def test_no_include_no_match(self):
        assert not matches("/a/T.json", ["!/a/*.txt"])


class TestRoots:
    def test_pattern_root(self):
        assert pattern_root("/p/artifacts/**/*.json") == "/p/artifacts"
        assert pattern_root("artifacts/*.json") == "artifacts"
        assert pattern_root("/p/contracts") == "/p/contracts"

    def test_nested_roots_folded(self):
        roots = watch_roots(["/p/a/**/*.json", "/p/a/b/*.json", "/q/*.json", "!/p/x/*"])
        assert roots == ["/p/a", "/q"]


class TestScan:
    def test_scan_sorted_with_excludes(self, tmp_path):
        base = tmp_path.as_posix()
        for rel in ["b/B.json", "a/A.json", "a/A.dbg.json", "a/notes.txt"]:
            p = tmp_path / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text("{}")
        found = scan([f"{base}/**/*.json", f"!{base}/**/*.dbg.json"])
        assert found == [f"{base}/a/A.json", f"{base}/b/B.json"]

    def test_scan_missing_root(self, tmp_path):
        assert scan([f"{tmp_path.as_posix()}/missing/**/*.json"]) == []
