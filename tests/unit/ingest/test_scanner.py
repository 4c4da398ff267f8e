"""Tests for document discovery and change detection."""

from __future__ import annotations

import hashlib

import pytest

from knowledge_engine.db.models import NewFragment
from knowledge_engine.errors import IngestionError
from knowledge_engine.ingest.scanner import compute_hash, discover, scan


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _store(repo, path, text):
    """Record *path* as indexed with the hash of *text*."""
    h = hashlib.sha256(text.encode("utf-8")).hexdigest()
    repo.replace_document(str(path.resolve()), h, [NewFragment(0, text, [1.0, 0.0])])


# ------------------------------------------------------------------
# discover
# ------------------------------------------------------------------


def test_discover_recursive_and_sorted(tmp_path):
    _write(tmp_path / "b.md", "b")
    _write(tmp_path / "sub" / "a.txt", "a")
    _write(tmp_path / "c.pdf", "c")
    found = [p.relative_to(tmp_path).as_posix() for p in discover(tmp_path)]
    assert found == ["b.md", "c.pdf", "sub/a.txt"]


def test_discover_skips_unsupported_and_hidden(tmp_path):
    _write(tmp_path / "keep.txt", "x")
    _write(tmp_path / "image.png", "x")
    _write(tmp_path / ".hidden.md", "x")
    _write(tmp_path / ".git" / "notes.txt", "x")
    assert [p.name for p in discover(tmp_path)] == ["keep.txt"]


def test_discover_exclude_patterns(tmp_path):
    _write(tmp_path / "keep.md", "x")
    _write(tmp_path / "draft-1.md", "x")
    found = discover(tmp_path, exclude=["draft-*"])
    assert [p.name for p in found] == ["keep.md"]


def test_discover_missing_root(tmp_path):
    with pytest.raises(IngestionError, match="not a directory"):
        discover(tmp_path / "missing")


def test_compute_hash_matches_sha256(tmp_path):
    f = _write(tmp_path / "a.txt", "hello")
    assert compute_hash(f) == hashlib.sha256(b"hello").hexdigest()


# ------------------------------------------------------------------
# scan
# ------------------------------------------------------------------


def test_scan_new_documents(tmp_path, repo):
    docs = tmp_path / "docs"
    _write(docs / "a.md", "alpha")
    batch = scan(docs, repo)
    assert len(batch.items) == 1
    item = batch.items[0]
    assert item.path == str((docs / "a.md").resolve())
    assert item.text == "alpha"
    assert item.is_new is True
    assert batch.skipped == []


def test_scan_skips_unchanged(tmp_path, repo):
    docs = tmp_path / "docs"
    f = _write(docs / "a.md", "alpha")
    _store(repo, f, "alpha")
    extracted = []

    def _extractor(path):
        extracted.append(path)
        return path.read_text()

    batch = scan(docs, repo, extractor=_extractor)
    assert batch.items == []
    assert batch.skipped == [str(f.resolve())]
    assert extracted == []


def test_scan_detects_changed(tmp_path, repo):
    docs = tmp_path / "docs"
    f = _write(docs / "a.md", "alpha")
    _store(repo, f, "old alpha")
    batch = scan(docs, repo)
    assert len(batch.items) == 1
    assert batch.items[0].is_new is False


def test_scan_records_extraction_failure_and_continues(tmp_path, repo):
    docs = tmp_path / "docs"
    _write(docs / "empty.md", "   ")
    _write(docs / "good.md", "content")
    batch = scan(docs, repo)
    assert [i.text for i in batch.items] == ["content"]
    assert len(batch.failures) == 1
    assert batch.failures[0].path.endswith("empty.md")
    assert batch.failures[0].reason == "no extractable text"


def test_scan_writes_nothing(tmp_path, repo):
    docs = tmp_path / "docs"
    _write(docs / "a.md", "alpha")
    scan(docs, repo)
    assert repo.list_documents() == []
