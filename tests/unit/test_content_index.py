"""
Tests for the FTS5 content index and search queries.

**Feature: docscope-content-search**
"""

from pathlib import Path

import pytest

from docscope.core.models import FileStat, SearchCriteria
from docscope.infrastructure import ContentIndex, create_metadata_store
from docscope.infrastructure.metadata_store import build_match_query


@pytest.fixture
def store(tmp_path: Path):
    store = create_metadata_store(tmp_path / "index.db")
    yield store
    store.close()


@pytest.fixture
def index(store) -> ContentIndex:
    return ContentIndex(store)


@pytest.fixture
def corpus(store, index):
    """Two owners with a handful of indexed files."""
    scope = store.create_scope(1, "/home/u/docs")
    other = store.create_scope(2, "/home/v/docs")
    ids = {}
    for path, text in [
        ("/home/u/docs/reports/q1.txt", "quarterly revenue grew strongly"),
        ("/home/u/docs/reports/q2.txt", "revenue flat, costs down"),
        ("/home/u/docs/notes/todo.md", "buy milk and eggs"),
        ("/home/u/docs/invoice.pdf", "invoice for consulting services"),
    ]:
        file_id = store.upsert_file(scope.id, path, FileStat(size=len(text), mtime=0))
        index.index_content(file_id, text)
        ids[Path(path).name] = file_id
    foreign = store.upsert_file(other.id, "/home/v/docs/q1.txt", FileStat(size=1, mtime=0))
    index.index_content(foreign, "revenue of another owner")
    ids["foreign"] = foreign
    return ids


def _names(hits) -> set[str]:
    return {hit.file.name for hit in hits}


class TestMatchQuery:
    def test_terms_are_quoted_prefixes(self):
        assert build_match_query("hello  world") == '"hello"* AND "world"*'

    def test_embedded_quotes_are_doubled(self):
        assert build_match_query('say "hi"') == '"say"* AND """hi"""*'

    def test_blank(self):
        assert build_match_query("   ") == ""


class TestIndexing:
    def test_overwrite_keeps_one_entry(self, store, index):
        scope = store.create_scope(1, "/d")
        file_id = store.upsert_file(scope.id, "/d/a.txt", FileStat(size=1, mtime=0))

        index.index_content(file_id, "first version")
        index.index_content(file_id, "second version")

        assert index.get_content(file_id) == "second version"
        assert index.search(1, SearchCriteria(content="first")) == []

    def test_delete_content(self, store, index):
        scope = store.create_scope(1, "/d")
        file_id = store.upsert_file(scope.id, "/d/a.txt", FileStat(size=1, mtime=0))
        index.index_content(file_id, "text")

        assert index.delete_content(file_id) is True
        assert index.get_content(file_id) is None


class TestSearch:
    def test_empty_criteria_match_nothing(self, index, corpus):
        assert index.search(1, SearchCriteria()) == []
        assert index.search(1, SearchCriteria(content="  ", filename=" ")) == []

    def test_content_prefix_match_with_snippet(self, index, corpus):
        hits = index.search(1, SearchCriteria(content="reven"))

        assert _names(hits) == {"q1.txt", "q2.txt"}
        assert all("<b>" in hit.snippet for hit in hits)

    def test_terms_are_combined_with_and(self, index, corpus):
        hits = index.search(1, SearchCriteria(content="revenue costs"))

        assert _names(hits) == {"q2.txt"}

    def test_porter_stemming(self, index, corpus):
        assert _names(index.search(1, SearchCriteria(content="consulted"))) == {"invoice.pdf"}

    def test_results_scoped_to_owner(self, index, corpus):
        hits = index.search(2, SearchCriteria(content="revenue"))

        assert [hit.file.id for hit in hits] == [corpus["foreign"]]

    def test_filename_substring(self, index, corpus):
        hits = index.search(1, SearchCriteria(filename="q"))

        assert _names(hits) == {"q1.txt", "q2.txt"}
        assert all(hit.snippet is None for hit in hits)

    def test_directory_filter(self, index, corpus):
        assert _names(index.search(1, SearchCriteria(directory="notes"))) == {"todo.md"}
        assert _names(index.search(1, SearchCriteria(directory="invoice.pdf"))) == {"invoice.pdf"}

    def test_criteria_combine(self, index, corpus):
        hits = index.search(1, SearchCriteria(content="revenue", filename="q1", directory="reports"))

        assert _names(hits) == {"q1.txt"}

    def test_quotes_in_query_do_not_break_search(self, index, corpus):
        assert index.search(1, SearchCriteria(content='"unbalanced')) == []

    def test_limit(self, index, corpus):
        assert len(index.search(1, SearchCriteria(filename="."), limit=2)) == 2

    def test_tag_restriction(self, store, index, corpus):
        tag = store.create_tag(1, "finance")
        store.tag_file(corpus["q1.txt"], tag.id)

        hits = index.search(1, SearchCriteria(content="revenue"), allowed_tag_ids={tag.id})
        assert _names(hits) == {"q1.txt"}

        assert index.search(1, SearchCriteria(content="revenue"), allowed_tag_ids=set()) == []
