# =============================================================================
# Unit Tests — Vector Store Helpers & Connection Pool
# =============================================================================
#
# Row normalisation for `match_documents` and the checkout hook that
# retires overused pooled connections. No PostgreSQL instance needed:
# the queries themselves are covered by the tool tests through fakes.
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import DisconnectionError

from nursing_rag.db.engine import _evict_overused_connection
from nursing_rag.services.vectorstore import passage_from_row


class TestPassageFromRow:
    """Metadata fallbacks across ingestion generations."""

    def test_canonical_metadata(self):
        passage = passage_from_row(
            42,
            "Assess airway first.",
            {"book_title": "Critical Care", "book_id": "cc_3", "page_start": 12, "page_end": 14},
            0.87,
        )
        assert passage.source_id == "42"
        assert passage.book_title == "Critical Care"
        assert passage.book_id == "cc_3"
        assert (passage.page_start, passage.page_end) == (12, 14)
        assert passage.similarity_score == pytest.approx(0.87)

    def test_legacy_keys(self):
        passage = passage_from_row(1, "text", {"book": "Old Title", "page_number": 9}, 0.5)
        assert passage.book_title == "Old Title"
        assert (passage.page_start, passage.page_end) == (9, 9)

    def test_json_string_metadata(self):
        passage = passage_from_row(1, "text", '{"book_title": "Peds", "book_id": 7}', 0.5)
        assert passage.book_title == "Peds"
        assert passage.book_id == "7"

    def test_missing_metadata_defaults(self):
        passage = passage_from_row(1, None, None, None)
        assert passage.content == ""
        assert passage.book_title == "Unknown"
        assert passage.book_id == "unknown"
        assert passage.page_start == 0
        assert passage.similarity_score == 0.0

    def test_non_numeric_page_defaults_to_zero(self):
        passage = passage_from_row(1, "text", {"page_start": "xii"}, 0.5)
        assert passage.page_start == 0


class TestConnectionEviction:
    """Checkout counting on pooled connections."""

    def _record(self):
        record = MagicMock()
        record.info = {}
        return record

    def test_counts_checkouts(self):
        record = self._record()
        _evict_overused_connection(None, record, None)
        _evict_overused_connection(None, record, None)
        assert record.info["uses"] == 2

    def test_evicts_past_limit(self):
        record = self._record()
        with patch("nursing_rag.db.engine.settings.db_connection_max_uses", 2):
            _evict_overused_connection(None, record, None)
            _evict_overused_connection(None, record, None)
            with pytest.raises(DisconnectionError):
                _evict_overused_connection(None, record, None)
        assert record.info["uses"] == 0
