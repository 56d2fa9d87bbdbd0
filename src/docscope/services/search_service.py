"""
Search Service for docscope.

Provides filename, content and directory search over an owner's
indexed files, plus the per-owner search settings.
"""

import logging
import re
from dataclasses import replace
from typing import Optional

from docscope.core.models import ApiKey, SearchCriteria, SearchHit, SearchSettings
from docscope.core.path_utils import normalize_extension
from docscope.core.permissions import allowed_tag_ids
from docscope.core.redaction import redact_with_multiple_profiles
from docscope.infrastructure.content_index import ContentIndex
from docscope.infrastructure.metadata_store import MetadataStore

logger = logging.getLogger(__name__)

_HIGHLIGHT_MARKERS = re.compile(r"</?b>")


def highlight_terms(text: str, query: str) -> str:
    """Wrap words starting with any query term in <b> markers, as FTS snippets do."""
    terms = [re.escape(term) for term in re.findall(r"\w+", query)]
    if not terms:
        return text
    pattern = re.compile(r"\b(?:" + "|".join(terms) + r")\w*", re.IGNORECASE)
    return pattern.sub(lambda match: f"<b>{match.group(0)}</b>", text)


class SearchSettingsError(ValueError):
    """Raised when submitted search settings are malformed."""

    pass


class SearchService:
    """
    Service for file search.

    Combines the three criteria with AND; criteria that are all empty
    return no results rather than every file.
    """

    def __init__(
        self,
        content_index: ContentIndex,
        metadata_store: MetadataStore,
        default_limit: int = 500,
    ):
        """
        Initialize the search service.

        Args:
            content_index: FTS5 index used for all queries
            metadata_store: Store holding per-owner search settings
            default_limit: Default number of results to return
        """
        self._index = content_index
        self._store = metadata_store
        self._default_limit = default_limit

    def search(
        self,
        owner_id: int,
        criteria: SearchCriteria,
        limit: Optional[int] = None,
        api_key: Optional[ApiKey] = None,
    ) -> list[SearchHit]:
        """
        Search an owner's files.

        Args:
            owner_id: Owner whose scopes are searched
            criteria: filename, content and directory filters
            limit: Maximum results, defaults to the configured limit
            api_key: When given, results are restricted to the key's tags
                and snippets are redacted through its profiles

        Returns:
            Matching files, with snippets for content matches
        """
        if criteria.is_empty():
            return []

        tag_ids = allowed_tag_ids(api_key.permissions) if api_key else None
        hits = self._index.search(
            owner_id,
            criteria,
            limit=limit or self._default_limit,
            allowed_tag_ids=tag_ids,
        )
        if api_key is not None and api_key.profile_ids:
            hits = [self._redact_hit(hit, criteria.content, api_key.profile_ids) for hit in hits]
        logger.info(
            f"Search for owner {owner_id} returned {len(hits)} results",
            extra={"owner_id": owner_id, "result_count": len(hits)},
        )
        return hits

    def _redact_hit(self, hit: SearchHit, query: str, profile_ids: list[int]) -> SearchHit:
        if not hit.snippet:
            return hit
        # Rules run on the unmarked text; highlights are re-applied afterwards.
        plain = _HIGHLIGHT_MARKERS.sub("", hit.snippet)
        redacted = redact_with_multiple_profiles(plain, profile_ids, self._store)
        return replace(hit, snippet=highlight_terms(redacted, query))

    def get_settings(self, owner_id: int) -> SearchSettings:
        return self._store.get_search_settings(owner_id)

    def update_settings(self, owner_id: int, allowed_extensions: object) -> SearchSettings:
        """
        Replace an owner's extension allow-list.

        None restores the configured default list.

        Raises:
            SearchSettingsError: If allowed_extensions is not a list of strings
        """
        if allowed_extensions is None:
            settings = SearchSettings()
        else:
            if not isinstance(allowed_extensions, list) or not all(
                isinstance(ext, str) for ext in allowed_extensions
            ):
                raise SearchSettingsError("allowed_extensions must be a list of strings")
            normalized = []
            for ext in allowed_extensions:
                value = normalize_extension(ext)
                if value and value not in normalized:
                    normalized.append(value)
            settings = SearchSettings(allowed_extensions=normalized)

        self._store.set_search_settings(owner_id, settings)
        return settings
