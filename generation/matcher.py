"""Tiered resolution of a generation task to its downloadable artifact."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from core import CompletionRecord, MatchResult, MatchTier


logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_key(text: str, length: int = 30) -> str:
    """Lower-case, strip non-alphanumerics, keep a short prefix."""
    return _NON_ALNUM.sub("", str(text or "").lower())[: max(0, int(length))]


class TaskMatcher:
    """
    Resolve a task id against the generation feed.

    Tiers, in order: exact structured ``task_id`` match, fuzzy match on the
    request text, then the first completed record. The last tier guarantees
    progress when correlation fails, at the risk of attaching another task's
    artifact; its results are tagged FALLBACK so callers can tell.
    """

    def __init__(self, *, short_id_pattern: str = r"(S2_\d+_\d+_\d+)", key_length: int = 30) -> None:
        self._short_id_re = re.compile(short_id_pattern)
        self.key_length = int(key_length)

    def extract_short_id(self, text: Optional[str]) -> Optional[str]:
        match = self._short_id_re.search(str(text or ""))
        if not match:
            return None
        return match.group(1) if match.groups() else match.group(0)

    def resolve(
        self,
        task_id: Optional[str],
        feed: Sequence[CompletionRecord],
        *,
        request_text: Optional[str] = None,
        allow_fallback: bool = True,
    ) -> MatchResult:
        candidates = [record for record in feed if record.is_complete and record.has_url]

        target = str(task_id or "").strip()
        if target:
            for record in candidates:
                if record.task_id == target:
                    logger.info("match_exact task_id=%s", target)
                    return MatchResult(tier=MatchTier.EXACT, urls=[record.url])

        fuzzy = self._fuzzy_urls(candidates, request_text)
        if fuzzy:
            logger.info("match_fuzzy task_id=%s candidates=%s", target or "-", len(fuzzy))
            return MatchResult(tier=MatchTier.FUZZY, urls=fuzzy)

        if allow_fallback and candidates:
            logger.warning(
                "match_fallback task_id=%s using first completed record %s; artifact may belong to another task",
                target or "-",
                candidates[0].record_id or "-",
            )
            return MatchResult(tier=MatchTier.FALLBACK, urls=[candidates[0].url])

        return MatchResult(tier=MatchTier.NOT_FOUND)

    def find_by_short_id(self, short_id: str, feed: Sequence[CompletionRecord]) -> Optional[str]:
        """URL of the first completed record whose display text carries ``short_id``."""
        needle = str(short_id or "").strip()
        if not needle:
            return None
        for record in feed:
            if record.is_complete and record.has_url and needle in record.display_text:
                return record.url
        return None

    def _fuzzy_urls(self, candidates: Sequence[CompletionRecord], request_text: Optional[str]) -> List[str]:
        text = str(request_text or "")
        if not text.strip():
            return []

        short_id = self.extract_short_id(text)
        target_key = normalize_key(text, self.key_length)

        urls: List[str] = []
        for record in candidates:
            matched = bool(short_id) and short_id in record.display_text
            if not matched and target_key:
                record_key = normalize_key(record.display_text, self.key_length)
                matched = bool(record_key) and (target_key in record_key or record_key in target_key)
            if matched:
                urls.append(record.url)
        return urls
