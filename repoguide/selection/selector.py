"""Budget-constrained ranking of repository files."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

from ..config import SelectionConfig
from ..logging import get_logger
from ..models import RepositoryFileEntry, ScoredFile
from . import classifier


def estimate_tokens(size: int, bytes_per_token: float = 3.5) -> int:
    """Approximate model input units for a blob of ``size`` bytes."""
    if size <= 0:
        return 0
    return math.ceil(size / bytes_per_token)


class FileSelector:
    """Scores tree entries and greedily fills a token budget.

    Scores are additive across categories (a root-level entry point earns
    both weights), then reduced by path depth and, logarithmically, by
    size. Selection walks the ranking and skips any file that would
    overflow the remaining budget rather than stopping at it, so small
    low-ranked files can still fill the tail of the budget.
    """

    def __init__(self, config: SelectionConfig | None = None) -> None:
        self.config = config or SelectionConfig()
        self.logger = get_logger("selection")

    def is_candidate(self, entry: RepositoryFileEntry) -> bool:
        # Unknown (or empty) size is unscorable, not free.
        if not entry.size:
            return False
        if classifier.is_binary(entry.path, entry.size, size_limit=self.config.binary_size_limit):
            return False
        return not classifier.is_minified(entry.path)

    def score(self, entry: RepositoryFileEntry) -> float:
        cfg = self.config
        path = entry.path
        weights = {
            "root": cfg.root_weight,
            "entry_point": cfg.entry_point_weight,
            "config": cfg.config_weight,
            "documentation": cfg.documentation_weight,
            "source": cfg.source_weight,
        }
        found = classifier.categories(path)
        score = sum(weight for name, weight in weights.items() if name in found)

        score -= cfg.depth_penalty * classifier.depth(path)

        size_kib = (entry.size or 0) / 1024
        score -= cfg.size_penalty * math.log10(max(size_kib, 1.0))
        return score

    def rank(self, tree: Iterable[RepositoryFileEntry]) -> List[ScoredFile]:
        """Return scored candidates, best first; ties keep tree order."""
        scored = [
            ScoredFile(
                entry=entry,
                score=self.score(entry),
                estimated_tokens=estimate_tokens(entry.size or 0, self.config.bytes_per_token),
            )
            for entry in tree
            if self.is_candidate(entry)
        ]
        return sorted(scored, key=lambda item: -item.score)

    def select(
        self, tree: Sequence[RepositoryFileEntry], budget: Optional[int] = None
    ) -> List[RepositoryFileEntry]:
        limit = self.config.token_budget if budget is None else budget
        selected: List[RepositoryFileEntry] = []
        if limit <= 0:
            return selected

        used = 0
        ranked = self.rank(tree)
        for item in ranked:
            if used + item.estimated_tokens > limit:
                continue
            selected.append(item.entry)
            used += item.estimated_tokens

        self.logger.info(
            "Selected %d of %d files (%d candidates, ~%d/%d tokens)",
            len(selected),
            len(tree),
            len(ranked),
            used,
            limit,
        )
        return selected


def select_files(
    tree: Sequence[RepositoryFileEntry],
    budget: Optional[int] = None,
    *,
    config: SelectionConfig | None = None,
) -> List[RepositoryFileEntry]:
    """Convenience wrapper around :class:`FileSelector`."""
    return FileSelector(config).select(tree, budget)


__all__ = ["FileSelector", "estimate_tokens", "select_files"]
