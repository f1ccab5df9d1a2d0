# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Brute-force cosine similarity search over stored file embeddings.

Ranking is O(files) per query, which is fine at the scale of one workspace.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np

from victor_index.codebase.models import FileIndexEntry, SymbolInfo

logger = logging.getLogger(__name__)

# Absorbs rounding so an identical vector still clears min_similarity=1.0
_SCORE_TOLERANCE = 1e-9


@dataclass
class SimilarityMatch:
    """A file ranked against a query embedding."""

    path: str
    score: float
    symbol: Optional[SymbolInfo] = None  # first declared symbol of the file, if any


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 for zero or mismatched vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def find_similar(
    entries: Iterable[FileIndexEntry],
    query_embedding: Sequence[float],
    top_n: int,
    min_similarity: float,
    model: Optional[str] = None,
) -> List[SimilarityMatch]:
    """Rank entries by cosine similarity to a query embedding.

    Args:
        entries: Index entries to rank
        query_embedding: Query vector
        top_n: Maximum number of matches
        min_similarity: Matches scoring below this are dropped
        model: Identity of the model that produced the query vector; entries
            tagged with a different model are skipped

    Returns:
        Matches sorted by descending score (stable for equal scores). Empty
        for an empty index or an empty/all-zero query.
    """
    if top_n <= 0:
        return []
    query = np.asarray(query_embedding, dtype=np.float64)
    if query.ndim != 1 or query.size == 0:
        return []
    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return []

    candidates: List[FileIndexEntry] = []
    skipped_other_model = 0
    for entry in entries:
        if not entry.embedding:
            continue
        if model and entry.embedding_model and entry.embedding_model != model:
            skipped_other_model += 1
            continue
        if len(entry.embedding) != query.size:
            continue
        candidates.append(entry)

    if skipped_other_model:
        logger.warning(
            f"Skipped {skipped_other_model} files embedded with a different model than {model}; "
            f"re-embed them to include them in search"
        )
    if not candidates:
        return []

    matrix = np.asarray([entry.embedding for entry in candidates], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = (matrix @ query) / (norms * query_norm)
    scores = np.clip(np.where(norms > 0, scores, 0.0), -1.0, 1.0)

    # Zero vectors carry no signal and never match, whatever the threshold
    matches = [
        SimilarityMatch(
            path=entry.path,
            score=float(score),
            symbol=entry.symbols[0] if entry.symbols else None,
        )
        for entry, score, norm in zip(candidates, scores, norms)
        if norm > 0 and score >= min_similarity - _SCORE_TOLERANCE
    ]
    matches.sort(key=lambda match: match.score, reverse=True)
    return matches[:top_n]
