import pytest

from ragfusion.aggregation.chunks import collect_chunks
from ragfusion.aggregation.dedup import are_similar, deduplicate, jaccard_similarity
from ragfusion.core.types import SourceChunk, TechniqueResponse


def response(technique, *chunks):
    return TechniqueResponse(technique=technique, source_chunks=list(chunks), metadata={"execution_time_ms": 10})


def test_jaccard_similarity():
    assert jaccard_similarity("a b c", "a b d") == pytest.approx(0.5)
    assert jaccard_similarity("Alpha BETA", "alpha beta") == 1.0
    assert jaccard_similarity("", "") == 0.0
    assert jaccard_similarity("a", "") == 0.0


def test_adjacent_chunks_of_same_document_are_similar():
    a, b, c = collect_chunks([
        response(
            "semantic-search",
            SourceChunk("c1", "d1", "governing law clause", 4, 0.9),
            SourceChunk("c2", "d1", "completely different words", 5, 0.8),
            SourceChunk("c3", "d2", "completely different words", 5, 0.7),
        )
    ])
    assert are_similar(a, b)
    assert not are_similar(a, c)


def test_same_chunk_from_two_techniques_keeps_both_provenances():
    shared = SourceChunk("c1", "d1", "the agreement is governed by new york law", 3, 0.9)
    chunks = collect_chunks([
        response("semantic-search", shared),
        response("lexical-search", SourceChunk("c1", "d1", shared.content, 3, 0.6)),
    ])

    (merged,) = deduplicate(chunks)

    assert merged.found_by_techniques == ["semantic-search", "lexical-search"]
    assert merged.technique_scores == {"semantic-search": 0.9, "lexical-search": 0.6}
    assert merged.technique_ranks == {"semantic-search": 1, "lexical-search": 1}
    assert merged.duplicate_info.canonical_id == "c1"
    assert merged.duplicate_info.merged_ids == ["c1"]
    assert merged.duplicate_info.similarity_to_canonical == pytest.approx(1.0)


def test_later_entry_wins_for_same_technique():
    chunks = collect_chunks([
        response(
            "semantic-search",
            SourceChunk("c1", "d1", "first passage", 0, 0.9),
            SourceChunk("c2", "d1", "second passage", 1, 0.4),
        )
    ])

    (merged,) = deduplicate(chunks)

    assert merged.id == "c1"
    assert merged.content == "first passage"
    assert merged.technique_scores == {"semantic-search": 0.4}
    assert merged.technique_ranks == {"semantic-search": 2}
    assert merged.duplicate_info.merged_ids == ["c2"]


def test_merge_is_not_transitive():
    # c1~c2 (adjacent) and c2~c3 (adjacent), but c1 and c3 are two apart
    chunks = collect_chunks([
        response(
            "semantic-search",
            SourceChunk("c1", "d1", "alpha", 0, 0.9),
            SourceChunk("c2", "d1", "beta", 1, 0.8),
            SourceChunk("c3", "d1", "gamma", 2, 0.7),
        )
    ])

    out = deduplicate(chunks)

    assert [c.id for c in out] == ["c1", "c3"]
    assert out[0].duplicate_info.merged_ids == ["c2"]
    assert out[1].duplicate_info is None


def test_dedup_is_idempotent():
    chunks = collect_chunks([
        response(
            "semantic-search",
            SourceChunk("c1", "d1", "alpha", 0, 0.9),
            SourceChunk("c2", "d1", "beta", 1, 0.8),
            SourceChunk("c3", "d1", "gamma", 2, 0.7),
            SourceChunk("c4", "d2", "the quick brown fox jumps", 0, 0.5),
        ),
        response(
            "lexical-search",
            SourceChunk("c5", "d3", "the quick brown fox jumps", 9, 0.6),
            SourceChunk("c1", "d1", "alpha", 0, 0.3),
        ),
    ])

    once = deduplicate(chunks)
    twice = deduplicate(once)

    assert twice == once
    assert len(once) == 3


def test_threshold_controls_content_merging():
    chunks = collect_chunks([
        response("semantic-search", SourceChunk("c1", "d1", "a b c d", 0, 0.9)),
        response("lexical-search", SourceChunk("c2", "d2", "a b c e", 0, 0.8)),
    ])
    # jaccard = 3/5
    assert len(deduplicate(chunks, threshold=0.85)) == 2
    assert len(deduplicate(chunks, threshold=0.6)) == 1
