"""推論Todo突き合わせのテスト"""

import pytest

from ai_note.todo import (
    Confidence,
    MemoryStateBackend,
    TodoOrigin,
    TodoRecord,
    TodoRepository,
    TodoStatus,
    normalize_text,
    reconcile,
    similarity,
)
from ai_note.todo.reconciler import is_duplicate

FILE = "notes.md"


def make_record(text, line_number, identity=None, origin=TodoOrigin.INFERRED, file_path=FILE):
    return TodoRecord(
        identity=identity or f"{file_path}:{line_number}:{text}",
        text=text,
        status=TodoStatus.PENDING,
        file_path=file_path,
        line_number=line_number,
        created_at=1,
        updated_at=1,
        origin=origin,
        confidence=Confidence.HIGH if origin is TodoOrigin.INFERRED else None,
    )


class TestNormalization:
    def test_normalize_text(self):
        assert normalize_text("  Fix   THE\tbug\n") == "fix the bug"
        assert normalize_text("   ") == ""

    def test_similarity_identical_after_normalization(self):
        assert similarity("Fix the bug", "fix   THE bug") == 1

    def test_similarity_jaccard(self):
        assert similarity("Fix the bug", "Fix the login bug") == pytest.approx(0.75)

    def test_similarity_counts_tokens_as_sets(self):
        assert similarity("bug bug fix", "fix bug") == 1.0

    def test_similarity_disjoint(self):
        assert similarity("buy milk", "call dentist") == 0.0

    def test_similarity_with_empty_text(self):
        assert similarity("", "   ") == 1.0
        assert similarity("", "buy milk") == 0.0


class TestIsDuplicate:
    def test_exact_match_ignores_line_distance(self):
        assert is_duplicate(make_record("Buy Milk", 500), make_record("buy milk", 1))

    def test_similar_text_near_line_is_duplicate(self):
        existing = make_record("update the project readme file now", 10)
        candidate = make_record("update the project readme file", 12)
        assert similarity(candidate.text, existing.text) > 0.8
        assert is_duplicate(candidate, existing)

    def test_similar_text_far_away_is_not_duplicate(self):
        existing = make_record("update the project readme file now", 10)
        candidate = make_record("update the project readme file", 13)
        assert not is_duplicate(candidate, existing)

    def test_threshold_is_strict(self):
        # 4/5 = 0.8 は閾値と等しいので重複ではない
        existing = make_record("a b c d e", 5)
        candidate = make_record("a b c d", 5)
        assert similarity(candidate.text, existing.text) == pytest.approx(0.8)
        assert not is_duplicate(candidate, existing)

    def test_below_threshold_near_line(self):
        assert not is_duplicate(make_record("Fix the login bug", 4), make_record("Fix the bug", 4))


class TestReconcile:
    def test_end_to_end_scenario(self):
        existing = [make_record("buy milk", 10, origin=TodoOrigin.MARKER)]
        candidates = [
            make_record("buy milk", 50),
            make_record("Buy   Milk", 11),
            make_record("call dentist", 3),
        ]

        result = reconcile(FILE, existing, candidates)

        assert result.accepted_count == 1
        assert result.skipped_count == 2
        assert [r.text for r in result.accepted] == ["call dentist"]

    def test_empty_candidates(self):
        result = reconcile(FILE, [make_record("buy milk", 1)], [])
        assert result.accepted == []
        assert result.accepted_count == 0
        assert result.skipped_count == 0

    def test_empty_existing_accepts_everything(self):
        candidates = [make_record("a", 1), make_record("a", 1, identity="dup")]
        result = reconcile(FILE, [], candidates)
        assert result.accepted_count == 2
        assert result.skipped_count == 0

    def test_batch_duplicates_are_not_compared_with_each_other(self):
        candidates = [make_record("Email Bob", 4, identity="c1"), make_record("email bob", 5, identity="c2")]
        result = reconcile(FILE, [make_record("other", 40)], candidates)
        assert result.accepted_count == 2

    def test_dedupe_within_batch_option(self):
        candidates = [make_record("Email Bob", 4, identity="c1"), make_record("email bob", 5, identity="c2")]
        result = reconcile(FILE, [], candidates, dedupe_within_batch=True)
        assert [r.identity for r in result.accepted] == ["c1"]
        assert result.skipped_count == 1

    def test_empty_text_candidate_follows_same_rules(self):
        result = reconcile(FILE, [make_record("  ", 1)], [make_record("", 30), make_record("", 1, identity="e2")])
        assert result.accepted_count == 0
        assert result.skipped_count == 2

        result = reconcile(FILE, [make_record("buy milk", 1)], [make_record("", 30)])
        assert result.accepted_count == 1

    def test_existing_records_are_not_mutated(self):
        existing = [make_record("buy milk", 10)]
        snapshot = list(existing)
        reconcile(FILE, existing, [make_record("call dentist", 3)])
        assert existing == snapshot

    def test_candidate_from_other_file_rejected(self):
        with pytest.raises(ValueError):
            reconcile(FILE, [], [make_record("x", 1, file_path="other.md")])

    def test_idempotent_against_unchanged_existing(self):
        existing = [make_record("buy milk", 10, origin=TodoOrigin.MARKER)]
        candidates = [make_record("call dentist", 3), make_record("buy milk", 20)]

        first = reconcile(FILE, existing, candidates)
        second = reconcile(FILE, existing, candidates)

        assert first.accepted_count == second.accepted_count == 1

    def test_not_idempotent_after_appending(self):
        repo = TodoRepository(MemoryStateBackend())
        repo.append_records([make_record("buy milk", 10)])
        candidates = [make_record("call dentist", 3)]

        first = reconcile(FILE, repo.records_for_file(FILE), candidates)
        repo.append_records(first.accepted)
        second = reconcile(FILE, repo.records_for_file(FILE), candidates)

        assert first.accepted_count == 1
        assert second.accepted_count == 0
        assert second.skipped_count == 1
