"""Tests for allow-list filtering, shuffling and recommendation merging."""

from src.recommender.aggregator import (
    DYNAMIC_WORKSPACE_REASON,
    EXECUTABLE_REASON,
    RecommendationAggregator,
    merge_distinct,
    recommendation_sources,
)
from src.recommender.allowlist import AllowListFilter
from src.recommender.models import (
    ExtensionRecommendation,
    ExtensionRecommendationReason,
    ExtensionRecommendationSource,
    RecommendationReason,
)
from src.recommender.shuffle import new_session_seed, shuffle
from src.recommender.tips import pool_tips

from .conftest import make_tip


def base_list(*extension_ids):
    return [ExtensionRecommendation(extension_id=extension_id) for extension_id in extension_ids]


class TestAllowListFilter:
    """Test AllowListFilter."""

    def test_case_insensitive(self):
        allow_list = AllowListFilter(lambda: ["Bad.Extension"])

        assert not allow_list.is_allowed("bad.extension")
        assert not allow_list.is_allowed("BAD.EXTENSION")
        assert allow_list.is_allowed("good.extension")

    def test_filter_preserves_order(self):
        allow_list = AllowListFilter(lambda: ["b.b"])
        assert allow_list.filter(["c.c", "b.b", "a.a"]) == ["c.c", "a.a"]

    def test_provider_queried_each_time(self):
        ignored = []
        allow_list = AllowListFilter(lambda: ignored)

        assert allow_list.is_allowed("a.a")
        ignored.append("a.a")
        assert not allow_list.is_allowed("a.a")


class TestShuffle:
    """Test seeded shuffling."""

    def test_same_seed_same_order(self):
        items = [f"ext.{i}" for i in range(20)]
        assert shuffle(items, 1234) == shuffle(items, 1234)

    def test_different_seeds_differ(self):
        items = [f"ext.{i}" for i in range(20)]
        assert shuffle(items, 1) != shuffle(items, 2)

    def test_is_permutation_and_input_untouched(self):
        items = [f"ext.{i}" for i in range(10)]
        original = list(items)

        shuffled = shuffle(items, 99)

        assert sorted(shuffled) == sorted(original)
        assert items == original

    def test_small_inputs(self):
        assert shuffle([], 5) == []
        assert shuffle(["only"], 5) == ["only"]

    def test_session_seed_positive(self):
        assert new_session_seed() > 0


class TestMergeDistinct:
    """Test order-preserving deduplication."""

    def test_first_occurrence_wins(self):
        assert merge_distinct(["x", "y"], ["y", "z"], ["w", "x"]) == ["x", "y", "z", "w"]

    def test_empty_sources(self):
        assert merge_distinct([], [], []) == []

    def test_sources_tagging(self):
        assert recommendation_sources("a", {"a"}, {"a"}) == [
            ExtensionRecommendationSource.EXECUTABLE,
            ExtensionRecommendationSource.DYNAMIC,
        ]
        assert recommendation_sources("b", {"a"}, {"b"}) == [ExtensionRecommendationSource.DYNAMIC]
        assert recommendation_sources("c", {"a"}, {"b"}) == []


class TestRecommendationAggregator:
    """Test RecommendationAggregator."""

    def test_merge_contains_each_id_once(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: []), session_seed=7)

        result = aggregator.merge(["x", "y"], ["y", "z"], base_list("w", "x"))

        ids = [entry.extension_id for entry in result]
        assert sorted(ids) == ["w", "x", "y", "z"]
        assert ids == shuffle(["x", "y", "z", "w"], 7)

    def test_merge_tags_sources(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: []), session_seed=7)

        result = {
            entry.extension_id: entry.sources
            for entry in aggregator.merge(["x", "y"], ["y", "z"], base_list("w", "x"))
        }

        assert result["x"] == [ExtensionRecommendationSource.EXECUTABLE]
        assert result["y"] == [
            ExtensionRecommendationSource.EXECUTABLE,
            ExtensionRecommendationSource.DYNAMIC,
        ]
        assert result["z"] == [ExtensionRecommendationSource.DYNAMIC]
        assert result["w"] == []

    def test_merge_applies_allow_list(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: ["Z"]), session_seed=7)

        result = aggregator.merge(["x"], ["z"], base_list("w"))

        assert "z" not in [entry.extension_id for entry in result]

    def test_merge_stable_within_session(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: []), session_seed=3)
        first = aggregator.merge(["a", "b", "c"], ["d", "e"], base_list("f", "g"))
        second = aggregator.merge(["a", "b", "c"], ["d", "e"], base_list("f", "g"))
        assert first == second

    def test_executable_reason_wins(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: []), session_seed=1)
        base = {
            "ms-python.python": RecommendationReason(
                reason_id=ExtensionRecommendationReason.FILE, reason_text="base"
            )
        }
        tips = pool_tips([make_tip("MS-Python.Python", friendly_name="Python")])

        reasons = aggregator.compose_reasons(
            base, ["ms-python.python"], tips, folder_name="widget"
        )

        reason = reasons["ms-python.python"]
        assert reason.reason_id == ExtensionRecommendationReason.EXECUTABLE
        assert reason.reason_text == EXECUTABLE_REASON.format("Python")

    def test_dynamic_reason_overrides_base(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: []), session_seed=1)
        base = {
            "a.b": RecommendationReason(
                reason_id=ExtensionRecommendationReason.FILE, reason_text="base"
            )
        }

        reasons = aggregator.compose_reasons(base, ["A.B"], {}, folder_name="widget")

        assert reasons["a.b"].reason_id == ExtensionRecommendationReason.DYNAMIC_WORKSPACE
        assert reasons["a.b"].reason_text == DYNAMIC_WORKSPACE_REASON.format("widget")

    def test_dynamic_reason_needs_single_folder(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: []), session_seed=1)

        reasons = aggregator.compose_reasons({}, ["a.b"], {}, folder_name=None)

        assert "a.b" not in reasons

    def test_reasons_filtered_by_allow_list(self):
        aggregator = RecommendationAggregator(AllowListFilter(lambda: ["golang.go"]), session_seed=1)
        tips = pool_tips([make_tip("golang.go")])

        reasons = aggregator.compose_reasons({}, [], tips)

        assert reasons == {}
