import pytest

from adworker.processor.models import AggregateStatus, Stage, StageStatus
from adworker.processor.status import derive_aggregate_status, first_unfinished_stage

P = StageStatus.PENDING
R = StageStatus.IN_PROGRESS
S = StageStatus.SUCCESS
F = StageStatus.FAILED


def _statuses(api: StageStatus, serp: StageStatus, ads: StageStatus, rendering: StageStatus) -> dict:
    return {
        Stage.API_CALL: api,
        Stage.SERP_PROCESSING: serp,
        Stage.ADS_EXTRACTION: ads,
        Stage.RENDERING: rendering,
    }


class TestDeriveAggregateStatus:
    @pytest.mark.parametrize(
        ("stages", "expected"),
        [
            ((P, P, P, P), AggregateStatus.PENDING),
            ((R, P, P, P), AggregateStatus.IN_PROGRESS),
            ((S, R, P, P), AggregateStatus.IN_PROGRESS),
            ((S, S, S, R), AggregateStatus.IN_PROGRESS),
            ((S, S, S, S), AggregateStatus.COMPLETED),
            ((F, P, P, P), AggregateStatus.FAILED),
            ((S, F, P, P), AggregateStatus.FAILED),
            ((S, S, F, P), AggregateStatus.PARTIAL_SUCCESS),
            ((S, S, S, F), AggregateStatus.PARTIAL_SUCCESS),
            ((S, S, F, F), AggregateStatus.PARTIAL_SUCCESS),
        ],
    )
    def test_matrix(self, stages: tuple, expected: AggregateStatus) -> None:
        assert derive_aggregate_status(_statuses(*stages)) == expected

    def test_terminal_statuses(self) -> None:
        assert AggregateStatus.COMPLETED.is_terminal
        assert AggregateStatus.PARTIAL_SUCCESS.is_terminal
        assert AggregateStatus.FAILED.is_terminal
        assert not AggregateStatus.IN_PROGRESS.is_terminal
        assert not AggregateStatus.PENDING.is_terminal


class TestFirstUnfinishedStage:
    def test_returns_first_non_success(self) -> None:
        assert first_unfinished_stage(_statuses(S, S, F, P)) == Stage.ADS_EXTRACTION

    def test_none_when_all_succeeded(self) -> None:
        assert first_unfinished_stage(_statuses(S, S, S, S)) is None


class TestStageColumns:
    def test_column_names(self) -> None:
        assert [stage.column for stage in Stage] == [
            "api_call_status",
            "serp_processing_status",
            "ads_extraction_status",
            "rendering_status",
        ]
