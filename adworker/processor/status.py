from collections.abc import Mapping

from adworker.processor.models import AggregateStatus, Stage, StageStatus


def derive_aggregate_status(statuses: Mapping[Stage, StageStatus]) -> AggregateStatus:
    """Aggregate job status from the four stage statuses.

    A failed API call fails the job. A failed SERP stage also fails it, since
    no SERP result exists to expose. Once both of those succeeded, a later
    failure yields ``partial_success``.
    """
    api_call = statuses[Stage.API_CALL]
    serp = statuses[Stage.SERP_PROCESSING]
    later = (statuses[Stage.ADS_EXTRACTION], statuses[Stage.RENDERING])

    if api_call == StageStatus.FAILED:
        return AggregateStatus.FAILED
    if api_call == StageStatus.SUCCESS and serp == StageStatus.FAILED:
        return AggregateStatus.FAILED
    if api_call == StageStatus.SUCCESS and serp == StageStatus.SUCCESS:
        if StageStatus.FAILED in later:
            return AggregateStatus.PARTIAL_SUCCESS
        if all(status == StageStatus.SUCCESS for status in later):
            return AggregateStatus.COMPLETED
    if all(status == StageStatus.PENDING for status in statuses.values()):
        return AggregateStatus.PENDING
    return AggregateStatus.IN_PROGRESS


def first_unfinished_stage(statuses: Mapping[Stage, StageStatus]) -> Stage | None:
    """First stage, in pipeline order, that has not succeeded."""
    for stage in Stage:
        if statuses[stage] != StageStatus.SUCCESS:
            return stage
    return None
