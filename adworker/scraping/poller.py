from typing import Any

from adworker.logging.logger import Log
from adworker.scraping.client_base import BaseScrapingClient
from adworker.scraping.exceptions import (
    PollTimeoutError,
    ScrapingError,
    UpstreamJobFailedError,
)
from adworker.scraping.models import ResultPayload
from adworker.scraping.retry import RetryPolicy


class ResultPoller:
    """Wait for a scraping job to finish and fetch its result.

    Each attempt asks the status endpoint once. Pending jobs are re-checked
    after the policy's base delay; transient transport errors cool down for
    the longer delay but still consume an attempt. Completed jobs return the
    parsed result, falling back to the raw one when the parsed body is not
    available.
    """

    def __init__(self, client: BaseScrapingClient, policy: RetryPolicy) -> None:
        self._client = client
        self._policy = policy

    async def await_result(
        self,
        job_id: str,
        *,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> ResultPayload:
        """Poll ``job_id`` until it completes.

        Raises:
            UpstreamJobFailedError: the service reported the job as failed.
            PollTimeoutError: the attempt budget ran out, or the last attempt
                hit a transient transport error.
            ScrapingError: a non-transient error occurred on the last attempt.
        """
        policy = self._policy.with_overrides(max_attempts, delay_seconds)
        for attempt in range(1, policy.max_attempts + 1):
            is_last = attempt == policy.max_attempts
            try:
                status = await self._client.get_job_status(job_id)
                if status.is_failed:
                    raise UpstreamJobFailedError(
                        f"Scraping job {job_id} failed upstream (status '{status.status}')"
                    )
                if status.is_completed:
                    return await self._fetch_result(job_id, status.status, attempt)
                Log.debug(
                    f"Job {job_id} status '{status.status}' "
                    f"(attempt {attempt}/{policy.max_attempts})"
                )
            except UpstreamJobFailedError:
                raise
            except ScrapingError as exc:
                if policy.is_transient(exc):
                    if is_last:
                        raise PollTimeoutError(
                            f"Job {job_id} not retrieved after {policy.max_attempts} attempts; "
                            f"last error: {exc}"
                        ) from exc
                    cooldown = policy.delay_for(exc)
                    Log.warning(
                        f"Transient error polling job {job_id} "
                        f"(attempt {attempt}/{policy.max_attempts}): {exc}; "
                        f"cooling down {cooldown:.1f}s"
                    )
                    await policy.sleep(cooldown)
                    continue
                if is_last:
                    raise
                Log.warning(
                    f"Error polling job {job_id} (attempt {attempt}/{policy.max_attempts}): {exc}"
                )
            if not is_last:
                await policy.sleep(policy.base_delay)

        raise PollTimeoutError(
            f"Job {job_id} did not complete after {policy.max_attempts} attempts"
        )

    async def _fetch_result(self, job_id: str, status: str, attempt: int) -> ResultPayload:
        body: dict[str, Any] | str
        try:
            body = await self._client.get_parsed_result(job_id)
            representation = "parsed"
        except ScrapingError as exc:
            Log.warning(f"Parsed result unavailable for job {job_id} ({exc}); using raw result")
            body = await self._client.get_raw_result(job_id)
            representation = "raw"
        Log.info(f"Job {job_id} completed after {attempt} attempt(s), {representation} result")
        return ResultPayload(
            job_id=job_id,
            status=status,
            body=body,
            representation=representation,
            attempts=attempt,
        )
