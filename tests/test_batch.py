"""
Batch orchestrator tests
========================
Fan-out / join semantics with a stubbed generation function.
"""
from __future__ import annotations

import asyncio
import random

import pytest
from conftest import make_bug, make_report

from bug_reporter.batch import GENERIC_FAILURE_MESSAGE, generate_batch
from bug_reporter.errors import (
    BatchGenerationError,
    InputValidationError,
    InvalidResponseFormat,
    RateLimited,
)
from bug_reporter.llm_client.models import Attachment


async def _echo(bug, screenshot):
    # finish in scrambled order to show correlation does not depend on timing
    await asyncio.sleep(random.random() / 100)
    return make_report(bug.id)


@pytest.mark.parametrize("n", [1, 2, 5, 12])
def test_every_input_yields_exactly_one_correlated_report(n):
    bugs = [make_bug(100 + i) for i in range(n)]

    result = asyncio.run(generate_batch(bugs, generate=_echo))

    assert result.ok
    assert len(result.reports) == n
    assert {r.original_id for r in result.reports} == {b.id for b in bugs}
    # submission order
    assert [r.original_id for r in result.reports] == [b.id for b in bugs]


@pytest.mark.parametrize("failing_index", [0, 2, 4])
def test_single_failure_fails_whole_batch(failing_index):
    bugs = [make_bug(i + 1) for i in range(5)]
    failing_id = bugs[failing_index].id
    completed = []

    async def generate(bug, screenshot):
        await asyncio.sleep(0)
        if bug.id == failing_id:
            raise InvalidResponseFormat("bad json")
        completed.append(bug.id)
        return make_report(bug.id)

    with pytest.raises(BatchGenerationError) as excinfo:
        asyncio.run(generate_batch(bugs, generate=generate))

    err = excinfo.value
    assert err.bug_id == failing_id
    assert isinstance(err.cause, InvalidResponseFormat)
    assert str(err) == GENERIC_FAILURE_MESSAGE
    # the other calls still ran to completion (no cancellation)
    assert len(completed) == 4


def test_first_failure_in_submission_order_is_reported():
    bugs = [make_bug(1), make_bug(2), make_bug(3)]

    async def generate(bug, screenshot):
        if bug.id == 3:
            raise RateLimited("quota")
        if bug.id == 2:
            await asyncio.sleep(0.01)
            raise InvalidResponseFormat("bad json")
        return make_report(bug.id)

    with pytest.raises(BatchGenerationError) as excinfo:
        asyncio.run(generate_batch(bugs, generate=generate))

    assert excinfo.value.bug_id == 2


def test_allow_partial_keeps_successes_and_reports_failures():
    bugs = [make_bug(1), make_bug(2), make_bug(3)]

    async def generate(bug, screenshot):
        if bug.id == 2:
            raise RateLimited("quota")
        return make_report(bug.id)

    result = asyncio.run(generate_batch(bugs, generate=generate, allow_partial=True))

    assert not result.ok
    assert [r.original_id for r in result.reports] == [1, 3]
    assert set(result.failures) == {2}
    assert isinstance(result.failures[2], RateLimited)


def test_all_calls_start_before_any_finishes():
    bugs = [make_bug(i) for i in range(1, 7)]
    started = []

    async def run():
        all_started = asyncio.Event()

        async def generate(bug, screenshot):
            started.append(bug.id)
            if len(started) == len(bugs):
                all_started.set()
            # would deadlock if calls were issued one after another
            await asyncio.wait_for(all_started.wait(), timeout=2)
            return make_report(bug.id)

        return await generate_batch(bugs, generate=generate)

    result = asyncio.run(run())
    assert len(result.reports) == 6
    assert sorted(started) == [b.id for b in bugs]


def test_screenshots_are_routed_by_entry_id():
    bugs = [make_bug(1), make_bug(2)]
    shot = Attachment(base64="AAAA", mime_type="image/png", name="only-two.png")
    received = {}

    async def generate(bug, screenshot):
        received[bug.id] = screenshot
        return make_report(bug.id)

    asyncio.run(generate_batch(bugs, {2: shot}, generate=generate))

    assert received == {1: None, 2: shot}


def test_mis_tagged_report_fails_batch():
    async def generate(bug, screenshot):
        return make_report(bug.id + 1000)

    with pytest.raises(BatchGenerationError):
        asyncio.run(generate_batch([make_bug(1)], generate=generate))


def test_empty_batch_is_rejected():
    with pytest.raises(InputValidationError):
        asyncio.run(generate_batch([], generate=_echo))


def test_duplicate_ids_are_rejected_before_any_call():
    calls = []

    async def generate(bug, screenshot):
        calls.append(bug.id)
        return make_report(bug.id)

    with pytest.raises(InputValidationError):
        asyncio.run(generate_batch([make_bug(1), make_bug(1)], generate=generate))

    assert calls == []
