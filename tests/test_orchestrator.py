import asyncio

import pytest

from case_review.cache import ResultStore
from case_review.analyzers import IssueAnalyzer
from case_review.exceptions import ConfigurationError
from case_review.orchestrator import analyze_batch, import_batch, run_batch, run_windowed

from conftest import make_case


@pytest.mark.asyncio
async def test_run_windowed_finishes_each_window_before_the_next():
    log = []

    async def worker(item):
        log.append(("start", item))
        await asyncio.sleep(0.01 if item % 2 else 0)
        log.append(("end", item))
        return item * 10

    results = await run_windowed(range(5), worker, window_size=2)

    assert results == [0, 10, 20, 30, 40]
    starts = [i for i, (kind, _) in enumerate(log) if kind == "start"]
    ends = {item: i for i, (kind, item) in enumerate(log) if kind == "end"}
    # window [2, 3] starts only after 0 and 1 have ended
    assert log.index(("start", 2)) > max(ends[0], ends[1])
    assert log.index(("start", 4)) > max(ends[2], ends[3])
    assert len(starts) == 5


@pytest.mark.asyncio
async def test_run_windowed_rejects_empty_window():
    async def worker(item):
        return item

    with pytest.raises(ValueError):
        await run_windowed([1], worker, window_size=0)


@pytest.mark.asyncio
async def test_run_batch_partitions_every_case():
    async def worker(case_number):
        if case_number == "2":
            raise RuntimeError("boom")
        return {"caseNumber": case_number}

    run = await run_batch(["1", "2", "3", "4"], worker, existing=lambda n: "old" if n == "4" else None,
                          concurrency_limit=2)

    assert sorted(e.case_number for e in run.succeeded) == ["1", "3"]
    assert [f.case_number for f in run.failed] == ["2"]
    assert run.failed[0].error == "boom"
    assert [e.case_number for e in run.skipped] == ["4"]
    assert run.skipped[0].result == "old"
    assert run.concurrency_limit == 2
    assert run.duration_seconds >= 0


@pytest.mark.asyncio
async def test_run_batch_skip_does_not_call_worker():
    calls = []

    async def worker(case_number):
        calls.append(case_number)
        return case_number

    run = await run_batch(["1", "2"], worker, existing=lambda n: {"done": True})
    assert calls == []
    assert len(run.skipped) == 2


@pytest.mark.asyncio
async def test_run_batch_force_reprocesses_existing_results():
    calls = []

    async def worker(case_number):
        calls.append(case_number)
        return case_number

    run = await run_batch(["1", "2"], worker, existing=lambda n: {"done": True}, force=True)
    assert sorted(calls) == ["1", "2"]
    assert run.skipped == []
    assert len(run.succeeded) == 2


@pytest.mark.asyncio
async def test_run_batch_unreadable_existing_result_fails_only_that_case():
    def existing(case_number):
        if case_number == "1":
            raise ValueError("corrupt file")
        return None

    async def worker(case_number):
        return case_number

    run = await run_batch(["1", "2"], worker, existing=existing)
    assert [f.case_number for f in run.failed] == ["1"]
    assert [e.case_number for e in run.succeeded] == ["2"]


@pytest.mark.asyncio
async def test_run_batch_configuration_error_aborts():
    async def worker(case_number):
        raise ConfigurationError("LLM_API_URL is not configured")

    with pytest.raises(ConfigurationError):
        await run_batch(["1", "2"], worker)


@pytest.mark.asyncio
async def test_analyze_batch_persists_case_and_analysis(tmp_path, fake_client):
    store = ResultStore(tmp_path)
    response = {"issueSummary": {"brief": "PC upgrade hang"}}
    client = fake_client(handler=lambda system, user: response)

    async def fetch_case(case_number):
        return make_case(caseInfo={"caseNumber": case_number})

    run = await analyze_batch(["00000001", "00000002"], fetch_case, IssueAnalyzer(client), store)

    assert len(run.succeeded) == 2
    assert store.load_case("00000001").case_info.case_number == "00000001"
    assert store.load_analysis("00000002").analysis["issueSummary"]["brief"] == "PC upgrade hang"

    again = await analyze_batch(["00000001", "00000002"], fetch_case, IssueAnalyzer(client), store)
    assert len(again.skipped) == 2
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_import_batch_reports_missing_cases(tmp_path):
    store = ResultStore(tmp_path)

    async def fetch_case(case_number):
        if case_number == "missing":
            raise LookupError("Case not found: missing")
        return make_case(caseInfo={"caseNumber": case_number})

    run = await import_batch(["00000001", "missing"], fetch_case, store)
    assert [e.case_number for e in run.succeeded] == ["00000001"]
    assert run.failed[0].error == "Case not found: missing"
    assert run.concurrency_limit == 5
