import pytest

from case_review.aggregation import aggregate
from case_review.cache import ResultStore
from case_review.models import CaseAnalysis, ReviewReport

from conftest import make_case


@pytest.fixture
def store(tmp_path):
    return ResultStore(tmp_path / "output")


def analysis(case_number):
    return CaseAnalysis(
        case_number=case_number,
        analysis_timestamp="2024-05-01T00:00:00+00:00",
        analysis={"issueSummary": {"brief": f"case {case_number}"}},
    )


def test_case_files_use_short_numbers(store):
    path = store.save_case(make_case())
    assert path.name == "case_475706.json"
    assert '"caseNumber": "00475706"' in path.read_text()
    loaded = store.load_case("475706")
    assert loaded.case_info.subject == "Prism Central upgrade stuck at 60%"
    assert store.load_case("00000001") is None


def test_analysis_round_trip(store):
    store.save_analysis(analysis("00475706"))
    assert store.has_analysis("475706")
    assert not store.has_analysis("1")
    loaded = store.load_analysis("00475706")
    assert loaded.analysis["issueSummary"]["brief"] == "case 00475706"


def test_load_analyses_skips_unreadable_files(store):
    store.save_analysis(analysis("00000001"))
    store.save_analysis(analysis("00000002"))
    store.path("analysis_3").write_text("{not json")
    store.save_case(make_case())

    loaded = store.load_analyses()
    assert [a.case_number for a in loaded] == ["00000001", "00000002"]


def test_save_aggregation_writes_markdown(store):
    result = aggregate([analysis("1")])
    path = store.save_aggregation(result, "# Summary")
    assert path.name == "aggregated_summary.json"
    assert (store.cache_dir / "aggregated_summary.md").read_text() == "# Summary"
    assert store.load_aggregation().metadata.total_cases == 1


def test_save_review(store):
    path = store.save_review(ReviewReport())
    assert path.name == "review_report.json"
    assert '"actionSummary": null' in path.read_text()
