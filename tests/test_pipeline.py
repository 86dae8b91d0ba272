import json

import pytest

from case_review.aggregation import aggregate
from case_review.cache import ResultStore
from case_review.models import CaseAnalysis
from case_review.pipeline import _aggregation_to_markdown, _format_value, build_parser, main


def test_format_value():
    assert _format_value({"a": 1, "b": [2, 3]}) == "a: 1; b: [2, 3]"
    assert _format_value(["x", {"k": "v"}]) == "x, k: v"
    assert _format_value([]) == "N/A"
    assert _format_value("  text ") == "text"


def test_parser_commands():
    parser = build_parser()
    args = parser.parse_args(["--output-dir", "out", "batch", "cases.txt", "--force"])
    assert args.command == "batch"
    assert args.force is True
    assert str(args.output_dir) == "out"

    args = parser.parse_args(["analyze", "00475706"])
    assert args.case_number == "00475706"
    assert args.file is None

    with pytest.raises(SystemExit):
        parser.parse_args(["analyze", "00475706", "--file", "case.json"])


def test_markdown_summary():
    analyses = [
        {
            "caseNumber": "1",
            "analysis": {
                "tags": {"issueType": "Upgrade"},
                "clusteringFeatures": {"primaryTopic": "pc upgrade hang", "keywords": ["upgrade"]},
                "qualityAssessment": {"overallHandling": {"score": 8}},
            },
        },
    ]
    markdown = _aggregation_to_markdown(aggregate(analyses))
    assert markdown.startswith("# Support Case Analysis Summary")
    assert "| Upgrade | 1 | 100% |" in markdown
    assert "### upgrade hang (1 cases, 100%)" in markdown
    assert "- **overallHandling:** avg 8" in markdown


def test_aggregate_command_writes_summary(tmp_path, capsys):
    store = ResultStore(tmp_path)
    store.save_analysis(CaseAnalysis(
        case_number="00000001",
        analysis_timestamp="2024-05-01T00:00:00+00:00",
        analysis={"tags": {"issueType": "Upgrade"}},
    ))

    assert main(["--output-dir", str(tmp_path), "aggregate"]) == 0
    summary = json.loads((tmp_path / "aggregated_summary.json").read_text())
    assert summary["metadata"]["totalCases"] == 1
    assert summary["buckets"]["byIssueType"][0]["name"] == "Upgrade"
    assert (tmp_path / "aggregated_summary.md").exists()
    assert "Loaded 1 analyses" in capsys.readouterr().out


def test_import_without_export_dir_fails(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("CASE_REVIEW_EXPORT_DIR", raising=False)
    cases = tmp_path / "cases.txt"
    cases.write_text("00475706\n")
    assert main(["--output-dir", str(tmp_path), "import", str(cases)]) == 1
    assert "CASE_REVIEW_EXPORT_DIR" in capsys.readouterr().out
