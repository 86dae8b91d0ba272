from case_review.aggregation import (
    QUALITY_METRICS,
    aggregate,
    bucket_by_field,
    bucket_by_score,
    cluster_color,
    cluster_id,
    compute_clusters,
    normalize_topic,
    percentage,
    score_band,
    score_stats,
)
from case_review.models import CaseAnalysis


def make_analysis(case_number, **analysis):
    return {"caseNumber": case_number, "analysisTimestamp": "2024-05-01T00:00:00+00:00", "analysis": analysis}


ANALYSES = [
    make_analysis(
        "1",
        issueSummary={"brief": "PC upgrade hang"},
        tags={"issueType": "Upgrade", "productArea": ["Prism Central", "LCM"], "technicalComplexity": "Medium"},
        qualityAssessment={"overallHandling": {"score": 9}, "resolutionQuality": {"score": 8}},
        issueClassification={"isBug": {"verdict": True}},
        clusteringFeatures={"primaryTopic": "Prism Central Upgrade Hang!", "keywords": ["upgrade", "pc"]},
        tagValidation={"closeTags": {"score": 6, "missingTags": ["Upgrade - PC"]}},
    ),
    make_analysis(
        "2",
        issueSummary={"brief": "Another PC upgrade hang"},
        tags={"issueType": "Upgrade", "productArea": ["Prism Central"]},
        qualityAssessment={"overallHandling": {"score": 7}},
        issueClassification={"isBug": {"verdict": "true"}},
        clusteringFeatures={"primaryTopic": "prism central upgrade hang", "keywords": ["pc", "lcm"]},
        tagValidation={"closeTags": {"score": 10, "missingTags": ["Upgrade - PC"]}},
    ),
    make_analysis(
        "3",
        issueSummary={"brief": "Disk failure"},
        tags={"issueType": "Hardware"},
        qualityAssessment={"overallHandling": {"score": 4}},
    ),
]


def test_percentage_rounds_half_up():
    assert percentage(1, 8) == 13
    assert percentage(1, 3) == 33
    assert percentage(0, 0) == 0


def test_bucket_by_field_sorted_with_unknown():
    buckets = bucket_by_field(ANALYSES, "analysis.tags.technicalComplexity")
    assert [(b.name, b.count) for b in buckets] == [("Unknown", 2), ("Medium", 1)]
    assert buckets[0].percentage == 67
    assert buckets[0].cases == ["2", "3"]


def test_score_bands_are_half_open():
    assert score_band(10) == "Excellent (9-10)"
    assert score_band(9) == "Excellent (9-10)"
    assert score_band(8.5) == "Good (7-8)"
    assert score_band(7) == "Good (7-8)"
    assert score_band(2.99) == "Poor (1-2)"
    assert score_band(0) is None
    assert score_band(None) is None


def test_bucket_by_score_keeps_all_bands():
    buckets = bucket_by_score(ANALYSES, "analysis.qualityAssessment.overallHandling.score")
    assert [b.count for b in buckets] == [1, 1, 0, 1, 0]
    assert len(buckets) == 5


def test_score_stats():
    stats = score_stats([9, 7, 4], with_distribution=True)
    assert stats.avg == 6.7
    assert (stats.min, stats.max) == (4, 9)
    assert [(r.range, r.count) for r in stats.distribution] == [
        ("9-10", 1), ("7-8", 1), ("5-6", 0), ("3-4", 1), ("1-2", 0),
    ]
    assert score_stats([]).avg == 0


def test_topic_normalisation_and_cluster_ids():
    assert normalize_topic("Prism Central Upgrade Hang!") == "prism central upgrade hang"
    assert normalize_topic("VM on AHV is down") == "ahv down"
    assert normalize_topic("a b") == "other"
    assert cluster_id("prism central upgrade hang") == "cluster_prism_central_upgrade_hang"
    assert len(cluster_id("x" * 50)) == len("cluster_") + 30


def test_cluster_color_thresholds():
    assert cluster_color(2, 10) == "#ef4444"
    assert cluster_color(1, 10) == "#f97316"
    assert cluster_color(1, 20) == "#eab308"
    assert cluster_color(1, 100) == "#22c55e"


def test_compute_clusters_merges_topics():
    clusters = compute_clusters(ANALYSES)
    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.name == "prism central upgrade hang"
    assert cluster.count == 2
    assert cluster.percentage == 67
    assert cluster.keywords == ["upgrade", "pc", "lcm"]
    assert cluster.product_areas == ["Prism Central", "LCM"]
    assert [m.case_number for m in cluster.cases] == ["1", "2"]


def test_compute_clusters_keeps_top_twenty():
    analyses = [
        make_analysis(str(n), clusteringFeatures={"primaryTopic": f"topic number{n:02d}"})
        for n in range(25)
    ]
    assert len(compute_clusters(analyses)) == 20


def test_aggregate_full_summary():
    result = aggregate(ANALYSES)

    assert result.metadata.total_cases == 3
    assert [(b.name, b.count) for b in result.buckets.by_issue_type] == [("Upgrade", 2), ("Hardware", 1)]
    assert [(b.name, b.count) for b in result.buckets.by_product_area] == [("Prism Central", 2), ("LCM", 1)]
    # only a literal true verdict counts
    assert result.classifications.bugs.count == 1
    assert result.classifications.bugs.cases[0].brief == "PC upgrade hang"
    assert result.quality_metrics["overallHandling"].avg == 6.7
    assert result.quality_metrics["resolutionQuality"].avg == 8
    assert result.quality_metrics["technicalAccuracy"].avg == 0
    assert result.tag_analysis.close_tags_accuracy.avg == 8
    assert result.tag_analysis.common_missing_tags[0].tag == "Upgrade - PC"
    assert result.tag_analysis.common_missing_tags[0].count == 2
    assert [row.case_number for row in result.cases] == ["1", "2", "3"]
    assert result.cases[2].primary_topic == "Unknown"


def test_aggregate_is_deterministic_apart_from_timestamp():
    first = aggregate(ANALYSES).model_dump(by_alias=True)
    second = aggregate(ANALYSES).model_dump(by_alias=True)
    first["metadata"].pop("generatedAt")
    second["metadata"].pop("generatedAt")
    assert first == second


def test_aggregate_accepts_case_analysis_models():
    models = [CaseAnalysis.model_validate(a) for a in ANALYSES]
    assert aggregate(models).metadata.total_cases == 3


def test_aggregate_empty_input():
    result = aggregate([])
    assert result.metadata.total_cases == 0
    assert result.clusters == []
    assert result.cases == []
    assert list(result.quality_metrics) == QUALITY_METRICS
    assert all(stats.avg == 0 for stats in result.quality_metrics.values())


def test_single_value_bucket_percentages_sum_to_about_100():
    analyses = ANALYSES + [
        make_analysis("4", tags={"issueType": "Networking", "resolutionType": "Workaround"}),
        make_analysis("5", tags={"issueType": "Licensing", "resolutionType": "Fix"}),
        make_analysis("6", tags={"issueType": "Networking"}),
    ]
    buckets = aggregate(analyses).buckets
    for group in (buckets.by_issue_type, buckets.by_resolution_type, buckets.by_technical_complexity):
        assert sum(b.count for b in group) == len(analyses)
        # each bucket rounds on its own, so the total drifts by at most one point per bucket
        assert abs(sum(b.percentage for b in group) - 100) <= len(group)


def test_multi_value_bucket_percentages_can_exceed_100():
    analyses = [
        make_analysis("1", tags={"productArea": ["Prism Central", "LCM"]}),
        make_analysis("2", tags={"productArea": ["Prism Central", "LCM", "AOS"]}),
    ]
    buckets = aggregate(analyses).buckets.by_product_area
    assert [(b.name, b.percentage) for b in buckets] == [("Prism Central", 100), ("LCM", 100), ("AOS", 50)]
    assert sum(b.percentage for b in buckets) == 250


def test_string_product_area_counts_as_single_area():
    result = aggregate([
        make_analysis(
            "2",
            tags={"productArea": "Prism Central"},
            clusteringFeatures={"primaryTopic": "pc upgrade hang"},
        ),
    ])
    assert result.cases[0].product_areas == ["Prism Central"]
    assert result.clusters[0].product_areas == ["Prism Central"]
    assert [b.name for b in result.buckets.by_product_area] == ["Prism Central"]


def test_non_string_brief_is_coerced():
    result = aggregate([
        make_analysis(
            "2",
            issueSummary={"brief": 42},
            issueClassification={"isBug": {"verdict": True}},
            clusteringFeatures={"primaryTopic": "pc upgrade hang"},
        ),
        make_analysis("3", issueSummary={"brief": {"text": "nested"}}),
    ])
    assert [row.brief for row in result.cases] == ["42", "N/A"]
    assert result.clusters[0].cases[0].brief == "42"
    assert result.classifications.bugs.cases[0].brief == "42"


def test_unhashable_keywords_are_skipped():
    result = aggregate([
        make_analysis(
            "2",
            clusteringFeatures={"primaryTopic": "pc upgrade hang", "keywords": [{"k": 1}, "upgrade", ["pc"]]},
            tagValidation={"openTags": {"missingTags": "Upgrade - PC"}},
        ),
    ])
    assert result.clusters[0].keywords == ["upgrade"]
    assert result.cases[0].keywords == ["upgrade"]
    assert [(t.tag, t.count) for t in result.tag_analysis.common_missing_tags] == [("Upgrade - PC", 1)]
