"""Support case review pipeline: import, analyze, aggregate and review cases."""
import argparse
import asyncio
import logging
import sys
import time
import traceback
from pathlib import Path

from .aggregation import aggregate
from .analyzers import IssueAnalyzer
from .cache import ResultStore
from .client import APIClient
from .config import Settings
from .csv_loader import CaseSource, read_case_numbers
from .exceptions import CaseNotFound, ConfigurationError
from .models import ActionSummary, Aggregation, BatchRun, Case, CaseAnalysis, ReviewReport
from .orchestrator import analyze_batch, import_batch
from .review import CaseReviewer, JsonReferenceSource
from .tags import TagVocabulary


logger = logging.getLogger(__name__)

RULE = "=" * 60


def _format_value(value) -> str:
    """Format value for markdown output."""
    if isinstance(value, dict):
        return "; ".join(f"{k}: {v}" for k, v in value.items())
    elif isinstance(value, list):
        return ", ".join(str(i) if not isinstance(i, (dict, list)) else _format_value(i) for i in value) or "N/A"
    return str(value).strip()


def _bucket_table(title: str, buckets) -> list[str]:
    if not buckets:
        return []
    lines = [f"### {title}", "| Name | Count | % |", "|---|---|---|"]
    lines.extend(f"| {b.name} | {b.count} | {b.percentage}% |" for b in buckets)
    lines.append("")
    return lines


def _aggregation_to_markdown(aggregation: Aggregation) -> str:
    """Convert aggregated summary to markdown format."""
    meta = aggregation.metadata
    lines = [
        "# Support Case Analysis Summary",
        f"**Cases:** {meta.total_cases}  ",
        f"**Generated:** {meta.generated_at}\n",
        "## Buckets",
    ]
    buckets = aggregation.buckets
    lines.extend(_bucket_table("Issue Type", buckets.by_issue_type))
    lines.extend(_bucket_table("Resolution Type", buckets.by_resolution_type))
    lines.extend(_bucket_table("Technical Complexity", buckets.by_technical_complexity))
    lines.extend(_bucket_table("Fault Attribution", buckets.by_fault_attribution))
    lines.extend(_bucket_table("Product Area", buckets.by_product_area))
    lines.extend(_bucket_table("Problem Category", buckets.by_problem_category))
    lines.extend(_bucket_table("Customer Sentiment", buckets.by_customer_sentiment))
    lines.extend(_bucket_table("Resolution Quality", buckets.by_resolution_quality))

    lines.append("## Classifications")
    classes = aggregation.classifications
    for label, item in [
        ("Bugs", classes.bugs),
        ("Configuration Issues", classes.configuration_issues),
        ("Customer Errors", classes.customer_errors),
        ("Non-Nutanix Issues", classes.non_nutanix_issues),
    ]:
        lines.append(f"- **{label}:** {item.count} ({item.percentage}%)")
    lines.append("")

    lines.append("## Quality Metrics")
    for metric, stats in aggregation.quality_metrics.items():
        lines.append(f"- **{metric}:** avg {stats.avg}, min {stats.min}, max {stats.max}")
    lines.append("")

    tags = aggregation.tag_analysis
    lines.extend([
        "## Tag Accuracy",
        f"- **Open Tags:** avg {tags.open_tags_accuracy.avg}",
        f"- **Close Tags:** avg {tags.close_tags_accuracy.avg}",
    ])
    if tags.common_missing_tags:
        lines.append(f"- **Commonly Missing:** {_format_value([f'{t.tag} ({t.count})' for t in tags.common_missing_tags])}")
    if tags.common_incorrect_tags:
        lines.append(f"- **Commonly Incorrect:** {_format_value([f'{t.tag} ({t.count})' for t in tags.common_incorrect_tags])}")
    lines.append("")

    if aggregation.clusters:
        lines.append("## Topic Clusters")
        for cluster in aggregation.clusters:
            lines.extend([
                f"### {cluster.name} ({cluster.count} cases, {cluster.percentage}%)",
                f"- **Keywords:** {_format_value(cluster.keywords)}",
                f"- **Product Areas:** {_format_value(cluster.product_areas)}",
                f"- **Cases:** {_format_value([c.case_number for c in cluster.cases])}",
                "",
            ])

    rca = aggregation.rca_stats
    resolution = aggregation.resolution_stats
    lines.extend([
        "## RCA",
        f"- **Performed:** {rca.rca_performed_count} ({rca.rca_performed_percentage}%)",
        f"- **Average Quality:** {rca.avg_rca_quality}",
        f"- **Conclusive:** {rca.conclusive_rcas}",
        f"- **Actionable:** {rca.actionable_rcas}",
        "",
        "## Resolution",
        f"- **Self Resolved:** {resolution.self_resolved_count} ({resolution.self_resolved_percentage}%)",
        f"- **By Resolver:** {_format_value({r.name: r.count for r in resolution.by_resolver})}",
        f"- **By Method:** {_format_value({m.name: m.count for m in resolution.by_method})}",
    ])
    return "\n".join(lines)


def _load_vocabulary(settings: Settings) -> TagVocabulary:
    if settings.tags_path:
        return TagVocabulary.load(settings.tags_path)
    logger.warning("CASE_REVIEW_TAGS_FILE not set; tag validation runs without a vocabulary")
    return TagVocabulary()


def _case_fetcher(settings: Settings, store: ResultStore):
    """Fetch from the CSV export when configured, else from imported case files."""
    source = CaseSource(settings.export_dir) if settings.export_dir else None

    async def fetch(case_number: str) -> Case:
        if source is not None:
            return await source.fetch_case(case_number)
        case = store.load_case(case_number)
        if case is None:
            raise CaseNotFound(case_number)
        return case

    return fetch


def _print_batch_summary(title: str, total: int, run: BatchRun) -> None:
    print("\n" + RULE)
    print(title)
    print(RULE)
    print(f"  Total Cases:  {total}")
    print(f"  ✓ Successful: {len(run.succeeded)}")
    print(f"  - Skipped:    {len(run.skipped)} (already exists)")
    print(f"  ✗ Failed:     {len(run.failed)}")
    print(f"  Duration:     {run.duration_seconds:.1f}s")
    if run.failed:
        print("\n  Failed cases:")
        for failed in run.failed:
            print(f"    - {failed.case_number}: {failed.error}")
    print(RULE)


def _save_aggregation(store: ResultStore, analyses: list[CaseAnalysis]) -> Aggregation:
    print("\nGenerating aggregated summary...")
    aggregation = aggregate(analyses)
    path = store.save_aggregation(aggregation, _aggregation_to_markdown(aggregation))
    print(f"✓ Aggregated summary saved to {path}")
    return aggregation


async def run_analyze(args, settings: Settings) -> None:
    store = ResultStore(settings.output_dir)
    client = APIClient(settings.llm)
    try:
        if args.file:
            case = Case.model_validate_json(Path(args.file).read_text(encoding="utf-8"))
        else:
            case = await _case_fetcher(settings, store)(args.case_number)
            store.save_case(case)

        print(f"Analyzing case {case.case_number}...")
        analyzer = IssueAnalyzer(client, _load_vocabulary(settings))
        analysis = await analyzer.analyze(case)
        path = store.save_analysis(analysis)
        print(f"✓ Analysis saved to {path}\n")

        summary = analysis.analysis.get("issueSummary", {})
        tags = analysis.analysis.get("tags", {})
        print(RULE)
        print(f"CASE {analysis.case_number}")
        print(RULE)
        print(f"  Brief:      {summary.get('brief', 'N/A')}")
        print(f"  Issue Type: {tags.get('issueType', 'Unknown')}")
        print(f"  Products:   {_format_value(tags.get('productArea', []))}")
        for warning in analysis.warnings:
            print(f"  Warning: {warning}")
        print(RULE)
    finally:
        await client.close()


async def run_batch_command(args, settings: Settings) -> None:
    case_numbers = read_case_numbers(args.cases_file)
    print(f"Found {len(case_numbers)} case(s) to process\n")
    if not case_numbers:
        print("No cases to process.")
        return

    store = ResultStore(settings.output_dir)
    client = APIClient(settings.llm)
    try:
        analyzer = IssueAnalyzer(client, _load_vocabulary(settings))
        run = await analyze_batch(
            case_numbers,
            _case_fetcher(settings, store),
            analyzer,
            store,
            concurrency_limit=settings.analysis_concurrency,
            force=args.force,
        )
    finally:
        await client.close()

    analyses = [entry.result for entry in run.succeeded + run.skipped]
    if analyses:
        _save_aggregation(store, analyses)
    _print_batch_summary("BATCH SUMMARY", len(case_numbers), run)


async def run_import(args, settings: Settings) -> None:
    if not settings.export_dir:
        raise ConfigurationError("CASE_REVIEW_EXPORT_DIR (or --export-dir) is required for import")
    case_numbers = read_case_numbers(args.cases_file)
    print(f"Found {len(case_numbers)} case(s) to import\n")
    store = ResultStore(settings.output_dir)
    source = CaseSource(settings.export_dir)
    run = await import_batch(
        case_numbers,
        source.fetch_case,
        store,
        concurrency_limit=settings.import_concurrency,
        force=args.force,
    )
    _print_batch_summary("IMPORT SUMMARY", len(case_numbers), run)


async def run_aggregate(args, settings: Settings) -> None:
    store = ResultStore(settings.output_dir)
    analyses = store.load_analyses()
    print(f"Loaded {len(analyses)} analyses from {store.cache_dir}")
    aggregation = _save_aggregation(store, analyses)
    print(f"  Clusters: {len(aggregation.clusters)}")


def _print_review_summary(report: ReviewReport) -> None:
    summary = report.summary
    print("\n" + RULE)
    print("REVIEW SUMMARY")
    print(RULE)
    print(f"  ✓ Reviewed: {summary.success}")
    print(f"  - Skipped:  {summary.skipped} (wrong closure tag)")
    print(f"  ✗ Failed:   {summary.failed}")
    print("\nBUCKETS:")
    for bucket in summary.buckets:
        print(f"  {bucket.name}: {bucket.count}")
    print("\nCLOSED TAGS:")
    for tag in summary.closed_tags:
        print(f"  {tag.name}: {tag.count}")
    if isinstance(summary.action_summary, ActionSummary) and summary.action_summary.top_priority_actions:
        print("\nTOP ACTIONS:")
        for action in summary.action_summary.top_priority_actions:
            print(f"  [{action.priority}] {action.action}")
    print(RULE)


async def run_review(args, settings: Settings) -> None:
    case_numbers = read_case_numbers(args.cases_file)
    store = ResultStore(settings.output_dir)
    references = JsonReferenceSource(args.references)
    client = APIClient(settings.llm)
    try:
        reviewer = CaseReviewer(client, _load_vocabulary(settings), references)
        report = await reviewer.review_cases(case_numbers, _case_fetcher(settings, store))
    finally:
        await client.close()
    path = store.save_review(report)
    print(f"✓ Review saved to {path}")
    _print_review_summary(report)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="case-review", description=__doc__)
    parser.add_argument("--output-dir", type=Path, help="Directory for case/analysis/summary files")
    parser.add_argument("--export-dir", type=Path, help="Directory holding cases/comments/emails/events CSV exports")
    parser.add_argument("--tags-file", type=Path, help="JSON file with openTags/closeTags vocabularies")
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Analyze a single case")
    target = analyze.add_mutually_exclusive_group(required=True)
    target.add_argument("case_number", nargs="?")
    target.add_argument("--file", type=Path, help="Case JSON file to analyze")
    analyze.set_defaults(handler=run_analyze)

    batch = commands.add_parser("batch", help="Analyze every case in a case-number file")
    batch.add_argument("cases_file", type=Path)
    batch.add_argument("-f", "--force", action="store_true", help="Re-analyze cases that already have results")
    batch.set_defaults(handler=run_batch_command)

    importer = commands.add_parser("import", help="Import case records from the CSV export")
    importer.add_argument("cases_file", type=Path)
    importer.add_argument("-f", "--force", action="store_true", help="Re-import cases already on disk")
    importer.set_defaults(handler=run_import)

    aggregate_cmd = commands.add_parser("aggregate", help="Rebuild aggregated_summary.json from saved analyses")
    aggregate_cmd.set_defaults(handler=run_aggregate)

    review = commands.add_parser("review", help="Validate closure tags, buckets and linked JIRA/KB")
    review.add_argument("cases_file", type=Path)
    review.add_argument("--references", type=Path, help="JSON file with jira/kb reference records")
    review.set_defaults(handler=run_review)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    overrides = {
        "output_dir": args.output_dir,
        "export_dir": args.export_dir,
        "tags_path": args.tags_file,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"=== Support Case Review: {args.command} ===\n")
    started = time.monotonic()
    try:
        asyncio.run(args.handler(args, settings))
    except Exception as e:
        print(f"\n✗ Error: {e}")
        if settings.development:
            traceback.print_exc()
        return 1
    logger.debug("%s finished in %.1fs", args.command, time.monotonic() - started)
    return 0


if __name__ == "__main__":
    sys.exit(main())
