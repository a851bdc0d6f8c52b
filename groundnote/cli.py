"""
GroundNote CLI
===============

Command-line interface for segmentation, retrieval, generation,
evaluation and utility commands.

Usage:
    groundnote segment notes.txt
    groundnote retrieve notes.txt --mode technical
    groundnote summarize notes.txt --mode interview --save --title "Deep Work"
    groundnote evaluate run.json
    groundnote validate output.json --notes notes.txt
    groundnote stats
    groundnote health
    groundnote export-schemas --output-dir schemas

Exit codes:
    0  success
    1  rejected input, failed validation or failed run
    2  retryable generation error (rate limit, timeout)
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from tabulate import tabulate

from groundnote.config import get_config
from groundnote.errors import GenerationError, InputRejectedError
from groundnote.schemas.output import Mode, Strictness
from groundnote.utils import setup_logging


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _read_json(path: str):
    return json.loads(_read_text(path))


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="groundnote",
        description="GroundNote: citation-grounded note summarization",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--log-format", choices=["text", "json"], default=None)

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ── segment ─────────────────────────────────────────────────
    segment_parser = subparsers.add_parser("segment", help="Split notes into citable units")
    segment_parser.add_argument("input", help="Notes file ('-' for stdin)")
    segment_parser.add_argument("--json", action="store_true", help="Print units as JSON")

    # ── retrieve ────────────────────────────────────────────────
    retrieve_parser = subparsers.add_parser("retrieve", help="Show the evidence set for a mode")
    retrieve_parser.add_argument("input", help="Notes file ('-' for stdin)")
    retrieve_parser.add_argument("--mode", choices=Mode.values(), required=True)

    # ── summarize ───────────────────────────────────────────────
    summarize_parser = subparsers.add_parser("summarize", help="Generate a grounded summary")
    summarize_parser.add_argument("input", help="Notes file ('-' for stdin)")
    summarize_parser.add_argument("--mode", choices=Mode.values(), required=True)
    summarize_parser.add_argument("--strictness", choices=[s.value for s in Strictness], default=None)
    summarize_parser.add_argument("--title", default="Notes Summary")
    summarize_parser.add_argument("--save", action="store_true", help="Store the run in the note-set repository")
    summarize_parser.add_argument("--evaluate", action="store_true", help="Also score faithfulness")
    summarize_parser.add_argument("--output", type=str, default=None, help="Output JSON path")
    summarize_parser.add_argument("--markdown", type=str, default=None, help="Output Markdown path")

    # ── evaluate ────────────────────────────────────────────────
    evaluate_parser = subparsers.add_parser("evaluate", help="Score faithfulness of a saved run")
    evaluate_parser.add_argument("input", help="JSON with 'items' and 'units' (summarize --output)")

    # ── validate ────────────────────────────────────────────────
    validate_parser = subparsers.add_parser("validate", help="Validate an output envelope")
    validate_parser.add_argument("input", help="Output envelope JSON")
    validate_parser.add_argument("--notes", default=None, help="Notes file to check citations against")

    # ── stats ───────────────────────────────────────────────────
    subparsers.add_parser("stats", help="Aggregate statistics of stored runs")

    # ── health ──────────────────────────────────────────────────
    subparsers.add_parser("health", help="Check generation configuration")

    # ── export-schemas ──────────────────────────────────────────
    schema_parser = subparsers.add_parser("export-schemas", help="Export JSON schemas")
    schema_parser.add_argument("--output-dir", default="schemas")

    args = parser.parse_args(argv)

    config = get_config(args.config)
    setup_logging(
        level="DEBUG" if args.verbose else config.log_level,
        format_style=args.log_format or config.log_format,
    )

    try:
        if args.command == "segment":
            cmd_segment(args, config)
        elif args.command == "retrieve":
            cmd_retrieve(args, config)
        elif args.command == "summarize":
            cmd_summarize(args, config)
        elif args.command == "evaluate":
            cmd_evaluate(args, config)
        elif args.command == "validate":
            cmd_validate(args, config)
        elif args.command == "stats":
            cmd_stats(args, config)
        elif args.command == "health":
            cmd_health(args, config)
        elif args.command == "export-schemas":
            cmd_export_schemas(args, config)
        else:
            parser.print_help()
            sys.exit(1)
    except InputRejectedError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except GenerationError as e:
        print(f"Generation error: {e}")
        if e.remediation:
            print(f"  Help: {e.remediation}")
        sys.exit(2 if e.retryable else 1)


def cmd_segment(args, config):
    """Print the citable units extracted from a notes file."""
    from groundnote.pipeline import NotesPipeline

    units = NotesPipeline(config).segment(_read_text(args.input))
    if args.json:
        print(json.dumps([u.model_dump() for u in units], indent=2, ensure_ascii=False))
        return
    for unit in units:
        print(f"[{unit.unit_id}] {unit.text}")
    print(f"\n{len(units)} units")


def cmd_retrieve(args, config):
    """Print the evidence set a generation run would receive."""
    from groundnote.pipeline import NotesPipeline

    result = NotesPipeline(config).retrieve(_read_text(args.input), args.mode)
    kept = {u.unit_id: u.text for u in result.evidence_set}
    rows = [[s.unit_id, f"{s.max_score:.3f}", kept[s.unit_id][:70]] for s in result.scores]
    print(tabulate(rows, headers=["Unit", "Score", "Text"], tablefmt="simple"))
    note = " (short-circuited)" if result.short_circuited else ""
    print(f"\nKept {result.retrieved_count}/{result.total_units} units{note}")


def cmd_summarize(args, config):
    """Generate a summary, optionally storing, scoring and exporting it."""
    from groundnote.pipeline import NotesPipeline
    from groundnote.render.markdown import to_markdown

    pipeline = NotesPipeline(config)
    notes_text = _read_text(args.input)

    note_set_id = None
    if args.save:
        note_set_id = pipeline.save_note_set(args.title, notes_text).note_set_id

    outcome = pipeline.summarize(
        notes_text, args.mode, strictness=args.strictness, note_set_id=note_set_id
    )

    if not outcome.succeeded:
        print(f"Generation failed validation after {outcome.attempts} attempts:")
        for diag in outcome.diagnostics:
            print(f"  - {diag}")
        print(f"\nLast raw output:\n{outcome.raw_output}")
        sys.exit(1)

    envelope, metrics = outcome.envelope, outcome.metrics
    print(f"\nMode: {envelope.mode.value}")
    print(f"Evidence: {len(outcome.evidence_set)}/{len(outcome.all_units)} units")
    print(f"Attempts: {outcome.attempts}{' (repaired)' if outcome.repaired else ''}\n")
    for i, item in enumerate(envelope.items, start=1):
        print(f"  {i}. {item.text} [{', '.join(item.citations)}]")
    for warning in envelope.warnings:
        print(f"  ⚠️  {warning}")
    print(
        f"\n  Words: {metrics.word_count} | Coverage: {metrics.citation_coverage}% "
        f"| Latency: {outcome.timings.get('total_ms', 0):.0f}ms"
    )

    report = None
    if args.evaluate:
        report = pipeline.evaluate(envelope.items, outcome.evidence_set)
        print(
            f"  Faithfulness: pass rate {report.summary.pass_rate}% "
            f"(avg similarity {report.summary.avg_similarity:.3f})"
        )
        for result in report.flagged:
            print(f"    ❌ item {result.item_index + 1}: {result.reason}")

    if args.output:
        output = {
            "mode": envelope.mode.value,
            "items": [item.model_dump(mode="json") for item in envelope.items],
            "warnings": envelope.warnings,
            "units": [u.model_dump() for u in outcome.evidence_set],
            "metrics": metrics.model_dump(),
            "timings": outcome.timings,
        }
        if report is not None:
            output["faithfulness"] = report.model_dump()
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2, ensure_ascii=False)
        print(f"\n  Results saved to {args.output}")

    if args.markdown:
        md = to_markdown(args.title, envelope.mode, envelope.items, outcome.evidence_set, metrics)
        Path(args.markdown).write_text(md, encoding="utf-8")
        print(f"  Markdown saved to {args.markdown}")


def cmd_evaluate(args, config):
    """Score a stored run's items against its units."""
    from groundnote.pipeline import NotesPipeline
    from groundnote.schemas.notes import CitableUnit
    from groundnote.schemas.output import OutputItem

    data = _read_json(args.input)
    if "items" not in data or "units" not in data:
        print("Error: input must contain 'items' and 'units'")
        sys.exit(1)
    items = [OutputItem.model_validate(i) for i in data["items"]]
    units = [CitableUnit.model_validate(u) for u in data["units"]]

    report = NotesPipeline(config).evaluate(items, units)
    rows = [
        [r.item_index + 1, f"{r.similarity:.3f}", "❌" if r.flagged else "✅", r.reason or ""]
        for r in report.results
    ]
    print(tabulate(rows, headers=["Item", "Similarity", "OK", "Reason"], tablefmt="simple"))
    print(
        f"\nPass rate: {report.summary.pass_rate}% | "
        f"Avg similarity: {report.summary.avg_similarity:.3f}"
    )


def cmd_validate(args, config):
    """Validate an output envelope against the output contract."""
    from groundnote.contract.validator import validate_citations, validate_output
    from groundnote.generate.orchestrator import missing_citation_message
    from groundnote.ingest.segmenter import segment_notes

    result = validate_output(_read_json(args.input))
    errors = list(result.errors)
    if result.envelope is not None and args.notes:
        units = segment_notes(_read_text(args.notes), config.segment.min_unit_chars)
        check = validate_citations(result.envelope, units)
        errors += [missing_citation_message(cid) for cid in check.missing]

    if errors:
        print(f"Validation FAILED: {len(errors)} errors")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    print("Validation PASSED ✅")


def cmd_stats(args, config):
    """Print aggregate statistics across stored runs."""
    from groundnote.pipeline import NotesPipeline

    stats = NotesPipeline(config).stats()
    print(tabulate(
        [
            ["Note sets", stats.total_note_sets],
            ["Runs", stats.total_runs],
            ["Pass rate", f"{stats.pass_rate}%"],
            ["Avg coverage", f"{stats.avg_coverage}%"],
            ["Avg word count", stats.avg_word_count],
            ["Word-limit pass rate", f"{stats.word_limit_pass_rate}%"],
        ],
        tablefmt="simple",
    ))
    print()
    print(tabulate(
        [[mode, s.count, s.pass_count] for mode, s in stats.runs_by_mode.items()],
        headers=["Mode", "Runs", "Passed"],
        tablefmt="simple",
    ))
    if stats.failure_reasons:
        print()
        print(tabulate(
            [[f.reason, f.count] for f in stats.failure_reasons],
            headers=["Failure reason", "Count"],
            tablefmt="simple",
        ))


def cmd_health(args, config):
    """Report whether generation is configured."""
    from groundnote.generate.client import check_health

    health = check_health(config)
    print(json.dumps(health, indent=2))
    if not health["ok"]:
        sys.exit(1)


def cmd_export_schemas(args, config):
    """Export JSON schemas for all data contracts."""
    from groundnote.contract.validator import export_all_schemas

    written = export_all_schemas(args.output_dir)
    for path in written:
        print(f"Exported: {path}")
    print(f"\n{len(written)} schemas exported to {args.output_dir}/")


if __name__ == "__main__":
    main()
