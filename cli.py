from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from checklist_builder import build_checklist
from config import configure_logging, settings
from input_validation import validate_country_name
from response_parser import evaluate_model_text, parse_json_object
from schemas import EVALUATION_INPUT_SCHEMA, TRAVEL_PURPOSES
from service import schema_errors
from verdict import VERDICTS
from visa_advisor import UpstreamError, VisaAdvisor, VisaEvaluationInput

STATUS_OK = "ok"
STATUS_INVALID_INPUT = "invalid_input"
STATUS_UPSTREAM_ERROR = "upstream_error"


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_jsonl(path: Path, rows: List[dict]) -> None:
    with path.open("w", encoding="utf-8") as f:
        for r in rows:
            f.write(json.dumps(r, ensure_ascii=False) + "\n")


def case_problems(case: Any) -> List[str]:
    """Same input checks as the evaluate endpoint; [] when the case is usable."""
    problems = [
        f"{p['field']}: {p['message']}" if p["field"] else p["message"]
        for p in schema_errors(case, EVALUATION_INPUT_SCHEMA)
    ]
    if problems:
        return problems
    for field_name in ("nationality", "destinationCountry"):
        try:
            validate_country_name(case.get(field_name), field_name)
        except ValueError as e:
            problems.append(str(e))
    return problems


def smoke_test(advisor: VisaAdvisor) -> None:
    """Checks that the configured provider answers."""
    visa_input = VisaEvaluationInput(
        nationality="United States",
        destination_country="Canada",
        travel_purpose="tourism",
    )
    result, telemetry = advisor.evaluate_with_telemetry(visa_input)
    print("[SMOKE] provider =", telemetry["provider"], "model =", telemetry["model"])
    print("[SMOKE] verdict =", result.verdict, "parse_ok =", telemetry["parse_ok"])
    print("[SMOKE] summary =", result.summary)


def compute_batch_metrics(rows: List[dict]) -> dict:
    """Verdict distribution and failure rates for a batch run."""
    total = len(rows)
    evaluated = [r for r in rows if r.get("result") is not None]
    verdicts = Counter(r["result"]["verdict"] for r in evaluated)
    parse_failures = sum(1 for r in evaluated if not r["telemetry"].get("parse_ok", False))
    invalid_inputs = sum(1 for r in rows if r.get("status") == STATUS_INVALID_INPUT)
    upstream_failures = sum(1 for r in rows if r.get("status") == STATUS_UPSTREAM_ERROR)

    return {
        "total_cases": total,
        "evaluated": len(evaluated),
        "invalid_inputs": invalid_inputs,
        "upstream_failures": upstream_failures,
        "parse_failures": parse_failures,
        "parse_failure_rate": parse_failures / len(evaluated) if evaluated else 0.0,
        "verdicts": {v: verdicts.get(v, 0) for v in VERDICTS},
        "cache_hits": sum(1 for r in evaluated if r["telemetry"].get("cache_hit")),
        "input_tokens": sum(int(r["telemetry"].get("input_tokens", 0)) for r in evaluated),
        "output_tokens": sum(int(r["telemetry"].get("output_tokens", 0)) for r in evaluated),
    }


def build_report(run_id: str, provider: str, model: str, metrics: dict, rows: List[dict]) -> str:
    """Markdown report for a batch run."""
    lines = []
    lines.append(f"# Report: {run_id}")
    lines.append("")
    lines.append(f"- Provider: **{provider}**")
    lines.append(f"- Model: **{model}**")
    lines.append(f"- Timestamp (UTC): {now_utc_iso()}")
    lines.append("")

    lines.append("## Metrics")
    lines.append("```json")
    lines.append(json.dumps(metrics, indent=2, ensure_ascii=False))
    lines.append("```")
    lines.append("")

    lines.append("## Cases needing attention (sample)")
    flagged = [
        r for r in rows
        if r.get("result") is None or not r["telemetry"].get("parse_ok", False)
    ]
    if flagged:
        for r in flagged[:10]:
            lines.append(f"### {r['case_id']}")
            lines.append(f"- input: {json.dumps(r['input'], ensure_ascii=False)}")
            if r.get("status") == STATUS_INVALID_INPUT:
                lines.append(f"- invalid input: {r.get('error', '')}")
            elif r.get("result") is None:
                lines.append(f"- upstream error: {r.get('error', '')}")
            else:
                lines.append("- model output could not be parsed; conservative defaults returned")
            lines.append("")
    else:
        lines.append("Every case was evaluated and parsed.")
        lines.append("")

    return "\n".join(lines)


def run_batch(advisor: VisaAdvisor, cases: List[Dict[str, Any]], results_dir: Path, run_id: str) -> Path:
    ensure_dir(results_dir)
    rows: List[dict] = []

    for i, case in enumerate(tqdm(cases, desc="Evaluating cases")):
        cid = (case.get("id") if isinstance(case, dict) else None) or f"CASE-{i:03d}"
        row: Dict[str, Any] = {
            "run_id": run_id,
            "case_id": cid,
            "input": case,
            "timestamp_utc": now_utc_iso(),
            "result": None,
            "telemetry": {},
        }

        problems = case_problems(case)
        if problems:
            row["status"] = STATUS_INVALID_INPUT
            row["error"] = "; ".join(problems)
            rows.append(row)
            continue

        visa_input = VisaEvaluationInput.from_payload(case)
        row["input"] = visa_input.to_prompt_payload()
        try:
            result, telemetry = advisor.evaluate_with_telemetry(visa_input)
            row["status"] = STATUS_OK
            row["result"] = result.to_public(case_id=cid, request_id=str(uuid.uuid4()))
            row["telemetry"] = telemetry
        except UpstreamError as e:
            row["status"] = STATUS_UPSTREAM_ERROR
            row["error"] = str(e)
        rows.append(row)

    write_jsonl(results_dir / "results_visa.jsonl", rows)

    metrics = compute_batch_metrics(rows)
    report = build_report(run_id, advisor.provider.name, advisor.cfg.llm_model, metrics, rows)
    report_path = results_dir / f"report_{run_id}.md"
    report_path.write_text(report, encoding="utf-8")

    print(f"[OK] wrote {len(rows)} -> {results_dir / 'results_visa.jsonl'}")
    print(f"[OK] wrote report -> {report_path}")
    return report_path


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="visa-advisor")
    ap.add_argument("--smoke", action="store_true", help="Only run a live check of the configured provider.")
    sub = ap.add_subparsers(dest="command")

    p_parse = sub.add_parser("parse", help="Validate raw model output from a file ('-' for stdin).")
    p_parse.add_argument("source")

    p_batch = sub.add_parser("batch", help="Evaluate a JSON list of cases.")
    p_batch.add_argument("cases", type=Path)
    p_batch.add_argument("--results-dir", type=Path, default=Path(settings.results_dir))
    p_batch.add_argument("--run-id", default=settings.run_id)

    p_check = sub.add_parser("checklist", help="Print a document checklist.")
    p_check.add_argument("--nationality", required=True)
    p_check.add_argument("--destination", required=True)
    p_check.add_argument("--purpose", required=True, choices=TRAVEL_PURPOSES)

    args = ap.parse_args(argv)
    configure_logging(settings)

    if args.smoke:
        smoke_test(VisaAdvisor())
        return

    if args.command == "parse":
        text = _read_text(args.source)
        result = evaluate_model_text(text)
        out = result.to_public(case_id="local", request_id=str(uuid.uuid4()))
        print(json.dumps(out, indent=2, ensure_ascii=False))
        print(f"[PARSE] parse_ok = {parse_json_object(text) is not None}")
        return

    if args.command == "batch":
        run_batch(VisaAdvisor(), load_json(args.cases), args.results_dir, args.run_id)
        return

    if args.command == "checklist":
        checklist = build_checklist(args.nationality, args.destination, args.purpose)
        print(json.dumps(checklist.to_dict(), indent=2, ensure_ascii=False))
        return

    ap.print_help()


if __name__ == "__main__":
    main()
