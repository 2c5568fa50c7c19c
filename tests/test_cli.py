import json

import cli
from helpers import make_provider
from visa_advisor import VisaAdvisor

CASES = [
    {"id": "C1", "nationality": "United States", "destinationCountry": "Canada", "travelPurpose": "tourism"},
    {"nationality": "India", "destinationCountry": "Germany", "travelPurpose": "work"},
    {"id": "C3", "nationality": "Chile", "destinationCountry": "Japan", "travelPurpose": "study"},
]


def test_parse_command(tmp_path, capsys):
    source = tmp_path / "raw.txt"
    source.write_text('```json\n{"summary":"s","verdict":"VISA_FREE"}\n```', encoding="utf-8")
    cli.main(["parse", str(source)])

    out = capsys.readouterr().out
    body, status = out.rsplit("\n[PARSE]", 1)
    assert json.loads(body)["verdict"] == "VISA_FREE"
    assert "parse_ok = True" in status


def test_checklist_command(capsys):
    cli.main(["checklist", "--nationality", "Chile", "--destination", "Japan", "--purpose", "transit"])
    data = json.loads(capsys.readouterr().out)
    assert data["title"] == "Suggested transit visa checklist for travel from Chile to Japan"


def test_batch_writes_results_and_report(tmp_path, test_settings):
    provider = make_provider('{"verdict":"VISA_FREE","summary":"ok"}', "garbled", RuntimeError("x"), RuntimeError("y"))
    advisor = VisaAdvisor(provider=provider, cfg=test_settings, sleep=lambda s: None)

    report_path = cli.run_batch(advisor, CASES, tmp_path / "out", "RUN-TEST")

    rows = [json.loads(line) for line in (tmp_path / "out" / "results_visa.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [r["case_id"] for r in rows] == ["C1", "CASE-001", "C3"]
    assert rows[0]["result"]["verdict"] == "VISA_FREE"
    assert rows[1]["telemetry"]["parse_ok"] is False
    assert rows[2]["result"] is None
    assert rows[2]["status"] == "upstream_error"

    report = report_path.read_text(encoding="utf-8")
    assert report.startswith("# Report: RUN-TEST")
    assert "### CASE-001" in report
    assert "### C3" in report


def test_batch_keeps_going_past_malformed_cases(tmp_path, test_settings):
    provider = make_provider('{"verdict":"VISA_REQUIRED"}', '{"verdict":"VISA_FREE"}')
    advisor = VisaAdvisor(provider=provider, cfg=test_settings, sleep=lambda s: None)
    cases = [
        CASES[0],
        {"id": "C2", "nationality": "India"},
        "not a case",
        {"id": "C4", "nationality": "IN", "destinationCountry": "Germany", "travelPurpose": "work"},
        CASES[2],
    ]

    report_path = cli.run_batch(advisor, cases, tmp_path / "out", "RUN-TEST")

    rows = [json.loads(line) for line in (tmp_path / "out" / "results_visa.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [r["case_id"] for r in rows] == ["C1", "C2", "CASE-002", "C4", "C3"]
    assert [r["status"] for r in rows] == ["ok", "invalid_input", "invalid_input", "invalid_input", "ok"]
    assert rows[0]["result"]["verdict"] == "VISA_REQUIRED"
    assert rows[4]["result"]["verdict"] == "VISA_FREE"
    assert "destinationCountry" in rows[1]["error"]
    assert "ISO code 'IN'" in rows[3]["error"]
    assert all(r["result"] is None for r in rows[1:4])
    assert len(provider.calls) == 2

    metrics = cli.compute_batch_metrics(rows)
    assert metrics["invalid_inputs"] == 3
    assert metrics["upstream_failures"] == 0
    assert metrics["evaluated"] == 2
    assert "- invalid input:" in report_path.read_text(encoding="utf-8")


def test_case_problems():
    assert cli.case_problems(CASES[0]) == []
    assert cli.case_problems(None)
    assert cli.case_problems({**CASES[0], "travelPurpose": "vacation"})[0].startswith("travelPurpose:")


def test_compute_batch_metrics():
    rows = [
        {"status": "ok", "result": {"verdict": "VISA_FREE"}, "telemetry": {"parse_ok": True, "cache_hit": True, "input_tokens": 5}},
        {"status": "ok", "result": {"verdict": "CHECK_NEEDED"}, "telemetry": {"parse_ok": False, "output_tokens": 2}},
        {"status": "upstream_error", "result": None, "telemetry": {}},
        {"status": "invalid_input", "result": None, "telemetry": {}},
    ]
    metrics = cli.compute_batch_metrics(rows)
    assert metrics["total_cases"] == 4
    assert metrics["evaluated"] == 2
    assert metrics["upstream_failures"] == 1
    assert metrics["invalid_inputs"] == 1
    assert metrics["parse_failure_rate"] == 0.5
    assert metrics["verdicts"] == {"VISA_FREE": 1, "VISA_REQUIRED": 0, "CHECK_NEEDED": 1}
    assert metrics["cache_hits"] == 1
    assert metrics["input_tokens"] == 5
    assert metrics["output_tokens"] == 2
