import json

import pytest

from helpers import make_provider
from service import handle_checklist, handle_evaluate, handle_health, handle_meta
from schemas import TRAVEL_PURPOSES
from visa_advisor import VisaAdvisor

BODY = {"nationality": "United States", "destinationCountry": "Canada", "travelPurpose": "tourism"}

MODEL_TEXT = json.dumps(
    {
        "summary": "US citizens can enter Canada visa-free for tourism.",
        "recommendedRoute": "Present a valid passport at the border.",
        "caveats": ["Stay limited to 6 months", 7],
        "verdict": "VISA_FREE",
        "stats": {"maxStayDays": 180.0, "feeEstimate": "None", "processingTimeEstimate": ""},
    }
)


def factory(cfg, *responses):
    return lambda: VisaAdvisor(provider=make_provider(*responses), cfg=cfg, sleep=lambda s: None)


def test_evaluate_success(test_settings):
    status, headers, payload = handle_evaluate(BODY, advisor_factory=factory(test_settings, MODEL_TEXT), cfg=test_settings)

    assert status == 200
    assert headers["x-request-id"] == payload["requestId"]
    assert set(payload) == {"caseId", "summary", "recommendedRoute", "caveats", "verdict", "stats", "requestId"}
    assert payload["verdict"] == "VISA_FREE"
    assert payload["caveats"] == ["Stay limited to 6 months"]
    assert payload["stats"] == {"maxStayDays": 180, "feeEstimate": "None"}
    assert payload["caseId"] != payload["requestId"]


def test_evaluate_garbage_model_output_is_still_200(test_settings):
    status, _, payload = handle_evaluate(BODY, advisor_factory=factory(test_settings, "no idea"), cfg=test_settings)
    assert status == 200
    assert payload["verdict"] == "CHECK_NEEDED"
    assert "stats" not in payload
    assert "rawModelResponse" not in payload


def test_method_not_allowed(test_settings):
    status, headers, payload = handle_evaluate(BODY, method="GET", cfg=test_settings)
    assert status == 405
    assert payload["errorCode"] == "E_METHOD_NOT_ALLOWED"
    assert payload["requestId"] == headers["x-request-id"]


@pytest.mark.parametrize(
    "body",
    [
        None,
        [],
        {"nationality": "United States", "destinationCountry": "Canada"},
        {**BODY, "travelPurpose": "vacation"},
        {**BODY, "nationality": "U"},
    ],
)
def test_invalid_input(body, test_settings):
    status, _, payload = handle_evaluate(body, cfg=test_settings)
    assert status == 400
    assert payload["errorCode"] == "E_VALIDATION"
    assert "details" not in payload


def test_iso_code_rejected(test_settings):
    status, _, payload = handle_evaluate({**BODY, "destinationCountry": "CA"}, cfg=test_settings)
    assert status == 400
    assert "ISO code 'CA'" in payload["message"]


def test_details_only_in_development(dev_settings):
    status, _, payload = handle_evaluate({**BODY, "nationality": "US"}, cfg=dev_settings)
    assert status == 400
    assert payload["details"] == {"field": "nationality"}


def test_upstream_failure_maps_to_503(dev_settings):
    status, _, payload = handle_evaluate(
        BODY, advisor_factory=factory(dev_settings, RuntimeError("timeout"), RuntimeError("timeout")), cfg=dev_settings
    )
    assert status == 503
    assert payload["errorCode"] == "E_AI_UPSTREAM"
    assert "timeout" in payload["details"]["originalError"]


def test_unexpected_error_maps_to_internal(test_settings):
    def broken():
        raise KeyError("boom")

    status, _, payload = handle_evaluate(BODY, advisor_factory=broken, cfg=test_settings)
    assert status == 500
    assert payload["errorCode"] == "E_INTERNAL"
    assert "details" not in payload


def test_checklist(test_settings):
    status, headers, payload = handle_checklist({**BODY, "travelPurpose": "study"}, cfg=test_settings)
    assert status == 200
    assert "x-request-id" in headers
    assert payload["title"].startswith("Suggested study visa checklist")
    assert payload["items"][-1]["label"].startswith("Proof of enrolment")


def test_checklist_validation(test_settings):
    status, _, payload = handle_checklist({"nationality": "X"}, cfg=test_settings)
    assert status == 400
    assert payload["errorCode"] == "E_VALIDATION"


def test_meta_and_health(test_settings):
    assert handle_meta() == (200, {}, {"apiVersion": "1.0.0", "travelPurposes": TRAVEL_PURPOSES})
    assert handle_meta("POST")[0] == 405
    assert handle_health(test_settings) == (200, {}, {"status": "ok", "env": "test"})
