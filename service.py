from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema import ValidationError as SchemaError
from jsonschema import validate as js_validate

from checklist_builder import build_checklist
from config import Settings, settings as default_settings
from errors import (
    E_AI_PARSE,
    E_AI_UPSTREAM,
    E_METHOD_NOT_ALLOWED,
    E_VALIDATION,
    ApiError,
    build_error_response,
    log_error,
)
from input_validation import redact_payload_for_logging, validate_country_name
from schemas import (
    CHECKLIST_INPUT_SCHEMA,
    EVALUATION_INPUT_SCHEMA,
    EVALUATION_RESPONSE_SCHEMA,
    TRAVEL_PURPOSES,
)
from visa_advisor import UpstreamError, VisaAdvisor, VisaEvaluationInput

log = logging.getLogger(__name__)

API_VERSION = "1.0.0"

Response = Tuple[int, Dict[str, str], Dict[str, Any]]


def schema_errors(body: Any, schema: dict) -> list:
    validator = Draft7Validator(schema)
    return [
        {"field": ".".join(str(p) for p in err.path) or None, "message": err.message}
        for err in sorted(validator.iter_errors(body), key=lambda e: [str(p) for p in e.path])
    ]


def _check_country_names(body: Dict[str, Any]) -> None:
    for field_name in ("nationality", "destinationCountry"):
        try:
            validate_country_name(body.get(field_name), field_name)
        except ValueError as e:
            raise ApiError(400, E_VALIDATION, str(e), {"field": field_name}) from e


def handle_evaluate(
    body: Any,
    method: str = "POST",
    advisor_factory: Optional[Callable[[], VisaAdvisor]] = None,
    cfg: Settings = default_settings,
) -> Response:
    """
    POST /api/visa/evaluate.

    Validates the request, asks the advisor, and returns
    (status, headers, payload). Every error becomes a structured body.
    """
    request_id = str(uuid.uuid4())
    headers = {"x-request-id": request_id}

    try:
        if method.upper() != "POST":
            raise ApiError(405, E_METHOD_NOT_ALLOWED, "Method not allowed. Use POST.")

        if cfg.is_development:
            log.debug('[Request] requestId="%s", endpoint="/api/visa/evaluate"', request_id)
            log.debug("[Payload] %s", json.dumps(redact_payload_for_logging(body), ensure_ascii=False, default=str))

        problems = schema_errors(body, EVALUATION_INPUT_SCHEMA)
        if problems:
            raise ApiError(
                400,
                E_VALIDATION,
                "Invalid input. Please check nationality, destinationCountry, and travelPurpose fields.",
                problems,
            )
        _check_country_names(body)

        advisor = advisor_factory() if advisor_factory else VisaAdvisor(cfg=cfg)
        try:
            result = advisor.evaluate(VisaEvaluationInput.from_payload(body))
        except UpstreamError as e:
            raise ApiError(
                503,
                E_AI_UPSTREAM,
                "Unable to process visa evaluation at this time. Please try again.",
                {"originalError": str(e)},
            ) from e

        payload = result.to_public(case_id=str(uuid.uuid4()), request_id=request_id)
        try:
            js_validate(instance=payload, schema=EVALUATION_RESPONSE_SCHEMA)
        except SchemaError as e:
            raise ApiError(
                500,
                E_AI_PARSE,
                "Unable to parse visa evaluation results. Please try again.",
                {"originalError": e.message},
            ) from e

        return 200, headers, payload
    except Exception as e:
        log_error(
            e,
            request_id,
            {"endpoint": "/api/visa/evaluate", "method": method, "hasBody": bool(body)},
            include_stack=cfg.is_development and not isinstance(e, ApiError),
        )
        err = build_error_response(e, request_id, include_details=cfg.is_development)
        return err["status"], headers, err


def handle_checklist(body: Any, method: str = "POST", cfg: Settings = default_settings) -> Response:
    """POST /api/visa/checklist."""
    request_id = str(uuid.uuid4())
    headers = {"x-request-id": request_id}

    try:
        if method.upper() != "POST":
            raise ApiError(405, E_METHOD_NOT_ALLOWED, "Method not allowed. Use POST.")
        problems = schema_errors(body, CHECKLIST_INPUT_SCHEMA)
        if problems:
            raise ApiError(400, E_VALIDATION, "Invalid input.", problems)

        checklist = build_checklist(body["nationality"], body["destinationCountry"], body["travelPurpose"])
        return 200, headers, checklist.to_dict()
    except Exception as e:
        log_error(e, request_id, {"endpoint": "/api/visa/checklist", "method": method})
        err = build_error_response(e, request_id, include_details=cfg.is_development)
        return err["status"], headers, err


def handle_meta(method: str = "GET") -> Response:
    """GET /api/meta: configuration the mobile app reads at startup."""
    if method.upper() != "GET":
        return 405, {}, {"error": "Method not allowed"}
    return 200, {}, {"apiVersion": API_VERSION, "travelPurposes": list(TRAVEL_PURPOSES)}


def handle_health(cfg: Settings = default_settings) -> Response:
    return 200, {}, {"status": "ok", "env": cfg.app_env}
