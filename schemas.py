# JSON schemas for the evaluation request and the public response (jsonschema).

TRAVEL_PURPOSES = ["tourism", "family_visit", "business", "study", "work", "transit", "other"]

EVALUATION_INPUT_SCHEMA = {
    "type": "object",
    "required": ["nationality", "destinationCountry", "travelPurpose"],
    "properties": {
        "nationality": {"type": "string", "minLength": 2},
        "destinationCountry": {"type": "string", "minLength": 2},
        "travelPurpose": {"type": "string", "enum": TRAVEL_PURPOSES},
        "plannedStartDate": {"type": "string"},
        "plannedEndDate": {"type": "string"},
        "additionalContext": {"type": "string"},
    },
    "additionalProperties": True,
}

CHECKLIST_INPUT_SCHEMA = {
    "type": "object",
    "required": ["nationality", "destinationCountry", "travelPurpose"],
    "properties": {
        "nationality": {"type": "string", "minLength": 2},
        "destinationCountry": {"type": "string", "minLength": 2},
        "travelPurpose": {"type": "string", "enum": TRAVEL_PURPOSES},
    },
    "additionalProperties": True,
}

_NON_EMPTY = {"type": "string", "minLength": 1, "pattern": r"\S"}

EVALUATION_RESPONSE_SCHEMA = {
    "type": "object",
    "required": ["caseId", "summary", "recommendedRoute", "caveats", "verdict", "requestId"],
    "properties": {
        "caseId": {"type": "string"},
        "summary": _NON_EMPTY,
        "recommendedRoute": _NON_EMPTY,
        "caveats": {"type": "array", "items": _NON_EMPTY},
        "verdict": {"type": "string", "enum": ["VISA_FREE", "VISA_REQUIRED", "CHECK_NEEDED"]},
        "stats": {
            "type": "object",
            "minProperties": 1,
            "properties": {
                "maxStayDays": {"type": "integer", "minimum": 1},
                "feeEstimate": _NON_EMPTY,
                "processingTimeEstimate": _NON_EMPTY,
            },
            "additionalProperties": False,
        },
        "requestId": {"type": "string"},
    },
    "additionalProperties": False,
}
