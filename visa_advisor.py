from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import requests

from cache import SQLiteCache
from config import Settings, settings as default_settings
from response_parser import ResponseParser, parse_json_object
from result_validator import EvaluationResult, ResultValidator

log = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


class UpstreamError(Exception):
    """The model provider failed on every attempt."""


@dataclass(frozen=True)
class VisaEvaluationInput:
    nationality: str
    destination_country: str
    travel_purpose: str
    planned_start_date: Optional[str] = None
    planned_end_date: Optional[str] = None
    additional_context: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VisaEvaluationInput":
        """Builds from an already schema-validated request body."""
        return cls(
            nationality=payload["nationality"],
            destination_country=payload["destinationCountry"],
            travel_purpose=payload["travelPurpose"],
            planned_start_date=payload.get("plannedStartDate"),
            planned_end_date=payload.get("plannedEndDate"),
            additional_context=payload.get("additionalContext"),
        )

    def to_prompt_payload(self) -> Dict[str, str]:
        return {
            "nationality": self.nationality,
            "destinationCountry": self.destination_country,
            "travelPurpose": self.travel_purpose,
            "plannedStartDate": self.planned_start_date or "unknown",
            "plannedEndDate": self.planned_end_date or "unknown",
            "additionalContext": self.additional_context or "none",
        }


def _load_text(p: Path) -> str:
    return p.read_text(encoding="utf-8")


def token_usage(usage: Any, input_field: str, output_field: str, total_field: str) -> Dict[str, int]:
    """
    Normalizes a provider's usage report to input/output/total token counts.

    `usage` may be an SDK object or a plain dict. Missing or null counts read
    as 0; no usage at all gives {}.
    """
    if not usage:
        return {}
    if isinstance(usage, dict):
        read = usage.get
    else:
        def read(field, default=None):
            return getattr(usage, field, default)
    return {
        "input_tokens": int(read(input_field, 0) or 0),
        "output_tokens": int(read(output_field, 0) or 0),
        "total_tokens": int(read(total_field, 0) or 0),
    }


class BaseProvider:
    name: str = "base"
    # Settings attribute that must be non-empty, and its env var name
    required_setting: Optional[str] = None
    required_env: str = ""

    def __init__(self, cfg: Settings):
        if self.required_setting and not getattr(cfg, self.required_setting):
            raise ValueError(f"{self.required_env} is not set in environment variables.")
        self.cfg = cfg

    def generate(self, system: str, user_input: str) -> Tuple[str, dict]:
        raise NotImplementedError


class OpenAIProvider(BaseProvider):
    name = "openai"
    required_setting = "openai_api_key"
    required_env = "OPENAI_API_KEY"

    def __init__(self, cfg: Settings):
        super().__init__(cfg)
        from openai import OpenAI

        self.client = OpenAI(api_key=cfg.openai_api_key, timeout=cfg.timeout_s)

    def generate(self, system: str, user_input: str) -> Tuple[str, dict]:
        resp = self.client.responses.create(
            model=self.cfg.llm_model,
            instructions=system,
            input=user_input,
            temperature=self.cfg.temperature,
            top_p=self.cfg.top_p,
            max_output_tokens=self.cfg.max_output_tokens,
        )
        usage = token_usage(getattr(resp, "usage", None), "input_tokens", "output_tokens", "total_tokens")
        return getattr(resp, "output_text", "") or "", usage


class GeminiProvider(BaseProvider):
    name = "gemini"
    required_setting = "gemini_api_key"
    required_env = "GEMINI_API_KEY"

    def __init__(self, cfg: Settings):
        super().__init__(cfg)
        from google import genai

        self.client = genai.Client(api_key=cfg.gemini_api_key)

    def generate(self, system: str, user_input: str) -> Tuple[str, dict]:
        from google.genai import types

        resp = self.client.models.generate_content(
            model=self.cfg.llm_model,
            contents=user_input,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                system_instruction=system,
                temperature=self.cfg.temperature,
                top_p=self.cfg.top_p,
                max_output_tokens=self.cfg.max_output_tokens,
            ),
        )
        usage = token_usage(
            getattr(resp, "usage_metadata", None),
            "prompt_token_count",
            "candidates_token_count",
            "total_token_count",
        )
        return getattr(resp, "text", "") or "", usage


class LlamaProvider(BaseProvider):
    """Any OpenAI-compatible chat endpoint, Ollama's /v1 included."""
    name = "llama"
    required_setting = "llama_base_url"
    required_env = "LLAMA_BASE_URL"

    def __init__(self, cfg: Settings):
        super().__init__(cfg)
        self.endpoint = cfg.llama_base_url.rstrip("/") + "/chat/completions"
        self.headers = {"Content-Type": "application/json"}
        if cfg.llama_api_key:
            self.headers["Authorization"] = f"Bearer {cfg.llama_api_key}"

    def generate(self, system: str, user_input: str) -> Tuple[str, dict]:
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user_input},
        ]
        r = requests.post(
            self.endpoint,
            headers=self.headers,
            json={
                "model": self.cfg.llm_model,
                "messages": messages,
                "temperature": self.cfg.temperature,
                "top_p": self.cfg.top_p,
                "max_tokens": self.cfg.max_output_tokens,
            },
            timeout=self.cfg.timeout_s,
        )
        r.raise_for_status()
        data = r.json()
        usage = token_usage(data.get("usage"), "prompt_tokens", "completion_tokens", "total_tokens")
        return data["choices"][0]["message"]["content"] or "", usage


PROVIDERS = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "llama": LlamaProvider,
}


def build_provider(cfg: Settings = default_settings) -> BaseProvider:
    """Instantiates the provider named by LLM_PROVIDER."""
    provider_cls = PROVIDERS.get(cfg.llm_provider)
    if provider_cls is None:
        raise ValueError(f"Invalid LLM_PROVIDER: {cfg.llm_provider}")
    return provider_cls(cfg)


class VisaAdvisor:
    """Asks the model about a visa situation and returns a validated result."""

    def __init__(
        self,
        provider: Optional[BaseProvider] = None,
        cache: Optional[SQLiteCache] = None,
        parser: Optional[ResponseParser] = None,
        validator: Optional[ResultValidator] = None,
        cfg: Settings = default_settings,
        sleep=time.sleep,
    ):
        self.cfg = cfg
        self.system_prompt = _load_text(PROMPTS_DIR / "visa_system.txt")
        self.instructions = _load_text(PROMPTS_DIR / "visa_instructions.txt")
        self.provider = provider or build_provider(cfg)
        if cache is None and cfg.enable_cache:
            cache = SQLiteCache(cfg.cache_path, ttl_s=cfg.cache_ttl_s)
        self.cache = cache
        self.parser = parser or ResponseParser()
        self.validator = validator or ResultValidator(self.parser.defaults)
        self._sleep = sleep

    def build_user_input(self, visa_input: VisaEvaluationInput) -> str:
        """Instructions plus the JSON case."""
        return self.instructions + "\n\nINPUT:\n" + json.dumps(visa_input.to_prompt_payload(), ensure_ascii=False)

    def _call_provider(self, user_input: str) -> Tuple[str, dict, int, bool, int]:
        """
        Calls the provider with cache and retries.
        Returns: (text, usage, latency_ms, cache_hit, retries)
        Raises UpstreamError when every attempt fails.
        """
        cache_payload = {
            "provider": self.provider.name,
            "model": self.cfg.llm_model,
            "system": self.system_prompt,
            "user_input": user_input,
            "temperature": self.cfg.temperature,
            "top_p": self.cfg.top_p,
            "max_output_tokens": self.cfg.max_output_tokens,
        }
        key = SQLiteCache.make_key(cache_payload)

        cached = self.cache.get(key) if self.cache is not None else None
        if cached:
            log.debug("cache hit key=%s", key[:12])
            return (
                cached.get("text", ""),
                cached.get("usage", {}) or {},
                int(cached.get("latency_ms", 0) or 0),
                True,
                0,
            )

        last_err: Optional[Exception] = None
        retries = 0
        text = ""
        usage: dict = {}

        t0 = time.time()
        attempts = self.cfg.max_retries + 1
        for attempt in range(attempts):
            try:
                text, usage = self.provider.generate(self.system_prompt, user_input)
                last_err = None
                break
            except Exception as e:
                last_err = e
                log.warning(
                    "[LLM_CALL_FAILED] provider=%s model=%s attempt=%d/%d err=%r",
                    self.provider.name, self.cfg.llm_model, attempt + 1, attempts, e,
                )
                if attempt + 1 < attempts:
                    retries += 1
                    self._sleep(min(2**attempt, 8))

        latency_ms = int((time.time() - t0) * 1000)

        if last_err is not None:
            raise UpstreamError(f"{type(last_err).__name__}: {last_err}"[:300]) from last_err

        if self.cache is not None:
            self.cache.set(key, {"text": text, "usage": usage, "latency_ms": latency_ms})

        return text, usage, latency_ms, False, retries

    def evaluate_with_telemetry(self, visa_input: VisaEvaluationInput) -> Tuple[EvaluationResult, Dict[str, Any]]:
        text, usage, latency_ms, cache_hit, retries = self._call_provider(self.build_user_input(visa_input))
        result = self.validator.validate(self.parser.parse(text))

        telemetry = {
            "provider": self.provider.name,
            "model": self.cfg.llm_model,
            "latency_ms": latency_ms,
            "input_tokens": int(usage.get("input_tokens", 0) or 0),
            "output_tokens": int(usage.get("output_tokens", 0) or 0),
            "cache_hit": cache_hit,
            "retries": retries,
            "parse_ok": parse_json_object(text) is not None,
        }
        return result, telemetry

    def evaluate(self, visa_input: VisaEvaluationInput) -> EvaluationResult:
        result, _ = self.evaluate_with_telemetry(visa_input)
        return result
