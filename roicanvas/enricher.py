"""Narrative enrichment for the canvas.

The numeric canvas is complete before this module runs. An LLM fills the
free-text sections (strategic focus, final notes, inputs, impacts,
capabilities). Every failure path returns a clearly marked fallback set so
the canvas stays displayable; :func:`generate_insights` never raises.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any

from roicanvas.config import get_settings
from roicanvas.models import CanvasInsights
from roicanvas.schemas import CanvasDocument
from roicanvas.utils import strip_code_fence

log = logging.getLogger(__name__)


class LLMCallError(Exception):
    """LLM call failed or returned unparseable output."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class MissingCredentialsError(LLMCallError):
    """No API key configured for the selected provider."""


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are a strategy consultant writing the narrative sections of an AI ROI & \
Roadmap Canvas. The financial figures and the portfolio selection are final; \
do not recompute or contradict them. Be specific to the industry and the \
selected use cases.

Respond with ONLY valid JSON:
{
  "strategicFocus": "<1 sentence>",
  "risksAndMitigations": "<3 bullet points>",
  "dataAndInfra": "<3 bullet points>",
  "orgConsiderations": "<3 bullet points>",
  "inputs": {"resources": "...", "personnel": "...", "externalSupport": "..."},
  "impacts": {"hardBenefits": "...", "softBenefits": "..."},
  "capabilities": {"skills": "...", "technology": "..."}
}
"""


def build_insight_prompt(canvas: CanvasDocument) -> str:
    """Assemble the user message from the canvas header and the selected use cases."""
    selected = [
        {"name": u.name, "problem": u.problem, "npv": u.npv_3yr_10pct}
        for u in canvas.selected_use_cases()
    ]
    return "\n".join([
        "Analyze the following AI Portfolio data and generate specific strategic insights "
        "and structure for a Business Canvas.",
        "",
        "Context:",
        f"Industry: {canvas.header.designed_for}",
        f"Objective: {canvas.business_context.objective}",
        "",
        "Selected Portfolio Use Cases:",
        json.dumps(selected),
        "",
        "Task:",
        '1. Write a 1-sentence "Strategic Focus" for this portfolio '
        "(balancing short-term wins and long-term transformation).",
        '2. Provide 3 specific bullet points for "Risks and Mitigations".',
        '3. Provide 3 specific bullet points for "Data and Infra Requirements".',
        '4. Provide 3 specific bullet points for "Organizational Considerations".',
        '5. List "Inputs": resources (e.g. cloud compute, data lakes), personnel '
        "(e.g. data scientists, domain experts), externalSupport (e.g. implementation partners).",
        '6. List "Impacts": hardBenefits (financial and efficiency gains) and softBenefits '
        "(qualitative gains).",
        '7. List "Capabilities": skills (e.g. NLP, ML engineering) and technology '
        "(e.g. vector DB, model hosting).",
        "",
        "Output JSON format only.",
    ])


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------


class LLMClient:
    """Unified async LLM client supporting Anthropic and OpenAI."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        settings = get_settings()
        self.provider = provider or settings.llm_provider
        self.model = model or settings.llm_model
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "anthropic":
            import anthropic
            self.model = self.model or "claude-haiku-4-5-20251001"
            key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not key:
                raise MissingCredentialsError("ANTHROPIC_API_KEY is not set")
            self._client = anthropic.AsyncAnthropic(api_key=key)
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            self.model = self.model or "gpt-4o-mini"
            kwargs: dict[str, Any] = {}
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if not key and self.provider == "openai":
                raise MissingCredentialsError("OPENAI_API_KEY is not set")
            kwargs["api_key"] = key or "not-needed"
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")

    async def call(self, system: str, user: str) -> dict[str, Any]:
        """Send system+user message to the LLM, return parsed JSON."""
        try:
            if self.provider == "anthropic":
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=2048,
                    system=system,
                    messages=[{"role": "user", "content": user}],
                )
                text = response.content[0].text
            else:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=2048,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                )
                text = response.choices[0].message.content or ""
        except LLMCallError:
            raise
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc

        text = strip_code_fence(text or "")
        if not text:
            raise LLMCallError("LLM returned an empty response", retryable=True)
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LLMCallError(
                f"LLM returned invalid JSON: {text[:200]}", retryable=False,
            ) from exc
        if not isinstance(parsed, dict):
            raise LLMCallError(f"LLM returned {type(parsed).__name__}, expected an object")
        return parsed


# ---------------------------------------------------------------------------
# Insight parsing and fallbacks
# ---------------------------------------------------------------------------


def fallback_insights(kind: str) -> CanvasInsights:
    """Marked placeholder text for a canvas whose enrichment did not run.

    ``kind`` is ``"missing_key"`` (no credentials) or ``"error"`` (call or
    parse failure).
    """
    if kind == "missing_key":
        return CanvasInsights(
            strategic_focus="API Key missing.",
            risks="N/A", data_infra="N/A", org="N/A",
            resources="N/A", personnel="N/A", external_support="N/A",
            hard_benefits="N/A", soft_benefits="N/A",
            skills="N/A", technology="N/A",
            source="missing_key",
        )
    return CanvasInsights(
        strategic_focus="Error generating focus.",
        risks="Error generating risks.",
        data_infra="Error generating requirements.",
        org="Error generating considerations.",
        resources="Error", personnel="Error", external_support="Error",
        hard_benefits="Error", soft_benefits="Error",
        skills="Error", technology="Error",
        source="error",
    )


def _text(value: Any, default: str) -> str:
    if isinstance(value, list):
        value = "\n".join(f"- {v}" for v in value if v)
    text = str(value).strip() if value is not None else ""
    return text or default


def parse_insights(raw: dict[str, Any]) -> CanvasInsights:
    """Normalize an LLM response; absent fields get their own default text."""
    inputs = raw.get("inputs") if isinstance(raw.get("inputs"), dict) else {}
    impacts = raw.get("impacts") if isinstance(raw.get("impacts"), dict) else {}
    capabilities = raw.get("capabilities") if isinstance(raw.get("capabilities"), dict) else {}
    return CanvasInsights(
        strategic_focus=_text(raw.get("strategicFocus"), "No focus generated."),
        risks=_text(raw.get("risksAndMitigations"), "No risks generated."),
        data_infra=_text(raw.get("dataAndInfra"), "No requirements generated."),
        org=_text(raw.get("orgConsiderations"), "No considerations generated."),
        resources=_text(inputs.get("resources"), "N/A"),
        personnel=_text(inputs.get("personnel"), "N/A"),
        external_support=_text(inputs.get("externalSupport"), "N/A"),
        hard_benefits=_text(impacts.get("hardBenefits"), "N/A"),
        soft_benefits=_text(impacts.get("softBenefits"), "N/A"),
        skills=_text(capabilities.get("skills"), "N/A"),
        technology=_text(capabilities.get("technology"), "N/A"),
    )


async def generate_insights(
    canvas: CanvasDocument, client: LLMClient | None = None,
) -> CanvasInsights:
    """Ask the LLM for the canvas narrative. Returns fallback text on any failure."""
    try:
        if client is None:
            client = LLMClient()
    except MissingCredentialsError as exc:
        log.warning("Skipping canvas enrichment: %s", exc)
        return fallback_insights("missing_key")
    except (ValueError, ImportError) as exc:
        log.warning("Cannot create LLM client: %s", exc)
        return fallback_insights("error")

    try:
        raw = await client.call(SYSTEM_PROMPT, build_insight_prompt(canvas))
    except LLMCallError as exc:
        log.warning("Canvas enrichment failed (retryable=%s): %s", exc.retryable, exc)
        return fallback_insights("error")
    return parse_insights(raw)
