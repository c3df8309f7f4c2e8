"""Tests for the LLM narrative enrichment.

The LLM is always mocked: either the whole client (``AsyncMock`` on ``call``)
or the provider SDK object behind a real :class:`LLMClient`.
"""
from __future__ import annotations

import json
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from roicanvas.enricher import (
    LLMCallError,
    LLMClient,
    MissingCredentialsError,
    build_insight_prompt,
    fallback_insights,
    generate_insights,
    parse_insights,
)
from roicanvas.models import BusinessContext, EffortLevel, RawInitiative
from roicanvas.pipeline import process_portfolio
from roicanvas.schemas import GENERATING, build_canvas
from roicanvas.services import run_enrichment

LLM_RESPONSE = {
    "strategicFocus": "Automate the back office now, build forecasting for scale.",
    "risksAndMitigations": ["Data quality: add validation", "Adoption: train users", "Drift: monitor"],
    "dataAndInfra": "- Central lake\n- Feature store\n- MLOps",
    "orgConsiderations": "- Exec sponsor\n- CoE\n- Change management",
    "inputs": {"resources": "Cloud compute", "personnel": "Data scientists", "externalSupport": "SI partner"},
    "impacts": {"hardBenefits": "Lower cost", "softBenefits": "Faster decisions"},
    "capabilities": {"skills": "NLP", "technology": "Vector DB"},
}


@pytest.fixture()
def canvas():
    raws = [
        RawInitiative(id="a", name="Invoice Triage", problem="Manual routing",
                      benefit_low=100_000, benefit_high=100_000, dependencies="none"),
        RawInitiative(id="b", name="Forecasting", problem="Stock-outs",
                      benefit_low=50_000, benefit_high=50_000, effort=EffortLevel.HIGH),
        RawInitiative(id="c", name="Moonshot", problem="Everything",
                      benefit_low=1, benefit_high=1, effort=EffortLevel.HIGH),
        RawInitiative(id="d", name="Tiny", problem="Small",
                      benefit_low=2, benefit_high=2, effort=EffortLevel.HIGH),
    ]
    ctx = BusinessContext(industry="Wholesale", objective="Protect margin")
    return build_canvas(process_portfolio(raws, ctx, now=datetime(2026, 10, 19)))


def _mock_client(**call_kwargs) -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.call = AsyncMock(**call_kwargs)
    return client


# ---------------------------------------------------------------------------
# Prompt and parsing
# ---------------------------------------------------------------------------


class TestPrompt:
    def test_mentions_context_and_selected_only(self, canvas):
        prompt = build_insight_prompt(canvas)
        assert "Industry: Wholesale" in prompt
        assert "Objective: Protect margin" in prompt
        assert "Invoice Triage" in prompt
        assert "Forecasting" in prompt
        assert "Tiny" not in prompt

    def test_selected_use_cases_serialized_as_json(self, canvas):
        line = next(ln for ln in build_insight_prompt(canvas).splitlines() if ln.startswith("[{"))
        names = [u["name"] for u in json.loads(line)]
        assert names == [u.name for u in canvas.selected_use_cases()]


class TestParseInsights:
    def test_full_response(self):
        insights = parse_insights(LLM_RESPONSE)
        assert insights.strategic_focus.startswith("Automate")
        assert insights.risks == (
            "- Data quality: add validation\n- Adoption: train users\n- Drift: monitor"
        )
        assert insights.external_support == "SI partner"
        assert insights.technology == "Vector DB"
        assert insights.source == "llm"

    def test_missing_fields_get_defaults(self):
        insights = parse_insights({"strategicFocus": "  "})
        assert insights.strategic_focus == "No focus generated."
        assert insights.risks == "No risks generated."
        assert insights.data_infra == "No requirements generated."
        assert insights.org == "No considerations generated."
        assert insights.resources == insights.skills == "N/A"

    def test_non_dict_sections_ignored(self):
        insights = parse_insights({"inputs": "cloud", "impacts": None})
        assert insights.resources == "N/A"
        assert insights.hard_benefits == "N/A"


class TestFallbacks:
    def test_missing_key(self):
        insights = fallback_insights("missing_key")
        assert insights.strategic_focus == "API Key missing."
        assert insights.risks == insights.personnel == "N/A"
        assert insights.source == "missing_key"

    def test_error(self):
        insights = fallback_insights("error")
        assert insights.strategic_focus == "Error generating focus."
        assert insights.risks == "Error generating risks."
        assert insights.data_infra == "Error generating requirements."
        assert insights.org == "Error generating considerations."
        assert insights.skills == "Error"
        assert insights.source == "error"


# ---------------------------------------------------------------------------
# generate_insights
# ---------------------------------------------------------------------------


class TestGenerateInsights:
    @pytest.mark.asyncio
    async def test_success(self, canvas):
        client = _mock_client(return_value=LLM_RESPONSE)
        insights = await generate_insights(canvas, client=client)
        assert insights.personnel == "Data scientists"
        client.call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_credentials(self, canvas):
        with patch("roicanvas.enricher.LLMClient", side_effect=MissingCredentialsError("no key")):
            insights = await generate_insights(canvas)
        assert insights.strategic_focus == "API Key missing."

    @pytest.mark.asyncio
    async def test_unknown_provider(self, canvas):
        with patch("roicanvas.enricher.LLMClient", side_effect=ValueError("Unknown LLM provider")):
            insights = await generate_insights(canvas)
        assert insights.source == "error"

    @pytest.mark.asyncio
    async def test_call_failure_never_raises(self, canvas):
        client = _mock_client(side_effect=LLMCallError("timeout", retryable=True))
        insights = await generate_insights(canvas, client=client)
        assert insights.strategic_focus == "Error generating focus."

    @pytest.mark.asyncio
    async def test_run_enrichment_fills_canvas(self, canvas):
        client = _mock_client(return_value=LLM_RESPONSE)
        enriched = await run_enrichment(canvas, client=client)
        assert enriched.impacts.soft_benefits == "Faster decisions"
        assert enriched.use_cases == canvas.use_cases
        assert canvas.impacts.soft_benefits == GENERATING

    @pytest.mark.asyncio
    async def test_run_enrichment_failure_keeps_numbers(self, canvas):
        client = _mock_client(side_effect=LLMCallError("boom"))
        enriched = await run_enrichment(canvas, client=client)
        assert enriched.final_notes.risks_and_mitigations == "Error generating risks."
        assert enriched.financials == canvas.financials


# ---------------------------------------------------------------------------
# LLMClient
# ---------------------------------------------------------------------------


def _anthropic_client(text: str) -> LLMClient:
    client = LLMClient(provider="anthropic", model="test-model", api_key="test-key")
    response = SimpleNamespace(content=[SimpleNamespace(text=text)])
    client._client = MagicMock()
    client._client.messages.create = AsyncMock(return_value=response)
    return client


class TestLLMClient:
    def test_missing_anthropic_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(MissingCredentialsError):
            LLMClient(provider="anthropic")

    def test_missing_openai_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(MissingCredentialsError):
            LLMClient(provider="openai")

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            LLMClient(provider="carrier-pigeon")

    @pytest.mark.asyncio
    async def test_strips_code_fence(self):
        client = _anthropic_client('```json\n{"strategicFocus": "Go"}\n```')
        assert await client.call("sys", "user") == {"strategicFocus": "Go"}

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = _anthropic_client("not json at all")
        with pytest.raises(LLMCallError) as exc_info:
            await client.call("sys", "user")
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_non_object_json(self):
        client = _anthropic_client("[1, 2, 3]")
        with pytest.raises(LLMCallError, match="expected an object"):
            await client.call("sys", "user")

    @pytest.mark.asyncio
    async def test_api_error_is_retryable(self):
        client = LLMClient(provider="anthropic", api_key="test-key")
        client._client = MagicMock()
        client._client.messages.create = AsyncMock(side_effect=RuntimeError("503"))
        with pytest.raises(LLMCallError) as exc_info:
            await client.call("sys", "user")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_openai_compatible_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        client = LLMClient(provider="openai_compatible", base_url="http://localhost:1234/v1")
        message = SimpleNamespace(content='{"strategicFocus": "Local"}')
        client._client = MagicMock()
        client._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]),
        )
        assert await client.call("sys", "user") == {"strategicFocus": "Local"}
