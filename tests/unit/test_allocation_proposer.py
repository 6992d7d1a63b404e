"""
Allocation Proposer: Unit Tests
Tests for prompt building, _parse_proposal_response(),
_parse_allocation_response() and propose_allocation_llm() with a fake client.
"""

from __future__ import annotations

import json
import math
from types import SimpleNamespace

import pytest

from portfolio_metrics.exceptions import EnvConfigError, ProposalError
from portfolio_metrics.schemas.product import allocation_total
from portfolio_metrics.tools.allocation_proposer import (
    _parse_allocation_response,
    _parse_proposal_response,
    build_proposal_prompt,
    propose_allocation_llm,
)
from tests.fixtures.conftest import make_products


class _FakeMessages:
    def __init__(self, text: str):
        self.text = text
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


class _FakeClient:
    def __init__(self, text: str):
        self.messages = _FakeMessages(text)


def _make_reply(allocation: list[dict], **fields) -> str:
    body = {
        "name": "Balanced Income",
        "description": "Diversified income portfolio",
        "clientProfile": "Retiree",
        "allocation": allocation,
        "generationLogic": "Bonds for stability, equity for growth",
        "averageRisk": 99,
    }
    body.update(fields)
    return "Here is the portfolio:\n" + json.dumps(body)


class TestBuildPrompt:

    @pytest.mark.schema
    def test_maps_levels(self):
        """Known risk/horizon/objective keys are expanded."""
        prompt = build_proposal_prompt(
            make_products([1]), "desc", "profile",
            risk_level="conservative", investment_horizon="long_term",
            objectives=["income", "liquidity"],
        )
        assert "capital preservation" in prompt
        assert "Long term (7+ years)" in prompt
        assert "Income generation, Liquidity" in prompt
        assert "Global Bond Fund" in prompt

    @pytest.mark.schema
    def test_unknown_level_verbatim(self):
        """Unknown keys pass through unchanged."""
        prompt = build_proposal_prompt(make_products([1]), "d", "p", risk_level="yolo")
        assert "Risk level: yolo" in prompt

    @pytest.mark.schema
    def test_default_objective_growth(self):
        """No objectives -> capital growth."""
        assert "Capital growth" in build_proposal_prompt(make_products([1]), "d", "p")


class TestParseResponse:

    @pytest.mark.schema
    def test_extracts_object(self):
        """JSON object is extracted from surrounding prose."""
        data = _parse_proposal_response('Sure! {"name": "X", "allocation": []} Thanks.')
        assert data["name"] == "X"

    @pytest.mark.schema
    @pytest.mark.parametrize("text", ["", "no json here", "{not: valid}", "[1, 2]"])
    def test_bad_response_raises(self, text):
        """Missing or malformed JSON raises ProposalError."""
        with pytest.raises(ProposalError):
            _parse_proposal_response(text)

    @pytest.mark.schema
    def test_filters_unknown_and_invalid(self):
        """Unknown ids, bad percentages and duplicates are dropped."""
        lines = _parse_allocation_response(
            [
                {"productId": 1, "percentage": 40, "category": "Bonds"},
                {"isinId": "2", "percentage": "35"},
                {"productId": 77, "percentage": 10},
                {"productId": 3, "percentage": -5},
                {"productId": 3, "percentage": 0},
                {"productId": 1, "percentage": 20},
                {"percentage": 10},
                "junk",
            ],
            valid_ids={1, 2, 3},
        )
        assert [(l.product_id, l.percentage) for l in lines] == [(1, 40.0), (2, 35.0)]
        assert lines[0].category == "bonds"

    @pytest.mark.schema
    def test_non_list_allocation(self):
        """Non-array allocation yields no lines."""
        assert _parse_allocation_response({"productId": 1}, {1}) == []


class TestProposeAllocation:

    @pytest.mark.behavior
    def test_normalizes_to_100(self):
        """Proposed 60 + 30 is rescaled to sum to 100."""
        client = _FakeClient(_make_reply([
            {"productId": 1, "percentage": 60},
            {"productId": 2, "percentage": 30},
        ]))
        proposal = propose_allocation_llm(make_products(), "desc", "profile", client=client)
        assert math.isclose(allocation_total(proposal.allocation), 100.0)
        assert proposal.name == "Balanced Income"
        assert proposal.generation_logic.startswith("Bonds")

    @pytest.mark.behavior
    def test_request_shape(self):
        """Model, token limit and system prompt are sent."""
        client = _FakeClient(_make_reply([{"productId": 1, "percentage": 100}]))
        propose_allocation_llm(make_products([1]), "d", "p", model="test-model", client=client)
        call = client.messages.calls[0]
        assert call["model"] == "test-model"
        assert call["max_tokens"] > 0
        assert "JSON" in call["system"]

    @pytest.mark.behavior
    def test_defaults_when_fields_missing(self):
        """Missing name falls back to risk level and horizon."""
        client = _FakeClient(json.dumps({"allocation": [{"productId": 1, "percentage": 100}]}))
        proposal = propose_allocation_llm(
            make_products([1]), "my desc", "my profile",
            risk_level="growth", investment_horizon="long_term", client=client,
        )
        assert proposal.name == "Portfolio growth - long_term"
        assert proposal.description == "my desc"
        assert proposal.client_profile == "my profile"

    @pytest.mark.behavior
    def test_no_usable_lines_raises(self):
        """All lines rejected -> ProposalError."""
        client = _FakeClient(_make_reply([{"productId": 404, "percentage": 100}]))
        with pytest.raises(ProposalError):
            propose_allocation_llm(make_products(), "d", "p", client=client)

    @pytest.mark.behavior
    def test_no_products_raises(self):
        """Empty catalog -> ProposalError before any call."""
        client = _FakeClient("{}")
        with pytest.raises(ProposalError):
            propose_allocation_llm([], "d", "p", client=client)
        assert client.messages.calls == []

    @pytest.mark.behavior
    def test_missing_api_key(self, monkeypatch):
        """No client and no ANTHROPIC_API_KEY -> EnvConfigError."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(EnvConfigError):
            propose_allocation_llm(make_products([1]), "d", "p")
