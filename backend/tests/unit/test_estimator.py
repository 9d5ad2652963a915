"""Unit tests for cost and duration projections."""

import pytest

from batch_engine.application.services.estimator import (
    calculate_cost,
    estimate_cost,
    estimate_minutes,
    get_model_pricing,
)
from batch_engine.domain.entities import GenerationSettings


def test_free_provider_costs_nothing():
    assert estimate_cost(10, GenerationSettings(provider="groq")) == 0.0


def test_unknown_model_costs_nothing():
    settings = GenerationSettings(provider="openai", model="does-not-exist")
    assert get_model_pricing("openai", "does-not-exist") is None
    assert estimate_cost(5, settings) == 0.0


def test_estimate_scales_with_item_count_and_length():
    short = GenerationSettings(provider="openai", model="gpt-4o", length="short")
    long = GenerationSettings(provider="openai", model="gpt-4o", length="long")

    # 500 input tokens at $5/M + 700 output tokens at $15/M
    assert estimate_cost(1, short) == pytest.approx(0.013)
    assert estimate_cost(4, short) == pytest.approx(0.052)
    assert estimate_cost(1, long) > estimate_cost(1, short)


def test_estimate_cost_without_settings_or_items():
    assert estimate_cost(3, None) == 0.0
    assert estimate_cost(0, GenerationSettings(provider="openai", model="gpt-4o")) == 0.0


def test_calculate_cost_uses_per_million_pricing():
    assert calculate_cost("anthropic", "claude-3-haiku-20240307", 1_000_000, 0) == 0.25


@pytest.mark.parametrize(
    ("count", "expected"),
    [(0, 0), (1, 1), (2, 2), (10, 6), (50, 27)],
)
def test_estimate_minutes_rounds_up(count: int, expected: int):
    assert estimate_minutes(count) == expected
