"""
Tests for SDP (SDLC Degradation-adjusted Performance).
"""

import pytest

from sdlc_eval.errors import InvalidInputError
from sdlc_eval.sdp import (
    DegradationAdjustedScorer,
    Interpretation,
    SdpPolicy,
    default_interpretation,
    external_change_ratio,
    format_sdp_lines,
)


@pytest.fixture
def scorer():
    return DegradationAdjustedScorer()


def test_neutral_change_keeps_raw(scorer):
    record = scorer.score(6.0, 0.0)
    assert record.sdp_score == 6.0
    assert record.delta == 0.0
    assert record.robustness == 6.0
    assert record.interpretation is Interpretation.STABLE
    assert 4.8 <= record.sdp_score <= 7.2


def test_external_drop_raises_sdp(scorer):
    record = scorer.score(6.0, -0.1)
    assert record.sdp_score == pytest.approx(6.6)
    assert record.delta == pytest.approx(0.6)
    assert record.robustness == pytest.approx(6.6)


def test_external_gain_lowers_sdp(scorer):
    record = scorer.score(8.0, 0.1)
    assert record.sdp_score == pytest.approx(7.2)
    assert record.interpretation is Interpretation.MODEL_IMPROVED


@pytest.mark.parametrize("ratio", [-0.9, -0.5, -0.21, 0.21, 0.5, 3.0])
def test_large_changes_are_capped(scorer, ratio):
    raw = 6.0
    record = scorer.score(raw, ratio)
    assert 0.8 * raw - 1e-9 <= record.sdp_score <= 1.2 * raw + 1e-9
    # robustness is computed before clamping
    assert record.robustness == pytest.approx(raw - raw * ratio)


@pytest.mark.parametrize("raw", [0.0, 3.5, 7.0, 10.0, 11.0])
@pytest.mark.parametrize("ratio", [-1.0, -0.2, -0.05, 0.0, 0.05, 0.2, 1.0])
def test_sdp_within_cap(scorer, raw, ratio):
    record = scorer.score(raw, ratio)
    assert raw * 0.8 - 1e-9 <= record.sdp_score <= raw * 1.2 + 1e-9
    assert record.delta == pytest.approx(record.sdp_score - raw)


def test_custom_cap():
    scorer = DegradationAdjustedScorer(SdpPolicy(cap=0.1))
    assert scorer.score(10.0, -0.5).sdp_score == pytest.approx(11.0)


def test_invalid_policy_rejected():
    with pytest.raises(InvalidInputError):
        DegradationAdjustedScorer(SdpPolicy(cap=1.5))


@pytest.mark.parametrize("raw,ratio", [
    ("abc", 0.0),
    (-1.0, 0.0),
    (6.0, float("nan")),
    (6.0, float("inf")),
    (6.0, "x"),
])
def test_invalid_inputs(scorer, raw, ratio):
    with pytest.raises(InvalidInputError):
        scorer.score(raw, ratio)


class TestInterpretation:

    def test_model_degraded_without_reference(self, scorer):
        assert scorer.score(6.0, -0.1).interpretation is Interpretation.MODEL_DEGRADED

    def test_sdlc_robust_when_raw_holds(self, scorer):
        record = scorer.score(7.0, -0.1, reference_raw=7.0)
        assert record.interpretation is Interpretation.SDLC_ROBUST

    def test_model_degraded_when_raw_falls_too(self, scorer):
        record = scorer.score(5.0, -0.1, reference_raw=7.0)
        assert record.interpretation is Interpretation.MODEL_DEGRADED

    def test_sdlc_issue_when_raw_falls_alone(self, scorer):
        record = scorer.score(5.0, 0.0, reference_raw=7.0)
        assert record.interpretation is Interpretation.SDLC_ISSUE

    def test_small_changes_are_stable(self, scorer):
        assert scorer.score(7.0, 0.02, reference_raw=7.1).interpretation is Interpretation.STABLE

    def test_custom_policy_function(self):
        scorer = DegradationAdjustedScorer(interpret_fn=lambda *args: "SDLC_ROBUST")
        assert scorer.score(7.0, 0.0).interpretation is Interpretation.SDLC_ROBUST

    def test_unknown_bucket_rejected(self):
        scorer = DegradationAdjustedScorer(interpret_fn=lambda *args: "GREAT")
        with pytest.raises(InvalidInputError) as exc:
            scorer.score(7.0, 0.0)
        assert exc.value.field == "interpretation"

    def test_default_interpretation_is_pure(self):
        policy = SdpPolicy()
        first = default_interpretation(6.0, -0.2, 1.2, None, policy)
        assert first is default_interpretation(6.0, -0.2, 1.2, None, policy)


def test_external_change_ratio():
    assert external_change_ratio(72.0, 80.0) == -0.1
    assert external_change_ratio(88.0, 80.0) == 0.1
    with pytest.raises(InvalidInputError):
        external_change_ratio(72.0, 0)


def test_score_from_readings(scorer):
    record = scorer.score_from_readings(6.0, 72.0, 80.0)
    assert record.external_change_ratio == -0.1
    assert record.external_score == 72.0
    assert record.sdp_score == pytest.approx(6.6)


def test_format_sdp_lines(scorer):
    record = scorer.score_from_readings(6.0, 72.0, 80.0)
    assert format_sdp_lines(record).splitlines() == [
        "raw=6.00",
        "sdp=6.60",
        "delta=0.60",
        "external=72.00",
        "external_change=-10.00%",
        "robustness=6.60",
        "interpretation=MODEL_DEGRADED",
    ]


def test_format_sdp_lines_without_external_reading(scorer):
    lines = format_sdp_lines(scorer.score(6.0, 0.0)).splitlines()
    assert not any(line.startswith("external=") for line in lines)
    assert "external_change=0.00%" in lines


def test_to_dict(scorer):
    d = scorer.score(6.0, -0.1).to_dict()
    assert d["sdp"] == 6.6
    assert d["interpretation"] == "MODEL_DEGRADED"
    assert d["external"] is None


def test_raw_score_above_rubric_total_rejected():
    scorer = DegradationAdjustedScorer(max_score=10)
    with pytest.raises(InvalidInputError) as exc:
        scorer.score(50, -0.1)
    assert exc.value.field == "raw_score"
    assert scorer.score(10, 0.0).sdp_score == 10.0
