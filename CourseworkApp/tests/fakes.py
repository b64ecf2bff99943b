"""Scoring oracles with fixed behaviour, selectable through SCORING_ORACLE_CLASS."""

from CourseworkApp.core.choices import Confidence
from CourseworkApp.domain.scoring import ScoringOracleError, ScoringResult


class FixedScoringOracle:
    model_name = "fixed"

    def __init__(self, score=80, confidence=Confidence.HIGH):
        self.score = score
        self.confidence = confidence
        self.calls = []

    def assess(self, request):
        self.calls.append(request)
        return ScoringResult(self.score, f"Scored {request.answer!r}", self.confidence, "fixed")


class FailingScoringOracle:
    model_name = "failing"

    def assess(self, request):
        raise ScoringOracleError("upstream down")


class TimingOutScoringOracle:
    model_name = "timing-out"

    def assess(self, request):
        raise ScoringOracleError("timed out", timed_out=True)
