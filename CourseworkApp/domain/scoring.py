"""Scoring oracles: turn one (question, answer) pair into a score, feedback and confidence.

``OpenAIScoringOracle`` asks a chat model for a JSON verdict with a bounded
timeout and no retries. ``RuleBasedScoringOracle`` is a deterministic fallback
(exact match for multiple choice, keyword and length heuristics for text).
The active oracle is selected by ``settings.SCORING_ORACLE_CLASS``.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import openai
from django.conf import settings
from django.utils.module_loading import import_string

from CourseworkApp.core.choices import Confidence, QuestionType

logger = logging.getLogger(__name__)


class ScoringOracleError(Exception):
    """The oracle failed, timed out, or returned an unusable verdict."""

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


@dataclass(frozen=True)
class ScoringRequest:
    question_type: str
    question: str
    answer: str
    expected_answer: str = ""
    rubric: str = ""
    options: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScoringResult:
    score: int
    feedback: str
    confidence: str
    reasoning: str = ""


class ScoringOracle(Protocol):
    model_name: str

    def assess(self, request: ScoringRequest) -> ScoringResult: ...


def validate_result(data: dict[str, Any]) -> ScoringResult:
    """Build a ScoringResult from raw oracle output, rejecting out-of-range values."""
    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
        raise ScoringOracleError(f"Invalid score in oracle response: {score!r}")
    confidence = str(data.get("confidence", "")).lower()
    if confidence not in Confidence.values:
        raise ScoringOracleError(f"Invalid confidence in oracle response: {confidence!r}")
    feedback = data.get("feedback")
    if not feedback:
        raise ScoringOracleError("Oracle response is missing feedback")
    return ScoringResult(
        score=round(score),
        feedback=str(feedback),
        confidence=confidence,
        reasoning=str(data.get("reasoning", "")),
    )


SYSTEM_PROMPT = """You are an expert vocational instructor evaluating student coursework.
Assess the student's answer for accuracy, completeness and understanding, give
constructive feedback, assign a score from 0 to 100 and state how confident you are.
Respond with a JSON object with the keys: score, feedback, confidence ("low",
"medium" or "high") and reasoning."""

_TYPE_GUIDANCE = {
    QuestionType.MULTIPLE_CHOICE: "Score 100 for the correct option and 0 otherwise; confidence is normally high.",
    QuestionType.SHORT_TEXT: "Score on accuracy and completeness; feedback in 2-3 sentences.",
    QuestionType.LONG_TEXT: (
        "Score on understanding, accuracy, completeness and practical application; "
        "feedback in 3-5 sentences naming strengths and areas to improve."
    ),
}


class OpenAIScoringOracle:
    """Scoring oracle backed by the OpenAI chat completions API."""

    def __init__(self, client: openai.OpenAI | None = None, model: str | None = None,
                 timeout: float | None = None) -> None:
        self.model_name = model or settings.OPENAI_MODEL
        self.client = client or openai.OpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=timeout or settings.SCORING_TIMEOUT_SECONDS,
            max_retries=0,
        )

    def _prompt(self, request: ScoringRequest) -> str:
        lines = [
            f"Question type: {request.question_type}",
            f"Question: {request.question}",
            f"Student's answer: {request.answer}",
            f"Expected answer: {request.expected_answer or 'Not provided'}",
            f"Rubric: {request.rubric or 'General assessment'}",
        ]
        if request.options:
            lines.append(f"Options: {', '.join(request.options)}")
        lines.append(_TYPE_GUIDANCE.get(request.question_type, ""))
        return "\n".join(lines)

    def assess(self, request: ScoringRequest) -> ScoringResult:
        try:
            completion = self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self._prompt(request)},
                ],
                temperature=0.3,
                max_tokens=1000,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as exc:
            raise ScoringOracleError("Scoring request timed out", timed_out=True) from exc
        except openai.OpenAIError as exc:
            raise ScoringOracleError(f"Scoring request failed: {exc}") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ScoringOracleError("Empty response from scoring model")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ScoringOracleError("Scoring model returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise ScoringOracleError("Scoring model returned a non-object verdict")
        return validate_result(data)


_WORD = re.compile(r"[a-z0-9']+")


def _terms(text: str, min_length: int = 4) -> set[str]:
    return {w for w in _WORD.findall(text.lower()) if len(w) >= min_length}


class RuleBasedScoringOracle:
    """Deterministic heuristics used when no language model is configured."""

    model_name = "rule-based"

    def assess(self, request: ScoringRequest) -> ScoringResult:
        if request.question_type == QuestionType.MULTIPLE_CHOICE:
            return self._multiple_choice(request)
        if request.question_type == QuestionType.SHORT_TEXT:
            return self._short_text(request)
        if request.question_type == QuestionType.LONG_TEXT:
            return self._long_text(request)
        return ScoringResult(0, "Manual review required for this answer type.", Confidence.LOW,
                             "Unsupported question type for automated assessment.")

    def _multiple_choice(self, request: ScoringRequest) -> ScoringResult:
        if not request.expected_answer:
            return ScoringResult(0, "Cannot assess without an expected answer. Manual review required.",
                                 Confidence.LOW, "No expected answer provided for comparison.")
        correct = request.answer.strip().lower() == request.expected_answer.strip().lower()
        return ScoringResult(
            score=100 if correct else 0,
            feedback="Correct answer! Well done." if correct
            else f"Incorrect. The correct answer is: {request.expected_answer}",
            confidence=Confidence.HIGH,
            reasoning="Multiple choice questions have definitive answers.",
        )

    def _short_text(self, request: ScoringRequest) -> ScoringResult:
        answer_terms = _terms(request.answer)
        keywords = _terms(f"{request.expected_answer} {request.rubric}")
        matched = sorted(answer_terms & keywords)
        score = min(80, round(80 * len(matched) / len(keywords))) if keywords else 40
        if len(request.answer.split()) < 3:
            score = max(score - 20, 0)
        if score >= 60:
            feedback = "Good answer. Consider adding more specific details for a complete response."
        elif score >= 20:
            feedback = "Partially correct. Review the key concepts and expand your answer."
        else:
            feedback = "Your answer misses the key points. Review the material and try to be more specific."
        return ScoringResult(
            score=score,
            feedback=feedback,
            confidence=Confidence.LOW,
            reasoning=f"Keyword matching against the expected answer and rubric; matched: {', '.join(matched) or 'none'}.",
        )

    def _long_text(self, request: ScoringRequest) -> ScoringResult:
        answer = request.answer.strip()
        word_count = len(answer.split())
        feedback = []
        if word_count < 20:
            score = 10
            feedback.append("Your answer is quite brief. Consider expanding with more detail.")
        elif word_count < 50:
            score = 30
            feedback.append("Good start, but more detail would strengthen your answer.")
        elif word_count < 100:
            score = 50
            feedback.append("You've provided a reasonable amount of detail.")
        else:
            score = 60
            feedback.append("You've provided a comprehensive response.")

        sentences = [s for s in re.split(r"[.!?]+", answer) if s.strip()]
        if len(sentences) > 3:
            score += 10
            feedback.append("Good use of multiple sentences to explain your points.")

        used = sorted(_terms(answer) & _terms(request.rubric))
        if used:
            score += min(len(used) * 5, 20)
            feedback.append(f"Good use of relevant terminology ({', '.join(used[:3])}).")

        return ScoringResult(
            score=min(score, 70),
            feedback=" ".join(feedback) + " Manual review recommended for complete assessment.",
            confidence=Confidence.LOW,
            reasoning="Automated assessment based on length, structure and terminology.",
        )


def get_scoring_oracle() -> ScoringOracle:
    """Instantiate the oracle named by ``settings.SCORING_ORACLE_CLASS``."""
    oracle_cls = import_string(settings.SCORING_ORACLE_CLASS)
    return oracle_cls()
