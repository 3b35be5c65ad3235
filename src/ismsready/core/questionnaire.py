"""Readiness questionnaire: answers and completion."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Optional

from ..models.questionnaire import ANSWER_STATUSES, Answer, Question
from ..models.scope import utcnow
from ..store.base import ComplianceStore
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

NOT_ANSWERED = "Not Answered"


def is_answered(answer: Optional[Answer]) -> bool:
    return bool(answer and answer.answer_status and answer.answer_status != NOT_ANSWERED)


def completion_fraction(questions: list[Question], answers: list[Answer]) -> float:
    """Fraction of questions with a real answer; 0.0 when there are no questions."""
    if not questions:
        return 0.0
    by_question = {a.question_id: a for a in answers}
    answered = sum(1 for q in questions if is_answered(by_question.get(q.id)))
    return answered / len(questions)


def answers_by_domain(
    questions: list[Question], answers: list[Answer]
) -> dict[str, tuple[int, int]]:
    """(answered, total) per question domain."""
    by_question = {a.question_id: a for a in answers}
    counts: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for question in questions:
        entry = counts[question.domain or "Uncategorized"]
        entry[1] += 1
        if is_answered(by_question.get(question.id)):
            entry[0] += 1
    return {domain: (answered, total) for domain, (answered, total) in counts.items()}


def normalize_status(status: str) -> str:
    wanted = (status or "").replace("-", "").replace("_", "").replace(" ", "").lower()
    for allowed in ANSWER_STATUSES:
        if allowed.replace("-", "").replace(" ", "").lower() == wanted:
            return allowed
    raise ValidationError(
        f"Invalid answer status: {status!r} (expected one of: {', '.join(ANSWER_STATUSES)})",
        field="answer_status",
    )


async def record_answer(
    store: ComplianceStore,
    project_id: str,
    question_id: str,
    status: str,
    *,
    user_id: str,
    evidence_notes: Optional[str] = None,
) -> Answer:
    answer_status = normalize_status(status)
    if await store.get_project(project_id) is None:
        raise NotFoundError("project", project_id)
    questions = await store.list_questions()
    if question_id not in {q.id for q in questions}:
        raise NotFoundError("question", question_id)

    answer = await store.save_answer(Answer(
        project_id=project_id,
        question_id=question_id,
        answer_status=answer_status,
        answered_by=user_id,
        answered_at=utcnow(),
        evidence_notes=evidence_notes,
    ))
    logger.info("Question %s answered for project %s: %s", question_id, project_id, answer_status)
    return answer
