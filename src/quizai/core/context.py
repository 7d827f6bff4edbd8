# src/quizai/core/context.py
from __future__ import annotations
from typing import List, Optional

from .models import Message, Question

SYSTEM_PROMPT = (
    "You are a professional programming study assistant. "
    "The user will ask you about programming quiz questions."
)
ANSWER_DELIMITER = ", "


def should_disclose(policy: str, is_submitted: bool) -> bool:
    """
    Resolve the disclosure policy:
      always       -> True
      never        -> False
      after_submit -> is_submitted
    Unknown values disclose nothing.
    """
    if policy == "always":
        return True
    if policy == "after_submit":
        return bool(is_submitted)
    return False


def format_question(title: str, body: str) -> str:
    return f"Title: {title}\nContent: {body}"


def build_context(question: Question, is_submitted: bool, policy: str) -> str:
    context = format_question(question.title, question.body)

    if question.options:
        labelled = [f"{chr(65 + idx)}. {opt}" for idx, opt in enumerate(question.options)]
        context += "\nOptions:\n" + "\n".join(labelled)

    if should_disclose(policy, is_submitted):
        answer = question.correct_answer
        if isinstance(answer, (list, tuple)):
            answer = ANSWER_DELIMITER.join(str(a) for a in answer)
        context += f"\nCorrect answer: {answer}"
        if question.explanation:
            context += f"\nExplanation: {question.explanation}"

    return context


def build_messages(user_question: str, context: Optional[str] = None) -> List[Message]:
    system = f"{SYSTEM_PROMPT} Question details: {context}" if context else SYSTEM_PROMPT
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user_question},
    ]
