"""
Pure scoring of a question set against submitted answers.

No I/O: the same input always yields the same output, so callers may grade
as often as they like without side effects.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Union

UNANSWERED = -1

Answers = Union[Mapping[int, int], Iterable[Mapping[str, int]]]


def correct_index(question: Mapping) -> int:
    """Index of the first option flagged correct, or -1 when none is."""
    for index, option in enumerate(question.get("options") or []):
        if option.get("is_correct"):
            return index
    return UNANSWERED


def answer_map(answers: Optional[Answers]) -> Dict[int, int]:
    """
    Normalise answers to {question_index: option_index}.

    Accepts either a mapping or a list of {"question_index", "option_index"} items;
    when a question index repeats, the last answer wins.
    """
    if not answers:
        return {}
    if isinstance(answers, Mapping):
        return {int(k): int(v) for k, v in answers.items()}
    return {int(a["question_index"]): int(a["option_index"]) for a in answers}


def grade(questions: List[Mapping], answers: Optional[Answers]) -> dict:
    selected_by_question = answer_map(answers)

    score = 0
    results = []
    for question_index, question in enumerate(questions):
        expected = correct_index(question)
        selected = selected_by_question.get(question_index, UNANSWERED)
        correct = selected == expected
        if correct:
            score += 1
        results.append({
            "question_index": question_index,
            "option_index": selected,
            "correct_index": expected,
            "correct": correct,
        })

    return {"score": score, "total": len(questions), "results": results}
