from services.grading import UNANSWERED, answer_map, correct_index, grade


def test_correct_index_is_first_flagged_option():
    question = {"options": [{"is_correct": False}, {"is_correct": True}, {"is_correct": True}]}
    assert correct_index(question) == 1


def test_correct_index_without_correct_option():
    assert correct_index({"options": [{"text": "a"}, {"text": "b"}]}) == UNANSWERED


def test_all_correct_answers_score_full(sample_questions):
    result = grade(sample_questions, {0: 1, 1: 2})
    assert result["score"] == result["total"] == 2
    assert all(r["correct"] for r in result["results"])


def test_mixed_answers(sample_questions):
    result = grade(sample_questions, [
        {"question_index": 0, "option_index": 1},
        {"question_index": 1, "option_index": 0},
    ])
    assert result == {
        "score": 1,
        "total": 2,
        "results": [
            {"question_index": 0, "option_index": 1, "correct_index": 1, "correct": True},
            {"question_index": 1, "option_index": 0, "correct_index": 2, "correct": False},
        ],
    }


def test_missing_answers_are_unanswered(sample_questions):
    result = grade(sample_questions, [])
    assert result["score"] == 0
    assert [r["option_index"] for r in result["results"]] == [UNANSWERED, UNANSWERED]


def test_answers_beyond_question_set_are_ignored(sample_questions):
    result = grade(sample_questions, {0: 1, 5: 0})
    assert result["total"] == 2
    assert len(result["results"]) == 2


def test_answer_map_last_answer_wins():
    answers = [
        {"question_index": 0, "option_index": 1},
        {"question_index": 0, "option_index": 3},
    ]
    assert answer_map(answers) == {0: 3}


def test_grade_is_pure(sample_questions):
    answers = {0: 1, 1: 1}
    assert grade(sample_questions, answers) == grade(sample_questions, answers)
    assert answers == {0: 1, 1: 1}
