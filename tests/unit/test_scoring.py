"""
Unit Tests for answer grading and ledger scoring
"""
from examwatch.services.scoring import (
    compute_score, correct_option_texts, evaluate_answer, percentage_of
)


def make_question(question_id, points, correct, wrong=("x", "y")):
    options = [{"text": text, "is_correct": True} for text in correct]
    options += [{"text": text, "is_correct": False} for text in wrong]
    return {"question_id": question_id, "points": points, "options": options}


# ============================================================================
# evaluate_answer
# ============================================================================

class TestEvaluateAnswer:

    def test_single_select_correct(self):
        question = make_question("q1", 10, ["a"])
        assert evaluate_answer(question, ["a"]) == (True, 10)

    def test_single_select_wrong(self):
        question = make_question("q1", 10, ["a"])
        assert evaluate_answer(question, ["x"]) == (False, 0)

    def test_multi_select_requires_exact_set(self):
        question = make_question("q1", 5, ["a", "b"])

        assert evaluate_answer(question, ["b", "a"]) == (True, 5)
        assert evaluate_answer(question, ["a"]) == (False, 0)
        assert evaluate_answer(question, ["a", "b", "x"]) == (False, 0)

    def test_duplicate_selection_is_not_a_superset_match(self):
        question = make_question("q1", 5, ["a", "b"])
        assert evaluate_answer(question, ["a", "a"]) == (False, 0)

    def test_empty_selection_is_wrong(self):
        question = make_question("q1", 5, ["a"])
        assert evaluate_answer(question, []) == (False, 0)

    def test_missing_question_scores_zero(self):
        assert evaluate_answer(None, ["a"]) == (False, 0)

    def test_question_without_correct_options_never_matches(self):
        question = {"question_id": "q1", "points": 3, "options": [{"text": "a"}]}
        assert evaluate_answer(question, []) == (False, 0)

    def test_correct_option_texts_ignores_malformed_options(self):
        question = {"options": [{"text": "a", "is_correct": True}, "junk", {"text": "b"}]}
        assert correct_option_texts(question) == {"a"}


# ============================================================================
# compute_score
# ============================================================================

class TestComputeScore:

    def setup_method(self):
        self.questions = [
            make_question("q1", 10, ["a1"]),
            make_question("q2", 15, ["a2"]),
            make_question("q3", 10, ["a3"]),
            make_question("q4", 15, ["a4"]),
        ]

    def test_mixed_ledger(self):
        answers = [
            {"question_id": "q1", "selected_options": ["a1"]},
            {"question_id": "q2", "selected_options": ["a2"]},
            {"question_id": "q3", "selected_options": ["x"]},
            {"question_id": "q4", "selected_options": ["a4"]},
        ]

        result = compute_score(self.questions, answers, 50, 60)

        assert result.points_earned == 40
        assert result.percentage == 80
        assert result.passed is True

    def test_regrades_instead_of_trusting_stored_points(self):
        answers = [{"question_id": "q1", "selected_options": ["x"], "points_earned": 10, "is_correct": True}]

        result = compute_score(self.questions, answers, 50, 60)

        assert result.points_earned == 0

    def test_unknown_question_contributes_nothing(self):
        answers = [{"question_id": "missing", "selected_options": ["a1"]}]

        result = compute_score(self.questions, answers, 50, 60)

        assert result.points_earned == 0
        assert result.passed is False

    def test_below_passing_score(self):
        answers = [{"question_id": "q1", "selected_options": ["a1"]}]

        result = compute_score(self.questions, answers, 50, 60)

        assert result.percentage == 20
        assert result.passed is False

    def test_zero_total_points(self):
        result = compute_score([], [], 0, 60)
        assert result.percentage == 0
        assert result.passed is False

    def test_zero_passing_score_always_passes(self):
        result = compute_score(self.questions, [], 50, 0)
        assert result.passed is True


def test_percentage_rounds():
    assert percentage_of(1, 3) == 33
    assert percentage_of(2, 3) == 67
    assert percentage_of(5, 0) == 0
