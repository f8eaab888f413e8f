import pytest

from freight_assistant.graph.categories import classify_question
from freight_assistant.models import Category


class TestClassifyQuestion:
    @pytest.mark.parametrize(
        "question, expected",
        [
            ("What is the rate for Barley by rail?", Category.BARLEY),
            ("How much does air freight to Dubai cost?", Category.AIR_CARGO),
            ("Can you move an out-of-gauge transformer on a flat rack?", Category.OOG_CARGO),
            ("Do you ship red lentils in bulk?", Category.RED_LENTILS),
            ("Green lentils container weight?", Category.GREEN_LENTILS),
            ("Which railcar types do you offer?", Category.RAIL_LOGISTICS),
            ("Kabuli chickpeas pricing", Category.CHICKPEAS),
            ("Split peas to India", Category.PEAS),
            ("What are your office hours?", Category.GENERAL),
        ],
    )
    def test_known_topics(self, question, expected):
        assert classify_question(question) == expected

    def test_words_containing_keywords_do_not_match(self):
        assert classify_question("Is there a boat schedule for training staff?") == Category.GENERAL
        assert classify_question("chickpeas") == Category.CHICKPEAS

    def test_more_hits_win_over_declaration_order(self):
        assert classify_question("barley by rail, rail car or train?") == Category.RAIL_LOGISTICS

    @pytest.mark.parametrize("bad_input", ["", "   ", None, 42, ["barley"]])
    def test_unexpected_input_falls_back_to_general(self, bad_input):
        assert classify_question(bad_input) == Category.GENERAL

    def test_deterministic(self):
        q = "Oats and millet by train"
        assert {classify_question(q) for _ in range(5)} == {classify_question(q)}
