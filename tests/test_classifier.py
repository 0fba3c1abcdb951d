"""Tests for affirmative/negative classification of vendor turns."""

import pytest

from negotiator.conversation.classifier import Affirmation


class TestDigits:
    def test_one_is_yes(self, classifier):
        assert classifier.classify("", "1") == Affirmation.YES

    def test_two_is_no(self, classifier):
        assert classifier.classify("", "2") == Affirmation.NO

    def test_digit_wins_over_speech(self, classifier):
        assert classifier.classify("nahi", "1") == Affirmation.YES

    def test_other_digit_is_unrecognized(self, classifier):
        assert classifier.classify("", "7") == Affirmation.UNRECOGNIZED


class TestKeywords:
    @pytest.mark.parametrize("text", ["हाँ", "Haan ji", "YES please", "han ji bilkul"])
    def test_affirmative_keywords(self, classifier, text):
        assert classifier.classify(text, "") == Affirmation.YES

    @pytest.mark.parametrize("text", ["नहीं", "NAHI", "nahin bhai", "no"])
    def test_negative_keywords(self, classifier, text):
        assert classifier.classify(text, "") == Affirmation.NO

    def test_empty_is_unrecognized(self, classifier):
        assert classifier.classify("", "") == Affirmation.UNRECOGNIZED

    def test_none_inputs_are_tolerated(self, classifier):
        assert classifier.classify(None, None) == Affirmation.UNRECOGNIZED


class TestAgreement:
    @pytest.mark.parametrize("text", ["okay", "Agreed", "ठीक है", "चलेगा", "theek", "chalega"])
    def test_agreement_words(self, classifier, text):
        assert classifier.is_agreement(text, "")

    def test_yes_counts_as_agreement(self, classifier):
        assert classifier.is_agreement("", "1")

    def test_pushback_is_not_agreement(self, classifier):
        assert not classifier.is_agreement("nahi, thoda aur kam karo", "")
