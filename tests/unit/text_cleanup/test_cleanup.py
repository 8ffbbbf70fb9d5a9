"""
Tests for the text cleanup chain.

Test Strategy
-------------
- Noise lines are dropped when a pattern matches anywhere on the line
- Each default correction is checked on a minimal example
- Rule order matters: later rules see the output of earlier ones
- Cleaning already clean text changes nothing
- Vocabulary snapping honours the score cutoff

Organization
------------
- TestNoiseRemoval: ISBN, date and URL lines
- TestCorrections: Literal, duplicate, particle and whitespace rules
- TestRuleOrder: Fold semantics of the correction chain
- TestVocabulary: Fuzzy snapping to known words
"""

import re

import pytest

from cover_scanner.core.text_cleanup import (
    DUPLICATE_WORD_RULE,
    CorrectionRule,
    TextCleanupChain,
    default_rules,
)


@pytest.fixture
def chain():
    return TextCleanupChain()


# ============================================================================
# Test Classes
# ============================================================================


class TestNoiseRemoval:
    """Tests for dropping cover furniture lines."""

    def test_korean_date_line_removed(self, chain):
        assert chain.clean("소년이 온다\n2024년 3월 1일\n한강") == "소년이 온다\n한강"

    def test_numeric_date_line_removed(self, chain):
        assert chain.clean("Title\nPrinted 2023.11.05") == "Title"

    def test_isbn_substring_removes_whole_line(self, chain):
        assert chain.clean("Seoul ISBN 978-89-364-3473-4 Changbi\nAuthor") == "Author"

    def test_hyphenated_isbn_without_prefix(self, chain):
        assert chain.clean("89-364-3473-4\nAuthor") == "Author"

    def test_url_line_removed(self, chain):
        assert chain.clean("The Vegetarian\nwww.changbi.com\nhttps://example.org/book") == "The Vegetarian"

    def test_matching_noise_pattern_names_the_pattern(self, chain):
        assert chain.matching_noise_pattern("see https://example.org") == 'url'
        assert chain.matching_noise_pattern("Han Kang") is None

    def test_all_noise_gives_empty_text(self, chain):
        assert chain.clean("ISBN 9788936434731\n2024년 3월") == ""


class TestCorrections:
    """Tests for the default correction rules."""

    def test_duplicate_words_collapse(self, chain):
        assert chain.clean("채식주의자 채식주의자 채식주의자") == "채식주의자"

    def test_duplicate_rule_respects_word_boundary(self):
        assert DUPLICATE_WORD_RULE.apply("the the theory") == "the theory"

    def test_duplicate_run_collapses_in_one_pass(self):
        assert DUPLICATE_WORD_RULE.apply("a a a b b") == "a b"

    def test_particle_joined_to_noun(self, chain):
        assert chain.clean("한강 의 소설") == "한강의 소설"

    def test_particle_at_line_end(self, chain):
        assert chain.clean("작별하지 않는다\n한강 이") == "작별하지 않는다\n한강이"

    def test_whitespace_normalized(self, chain):
        assert chain.clean("  The    Old  Man  \n\n  and the Sea ") == "The Old Man\nand the Sea"

    def test_literal_corrections_from_config(self):
        chain = TextCleanupChain.from_config({'literal_corrections': {'ㅡ': '-', '“': '"'}})

        assert chain.clean("상 ㅡ 하") == "상 - 하"
        assert chain.clean("“Quote") == '"Quote'

    def test_literal_rule_escapes_pattern(self):
        rule = CorrectionRule.literal("a.b", "c\\d")

        assert rule.apply("a.b axb") == "c\\d axb"

    def test_empty_literal_correction_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            TextCleanupChain.from_config({'literal_corrections': {'': 'x'}})

    def test_clean_text_is_unchanged(self, chain):
        text = "The Vegetarian\nHan Kang"

        assert chain.clean(text) == text
        assert chain.clean(chain.clean(text)) == text


class TestRuleOrder:
    """Tests for applying the rules as an ordered fold."""

    def test_literal_output_feeds_duplicate_rule(self):
        chain = TextCleanupChain(rules=default_rules({'Poter': 'Potter'}))

        assert chain.clean("Harry Potter Poter") == "Harry Potter"

    def test_reversed_order_changes_result(self):
        literal = CorrectionRule.literal('Poter', 'Potter')
        chain = TextCleanupChain(rules=[DUPLICATE_WORD_RULE, literal])

        assert chain.clean("Harry Potter Poter") == "Harry Potter Potter"

    def test_custom_rules_replace_defaults(self):
        chain = TextCleanupChain(rules=[CorrectionRule(re.compile(r'\d'), '#', 'digits')], noise_patterns={})

        assert chain.clean("1984") == "####"


class TestVocabulary:
    """Tests for snapping tokens to known words."""

    def test_close_token_snapped(self):
        chain = TextCleanupChain(vocabulary=['Dostoevsky'])

        assert chain.clean("Fyodor Dostoevky") == "Fyodor Dostoevsky"

    def test_distant_token_kept(self):
        chain = TextCleanupChain(vocabulary=['Dostoevsky'])

        assert chain.clean("Tolstoy") == "Tolstoy"

    def test_single_characters_kept(self):
        chain = TextCleanupChain(vocabulary=['A'], vocabulary_score_cutoff=0)

        assert chain.clean("a") == "a"

    def test_empty_vocabulary_disables_snapping(self, chain):
        assert chain.correct_vocabulary("Dostoevky") == "Dostoevky"

    def test_cutoff_from_config(self):
        chain = TextCleanupChain.from_config({'vocabulary_score_cutoff': 99}, vocabulary=['Dostoevsky'])

        assert chain.clean("Dostoevky") == "Dostoevky"
