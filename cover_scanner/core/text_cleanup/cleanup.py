import re

from collections.abc import Iterable, Mapping
from cover_scanner   import ModuleLogger
from dataclasses     import dataclass
from functools       import reduce
from rapidfuzz       import fuzz, process

logger = ModuleLogger('cleanup')()

# -------------------- Rules --------------------

@dataclass(frozen = True)
class CorrectionRule:
    """
    One substitution in the correction chain.
    """
    pattern     : re.Pattern
    replacement : str
    name        : str = ''

    @classmethod
    def literal(cls, old: str, new: str) -> 'CorrectionRule':
        if not old:
            raise ValueError(f"Literal correction to '{new}' has an empty search string")
        return cls(pattern = re.compile(re.escape(old)), replacement = new.replace('\\', r'\\'), name = f"literal:{old}")

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)

# Lines matching any of these anywhere are cover furniture, not title or author text.
NOISE_PATTERNS = {
    'isbn' : re.compile(r'ISBN[\s:]*[\dXx-]{10,17}|\b(?:97[89]-)?\d{1,5}-\d{1,7}-\d{1,7}-[\dXx]\b', re.IGNORECASE),
    'date' : re.compile(r'\d{4}\s*년\s*\d{1,2}\s*월(?:\s*\d{1,2}\s*일)?|\b\d{4}[-./]\d{1,2}[-./]\d{1,2}\b'),
    'url'  : re.compile(r'https?://\S+|\bwww\.\S+', re.IGNORECASE)
}

DUPLICATE_WORD_RULE = CorrectionRule(
    pattern     = re.compile(r'\b(\w+)(?: \1\b)+'),
    replacement = r'\1',
    name        = 'duplicate_words'
)

PARTICLE_SPACING_RULE = CorrectionRule(
    pattern     = re.compile(r'([가-힣]) (은|는|이|가|을|를|의|에|에서|와|과|도|로|으로)(?=\s|$)'),
    replacement = r'\1\2',
    name        = 'particle_spacing'
)

WHITESPACE_RULES = (
    CorrectionRule(pattern = re.compile(r'[ \t]{2,}'), replacement = ' ',  name = 'collapse_spaces'),
    CorrectionRule(pattern = re.compile(r' *\n *'),    replacement = '\n', name = 'trim_line_edges')
)

def default_rules(literal_corrections: Mapping[str, str] | None = None) -> list[CorrectionRule]:
    """
    Correction rules in application order: literal typo fixes first, so their output can form
    duplicates or particles for the later rules, then duplicate collapsing, particle spacing and
    whitespace normalization.
    """
    literals = [CorrectionRule.literal(old, new) for old, new in (literal_corrections or {}).items()]
    return [*literals, DUPLICATE_WORD_RULE, PARTICLE_SPACING_RULE, *WHITESPACE_RULES]

# -------------------- TextCleanupChain Class --------------------

class TextCleanupChain:
    """
    Removes noise lines from recognized text, then folds an ordered list of corrections over it.
    """

    def __init__(
        self,
        rules                   : Iterable[CorrectionRule] | None = None,
        noise_patterns          : Mapping[str, re.Pattern] | None = None,
        vocabulary              : Iterable[str] = (),
        vocabulary_score_cutoff : float = 90
    ):
        """
        Args:
            rules                   : Correction rules in application order (defaults to default_rules())
            noise_patterns          : Named patterns marking lines to drop (defaults to NOISE_PATTERNS)
            vocabulary              : Known words tokens may be snapped to; empty disables snapping
            vocabulary_score_cutoff : Minimum rapidfuzz ratio (0-100) for a token to be snapped
        """
        self.rules                   = list(rules) if rules is not None else default_rules()
        self.noise_patterns          = dict(noise_patterns if noise_patterns is not None else NOISE_PATTERNS)
        self.vocabulary              = [word for word in vocabulary if word]
        self.vocabulary_score_cutoff = vocabulary_score_cutoff

    @classmethod
    def from_config(cls, cleanup_config: Mapping | None, vocabulary: Iterable[str] = ()) -> 'TextCleanupChain':
        """
        Builds the chain from the 'cleanup' section of the extractor config.
        """
        cleanup_config = cleanup_config or {}
        return cls(
            rules                   = default_rules(cleanup_config.get('literal_corrections')),
            vocabulary              = vocabulary,
            vocabulary_score_cutoff = cleanup_config.get('vocabulary_score_cutoff', 90)
        )

    def matching_noise_pattern(self, line: str) -> str | None:
        return next((name for name, pattern in self.noise_patterns.items() if pattern.search(line)), None)

    def remove_noise_lines(self, text: str) -> str:
        """
        Drops every line on which a noise pattern matches anywhere, even if the rest of the
        line is real text.
        """
        kept_lines = []
        for line in text.splitlines():
            pattern_name = self.matching_noise_pattern(line)
            if pattern_name:
                logger.debug(f"Dropped line matching '{pattern_name}': {line!r}")
                continue
            kept_lines.append(line)
        return '\n'.join(kept_lines)

    def apply_corrections(self, text: str) -> str:
        """
        Applies the rules in order; each rule sees the output of the rules before it.
        """
        return reduce(lambda running_text, rule: rule.apply(running_text), self.rules, text)

    def correct_vocabulary(self, text: str) -> str:
        """
        Snaps tokens to the closest vocabulary word when the match is close enough.
        """
        if not self.vocabulary:
            return text

        def snap(token: str) -> str:
            if len(token) < 2:
                return token
            match = process.extractOne(
                token,
                self.vocabulary,
                scorer       = fuzz.ratio,
                score_cutoff = self.vocabulary_score_cutoff
            )
            return match[0] if match else token

        return '\n'.join(' '.join(snap(token) for token in line.split(' ')) for line in text.split('\n'))

    def clean(self, text: str) -> str:
        """
        Runs the whole chain: noise-line removal, corrections, vocabulary snapping, then blank
        lines and surrounding whitespace are dropped.
        """
        cleaned_text = self.remove_noise_lines(text)
        cleaned_text = self.apply_corrections(cleaned_text)
        cleaned_text = self.correct_vocabulary(cleaned_text)
        return '\n'.join(line.strip() for line in cleaned_text.splitlines() if line.strip())
