import re

DEFAULT_FILLER_WORDS = ("um", "umm", "uh", "uhh", "ah", "ahh", "hmm", "hm", "mm", "mhm", "er", "eh")

_NOT_WORD_OR_HEBREW = re.compile(r"[^\w\u0590-\u05FF]+")
_PUNCTUATION_ONLY = re.compile(r"^[\W_]+$")


class NoiseFilter:
    """Rejects final transcripts that carry too little content to act on.

    A transcript is noise when fewer than ``min_chars`` word or Hebrew
    characters remain after stripping everything else, when it is only
    punctuation, or when it is a single filler word such as "um" or "Hmm...".
    """

    def __init__(self, filler_words: tuple[str, ...] | list[str] = DEFAULT_FILLER_WORDS, min_chars: int = 2) -> None:
        self._filler_words = tuple(w.lower() for w in filler_words)
        self._min_chars = min_chars
        alternatives = "|".join(re.escape(w) for w in self._filler_words)
        self._filler_pattern = re.compile(
            r"^(?:" + alternatives + r")[\s.,!?;:…-]*$",
            re.IGNORECASE,
        ) if self._filler_words else None

    @property
    def filler_words(self) -> list[str]:
        return list(self._filler_words)

    def accepts(self, text: str) -> bool:
        return not self.is_noise(text)

    def is_noise(self, text: str) -> bool:
        stripped = _NOT_WORD_OR_HEBREW.sub("", text)
        if len(stripped) < self._min_chars:
            return True

        trimmed = text.strip()
        if _PUNCTUATION_ONLY.match(trimmed):
            return True
        if self._filler_pattern and self._filler_pattern.match(trimmed):
            return True
        return False
