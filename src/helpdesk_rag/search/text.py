"""Tokenisation and stop-word filtering shared by search and feedback analysis."""

import re
import unicodedata

# Bilingual (Spanish + English) connector words plus domain terms too generic to rank on
STOP_WORDS: frozenset[str] = frozenset(
    {
        # Spanish
        "que", "es", "el", "la", "los", "las", "un", "una", "de", "del", "en", "por", "para",
        "como", "cual", "donde", "cuando", "quien", "me", "te", "se", "nos", "mi", "tu", "su",
        "este", "esta", "ese", "esa", "con", "sin", "sobre", "entre", "hasta", "pero", "mas",
        "muy", "ya", "no", "si", "todo", "todos", "toda", "todas", "otro", "otra", "otros",
        "otras", "lo", "al", "le", "les", "hay",
        # English
        "what", "is", "the", "a", "an", "of", "in", "for", "to", "how", "which", "where",
        "when", "who", "it", "its", "this", "that", "these", "those", "are", "was", "were",
        "be", "been", "being", "have", "has", "had", "do", "does", "did", "will", "would",
        "can", "could", "should", "may", "might", "must", "shall", "and", "or", "but", "not",
        "with", "from", "by", "at", "on", "about", "my", "you", "we", "our",
        # Domain
        "plant", "planta", "centro",
    }
)  # fmt: skip

# Words that say nothing about the topic of a support request
FEEDBACK_FILLER_WORDS: frozenset[str] = frozenset(
    {
        "desde", "hacia", "tengo", "necesito", "quiero", "puedo", "problema", "ayuda",
        "ticket", "need", "want", "help", "problem", "issue", "please", "thanks",
        "gracias", "favor",
    }
)  # fmt: skip

_SPLIT_RE = re.compile(r"[\s?¿!¡,.:;\"'()\[\]{}]+")


def fold_accents(text: str) -> str:
    """Strip diacritics so 'transacción' matches 'transaccion'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize(text: str) -> str:
    """Lower-case and fold accents."""
    return fold_accents(text.lower())


def tokenize(text: str) -> list[str]:
    """Split on whitespace and common punctuation, lower-cased."""
    return [t for t in _SPLIT_RE.split(text.lower()) if t]


def extract_search_terms(
    query: str,
    min_length: int = 2,
    stop_words: frozenset[str] = STOP_WORDS,
) -> list[str]:
    """Distinct query tokens worth matching, in query order."""
    terms: list[str] = []
    for token in tokenize(query):
        if len(token) < min_length or token in stop_words or fold_accents(token) in stop_words:
            continue
        if token not in terms:
            terms.append(token)
    return terms


def extract_keywords(text: str) -> list[str]:
    """Topic keywords from a query or correction, for feedback learning."""
    return extract_search_terms(text, min_length=3, stop_words=STOP_WORDS | FEEDBACK_FILLER_WORDS)


def jaccard(a: set[str], b: set[str]) -> float:
    """Overlap of two keyword sets, 0 when both are empty."""
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)
