import re
import unicodedata

_TOKEN_RE = re.compile(r"[^\W_]+")


def fold(value: str) -> str:
    # NFKD splits accented letters into base letter + combining mark
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def tokenize(*values: str | None) -> list[str]:
    """Distinct case- and accent-folded alphanumeric tokens, in first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        if not value:
            continue
        for token in _TOKEN_RE.findall(fold(value)):
            seen.setdefault(token, None)
    return list(seen)


def build_search_vector(*values: str | None) -> str:
    return " ".join(tokenize(*values))
