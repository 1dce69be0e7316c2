"""Boolean title query engine.

Query syntax
- ``a b`` or ``a && b``: both terms must appear (AND)
- ``a|b`` or ``a | b``: either term may appear (OR, binds tighter than AND)
- ``-a``: the term must not appear
- ``"a"``: the term is mandatory even when strict matching is off

Only two precedence levels exist: OR groups nested inside one AND. There are
no parentheses. Whitespace splitting happens before quote stripping, so a
quoted multi-word phrase such as ``"Exact Phrase"`` becomes two AND'd terms
that keep their stray quote characters and are *not* marked as quoted.

Matching is case-insensitive substring containment after kana normalization.
Terms that belong to a synonym class (garage-kit terminology by default)
match a title containing any member of that class.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping, Union

GK_VARIANTS: tuple[str, ...] = (
    "ガレージキット",
    "レジンキット",
    "レジンキャスト",
    "レジンキャストキット",
    "ガレキ",
    "キャストキット",
)

# Small kana are folded onto their large counterparts on both sides of a
# comparison, so either spelling in a query matches either spelling in a title.
DEFAULT_KANA_PAIRS: Mapping[str, str] = {
    "ァ": "ア", "ィ": "イ", "ゥ": "ウ", "ェ": "エ", "ォ": "オ",
    "ッ": "ツ", "ャ": "ヤ", "ュ": "ユ", "ョ": "ヨ", "ヮ": "ワ",
    "ヵ": "カ", "ヶ": "ケ",
    "ぁ": "あ", "ぃ": "い", "ぅ": "う", "ぇ": "え", "ぉ": "お",
    "っ": "つ", "ゃ": "や", "ゅ": "ゆ", "ょ": "よ", "ゎ": "わ",
    "ゕ": "か", "ゖ": "け",
    "ｧ": "ｱ", "ｨ": "ｲ", "ｩ": "ｳ", "ｪ": "ｴ", "ｫ": "ｵ",
    "ｯ": "ﾂ", "ｬ": "ﾔ", "ｭ": "ﾕ", "ｮ": "ﾖ",
}

_QUOTE_CHARS = ('"', "'")
_OR_SPACING_RE = re.compile(r"\s*\|\s*")
_AND_SPLIT_RE = re.compile(r"\s*&&\s*|\s+")
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class Term:
    """Leaf node of a parsed query.

    Attributes:
        value: Term text with negation marker and quotes removed.
        quoted: Whether the term was wrapped in matching quotes.
        negated: Whether the term carried a leading ``-``.
    """

    value: str
    quoted: bool = False
    negated: bool = False


@dataclass(frozen=True, slots=True)
class AndNode:
    """All children must match. An empty AND matches everything."""

    children: tuple["Node", ...] = ()


@dataclass(frozen=True, slots=True)
class OrNode:
    """Any child must match. An empty OR matches nothing."""

    children: tuple["Node", ...] = ()


Node = Union[Term, AndNode, OrNode]


@dataclass(frozen=True, slots=True)
class MatchPolicy:
    """Normalization tables used when comparing terms to titles.

    Attributes:
        synonym_classes: Groups of interchangeable terms.
        kana_pairs: Characters folded onto a canonical form before comparison.
    """

    synonym_classes: tuple[tuple[str, ...], ...] = (GK_VARIANTS,)
    kana_pairs: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_KANA_PAIRS))
    _table: dict[int, str] = field(init=False, repr=False, compare=False, default_factory=dict)
    _classes: tuple[tuple[str, ...], ...] = field(init=False, repr=False, compare=False, default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "_table", str.maketrans(dict(self.kana_pairs)))
        object.__setattr__(
            self,
            "_classes",
            tuple(tuple(self.normalize(v) for v in group if v) for group in self.synonym_classes),
        )

    def normalize(self, text: str) -> str:
        """Lower-case text and fold kana variants."""
        return text.lower().translate(self._table)

    def synonyms_for(self, normalized_term: str) -> tuple[str, ...] | None:
        """Return the normalized synonym class containing a term, if any."""
        for group in self._classes:
            if normalized_term in group:
                return group
        return None


DEFAULT_POLICY = MatchPolicy()


def parse(query: str | None) -> Node:
    """Parse a query string into an expression tree.

    Never raises: any input degrades to some tree, worst case a flat AND of
    literal terms.

    Args:
        query: Raw query text.

    Returns:
        Root node. A single operand is returned unwrapped.
    """
    if not query or not isinstance(query, str):
        return AndNode()
    text = query.strip()
    if not text:
        return AndNode()

    text = _OR_SPACING_RE.sub("|", text)
    and_parts = [part for part in _AND_SPLIT_RE.split(text) if part]
    if not and_parts:
        return AndNode()
    if len(and_parts) == 1:
        return _parse_or_group(and_parts[0])
    return AndNode(tuple(_parse_or_group(part) for part in and_parts))


def _parse_or_group(group: str) -> Node:
    if "|" not in group:
        return _parse_term(group)
    or_parts = [part for part in group.split("|") if part]
    if not or_parts:
        return OrNode()
    if len(or_parts) == 1:
        return _parse_term(or_parts[0])
    return OrNode(tuple(_parse_term(part) for part in or_parts))


def _parse_term(raw: str) -> Term:
    value = raw
    negated = False
    if value.startswith("-") and len(value) > 1:
        negated = True
        value = value[1:]
    quoted = False
    if len(value) > 2 and value[0] in _QUOTE_CHARS and value[-1] == value[0]:
        quoted = True
        value = value[1:-1]
    return Term(value=value, quoted=quoted, negated=negated)


def matches(
    title: str | None,
    node: Node | None,
    strict: bool = True,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> bool:
    """Evaluate a parsed query against a title.

    In non-strict mode plain terms pass automatically; only quoted and
    negated terms are enforced, on the assumption that the source already
    applied its own fuzzy search for the rest.

    Args:
        title: Listing title.
        node: Parsed query tree.
        strict: Whether plain terms must be present.
        policy: Normalization tables.

    Returns:
        True when the title satisfies the query.
    """
    if not title or node is None:
        return False
    return _evaluate(policy.normalize(title), node, strict, policy)


def _evaluate(title_norm: str, node: Node, strict: bool, policy: MatchPolicy) -> bool:
    if isinstance(node, Term):
        if not strict and not node.quoted and not node.negated:
            return True
        found = _term_present(title_norm, node, policy)
        return not found if node.negated else found
    if isinstance(node, AndNode):
        return all(_evaluate(title_norm, child, strict, policy) for child in node.children)
    if isinstance(node, OrNode):
        return any(_evaluate(title_norm, child, strict, policy) for child in node.children)
    return False


def _term_present(title_norm: str, term: Term, policy: MatchPolicy) -> bool:
    term_norm = policy.normalize(term.value)
    synonyms = policy.synonyms_for(term_norm)
    if synonyms is not None:
        return any(variant in title_norm for variant in synonyms)
    return term_norm in title_norm


def match_title(
    title: str | None,
    query: str | Node,
    strict: bool = True,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> bool:
    """Parse (if needed) and evaluate a query in one call."""
    node = parse(query) if isinstance(query, str) else query
    return matches(title, node, strict, policy)


def has_quoted_terms(node: Node | None) -> bool:
    """Return True when any leaf of the tree is quoted."""
    if node is None:
        return False
    if isinstance(node, Term):
        return node.quoted
    return any(has_quoted_terms(child) for child in node.children)


def get_missing_terms(
    title: str | None,
    query: str | Node,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> list[str]:
    """List the positive terms a title fails to satisfy.

    Always evaluated strictly. AND reports every failing child; OR reports
    nothing when any alternative matches and every alternative otherwise.
    Negated terms never appear in the result.
    """
    node = parse(query) if isinstance(query, str) else query
    if not title or node is None:
        return []
    return _find_missing(policy.normalize(title), node, policy)


def _find_missing(title_norm: str, node: Node, policy: MatchPolicy) -> list[str]:
    if isinstance(node, Term):
        if node.negated:
            return []
        return [] if _term_present(title_norm, node, policy) else [node.value]
    if isinstance(node, AndNode):
        return [term for child in node.children for term in _find_missing(title_norm, child, policy)]
    if isinstance(node, OrNode):
        if _evaluate(title_norm, node, True, policy):
            return []
        return [term for child in node.children for term in _find_missing(title_norm, child, policy)]
    return []


def get_search_terms(query: str | None) -> str:
    """Strip query operators for sites that only accept plain keywords."""
    if not query or not isinstance(query, str):
        return ""
    text = query.replace("|", " ").replace("&&", " ")
    return _WS_RE.sub(" ", text).strip()

