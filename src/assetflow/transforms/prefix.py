"""Vendor prefixing for CSS declarations.

Adds the prefixed variants browsers in current support ranges still need, in
front of the standard declaration. Existing declarations are never removed or
rewritten, so hand-written prefixed rules survive next to unprefixed ones.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

import tinycss2
from tinycss2.ast import AtRule, Comment, Declaration, ParseError, QualifiedRule

WEBKIT = ("-webkit-",)

PREFIXED_PROPERTIES: Dict[str, Tuple[str, ...]] = {
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": WEBKIT,
    "box-decoration-break": WEBKIT,
    "clip-path": WEBKIT,
    "hyphens": WEBKIT,
    "initial-letter": WEBKIT,
    "mask": WEBKIT,
    "mask-clip": WEBKIT,
    "mask-composite": WEBKIT,
    "mask-image": WEBKIT,
    "mask-origin": WEBKIT,
    "mask-position": WEBKIT,
    "mask-repeat": WEBKIT,
    "mask-size": WEBKIT,
    "print-color-adjust": WEBKIT,
    "tab-size": ("-moz-",),
    "text-emphasis": WEBKIT,
    "text-emphasis-color": WEBKIT,
    "text-emphasis-position": WEBKIT,
    "text-emphasis-style": WEBKIT,
    "text-size-adjust": ("-webkit-", "-moz-"),
    "user-select": WEBKIT,
}

# (property, value) -> prefixed values to add
PREFIXED_VALUES: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("position", "sticky"): ("-webkit-sticky",),
}


class CSSSyntaxError(ValueError):
    def __init__(self, error: ParseError):
        super().__init__(
            f"line {error.source_line}, column {error.source_column}: {error.message}"
        )
        self.line = error.source_line
        self.column = error.source_column


def _check(nodes: Iterable) -> None:
    for node in nodes:
        if isinstance(node, ParseError):
            raise CSSSyntaxError(node)


def _value(decl: Declaration) -> str:
    return tinycss2.serialize(decl.value).strip()


def _declaration(name: str, value: str, important: bool) -> str:
    return f"{name}:{value}{' !important' if important else ''}"


def _prefix_block(content: List) -> str:
    """Prefix a block body: declarations, nested rules or both."""
    items = tinycss2.parse_blocks_contents(
        content, skip_comments=True, skip_whitespace=True
    )
    _check(items)
    present = {
        (item.lower_name, _value(item).lower())
        for item in items
        if isinstance(item, Declaration)
    }
    names = {name for name, _ in present}

    # (text, is_declaration); rules close themselves, declarations need a ";"
    pieces: List[Tuple[str, bool]] = []
    for item in items:
        if isinstance(item, QualifiedRule):
            pieces.append((_style_rule(item), False))
            continue
        if isinstance(item, AtRule):
            pieces.append((_prefix_at_rule(item), False))
            continue
        if not isinstance(item, Declaration):
            pieces.append((item.serialize(), False))
            continue
        value = _value(item)
        for prefix in PREFIXED_PROPERTIES.get(item.lower_name, ()):
            if prefix + item.lower_name not in names:
                pieces.append((_declaration(prefix + item.name, value, item.important), True))
        for extra in PREFIXED_VALUES.get((item.lower_name, value.lower()), ()):
            if (item.lower_name, extra) not in present:
                pieces.append((_declaration(item.name, extra, item.important), True))
        pieces.append((_declaration(item.name, value, item.important), True))

    out = ""
    after_declaration = False
    for text, is_declaration in pieces:
        if after_declaration:
            out += ";"
        out += text
        after_declaration = is_declaration
    return out


def _style_rule(rule: QualifiedRule) -> str:
    prelude = tinycss2.serialize(rule.prelude).strip()
    return f"{prelude}{{{_prefix_block(rule.content)}}}"


def _prefix_rules(rules: Iterable) -> str:
    out: List[str] = []
    for rule in rules:
        if isinstance(rule, ParseError):
            raise CSSSyntaxError(rule)
        if isinstance(rule, Comment):
            # Only licence comments survive minification anyway
            if rule.value.startswith("!"):
                out.append(rule.serialize())
            continue
        if isinstance(rule, QualifiedRule):
            out.append(_style_rule(rule))
        elif isinstance(rule, AtRule):
            out.append(_prefix_at_rule(rule))
        else:
            out.append(rule.serialize())
    return "\n".join(out)


def _prefix_at_rule(rule: AtRule) -> str:
    if rule.content is None:
        return rule.serialize()
    head = f"@{rule.at_keyword}{tinycss2.serialize(rule.prelude).rstrip()}"
    return f"{head}{{{_prefix_block(rule.content)}}}"


def autoprefix(css: str) -> str:
    """Return `css` with missing vendor prefixes added.

    Raises `CSSSyntaxError` on input tinycss2 cannot parse cleanly.
    """
    rules = tinycss2.parse_stylesheet(css, skip_comments=False, skip_whitespace=True)
    return _prefix_rules(rules)
