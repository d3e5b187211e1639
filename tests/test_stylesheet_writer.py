"""Tests for serializing rule trees back to CSS."""

import pytest

from critcss.models.stylesheet import AtRule, Comment, Declaration, GroupRule, Stylesheet, StyleRule
from critcss.services.stylesheet_loader import parse_stylesheet
from critcss.services.stylesheet_writer import serialize


def test_empty_stylesheet_is_empty_text():
    assert serialize(Stylesheet()) == ""


def test_style_rule_layout():
    sheet = Stylesheet(
        rules=(
            StyleRule(
                selectors=("header h1", ".intro"),
                declarations=(Declaration("margin", "0"), Declaration("color", "#fff", important=True)),
            ),
        )
    )
    assert serialize(sheet) == "header h1,\n.intro {\n  margin: 0;\n  color: #fff !important;\n}"


def test_group_rule_is_indented():
    sheet = Stylesheet(
        rules=(
            GroupRule(
                keyword="media",
                prelude="(max-width: 600px)",
                rules=(StyleRule((".hero",), (Declaration("height", "200px"),)),),
            ),
        )
    )
    assert serialize(sheet) == "@media (max-width: 600px) {\n  .hero {\n    height: 200px;\n  }\n}"


def test_at_rules_and_comments():
    sheet = Stylesheet(
        rules=(
            Comment(" banner "),
            AtRule(keyword="charset", prelude='"UTF-8"'),
            AtRule(keyword="font-face", prelude="", body="font-family: X;"),
            AtRule(keyword="page", prelude=":first", body=""),
        )
    )
    assert serialize(sheet).split("\n\n") == [
        "/* banner */",
        '@charset "UTF-8";',
        "@font-face {\n  font-family: X;\n}",
        "@page :first {}",
    ]


def test_empty_declaration_block():
    assert serialize(Stylesheet(rules=(StyleRule(("a",)),))) == "a {}"


@pytest.mark.parametrize(
    "fixture",
    ["page1.css", "invalid.css", "invalid-media.css", "special-chars.css"],
)
def test_round_trip_is_structurally_stable(static_dir, fixture):
    parsed = parse_stylesheet((static_dir / fixture).read_text(encoding="utf-8")).stylesheet
    reparsed = parse_stylesheet(serialize(parsed))
    assert reparsed.stylesheet == parsed
    assert reparsed.diagnostics == ()
