import logging

from gateway.errors import PatternError
from gateway.matching import match_rule


def test_first_matching_active_rule_wins(make_request, make_rule):
    a = make_rule(".*a.*", name="A")
    b = make_rule(".*", name="B")
    assert match_rule(make_request(url="xa"), [a, b]) is a


def test_inactive_rules_are_never_considered(make_request, make_rule):
    a = make_rule(".*a.*", is_active=False, name="A")
    b = make_rule(".*", name="B")
    assert match_rule(make_request(url="xa"), [a, b]) is b


def test_collection_order_decides_not_specificity(make_request, make_rule):
    broad = make_rule(".*")
    specific = make_rule(r"^https://api\.example\.com/v1/webhook/hubspot/\d+$")
    request = make_request(url="https://api.example.com/v1/webhook/hubspot/5")
    assert match_rule(request, [broad, specific]) is broad


def test_pattern_matches_anywhere_in_url(make_request, make_rule):
    rule = make_rule("webhook")
    assert match_rule(make_request(url="https://api.example.com/v1/webhook/1"), [rule]) is rule


def test_no_match_returns_none(make_request, make_rule):
    rules = [make_rule(".*analytics.*"), make_rule(".*webhook.*", is_active=False)]
    assert match_rule(make_request(url="https://api.example.com/v1/webhook/1"), rules) is None
    assert match_rule(make_request(), []) is None


def test_invalid_pattern_is_skipped_and_reported(make_request, make_rule, caplog):
    broken = make_rule("([", name="Broken")
    fallback = make_rule(".*", name="Fallback")
    diagnostics = []

    with caplog.at_level(logging.WARNING, logger="gateway.matching"):
        matched = match_rule(make_request(), [broken, fallback], diagnostics)

    assert matched is fallback
    assert len(diagnostics) == 1
    error = diagnostics[0]
    assert isinstance(error, PatternError)
    assert error.rule_id == broken.id
    assert error.pattern == "(["
    assert "Broken" in caplog.text


def test_invalid_pattern_on_inactive_rule_is_not_reported(make_request, make_rule):
    diagnostics = []
    match_rule(make_request(), [make_rule("([", is_active=False)], diagnostics)
    assert diagnostics == []
