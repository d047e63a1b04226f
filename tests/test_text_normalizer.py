from shared.helper.text_normalizer import (
    normalize_control_text,
    normalize_record_text,
    normalize_risk_text,
    normalize_text,
    word_overlap,
)
from shared.models.record import Record, RecordKind


def test_fields_are_trimmed_lowercased_and_joined_by_blank_line():
    text = normalize_risk_text("  Phishing Emails ", "Staff receive FAKE mails", "Credential theft")
    assert text == "phishing emails\n\nstaff receive fake mails\n\ncredential theft"


def test_empty_and_missing_fields_are_dropped():
    assert normalize_risk_text("Phishing", None, "  ") == "phishing"
    assert normalize_risk_text("Phishing", "", "desc") == "phishing\n\ndesc"


def test_all_fields_empty_gives_empty_text():
    assert normalize_text(None, "", "   ") == ""


def test_long_text_is_cut_without_ellipsis():
    text = normalize_risk_text("a" * 2000)
    assert len(text) == 1024
    assert text == "a" * 1024


def test_max_length_is_configurable():
    assert normalize_risk_text("abcdef", max_length=3) == "abc"


def test_control_fields_keep_their_order():
    text = normalize_control_text("A.8.3", "Title", "Desc", "Purpose", "Guidance")
    assert text.split("\n\n") == ["a.8.3", "title", "desc", "purpose", "guidance"]


def test_record_text_uses_the_field_order_of_its_kind():
    risk = Record(id="r1", title="Risk", threat_description="Threat", description="Desc", purpose="ignored")
    control = Record(id="c1", kind=RecordKind.CONTROL, code="A.8.3", title="Ctl", description="Desc",
                     control_text="not embedded", guidance="Guide")
    assert normalize_record_text(risk) == "risk\n\nthreat\n\ndesc"
    assert normalize_record_text(control) == "a.8.3\n\nctl\n\ndesc\n\nguide"


def test_word_overlap_identical_texts():
    assert word_overlap("same text", "same text") == 1.0


def test_word_overlap_empty_side():
    assert word_overlap("", "something here") == 0.0
    assert word_overlap("something here", "") == 0.0


def test_word_overlap_ignores_short_words():
    # "a", "of", "to" are ignored; {loss, data} vs {loss, data, access}
    assert word_overlap("loss of data", "a loss to data access") == 2 / 3


def test_word_overlap_only_short_words():
    assert word_overlap("a b", "of to") == 0.0
