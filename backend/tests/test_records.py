import pytest
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import records
from records import ClassificationRecord, FeedbackRecord, RelationRecord

def test_classification_accepts_survey_headers():
    rec = ClassificationRecord.model_validate({
        "name": "Alice",
        "school_username": " Alice ",
        "github_username": "Ali-GH",
        "classifications": "strong, helpful",
    })
    assert rec.canonical_handle == "alice"
    assert rec.secondary_handle == "ali-gh"
    assert rec.category_labels() == ["strong", "helpful"]

def test_classification_without_categories():
    rec = ClassificationRecord.model_validate({"name": "Dave", "canonical_handle": "dave", "secondary_handle": "dave-gh", "categories": ""})
    assert rec.categories is None
    assert rec.category_labels() == []

def test_feedback_blank_optionals_are_absent():
    rec = FeedbackRecord.model_validate({
        "email_addr": "a@x.edu",
        "school_username": "alice",
        "github_username": "ali-gh",
        "solo": "Yes",
        "veto0": "",
        "veto1": "bob",
        "want2": "  ",
    })
    assert rec.email == "a@x.edu"
    assert rec.vetoes == [None, "bob", None]
    assert rec.wants == [None, None, None]
    assert rec.last_teammate_secondary_handle is None

def test_relation_polarity():
    rel = RelationRecord.model_validate({"class": "strong", "class_other": "lazy", "relation": "+-"})
    assert rel.attracts and rel.repels
    rel = RelationRecord(subject_category="a", object_category="b", polarity="-")
    assert not rel.attracts and rel.repels

def test_parse_records_reports_row():
    rows = [
        {"class": "strong", "class_other": "lazy", "relation": "+"},
        {"class": "strong", "class_other": "lazy", "relation": "?"},
    ]
    with pytest.raises(records.MalformedRecordError) as info:
        records.parse_records(rows, RelationRecord, source="relations.tsv")
    assert info.value.row == 2
    assert info.value.source == "relations.tsv"
    assert "polarity" in info.value.detail

def test_missing_handle_is_malformed():
    with pytest.raises(records.MalformedRecordError):
        records.parse_records([{"name": "Nobody", "school_username": " "}], ClassificationRecord)

def test_input_errors_are_value_errors():
    assert issubclass(records.DuplicateIdentityError, records.InputError)
    assert issubclass(records.InputError, ValueError)
    err = records.UnknownFeedbackPhraseError("alice", "Meh.")
    assert err.phrase == "Meh." and "alice" in str(err)

def test_load_feedback_from_file(tmp_path):
    fp = tmp_path / "fb.tsv"
    fp.write_text(
        "email_addr\tschool_username\tgithub_username\tsolo\tlast_teammate_github_username\n"
        "a@x.edu\tALICE\tAli-GH\tNo\tbob-gh\n"
        "b@x.edu\tbob\tbob-gh\tYes\n",
        encoding="utf-8",
    )
    fb = records.load_feedback(str(fp))
    assert [f.canonical_handle for f in fb] == ["alice", "bob"]
    assert fb[0].last_teammate_secondary_handle == "bob-gh"
    assert fb[1].solo == "Yes"

def test_feedback_file_without_solo_column_is_malformed(tmp_path):
    fp = tmp_path / "fb.tsv"
    fp.write_text("email_addr\tschool_username\tgithub_username\nalice@x.edu\talice\talice-gh\n", encoding="utf-8")
    with pytest.raises(records.MalformedRecordError) as info:
        records.load_feedback(str(fp))
    assert info.value.row == 1
    assert "solo" in info.value.detail

def test_classification_file_without_name_column_is_malformed(tmp_path):
    fp = tmp_path / "cls.tsv"
    fp.write_text("school_username\nalice\n", encoding="utf-8")
    with pytest.raises(records.MalformedRecordError) as info:
        records.load_classifications(str(fp))
    assert "name" in info.value.detail

def test_handle_only_feedback_is_malformed(tmp_path):
    fp = tmp_path / "fb.tsv"
    fp.write_text("school_username\nalice\n", encoding="utf-8")
    with pytest.raises(records.MalformedRecordError):
        records.load_feedback(str(fp))

def test_required_columns_may_be_blank():
    rec = FeedbackRecord.model_validate({
        "email_addr": "", "school_username": "carol", "github_username": " ", "solo": "",
    })
    assert rec.email == "" and rec.secondary_handle == "" and rec.solo == ""
    cls = ClassificationRecord.model_validate({"name": "", "school_username": "carol", "github_username": ""})
    assert cls.name == "" and cls.secondary_handle == ""

if __name__ == "__main__":
    pytest.main([__file__])
