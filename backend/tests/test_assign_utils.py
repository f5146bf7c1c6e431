import pytest
import sys
import os
import json

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import assign_utils

def test_canonical_handle():
    assert assign_utils.canonical_handle("  Alice ") == "alice"
    assert assign_utils.canonical_handle(None) == ""

def test_split_list_drops_blanks():
    assert assign_utils.split_list("a, b,,c ,") == ["a", "b", "c"]
    assert assign_utils.split_list("") == []
    assert assign_utils.split_list(None) == []

def test_read_delimited_norm_comments_and_ragged_rows(tmp_path):
    fp = tmp_path / "people.tsv"
    fp.write_text(
        "# exported from the survey\n"
        "Name\tSchool_Username\tClassifications\n"
        "Alice\talice\tstrong,helpful\n"
        "# a comment in the middle\n"
        "Bob\tbob\n"
        "\t\t\n"
        "Carol\tcarol\tlazy\textra\n",
        encoding="utf-8",
    )
    rows = assign_utils.read_delimited_norm(str(fp))
    assert len(rows) == 3
    assert rows[0] == {"name": "Alice", "school_username": "alice", "classifications": "strong,helpful"}
    assert "classifications" not in rows[1]
    assert rows[2]["classifications"] == "lazy"

def test_read_delimited_norm_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        assign_utils.read_delimited_norm(str(tmp_path / "nope.tsv"))

def test_read_delimited_norm_custom_delimiter(tmp_path):
    fp = tmp_path / "rel.csv"
    fp.write_text("class,class_other,relation\nstrong,lazy,-\n", encoding="utf-8")
    rows = assign_utils.read_delimited_norm(str(fp), delimiter=",")
    assert rows == [{"class": "strong", "class_other": "lazy", "relation": "-"}]

def test_phrase_table_is_closed_vocabulary():
    effect = assign_utils.FEEDBACK_PHRASES["Procrastinated."]
    assert effect == assign_utils.PhraseEffect("lazy", False, True)
    assert assign_utils.FEEDBACK_PHRASES["Would love to work with them again."].want is True
    assert len(assign_utils.FEEDBACK_PHRASES) == 10

def test_load_phrase_table(tmp_path):
    fp = tmp_path / "phrases.json"
    fp.write_text(json.dumps({
        " Great. ": {"category": "strong", "want": True},
        "Meh.": {"veto": True},
    }), encoding="utf-8")
    table = assign_utils.load_phrase_table(str(fp))
    assert table["Great."] == assign_utils.PhraseEffect("strong", True, False)
    assert table["Meh."] == assign_utils.PhraseEffect(None, False, True)

def test_load_phrase_table_rejects_lists(tmp_path):
    fp = tmp_path / "phrases.json"
    fp.write_text(json.dumps(["Great."]), encoding="utf-8")
    with pytest.raises(ValueError):
        assign_utils.load_phrase_table(str(fp))

if __name__ == "__main__":
    pytest.main([__file__])
