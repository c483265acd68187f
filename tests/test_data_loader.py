import json

from data_loader import load_indicator_terms


def test_list_of_terms(tmp_path):
    path = tmp_path / "terms.json"
    path.write_text(json.dumps(["Gift Card", "lottery", "LOTTERY", " "]), encoding="utf-8")
    assert load_indicator_terms(path) == ("gift card", "lottery")


def test_terms_object_and_term_dicts(tmp_path):
    path = tmp_path / "terms.json"
    path.write_text(json.dumps({"terms": [{"term": "Wire transfer"}, "crypto"]}), encoding="utf-8")
    assert load_indicator_terms(path) == ("wire transfer", "crypto")


def test_missing_file_returns_none(tmp_path):
    assert load_indicator_terms(tmp_path / "absent.json") is None


def test_invalid_json_returns_none(tmp_path):
    path = tmp_path / "terms.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_indicator_terms(path) is None


def test_empty_vocabulary_returns_none(tmp_path):
    path = tmp_path / "terms.json"
    path.write_text("[]", encoding="utf-8")
    assert load_indicator_terms(path) is None
