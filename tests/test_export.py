import json

import pytest

from twogis_scraper.etl import export


def _write_reviews(directory, name, reviews):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_text(json.dumps({"meta": {}, "data": reviews}), encoding="utf-8")


def test_collect_reviews_skips_empty_text_and_zero_rating(tmp_path):
    _write_reviews(
        tmp_path,
        "reviews-a.json",
        [{"text": "Good", "rating": 5, "author": "A"}, {"text": "", "rating": 4}, {"text": "No stars", "rating": 0}],
    )

    assert export.collect_reviews(tmp_path) == [{"text": "Good", "rating": 5}]


def test_collect_reviews_requires_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        export.collect_reviews(tmp_path / "missing")


def test_csv_quotes_text():
    content = export.to_csv([{"text": 'Said "wow", twice', "rating": 4}])
    assert content == 'rating,text\n4,"Said ""wow"", twice"\n'


def test_export_reviews_writes_jsonl(tmp_path):
    reviews_dir = tmp_path / "reviews"
    _write_reviews(reviews_dir, "reviews-a.json", [{"text": "Вкусно", "rating": 5}, {"text": "Ok", "rating": 3}])

    path = export.export_reviews(reviews_dir, tmp_path / "exports", "jsonl")

    assert path.name == "reviews-dataset.jsonl"
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line) for line in lines] == [{"text": "Вкусно", "rating": 5}, {"text": "Ok", "rating": 3}]


def test_export_reviews_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        export.export_reviews(tmp_path, tmp_path, "xml")


@pytest.mark.parametrize("count,expected", [(0, "n<1K"), (999, "n<1K"), (1000, "1K<n<10K"), (25000, "10K<n<100K")])
def test_size_category(count, expected):
    assert export.size_category(count) == expected


def test_export_reviews_writes_dataset_card(tmp_path):
    reviews_dir = tmp_path / "reviews"
    _write_reviews(reviews_dir, "reviews-a.json", [{"text": "Вкусно", "rating": 5}])
    _write_reviews(reviews_dir, "reviews-b.json", [{"text": "Ok", "rating": 3}, {"text": "", "rating": 1}])

    export.export_reviews(reviews_dir, tmp_path / "exports", "csv")

    card = (tmp_path / "exports" / "README.md").read_text(encoding="utf-8")
    assert card.startswith("---\nlicense: mit\n")
    assert "- n<1K" in card
    assert "**Total Records**: 2" in card
    assert "**Source Files**: 2" in card
    assert "**Format**: CSV" in card
    assert "- `text`:" in card and "- `rating`:" in card
