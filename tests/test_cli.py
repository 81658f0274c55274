import csv

import pytest

from katzlm.cli import build_parser, main
from katzlm.katz import KatzBigramLanguageModel


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.model == "baseline"
    assert args.cutoff is None
    assert (args.lambda1, args.lambda2) == (0.5, 0.3)


def test_train_and_evaluate(corpus_file, validation_file, nbest_file):
    assert main([
        "--train", str(corpus_file),
        "--validate", str(validation_file),
        "--nbest", str(nbest_file),
        "--model", "katz-bigram",
        "--generate", "2",
        "--seed", "5",
    ]) == 0


def test_save_then_load(corpus_file, validation_file, tmp_path):
    saved = tmp_path / "model.pkl"
    assert main(["--train", str(corpus_file), "--model", "katz-bigram",
                 "--cutoff", "4", "--save", str(saved)]) == 0
    assert KatzBigramLanguageModel.load(str(saved)).cutoff == 4

    assert main(["--load", str(saved), "--model", "katz-bigram",
                 "--validate", str(validation_file)]) == 0


def test_grid_search_writes_results(corpus_file, validation_file, tmp_path):
    results = tmp_path / "grid.csv"
    assert main([
        "--train", str(corpus_file),
        "--validate", str(validation_file),
        "--model", "interpolated",
        "--grid-search",
        "--results-csv", str(results),
    ]) == 0
    with open(results, newline='', encoding='utf-8') as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 45


def test_missing_training_data_is_an_error():
    with pytest.raises(SystemExit):
        main(["--model", "katz-trigram"])


def test_sri_model_requires_arpa_file():
    with pytest.raises(SystemExit):
        main(["--model", "sri"])
