import random

import pytest

from katzlm.corpus import START_TOKEN, STOP_TOKEN, UNKNOWN_TOKEN
from katzlm.model import (
    EmpiricalBigramLanguageModel, EmpiricalTrigramLanguageModel, EmpiricalUnigramLanguageModel,
    InterpolatedTrigramLanguageModel, UnderflowWarning
)


@pytest.fixture
def unigram():
    model = EmpiricalUnigramLanguageModel()
    model.train([["a", "b"]])
    return model


def test_unigram_counts_include_stop():
    model = EmpiricalUnigramLanguageModel()
    model.train([["a", "b", "a"]])
    assert model.word_counts.get("a") == 2
    assert model.word_counts.get("b") == 1
    assert model.word_counts.get(STOP_TOKEN) == 1
    assert model.word_counts.get("a") / model.word_counts.total() == pytest.approx(2 / 4)


def test_unigram_probabilities_reserve_unknown_mass(unigram):
    # a, b, STOP and the unknown pseudo-count each weigh 1.
    assert unigram.word_probability("a") == pytest.approx(0.25)
    assert unigram.word_probability("never-seen") == pytest.approx(0.25)
    assert unigram.unknown_probability() == pytest.approx(0.25)
    assert unigram.unigram_table().total() == pytest.approx(1.0)


def test_all_unknown_sentence_degrades_to_unknown_mass(unigram):
    probability = unigram.sentence_probability(["x", "y", "z"])
    # Three unknown words and STOP.
    assert probability == pytest.approx(0.25 ** 4)
    assert probability > 0


def test_sentence_underflow_is_signalled(unigram):
    sentence = ["unknown"] * 600
    with pytest.warns(UnderflowWarning):
        assert unigram.sentence_probability(sentence) == 0.0
    assert unigram.sentence_log_probability(sentence) == pytest.approx(601 * -1.3862943611198906)


def test_untrained_model_raises():
    model = EmpiricalUnigramLanguageModel()
    with pytest.raises(RuntimeError):
        model.word_probability("a")
    with pytest.raises(RuntimeError):
        model.generate_sentence()


def test_unknown_count_must_be_positive():
    with pytest.raises(ValueError):
        EmpiricalUnigramLanguageModel(unknown_count=0)


def test_training_stats(corpus):
    model = EmpiricalBigramLanguageModel()
    stats = model.train(corpus)
    assert stats['num_sentences'] == len(corpus)
    assert stats['num_tokens'] == sum(len(s) for s in corpus)
    assert stats['vocab_size'] == len(model.unigram_table())
    assert stats['bigram_counts_entries'] == model.bigram_counts.total_entry_count()
    assert model.is_trained


def test_training_reports_progress(corpus):
    stages = []
    EmpiricalUnigramLanguageModel().train(corpus, progress_callback=lambda n, stage: stages.append(stage))
    assert stages[-1] == "Smoothing"


def test_retraining_starts_from_scratch(corpus):
    model = EmpiricalUnigramLanguageModel()
    model.train(corpus)
    model.train([["a"]])
    assert set(model.word_counts) == {"a", STOP_TOKEN}


def test_bigram_mixes_with_unigram(corpus):
    model = EmpiricalBigramLanguageModel(lambda_=0.5)
    model.train(corpus)
    bigram = model.bigram_counts.get("the", "cat") / model.bigram_counts.peek("the").total()
    expected = 0.5 * bigram + 0.5 * model.unigram_table().get("cat")
    assert model.word_probability("cat", ("the",)) == pytest.approx(expected)
    assert model.word_probability("zebra", ("the",)) > 0


def test_bigram_counts_skip_start_padding(cat_dog_corpus):
    model = EmpiricalBigramLanguageModel()
    model.train(cat_dog_corpus)
    assert START_TOKEN not in model.word_counts
    assert model.bigram_counts.get(START_TOKEN, "the") == 2


@pytest.mark.parametrize("lambda1, lambda2", [(-0.1, 0.3), (0.5, -0.1), (0.7, 0.4)])
def test_interpolation_weights_are_validated(lambda1, lambda2):
    with pytest.raises(ValueError):
        InterpolatedTrigramLanguageModel(lambda1=lambda1, lambda2=lambda2)


def test_interpolated_distribution_sums_to_one(corpus):
    model = InterpolatedTrigramLanguageModel(lambda1=0.6, lambda2=0.3)
    model.train(corpus)
    context = ("the", "cat")
    total = sum(model.word_probability(w, context) for w in model.unigram_table())
    assert total == pytest.approx(1.0)


def test_interpolated_with_katz_components(corpus):
    model = InterpolatedTrigramLanguageModel(lambda1=0.5, lambda2=0.3, cutoff=5)
    model.train(corpus)
    for _, submap in model.trigram_probs.items():
        assert submap.total() <= 1.0 + 1e-9
    assert model.word_probability("zebra", ("the", "cat")) > 0
    assert model.sentence_log_probability(["the", "cat", "sat"]) < 0


def test_empirical_trigram_uses_fixed_weights(corpus):
    model = EmpiricalTrigramLanguageModel()
    model.train(corpus)
    assert (model.lambda1, model.lambda2) == (0.5, 0.3)
    assert model.params == {'unknown_count': 1.0}
    assert model.word_probability(UNKNOWN_TOKEN) > 0


def test_seeded_generation_is_reproducible(corpus):
    model = EmpiricalTrigramLanguageModel()
    model.train(corpus)
    first = [model.generate_sentence(rng=random.Random(3)) for _ in range(5)]
    second = [model.generate_sentence(rng=random.Random(3)) for _ in range(5)]
    assert first == second
    assert all(STOP_TOKEN not in sentence for sentence in first)


def test_generation_respects_max_length(corpus):
    model = EmpiricalUnigramLanguageModel()
    model.train(corpus)
    rng = random.Random(0)
    for _ in range(20):
        assert len(model.generate_sentence(rng=rng, max_length=3)) <= 3


def test_save_and_load_round_trip(corpus, tmp_path):
    model = InterpolatedTrigramLanguageModel(lambda1=0.4, lambda2=0.4, cutoff=5)
    model.train(corpus)
    path = tmp_path / "model.pkl"
    model.save(str(path))

    loaded = InterpolatedTrigramLanguageModel.load(str(path))
    assert loaded.params == model.params
    assert loaded.training_stats == model.training_stats
    for sentence in corpus:
        assert loaded.sentence_log_probability(sentence) == pytest.approx(
            model.sentence_log_probability(sentence))


def test_load_rejects_other_model_class(corpus, tmp_path):
    model = EmpiricalUnigramLanguageModel()
    model.train(corpus)
    path = tmp_path / "model.pkl"
    model.save(str(path))
    with pytest.raises(ValueError):
        EmpiricalBigramLanguageModel.load(str(path))
