import pytest

from katzlm.corpus import preprocess_text

SMALL_CORPUS = [
    "the cat sat on the mat",
    "the dog sat on the log",
    "the cat ate the fish",
    "a dog ate a bone",
    "the cat sat on the log",
    "a bird sang",
    "the bird sat on the cat",
    "the dog chased the cat",
]


@pytest.fixture
def corpus():
    return [preprocess_text(line) for line in SMALL_CORPUS]


@pytest.fixture
def cat_dog_corpus():
    return [["the", "cat", "sat"], ["the", "dog", "sat"]]


@pytest.fixture
def corpus_file(tmp_path):
    path = tmp_path / "train.txt"
    path.write_text("\n".join(SMALL_CORPUS) + "\n\n", encoding="utf-8")
    return path


@pytest.fixture
def validation_file(tmp_path):
    path = tmp_path / "valid.txt"
    path.write_text("the cat sat on the fish\nthe bird ate\n", encoding="utf-8")
    return path


@pytest.fixture
def nbest_file(tmp_path):
    path = tmp_path / "utterances.nbest"
    path.write_text(
        "# two utterances\n"
        "REF\tthe cat sat\n"
        "-100.0\tthe cat sat\n"
        "-104.0\tthe cat sang\n"
        "-120.0\ta bat sat on\n"
        "\n"
        "REF\tthe dog ate\n"
        "-90.0\tthe log ate\n"
        "-91.0\tthe dog ate\n",
        encoding="utf-8",
    )
    return path
