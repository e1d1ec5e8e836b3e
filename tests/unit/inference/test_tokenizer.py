import zipfile

import pytest

from langtutor.inference.tokenizer import (
    UNKNOWN_TOKEN,
    Tokenizer,
    load_vocabulary,
    parse_vocabulary,
)


@pytest.fixture
def tokenizer():
    vocabulary = {"<pad>": 0, "<s>": 1, "</s>": 2, "hi": 3, "there": 4, "friend": 5}
    return Tokenizer(vocabulary, pad_token_id=0, bos_token_id=1, eos_token_id=2)


class TestTokenize:
    def test_reference_example(self):
        tokenizer = Tokenizer({"hi": 3}, pad_token_id=0, bos_token_id=1, eos_token_id=2)
        assert tokenizer.tokenize("hi", 5) == [1, 3, 2, 0, 0]

    def test_lowercases_and_strips_punctuation(self, tokenizer):
        assert tokenizer.tokenize("Hi, THERE!!", 6) == [1, 3, 4, 2, 0, 0]

    def test_unknown_words_become_pad(self, tokenizer):
        assert tokenizer.tokenize("hi stranger friend", 6) == [1, 3, 0, 5, 2, 0]

    def test_truncates_silently(self, tokenizer):
        assert tokenizer.tokenize("hi there friend hi there", 4) == [1, 3, 4, 5]

    def test_eos_only_when_space_remains(self, tokenizer):
        assert tokenizer.tokenize("hi there", 3) == [1, 3, 4]
        assert tokenizer.tokenize("hi there", 4) == [1, 3, 4, 2]

    def test_without_special_tokens(self):
        tokenizer = Tokenizer({"hi": 7}, pad_token_id=9)
        assert tokenizer.tokenize("hi hi", 4) == [7, 7, 9, 9]

    def test_empty_text(self, tokenizer):
        assert tokenizer.tokenize("?!", 4) == [1, 2, 0, 0]

    def test_max_len_must_be_positive(self, tokenizer):
        with pytest.raises(ValueError):
            tokenizer.tokenize("hi", 0)

    def test_for_descriptor(self, torchscript_descriptor):
        tokenizer = Tokenizer.for_descriptor(torchscript_descriptor, {"hi": 3})
        assert tokenizer.pad_token_id == 0
        assert tokenizer.bos_token_id is None
        assert tokenizer.eos_token_id == 2


class TestDetokenize:
    def test_stops_at_first_eos(self, tokenizer):
        assert tokenizer.detokenize([3, 4, 2, 5, 5]) == "hi there"

    def test_stops_at_first_pad(self, tokenizer):
        assert tokenizer.detokenize([3, 0, 4]) == "hi"

    def test_unknown_ids_render_placeholder(self, tokenizer):
        assert tokenizer.detokenize([3, 99, 4]) == f"hi {UNKNOWN_TOKEN} there"

    def test_empty(self, tokenizer):
        assert tokenizer.detokenize([]) == ""


class TestVocabulary:
    def test_parse_uses_line_numbers(self):
        assert parse_vocabulary("<pad>\nhello\nworld\n") == {"<pad>": 0, "hello": 1, "world": 2}

    def test_load_from_archive_prefers_extra_member(self, tmp_path):
        path = tmp_path / "model.pt"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("model/data/vocab.txt", "wrong\n")
            archive.writestr("model/extra/vocab.txt", "<pad>\nhola\n")

        assert load_vocabulary(path, "vocab.txt") == {"<pad>": 0, "hola": 1}

    def test_missing_member_is_empty(self, tmp_path):
        path = tmp_path / "model.pt"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("model/data.pkl", b"\x80")

        assert load_vocabulary(path, "vocab.txt") == {}

    def test_non_archive_is_empty(self, tmp_path):
        path = tmp_path / "model.gguf"
        path.write_bytes(b"GGUF\x00\x00")

        assert load_vocabulary(path, "vocab.txt") == {}

    def test_missing_file_is_empty(self, tmp_path):
        assert load_vocabulary(tmp_path / "absent.pt", "vocab.txt") == {}
