"""
Word-level tokenizer for the raw interpreter backend.

The vocabulary ships inside the model archive as a plain text file, one
token per line, where the 0-based line number is the token id.
"""

from __future__ import annotations

import logging
import re
import zipfile
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath

from ..configs.model import ModelDescriptor

logger = logging.getLogger(__name__)

__all__ = ["UNKNOWN_TOKEN", "Tokenizer", "load_vocabulary", "parse_vocabulary"]

UNKNOWN_TOKEN = "<UNK>"

_STRIP_PATTERN = re.compile(r"[^a-z0-9\s]")


def parse_vocabulary(text: str) -> dict[str, int]:
    """Map each line to its 0-based line number. Later duplicates win."""
    return {line: index for index, line in enumerate(text.splitlines())}


def load_vocabulary(model_path: str | Path, file_name: str) -> dict[str, int]:
    """
    Read the vocabulary file embedded in a model archive.
    Args:
        model_path: Path of the model file (a zip archive).
        file_name: Basename of the vocabulary member.
    Returns:
        The token to id mapping, or an empty dict if the file cannot be found
        or read. A missing vocabulary is not an error; every word then maps to
        the pad id.
    """
    try:
        with zipfile.ZipFile(model_path) as archive:
            member = _find_member(archive.namelist(), file_name)
            if member is None:
                logger.warning("No %s found in %s; using an empty vocabulary", file_name, model_path)
                return {}
            text = archive.read(member).decode("utf-8")
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as e:
        logger.warning("Could not read vocabulary from %s: %s", model_path, e)
        return {}

    vocabulary = parse_vocabulary(text)
    logger.info("Loaded vocabulary of %d tokens from %s:%s", len(vocabulary), model_path, member)
    return vocabulary


def _find_member(names: Iterable[str], file_name: str) -> str | None:
    matches = [name for name in names if PurePosixPath(name).name == file_name]
    if not matches:
        return None
    # TorchScript keeps user files under <archive>/extra/
    for name in matches:
        if PurePosixPath(name).parent.name == "extra":
            return name
    return matches[0]


class Tokenizer:
    """Maps text to fixed-length id sequences and back."""

    def __init__(
        self,
        vocabulary: Mapping[str, int],
        pad_token_id: int = 0,
        bos_token_id: int | None = None,
        eos_token_id: int | None = None,
    ):
        self.vocabulary = dict(vocabulary)
        self.pad_token_id = pad_token_id
        self.bos_token_id = bos_token_id
        self.eos_token_id = eos_token_id
        self._inverse = {index: token for token, index in self.vocabulary.items()}

    @classmethod
    def for_descriptor(cls, descriptor: ModelDescriptor, vocabulary: Mapping[str, int]) -> Tokenizer:
        return cls(
            vocabulary,
            pad_token_id=descriptor.pad_token_id,
            bos_token_id=descriptor.bos_token_id,
            eos_token_id=descriptor.eos_token_id,
        )

    @staticmethod
    def split_words(text: str) -> list[str]:
        """Lowercase, drop everything but ASCII letters, digits and whitespace, then split."""
        return _STRIP_PATTERN.sub("", text.lower()).split()

    def tokenize(self, text: str, max_len: int) -> list[int]:
        """
        Encode ``text`` into exactly ``max_len`` ids.
        Unknown words map to the pad id. Long inputs are truncated silently.
        Args:
            text: Input text.
            max_len: Output length.
        Returns:
            List of ``max_len`` token ids.
        """
        if max_len <= 0:
            raise ValueError(f"max_len must be positive, got {max_len}")

        ids: list[int] = []
        if self.bos_token_id is not None:
            ids.append(self.bos_token_id)
        ids.extend(self.vocabulary.get(word, self.pad_token_id) for word in self.split_words(text))
        if self.eos_token_id is not None and len(ids) < max_len:
            ids.append(self.eos_token_id)

        if len(ids) > max_len:
            return ids[:max_len]
        return ids + [self.pad_token_id] * (max_len - len(ids))

    def detokenize(self, ids: Iterable[int]) -> str:
        """Decode ids up to the first eos or pad id, rendering unknown ids as ``<UNK>``."""
        words = []
        for token_id in ids:
            if token_id == self.eos_token_id or token_id == self.pad_token_id:
                break
            words.append(self._inverse.get(token_id, UNKNOWN_TOKEN))
        return " ".join(words)
