"""
Sentence segmentation for incremental text-to-speech input.

Text arriving in arbitrary fragments (lines read from a file, tokens from an
LLM) is accumulated and cut at sentence boundaries so each sentence can be
sent to the synthesis socket as soon as it is complete.

Usage:
    buffer = SentenceBuffer()

    for fragment in text_source:
        for sentence in buffer.consume(fragment):
            send(sentence)

    remainder = buffer.flush()
    if remainder:
        send(remainder)

The boundary rule is a heuristic, not a grammar: a ``.``, ``!`` or ``?``
followed by whitespace or end of input ends a sentence, except a ``.`` after
a lone capital letter ("J. Smith") or between two digits ("3.14"). Longer
abbreviations such as "Dr." still split.
"""

from typing import Iterator, List, Optional

_TERMINATORS = frozenset(".!?")


def _is_boundary(text: str, i: int) -> bool:
    char = text[i]
    if char not in _TERMINATORS:
        return False

    if char == "." and i > 0:
        prev = text[i - 1]
        # Single uppercase initial, e.g. "J."
        if prev.isupper() and (i < 2 or not text[i - 2].isalpha()):
            return False
        # Decimal point, e.g. "3.14"
        if prev.isdigit() and i + 1 < len(text) and text[i + 1].isdigit():
            return False

    return i + 1 >= len(text) or text[i + 1].isspace()


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentences.

    Each element keeps its original characters, including the whitespace that
    precedes it, so ``"".join(result) == text``. The last element may be an
    incomplete sentence. Empty input yields an empty list.
    """
    sentences: List[str] = []
    start = 0
    for i in range(len(text)):
        if _is_boundary(text, i):
            sentences.append(text[start : i + 1])
            start = i + 1
    if start < len(text):
        sentences.append(text[start:])
    return sentences


class SentenceBuffer:
    """
    Stateful buffer that turns streamed text fragments into sentences.

    The trailing element of every split is held back because more text may
    still extend it; it is only released by `flush()`.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._total_emitted = 0

    def consume(self, fragment: str) -> Iterator[str]:
        """
        Append a fragment and yield every sentence that is now complete.

        Yielded sentences are stripped; blank ones are skipped.
        """
        if not fragment:
            return

        self._buffer += fragment
        sentences = split_sentences(self._buffer)
        if len(sentences) < 2:
            return

        self._buffer = sentences[-1]
        for sentence in sentences[:-1]:
            sentence = sentence.strip()
            if sentence:
                self._total_emitted += len(sentence)
                yield sentence

    def flush(self) -> Optional[str]:
        """Return the stripped remainder, if any, and empty the buffer."""
        remainder = self._buffer.strip()
        self._buffer = ""
        if not remainder:
            return None
        self._total_emitted += len(remainder)
        return remainder

    @property
    def total_emitted_chars(self) -> int:
        return self._total_emitted


__all__ = ["SentenceBuffer", "split_sentences"]
