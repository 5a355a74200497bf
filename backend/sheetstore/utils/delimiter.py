"""Pick the delimiter of a CSV file from its first few lines."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = (",", ";", "\t")
DEFAULT_DELIMITER = ","
SAMPLE_LINES = 5


def count_outside_quotes(line: str, delimiter: str) -> int:
    """Count delimiter occurrences that are not inside a quoted field."""
    count = 0
    in_quotes = False
    quote_char = ""
    i = 0
    while i < len(line):
        char = line[i]
        if char in ('"', "'"):
            if not in_quotes:
                in_quotes = True
                quote_char = char
            elif char == quote_char:
                # doubled quote is an escaped quote
                if i + 1 < len(line) and line[i + 1] == char:
                    i += 1
                else:
                    in_quotes = False
                    quote_char = ""
        elif char == delimiter and not in_quotes:
            count += 1
        i += 1
    return count


def consistency(counts: list[int]) -> float:
    """Share of lines whose count equals the most common count."""
    if not counts:
        return 0.0
    if len(counts) == 1:
        return 1.0
    most_common = Counter(counts).most_common(1)[0][1]
    return most_common / len(counts)


def detect_delimiter_from_text(text: str) -> str:
    lines = [line for line in text.splitlines()[:SAMPLE_LINES] if line.strip()]
    if not lines:
        return DEFAULT_DELIMITER

    best = DEFAULT_DELIMITER
    best_score = -1.0
    best_total = 0
    for delimiter in CANDIDATE_DELIMITERS:
        counts = [count_outside_quotes(line, delimiter) for line in lines]
        total = sum(counts)
        if total == 0:
            continue
        score = consistency(counts)
        logger.debug(f"Delimiter {delimiter!r} consistency={score:.2f} counts={counts}")
        if score > best_score or (score == best_score and total > best_total):
            best, best_score, best_total = delimiter, score, total

    return best


def detect_delimiter(file_path: Path, encoding: str = "utf-8-sig") -> str:
    """Return the most consistent delimiter, defaulting to a comma."""
    try:
        with file_path.open("r", encoding=encoding, newline="") as handle:
            sample = "".join(handle.readline() for _ in range(SAMPLE_LINES))
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not sample {file_path} for delimiter detection: {e}")
        return DEFAULT_DELIMITER
    return detect_delimiter_from_text(sample)
