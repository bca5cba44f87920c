"""
Built-in function library: a small Stats / Seq / Align / Core surface.

This is the default registry the execution unit loads. Deployments point
LABBOOK_REGISTRY at their own registry to expose a different library.
"""

import math
import statistics
import time

import labbook
from labbook.registry import NamespaceRegistry


def _numbers(values, name: str = "data") -> list[float]:
    if not isinstance(values, list):
        raise ValueError(f"{name} must be an array of numbers")
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in values):
        raise ValueError(f"{name} must contain only numbers")
    return [float(v) for v in values]


def _sequence(seq, name: str = "sequence") -> str:
    if not isinstance(seq, str):
        raise ValueError(f"{name} must be a string")
    return seq.strip().upper()


# ---------------------------------------------------------------------- #
# Stats
# ---------------------------------------------------------------------- #

def mean(values):
    data = _numbers(values)
    if not data:
        raise ValueError("mean requires at least one data point")
    return statistics.fmean(data)


def median(values):
    data = _numbers(values)
    if not data:
        raise ValueError("median requires at least one data point")
    return statistics.median(data)


def stdev(values):
    data = _numbers(values)
    if len(data) < 2:
        raise ValueError("stdev requires at least two data points")
    return statistics.stdev(data)


def describe(values):
    """Descriptive summary; the count/mean keys make it render as a table row."""
    data = _numbers(values)
    if not data:
        raise ValueError("describe requires at least one data point")
    return {
        "count": len(data),
        "mean": statistics.fmean(data),
        "std": statistics.stdev(data) if len(data) > 1 else 0.0,
        "min": min(data),
        "median": statistics.median(data),
        "max": max(data),
    }


def pearson(x, y):
    xs = _numbers(x, "x")
    ys = _numbers(y, "y")
    if len(xs) != len(ys):
        raise ValueError("x and y must have the same length")
    if len(xs) < 2:
        raise ValueError("pearson requires at least two data points")
    return statistics.correlation(xs, ys)


# ---------------------------------------------------------------------- #
# Seq
# ---------------------------------------------------------------------- #

DNA_ALPHABET = set("ACGTN")
COMPLEMENT = str.maketrans("ACGTN", "TGCAN")


def validate_dna(seq):
    s = _sequence(seq)
    bad = sorted(set(s) - DNA_ALPHABET)
    if bad:
        raise ValueError(f"invalid DNA characters: {''.join(bad)}")
    return s


def gc_content(seq):
    s = validate_dna(seq)
    if not s:
        return 0.0
    return sum(1 for base in s if base in "GC") / len(s)


def reverse_complement(seq):
    return validate_dna(seq).translate(COMPLEMENT)[::-1]


def transcribe(seq):
    return validate_dna(seq).replace("T", "U")


# ---------------------------------------------------------------------- #
# Align
# ---------------------------------------------------------------------- #

MATCH = 2
MISMATCH = -1
GAP = -2


def align_dna(query, target, mode="global"):
    """Global Needleman-Wunsch alignment with a linear gap penalty."""
    if mode != "global":
        raise ValueError(f"unknown alignment mode: {mode} (expected global)")
    q = validate_dna(query)
    t = validate_dna(target)
    rows, cols = len(q) + 1, len(t) + 1

    score = [[0] * cols for _ in range(rows)]
    for i in range(1, rows):
        score[i][0] = i * GAP
    for j in range(1, cols):
        score[0][j] = j * GAP
    for i in range(1, rows):
        for j in range(1, cols):
            diag = score[i - 1][j - 1] + (MATCH if q[i - 1] == t[j - 1] else MISMATCH)
            score[i][j] = max(diag, score[i - 1][j] + GAP, score[i][j - 1] + GAP)

    aligned_q, aligned_t = [], []
    i, j = len(q), len(t)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and score[i][j] == score[i - 1][j - 1] + (
            MATCH if q[i - 1] == t[j - 1] else MISMATCH
        ):
            aligned_q.append(q[i - 1])
            aligned_t.append(t[j - 1])
            i, j = i - 1, j - 1
        elif i > 0 and score[i][j] == score[i - 1][j] + GAP:
            aligned_q.append(q[i - 1])
            aligned_t.append("-")
            i -= 1
        else:
            aligned_q.append("-")
            aligned_t.append(t[j - 1])
            j -= 1

    aligned_q.reverse()
    aligned_t.reverse()
    matches = sum(1 for a, b in zip(aligned_q, aligned_t) if a == b)
    return {
        "score": score[-1][-1],
        "aligned_query": "".join(aligned_q),
        "aligned_target": "".join(aligned_t),
        "identity": matches / len(aligned_q) if aligned_q else 0.0,
    }


# ---------------------------------------------------------------------- #
# Core
# ---------------------------------------------------------------------- #

def version():
    return labbook.__version__


def echo(value=None):
    return value


def sleep(seconds):
    """Block for a number of seconds, then return it."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or not math.isfinite(seconds):
        raise ValueError("seconds must be a number")
    time.sleep(max(0.0, seconds))
    return seconds


def fail(message="failed"):
    raise RuntimeError(str(message))


def default_registry() -> NamespaceRegistry:
    """Build the registry of built-in namespaces."""
    registry = NamespaceRegistry()
    registry.add_namespace("Stats", {
        "mean": mean,
        "median": median,
        "stdev": stdev,
        "describe": describe,
        "pearson": pearson,
    })
    registry.add_namespace("Seq", {
        "gc_content": gc_content,
        "reverse_complement": reverse_complement,
        "transcribe": transcribe,
        "validate_dna": validate_dna,
    })
    registry.add_namespace("Align", {
        "align_dna": align_dna,
    })
    registry.add_namespace("Core", {
        "version": version,
        "echo": echo,
        "sleep": sleep,
        "fail": fail,
    })
    return registry
