"""
This file includes some help functions for flip traces.

A flip trace is the list of (kind, literal) events recorded by the WalkSAT
solver when record-trace is on. kind is 'N' (noise move), 'G' (greedy move)
or 'Z' (zero-break shortcut); literal is the flipped variable's new value in
DIMACS form. The helpers here:
  * convert events into a flat trace string and back,
  * read the flipped literals in order,
  * count moves per kind,
  * replay a trace on top of an initial assignment.
"""
import re

from typing import Dict, List, Sequence, Tuple

TRACE_KINDS = ("N", "G", "Z")


def convert_trace_to_str(events: Sequence[Tuple[str, int]]) -> str:
    """
    Converts a list of tuples like:
        [('N', -3), ('G', 5), ('Z', -1)]
    into a string like:
        "N -3 G 5 Z -1"
    """
    out_tokens = []
    for kind, lit in events:
        if kind not in TRACE_KINDS:
            raise ValueError(f"Unknown trace event kind '{kind}'")
        out_tokens.append(kind)
        out_tokens.append(str(lit))
    return " ".join(out_tokens)


def parse_trace_str(trace_str: str) -> List[Tuple[str, int]]:
    """Inverse of convert_trace_to_str."""
    tokens = trace_str.split()
    if len(tokens) % 2:
        raise ValueError("Trace string has a dangling token")
    events = []
    for i in range(0, len(tokens), 2):
        kind, lit = tokens[i], tokens[i + 1]
        if kind not in TRACE_KINDS:
            raise ValueError(f"Unknown token '{kind}'")
        events.append((kind, int(lit)))
    return events


def extract_flips_in_order(trace_str: str) -> List[int]:
    """
    Extracts the flipped literals in order of traces.

    Args:
        trace_str: A string of traces.

    Returns:
        A list of integers.
    """
    return [int(m) for m in re.findall(r'[NGZ]\s+(-?\d+)', trace_str)]


def count_moves(events: Sequence[Tuple[str, int]]) -> Dict[str, int]:
    counts = {kind: 0 for kind in TRACE_KINDS}
    for kind, _ in events:
        counts[kind] += 1
    return counts


def replay_trace(initial: Sequence[bool], events: Sequence[Tuple[str, int]]) -> List[bool]:
    """
    Apply recorded flips to an initial assignment.

    Each event must flip its variable to the value its literal states;
    anything else means the trace does not belong to this starting point.
    """
    assignment = list(initial)
    for step, (_, lit) in enumerate(events):
        v = abs(lit) - 1
        if assignment[v] == (lit > 0):
            raise ValueError(f"Flip {step} sets variable {v + 1} to the value it already has")
        assignment[v] = lit > 0
    return assignment
