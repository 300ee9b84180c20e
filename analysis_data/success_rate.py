"""
Report WalkSAT success rate and median flips of solved runs from saved batch JSON stats.
"""
import sys

import numpy as np

from utils.utils import load_json_records


def read_metric(block, metric):
    """
    Read a numeric metric from a stats dict.

    Args:
    	block: Stats dictionary.
    	metric: Metric key, e.g., 'flips'.

    Returns:
    	Float value or None if missing/invalid.
    """
    if not isinstance(block, dict):
        return None
    v = block.get(metric, None)
    if v is None or isinstance(v, bool):
        return None
    try:
        v = float(v)
    except (TypeError, ValueError):
        return None
    return v if np.isfinite(v) else None


def analyze_file(items):
    """
    Compute success rate and flip statistics for one batch file.

    Args:
    	items: List of JSON records written by py_walksat.run_batch.

    Returns:
    	Dict with runs, solved, success_rate, flips_med, flips_mean,
    	contradictions and exhausted.
    """
    flips = []
    solved = contradictions = exhausted = 0
    for it in items:
        stats = it.get("walksat_stats", {}) or {}
        status = stats.get("status")
        if status == "SAT":
            solved += 1
            f = read_metric(stats, "flips")
            if f is not None:
                flips.append(f)
        elif status == "CONTRADICTION":
            contradictions += 1
        elif status == "EXHAUSTED":
            exhausted += 1

    runs = len(items)
    flips = np.array(flips, dtype=float)
    return {
        "runs": runs,
        "solved": solved,
        "success_rate": (solved / runs) if runs > 0 else None,
        "flips_med": float(np.median(flips)) if flips.size else None,
        "flips_mean": float(np.mean(flips)) if flips.size else None,
        "contradictions": contradictions,
        "exhausted": exhausted,
    }


def format_summary(s):
    if s["success_rate"] is None:
        return "NA (n=0)"
    flips_str = "NA" if s["flips_med"] is None else f"{s['flips_med']:.1f}"
    return (f"success={s['success_rate']:.3f} ({s['solved']}/{s['runs']})  "
            f"median flips={flips_str}  contradictions={s['contradictions']}  exhausted={s['exhausted']}")


def main(folder):
    records = load_json_records(folder)
    if not records:
        print(f"No .json files in {folder}")
        return

    all_items = []
    for name, data in records.items():
        print(f"FILE: {name}")
        print(f"  {format_summary(analyze_file(data))}")
        all_items.extend(data)

    print("FINAL (across all files)")
    print(f"  {format_summary(analyze_file(all_items))}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "./output/walksat")
