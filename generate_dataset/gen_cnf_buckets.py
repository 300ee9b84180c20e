"""
Generate planted random k-SAT formulas in variable-count buckets and write each CNF on one line
(DIMACS-lite: integers with trailing 0 per clause).

Every formula is satisfied by the hidden assignment it was generated from, so
a WalkSAT failure on it is always a search failure.

Example:
    # One bucket 20-50 with 500 items, well below the 3-SAT threshold
    python -m generate_dataset.gen_cnf_buckets \
        --vars-min 20 --vars-max 50 --samples 500 --ratio-min 3.0 --ratio-max 3.5 --out-dir ./dataset/raw/
"""
import argparse
from pathlib import Path
from typing import List

import numpy as np
from tqdm import trange

from utils.utils import clauses_2_cnf_line


LITERAL_MAKES_CLAUSE_TRUE_PROB = 0.5


def generate_random_assignment(num_vars: int, rng: np.random.Generator) -> List[bool]:
    """
    Generate a random boolean assignment for variables 1..N.

    Args:
    	num_vars: Number of variables.
    	rng: Random generator.

    Returns:
    	List indexed by variable - 1.
    """
    return [bool(x) for x in rng.integers(0, 2, size=num_vars)]


def generate_sat_clause_from_assignment(
        assignment: List[bool],
        num_literals: int,
        rng: np.random.Generator
) -> List[int]:
    """
    Create one clause over distinct variables that is satisfied by the given assignment.

    Args:
    	assignment: Hidden assignment.
    	num_literals: Number of literals in the clause.
    	rng: Random generator.

    Returns:
    	List of DIMACS literals like [1, -3, 7].
    """
    selected_vars = rng.choice(len(assignment), size=num_literals, replace=False)
    clause = []
    clause_is_true = False

    for i, v in enumerate(selected_vars):
        v = int(v)
        make_true = rng.random() < LITERAL_MAKES_CLAUSE_TRUE_PROB
        is_last = (i == num_literals - 1)
        true_lit = v + 1 if assignment[v] else -(v + 1)
        if make_true or (is_last and not clause_is_true):
            clause.append(true_lit)
            clause_is_true = True
        else:
            clause.append(-true_lit)

    return clause


def adjust_clauses_to_include_unused_vars(
        clauses: List[List[int]],
        assignment: List[bool],
        unused_vars: List[int],
        rng: np.random.Generator
) -> None:
    """
    Ensure every variable appears at least once by patching clauses in place.

    A literal is only swapped out of a clause whose variables all occur
    elsewhere too, and the new literal agrees with the assignment.

    Args:
    	clauses: List of clauses.
    	assignment: Hidden assignment.
    	unused_vars: Zero-based variables not yet present in any clause.
    	rng: Random generator.
    """
    used_var_count = {}
    for clause in clauses:
        for lit in clause:
            used_var_count[abs(lit)] = used_var_count.get(abs(lit), 0) + 1

    for v in unused_vars:
        valid_clause_indices = [
            idx for idx, clause in enumerate(clauses)
            if all(used_var_count[abs(lit)] > 1 for lit in clause)
        ]
        if not valid_clause_indices:
            raise RuntimeError("No clause found to safely replace a variable with an unused variable.")

        chosen_clause = clauses[valid_clause_indices[rng.integers(len(valid_clause_indices))]]
        dropped_lit = chosen_clause.pop(int(rng.integers(len(chosen_clause))))
        used_var_count[abs(dropped_lit)] -= 1

        chosen_clause.append(v + 1 if assignment[v] else -(v + 1))
        used_var_count[v + 1] = used_var_count.get(v + 1, 0) + 1


def generate_sat_problem(
        num_vars: int,
        num_clauses: int,
        clause_size: int,
        rng: np.random.Generator
) -> List[List[int]]:
    """
    Generate a satisfiable CNF with the requested size.

    Args:
    	num_vars: Number of variables (>= clause_size).
    	num_clauses: Number of clauses.
    	clause_size: Literals per clause (e.g., 3 for 3-SAT).
    	rng: Random generator.

    Returns:
    	List of clauses.
    """
    if num_vars < clause_size:
        raise ValueError(f"Need at least {clause_size} variables, got {num_vars}.")
    assignment = generate_random_assignment(num_vars, rng)
    clauses = [
        generate_sat_clause_from_assignment(assignment, clause_size, rng)
        for _ in range(num_clauses)
    ]

    used_vars = set(abs(lit) - 1 for clause in clauses for lit in clause)
    unused_vars = sorted(set(range(num_vars)) - used_vars)

    if unused_vars:
        adjust_clauses_to_include_unused_vars(clauses, assignment, unused_vars, rng)

    return clauses


def write_bucket(
        vars_min: int,
        vars_max: int,
        samples: int,
        ratio_min: float,
        ratio_max: float,
        clause_size: int,
        out_dir: Path,
        rng: np.random.Generator,
) -> Path:
    """
    Write a bucket of random CNFs to a text file (one CNF per line).

    Args:
    	vars_min: Inclusive lower bound on #vars.
    	vars_max: Inclusive upper bound on #vars.
    	samples: Number of CNFs to generate.
    	ratio_min: Min clause/var ratio.
    	ratio_max: Max clause/var ratio.
    	clause_size: Literals per clause.
    	out_dir: Output folder for the bucket file.
    	rng: Random generator.

    Returns:
    	Path of the written bucket.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    fname = out_dir / f"sat_{vars_min}_{vars_max}.txt"
    with fname.open("w") as fh:
        desc = f"[{fname.name}] {samples:,} formulas"
        for _ in trange(samples, desc=desc):
            n_vars = int(rng.integers(vars_min, vars_max + 1))
            ratio = rng.uniform(ratio_min, ratio_max)
            n_clauses = int(round(ratio * n_vars))

            clauses = generate_sat_problem(n_vars, n_clauses, clause_size, rng)
            fh.write(clauses_2_cnf_line(clauses) + "\n")
    return fname


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate bucketed planted k-SAT dataset")

    ap.add_argument("--vars-min", type=int, required=True)
    ap.add_argument("--vars-max", type=int, required=True)
    ap.add_argument("--samples", type=int, required=True)
    ap.add_argument("--ratio-min", type=float, default=3.0)
    ap.add_argument("--ratio-max", type=float, default=3.5)
    ap.add_argument("--clause-size", type=int, default=3)
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--out-dir", type=Path, required=True)
    return ap.parse_args()


def main() -> None:
    args = parse_args()

    write_bucket(
        vars_min=args.vars_min,
        vars_max=args.vars_max,
        samples=args.samples,
        ratio_min=args.ratio_min,
        ratio_max=args.ratio_max,
        clause_size=args.clause_size,
        out_dir=args.out_dir,
        rng=np.random.default_rng(args.seed),
    )


if __name__ == "__main__":
    main()
