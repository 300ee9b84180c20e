# *************************************************************************
# Copyright (c) 2025 Zewei Zhang
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Solve one DIMACS CNF (.cnf or .cnf.gz) with the python WalkSAT solver.

Exit codes follow the SAT competition convention, except that a failed
search exits with 0 (INDETERMINATE) since it proves nothing.
"""
import sys
import time
import psutil
import argparse

from pysat.formula import CNF

from py_walksat.walksat import WalkSATSolver, RandomStream, Status
from utils.utils import seed_to_bytes


def load_dimacs(filename: str):
    """
    Read a CNF file with pysat.

    The variable count is the larger of the header and the largest literal.

    Args:
        filename: Path to a DIMACS file, optionally gzip/bz2/lzma compressed.

    Returns:
        Tuple (num_variables, clauses).
    """
    cnf_formula = CNF(from_file=filename)
    num_vars = max([cnf_formula.nv] + [abs(l) for c in cnf_formula.clauses for l in c])
    return num_vars, cnf_formula.clauses


def build_solver(num_vars: int, clauses, seed: int, flips_factor: int = 35, noise: float = 0.5,
                 zero_break_first: bool = False, record_trace: bool = False) -> WalkSATSolver:
    S = WalkSATSolver(num_vars, RandomStream.from_seed_bytes(seed_to_bytes(seed)))
    S.set_option("flips-factor", flips_factor)
    S.set_option("noise", noise)
    S.set_option("zero-break-first", zero_break_first)
    S.set_option("record-trace", record_trace)
    for clause in clauses:
        S.addClause(clause)
    return S


def print_stats(S, start_time):
    cpu_time = time.process_time() - start_time

    process = psutil.Process()
    mem_used = process.memory_info().rss / (1024 * 1024)  # in MB

    flips_per_sec = S.flips / cpu_time if cpu_time > 0 else 0
    noise_percent = (S.noise_moves * 100 / S.flips) if S.flips > 0 else 0.0

    print("simplify rounds       : {}".format(S.simplify_rounds))
    print("forced variables      : {}".format(S.forced_vars))
    print("reduced clauses       : {}".format(len(S.clauses)))
    print("flips                 : {:<14} ({:.0f} /sec)".format(S.flips, flips_per_sec))
    print("noise moves           : {:<14} ({:.2f} % of flips)".format(S.noise_moves, noise_percent))
    print("zero-break moves      : {}".format(S.zero_break_moves))
    print("best unsat            : {}".format(S.min_unsat))
    print("Memory used           : {:.2f} MB".format(mem_used))
    print("CPU time              : {:.3f} s".format(cpu_time))


def write_result(output_file: str, S: WalkSATSolver, result: str):
    lines = []
    if result == Status.SAT:
        lines.append("SAT")
        model = [str(i + 1) if val else str(-(i + 1)) for i, val in enumerate(S.model)]
        lines.append(" ".join(model) + " 0")
    else:
        lines.append("INDET")
    text = "\n".join(lines) + "\n"
    if output_file == "-":
        sys.stdout.write(text)
    else:
        with open(output_file, 'w') as rf:
            rf.write(text)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Solve a DIMACS CNF with the python WalkSAT solver."
    )
    parser.add_argument("-i", "--input_file", required=True,
                        help="Path to input CNF file (.cnf or .cnf.gz).")
    parser.add_argument("-o", "--output_file", default=None,
                        help="Path to write result (SAT + model, or INDET). Use '-' for stdout.")
    parser.add_argument("--seed", type=int, default=42,
                        help="Unsigned 64-bit seed of the random stream.")
    parser.add_argument("--flips-factor", type=int, default=35,
                        help="Flip budget per variable; the search stops after num_vars * flips-factor flips.")
    parser.add_argument("--noise", type=float, default=0.5,
                        help="Probability of a random walk move.")
    parser.add_argument("--zero-break-first", action="store_true",
                        help="Take a zero-break move when one exists before flipping the noise coin.")
    parser.add_argument("-v", "--verbosity", type=int, default=1, choices=[0, 1, 2])
    return parser


def main(argv=None):
    args = build_arg_parser().parse_args(argv)

    start_time = time.process_time()

    num_vars, clauses = load_dimacs(args.input_file)
    S = build_solver(num_vars, clauses, args.seed, args.flips_factor, args.noise, args.zero_break_first)
    S.verbosity = args.verbosity

    result = S.solve_()

    if args.verbosity > 0:
        print_stats(S, start_time)

    if result == Status.SAT:
        print("SATISFIABLE")
    else:
        # Neither a contradiction nor an exhausted budget is reported as UNSAT
        print("INDETERMINATE")
    if args.output_file:
        write_result(args.output_file, S, result)
    return 10 if result == Status.SAT else 0


if __name__ == "__main__":
    sys.exit(main())
