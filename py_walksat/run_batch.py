# *************************************************************************
# Copyright (c) 2025 Zewei Zhang
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Run WalkSAT over CNF instances from a TXT list or a folder of .cnf files, for a range of seeds,
and save per-(instance, seed) stats to JSON.

Example:
    python -m py_walksat.run_batch --mode txt --txt-file ./dataset/raw/sat_20_50.txt \
        --seeds 10 --save-path ./output/walksat/sat_20_50.json
"""
import argparse
import os
import time
from multiprocessing import Pool
from typing import Dict, List, Tuple

from tqdm import tqdm

from py_walksat.run_walksat import build_solver, load_dimacs
from py_walksat.walksat import Status
from utils.utils import (get_cnf_files, read_sat_problems_lines, cnf_line_2_CNF_class,
                         save_dicts_to_json, is_satisfied)
from utils.trace_utils import convert_trace_to_str


def process_single_run(job: Tuple[str, int, List[List[int]], int, Dict]) -> Dict:
    """
    Solve one instance with one seed and collect stats.

    Each job builds its own solver and random stream, so jobs can run in
    any order or in parallel without changing their results.

    Args:
    	job: (name, num_vars, clauses, seed, solver options).
    """
    name, num_vars, clauses, seed, options = job

    t0 = time.perf_counter()
    solver = build_solver(num_vars, clauses, seed, **options)
    solver.verbosity = 0
    t1 = time.perf_counter()
    solver.simplify()
    t2 = time.perf_counter()
    result = solver.solve_()
    t3 = time.perf_counter()

    stats = {
        'name': name,
        'n_v': num_vars,
        'n_c': len(clauses),
        'seed': seed,
        'solved': result == Status.SAT,
        'walksat_stats': solver.stats(),
        'time_ms': {
            'build': (t1 - t0) * 1000.0,
            'simplify': (t2 - t1) * 1000.0,
            'search': (t3 - t2) * 1000.0,
            'total': (t3 - t0) * 1000.0,
        },
    }
    if result == Status.SAT:
        stats['verified'] = is_satisfied(clauses, solver.model)
    if options.get('record_trace'):
        stats['flip_trace'] = convert_trace_to_str(solver.trace)
    return stats


def load_txt_problems(problems_file: str) -> List[Tuple[str, int, List[List[int]]]]:
    problems = []
    for index, problem_line in enumerate(read_sat_problems_lines(problems_file)):
        cnf_formula = cnf_line_2_CNF_class(problem_line)
        problems.append((f"line_{index}", cnf_formula.nv, cnf_formula.clauses))
    return problems


def load_folder_problems(folder_name: str) -> List[Tuple[str, int, List[List[int]]]]:
    problems = []
    for file_name in get_cnf_files(folder_name):
        num_vars, clauses = load_dimacs(file_name)
        problems.append((os.path.basename(file_name), num_vars, clauses))
    return problems


def run_batch(problems, seeds: List[int], options: Dict, workers: int = 1) -> List[Dict]:
    """
    Run every problem with every seed.

    Args:
    	problems: List of (name, num_vars, clauses).
    	seeds: Seeds to try on each problem.
    	options: Keyword arguments for build_solver.
    	workers: Processes in the pool; 1 runs in this process.

    Returns:
    	Stats records, ordered by problem then seed.
    """
    jobs = [(name, num_vars, clauses, seed, options)
            for name, num_vars, clauses in problems
            for seed in seeds]
    if workers <= 1:
        return [process_single_run(job) for job in tqdm(jobs, desc="walksat")]
    with Pool(processes=workers) as pool:
        return list(tqdm(pool.imap(process_single_run, jobs, 16), total=len(jobs), desc="walksat"))


def ensure_parent_dir(path: str) -> None:
    """Create parent directory for a file path, if needed."""
    parent = os.path.dirname(os.path.abspath(path))
    if parent:
        os.makedirs(parent, exist_ok=True)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Run WalkSAT over CNF instances from a TXT file or a folder of .cnf files."
    )
    p.add_argument(
        "--mode", choices=["txt", "folder"], required=True,
        help="txt: read one-line problems from a text file; folder: read every .cnf file in a folder."
    )
    p.add_argument("--txt-file", type=str, help="Path to the input TXT file (required for --mode txt).")
    p.add_argument("--folder", type=str, help="Folder of .cnf files (required for --mode folder).")
    p.add_argument("--save-path", type=str, default="./output/walksat/walksat.json",
                   help="JSON output file path.")
    p.add_argument("--seeds", type=int, default=10, help="Number of seeds per instance.")
    p.add_argument("--first-seed", type=int, default=0, help="Seeds are first-seed .. first-seed + seeds - 1.")
    p.add_argument("--flips-factor", type=int, default=35)
    p.add_argument("--noise", type=float, default=0.5)
    p.add_argument("--zero-break-first", action="store_true")
    p.add_argument("--record-trace", action="store_true", help="Store the flip trace of every run.")
    p.add_argument("--workers", type=int, default=1, help="Worker processes.")
    return p


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.mode == "txt":
        if not args.txt_file:
            parser.error("--txt-file is required when --mode txt")
        problems = load_txt_problems(args.txt_file)
    else:
        if not args.folder:
            parser.error("--folder is required when --mode folder")
        problems = load_folder_problems(args.folder)

    options = {
        'flips_factor': args.flips_factor,
        'noise': args.noise,
        'zero_break_first': args.zero_break_first,
        'record_trace': args.record_trace,
    }
    seeds = list(range(args.first_seed, args.first_seed + args.seeds))
    results = run_batch(problems, seeds, options, workers=args.workers)

    solved = sum(1 for r in results if r['solved'])
    print(f"Solved {solved} / {len(results)} runs.")

    ensure_parent_dir(args.save_path)
    save_dicts_to_json(results, args.save_path)


if __name__ == '__main__':
    main()
