"""
This file includes some general help functions.
"""
import os
import json
import glob

from typing import Dict, List, Sequence, Union
from pysat.formula import CNF


def get_cnf_files(folder_path: str) -> List[str]:
    """Returns a sorted list of .cnf / .cnf.gz files in the specified folder."""
    return sorted(
        os.path.join(folder_path, f)
        for f in os.listdir(folder_path)
        if f.endswith('.cnf') or f.endswith('.cnf.gz')
    )


def save_dicts_to_json(results: list, output_filename: str) -> None:
    """
    Saves the results to a JSON file.

    Args:
        results (list): The results to save.
        output_filename (str): The filename for the output JSON file.
    """
    with open(output_filename, 'w') as json_file:
        json.dump(results, json_file, indent=4)


def load_json_records(json_folder: str) -> Dict[str, list]:
    """
    Load every JSON array in a folder.

    Args:
        json_folder (str): Path to the folder containing JSON files.

    Returns:
        Mapping from file name to its list of records; files that do not hold
        a list are skipped with a message.
    """
    records = {}
    for file_path in sorted(glob.glob(os.path.join(json_folder, "*.json"))):
        with open(file_path, "r", encoding="utf-8") as file_handle:
            data = json.load(file_handle)
        if not isinstance(data, list):
            print(f"Skipping {file_path}: expected a list of dicts")
            continue
        records[os.path.basename(file_path)] = data
    return records


def read_sat_problems_lines(filename: str) -> List[str]:
    """
    Reads SAT problems from a file, each line is a problem in CNF format, e.g., "4 5 -1 0 5 1 -2 0".

    Args:
        filename (str): Path to the file containing SAT problems.

    Returns:
        list: A list of SAT problems, one per line.
    """
    with open(filename, 'r') as file:
        problems = file.readlines()
    return [line.strip() for line in problems if line.strip()]


def cnf_line_2_CNF_class(problem_line: str) -> CNF:
    """
    Parses a problem string into a CNF object.

    Args:
        problem_line (str): The problem string where clauses are divided by '0'.

    Returns:
        CNF object representing the SAT problem.
    """
    cnf = CNF()
    tokens = problem_line.strip().split()
    clause = []
    for token in tokens:
        if token == '0':
            if clause:
                cnf.append(clause)
                clause = []
        else:
            literal = int(token)
            clause.append(literal)

    if clause:
        cnf.append(clause)
    return cnf


def clauses_2_cnf_line(clauses: Sequence[Sequence[int]]) -> str:
    """Inverse of cnf_line_2_CNF_class: '1 -3 0 2 3 0'."""
    return " ".join(" ".join(str(l) for l in clause) + " 0" for clause in clauses)


def seed_to_bytes(seed: int) -> bytes:
    """Encode an unsigned 64-bit seed as the 8 little-endian bytes the solver reads."""
    if not 0 <= seed < 2 ** 64:
        raise ValueError(f"Seed must be an unsigned 64-bit integer, got {seed}.")
    return seed.to_bytes(8, "little")


def seed_from_bytes(seed: bytes) -> int:
    if len(seed) < 8:
        raise ValueError(f"Seed needs at least 8 bytes, got {len(seed)}.")
    return int.from_bytes(bytes(seed[:8]), "little")


def is_satisfied(clauses: Sequence[Sequence[int]], assignment: Union[Sequence[bool], Dict[int, bool]]) -> bool:
    """
    Check a model clause by clause, independently of any solver state.

    Args:
        clauses: Clauses as lists of DIMACS literals.
        assignment: Either a list indexed by variable - 1, or a dict keyed by
            the DIMACS variable number. Missing variables count as unassigned.

    Returns:
        True if every clause contains a literal that is true.
    """
    if not isinstance(assignment, dict):
        assignment = {i + 1: bool(val) for i, val in enumerate(assignment)}
    for clause in clauses:
        clause_satisfied = False
        for lit in clause:
            v = abs(lit)
            if v in assignment:
                if (lit > 0 and assignment[v]) or (lit < 0 and not assignment[v]):
                    clause_satisfied = True
                    break
        if not clause_satisfied:
            return False
    return True
