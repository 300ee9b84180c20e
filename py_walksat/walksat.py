# *************************************************************************
# Copyright (c) 2025 Zewei Zhang
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Python WalkSAT Implementation.

A stochastic local search solver in the WalkSAT family. A solve runs in
three stages:

  * simplify(): duplicate / tautology removal and unit propagation to a fixpoint,
  * init_search(): random completion of the assignment and occurrence indices,
  * solve_(): break-count guided flips until every clause is satisfied
    or the flip budget (num_variables * flips-factor) is used up.

Failure only means "no solution found", never "unsatisfiable".
"""
from collections import namedtuple
from typing import List, Optional, Sequence

import numpy as np

from utils.utils import is_satisfied, seed_from_bytes


class Status:
    SAT = "SAT"
    CONTRADICTION = "CONTRADICTION"
    EXHAUSTED = "EXHAUSTED"
    UNDEF = "UNDEF"


# Flip trace event kinds
NOISE = "N"
GREEDY = "G"
ZERO_BREAK = "Z"


def var(lit: int) -> int:
    return abs(lit) - 1


def mkLit(var_index: int, value: bool) -> int:
    return var_index + 1 if value else -(var_index + 1)


class DoubleOption:
    def __init__(self, category, name, desc, default, drange):
        self.category = category
        self.name = name
        self.desc = desc
        self.range = drange
        self.value = self.check(default)

    def check(self, value):
        lo, hi = self.range
        value = float(value)
        if not lo <= value <= hi:
            raise ValueError(f"Option '{self.name}' must be in [{lo}, {hi}], got {value}.")
        return value


class IntOption(DoubleOption):
    def check(self, value):
        lo, hi = self.range
        if isinstance(value, bool) or int(value) != value:
            raise ValueError(f"Option '{self.name}' must be an integer, got {value!r}.")
        value = int(value)
        if not lo <= value <= hi:
            raise ValueError(f"Option '{self.name}' must be in [{lo}, {hi}], got {value}.")
        return value


class BoolOption:
    def __init__(self, category, name, desc, default):
        self.category = category
        self.name = name
        self.desc = desc
        self.value = bool(default)

    def check(self, value):
        return bool(value)


class RandomStream:
    """
    Deterministic source of uniform randomness for one solve attempt.

    Wraps a numpy PCG64 generator seeded with an unsigned 64-bit integer.
    Only two kinds of draws are made by the solver: a biased coin and a
    uniform index into a sequence.
    """

    def __init__(self, seed: int):
        if not 0 <= seed < 2 ** 64:
            raise ValueError(f"Seed must be an unsigned 64-bit integer, got {seed}.")
        self.seed = seed
        self.generator = np.random.Generator(np.random.PCG64(seed))

    @classmethod
    def from_seed_bytes(cls, seed: bytes) -> 'RandomStream':
        """Seed from the leading 8 bytes of `seed`, read as little-endian u64."""
        return cls(seed_from_bytes(seed))

    def gen_bool(self, p: float) -> bool:
        return bool(self.generator.random() < p)

    def gen_range(self, n: int) -> int:
        return int(self.generator.integers(n))


class ResidualSet:
    """
    Set of clause indices whose satisfaction counter is zero.

    Backed by a dense slot list and a position list indexed by clause id
    (-1 when absent). Removal swaps the last slot into the hole.
    """

    def __init__(self, num_clauses: int):
        self.slots: List[int] = []
        self.position: List[int] = [-1] * num_clauses

    def __len__(self) -> int:
        return len(self.slots)

    def __contains__(self, idx: int) -> bool:
        return self.position[idx] != -1

    def __iter__(self):
        return iter(self.slots)

    def is_empty(self) -> bool:
        return len(self.slots) == 0

    def insert(self, idx: int):
        if self.position[idx] != -1:
            return
        self.position[idx] = len(self.slots)
        self.slots.append(idx)

    def remove(self, idx: int):
        i = self.position[idx]
        if i == -1:
            raise KeyError(idx)
        last = self.slots.pop()
        if i < len(self.slots):
            self.slots[i] = last
            self.position[last] = i
        self.position[idx] = -1

    def pick_any(self) -> int:
        return self.slots[0]


class WalkSATSolver:
    def __init__(self, num_variables: int, rng: Optional[RandomStream] = None):
        if isinstance(num_variables, bool) or int(num_variables) != num_variables or num_variables < 1:
            raise ValueError(f"num_variables must be a positive integer, got {num_variables!r}.")
        _cat = "SEARCH"
        self.opt_max_flips_factor = IntOption(_cat, "flips-factor",
                                              "Flip budget per variable (K)", 35, (1, 2 ** 31))
        self.opt_noise = DoubleOption(_cat, "noise", "Probability of a random walk move", 0.5, (0, 1))
        self.opt_zero_break_first = BoolOption(_cat, "zero-break-first",
                                               "Take a zero-break move before flipping the noise coin", False)
        self.opt_check_model = BoolOption(_cat, "check-model", "Re-verify the model on success", True)
        self.opt_record_trace = BoolOption(_cat, "record-trace", "Record every flip", False)

        self.verbosity = 1
        self.progress_interval = 1000
        self.num_variables = int(num_variables)
        self.rng = rng if rng is not None else RandomStream(0)

        self.max_flips_factor = self.opt_max_flips_factor.value
        self.noise = self.opt_noise.value
        self.zero_break_first = self.opt_zero_break_first.value
        self.check_model = self.opt_check_model.value
        self.record_trace = self.opt_record_trace.value

        self.ok = True
        self.original_clauses: List[List[int]] = []
        self.clauses: List[List[int]] = []
        self.p_single = [False] * self.num_variables
        self.n_single = [False] * self.num_variables

        self.variables: List[bool] = []
        self.p_clauses: List[List[int]] = []
        self.n_clauses: List[List[int]] = []
        self.num_good_so_far: List[int] = []
        self.residual: Optional[ResidualSet] = None
        self.model: List[bool] = []

        self.status = Status.UNDEF
        self.simplify_rounds = 0
        self.forced_vars = 0
        self.flips = 0
        self.noise_moves = 0
        self.greedy_moves = 0
        self.zero_break_moves = 0
        self.min_unsat = 0
        self.trace = []
        self.initial_variables: List[bool] = []

    def set_option(self, name: str, value):
        """Set a SEARCH option by its command-line name ('flips-factor') or attribute name."""
        for opt, attr in ((self.opt_max_flips_factor, "max_flips_factor"),
                          (self.opt_noise, "noise"),
                          (self.opt_zero_break_first, "zero_break_first"),
                          (self.opt_check_model, "check_model"),
                          (self.opt_record_trace, "record_trace")):
            if name in (opt.name, attr):
                opt.value = opt.check(value)
                setattr(self, attr, opt.value)
                return
        raise ValueError(f"Unknown option '{name}'.")

    def nVars(self) -> int:
        return self.num_variables

    def nClauses(self) -> int:
        return len(self.clauses)

    def max_flips(self) -> int:
        return self.num_variables * self.max_flips_factor

    def addClause(self, lits: Sequence[int]):
        clause = []
        for lit in lits:
            if isinstance(lit, bool) or not isinstance(lit, (int, np.integer)):
                raise ValueError(f"Literal must be an integer, got {lit!r}.")
            lit = int(lit)
            if lit == 0 or abs(lit) > self.num_variables:
                raise ValueError(f"Literal {lit} out of range for {self.num_variables} variables.")
            clause.append(lit)
        self.original_clauses.append(clause)
        self.clauses.append(clause[:])

    def force(self, lit: int) -> bool:
        """Record `lit` as forced true. Returns False on a contradiction."""
        v = var(lit)
        if lit > 0:
            if self.n_single[v]:
                return False
            self.p_single[v] = True
        else:
            if self.p_single[v]:
                return False
            self.n_single[v] = True
        return True

    def simplify(self) -> bool:
        """
        Unit propagation to a fixpoint.

        Each pass filters every clause against the forced literals, drops
        satisfied and tautological clauses, removes duplicate and false
        literals, and turns unit clauses into forced literals. Passes repeat
        until nothing changes.

        Returns:
            False if a contradiction was found, True otherwise.
        """
        if not self.ok:
            return False
        clauses_ = self.clauses
        while True:
            self.simplify_rounds += 1
            done = True
            clauses = []
            for c in clauses_:
                c_ = []
                seen = set()
                skip = False
                for l in c:
                    if l in seen:
                        continue
                    v = var(l)
                    if (self.p_single[v] and l > 0) or (self.n_single[v] and l < 0) or -l in seen:
                        skip = True
                        break
                    elif self.p_single[v] or self.n_single[v]:
                        done = False
                    else:
                        c_.append(l)
                        seen.add(l)

                if skip:
                    done = False
                    continue

                if len(c_) == 0:
                    self.ok = False
                elif len(c_) == 1:
                    done = False
                    self.forced_vars += 1
                    self.ok = self.force(c_[0])
                else:
                    clauses.append(c_)

                if not self.ok:
                    self.clauses = []
                    if self.verbosity >= 2:
                        print(f"simplify round {self.simplify_rounds}: contradiction")
                    return False

            if self.verbosity >= 2:
                print(f"simplify round {self.simplify_rounds}: {len(clauses)} clauses, "
                      f"{self.forced_vars} forced")
            clauses_ = clauses
            if done:
                break

        self.clauses = clauses_
        return True

    def init_search(self):
        """Complete the assignment and build occurrence lists, counters and the residual set."""
        self.variables = [False] * self.num_variables
        for v in range(self.num_variables):
            if self.p_single[v]:
                self.variables[v] = True
            elif self.n_single[v]:
                self.variables[v] = False
            else:
                self.variables[v] = self.rng.gen_bool(0.5)
        if self.record_trace:
            self.initial_variables = self.variables[:]

        self.p_clauses = [[] for _ in range(self.num_variables)]
        self.n_clauses = [[] for _ in range(self.num_variables)]
        self.num_good_so_far = [0] * len(self.clauses)

        for i, c in enumerate(self.clauses):
            for l in c:
                v = var(l)
                if l > 0:
                    self.p_clauses[v].append(i)
                    if self.variables[v]:
                        self.num_good_so_far[i] += 1
                else:
                    self.n_clauses[v].append(i)
                    if not self.variables[v]:
                        self.num_good_so_far[i] += 1

        self.residual = ResidualSet(len(self.clauses))
        for i, num_good in enumerate(self.num_good_so_far):
            if num_good == 0:
                self.residual.insert(i)
        self.min_unsat = len(self.residual)

    def break_count(self, v: int, bound: Optional[int] = None) -> int:
        """
        Number of clauses only satisfied by `v` that a flip of `v` would break.

        Counting stops once it exceeds `bound`.
        """
        occurrences = self.p_clauses[v] if self.variables[v] else self.n_clauses[v]
        sad = 0
        for c in occurrences:
            if self.num_good_so_far[c] == 1:
                sad += 1
                if bound is not None and sad > bound:
                    break
        return sad

    def pickFlipVar(self, c: List[int]):
        """
        Choose the variable to flip from the unsatisfied clause `c`.

        Returns:
            (variable index, trace event kind)
        """
        if not self.zero_break_first and self.rng.gen_bool(self.noise):
            return var(c[self.rng.gen_range(len(c))]), NOISE

        min_sad = len(self.clauses)
        v_min_sad = []
        for l in c:
            v = var(l)
            sad = self.break_count(v, min_sad)
            if sad < min_sad:
                min_sad = sad
                v_min_sad = [v]
            elif sad == min_sad:
                v_min_sad.append(v)

        if self.zero_break_first:
            if min_sad == 0:
                if len(v_min_sad) == 1:
                    return v_min_sad[0], ZERO_BREAK
                return v_min_sad[self.rng.gen_range(len(v_min_sad))], ZERO_BREAK
            if self.rng.gen_bool(self.noise):
                return var(c[self.rng.gen_range(len(c))]), NOISE

        return v_min_sad[self.rng.gen_range(len(v_min_sad))], GREEDY

    def flip(self, v: int):
        """Flip `v` and update counters and the residual set."""
        num_good = self.num_good_so_far
        residual = self.residual
        if self.variables[v]:
            for c in self.n_clauses[v]:
                num_good[c] += 1
                if num_good[c] == 1:
                    residual.remove(c)
            for c in self.p_clauses[v]:
                if num_good[c] == 1:
                    residual.insert(c)
                num_good[c] -= 1
        else:
            for c in self.n_clauses[v]:
                if num_good[c] == 1:
                    residual.insert(c)
                num_good[c] -= 1
            for c in self.p_clauses[v]:
                num_good[c] += 1
                if num_good[c] == 1:
                    residual.remove(c)
        self.variables[v] = not self.variables[v]

    def search(self, max_flips: int) -> str:
        while not self.residual.is_empty():
            if self.flips >= max_flips:
                return Status.EXHAUSTED

            c = self.clauses[self.residual.pick_any()]
            v, kind = self.pickFlipVar(c)
            self.flip(v)
            self.flips += 1

            if kind == NOISE:
                self.noise_moves += 1
            elif kind == ZERO_BREAK:
                self.zero_break_moves += 1
            else:
                self.greedy_moves += 1
            if self.record_trace:
                self.trace.append((kind, mkLit(v, self.variables[v])))
            if len(self.residual) < self.min_unsat:
                self.min_unsat = len(self.residual)

            if self.verbosity >= 1 and self.flips % self.progress_interval == 0:
                noise_pct = self.noise_moves * 100 / self.flips
                print("| %10d | %9d %9d | %6.2f %% |" % (
                    self.flips, len(self.residual), self.min_unsat, noise_pct))
        return Status.SAT

    def solve_(self) -> str:
        """
        Run simplification (if not done yet), initialization and search.

        Every call starts a fresh search with its own flip budget; the
        random stream is not rewound, so repeated calls explore new
        starting assignments.

        Returns:
            Status.SAT with self.model set, or Status.CONTRADICTION /
            Status.EXHAUSTED with an empty model.
        """
        self.model = []
        if self.simplify_rounds == 0:
            self.simplify()
        if not self.ok:
            self.status = Status.CONTRADICTION
            return self.status

        self.flips = 0
        self.noise_moves = 0
        self.greedy_moves = 0
        self.zero_break_moves = 0
        self.trace = []
        self.init_search()

        if self.verbosity >= 1:
            print("============================[ Search Statistics ]==============================")
            print("| Vars %8d | Clauses %8d | Reduced %8d | Forced %8d | Budget %10d |" % (
                self.num_variables, len(self.original_clauses), len(self.clauses),
                self.forced_vars, self.max_flips()))
            print("|   Flips    |   Unsat   Best      |  Noise   |")
            print("===============================================================================")

        self.status = self.search(self.max_flips())

        if self.verbosity >= 1:
            print("===============================================================================")

        if self.status == Status.SAT:
            self.model = self.variables[:]
            if self.check_model and not is_satisfied(self.original_clauses, self.model):
                raise RuntimeError("Invalid solution found!")
        return self.status

    def stats(self) -> dict:
        return {
            'status': self.status,
            'simplify_rounds': self.simplify_rounds,
            'forced_vars': self.forced_vars,
            'n_reduced': len(self.clauses),
            'flips': self.flips,
            'noise_moves': self.noise_moves,
            'greedy_moves': self.greedy_moves,
            'zero_break_moves': self.zero_break_moves,
            'min_unsat': self.min_unsat,
        }


Instance = namedtuple("Instance", ["num_variables", "clauses", "seed"])


def solve_instance(instance: Instance, verbosity: int = 0, **options) -> Optional[List[bool]]:
    """
    Solve one instance.

    Args:
        instance: Instance(num_variables, clauses, seed); the first 8 bytes of
            seed are a little-endian u64 seeding the random stream.
        verbosity: Solver verbosity.
        **options: SEARCH options by attribute name, e.g. max_flips_factor=25,
            zero_break_first=True.

    Returns:
        A list of num_variables bools satisfying every clause, or None when
        no solution was found.
    """
    solver = WalkSATSolver(instance.num_variables, RandomStream.from_seed_bytes(instance.seed))
    solver.verbosity = verbosity
    for name, value in options.items():
        solver.set_option(name, value)
    for clause in instance.clauses:
        solver.addClause(clause)

    if solver.solve_() == Status.SAT:
        return solver.model
    return None
