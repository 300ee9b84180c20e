# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Unit tests for the WalkSAT search: index building, selection policies,
incremental bookkeeping, determinism and end-to-end solving.
"""
import io
import itertools
import unittest
from contextlib import redirect_stdout
from unittest import mock

import numpy as np

from py_walksat.walksat import (WalkSATSolver, RandomStream, Instance, Status, solve_instance,
                                NOISE, GREEDY, ZERO_BREAK)
from generate_dataset.gen_cnf_buckets import generate_sat_problem
from utils.utils import seed_to_bytes, seed_from_bytes, is_satisfied
from utils.trace_utils import replay_trace, count_moves


class ScriptedStream:
    """Random stream that replays fixed draws and records every call."""

    def __init__(self, bools=(), ranges=()):
        self.bools = list(bools)
        self.ranges = list(ranges)
        self.calls = []

    def gen_bool(self, p):
        self.calls.append(('bool', p))
        return self.bools.pop(0)

    def gen_range(self, n):
        self.calls.append(('range', n))
        value = self.ranges.pop(0)
        assert 0 <= value < n
        return value


def make_solver(num_variables, clauses, rng=None, **options):
    solver = WalkSATSolver(num_variables, rng)
    solver.verbosity = 0
    for name, value in options.items():
        solver.set_option(name, value)
    for clause in clauses:
        solver.addClause(clause)
    return solver


def random_instance(seed, num_vars=30, num_clauses=90):
    return generate_sat_problem(num_vars, num_clauses, 3, np.random.default_rng(seed))


class TestInitSearch(unittest.TestCase):
    def test_occurrence_lists_and_counters(self):
        rng = ScriptedStream(bools=[True, False, False])
        solver = make_solver(3, [[1, 2], [-1, 3], [-2, -3]], rng)
        solver.simplify()
        solver.init_search()

        self.assertEqual(solver.variables, [True, False, False])
        self.assertEqual(solver.p_clauses, [[0], [0], [1]])
        self.assertEqual(solver.n_clauses, [[1], [2], [2]])
        self.assertEqual(solver.num_good_so_far, [1, 0, 2])
        self.assertEqual(solver.residual.slots, [1])

    def test_forced_variables_consume_no_randomness(self):
        rng = ScriptedStream(bools=[True, False, True])
        solver = make_solver(4, [[-1], [2, 3], [-2, -3, 4], [3, 4]], rng)
        solver.simplify()
        solver.init_search()

        self.assertEqual(solver.variables[0], False)
        self.assertEqual(solver.variables[1:3], [True, False])
        self.assertEqual(len(rng.calls), 3)
        self.assertEqual(len(rng.bools), 0)

    def test_initial_residual_in_ascending_order(self):
        rng = ScriptedStream(bools=[False, False, False])
        solver = make_solver(3, [[1, 2], [-1, 2], [2, 3], [1, 3]], rng)
        solver.simplify()
        solver.init_search()
        self.assertEqual(solver.residual.slots, [0, 2, 3])

    def test_break_count(self):
        rng = ScriptedStream(bools=[False, False, False])
        solver = make_solver(3, [[1, 2], [-1, 3], [-1, 2, 3], [-2, 3]], rng)
        solver.simplify()
        solver.init_search()
        # Clauses 1 and 2 are satisfied by -1 alone
        self.assertEqual(solver.break_count(0), 2)
        self.assertEqual(solver.break_count(1), 1)
        self.assertEqual(solver.break_count(2), 0)
        self.assertEqual(solver.break_count(0, bound=0), 1)


class TestPickFlipVar(unittest.TestCase):
    # All variables start false: clause 0 is the only unsatisfied clause and
    # flipping either of its variables breaks exactly one clause.
    CLAUSES = [[1, 2], [-1, 3], [-2, 3]]

    def test_greedy_move(self):
        rng = ScriptedStream(bools=[False, False, False, False], ranges=[1])
        solver = make_solver(3, self.CLAUSES, rng)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar(solver.clauses[solver.residual.pick_any()])
        self.assertEqual((v, kind), (1, GREEDY))
        self.assertEqual(rng.calls[3:], [('bool', 0.5), ('range', 2)])

    def test_noise_move(self):
        rng = ScriptedStream(bools=[False, False, False, True], ranges=[0])
        solver = make_solver(3, self.CLAUSES, rng)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar(solver.clauses[solver.residual.pick_any()])
        self.assertEqual((v, kind), (0, NOISE))
        self.assertEqual(rng.calls[3:], [('bool', 0.5), ('range', 2)])

    def test_greedy_samples_only_minimum_break_set(self):
        # x1 breaks one clause, x2 breaks none
        rng = ScriptedStream(bools=[False, False, False, False], ranges=[0])
        solver = make_solver(3, [[1, 2], [-1, 3], [-1, -3]], rng)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar([1, 2])
        self.assertEqual((v, kind), (1, GREEDY))
        self.assertEqual(rng.calls[3:], [('bool', 0.5), ('range', 1)])

    def test_zero_break_first_skips_coin(self):
        rng = ScriptedStream(bools=[False, False], ranges=[1])
        solver = make_solver(2, [[1, 2]], rng, zero_break_first=True)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar(solver.clauses[0])
        self.assertEqual((v, kind), (1, ZERO_BREAK))
        self.assertEqual(rng.calls[2:], [('range', 2)])

    def test_zero_break_first_singleton_uses_no_randomness(self):
        rng = ScriptedStream(bools=[False, False])
        solver = make_solver(2, [[1, 2], [-2, 1]], rng, zero_break_first=True)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar(solver.clauses[solver.residual.pick_any()])
        self.assertEqual((v, kind), (0, ZERO_BREAK))
        self.assertEqual(len(rng.calls), 2)

    def test_zero_break_first_falls_back_to_noise_coin(self):
        rng = ScriptedStream(bools=[False, False, False, True], ranges=[0])
        solver = make_solver(3, self.CLAUSES, rng, zero_break_first=True)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar(solver.clauses[0])
        self.assertEqual((v, kind), (0, NOISE))
        self.assertEqual(rng.calls[3:], [('bool', 0.5), ('range', 2)])

    def test_noise_first_takes_coin_even_with_zero_break(self):
        rng = ScriptedStream(bools=[False, False, True], ranges=[0])
        solver = make_solver(2, [[1, 2]], rng)
        solver.simplify()
        solver.init_search()

        v, kind = solver.pickFlipVar(solver.clauses[0])
        self.assertEqual((v, kind), (0, NOISE))


class TestFlip(unittest.TestCase):
    def assertInvariants(self, solver):
        for i, clause in enumerate(solver.clauses):
            good = sum(1 for l in clause if solver.variables[abs(l) - 1] == (l > 0))
            self.assertEqual(solver.num_good_so_far[i], good)
            self.assertEqual(i in solver.residual, good == 0)
        for slot, idx in enumerate(solver.residual.slots):
            self.assertEqual(solver.residual.position[idx], slot)

    def test_flip_updates_counters_and_residual(self):
        rng = ScriptedStream(bools=[False, False, False])
        solver = make_solver(3, TestPickFlipVar.CLAUSES, rng)
        solver.simplify()
        solver.init_search()

        solver.flip(1)
        self.assertEqual(solver.variables, [False, True, False])
        self.assertEqual(solver.num_good_so_far, [1, 1, 0])
        self.assertEqual(solver.residual.slots, [2])
        self.assertInvariants(solver)

    def run_invariant_walk(self, zero_break_first):
        clauses = random_instance(11)
        solver = make_solver(30, clauses, RandomStream(5), zero_break_first=zero_break_first)
        solver.simplify()
        solver.init_search()
        self.assertInvariants(solver)

        for _ in range(300):
            if solver.residual.is_empty():
                break
            v, _ = solver.pickFlipVar(solver.clauses[solver.residual.pick_any()])
            before = solver.num_good_so_far[:]
            solver.flip(v)
            self.assertInvariants(solver)
            for i, clause in enumerate(solver.clauses):
                delta = solver.num_good_so_far[i] - before[i]
                if any(abs(l) - 1 == v for l in clause):
                    self.assertEqual(abs(delta), 1)
                else:
                    self.assertEqual(delta, 0)

    def test_invariants_after_every_flip(self):
        self.run_invariant_walk(zero_break_first=False)

    def test_invariants_after_every_flip_zero_break_first(self):
        self.run_invariant_walk(zero_break_first=True)


class TestSolve(unittest.TestCase):
    def test_single_unit_clause(self):
        self.assertEqual(solve_instance(Instance(1, [[1]], seed_to_bytes(0))), [True])

    def test_opposite_units(self):
        self.assertIsNone(solve_instance(Instance(1, [[1], [-1]], seed_to_bytes(0))))

    def test_two_variable_xor(self):
        clauses = [[1, 2], [-1, -2]]
        for seed in range(20):
            model = solve_instance(Instance(2, clauses, seed_to_bytes(seed)))
            self.assertIn(model, ([True, False], [False, True]))
            self.assertTrue(is_satisfied(clauses, model))
        self.assertFalse(is_satisfied(clauses, [True, True]))
        self.assertFalse(is_satisfied(clauses, [False, False]))

    def test_tautology_only_instance(self):
        model = solve_instance(Instance(1, [[1, 1, -1]], seed_to_bytes(3)))
        self.assertIsNotNone(model)
        self.assertEqual(len(model), 1)

    def test_contradiction_regardless_of_seed(self):
        for seed in range(10):
            self.assertIsNone(solve_instance(Instance(2, [[1, 2], [-1], [-2]], seed_to_bytes(seed))))
            self.assertIsNone(solve_instance(Instance(2, [[1, 2], []], seed_to_bytes(seed))))

    def test_contradiction_status(self):
        solver = make_solver(2, [[1, 2], [-1], [-2]], RandomStream(0))
        self.assertEqual(solver.solve_(), Status.CONTRADICTION)
        self.assertEqual(solver.flips, 0)
        self.assertEqual(solver.model, [])

    def test_budget_exhausted(self):
        clauses = [list(signs) for signs in itertools.product([1, -1], [2, -2], [3, -3])]
        solver = make_solver(3, clauses, RandomStream(1), max_flips_factor=5)
        self.assertEqual(solver.solve_(), Status.EXHAUSTED)
        self.assertEqual(solver.flips, 15)
        self.assertEqual(solver.model, [])
        self.assertIsNone(solve_instance(Instance(3, clauses, seed_to_bytes(1)), max_flips_factor=5))

    def test_solved_on_last_allowed_flip(self):
        # Start x1 = x2 = False; noise moves flip x2 then x1, budget 2 * 1
        rng = ScriptedStream(bools=[False, False, True, True], ranges=[1, 0])
        solver = make_solver(2, [[1, 2], [1, -2]], rng, max_flips_factor=1)
        self.assertEqual(solver.solve_(), Status.SAT)
        self.assertEqual(solver.flips, solver.max_flips())
        self.assertEqual(solver.model, [True, True])
        self.assertEqual(rng.bools, [])
        self.assertEqual(rng.ranges, [])

    def test_model_check_uses_shared_checker(self):
        solver = make_solver(2, [[1, 2], [-1, -2]], RandomStream(0))
        with mock.patch("py_walksat.walksat.is_satisfied", return_value=False) as checker:
            with self.assertRaises(RuntimeError):
                solver.solve_()
        checker.assert_called_once_with([[1, 2], [-1, -2]], solver.model)

        solver = make_solver(2, [[1, 2], [-1, -2]], RandomStream(0), check_model=False)
        with mock.patch("py_walksat.walksat.is_satisfied", return_value=False) as checker:
            self.assertEqual(solver.solve_(), Status.SAT)
        checker.assert_not_called()

    def test_repeated_solve_gets_fresh_budget(self):
        class CountingStream(RandomStream):
            coins = 0

            def gen_bool(self, p):
                self.coins += 1
                return super().gen_bool(p)

        clauses = [list(signs) for signs in itertools.product([1, -1], [2, -2], [3, -3])]
        rng = CountingStream(1)
        solver = make_solver(3, clauses, rng, max_flips_factor=5, record_trace=True)
        self.assertEqual(solver.solve_(), Status.EXHAUSTED)
        coins = rng.coins

        self.assertEqual(solver.solve_(), Status.EXHAUSTED)
        # Three initial values plus one noise coin per flip
        self.assertEqual(rng.coins - coins, 3 + 15)
        self.assertEqual(solver.flips, 15)
        self.assertEqual(solver.noise_moves + solver.greedy_moves, 15)
        self.assertEqual(len(solver.trace), 15)

    def test_solved_without_flips(self):
        solver = make_solver(2, [[1, -1], [2, 2, -2]], RandomStream(0))
        self.assertEqual(solver.solve_(), Status.SAT)
        self.assertEqual(solver.flips, 0)

    def test_model_satisfies_original_clauses(self):
        clauses = [[1], [-1, 2], [2, 3, -4], [4, -3, 5], [-5, -2, 6], [6, 6, -6]]
        for seed in range(10):
            model = solve_instance(Instance(6, clauses, seed_to_bytes(seed)))
            self.assertIsNotNone(model)
            self.assertEqual(len(model), 6)
            self.assertTrue(is_satisfied(clauses, model))

    def test_deterministic(self):
        clauses = random_instance(3)
        runs = []
        for _ in range(2):
            solver = make_solver(30, clauses, RandomStream.from_seed_bytes(seed_to_bytes(77)), record_trace=True)
            result = solver.solve_()
            runs.append((result, solver.model, solver.trace, solver.stats()))
        self.assertEqual(runs[0], runs[1])

    def test_seed_reads_leading_eight_bytes(self):
        clauses = random_instance(4)
        a = solve_instance(Instance(30, clauses, seed_to_bytes(9) + b"ignored tail"))
        b = solve_instance(Instance(30, clauses, seed_to_bytes(9)))
        self.assertEqual(a, b)

    def test_trace_replays_to_model(self):
        clauses = random_instance(8)
        solver = make_solver(30, clauses, RandomStream(2), record_trace=True, max_flips_factor=1000)
        self.assertEqual(solver.solve_(), Status.SAT)
        self.assertEqual(replay_trace(solver.initial_variables, solver.trace), solver.model)

        counts = count_moves(solver.trace)
        self.assertEqual(len(solver.trace), solver.flips)
        self.assertEqual(counts['N'], solver.noise_moves)
        self.assertEqual(counts['G'], solver.greedy_moves)
        self.assertEqual(counts['Z'], solver.zero_break_moves)

    def test_move_counters_add_up(self):
        solver = make_solver(30, random_instance(6), RandomStream(4), zero_break_first=True)
        solver.solve_()
        self.assertEqual(solver.noise_moves + solver.greedy_moves + solver.zero_break_moves, solver.flips)
        self.assertLessEqual(solver.flips, solver.max_flips())

    def test_random_3sat_below_threshold(self):
        rng = np.random.default_rng(2024)
        instances = [generate_sat_problem(40, 100, 3, rng) for _ in range(5)]
        for zero_break_first in (False, True):
            solved = 0
            for clauses, seed in itertools.product(instances, range(10)):
                model = solve_instance(Instance(40, clauses, seed_to_bytes(seed)),
                                       zero_break_first=zero_break_first)
                if model is not None:
                    self.assertTrue(is_satisfied(clauses, model))
                    solved += 1
            self.assertGreaterEqual(solved, 45)

    def test_verbose_output(self):
        solver = make_solver(30, random_instance(5), RandomStream(3))
        solver.verbosity = 2
        solver.progress_interval = 1
        out = io.StringIO()
        with redirect_stdout(out):
            solver.solve_()
        text = out.getvalue()
        self.assertIn("simplify round 1", text)
        self.assertIn("Search Statistics", text)


class TestInputValidation(unittest.TestCase):
    def test_zero_variables(self):
        with self.assertRaises(ValueError):
            WalkSATSolver(0)

    def test_literal_out_of_range(self):
        solver = WalkSATSolver(3)
        with self.assertRaises(ValueError):
            solver.addClause([1, 4])
        with self.assertRaises(ValueError):
            solver.addClause([-4])

    def test_zero_literal(self):
        with self.assertRaises(ValueError):
            WalkSATSolver(3).addClause([1, 0])

    def test_non_integer_literal(self):
        with self.assertRaises(ValueError):
            WalkSATSolver(3).addClause([1.5])
        with self.assertRaises(ValueError):
            WalkSATSolver(3).addClause([True])

    def test_numpy_integer_literal_accepted(self):
        solver = WalkSATSolver(3)
        solver.addClause([np.int64(2), np.int32(-3)])
        self.assertEqual(solver.original_clauses, [[2, -3]])

    def test_short_seed(self):
        with self.assertRaises(ValueError):
            solve_instance(Instance(1, [[1]], b"1234"))

    def test_stream_seed_matches_helper(self):
        for raw in (b"\x07" * 8, seed_to_bytes(2 ** 63 + 5) + b"tail", bytearray(range(8))):
            self.assertEqual(RandomStream.from_seed_bytes(raw).seed, seed_from_bytes(raw))

    def test_option_range(self):
        solver = WalkSATSolver(3)
        with self.assertRaises(ValueError):
            solver.set_option("noise", 1.5)
        with self.assertRaises(ValueError):
            solver.set_option("flips-factor", 0)
        with self.assertRaises(ValueError):
            solver.set_option("flips-factor", 2.5)
        with self.assertRaises(ValueError):
            solver.set_option("no-such-option", 1)

    def test_option_names(self):
        solver = WalkSATSolver(3)
        solver.set_option("flips-factor", 25)
        solver.set_option("zero_break_first", True)
        self.assertEqual(solver.max_flips(), 75)
        self.assertTrue(solver.zero_break_first)


class TestRandomStream(unittest.TestCase):
    def test_seed_bytes_little_endian(self):
        self.assertEqual(RandomStream.from_seed_bytes(b"\x01" + b"\x00" * 7).seed, 1)
        self.assertEqual(RandomStream.from_seed_bytes(b"\x00\x01" + b"\x00" * 6).seed, 256)

    def test_same_seed_same_draws(self):
        a, b = RandomStream(123), RandomStream(123)
        self.assertEqual([a.gen_range(7) for _ in range(20)], [b.gen_range(7) for _ in range(20)])
        self.assertEqual([a.gen_bool(0.5) for _ in range(20)], [b.gen_bool(0.5) for _ in range(20)])

    def test_draw_ranges(self):
        rng = RandomStream(9)
        for _ in range(100):
            self.assertIn(rng.gen_range(3), (0, 1, 2))
        self.assertFalse(any(rng.gen_bool(0.0) for _ in range(50)))
        self.assertTrue(all(rng.gen_bool(1.0) for _ in range(50)))

    def test_seed_out_of_range(self):
        with self.assertRaises(ValueError):
            RandomStream(-1)
        with self.assertRaises(ValueError):
            RandomStream(2 ** 64)


if __name__ == '__main__':
    unittest.main()
