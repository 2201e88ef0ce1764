"""
End-to-End Tests for the Compile/Execute Facade
===============================================
"""

import sys
import os
import unittest

import numpy as np

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarkdsl.runtime import compile_source, execute, format_result


BELL = """
@quantum
fn main() -> int {
    h(0);
    cx(0, 1);
    return measure(0);
}
"""

BELL_PAIR = """
@quantum
fn main() -> int {
    h(0);
    cx(0, 1);
    let a = measure(0);
    let b = measure(1);
    if a == b { return 1; }
    return 0;
}
"""


class TestPrograms(unittest.TestCase):
    """Reference programs."""

    def test_arithmetic(self):
        result = execute("fn main() -> int { let x = 5; let y = 3; return x + y * 2; }")
        self.assertTrue(result.success)
        self.assertEqual(result.return_value, 11)

    def test_array_loop(self):
        result = execute("""
            fn main() -> int {
                let arr = [1, 2, 3, 4, 5];
                let sum = 0;
                for i in 0..5 {
                    sum = sum + arr[i];
                }
                return sum;
            }
        """)
        self.assertEqual(result.return_value, 15)

    def test_function_call(self):
        result = execute("""
            fn add(a: int, b: int) -> int { return a + b; }
            fn main() -> int { return add(10, 20); }
        """)
        self.assertEqual(result.return_value, 30)

    def test_conditional(self):
        result = execute("""
            fn main() -> int {
                let x = 10;
                if x > 5 { return 1; } else { return 0; }
            }
        """)
        self.assertEqual(result.return_value, 1)

    def test_bell_range(self):
        for seed in range(10):
            result = execute(BELL, rng=np.random.default_rng(seed))
            self.assertTrue(result.success)
            self.assertIn(result.return_value, (0, 1))

    def test_bell_correlation(self):
        agree = sum(
            execute(BELL_PAIR, rng=np.random.default_rng(seed)).return_value
            for seed in range(50)
        )
        self.assertEqual(agree, 50)

    def test_bell_counts_after_collapse(self):
        """Both qubits collapsed together, so one outcome fills every shot."""
        result = execute(BELL, rng=np.random.default_rng(4))
        self.assertEqual(len(result.quantum_counts), 1)
        state, shots = next(iter(result.quantum_counts.items()))
        self.assertIn(state, ("00000000", "00000011"))
        self.assertEqual(shots, 1024)
        self.assertEqual(result.gate_log, ["H(q0)", "CX(q0, q1)", "MEASURE(q0)"])

    def test_empty_range(self):
        result = execute("""
            fn main() -> int {
                let n = 0;
                for i in 0..0 { n = n + 1; }
                return n;
            }
        """)
        self.assertEqual(result.return_value, 0)

    def test_early_return_from_loop(self):
        result = execute("""
            fn find(xs: [int], target: int) -> int {
                for i in 0..len(xs) {
                    if xs[i] == target { return i; }
                }
                return -1;
            }
            fn main() -> int { return find([4, 8, 15, 16], 15); }
        """)
        self.assertEqual(result.return_value, 2)

    def test_loop_bound_reevaluated(self):
        result = execute("""
            fn main() -> int {
                let n = 3;
                let count = 0;
                for i in 0..n {
                    if i == 0 { n = 5; }
                    count = count + 1;
                }
                return count;
            }
        """)
        self.assertEqual(result.return_value, 5)

    def test_custom_entry_point(self):
        result = execute("fn start() -> int { return 9; }", entry_point="start")
        self.assertEqual(result.return_value, 9)


class TestFailures(unittest.TestCase):
    """Errors are reported, never raised."""

    def test_infinite_loop(self):
        result = execute("""
            fn main() -> int {
                for i in 0..1 { i = i - 1; }
                return 0;
            }
        """)
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "IterationLimitError")
        self.assertIn("Maximum iteration limit exceeded", result.error)

    def test_custom_iteration_limit(self):
        result = execute("""
            fn main() -> int {
                let s = 0;
                for i in 0..100 { s = s + i; }
                return s;
            }
        """, max_iterations=200)
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "IterationLimitError")

    def test_lex_error(self):
        result = execute("fn main() -> int { return 1 # 2; }")
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "LexError")

    def test_parse_error(self):
        result = execute("fn main() -> int { return 1 }")
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "ParseError")
        self.assertIn("line 1", result.error)

    def test_duplicate_function(self):
        result = execute("fn main() -> int { return 1; } fn main() -> int { return 2; }")
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "DuplicateFunctionError")

    def test_missing_entry(self):
        result = execute("fn helper() -> int { return 1; }")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Entry point function 'main' not found")

    def test_runtime_error(self):
        result = execute("fn main() -> int { return y; }")
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, "VMRuntimeError")
        self.assertEqual(result.error, "Undefined variable: y")


class TestCompileSource(unittest.TestCase):
    """compile_source()."""

    def test_success(self):
        compiled = compile_source("fn main() -> int { return 1; }")
        self.assertTrue(compiled.success)
        self.assertEqual(compiled.ast.function_names(), ["main"])
        self.assertIn("main", compiled.ir)
        self.assertIsNone(compiled.error)

    def test_failure(self):
        compiled = compile_source("fn main(")
        self.assertFalse(compiled.success)
        self.assertIsNone(compiled.ir)
        self.assertEqual(compiled.error_type, "ParseError")

    def test_deterministic(self):
        source = BELL_PAIR
        self.assertEqual(compile_source(source).ast, compile_source(source).ast)
        self.assertEqual(compile_source(source).ir, compile_source(source).ir)


class TestExamplePrograms(unittest.TestCase):
    """Programs shipped in examples/."""

    EXAMPLES = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "examples")

    def load(self, name):
        with open(os.path.join(self.EXAMPLES, name), 'r') as f:
            return f.read()

    def test_bell_state(self):
        result = execute(self.load("bell_state.qk"), rng=np.random.default_rng(1))
        self.assertTrue(result.success, result.error)
        self.assertEqual(set(result.quantum_counts), {"00000000", "00000011"})
        self.assertEqual(result.output, ["0 1"])

    def test_vector_math(self):
        result = execute(self.load("vector_math.qk"))
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.return_value, 5.0)
        self.assertEqual(result.output, ["[9, 16]"])


class TestFormatResult(unittest.TestCase):
    """Console report."""

    def test_sections(self):
        result = execute("""
            @quantum
            fn main() -> int {
                println(42);
                h(0);
                return 7;
            }
        """, rng=np.random.default_rng(0))
        report = format_result(result)
        self.assertIn("=== Output ===\n42", report)
        self.assertIn("Return value: 7", report)
        self.assertIn("Execution time: ", report)
        self.assertIn("=== Quantum Circuit ===\nH(q0)", report)
        self.assertIn("=== Quantum Measurement Results (1024 shots) ===", report)
        self.assertIn("|00000000>: ", report)
        self.assertIn("|00000001>: ", report)
        self.assertEqual(str(result), report)

    def test_failure_line(self):
        result = execute("fn main() -> int { return y; }")
        self.assertEqual(format_result(result), "❌ VMRuntimeError: Undefined variable: y")


if __name__ == "__main__":
    # Run with verbose output
    unittest.main(verbosity=2)
