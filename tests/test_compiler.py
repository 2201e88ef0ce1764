"""
Unit Tests for the QuarkDSL Compiler Stack
==========================================

Tests the Q-ISA, the AST -> bytecode lowering and the text assembler
without executing anything.
"""

import sys
import os
import unittest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarkdsl.ast import Domain
from quarkdsl.compiler import (
    BUILTINS,
    QUANTUM_GATES,
    BytecodeAssembler,
    BytecodeCompiler,
    assemble,
)
from quarkdsl.errors import CompileError, DuplicateFunctionError
from quarkdsl.isa import (
    BytecodeFunction,
    BytecodeModule,
    Instruction,
    OpCode,
    dump_module,
)
from quarkdsl.parser import parse_source


def compile_text(source: str) -> BytecodeModule:
    return BytecodeCompiler().compile(parse_source(source))


def opcodes(func: BytecodeFunction):
    return [i.opcode for i in func.instructions]


class TestOpCodes(unittest.TestCase):
    """Test Q-ISA OpCode enum."""

    def test_all_opcodes_defined(self):
        required = [
            'PUSH', 'POP', 'ADD', 'SUB', 'MUL', 'DIV', 'MOD', 'NEG',
            'EQ', 'NE', 'LT', 'LE', 'GT', 'GE', 'AND', 'OR', 'NOT',
            'LOAD', 'STORE', 'LOAD_INDEX', 'STORE_INDEX',
            'JUMP', 'JUMP_IF_FALSE', 'CALL', 'RETURN',
            'NEW_ARRAY', 'BUILTIN_CALL', 'QUANTUM_GATE',
        ]
        for op in required:
            self.assertTrue(hasattr(OpCode, op), f"Missing OpCode: {op}")

    def test_opcode_values_unique(self):
        values = [op.value for op in OpCode]
        self.assertEqual(len(values), len(set(values)))

    def test_builtins_and_gates_disjoint(self):
        self.assertFalse(set(BUILTINS) & set(QUANTUM_GATES))


class TestInstruction(unittest.TestCase):
    """Test Instruction helpers."""

    def test_push(self):
        instr = Instruction.push(5)
        self.assertEqual(instr.opcode, OpCode.PUSH)
        self.assertEqual(instr.operand, 5)
        self.assertEqual(str(instr), "PUSH 5")

    def test_call_carries_argc(self):
        instr = Instruction.call("add", 2)
        self.assertEqual((instr.operand, instr.operand2), ("add", 2))
        self.assertEqual(str(instr), "CALL add 2")

    def test_bool_operand_text(self):
        self.assertEqual(str(Instruction.push(True)), "PUSH true")

    def test_retarget(self):
        jump = Instruction.jump(-1, conditional=True)
        self.assertEqual(jump.retarget(7), Instruction(OpCode.JUMP_IF_FALSE, 7))


class TestModule(unittest.TestCase):
    """Test BytecodeModule bookkeeping."""

    def test_duplicate_rejected(self):
        module = BytecodeModule()
        module.add(BytecodeFunction("f", [], (Instruction(OpCode.RETURN),)))
        with self.assertRaises(DuplicateFunctionError):
            module.add(BytecodeFunction("f", [], ()))

    def test_lookup(self):
        module = BytecodeModule([BytecodeFunction("f", ["a"], ())])
        self.assertIn("f", module)
        self.assertIsNone(module.get("g"))
        self.assertEqual(module.get("f").params, ["a"])


class TestLowering(unittest.TestCase):
    """Test AST -> bytecode lowering."""

    def test_arithmetic_postfix_order(self):
        module = compile_text("fn main() -> int { let x = 5; let y = 3; return x + y * 2; }")
        self.assertEqual(
            list(module.get("main").instructions),
            [
                Instruction.push(5), Instruction.store("x"),
                Instruction.push(3), Instruction.store("y"),
                Instruction.load("x"), Instruction.load("y"), Instruction.push(2),
                Instruction(OpCode.MUL), Instruction(OpCode.ADD),
                Instruction(OpCode.RETURN),
            ],
        )

    def test_implicit_return(self):
        func = compile_text("fn f() -> void { }").get("f")
        self.assertEqual(list(func.instructions), [Instruction.push(0), Instruction(OpCode.RETURN)])

    def test_expression_statement_pops(self):
        func = compile_text("fn f() -> void { 1 + 2; }").get("f")
        self.assertEqual(opcodes(func)[:4], [OpCode.PUSH, OpCode.PUSH, OpCode.ADD, OpCode.POP])

    def test_for_loop_jumps(self):
        func = compile_text(
            "fn main() -> int { let s = 0; for i in 0..3 { s = s + i; } return s; }"
        ).get("main")
        instrs = func.instructions
        self.assertEqual(instrs[4], Instruction.load("i"))  # loop head
        self.assertEqual(instrs[6].opcode, OpCode.LT)
        self.assertEqual(instrs[7], Instruction(OpCode.JUMP_IF_FALSE, 17))
        self.assertEqual(instrs[16], Instruction(OpCode.JUMP, 4))
        self.assertEqual(instrs[17], Instruction.load("s"))

    def test_if_without_else_targets_end(self):
        func = compile_text("fn main() -> int { if true { return 1; } return 0; }").get("main")
        self.assertEqual(func.instructions[1], Instruction(OpCode.JUMP_IF_FALSE, 4))

    def test_if_else_targets(self):
        func = compile_text(
            "fn main() -> int { if true { return 1; } else { return 2; } }"
        ).get("main")
        instrs = func.instructions
        self.assertEqual(instrs[1], Instruction(OpCode.JUMP_IF_FALSE, 5))
        self.assertEqual(instrs[4], Instruction(OpCode.JUMP, 7))
        self.assertEqual(len(instrs), 7)

    def test_call_classification(self):
        module = compile_text("""
            fn main() -> int { print(1); h(0); foo(); return 0; }
            fn foo() -> int { return 1; }
        """)
        calls = [i for i in module.get("main").instructions
                 if i.opcode in (OpCode.BUILTIN_CALL, OpCode.QUANTUM_GATE, OpCode.CALL)]
        self.assertEqual(calls, [
            Instruction.builtin("print", 1),
            Instruction.gate("h", 1),
            Instruction.call("foo", 0),
        ])

    def test_map_lowering(self):
        func = compile_text("fn main() -> int { let y = map(double, [1]); return 0; }").get("main")
        self.assertIn(Instruction.builtin("map:double", 1), func.instructions)

    def test_indexed_store(self):
        func = compile_text("fn main() -> int { let a = [0]; a[0] = 9; return a[0]; }").get("main")
        self.assertEqual(
            opcodes(func)[3:8],
            [OpCode.LOAD, OpCode.PUSH, OpCode.PUSH, OpCode.STORE_INDEX, OpCode.LOAD],
        )

    def test_domain_carried(self):
        module = compile_text("@quantum fn q() -> void { h(0); } fn main() -> int { return 0; }")
        self.assertEqual(module.get("q").domain, Domain.QUANTUM)
        self.assertEqual(module.get("main").domain, Domain.CLASSICAL)

    def test_duplicate_function(self):
        with self.assertRaises(DuplicateFunctionError):
            compile_text("fn f() -> int { return 1; } fn f() -> int { return 2; }")


class TestAssembler(unittest.TestCase):
    """Test Q-ISA text format."""

    def test_dump_format(self):
        module = compile_text("@quantum fn main() -> int { return 1; }")
        self.assertEqual(
            dump_module(module),
            "@quantum\nfn main():\n    0000  PUSH 1\n    0001  RETURN\n",
        )

    def test_dump_then_assemble(self):
        module = compile_text("""
            fn main() -> int {
                let xs = map(twice, [1, 2.5, true]);
                if len(xs) > 2 { h(0); }
                return twice(-3);
            }
            fn twice(v: int) -> int { return v * 2; }
        """)
        self.assertEqual(assemble(dump_module(module)), module)

    def test_assemble_basic(self):
        source = """
        # comment line
        fn main():
            PUSH 2
            PUSH 3
            ADD          # trailing comment
            RETURN
        """
        module = BytecodeAssembler().assemble(source)
        self.assertEqual(opcodes(module.get("main")),
                         [OpCode.PUSH, OpCode.PUSH, OpCode.ADD, OpCode.RETURN])

    def test_unknown_opcode(self):
        with self.assertRaises(CompileError) as ctx:
            assemble("fn f():\n    FROB 1\n")
        self.assertIn("Line 2", str(ctx.exception))

    def test_operand_count(self):
        with self.assertRaises(CompileError):
            assemble("fn f():\n    PUSH\n")

    def test_instruction_outside_function(self):
        with self.assertRaises(CompileError):
            assemble("PUSH 1\n")

    def test_jump_out_of_range(self):
        with self.assertRaises(CompileError):
            assemble("fn f():\n    JUMP 9\n    RETURN\n")

    def test_trailing_domain_rejected(self):
        with self.assertRaises(CompileError) as ctx:
            assemble("fn f():\n    PUSH 1\n    RETURN\n@quantum\n")
        self.assertIn("Line 4", str(ctx.exception))

    def test_domain_before_instruction_rejected(self):
        with self.assertRaises(CompileError) as ctx:
            assemble("fn f():\n    PUSH 1\n@gpu\n    RETURN\n")
        self.assertIn("Line 3", str(ctx.exception))


if __name__ == "__main__":
    # Run with verbose output
    unittest.main(verbosity=2)
