"""
QuarkDSL Command Line
=====================

Usage:
    quarkdsl run program.qk [--entry main] [--shots 1024] [--seed 7] [--circuit]
    quarkdsl parse program.qk
    quarkdsl lower program.qk
"""

import sys
import pprint
import logging
import argparse
from typing import List, Optional

import numpy as np

from .isa import VMConstants, dump_module
from .runtime import compile_source, execute, format_result


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quarkdsl",
        description="Compile and run QuarkDSL programs on the Q-ISA stack machine.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log interpreter debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Compile and execute a program")
    run.add_argument("file", help="QuarkDSL source file")
    run.add_argument("--entry", default=VMConstants.ENTRY_POINT, help="Entry point function")
    run.add_argument("--shots", type=int, default=VMConstants.SHOTS, help="Measurement samples")
    run.add_argument("--seed", type=int, default=None, help="Seed for measurement randomness")
    run.add_argument("--max-iterations", type=int, default=VMConstants.MAX_ITERATIONS,
                     help="Instruction dispatch ceiling")
    run.add_argument("--circuit", action="store_true", help="Also draw the executed circuit")

    parse = sub.add_parser("parse", help="Print the AST")
    parse.add_argument("file", help="QuarkDSL source file")

    lower = sub.add_parser("lower", help="Print the compiled bytecode")
    lower.add_argument("file", help="QuarkDSL source file")

    return parser


def _read(path: str) -> str:
    with open(path, 'r') as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger("quarkdsl").setLevel(logging.DEBUG)

    try:
        source = _read(args.file)
    except OSError as e:
        logger.error(f"❌ Cannot read {args.file}: {e}")
        return 1

    if args.command == "run":
        result = execute(
            source,
            entry_point=args.entry,
            shots=args.shots,
            max_iterations=args.max_iterations,
            rng=np.random.default_rng(args.seed),
        )
        print(format_result(result))
        if result.success and args.circuit:
            print()
            print(result.to_circuit().draw(output="text"))
        return 0 if result.success else 1

    compiled = compile_source(source)
    if not compiled.success:
        print(f"❌ {compiled.error_type}: {compiled.error}")
        return 1

    if args.command == "parse":
        print(pprint.pformat(compiled.ast))
    else:
        print(dump_module(compiled.ir), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
