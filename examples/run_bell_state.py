"""
Run the Bell State Example
==========================

Compiles examples/bell_state.qk, executes it on the simulated register
and checks the |00> / |11> correlation in the final sample.

Usage:
    python examples/run_bell_state.py [seed]
"""

import sys
import os

import numpy as np

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarkdsl.isa import dump_module
from quarkdsl.runtime import compile_source, execute, format_result


def main():
    print("=" * 60)
    print("    QUARKDSL: Bell State Verification")
    print("=" * 60)

    script_dir = os.path.dirname(os.path.abspath(__file__))
    bell_path = os.path.join(script_dir, "bell_state.qk")

    with open(bell_path, 'r') as f:
        source = f.read()

    # Compile
    print("\n📝 COMPILING QUARKDSL SOURCE...")
    compiled = compile_source(source)
    if not compiled.success:
        print(f"❌ {compiled.error_type}: {compiled.error}")
        return 1
    print(dump_module(compiled.ir))

    # Execute
    seed = int(sys.argv[1]) if len(sys.argv) > 1 else None
    print("🚀 EXECUTING ON THE STATE-VECTOR SIMULATOR...")
    result = execute(source, rng=np.random.default_rng(seed))
    print(format_result(result))
    if not result.success:
        return 1

    total = sum(result.quantum_counts.values())
    p_00 = result.quantum_counts.get('00000000', 0) / total
    p_11 = result.quantum_counts.get('00000011', 0) / total

    print(f"\n📊 BELL STATE ANALYSIS:")
    print(f"   |00⟩: {p_00:.2%}")
    print(f"   |11⟩: {p_11:.2%}")
    print(f"   Correlations: {p_00 + p_11:.2%}")

    print("\n" + "-" * 60)
    if p_00 + p_11 > 0.99:
        print("✅ SUCCESS: ENTANGLEMENT CONFIRMED")
        return 0
    print("⚠️ WARNING: ENTANGLEMENT NOT CONFIRMED")
    return 1


if __name__ == "__main__":
    sys.exit(main())
