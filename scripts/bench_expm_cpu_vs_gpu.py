"""
scripts/bench_expm_cpu_vs_gpu.py

CPU vs GPU expm microbenchmark (NOT a unit test) for tapegrad.

Each timed iteration builds a fresh graph holding one diagonal leaf
(`scale * I`), appends `--chain` independent `expm` nodes on it and forwards
each one, optionally followed by a backward pass from the last node.

Timing policy
-------------
- Includes graph construction, leaf upload and every forward.
- `forward` synchronizes with the device before returning, so GPU timings
  cover completed work.
- GPU adapter acquisition and pipeline compilation happen during warmup.

Usage
-----
python scripts/bench_expm_cpu_vs_gpu.py
python scripts/bench_expm_cpu_vs_gpu.py --n 64 --chain 10 --backward
python scripts/bench_expm_cpu_vs_gpu.py --presets --warmup 5 --repeats 50
"""

from __future__ import annotations

import argparse
import os
import statistics
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

# -------------------------
# Make repo_root/src importable
# -------------------------
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

import tapegrad
from tapegrad import DeviceFailureError


def _time_one(fn: Callable[[], None], *, warmup: int, repeats: int) -> list[float]:
    for _ in range(warmup):
        fn()
    ts: list[float] = []
    for _ in range(repeats):
        t0 = time.perf_counter()
        fn()
        t1 = time.perf_counter()
        ts.append(t1 - t0)
    return ts


def _fmt_seconds(x: float) -> str:
    if x < 1e-6:
        return f"{x*1e9:.2f} ns"
    if x < 1e-3:
        return f"{x*1e6:.2f} µs"
    if x < 1:
        return f"{x*1e3:.2f} ms"
    return f"{x:.3f} s"


def _speedup(a: float, b: float) -> float:
    return (a / b) if b > 0 else float("inf")


@dataclass(frozen=True)
class Case:
    name: str
    n: int
    chain: int


def _make_step(device: str, x_np: np.ndarray, chain: int, backward: bool) -> Callable[[], None]:
    def step() -> None:
        graph = tapegrad.new(device)
        x = graph.tensor(x_np)
        z = None
        for _ in range(chain):
            z = x.expm()
            z.forward()
        if backward and z is not None:
            z.backward()

    return step


def _gpu_available() -> Optional[str]:
    try:
        graph = tapegrad.new("gpu")
        graph.tensor(np.zeros(1, dtype=np.float32)).to_numpy()
    except DeviceFailureError as exc:
        return str(exc)
    return None


def _bench_case(
    c: Case,
    *,
    scale: float,
    warmup: int,
    repeats: int,
    backward: bool,
    gpu_reason: Optional[str],
) -> None:
    x_np = (scale * np.eye(c.n)).astype(np.float32)

    cpu_ts = _time_one(_make_step("cpu", x_np, c.chain, backward), warmup=warmup, repeats=repeats)
    cpu_med = statistics.median(cpu_ts)

    if gpu_reason is not None:
        print(
            f"{c.name:<12} expm (n={c.n} chain={c.chain})  "
            f"cpu={_fmt_seconds(cpu_med):>10}  gpu=   skipped"
        )
        return

    gpu_ts = _time_one(_make_step("gpu", x_np, c.chain, backward), warmup=warmup, repeats=repeats)
    gpu_med = statistics.median(gpu_ts)

    print(
        f"{c.name:<12} expm (n={c.n} chain={c.chain})  "
        f"cpu={_fmt_seconds(cpu_med):>10}  "
        f"gpu={_fmt_seconds(gpu_med):>10}  "
        f"speedup={_speedup(cpu_med, gpu_med):>7.2f}x"
    )


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--n", type=int, default=3, help="Matrix size.")
    ap.add_argument("--chain", type=int, default=10, help="expm nodes per iteration.")
    ap.add_argument("--scale", type=float, default=0.01, help="Diagonal value.")
    ap.add_argument("--warmup", type=int, default=3)
    ap.add_argument("--repeats", type=int, default=20)
    ap.add_argument("--presets", action="store_true", help="Run a preset suite.")
    ap.add_argument("--backward", action="store_true", help="Also time a backward pass.")
    args = ap.parse_args()

    gpu_reason = _gpu_available()

    print("\n" + "=" * 98)
    print(
        f"tapegrad expm CPU vs GPU benchmark  "
        f"(warmup={args.warmup}, repeats={args.repeats}, backward={args.backward})"
    )
    if gpu_reason is not None:
        print(f"GPU unavailable: {gpu_reason}")
    print("=" * 98)

    if args.presets:
        cases = [
            Case("tiny-3", 3, args.chain),
            Case("small-32", 32, args.chain),
            Case("mid-128", 128, args.chain),
            Case("big-512", 512, args.chain),
        ]
    else:
        cases = [Case("single", args.n, args.chain)]

    for c in cases:
        _bench_case(
            c,
            scale=args.scale,
            warmup=args.warmup,
            repeats=args.repeats,
            backward=args.backward,
            gpu_reason=gpu_reason,
        )


if __name__ == "__main__":
    main()
