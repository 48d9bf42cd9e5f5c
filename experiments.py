"""
Huffman Experiments: in-memory tables vs persisted archive

Runs repeated experiments over synthetic datasets and records how the static
Huffman engine behaves: build/derive/encode/decode time, cost of persisting
the tables, compression ratio, and mean code length against source entropy.

Outputs (in --outdir):
  - metrics.csv     (raw row per run per configuration)
  - summary.csv     (grouped mean/stdev)
  - *.png           (charts)

How to run:
  python experiments.py --outdir results --runs 5
  python experiments.py --outdir results --runs 3 --exp1_size_kb 256 --exp2_max_mb 2
  python experiments.py --outdir results --exp1_generators uniform256,zipf128,geometric32,english_like

Notes:
  - "tables" decodes straight from the in-memory tables.
  - "archive" pushes bitstream and tables through HuffmanArchive.dumps/loads first.
"""

from __future__ import annotations

import argparse
import csv
import math
import random
import statistics
import sys
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, List, Tuple, Callable, Sequence

import matplotlib.pyplot as plt
from loguru import logger

import huffman as huff
from archive import HuffmanArchive

PIPELINES = ("tables", "archive")


# Utilities

def now_ns() -> int:
    return time.perf_counter_ns()

def ns_to_ms(ns: int) -> float:
    return ns / 1_000_000.0

def safe_mkdir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)

def entropy_bits(frequencies: Dict[int, float]) -> float:
    """Shannon entropy in bits/symbol, the lower bound for mean code length"""
    return -sum(p * math.log2(p) for p in frequencies.values() if p > 0)

def mean_code_length(frequencies: Dict[int, float], encode_table) -> float:
    return sum(p * len(encode_table[s]) for s, p in frequencies.items())


# Synthetic dataset generators

def _sample(weights: Sequence[float], size: int, rng: random.Random) -> List[int]:
    # inverse-CDF sampling, returns indices into weights
    total = sum(weights)
    cdf = []
    acc = 0.0
    for w in weights:
        acc += w / total
        cdf.append(acc)

    out = []
    for _ in range(size):
        r = rng.random()
        lo, hi = 0, len(cdf) - 1
        while lo < hi:
            mid = (lo + hi) // 2
            if r <= cdf[mid]:
                hi = mid
            else:
                lo = mid + 1
        out.append(lo)
    return out

def gen_uniform(size: int, alphabet: int = 256, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    return bytes(rng.randrange(0, alphabet) for _ in range(size))

def gen_repetitive(size: int, dominant: int = ord('A'), dom_frac: float = 0.90, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    others = [i for i in range(256) if i != dominant]
    return bytes(dominant if rng.random() < dom_frac else rng.choice(others) for _ in range(size))

def gen_zipf_like(size: int, alphabet: int = 128, s: float = 1.2, seed: int = 0) -> bytes:
    weights = [1.0 / ((i + 1) ** s) for i in range(alphabet)]
    return bytes(_sample(weights, size, random.Random(seed)))

def gen_geometric(size: int, alphabet: int = 32, seed: int = 0) -> bytes:
    # halving weights give the deepest possible (fully skewed) tree
    weights = [0.5 ** i for i in range(alphabet)]
    return bytes(_sample(weights, size, random.Random(seed)))

def gen_english_like(size: int, seed: int = 0) -> bytes:
    chars = " etaoinshrdlcumwfgypbvkjxqETAOINSHRDLCUMWFGYPBVKJXQ\n"
    weights = []
    for ch in chars:
        if ch == ' ':
            weights.append(13.0)
        elif ch == '\n':
            weights.append(1.5)
        elif ch.lower() in "etaoinshrdlu":
            weights.append(6.0)
        elif ch.lower() in "cmfwgypbvk":
            weights.append(2.5)
        else:
            weights.append(1.2)
    return bytes(ord(chars[i]) for i in _sample(weights, size, random.Random(seed)))

GENERATOR_REGISTRY: Dict[str, Callable[[int, int], bytes]] = {
    "uniform256": lambda size, seed: gen_uniform(size, alphabet=256, seed=seed),
    "uniform128": lambda size, seed: gen_uniform(size, alphabet=128, seed=seed),
    "zipf128": lambda size, seed: gen_zipf_like(size, alphabet=128, s=1.2, seed=seed),
    "zipf64": lambda size, seed: gen_zipf_like(size, alphabet=64, s=1.2, seed=seed),
    "geometric32": lambda size, seed: gen_geometric(size, alphabet=32, seed=seed),
    "repetitive90": lambda size, seed: gen_repetitive(size, dominant=ord('A'), dom_frac=0.90, seed=seed),
    "repetitive99": lambda size, seed: gen_repetitive(size, dominant=ord('A'), dom_frac=0.99, seed=seed),
    "english_like": lambda size, seed: gen_english_like(size, seed=seed),
}

def generate_dataset(name: str, size_bytes: int, seed: int) -> Tuple[str, bytes]:
    fn = GENERATOR_REGISTRY.get(name)
    if fn is None:
        raise ValueError(f"unknown generator {name!r}, choose from {', '.join(sorted(GENERATOR_REGISTRY))}")
    return name, fn(size_bytes, seed)


# Experiment runner

@dataclass
class MetricRow:
    exp_name: str
    dataset_name: str
    file_size_bytes: int
    run_id: int
    pipeline: str  # "tables" or "archive"
    unique_symbols: int

    build_tree_ms: float
    derive_tables_ms: float
    encode_ms: float
    persist_ms: float
    decode_ms: float
    total_ms: float

    encoded_bits: int
    archive_bytes: int
    compression_ratio: float
    archive_ratio: float
    mean_code_length: float
    entropy_bits: float

    correctness_ok: int  # 1 or 0


def run_one(data: bytes, pipeline: str) -> MetricRow:
    if pipeline not in PIPELINES:
        raise ValueError(f"pipeline must be one of {PIPELINES}")

    frequencies, _ = huff.symbol_frequencies(data)

    t0 = now_ns()
    root = huff.build_tree_from_frequencies(frequencies)
    t1 = now_ns()
    encoder, decoder = huff.encoder_decoder_pair(root)
    t2 = now_ns()
    bits = encoder.encode(data)
    t3 = now_ns()

    # the archive size is reported for both pipelines; only "archive" decodes from it
    blob = HuffmanArchive.pack(bits, encoder, decoder).dumps()
    persist_ms = 0.0
    if pipeline == "archive":
        t4 = now_ns()
        bits, _, decoder = HuffmanArchive.loads(blob).unpack()
        persist_ms = ns_to_ms(now_ns() - t4)

    t5 = now_ns()
    decoded = bytes(decoder.decode(bits))
    t6 = now_ns()

    build_tree_ms = ns_to_ms(t1 - t0)
    derive_tables_ms = ns_to_ms(t2 - t1)
    encode_ms = ns_to_ms(t3 - t2)
    decode_ms = ns_to_ms(t6 - t5)

    return MetricRow(
        exp_name="",
        dataset_name="",
        file_size_bytes=len(data),
        run_id=0,
        pipeline=pipeline,
        unique_symbols=len(frequencies),
        build_tree_ms=build_tree_ms,
        derive_tables_ms=derive_tables_ms,
        encode_ms=encode_ms,
        persist_ms=persist_ms,
        decode_ms=decode_ms,
        total_ms=build_tree_ms + derive_tables_ms + encode_ms + persist_ms + decode_ms,
        encoded_bits=len(bits),
        archive_bytes=len(blob),
        compression_ratio=math.ceil(len(bits) / 8) / max(1, len(data)),
        archive_ratio=len(blob) / max(1, len(data)),
        mean_code_length=mean_code_length(frequencies, encoder.encode_table),
        entropy_bits=entropy_bits(frequencies),
        correctness_ok=1 if decoded == data else 0,
    )


def write_csv(path: Path, rows: List[MetricRow]) -> None:
    names = [f.name for f in fields(MetricRow)]
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=names)
        w.writeheader()
        for r in rows:
            w.writerow({k: getattr(r, k) for k in names})


SUMMARY_METRICS = (
    "compression_ratio", "archive_ratio", "mean_code_length", "entropy_bits",
    "build_tree_ms", "derive_tables_ms", "encode_ms", "persist_ms", "decode_ms", "total_ms",
)

def mean_stdev(vals: List[float]) -> Tuple[float, float]:
    if len(vals) == 1:
        return vals[0], 0.0
    return statistics.mean(vals), statistics.stdev(vals)

def group_summary(rows: List[MetricRow], out_path: Path) -> None:
    """
    Group by exp_name, dataset_name, file_size_bytes, pipeline and compute mean/stdev
    """
    key_to: Dict[Tuple[str, str, int, str], List[MetricRow]] = {}
    for r in rows:
        key = (r.exp_name, r.dataset_name, r.file_size_bytes, r.pipeline)
        key_to.setdefault(key, []).append(r)

    summary_fields = ["exp_name", "dataset_name", "file_size_bytes", "pipeline", "n_runs"]
    for m in SUMMARY_METRICS:
        summary_fields += [f"{m}_mean", f"{m}_stdev"]
    summary_fields.append("correctness_ok_rate")

    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=summary_fields)
        w.writeheader()
        for key, items in sorted(key_to.items()):
            exp_name, dataset_name, size_b, pipeline = key
            out = {
                "exp_name": exp_name,
                "dataset_name": dataset_name,
                "file_size_bytes": size_b,
                "pipeline": pipeline,
                "n_runs": len(items),
                "correctness_ok_rate": sum(x.correctness_ok for x in items) / len(items),
            }
            for m in SUMMARY_METRICS:
                out[f"{m}_mean"], out[f"{m}_stdev"] = mean_stdev([getattr(x, m) for x in items])
            w.writerow(out)


# Plotting

def _line_chart(x, series: Dict[str, List[float]], path: Path, title: str, ylabel: str,
                xticks: List[str] = None, xlabel: str = None) -> None:
    plt.figure()
    for label, y in series.items():
        plt.plot(x, y, marker="o", label=label)
    if xticks is not None:
        plt.xticks(x, xticks, rotation=20, ha="right")
    if xlabel:
        plt.xlabel(xlabel)
    plt.ylabel(ylabel)
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(path, dpi=200)
    plt.close()


def plot_experiment_1(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp1_distribution"]
    if not exp_rows:
        return

    datasets = sorted(set(r.dataset_name for r in exp_rows))
    x = list(range(len(datasets)))

    def mean_for(dataset: str, field: str, pipeline: str = "tables") -> float:
        vals = [getattr(r, field) for r in exp_rows if r.dataset_name == dataset and r.pipeline == pipeline]
        return statistics.mean(vals) if vals else float("nan")

    _line_chart(x, {
        "mean code length": [mean_for(d, "mean_code_length") for d in datasets],
        "entropy": [mean_for(d, "entropy_bits") for d in datasets],
    }, outdir / "exp1_code_length_vs_entropy.png",
        "Experiment 1: Mean Code Length vs Entropy", "Bits per Symbol", xticks=datasets)

    _line_chart(x, {
        "bitstream only": [mean_for(d, "compression_ratio") for d in datasets],
        "full archive": [mean_for(d, "archive_ratio") for d in datasets],
    }, outdir / "exp1_compression_ratio.png",
        "Experiment 1: Compression Ratio by Distribution", "Compressed Bytes / Original Bytes", xticks=datasets)

    _line_chart(x, {
        p: [mean_for(d, "total_ms", p) for d in datasets] for p in PIPELINES
    }, outdir / "exp1_total_time.png",
        "Experiment 1: Total Runtime by Distribution", "Total Time (ms)", xticks=datasets)


def plot_experiment_2(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp2_size_scaling"]
    if not exp_rows:
        return

    for dist in sorted(set(r.dataset_name for r in exp_rows)):
        dist_rows = [r for r in exp_rows if r.dataset_name == dist]
        sizes = sorted(set(r.file_size_bytes for r in dist_rows))

        def mean_size(size: int, pipeline: str, field: str) -> float:
            vals = [getattr(r, field) for r in dist_rows if r.file_size_bytes == size and r.pipeline == pipeline]
            return statistics.mean(vals) if vals else float("nan")

        for field, ylabel in (("encode_ms", "Encode Time (ms)"),
                              ("decode_ms", "Decode Time (ms)"),
                              ("archive_ratio", "Archive Bytes / Original Bytes")):
            _line_chart(sizes, {
                p: [mean_size(s, p, field) for s in sizes] for p in PIPELINES
            }, outdir / f"exp2_{field}_{dist}.png",
                f"Experiment 2: {ylabel} vs Size ({dist})", ylabel, xlabel="File Size (bytes)")

        _line_chart(sizes, {
            "archive": [mean_size(s, "archive", "persist_ms") for s in sizes],
        }, outdir / f"exp2_persist_time_{dist}.png",
            f"Experiment 2: Archive Load Time vs Size ({dist})", "Load Time (ms)", xlabel="File Size (bytes)")


def plot_experiment_3(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp3_pipeline_compare"]
    if not exp_rows:
        return

    datasets = sorted(set(r.dataset_name for r in exp_rows))
    x = list(range(len(datasets)))

    def mean_total(dataset: str, pipeline: str) -> float:
        vals = [r.total_ms for r in exp_rows if r.dataset_name == dataset and r.pipeline == pipeline]
        return statistics.mean(vals) if vals else float("nan")

    _line_chart(x, {
        p: [mean_total(d, p) for d in datasets] for p in PIPELINES
    }, outdir / "exp3_total_time.png",
        "Experiment 3: End-to-End Time by Dataset", "Total Time (ms)", xticks=datasets)


# Main

def parse_csv_list(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]

def run_configuration(rows: List[MetricRow], exp_name: str, gen_name: str, size_b: int,
                      runs: int, seed: int, label: str = None) -> None:
    for run_id in range(1, runs + 1):
        dataset_name, data = generate_dataset(gen_name, size_b, seed + run_id)
        for pipeline in PIPELINES:
            row = run_one(data, pipeline)
            row.exp_name = exp_name
            row.dataset_name = label or dataset_name
            row.run_id = run_id
            if not row.correctness_ok:
                logger.warning(f"[experiments] {exp_name}/{dataset_name} run {run_id} ({pipeline}) did not round trip")
            rows.append(row)
    logger.debug(f"[experiments] {exp_name}: {gen_name} @ {size_b} bytes x {runs} runs done")

def main(argv=None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--outdir", type=str, default="results", help="Output directory for CSV and plots")
    ap.add_argument("--runs", type=int, default=5, help="Repetitions per configuration (>=3 recommended for timing)")
    ap.add_argument("--seed", type=int, default=123, help="Base random seed")
    ap.add_argument("--log-level", type=str, default="INFO", help="loguru level for stderr output")

    # Experiment toggles
    ap.add_argument("--no_exp1", action="store_true", help="Disable experiment 1 (distribution)")
    ap.add_argument("--no_exp2", action="store_true", help="Disable experiment 2 (size scaling)")
    ap.add_argument("--no_exp3", action="store_true", help="Disable experiment 3 (pipeline compare)")

    # Experiment 1 controls
    ap.add_argument("--exp1_size_kb", type=int, default=256, help="Experiment 1 fixed file size in KB")
    ap.add_argument("--exp1_generators", type=str, default="uniform256,zipf128,geometric32,repetitive90,english_like",
                    help="Comma-separated dataset generator names for experiment 1")

    # Experiment 2 controls
    ap.add_argument("--exp2_min_kb", type=int, default=4, help="Experiment 2 min size in KB (power-of-two growth)")
    ap.add_argument("--exp2_max_mb", type=int, default=2, help="Experiment 2 max size in MB (power-of-two growth)")
    ap.add_argument("--exp2_generators", type=str, default="uniform256,zipf128,repetitive90",
                    help="Comma-separated dataset generator names for experiment 2")

    args = ap.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    outdir = Path(args.outdir)
    safe_mkdir(outdir)

    rows: List[MetricRow] = []

    # Experiment 1: distributions (fixed size)
    if not args.no_exp1:
        fixed_size = max(1, args.exp1_size_kb) * 1024
        for gen_name in parse_csv_list(args.exp1_generators):
            run_configuration(rows, "exp1_distribution", gen_name, fixed_size, args.runs, args.seed)

    # Experiment 2: size scaling (multiple sizes, powers of 2)
    if not args.no_exp2:
        min_bytes = max(1, args.exp2_min_kb) * 1024
        max_bytes = max(1, args.exp2_max_mb) * 1024 * 1024

        sizes: List[int] = []
        s = min_bytes
        while s <= max_bytes:
            sizes.append(s)
            s *= 2

        for gen_name in parse_csv_list(args.exp2_generators):
            for size_b in sizes:
                run_configuration(rows, "exp2_size_scaling", gen_name, size_b, args.runs,
                                  args.seed + 10_000 + size_b)

    # Experiment 3: pipeline compare across every generator at 1 MB
    if not args.no_exp3:
        size_b = 1024 * 1024
        for gen_name in sorted(GENERATOR_REGISTRY):
            run_configuration(rows, "exp3_pipeline_compare", gen_name, size_b, args.runs,
                              args.seed + 200_000 + size_b, label=f"{gen_name}_{size_b // 1024}kb")

    # Write raw and summary
    metrics_csv = outdir / "metrics.csv"
    summary_csv = outdir / "summary.csv"
    write_csv(metrics_csv, rows)
    group_summary(rows, summary_csv)

    # Plots
    plot_experiment_1(rows, outdir)
    plot_experiment_2(rows, outdir)
    plot_experiment_3(rows, outdir)

    ok_rate = sum(r.correctness_ok for r in rows) / max(1, len(rows))
    print(f"Wrote {len(rows)} rows to {metrics_csv}")
    print(f"Wrote grouped summary to {summary_csv}")
    print(f"Correctness rate across all runs: {ok_rate:.3f}")
    print("Charts saved in:", outdir.resolve())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
