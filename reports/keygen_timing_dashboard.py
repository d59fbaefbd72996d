"""Measured key-generation and chained-encryption timings."""
from __future__ import annotations

import time
from pathlib import Path
from statistics import mean
from typing import Dict, Sequence

from chain_modes.rsa_chain import encrypt_message
from textbook_rsa.rsa_from_scratch import generate_key, generate_key_pair
from utils.plotting import HAS_MPL, dashboard, save, style_axes

_KEY_SIZES: Sequence[int] = (64, 128, 256, 512)
_MESSAGE_LENGTHS: Sequence[int] = (16, 64, 256, 1024)


def time_key_generation(sizes: Sequence[int] = _KEY_SIZES, trials: int = 3) -> Dict[int, float]:
    """Mean wall-clock seconds for ``generate_key`` at each modulus size."""
    results: Dict[int, float] = {}
    for bits in sizes:
        samples = []
        for _ in range(trials):
            start = time.perf_counter()
            generate_key(bits)
            samples.append(time.perf_counter() - start)
        results[bits] = mean(samples)
    return results


def time_chain_encryption(bits: int = 512, lengths: Sequence[int] = _MESSAGE_LENGTHS) -> Dict[int, float]:
    """Seconds spent by ``encrypt_message`` for messages of each length."""
    public_key, _ = generate_key_pair(bits)
    results: Dict[int, float] = {}
    for length in lengths:
        start = time.perf_counter()
        encrypt_message(b"x" * length, public_key)
        results[length] = time.perf_counter() - start
    return results


def make_keygen_timing_dashboard(save_path: str | Path, trials: int = 3) -> Path:
    """Time key generation and encryption, plot both and save to PNG."""
    target = Path(save_path)
    if not HAS_MPL:
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    keygen = time_key_generation(trials=trials)
    chained = time_chain_encryption()

    fig, axes = dashboard(1, 2, "RSA-CBC Timings (this machine)")

    ax = style_axes(axes[0][0], "Key generation", xlabel="Modulus bits", ylabel="Mean seconds")
    ax.plot(list(keygen), list(keygen.values()), marker="o", color="#f97316")
    ax.set_xscale("log", base=2)

    ax = style_axes(axes[0][1], "Chained encryption (512-bit key)", xlabel="Message bytes", ylabel="Seconds")
    ax.plot(list(chained), list(chained.values()), marker="s", color="#10b981")
    ax.set_xscale("log", base=2)

    fig.text(0.5, 0.01, "One RSA exponentiation per plaintext byte.", ha="center", fontsize=9)
    return save(fig, target)


__all__ = ["make_keygen_timing_dashboard", "time_key_generation", "time_chain_encryption"]
