from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from utils.plotting import HAS_MPL, ensure_out_dir

OUT_DIR = "Visualizations"

_DASHBOARD_SPECS: Sequence[Tuple[str, str, str]] = (
    ("reports.chain_diffusion_dashboard", "make_chain_diffusion_dashboard", "chain_diffusion.png"),
    ("reports.keygen_timing_dashboard", "make_keygen_timing_dashboard", "keygen_timing.png"),
)


@dataclass
class DashboardResult:
    """Outcome of a single dashboard export attempt."""

    module: str
    attr: str
    target: Path
    status: str
    reason: str = ""
    output: Optional[Path] = None


def _load_callable(module_name: str, attr: str) -> Tuple[Optional[Callable[[Path], Optional[Path]]], str]:
    try:
        module = import_module(module_name)
    except ImportError as exc:
        return None, f"import failed: {exc}"

    func = getattr(module, attr, None)
    if func is None:
        return None, f"callable '{attr}' not found in {module_name}"
    return func, ""


def make_all_dashboards(out_dir: str | Path = OUT_DIR) -> List[DashboardResult]:
    """Generate every dashboard into *out_dir* and describe the outcome of each attempt."""

    out_path = ensure_out_dir(out_dir)
    results: List[DashboardResult] = []

    for module_name, attr, filename in _DASHBOARD_SPECS:
        target = out_path / filename
        if not HAS_MPL:
            results.append(DashboardResult(module_name, attr, target, "skipped", "matplotlib not installed"))
            continue

        func, reason = _load_callable(module_name, attr)
        if func is None:
            print(f"skipped {module_name}.{attr} ({reason})")
            results.append(DashboardResult(module_name, attr, target, "skipped", reason))
            continue

        try:
            output = Path(func(target))
        except ImportError as exc:
            reason = f"missing dependency: {getattr(exc, 'name', None) or exc}"
            print(f"skipped {module_name}.{attr} ({reason})")
            results.append(DashboardResult(module_name, attr, target, "skipped", reason))
            continue

        if not output.exists():
            results.append(DashboardResult(module_name, attr, target, "skipped", "no output generated"))
            continue
        results.append(DashboardResult(module_name, attr, target, "saved", output=output))
    return results


def main() -> None:
    for result in make_all_dashboards():
        if result.status == "saved" and result.output is not None:
            print(result.output.resolve())
        else:
            print(f"{result.target} (skipped: {result.reason})")


if __name__ == "__main__":
    main()
