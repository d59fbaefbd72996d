from __future__ import annotations

from .chain_diffusion_dashboard import make_chain_diffusion_dashboard
from .keygen_timing_dashboard import make_keygen_timing_dashboard

__all__ = ["make_chain_diffusion_dashboard", "make_keygen_timing_dashboard"]
