import os
import pathlib
import sys

# Ensure matplotlib uses a non-interactive backend for headless test runs.
os.environ.setdefault("MPLBACKEND", "Agg")

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def test_chain_roundtrip_demo():
    from chain_modes.rsa_chain import roundtrip_demo

    res = roundtrip_demo(256)
    assert res["ok"]
    assert len(res["blocks"]) == len(res["plaintext"])


def test_pattern_leakage_demo():
    from chain_modes.rsa_chain import demo_pattern_leakage

    out = demo_pattern_leakage(128)
    assert out["ecb_unique_blocks"] == 2
    assert out["cbc_unique_blocks"] > out["ecb_unique_blocks"]
    assert out["ecb_low_byte_entropy"] < out["cbc_low_byte_entropy"]


def test_iv_sensitivity_demo():
    from chain_modes.rsa_chain import demo_iv_sensitivity

    out = demo_iv_sensitivity(128)
    assert out["iv_divergence"] == 0
    assert out["plaintext_divergence"] == out["cipher_divergence"] == 16
    assert out["prefix_shared"] and out["roundtrip_ok"]


def test_wrong_chaining_demo():
    from chain_modes.rsa_chain import demo_wrong_chaining

    out = demo_wrong_chaining(128)
    assert out["correct"] == out["plaintext"]
    assert out["first_corrupted"] is not None and out["first_corrupted"] >= 1


def test_cli_run_all(capsys):
    import rsa_cbc_cli

    assert rsa_cbc_cli.main(["--run", "keygen", "--bits", "128", "--plain"]) == 0
    assert rsa_cbc_cli.run_all() == 0
    out = capsys.readouterr().out
    assert "Message received: Hello World!" in out
    assert "All demos completed." in out


def test_cli_reports_failed_demos(monkeypatch, capsys):
    import rsa_cbc_cli

    def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(rsa_cbc_cli, "_run_iv_demo", broken)
    monkeypatch.setattr(rsa_cbc_cli, "_run_pattern_demo", broken)
    assert rsa_cbc_cli.main(["--run", "iv", "--bits", "64", "--plain"]) == 1
    assert rsa_cbc_cli.main(["--run", "all", "--bits", "64", "--plain"]) == 2
    assert "2 demo(s) failed." in capsys.readouterr().out


def test_cli_rejects_odd_bits():
    import pytest

    import rsa_cbc_cli

    with pytest.raises(SystemExit):
        rsa_cbc_cli.parse_args(["--bits", "127"])


def test_dashboards_export(tmp_path):
    from reports.make_all_dashboards import make_all_dashboards
    from utils.plotting import HAS_MPL

    results = make_all_dashboards(tmp_path)
    assert len(results) == 2
    if HAS_MPL:
        assert all(result.status == "saved" for result in results)
        assert all(result.output.exists() for result in results)
