"""
Tests for the detector and simulator command line entry points.
"""

import io
import struct

import pytest

import run_detector
import run_simulator
from pumpfun.constants import BUY_DISCRIMINATOR, PUMP_PROGRAM_ID
from pumpfun.types import RawInstruction, TransactionRecord
from sandwich_scanner.exceptions import FetchTimeoutError, NotFoundError

MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def buy_record(signature, slot, signer, sol):
    data = BUY_DISCRIMINATOR + struct.pack("<QQ", 0, sol)
    instruction = RawInstruction(
        program_id=PUMP_PROGRAM_ID,
        accounts=(),
        data=data,
        slot=slot,
        signer=signer,
        signature=signature,
    )
    return TransactionRecord(
        signature=signature, slot=slot, signer=signer, instructions=(instruction,)
    )


class FakeSource:
    records = []
    error = None

    def __init__(self, config, metrics=None):
        self.config = config

    def fetch_transactions(self, mint):
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def fake_source(monkeypatch):
    monkeypatch.setattr(FakeSource, "records", [])
    monkeypatch.setattr(FakeSource, "error", None)
    monkeypatch.setattr(run_detector, "SolanaRpcSource", FakeSource)
    return FakeSource


class TestDetectorCli:
    def test_report_printed(self, fake_source, capsys):
        fake_source.records = [
            buy_record("first-buy-1", 10, "TraderA111", 1_000_000_000),
            buy_record("second-buy-2", 11, "TraderB222", 2_000_000_000),
        ]

        assert run_detector.main([MINT]) == 0

        out = capsys.readouterr().out
        assert f"SANDWICH SCAN {MINT}" in out
        assert "Trades: 2" in out
        assert "No sandwich patterns detected." in out

    def test_not_found(self, fake_source, capsys):
        fake_source.error = NotFoundError("No transactions found for mint")

        assert run_detector.main([MINT]) == 1
        assert "❌ Mint not found" in capsys.readouterr().err

    def test_fetch_failure(self, fake_source, capsys):
        fake_source.error = FetchTimeoutError("getTransaction timed out")

        assert run_detector.main([MINT]) == 1
        assert "❌ Fetch failed" in capsys.readouterr().err

    def test_bad_limit(self, fake_source, capsys):
        assert run_detector.main([MINT, "--limit", "0"]) == 1
        assert "❌ Config error" in capsys.readouterr().err

    def test_missing_config_file(self, fake_source, capsys, tmp_path):
        missing = tmp_path / "nope.yaml"
        assert run_detector.main([MINT, "--config", str(missing)]) == 1
        assert "❌ Config error" in capsys.readouterr().err


class TestSimulatorCli:
    def test_trace_printed(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("0.5\n"))

        assert run_simulator.main([]) == 0

        out = capsys.readouterr().out
        assert "Enter hypothetical victim SOL input" in out
        assert "Back-run 2 (profit)" in out
        assert "Bot total net profit" in out

    def test_invalid_amount(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("lots\n"))

        assert run_simulator.main([]) == 1
        assert "❌" in capsys.readouterr().err

    def test_no_input(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(""))

        assert run_simulator.main([]) == 1
        assert "No input provided" in capsys.readouterr().err
