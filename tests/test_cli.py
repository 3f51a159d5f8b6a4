import json

import pytest

import run_demo
from ta_engine.market_data import bars_to_dataframe
from ta_engine.technical_indicators import main


@pytest.fixture
def bars_csv(tmp_path, random_walk_bars):
    path = tmp_path / "bars.csv"
    bars_to_dataframe(random_walk_bars).to_csv(path)
    return path


def test_main_writes_json(tmp_path, bars_csv, capsys):
    out = tmp_path / "snapshot.json"
    code = main(["-i", str(bars_csv), "-p", "aggressive", "-s", "BTC-USDT", "-t", "15m", "-j", str(out)])
    assert code == 0
    assert "TECHNICAL SNAPSHOT REPORT" in capsys.readouterr().out

    payload = json.loads(out.read_text())
    assert payload["preset"] == "aggressive"
    assert payload["bar_count"] == 150
    assert payload["market"]["symbol"] == "BTC-USDT"
    assert payload["market"]["timeframe"] == "15m"


def test_main_header_only_csv_returns_2(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("timestamp,Open,High,Low,Close,Volume\n")
    assert main(["-i", str(path)]) == 2


def test_main_bad_input_returns_1(tmp_path):
    path = tmp_path / "bars.txt"
    path.write_text("nothing")
    assert main(["-i", str(path)]) == 1


def test_main_rejects_unknown_preset(bars_csv):
    with pytest.raises(SystemExit):
        main(["-i", str(bars_csv), "-p", "scalper"])


def test_generate_bars_is_reproducible():
    first = run_demo.generate_bars(50, seed=3)
    second = run_demo.generate_bars(50, seed=3)
    assert first == second
    assert len(first) == 50
    assert all(b.low <= min(b.open, b.close) and b.high >= max(b.open, b.close) for b in first)
    assert run_demo.generate_bars(0) == []


def test_demo_exports_every_preset(tmp_path):
    code = run_demo.main(["--bars", "120", "--output-dir", str(tmp_path)])
    assert code == 0
    names = sorted(p.name for p in tmp_path.glob("*.json"))
    assert names == [
        "btc-usdt_aggressive_snapshot.json",
        "btc-usdt_conservative_snapshot.json",
        "btc-usdt_default_snapshot.json",
    ]


def test_demo_without_bars_fails(tmp_path):
    assert run_demo.main(["--bars", "0", "--output-dir", str(tmp_path)]) == 1
