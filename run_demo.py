#!/usr/bin/env python3
"""
Technical Snapshot Engine - Demo Runner

Runs the indicator pipeline over a synthetic OHLCV random walk with every
named preset, prints the console reports and exports the results as JSON.

EXECUTION
    python run_demo.py
    python run_demo.py --symbol BTC-USDT --bars 300
    python run_demo.py --preset aggressive --seed 7

OUTPUT ARTIFACTS
    outputs/
        {symbol}_{preset}_snapshot.json   Market data and analysis per preset
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from ta_engine.config import PRESETS, get_preset
from ta_engine.market_data import Bar
from ta_engine.technical_indicators import (
    AnalysisResult,
    TechnicalIndicatorEngine,
    format_indicator_report,
)


# =============================================================================
# CONSTANTS
# =============================================================================

VERSION: str = "1.0.0"
DEFAULT_SYMBOL: str = "BTC-USDT"
DEFAULT_BARS: int = 200
DEFAULT_SEED: int = 42
DEFAULT_TIMEFRAME: str = "15m"

OUTPUT_DIR = Path("outputs")

BANNER = r'''
╔═══════════════════════════════════════════════════════════════════════════════╗
║                                                                               ║
║                        TECHNICAL SNAPSHOT ENGINE                              ║
║                                                                               ║
║        SMA / EMA  ·  RSI  ·  MACD  ·  Bollinger  ·  Volume  ·  Levels         ║
║                                                                               ║
╚═══════════════════════════════════════════════════════════════════════════════╝
'''


# =============================================================================
# DISPLAY COMPONENTS
# =============================================================================

def print_section_header(title: str, char: str = "═") -> None:
    """Print a formatted section header."""
    width = 79
    print()
    print(char * width)
    print(f"  {title}")
    print(char * width)
    print()


# =============================================================================
# SYNTHETIC DATA
# =============================================================================

def generate_bars(
    n_bars: int = DEFAULT_BARS,
    seed: int = DEFAULT_SEED,
    start_price: float = 100.0,
    interval: timedelta = timedelta(minutes=15)
) -> List[Bar]:
    """
    Generate a reproducible OHLCV random walk.

    Log returns are drawn with a small drift; highs and lows wrap the
    open/close body, and volume is lognormal.
    """
    if n_bars <= 0:
        return []

    rng = np.random.default_rng(seed)
    returns = rng.normal(0.0005, 0.01, n_bars)
    closes = start_price * np.exp(np.cumsum(returns))
    opens = np.concatenate([[start_price], closes[:-1]])
    wicks = np.abs(rng.normal(0.0, 0.004, (2, n_bars)))
    highs = np.maximum(opens, closes) * (1 + wicks[0])
    lows = np.minimum(opens, closes) * (1 - wicks[1])
    volumes = rng.lognormal(mean=8.0, sigma=0.5, size=n_bars)

    start = datetime(2024, 1, 1)
    return [
        Bar(
            timestamp=start + i * interval,
            open=float(opens[i]),
            high=float(highs[i]),
            low=float(lows[i]),
            close=float(closes[i]),
            volume=float(volumes[i])
        )
        for i in range(n_bars)
    ]


# =============================================================================
# PIPELINE
# =============================================================================

def run_preset(
    preset: str,
    bars: List[Bar],
    symbol: str,
    output_dir: Path,
    logger: logging.Logger
) -> Optional[AnalysisResult]:
    """
    Analyze the bars with one preset, print the report and save JSON.

    Returns
    -------
    Optional[AnalysisResult]
        The analysis, or None when there was nothing to analyze
    """
    print_section_header(f"PRESET: {preset.upper()}")

    engine = TechnicalIndicatorEngine(get_preset(preset))
    result = engine.analyze(bars)
    if result is None:
        logger.warning(f"No result for preset {preset}")
        return None

    print(format_indicator_report(result, symbol))

    market = engine.build_market_data(bars, symbol, DEFAULT_TIMEFRAME)
    payload = result.to_dict()
    payload["market"] = market.to_dict()

    path = output_dir / f"{symbol.lower()}_{preset}_snapshot.json"
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    logger.info(f"Saved: {path}")

    return result


def print_final_summary(results: Dict[str, AnalysisResult], total_time: float) -> None:
    """Print a one-line comparison per preset."""
    print_section_header("SUMMARY")
    print(f"  {'Preset':<14}{'Overall':<14}{'RSI':>8}{'Band pos':>10}{'Vol ratio':>11}")
    print(f"  {'─' * 57}")
    for preset, result in results.items():
        tech = result.technical
        print(
            f"  {preset:<14}{result.trend.overall.value:<14}"
            f"{tech.rsi:>8.2f}{tech.bb_position:>10.2f}{tech.volume_ratio:>11.2f}"
        )
    print()
    print(f"  Completed in {total_time:.2f}s")


# =============================================================================
# MAIN
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the demo runner.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure)
    """
    start_time = time.time()

    parser = argparse.ArgumentParser(
        description="Technical Snapshot Engine - Demo Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_demo.py                            # All presets, 200 bars
  python run_demo.py --preset conservative      # One preset
  python run_demo.py --bars 500 --seed 7
        """
    )
    parser.add_argument("--symbol", "-s", type=str, default=DEFAULT_SYMBOL,
                        help=f"Instrument label (default: {DEFAULT_SYMBOL})")
    parser.add_argument("--bars", "-n", type=int, default=DEFAULT_BARS,
                        help=f"Number of synthetic bars (default: {DEFAULT_BARS})")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED,
                        help=f"Random seed (default: {DEFAULT_SEED})")
    parser.add_argument("--preset", "-p", choices=sorted(PRESETS), default=None,
                        help="Run a single preset (default: all)")
    parser.add_argument("--output-dir", "-o", type=Path, default=OUTPUT_DIR,
                        help=f"Directory for JSON exports (default: {OUTPUT_DIR})")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="  %(asctime)s │ %(levelname)s │ %(message)s",
        datefmt="%H:%M:%S"
    )
    logger = logging.getLogger(__name__)

    print(BANNER)
    print(f"  Execution Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Instrument:        {args.symbol}")
    print(f"  Bars:              {args.bars}")
    print(f"  Version:           {VERSION}")

    try:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        bars = generate_bars(args.bars, args.seed)

        presets = [args.preset] if args.preset else list(PRESETS)
        results: Dict[str, AnalysisResult] = {}
        for preset in presets:
            result = run_preset(preset, bars, args.symbol, args.output_dir, logger)
            if result is not None:
                results[preset] = result

        if not results:
            logger.error("No preset produced a result")
            return 1

        print_final_summary(results, time.time() - start_time)
        return 0

    except Exception as e:
        logger.error(f"Demo failed: {e}")
        return 1


if __name__ == "__main__":
    import sys
    sys.exit(main())
