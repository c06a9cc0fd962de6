"""
CLI entry point for the chart analysis engine.

Usage:
    # Serve the API, WebSocket hub and live feeds
    python -m tradecharts serve --port 8000

    # One-off analysis of a symbol from REST history
    python -m tradecharts analyze --symbol BTC --interval 1h

    # Train the reference linear model on history and report holdout metrics
    python -m tradecharts train --symbol BTC --timeframe 1d
"""

import argparse
import asyncio
import json
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the full FastAPI application."""
    import uvicorn

    logger.info("Starting API at http://%s:%d", args.host, args.port)
    logger.info("WebSocket: ws://%s:%d/api/v1/realtime/ws", args.host, args.port)
    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=False)


def cmd_analyze(args: argparse.Namespace) -> None:
    """Fetch history for a symbol and print its analysis as JSON."""
    from tradecharts.analysis import MarketAnalyzer
    from tradecharts.history import HistoricalLoader

    symbol = args.symbol.upper()
    loader = HistoricalLoader(interval=args.interval, limit=args.limit)
    points = asyncio.run(loader.fetch(symbol))
    if not points:
        logger.error("No history available for %s.", symbol)
        sys.exit(1)

    result = MarketAnalyzer().analyze(symbol, points)
    if result is None:
        logger.error("Analysis produced no result for %s.", symbol)
        sys.exit(1)

    print(json.dumps(result.to_dict(), indent=2))
    logger.info(
        "%s | price=%.4f | 1d=%.4f (conf %.2f) | signal=%s | %d patterns | %d zones",
        symbol,
        result.current_price,
        result.predicted_price,
        result.confidence,
        result.trading_signal.value,
        len(result.patterns),
        len(result.fibonacci_zones),
    )


def cmd_train(args: argparse.Namespace) -> None:
    """Train the linear provider on history for one or all timeframes."""
    from tradecharts.config import DEFAULT_TIMEFRAMES
    from tradecharts.errors import DataInsufficientError
    from tradecharts.history import HistoricalLoader
    from tradecharts.models.linear import LinearModelProvider
    from tradecharts.models.training import TrainingSetBuilder

    symbol = args.symbol.upper()
    loader = HistoricalLoader(interval=args.interval, limit=args.limit)
    points = asyncio.run(loader.fetch(symbol))
    if not points:
        logger.error("No history available for %s.", symbol)
        sys.exit(1)

    timeframes = [args.timeframe] if args.timeframe else [tf.name for tf in DEFAULT_TIMEFRAMES]
    provider = LinearModelProvider(alpha=args.alpha)
    builder = TrainingSetBuilder()

    trained = 0
    for timeframe in timeframes:
        try:
            report = builder.train(provider, symbol, points, timeframe)
        except DataInsufficientError as exc:
            logger.warning("Skipped %s %s: %s", symbol, timeframe, exc.message)
            continue
        trained += 1
        usable = "usable" if provider.is_trained(timeframe) else "below R² threshold"
        logger.info(
            "[%s %s] %d samples | %s | %s",
            symbol, timeframe, report.samples, report.metrics, usable,
        )

    if trained == 0:
        logger.error("No timeframe could be trained for %s.", symbol)
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="tradecharts",
        description="Real-time crypto chart analysis and prediction",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Server
    serve_parser = subparsers.add_parser("serve", help="Start the API and live feeds")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument(
        "--port", type=int, default=8000,
        help="Port for the API server (default 8000)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Analyze
    analyze_parser = subparsers.add_parser("analyze", help="Analyze a symbol from history")
    analyze_parser.add_argument("--symbol", required=True, help="Base asset, e.g. BTC")
    analyze_parser.add_argument("--interval", default="1h", help="Kline interval (default 1h)")
    analyze_parser.add_argument("--limit", type=int, default=1000, help="Points to fetch (max 1000)")
    analyze_parser.set_defaults(func=cmd_analyze)

    # Train
    train_parser = subparsers.add_parser("train", help="Train the linear model on history")
    train_parser.add_argument("--symbol", required=True, help="Base asset, e.g. BTC")
    train_parser.add_argument(
        "--timeframe", choices=["1h", "4h", "1d", "1w", "1m"], default=None,
        help="Train a single timeframe (default: all)",
    )
    train_parser.add_argument("--interval", default="1h", help="Kline interval (default 1h)")
    train_parser.add_argument("--limit", type=int, default=1000, help="Points to fetch (max 1000)")
    train_parser.add_argument("--alpha", type=float, default=1.0, help="Ridge penalty (default 1.0)")
    train_parser.set_defaults(func=cmd_train)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
