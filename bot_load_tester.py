#!/usr/bin/env python3
"""
Bot Load Tester - Inference Endpoint Load Generator

Runs a pool of bots that each send a randomly chosen sample (e.g. an MNIST
pixel vector) to an inference endpoint every few seconds, and shows live
request counters and average latency while running.

Request format:
    POST <api>  {"instances": [[v1, v2, ...]]}

Version: 1.0
Date: 2026-10-18

Usage:
    python bot_load_tester.py \\
        --api http://localhost:8501/v1/models/mnist:predict \\
        --bots 5 \\
        --interval 1 \\
        --data ./Assets/Data/data.json

    # Use a YAML config file, override with environment variables
    export LOADBOT_BOTS_COUNT=10
    python bot_load_tester.py --config-file loadbot.yaml

Stop with Ctrl+C (SIGINT), SIGTERM or by pressing 'q' in the dashboard.
"""

__version__ = "1.0"
__date__ = "2026-10-18"

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

import httpx

from loadbot.config_manager import ConfigError, ConfigManager, RunConfig
from loadbot.dashboard import Dashboard, HeadlessReporter, format_summary
from loadbot.dispatcher import RequestDispatcher
from loadbot.log_buffer import BoundedLog
from loadbot.logging_setup import Colors, init_logger, set_console_enabled
from loadbot.metrics import MetricsAggregator, MetricsSnapshot
from loadbot.recorder import ResponseRecorder
from loadbot.samples import SampleLoadError, SampleStore
from loadbot.supervisor import BotContext, BotSupervisor

# Package-level logger so loadbot.* module loggers share its handlers
logger = logging.getLogger("loadbot")

# CLI destination -> config path
CLI_OVERRIDES = {
    "api": "target.api",
    "timeout": "target.request_timeout",
    "bots": "bots.count",
    "interval": "bots.interval",
    "max_in_flight": "bots.max_in_flight",
    "one_in_flight": "bots.one_in_flight",
    "drain_timeout": "bots.drain_timeout",
    "duration": "bots.duration",
    "data": "data.path",
    "seed": "data.seed",
    "refresh_interval": "ui.refresh_interval",
    "log_size": "ui.log_size",
    "save_responses": "output.save_responses",
    "results_dir": "output.results_dir",
    "log_file": "output.log_file",
}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Inference endpoint load generator with live metrics",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Flags left at None fall through to config file / env / defaults
    parser.add_argument("--api", type=str,
                       help="API endpoint URL (required unless set in config or LOADBOT_TARGET_API)")
    parser.add_argument("--bots", type=int,
                       help="Number of concurrent bots (default: 1)")
    parser.add_argument("--interval", type=int,
                       help="Interval between requests per bot in seconds (default: 1)")
    parser.add_argument("--data", type=str,
                       help="Path to sample data file; .json is decoded as JSON, anything else as CSV "
                            "(default: ./Assets/Data/data.json)")

    parser.add_argument("--config-file", type=str,
                       help="Path to YAML config file")
    parser.add_argument("--timeout", type=float,
                       help="Per-request timeout in seconds (default: HTTP client default)")
    parser.add_argument("--max-in-flight", type=int,
                       help="Cap on concurrent in-flight requests across all bots (default: 0 = unbounded)")
    parser.add_argument("--one-in-flight", action="store_true", default=None,
                       help="Skip a bot's tick while its previous request is still in flight")
    parser.add_argument("--drain-timeout", type=float,
                       help="On shutdown, wait up to this many seconds for in-flight requests (default: 0 = don't wait)")
    parser.add_argument("--duration", type=float,
                       help="Stop automatically after this many seconds (default: 0 = run until stopped)")
    parser.add_argument("--seed", type=int,
                       help="Random seed for sample selection")
    parser.add_argument("--log-size", type=int,
                       help="Number of log lines kept for the dashboard (default: 10)")
    parser.add_argument("--refresh-interval", type=float,
                       help="Dashboard refresh interval in seconds (default: 1)")
    parser.add_argument("--save-responses", action="store_true", default=None,
                       help="Append response bodies to <results-dir>/responses.log")
    parser.add_argument("--results-dir", type=str,
                       help="Directory for saved responses (default: ./results)")
    parser.add_argument("--log-file", type=str,
                       help="Log file path (default: bot_load_tester.log)")
    parser.add_argument("--no-ui", action="store_true",
                       help="Disable the dashboard and log a metrics line per refresh instead")
    parser.add_argument("--verbose", action="store_true",
                       help="Enable verbose logging")

    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace, environ=None) -> RunConfig:
    """Merge defaults, config file, environment and CLI flags"""
    manager = ConfigManager(args.config_file, environ=environ)
    for dest, path in CLI_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            manager.set(path, value)
    if args.no_ui:
        manager.set("ui.enabled", False)
    return manager.build_run_config()


def build_context(config: RunConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> BotContext:
    """
    Load samples and wire up the shared state for one run

    Raises:
        SampleLoadError: the data file could not be loaded
    """
    samples = SampleStore(seed=config.seed)
    samples.load(config.data_path)

    metrics = MetricsAggregator()
    log = BoundedLog(config.log_size)
    log.append(f"Loaded {samples.sample_count()} samples")

    recorder = ResponseRecorder(config.results_dir) if config.save_responses else None
    dispatcher = RequestDispatcher(
        metrics, log,
        recorder=recorder,
        timeout=config.request_timeout,
        max_in_flight=config.max_in_flight,
        transport=transport,
    )
    return BotContext(endpoint=config.api, samples=samples, metrics=metrics, log=log, dispatcher=dispatcher)


def _install_signal_handlers(supervisor: BotSupervisor) -> List[int]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, supervisor.request_stop,
                                    "Received stop signal (Ctrl+C). Shutting down bots...")
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            logger.debug(f"Could not install handler for {sig!r}")
    return installed


async def run_load_test(config: RunConfig, context: BotContext,
                        use_dashboard: Optional[bool] = None,
                        install_signals: bool = True) -> MetricsSnapshot:
    """Run the bots until stopped and return the final metrics"""
    if use_dashboard is None:
        use_dashboard = config.ui_enabled and sys.stdout.isatty()

    supervisor = BotSupervisor(
        context,
        num_bots=config.bots,
        interval=config.interval,
        one_in_flight=config.one_in_flight,
        drain_timeout=config.drain_timeout,
    )

    if use_dashboard:
        presenter = Dashboard(context.metrics, context.log, refresh_interval=config.refresh_interval)
    else:
        presenter = HeadlessReporter(context.metrics, refresh_interval=config.refresh_interval)

    loop = asyncio.get_running_loop()
    signals = _install_signal_handlers(supervisor) if install_signals else []
    timer = None
    if config.duration > 0:
        timer = loop.call_later(config.duration, supervisor.request_stop,
                                f"Duration of {config.duration:g}s elapsed. Stopping bots...")

    if use_dashboard:
        set_console_enabled(logger, False)
    try:
        supervisor.start()
        await presenter.run(supervisor)
    finally:
        await supervisor.stop()
        if timer is not None:
            timer.cancel()
        for sig in signals:
            loop.remove_signal_handler(sig)
        await presenter.close()
        set_console_enabled(logger, True)
        await context.dispatcher.aclose()

    snapshot = context.metrics.snapshot()
    logger.info(f"{Colors.SUCCESS}Final metrics - {format_summary(snapshot)}{Colors.ENDC}")
    return snapshot


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code"""
    args = parse_arguments(argv)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        init_logger("loadbot", log_file=None)
        logger.error(f"Invalid configuration: {e}")
        return 1

    init_logger("loadbot", logging.DEBUG if args.verbose else logging.INFO, config.log_file)

    logger.info(f"{Colors.HEADER}{'='*80}{Colors.ENDC}")
    logger.info(f"{Colors.HEADER}{Colors.BOLD}Bot Load Tester v{__version__}{Colors.ENDC}")
    logger.info(f"{Colors.HEADER}{'='*80}{Colors.ENDC}")
    logger.info(f"{Colors.OKBLUE}API Endpoint: {config.api}{Colors.ENDC}")
    logger.info(f"{Colors.OKBLUE}Bots: {config.bots} | Interval: {config.interval:g}s{Colors.ENDC}")
    logger.info(f"{Colors.OKBLUE}Data: {config.data_path}{Colors.ENDC}")
    if config.max_in_flight:
        logger.info(f"{Colors.OKBLUE}Max In-Flight Requests: {config.max_in_flight}{Colors.ENDC}")
    if config.save_responses:
        logger.info(f"{Colors.OKBLUE}Saving responses to: {config.results_dir}{Colors.ENDC}")
    logger.info(f"{Colors.HEADER}{'='*80}{Colors.ENDC}")
    logger.debug(f"Resolved configuration: {config.to_dict()}")

    try:
        context = build_context(config)
    except SampleLoadError as e:
        logger.error(f"Failed to load samples: {e}")
        return 1

    asyncio.run(run_load_test(config, context))
    return 0


def cli():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user.")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
