import os
import sys
import logging
import argparse

# Required: Use uvloop for better performance
import uvloop

# Add the current directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from configuration import DEFAULT_PROBE_SECONDS, DEFAULT_PROBE_INTERVAL_MS, MILLIS_PER_SECOND

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure root logging (only if not already configured)."""
    if not logging.root.handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s'
        )


class KVBenchmarkCLI:
    """CLI interface for the KV benchmark client."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description='KV Benchmark Client CLI',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Run one client against its server, recording a correctness history
  kvbench run --config client-1.toml --correctness-check

  # Merge per-client histories for the linearizability checker
  kvbench merge-history logs/history-1.json logs/history-2.json

  # Check how far a simulated clock strays from real time
  kvbench clock-probe --config client-1.toml --seconds 5
            """
        )
        parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Run command
        run_parser = subparsers.add_parser('run', help='Run a benchmark client')
        run_parser.add_argument('--config', type=str, default=None,
                                help='Client TOML config (default: $CONFIG_FILE)')
        run_parser.add_argument('--correctness-check', action='store_true',
                                help='Record an operation history for linearizability checking')
        run_parser.add_argument('--history-output', type=str, default=None,
                                help='Path for the operation history JSON')

        # Merge command
        merge_parser = subparsers.add_parser('merge-history', help='Merge per-client operation histories')
        merge_parser.add_argument('histories', nargs='+', help='History JSON files')
        merge_parser.add_argument('--output', type=str, default=None,
                                  help='Merged file path (default: merged-history.json next to the first input)')

        # Clock probe command
        probe_parser = subparsers.add_parser('clock-probe', help='Sample a simulated clock')
        probe_parser.add_argument('--config', type=str, default=None,
                                  help='TOML file with clock settings (default: built-in defaults)')
        probe_parser.add_argument('--seconds', type=float, default=DEFAULT_PROBE_SECONDS,
                                  help=f'Sampling duration in seconds (default: {DEFAULT_PROBE_SECONDS})')
        probe_parser.add_argument('--interval-ms', type=float, default=DEFAULT_PROBE_INTERVAL_MS,
                                  help=f'Delay between samples in ms (default: {DEFAULT_PROBE_INTERVAL_MS})')

        return parser

    async def run_client(self, args):
        """Run one benchmark client."""
        from client.client import Client
        from client.config import ClientConfig

        client = None
        try:
            logger.info("=== KV Benchmark Client ===")

            config = ClientConfig.from_file(args.config) if args.config else ClientConfig.from_env()
            if args.correctness_check:
                config.correctness_check = True
            if args.history_output:
                config.history_output_path = args.history_output

            client = await Client.create(config)
            results = await client.run()

            logger.info(f"Client {results['client_id']} completed: "
                        f"{results['total_responses']}/{results['total_requests']} responses")
            return 0

        except Exception as e:
            logger.error(f"Error in client run: {e}")
            return 1
        finally:
            if client is not None:
                await client.network.shutdown()

    def run_merge_history(self, args):
        """Merge operation histories."""
        from correctness.operation_history import merge_histories

        try:
            missing = [path for path in args.histories if not os.path.exists(path)]
            if missing:
                logger.error(f"History file not found: {', '.join(missing)}")
                return 1

            merged = merge_histories(args.histories, args.output)
            logger.info(f"Merged history written to {merged}")
            return 0

        except Exception as e:
            logger.error(f"Error merging histories: {e}")
            return 1

    def run_clock_probe(self, args):
        """Sample a simulated clock against real time."""
        from clock.config import ClockConfig
        from clock.probe import probe_clock

        try:
            config = ClockConfig.from_file(args.config) if args.config else ClockConfig.from_mapping({})
            clock = config.build_clock()

            logger.info(f"=== Clock Probe: {clock!r} ===")
            stats = probe_clock(clock, args.seconds, args.interval_ms / MILLIS_PER_SECOND)

            logger.info(f"Samples: {stats['samples']}")
            logger.info(f"Max deviation from real time: {stats['max_deviation_us']:.1f} us "
                        f"(uncertainty ±{stats['uncertainty_us']} us)")
            logger.info(f"Samples outside bound: {stats['outside_bound']}, "
                        f"backwards steps: {stats['backwards']}")
            return 0

        except Exception as e:
            logger.error(f"Error in clock probe: {e}")
            return 1

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)
        setup_logging(parsed_args.verbose)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            if parsed_args.command == 'run':
                return uvloop.run(self.run_client(parsed_args))
            elif parsed_args.command == 'merge-history':
                return self.run_merge_history(parsed_args)
            elif parsed_args.command == 'clock-probe':
                return self.run_clock_probe(parsed_args)
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            return 1


def main():
    """Main entry point."""
    cli = KVBenchmarkCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
