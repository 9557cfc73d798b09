"""Command-line interface for Command Tower."""

import argparse
import sys
import logging
import time
from pathlib import Path
from typing import Callable, Optional, Set

from . import __version__
from .config import ConfigManager, TowerConfig, apply_env_overrides
from .controller import (
    DisplayState, parse_selection, show_next, show_previous,
    show_decklist, show_price, copy_decklist
)
from .edhrec_service import EDHRECService
from .exceptions import CollaboratorError, CommandTowerError
from .history import History
from .image_service import ImageService
from .scryfall_service import ScryfallService


HELP_TEXT = """Commands:
  n, next            show the next commander (fetches a new one at the newest)
  b, back            show the previous commander
  d, deck            show the average decklist
  p, price           price the average decklist
  c, copy            copy the decklist to the clipboard
  colors <WUBRG>     change the colour filter (empty clears it)
  exact on|off       require exactly the selected colours
  query <text>       change the free-form Scryfall query (empty clears it)
  h, help            show this help
  q, quit            exit"""


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for the interactive session.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog='command-tower',
        description='Browse random Commander commanders with their average EDHREC decklist and price',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --colors WU --exact
  %(prog)s --colors BG --query "t:elf"
  %(prog)s --concurrency 4 --verbose
        """
    )

    parser.add_argument(
        '--colors', '-c',
        type=str,
        default='',
        help='Colour identity filter as letters, e.g. WUB (default: any)'
    )

    parser.add_argument(
        '--exact', '-e',
        action='store_true',
        help='Require exactly the selected colours instead of a subset'
    )

    parser.add_argument(
        '--query',
        type=str,
        default='',
        help='Additional Scryfall search syntax, e.g. "t:dragon"'
    )

    parser.add_argument(
        '--concurrency',
        type=int,
        metavar='N',
        help='Number of parallel price lookups per decklist (default: from config)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output with detailed progress information'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress all output except errors'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args(argv)

    if args.verbose and args.quiet:
        parser.error("--verbose and --quiet cannot be used together")

    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")

    return args


def setup_logging(verbose: bool = False, quiet: bool = False, logs_dir: Optional[Path] = None) -> None:
    """
    Set up the logging system for debugging and user information.

    Args:
        verbose: Enable verbose logging with detailed operation reporting
        quiet: Enable quiet mode (errors only)
        logs_dir: Directory for the verbose log file (defaults to ~/.command_tower/logs)
    """
    if quiet:
        level = logging.ERROR
        format_str = '%(levelname)s: %(message)s'
    elif verbose:
        level = logging.DEBUG
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        level = logging.WARNING
        format_str = '%(levelname)s: %(message)s'

    class MultilineFormatter(logging.Formatter):
        def format(self, record):
            formatted = super().format(record)
            if '\n' in formatted:
                lines = formatted.split('\n')
                return '\n'.join([lines[0]] + ['  ' + line for line in lines[1:]])
            return formatted

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    for handler in logging.root.handlers:
        handler.setFormatter(MultilineFormatter(format_str, datefmt='%Y-%m-%d %H:%M:%S'))

    app_logger = logging.getLogger('command_tower')
    app_logger.setLevel(level)

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)
        logging.getLogger('pyedhrec').setLevel(logging.WARNING)

    if verbose:
        try:
            log_dir = Path(logs_dir) if logs_dir else ConfigManager.DEFAULT_CONFIG_DIR / 'logs'
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"command_tower_{time.strftime('%Y%m%d_%H%M%S')}.log"

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(MultilineFormatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))

            logging.root.addHandler(file_handler)
            logging.info(f"Detailed logs will be saved to: {log_file}")

        except OSError as e:
            logging.warning(f"Could not set up file logging: {e}")


class ProgressIndicator:
    """Simple progress indicator for network-bound commands."""

    def __init__(self, message: str, verbose: bool = False, quiet: bool = False):
        self.message = message
        self.verbose = verbose
        self.quiet = quiet
        self.start_time = None

    def __enter__(self):
        if not self.quiet:
            if self.verbose:
                print(f"[{time.strftime('%H:%M:%S')}] Starting: {self.message}")
            else:
                print(f"{self.message}...", end='', flush=True)

        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time and not self.quiet:
            duration = time.time() - self.start_time
            outcome = "Completed" if exc_type is None else "Failed"
            if self.verbose:
                print(f"[{time.strftime('%H:%M:%S')}] {outcome}: {self.message} ({duration:.1f}s)")
            else:
                print(f" {'done' if exc_type is None else 'failed'} ({duration:.1f}s)")
        return False


def build_history(config: TowerConfig) -> History:
    """Wire the services described by the configuration into a History."""
    scryfall = ScryfallService.from_config(config)
    return History(
        catalog=scryfall,
        decklists=EDHRECService.from_config(config),
        prices=scryfall,
        images=ImageService.from_config(config),
        price_concurrency=config.price_concurrency
    )


def format_state(state: DisplayState, currency: str = "eur", show_decklist_text: bool = False) -> str:
    """Render a display state as terminal text."""
    if not state.has_commander and state.total == 0:
        return state.message or "No commander loaded"

    lines = []
    title = state.name or "(no commander found)"
    lines.append(f"[{state.position + 1}/{state.total}] {title}")
    if state.image is not None:
        lines.append(f"  Image: {state.image.uri}")
    if state.price is not None:
        lines.append(f"  Price: {state.price:.2f} {currency.upper()}")
    if show_decklist_text and state.decklist:
        lines.append("")
        lines.append(state.decklist)
    if state.message:
        lines.append(f"  {state.message}")
    return "\n".join(lines)


def handle_user_friendly_errors(error: Exception, verbose: bool = False) -> str:
    """
    Convert technical errors into user-friendly error messages.

    Args:
        error: Exception to convert
        verbose: Whether to include technical details

    Returns:
        User-friendly error message
    """
    if isinstance(error, CollaboratorError):
        return f"Card service error: {error}"

    elif isinstance(error, CommandTowerError):
        return f"Command Tower error: {error}"

    elif isinstance(error, ValueError):
        return f"Invalid input: {error}"

    elif isinstance(error, OSError):
        return f"File system error: {error}"

    else:
        if verbose:
            return f"Unexpected error: {error}"
        else:
            return "An unexpected error occurred. Use --verbose for more details."


def run_session(history: History, selection: Set[str], query: str = "",
                currency: str = "eur", verbose: bool = False, quiet: bool = False,
                copy_on_load: bool = False,
                input_func: Callable[[str], str] = input) -> int:
    """
    Run the interactive command loop until the user quits.

    Commands are handled one at a time, so the history is never accessed
    concurrently.

    Returns:
        Number of commands handled
    """
    with ProgressIndicator("Fetching commander", verbose, quiet):
        state = show_next(history, selection, query)
    print(format_state(state, currency))
    if copy_on_load and state.has_commander:
        print(format_state(copy_decklist(history), currency))

    handled = 0
    while True:
        try:
            line = input_func("command-tower> ")
        except EOFError:
            break

        command, _, argument = line.strip().partition(' ')
        command = command.lower()
        argument = argument.strip()
        if not command:
            continue
        handled += 1

        show_text = False
        if command in ('q', 'quit', 'exit'):
            break
        elif command in ('h', 'help', '?'):
            print(HELP_TEXT)
            continue
        elif command in ('n', 'next'):
            with ProgressIndicator("Fetching commander", verbose, quiet):
                state = show_next(history, selection, query)
            if copy_on_load and state.has_commander:
                state = copy_decklist(history)
        elif command in ('b', 'back'):
            state = show_previous(history)
        elif command in ('d', 'deck'):
            with ProgressIndicator("Fetching decklist", verbose, quiet):
                state = show_decklist(history)
            show_text = True
        elif command in ('p', 'price'):
            with ProgressIndicator("Pricing decklist", verbose, quiet):
                state = show_price(history, currency)
        elif command in ('c', 'copy'):
            state = copy_decklist(history)
        elif command == 'colors':
            try:
                exact = 'e' in selection
                selection = parse_selection([argument], exact)
            except ValueError as e:
                print(handle_user_friendly_errors(e, verbose))
                continue
            print(f"Colour filter: {''.join(sorted(selection - {'e'})) or 'any'}")
            continue
        elif command == 'exact':
            if argument.lower() in ('on', 'yes', 'true', '1'):
                selection = selection | {'e'}
            else:
                selection = selection - {'e'}
            print(f"Exact colours: {'on' if 'e' in selection else 'off'}")
            continue
        elif command == 'query':
            query = argument
            print(f"Query: {query or '(none)'}")
            continue
        else:
            print(f"Unknown command: {command} (type 'help' for a list)")
            continue

        print(format_state(state, currency, show_decklist_text=show_text))

    return handled


def main(argv: Optional[list] = None):
    """Main entry point for the Command Tower CLI."""
    args = None

    try:
        args = parse_arguments(argv)

        config_manager = ConfigManager()
        config = apply_env_overrides(config_manager.get_config())
        if args.concurrency is not None:
            config.price_concurrency = args.concurrency

        verbose = args.verbose or config.verbose_output
        setup_logging(verbose, args.quiet, logs_dir=config_manager.get_logs_dir() if verbose else None)

        selection = parse_selection([args.colors], args.exact)

        if not args.quiet:
            print(f"Command Tower v{__version__}")
            print("=" * 40)
            print("Type 'help' for a list of commands.")

        history = build_history(config)
        run_session(
            history,
            selection,
            query=args.query,
            currency=config.price_currency,
            verbose=verbose,
            quiet=args.quiet,
            copy_on_load=config.copy_decklist_on_load
        )

    except KeyboardInterrupt:
        if not (args and args.quiet):
            print("\nOperation cancelled by user")
        sys.exit(1)

    except (ValueError, CommandTowerError) as e:
        if args and args.verbose:
            logging.error(f"Error: {e}")
        else:
            print(f"Error: {handle_user_friendly_errors(e, args.verbose if args else False)}")
        sys.exit(1)

    except Exception as e:
        error_msg = handle_user_friendly_errors(e, args.verbose if args else False)

        if args and args.verbose:
            logging.error(f"Unexpected error: {e}")
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {error_msg}")

        sys.exit(1)


if __name__ == "__main__":
    main()
