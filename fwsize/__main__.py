# PYTHON_ARGCOMPLETE_OK
import argparse
import asyncio
from dataclasses import asdict, replace
import json
import logging
import os
from pathlib import Path
import sys

import argcomplete

from fwsize import const
from fwsize.analyze_memory import analyze_firmware
from fwsize.analyze_memory.cache import AnalysisCache
from fwsize.analyze_memory.cli import format_lookup, format_symbol_page, generate_report
from fwsize.analyze_memory.const import SortKey, SortOrder
from fwsize.analyze_memory.toolchain import ToolchainConfig
from fwsize.config import load_toolchain_config
from fwsize.const import ENV_LOG_LEVEL, ENV_VERBOSE
from fwsize.core import CORE, FwsizeError
from fwsize.helpers import get_bool_env
from fwsize.log import AnsiFore, color, setup_log

_LOGGER = logging.getLogger(__name__)


def safe_print(message: str = "") -> None:
    try:
        print(message)
    except UnicodeEncodeError:
        print(message.encode("ascii", "backslashreplace").decode())


def get_toolchain_config(args) -> ToolchainConfig:
    """Build the toolchain config from a config file and command line overrides."""
    if args.toolchain_config:
        config = load_toolchain_config(Path(args.toolchain_config))
    else:
        config = ToolchainConfig()

    overrides = {
        "toolchain_root": args.toolchain_root,
        "nm_path": args.nm,
        "objdump_path": args.objdump,
        "strings_path": args.strings,
        "timeout": args.tool_timeout,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if args.no_auto_detect:
        overrides["auto_detect"] = False
    return replace(config, **overrides)


def run_analysis(args):
    cache = AnalysisCache(CORE.cache_dir)
    return analyze_firmware(
        args.binary,
        args.map,
        get_toolchain_config(args),
        store=CORE.symbols,
        cache=cache,
    )


def command_analyze(args) -> int:
    result = run_analysis(args)
    if args.json:
        safe_print(json.dumps(result.to_dict(), indent=2))
    else:
        safe_print(generate_report(result))
    return 0


def command_symbols(args) -> int:
    run_analysis(args)
    page = CORE.symbols.list_symbols(
        query=args.query,
        page=args.page,
        page_size=args.page_size,
        sort=args.sort,
        order=args.order,
    )
    if args.json:
        safe_print(
            json.dumps(
                {"total": page.total, "items": [asdict(item) for item in page.items]},
                indent=2,
            )
        )
    else:
        safe_print(format_symbol_page(page, args.page, args.page_size))
    return 0


def command_lookup(args) -> int:
    run_analysis(args)
    for address in args.address:
        result = CORE.symbols.lookup_pc(address)
        if result.symbol is None:
            safe_print(color(AnsiFore.YELLOW, format_lookup(result)))
        else:
            safe_print(format_lookup(result))
    return 0


def command_serve(args) -> int:
    from fwsize.dashboard.web_server import async_serve

    cache = AnalysisCache(CORE.cache_dir)
    try:
        asyncio.run(async_serve(CORE.symbols, cache, args.address, args.port))
    except KeyboardInterrupt:
        _LOGGER.info("Shutting down...")
    return 0


POST_PARSE_ACTIONS = {
    "analyze": command_analyze,
    "symbols": command_symbols,
    "lookup": command_lookup,
    "serve": command_serve,
}


def parse_args(argv):
    options_parser = argparse.ArgumentParser(add_help=False)
    options_parser.add_argument(
        "-v",
        "--verbose",
        help="Enable verbose fwsize logs.",
        action="store_true",
        default=get_bool_env(ENV_VERBOSE),
    )
    options_parser.add_argument(
        "-q", "--quiet", help="Disable all fwsize logs.", action="store_true"
    )
    options_parser.add_argument(
        "-l",
        "--log-level",
        help="Set the log level.",
        default=os.getenv(ENV_LOG_LEVEL, "INFO"),
        action="store",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    options_parser.add_argument(
        "--config-dir",
        help="Directory holding the analysis cache. Defaults to the user config directory.",
    )

    parser = argparse.ArgumentParser(
        description=f"fwsize {const.__version__}", parents=[options_parser]
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Version: {const.__version__}",
        help="Print the fwsize version and exit.",
    )

    toolchain_options = argparse.ArgumentParser(add_help=False)
    toolchain_options.add_argument(
        "--toolchain-config", help="YAML file with toolchain settings."
    )
    toolchain_options.add_argument(
        "--toolchain-root", help="Toolchain install directory (or its bin directory)."
    )
    toolchain_options.add_argument("--nm", help="Path to the nm binary.")
    toolchain_options.add_argument("--objdump", help="Path to the objdump binary.")
    toolchain_options.add_argument("--strings", help="Path to the strings binary.")
    toolchain_options.add_argument(
        "--no-auto-detect",
        help="Do not search PATH for the toolchain.",
        action="store_true",
    )
    toolchain_options.add_argument(
        "--tool-timeout",
        help="Seconds to allow each toolchain command.",
        type=float,
    )

    binary_options = argparse.ArgumentParser(
        add_help=False, parents=[toolchain_options]
    )
    binary_options.add_argument("binary", help="The ELF binary to analyze.")
    binary_options.add_argument("--map", help="Linker map file of the binary.")
    binary_options.add_argument(
        "--json", help="Print machine readable JSON.", action="store_true"
    )

    subparsers = parser.add_subparsers(
        help="Command to run:", dest="command", metavar="command"
    )
    subparsers.required = True

    subparsers.add_parser(
        "analyze",
        help="Analyze size usage of a firmware binary.",
        parents=[binary_options],
    )

    parser_symbols = subparsers.add_parser(
        "symbols",
        help="List the symbols of a firmware binary.",
        parents=[binary_options],
    )
    parser_symbols.add_argument("--query", help="Only list names containing this.")
    parser_symbols.add_argument("--page", help="Page to show.", type=int, default=1)
    parser_symbols.add_argument(
        "--page-size",
        help="Symbols per page.",
        type=int,
        default=const.DEFAULT_PAGE_SIZE,
    )
    parser_symbols.add_argument(
        "--sort", help="Sort key.", choices=[str(key) for key in SortKey]
    )
    parser_symbols.add_argument(
        "--order", help="Sort order.", choices=[str(order) for order in SortOrder]
    )

    parser_lookup = subparsers.add_parser(
        "lookup",
        help="Find the symbols containing program counter addresses.",
        parents=[binary_options],
    )
    parser_lookup.add_argument(
        "address", help="Addresses, hex or decimal.", nargs="+"
    )

    parser_serve = subparsers.add_parser(
        "serve", help="Serve the analysis API over HTTP."
    )
    parser_serve.add_argument(
        "--address", help="The address to bind to.", type=str, default="127.0.0.1"
    )
    parser_serve.add_argument(
        "--port", help="The HTTP port to open.", type=int, default=6070
    )

    argcomplete.autocomplete(parser)
    return parser.parse_args(argv[1:])


def run_fwsize(argv):
    args = parse_args(argv)
    CORE.verbose = args.verbose
    if args.config_dir:
        CORE.config_path = Path(args.config_dir)

    # Override log level if verbose is set
    if args.verbose:
        args.log_level = "DEBUG"
    elif args.quiet:
        args.log_level = "CRITICAL"

    setup_log(
        log_level=args.log_level,
        # Show timestamp for server access logs
        include_timestamp=args.command == "serve",
    )

    try:
        return POST_PARSE_ACTIONS[args.command](args)
    except FwsizeError as e:
        _LOGGER.error(e, exc_info=args.verbose)
        return 1


def main():
    try:
        return run_fwsize(sys.argv)
    except FwsizeError as e:
        _LOGGER.error(e)
        return 1
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
