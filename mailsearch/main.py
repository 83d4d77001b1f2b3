"""
Command line entry point: search mailbox subjects for keywords.

Usage:
    mail-search -k invoice -k receipt --start-date 2024-11-01 --end-date 2024-11-30
"""

import argparse
import configparser
import logging
import sys
from datetime import date
from typing import Any, Dict, List, Optional

from rich.markup import escape

from mailsearch.config import load_config, graph_settings, auth_settings
from mailsearch.errors import ConfigurationError, MailSearchError, ValidationError
from mailsearch.providers.base import SessionProvider
from mailsearch.providers.microsoft import MsalSessionProvider
from mailsearch.search import run_search
from mailsearch.ui.cli import console, display_results, display_summary, display_error, export_results

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Search every folder of a Microsoft 365 / Outlook mailbox for subjects containing keywords"
    )
    parser.add_argument("-k", "--keyword", dest="keywords", action="append", required=True,
                        help="Keyword to look for in subjects (repeat for several; any may match)")
    parser.add_argument("--start-date", type=_parse_date, default=None,
                        help="Only messages received on or after this date (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=_parse_date, default=None,
                        help="Only messages received on or before this date (YYYY-MM-DD)")
    parser.add_argument("--format", choices=["table", "json", "csv"], default="table",
                        help="Output format")
    parser.add_argument("--output", type=str, default=None,
                        help="Write json/csv output to this file instead of stdout")
    parser.add_argument("--config", type=str, default="config.ini",
                        help="Path to configuration file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show a step-by-step diagnostic trace")
    return parser.parse_args(argv)


def setup_logging(cfg: configparser.ConfigParser, verbose: bool = False):
    """Configure logging based on settings in config."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if verbose:
        numeric_level = logging.DEBUG
    else:
        log_level = cfg.get("system", "log_level", fallback="INFO")
        numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(numeric_level)


def build_session_provider(auth: Dict[str, Any], graph: Dict[str, Any]) -> SessionProvider:
    """Create the MSAL-backed session provider from [auth] / [graph] settings."""
    return MsalSessionProvider(
        client_id=auth["client_id"],
        tenant_id=auth["tenant_id"],
        token_cache_path=auth["token_cache"],
        method=auth["method"],
        scopes=auth["scopes"],
        timeout=graph["timeout"],
        device_code_callback=lambda message: console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
    )


def main(argv: Optional[List[str]] = None, session_provider: Optional[SessionProvider] = None) -> int:
    """Main entry point for the application."""
    args = parse_arguments(argv)
    try:
        cfg = load_config(args.config)
        graph = graph_settings(cfg)
        auth = auth_settings(cfg)
    except ConfigurationError as e:
        display_error(e.message, e.stage)
        return 1
    setup_logging(cfg, args.verbose)

    if args.output and args.format == "table":
        console.print("[yellow]--output is ignored for table format[/yellow]")

    try:
        if session_provider is None:
            session_provider = build_session_provider(auth, graph)

        result = run_search(
            args.keywords,
            args.start_date,
            args.end_date,
            session_provider=session_provider,
            base_url=graph["base_url"],
            scopes=auth["scopes"],
            max_pages=graph["max_pages"],
            page_size=graph["page_size"],
            include_hidden_folders=graph["include_hidden_folders"]
        )
    except ValidationError as e:
        display_error(e.message, e.stage)
        return 2
    except MailSearchError as e:
        logger.debug(f"Search failed at stage {e.stage}", exc_info=True)
        display_error(e.message, e.stage)
        return 1

    if args.format == "table":
        display_results(result.records)
        display_summary(result)
    else:
        export_results(result.records, args.format, args.output)
        if args.output:
            display_summary(result)

    return 0


if __name__ == "__main__":
    sys.exit(main())
