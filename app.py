#!/usr/bin/env python3
"""
Vault find and replace from the command line.

Usage:
    python app.py search NOTES_DIR "cat"
    python app.py replace NOTES_DIR "(\\w+)@(\\w+)" "$2 at $1" --regex --dry-run
"""

import argparse
import asyncio
import logging
import os
import sys

from constants import DOCUMENT_EXTENSIONS
from managers.history import HistoryManager
from managers.replacement import ReplacementEngine
from managers.search_session import SearchSession
from managers.settings import SettingsManager
from models.document_host import DryRunHost, FolderVault
from models.errors import InvalidPattern
from models.search_models import MatchOptions, ReplaceCorpus
from utils.file_filter import FileFilter
from utils.log_setup import configure_logging
from utils.template import validate_template

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Find and replace text across a folder of notes"
    )
    parser.add_argument("--settings", help="JSON settings file (history, filters, limits)")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG or INFO")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="List matches")
    replace_parser = subparsers.add_parser("replace", help="Replace every match")
    replace_parser.add_argument("--dry-run", action="store_true",
                                help="Show the changed lines without writing them")

    for sub in (search_parser, replace_parser):
        sub.add_argument("root", help="Folder containing the documents")
        sub.add_argument("query", help="Text or pattern to find")
        if sub is replace_parser:
            sub.add_argument("template", help="Replacement text; $1, $& etc. with --regex")
        sub.add_argument("-c", "--case-sensitive", action="store_true")
        sub.add_argument("-w", "--whole-word", action="store_true")
        sub.add_argument("-r", "--regex", action="store_true", help="Treat the query as a pattern")
        sub.add_argument("-m", "--multiline", action="store_true",
                         help="Let patterns match across lines (with --regex)")
        sub.add_argument("--include", action="append", help="Glob or folder/ to include")
        sub.add_argument("--exclude", action="append", help="Glob or folder/ to exclude")
        sub.add_argument("--ext", action="append",
                         help="File extension to treat as a document (default: .md)")
        sub.add_argument("--all-files", action="store_true",
                         help="Treat every non-hidden file as a document")
        sub.add_argument("--max-results", type=int, help="Cap on listed results, 0 for no cap")
    return parser


def options_from_args(args):
    return MatchOptions(
        case_sensitive=args.case_sensitive,
        whole_word=args.whole_word,
        use_pattern=args.regex,
        multiline=args.multiline,
    )


def file_filter_from_args(args, settings):
    """Command line patterns replace the ones from the settings file."""
    file_filter = FileFilter(
        args.include if args.include else settings.get('include_patterns'),
        args.exclude if args.exclude else settings.get('exclude_patterns'),
    )
    return None if file_filter.is_empty else file_filter


def extensions_from_args(args, settings):
    """Extensions the vault enumerates; an empty tuple means every file."""
    if args.all_files:
        return ()
    return tuple(args.ext or settings.get('file_extensions') or DOCUMENT_EXTENSIONS)


def format_record(record):
    """Format a match as 'document:line:column: text', 1-based like grep."""
    column = (record.column or 0) + 1
    return f"{record.document_id}:{record.line_index + 1}:{column}: {record.line_text}"


async def run_search(host, args, settings, out):
    max_results = args.max_results if args.max_results is not None else settings.get('max_results')
    session = SearchSession(
        host,
        max_results=max_results,
        file_filter=file_filter_from_args(args, settings),
        batch_size=settings.get('search_batch_size'),
    )
    outcome = await session.search(args.query, options_from_args(args))
    for record in outcome.results:
        print(format_record(record), file=out)
    print(f"{outcome.summary()} in {outcome.documents_with_results} of "
          f"{outcome.documents_scanned} documents", file=out)
    return 0


async def run_replace(host, args, settings, out):
    options = options_from_args(args)
    for warning in validate_template(args.template, options):
        logger.warning(warning)

    # Every match is replaced, so the result cap does not apply
    session = SearchSession(
        host,
        max_results=0,
        file_filter=file_filter_from_args(args, settings),
        batch_size=settings.get('search_batch_size'),
    )
    outcome = await session.search(args.query, options)
    if not outcome.results:
        print("No matches", file=out)
        return 0

    target = DryRunHost(host) if args.dry_run else host
    engine = ReplacementEngine(target)
    diff = await engine.replace(outcome.results, ReplaceCorpus(), args.template, outcome.options)

    for document_id in sorted(diff.documents_modified):
        lines = diff.line_texts.get(document_id, {})
        if not lines:
            print(f"{document_id}: modified", file=out)
        for line_index in sorted(lines):
            print(f"{document_id}:{line_index + 1}: {lines[line_index]}", file=out)
    for document_id, message in sorted(diff.failed_documents.items()):
        print(f"Failed: {document_id}: {message}", file=sys.stderr)

    verb = "Would replace" if args.dry_run else "Replaced"
    print(f"{verb} {diff.total_replacements} match(es) in {len(diff.documents_modified)} document(s)",
          file=out)
    return 1 if diff.has_failures else 0


def main(argv=None, out=None):
    """Command line entry point.

    Returns:
        int: 0 on success, 1 if some documents failed, 2 on bad input
    """
    out = out or sys.stdout
    args = build_parser().parse_args(argv)

    settings = SettingsManager(args.settings)
    settings.load()
    configure_logging(args.log_level or settings.get('log_level'))

    if not os.path.isdir(args.root):
        print(f"Error: Directory not found: {args.root}", file=sys.stderr)
        return 2

    host = FolderVault(args.root, extensions=extensions_from_args(args, settings))
    runner = run_search if args.command == "search" else run_replace
    try:
        code = asyncio.run(runner(host, args, settings, out))
    except InvalidPattern as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.settings:
        history = HistoryManager(settings)
        history.add_search(args.query)
        if args.command == "replace":
            history.add_replace(args.template)
    return code


if __name__ == '__main__':
    sys.exit(main())
