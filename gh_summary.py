#!/usr/bin/env python3
"""
GitHub Activity Summary
Prints a summary of your recent GitHub activity using the GitHub CLI (gh).
"""

import os
import sys
import json
import subprocess
import argparse
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional


# Date format accepted by --since and passed to gh search qualifiers
SINCE_DATE_FORMAT = '%Y-%m-%d'

# gh search datetime format
GITHUB_DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

DEFAULT_DAYS_BACK = 7
GH_SEARCH_LIMIT = 1000

# gh exits with status 4 when a command requires authentication
GH_AUTH_EXIT_CODE = 4

LABEL_WIDTH = 19
RULE = '=' * 50


class GhSummaryError(Exception):
    """Base error for gh-summary. Every error aborts the run."""

    exit_code = 1


class InvalidDate(GhSummaryError):
    exit_code = 2


class UsageError(GhSummaryError):
    exit_code = 2


class ExternalToolMissing(GhSummaryError):
    pass


class AuthenticationError(GhSummaryError):
    pass


class ExternalToolError(GhSummaryError):
    pass


class ParseError(GhSummaryError):
    pass


class ActivityKind(Enum):
    """
    The activity kinds reported on, in display order.

    Each value is (label, search subcommand, role qualifier, date qualifier,
    timestamp field).
    """

    PR_OPENED = ('PRs opened:', 'prs', '--author', '--created', 'createdAt')
    ISSUE_OPENED = ('Issues opened:', 'issues', '--author', '--created', 'createdAt')
    ISSUE_CLOSED = ('Issues closed:', 'issues', '--author', '--closed', 'closedAt')
    REVIEW_GIVEN = ('PR reviews given:', 'prs', '--reviewed-by', '--updated', 'updatedAt')

    def __init__(self, label: str, subcommand: str, role_flag: str,
                 date_flag: str, timestamp_field: str):
        self.label = label
        self.subcommand = subcommand
        self.role_flag = role_flag
        self.date_flag = date_flag
        self.timestamp_field = timestamp_field


@dataclass(frozen=True)
class ActivityQuery:
    since: date
    verbose: bool = False


@dataclass(frozen=True)
class ActivityItem:
    kind: ActivityKind
    title: str
    url: str
    timestamp: date

    @property
    def repo(self) -> Optional[str]:
        """Return owner/repo for github.com URLs, None otherwise."""
        parts = self.url.split('/')
        if len(parts) >= 5 and parts[2] == 'github.com':
            return f"{parts[3]}/{parts[4]}"
        return None


@dataclass
class ActivitySummary:
    since: date
    username: str
    items_by_kind: Dict[ActivityKind, List[ActivityItem]]

    def items(self, kind: ActivityKind) -> List[ActivityItem]:
        return self.items_by_kind.get(kind, [])

    def count(self, kind: ActivityKind) -> int:
        return len(self.items(kind))

    def repo_count(self, kind: ActivityKind) -> int:
        return len({item.repo for item in self.items(kind) if item.repo})


def run_gh_command(args: List[str]) -> str:
    """
    Execute a GitHub CLI command and return its standard output.

    Args:
        args: Arguments passed to gh

    Raises:
        ExternalToolMissing: gh is not installed or not on PATH
        AuthenticationError: gh reports that it is not authenticated
        ExternalToolError: gh could not be run or exited non-zero
    """
    try:
        result = subprocess.run(['gh', *args], capture_output=True, encoding='utf-8',
                                errors='replace', check=False)
    except FileNotFoundError as e:
        raise ExternalToolMissing(
            "GitHub CLI (gh) not found. Please install it from https://cli.github.com/ "
            "and make sure it's in your PATH."
        ) from e
    except OSError as e:
        raise ExternalToolError(f"Failed to execute gh command: {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or '').strip()
        if result.returncode == GH_AUTH_EXIT_CODE or 'gh auth login' in stderr:
            raise AuthenticationError(f"gh is not authenticated: {stderr}")
        raise ExternalToolError(f"gh command failed: {stderr}")

    return result.stdout


def parse_since_date(value: str) -> date:
    """Parse a YYYY-MM-DD date string."""
    try:
        return datetime.strptime(value, SINCE_DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise InvalidDate(f"Invalid date '{value}', expected YYYY-MM-DD") from None


def _parse_timestamp(value: str) -> date:
    if not isinstance(value, str):
        raise ParseError(f"Unexpected timestamp from gh: {value!r}")
    try:
        return datetime.strptime(value, GITHUB_DATETIME_FORMAT).date()
    except ValueError:
        # gh occasionally returns offsets or fractional seconds
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
        except ValueError:
            raise ParseError(f"Unexpected timestamp from gh: {value!r}") from None


class GitHubActivitySummarizer:
    """Collect GitHub activity for the authenticated gh user."""

    def __init__(self, username: Optional[str] = None):
        """
        Initialize the summarizer.

        Args:
            username: GitHub login to summarize; resolved through gh when omitted
        """
        self.username = username

    def get_current_user(self) -> str:
        """Return the login of the user gh is authenticated as."""
        login = run_gh_command(['api', 'user', '--jq', '.login']).strip()
        if not login:
            raise ParseError("gh returned an empty login for the current user")
        return login

    def _search_args(self, kind: ActivityKind, since: date) -> List[str]:
        return [
            'search', kind.subcommand,
            kind.role_flag, self.username,
            kind.date_flag, f">={since.strftime(SINCE_DATE_FORMAT)}",
            '--json', f"url,title,{kind.timestamp_field}",
            '--limit', str(GH_SEARCH_LIMIT),
        ]

    def _parse_items(self, kind: ActivityKind, output: str) -> List[ActivityItem]:
        try:
            records = json.loads(output)
        except ValueError as e:
            raise ParseError(f"Failed to parse JSON from gh search {kind.subcommand}: {e}") from e

        if not isinstance(records, list):
            raise ParseError(f"Expected a JSON list from gh search {kind.subcommand}")

        items = []
        for record in records:
            if not isinstance(record, dict):
                raise ParseError(f"Unexpected item in gh search {kind.subcommand} output: {record!r}")
            try:
                url = record['url']
                title = record['title']
                timestamp = record[kind.timestamp_field]
            except KeyError as e:
                raise ParseError(f"Missing field {e} in gh search {kind.subcommand} output") from e
            if not isinstance(url, str) or not isinstance(title, str):
                raise ParseError(f"Unexpected url or title in gh search {kind.subcommand} output: {record!r}")
            items.append(ActivityItem(kind, title, url, _parse_timestamp(timestamp)))
        return items

    def search(self, kind: ActivityKind, since: date) -> List[ActivityItem]:
        """
        Fetch one kind of activity since the given date.

        Args:
            kind: Activity kind to search for
            since: Inclusive date boundary

        Returns:
            Items in the order gh returned them
        """
        output = run_gh_command(self._search_args(kind, since))
        return self._parse_items(kind, output)

    def fetch_summary(self, query: ActivityQuery) -> ActivitySummary:
        """Fetch every activity kind. Any failure aborts the whole summary."""
        if not self.username:
            self.username = self.get_current_user()

        items_by_kind = {}
        for kind in ActivityKind:
            items_by_kind[kind] = self.search(kind, query.since)

        return ActivitySummary(query.since, self.username, items_by_kind)


def _format_count_line(summary: ActivitySummary, kind: ActivityKind, verbose: bool) -> str:
    count = summary.count(kind)
    if verbose:
        return f"{kind.label:<{LABEL_WIDTH}}{count}"
    repo_count = summary.repo_count(kind)
    repo_suffix = 'repository' if repo_count == 1 else 'repositories'
    return f"{kind.label:<{LABEL_WIDTH}}{count} across {repo_count} {repo_suffix}"


def format_summary(summary: ActivitySummary, verbose: bool = False) -> str:
    """Format the summary as plain text."""
    lines = [
        f"User: {summary.username}",
        "",
        f"Activity since {summary.since.strftime(SINCE_DATE_FORMAT)}:",
        RULE,
    ]
    for kind in ActivityKind:
        lines.append(_format_count_line(summary, kind, verbose))
        if verbose:
            lines.extend(f"  - {item.title} ({item.url})" for item in summary.items(kind))
    lines.append(RULE)
    return '\n'.join(lines)


def print_summary(summary: ActivitySummary, verbose: bool = False) -> None:
    print(format_summary(summary, verbose))


class SummaryArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(f"{self.prog}: {message}")


def setup_argument_parser() -> argparse.ArgumentParser:
    """Setup and return the argument parser."""
    parser = SummaryArgumentParser(
        prog='gh-summary',
        allow_abbrev=False,
        description='Summarize your recent GitHub activity using the GitHub CLI (gh).'
    )
    parser.add_argument(
        '--since',
        metavar='YYYY-MM-DD',
        help=f'Report activity since this date (default: {DEFAULT_DAYS_BACK} days ago)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='List the title and link of every item'
    )
    return parser


def resolve_query(argv: Optional[List[str]] = None, today: Optional[date] = None) -> ActivityQuery:
    """
    Build the query from command line arguments.

    Args:
        argv: Arguments to parse (default: sys.argv[1:])
        today: Reference date for the default window (default: date.today())
    """
    args = setup_argument_parser().parse_args(argv)

    if args.since is not None:
        since = parse_since_date(args.since)
    else:
        since = (today or date.today()) - timedelta(days=DEFAULT_DAYS_BACK)

    return ActivityQuery(since=since, verbose=args.verbose)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script."""
    try:
        query = resolve_query(argv)
        summarizer = GitHubActivitySummarizer(os.environ.get('GITHUB_USERNAME') or None)
        summary = summarizer.fetch_summary(query)
    except GhSummaryError as e:
        print(f"Error: {e}", file=sys.stderr)
        if isinstance(e, AuthenticationError):
            print("Make sure you're authenticated with 'gh auth login'", file=sys.stderr)
        return e.exit_code

    print_summary(summary, query.verbose)
    return 0


if __name__ == '__main__':
    sys.exit(main())
