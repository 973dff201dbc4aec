"""
Git-derived "last updated" timestamps.

A timestamp source answers resolve(path) with Unix seconds or raises
TimestampUnavailable. FallbackTimestampSource walks an ordered list of
sources and falls back to the current time, so a lookup never aborts a run:

    uncommitted changes -> current time
    commit history      -> time of the last commit touching the path
    otherwise           -> current time
"""

import subprocess
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

Clock = Callable[[], float]

GIT_TIMEOUT = 30


class TimestampUnavailable(Exception):
    """The source has no timestamp for this path"""


class GitCommandError(TimestampUnavailable):
    """git could not be run or exited with an error"""


def now(clock: Clock = time.time) -> int:
    return int(clock())


def iso(timestamp: int) -> str:
    """Render Unix seconds as an ISO-8601 UTC string"""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace('+00:00', 'Z')


def run_git(args: List[str], cwd: Path, timeout: int = GIT_TIMEOUT) -> str:
    """Run a git command and return its stripped stdout"""
    cmd = ['git'] + args
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, timeout=timeout)
    except (subprocess.TimeoutExpired, OSError) as e:
        raise GitCommandError(f"{' '.join(cmd)}: {e}") from e

    if result.returncode != 0:
        raise GitCommandError(f"{' '.join(cmd)} exited with {result.returncode}: {result.stderr.strip()}")
    return result.stdout.strip()


class TimestampSource:
    """Base class for timestamp lookups"""

    def resolve(self, path: str) -> int:
        raise NotImplementedError


class UncommittedChangeTimestamp(TimestampSource):
    """Current time for paths with uncommitted changes in the working tree"""

    def __init__(self, repo_root: Path, clock: Clock = time.time, timeout: int = GIT_TIMEOUT):
        self.repo_root = Path(repo_root)
        self.clock = clock
        self.timeout = timeout

    def resolve(self, path: str) -> int:
        status = run_git(['status', '--porcelain', '--', path], self.repo_root, self.timeout)
        if not status:
            raise TimestampUnavailable(f"no uncommitted changes in {path}")
        return now(self.clock)


class CommitHistoryTimestamp(TimestampSource):
    """Time of the most recent commit touching a path, following renames"""

    def __init__(self, repo_root: Path, timeout: int = GIT_TIMEOUT):
        self.repo_root = Path(repo_root)
        self.timeout = timeout

    def resolve(self, path: str) -> int:
        output = run_git(['log', '-1', '--format=%ct', '--follow', '--', path], self.repo_root, self.timeout)
        if not output:
            raise TimestampUnavailable(f"no git history for {path}")
        try:
            return int(output.splitlines()[0])
        except ValueError as e:
            raise GitCommandError(f"unexpected git log output for {path}: {output!r}") from e


class FallbackTimestampSource(TimestampSource):
    """Try each source in order, current time when none has an answer"""

    def __init__(self, sources: Sequence[TimestampSource], clock: Clock = time.time, verbose: bool = False):
        self.sources = list(sources)
        self.clock = clock
        self.verbose = verbose

    def resolve(self, path: str) -> int:
        for source in self.sources:
            try:
                timestamp = source.resolve(path)
            except GitCommandError as e:
                print(f"Warning: Could not get git timestamp for '{path}': {e}", file=sys.stderr)
                continue
            except TimestampUnavailable as e:
                if self.verbose:
                    print(f"  {type(source).__name__}: {e}", file=sys.stderr)
                continue
            if self.verbose:
                print(f"Timestamp for {path}: {iso(timestamp)} ({type(source).__name__})", file=sys.stderr)
            return timestamp

        fallback = now(self.clock)
        if self.verbose:
            print(f"No timestamp for {path}, using current time: {iso(fallback)}", file=sys.stderr)
        return fallback


def git_timestamp_source(repo_root: Path, clock: Clock = time.time, verbose: bool = False,
                         timeout: Optional[int] = None) -> FallbackTimestampSource:
    """Standard chain: uncommitted changes, then commit history, then current time"""
    timeout = timeout or GIT_TIMEOUT
    return FallbackTimestampSource(
        [
            UncommittedChangeTimestamp(repo_root, clock=clock, timeout=timeout),
            CommitHistoryTimestamp(repo_root, timeout=timeout),
        ],
        clock=clock,
        verbose=verbose,
    )
