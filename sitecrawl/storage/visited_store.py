"""
Visited-set persistence.

The visited set lives in memory for one run and is written back as a CSV file
with a single ``URL`` column once the crawl is over.
"""

import csv
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set, TextIO

from ..crawler.canonical import canonicalize
from ..errors import PersistenceError

URL_COLUMN = 'URL'


class VisitedSet:
    """
    Set of canonical URLs already claimed by the crawl.

    ``claim`` never awaits, so inside one event loop the membership test and
    the insert cannot interleave with another coroutine.
    """

    def __init__(self, urls: Optional[Iterable[str]] = None,
                 journal: Optional['VisitedJournal'] = None):
        self._urls: Set[str] = set(urls or ())
        self._journal = journal

    def claim(self, url: str) -> bool:
        """
        Insert url if absent.

        Returns:
            True if the caller now owns the URL, False if it was already visited
        """
        if url in self._urls:
            return False
        # Journal first: a failed append leaves the URL unclaimed
        if self._journal:
            self._journal.append(url)
        self._urls.add(url)
        return True

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self._urls)

    def snapshot(self) -> Set[str]:
        return set(self._urls)


class VisitedJournal:
    """Append-only log of claims made since the last flush."""

    def __init__(self, path: Path):
        self.path = path
        self._handle: Optional[TextIO] = None

    def append(self, url: str):
        try:
            if self._handle is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = open(self.path, 'a', encoding='utf-8')
            self._handle.write(url + '\n')
            self._handle.flush()
        except OSError as e:
            raise PersistenceError(f"Cannot append to journal {self.path}: {e}") from e

    def read(self) -> Set[str]:
        if not self.path.exists():
            return set()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return {line.strip() for line in f if line.strip()}
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Cannot read journal {self.path}: {e}") from e

    def close(self):
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def discard(self):
        self.close()
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class VisitedStore:
    """Loads and flushes the visited set to a CSV state file."""

    def __init__(self, path: str, write_ahead: bool = False):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self.journal: Optional[VisitedJournal] = None
        if write_ahead:
            self.journal = VisitedJournal(self.path.with_name(self.path.name + '.journal'))

    def load(self) -> VisitedSet:
        """
        Read the state file into a VisitedSet.

        A missing file yields an empty set. A file that exists but cannot be
        parsed raises PersistenceError, since treating it as empty would
        overwrite it at flush time.
        """
        urls: Set[str] = set()

        if not self.path.exists():
            self.logger.info(f"No existing state file at {self.path}. Starting fresh.")
        elif self.path.stat().st_size == 0:
            self.logger.warning(f"State file {self.path} is empty, starting with an empty visited set")
        else:
            urls = self._read_csv()
            self.logger.info(f"Loaded {len(urls)} URLs from {self.path}")

        if self.journal:
            journaled = self.journal.read()
            if journaled:
                self.logger.info(f"Recovered {len(journaled - urls)} URLs from journal {self.journal.path}")
                urls |= journaled

        return VisitedSet(urls, journal=self.journal)

    def _read_csv(self) -> Set[str]:
        urls: Set[str] = set()
        blank_rows = 0
        try:
            with open(self.path, 'r', encoding='utf-8', newline='') as f:
                reader = csv.DictReader(f)
                if not reader.fieldnames or URL_COLUMN not in reader.fieldnames:
                    raise PersistenceError(
                        f"State file {self.path} has no '{URL_COLUMN}' column "
                        f"(header: {reader.fieldnames})"
                    )
                for row in reader:
                    value = (row.get(URL_COLUMN) or '').strip()
                    if not value:
                        blank_rows += 1
                        continue
                    # Entries that no longer canonicalize are kept verbatim
                    urls.add(canonicalize(value) or value)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise PersistenceError(f"Cannot read state file {self.path}: {e}") from e

        if blank_rows:
            self.logger.warning(f"Skipped {blank_rows} blank rows in {self.path}")
        return urls

    def flush(self, visited: Iterable[str]) -> int:
        """
        Overwrite the state file with the full visited set.

        The file is written to a temporary sibling and moved into place, so a
        failed write leaves the previous state intact.

        Returns:
            Number of URLs written
        """
        records = sorted(set(visited))
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix='.tmp', dir=self.path.parent
            )
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=[URL_COLUMN])
                writer.writeheader()
                for url in records:
                    writer.writerow({URL_COLUMN: url})
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise PersistenceError(f"Cannot write state file {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    self.logger.warning(f"Could not remove temporary file {tmp_name}")

        if self.journal:
            self.journal.discard()

        self.logger.info(f"Saved {len(records)} URLs to {self.path}")
        return len(records)

    def close(self):
        if self.journal:
            self.journal.close()
