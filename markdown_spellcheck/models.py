"""
Markdown Spellcheck Data Models
===============================
Dataclasses for misspellings, context records, report rows, settings,
and the failure/warning records delivered to the scan sinks.

Nothing here outlives a single scan invocation.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Optional, Any, FrozenSet
from enum import Enum
import json


class FailureKind(Enum):
    """Fatal conditions. The kind tells a skipped file from an aborted scan."""
    SETTINGS_MALFORMED = "settings_malformed"      # Scan-wide, halts everything
    CONTENT_FETCH_FAILED = "content_fetch_failed"  # Per file, siblings continue
    SPELLCHECK_FAILED = "spellcheck_failed"        # Per file, oracle raised


class WarningKind(Enum):
    """Recoverable conditions."""
    SETTINGS_INCOMPLETE = "settings_incomplete"


class ScanState(Enum):
    """Stages a scan moves through, in order."""
    COLLECTING_FILES = "collecting_files"
    RESOLVING_SETTINGS = "resolving_settings"
    FETCHING_CONTENT = "fetching_content"
    SCANNING = "scanning"
    REPORTING = "reporting"
    DONE = "done"


@dataclass
class Misspelling:
    """A word the oracle flagged, with its zero-based offset into the source text."""
    word: str
    offset: int
    suggestions: List[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.word)


@dataclass(frozen=True)
class ContextRecord:
    """Where a misspelling sits: 1-based line number and a context snippet."""
    line_number: int
    snippet: str


@dataclass(frozen=True)
class ReportRow:
    """One table row, with the snippet already escaped for markdown."""
    line_number: int
    rendered_snippet: str

    def to_markdown(self) -> str:
        return f"{self.line_number} | {self.rendered_snippet}"


@dataclass(frozen=True)
class SettingsLocation:
    """A decomposed `owner/repo@path` settings descriptor."""
    owner: str
    repo: str
    path: str

    def to_params(self) -> Dict[str, str]:
        return {'owner': self.owner, 'repo': self.repo, 'path': self.path}


@dataclass(frozen=True)
class ScanSettings:
    """Ignore words (lowercased) and whitelisted file paths for one scan."""
    ignore_words: FrozenSet[str] = frozenset()
    whitelist_files: FrozenSet[str] = frozenset()

    @classmethod
    def empty(cls) -> 'ScanSettings':
        return cls()


@dataclass(frozen=True)
class ReviewTarget:
    """The pull request under review: where its files live and at which ref."""
    owner: str
    repo: str
    head_ref: str

    def location_params(self, path: str) -> Dict[str, str]:
        """Content-fetch parameters for a file in the submission."""
        return {
            'owner': self.owner,
            'repo': self.repo,
            'path': path,
            'ref': self.head_ref,
        }

    def file_url(self, path: str) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/blob/{self.head_ref}/{path}"


@dataclass
class ChangeSet:
    """Files modified and created by the submission."""
    modified: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)

    def all_files(self) -> List[str]:
        """Modified then created files, without duplicates, in original order."""
        seen = set()
        files = []
        for path in list(self.modified) + list(self.created):
            if path not in seen:
                seen.add(path)
                files.append(path)
        return files


@dataclass
class FileReport:
    """The rendered typo table for one reviewed file."""
    path: str
    rows: List[ReportRow]
    markdown: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'rows': [asdict(r) for r in self.rows],
            'markdown': self.markdown,
        }


@dataclass
class ScanFailure:
    """A fatal condition reported through the fail sink."""
    kind: FailureKind
    message: str
    path: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_scan_wide(self) -> bool:
        return self.kind == FailureKind.SETTINGS_MALFORMED

    def to_markdown(self) -> str:
        """Message text, followed by a JSON block of the details if there are any."""
        if not self.details:
            return self.message
        return (
            f"\n## {self.message}\n\n"
            f"```json\n{json.dumps(self.details, indent=2)}\n```\n"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'message': self.message,
            'path': self.path,
            'details': self.details,
        }


@dataclass
class ScanWarning:
    """A recoverable condition reported through the warn sink."""
    kind: WarningKind
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind.value, 'message': self.message}


@dataclass
class ScanResult:
    """Everything a scan emitted, for programmatic callers."""
    reports: List[FileReport] = field(default_factory=list)
    warnings: List[ScanWarning] = field(default_factory=list)
    failures: List[ScanFailure] = field(default_factory=list)
    files_scanned: List[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reports': [r.to_dict() for r in self.reports],
            'warnings': [w.to_dict() for w in self.warnings],
            'failures': [f.to_dict() for f in self.failures],
            'files_scanned': list(self.files_scanned),
            'aborted': self.aborted,
        }
