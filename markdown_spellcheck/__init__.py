"""
Markdown Spellcheck
===================
Spell checks the markdown files changed in a pull request and reports
each typo with its line number and a short context snippet.

Modules:
- position: offset -> (line number, snippet) mapping
- report: ignore filtering, escaping and the markdown typo table
- settings: `owner/repo@path` descriptors and the settings JSON
- spelling: SymSpell-backed oracle with markdown masking
- github: content fetching through the GitHub contents API
- scanner: the end-to-end scan over a change set
"""

__version__ = "1.0.0"
__author__ = "MarkdownSpellcheck"

from .models import (
    Misspelling,
    ContextRecord,
    ReportRow,
    SettingsLocation,
    ScanSettings,
    ReviewTarget,
    ChangeSet,
    FileReport,
    ScanFailure,
    ScanWarning,
    ScanResult,
    ScanState,
    FailureKind,
    WarningKind,
)

from .position import LineIndex, locate, line_number_at
from .report import build_rows, filter_ignored, render_report, sanitize_snippet
from .settings import parse_descriptor, parse_settings
from .spelling import SpellingOracle, SymSpellOracle, mask_markdown
from .github import GitHubContentClient
from .scanner import ScanContext, Scanner, run_scan

__all__ = [
    'Misspelling',
    'ContextRecord',
    'ReportRow',
    'SettingsLocation',
    'ScanSettings',
    'ReviewTarget',
    'ChangeSet',
    'FileReport',
    'ScanFailure',
    'ScanWarning',
    'ScanResult',
    'ScanState',
    'FailureKind',
    'WarningKind',
    'LineIndex',
    'locate',
    'line_number_at',
    'build_rows',
    'filter_ignored',
    'render_report',
    'sanitize_snippet',
    'parse_descriptor',
    'parse_settings',
    'SpellingOracle',
    'SymSpellOracle',
    'mask_markdown',
    'GitHubContentClient',
    'ScanContext',
    'Scanner',
    'run_scan',
]
