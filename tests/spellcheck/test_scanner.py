"""
Tests for the Scan Orchestrator
===============================
End-to-end scans with a fake fetcher, a fake oracle and recording sinks.
"""

import asyncio
import json
import re
from typing import Dict, List, Optional

import pytest

from config_logging import ScanConfig, ConfigurationError
from markdown_spellcheck.models import (
    ChangeSet, ReviewTarget, Misspelling, FailureKind, WarningKind, ScanState
)
from markdown_spellcheck.report import LEFT_SQUARE_BRACKET
from markdown_spellcheck.scanner import ScanContext, Scanner, run_scan


TARGET = ReviewTarget(owner="orta", repo="words", head_ref="typo-fixes")
DESCRIPTOR = "orta/words@ignore_words.json"


class WordListOracle:
    """Flags every occurrence of a fixed set of words."""

    def __init__(self, typos=("wrold", "lien", "teh", "Teh")):
        self.pattern = re.compile(r"\b(?:%s)\b" % "|".join(typos))
        self.checked: List[str] = []

    def check(self, text: str) -> List[Misspelling]:
        self.checked.append(text)
        return [Misspelling(word=m.group(), offset=m.start()) for m in self.pattern.finditer(text)]


class CrashingOracle(WordListOracle):
    """Raises on any text containing the trigger word."""

    def check(self, text: str) -> List[Misspelling]:
        if "boom" in text:
            raise ValueError("oracle bug")
        return super().check(text)


class FakeFetcher:
    """Serves contents from a dict; missing paths come back as None."""

    def __init__(self, files: Dict[str, Optional[str]], delays: Optional[Dict[str, float]] = None):
        self.files = files
        self.delays = delays or {}
        self.calls: List[tuple] = []

    async def __call__(self, path, params):
        self.calls.append((path, dict(params)))
        await asyncio.sleep(self.delays.get(path, 0))
        return self.files.get(path)


class RecordingSinks:
    def __init__(self):
        self.messages = []
        self.warnings = []
        self.failures = []

    def context(self, change_set, fetch) -> ScanContext:
        return ScanContext(
            change_set=change_set,
            target=TARGET,
            fetch=fetch,
            message=self.messages.append,
            warn=self.warnings.append,
            fail=self.failures.append,
        )


@pytest.fixture
def config():
    return ScanConfig(context_chars=20)


@pytest.fixture
def sinks():
    return RecordingSinks()


def settings_json(ignore=None, whitelist=None) -> str:
    data = {}
    if ignore is not None:
        data["ignore"] = ignore
    if whitelist is not None:
        data["whitelistFiles"] = whitelist
    return json.dumps(data)


class TestCollectFiles:
    """Markdown files from the change set."""

    def test_filters_markdown(self, config, sinks):
        change_set = ChangeSet(
            modified=["README.md", "src/app.py", "docs/guide.markdown"],
            created=["notes.txt", "CHANGELOG.md", "README.md"],
        )
        scanner = Scanner(sinks.context(change_set, FakeFetcher({})), WordListOracle(), config)
        assert scanner.collect_files() == ["README.md", "docs/guide.markdown", "CHANGELOG.md"]


class TestScan:
    """Full scans."""

    def test_reports_typos_per_file(self, config, sinks):
        fetcher = FakeFetcher({
            "README.md": "Hello wrold.\nSecond lien here.",
            "docs/clean.md": "Nothing wrong here.",
        })
        context = sinks.context(ChangeSet(modified=["README.md"], created=["docs/clean.md"]), fetcher)
        result = run_scan(context, oracle=WordListOracle(), config=config)

        assert len(sinks.messages) == 1
        report = sinks.messages[0]
        assert report.path == "README.md"
        assert [r.line_number for r in report.rows] == [1, 2]
        assert "| Line | Typo |" in report.markdown
        assert "https://github.com/orta/words/blob/typo-fixes/README.md" in report.markdown
        assert result.reports == sinks.messages
        assert result.files_scanned == ["README.md", "docs/clean.md"]
        assert result.success and not result.aborted

    def test_fetch_params_use_head_ref(self, config, sinks):
        fetcher = FakeFetcher({"README.md": "fine"})
        run_scan(sinks.context(ChangeSet(modified=["README.md"]), fetcher),
                 oracle=WordListOracle(), config=config)
        assert fetcher.calls == [("README.md", {
            'owner': 'orta', 'repo': 'words', 'path': 'README.md', 'ref': 'typo-fixes'
        })]

    def test_settings_ignore_and_whitelist(self, config, sinks):
        fetcher = FakeFetcher({
            "ignore_words.json": settings_json(ignore=["WROLD"], whitelist=["CHANGELOG.md"]),
            "README.md": "Hello wrold.\nSecond lien here.",
            "CHANGELOG.md": "teh changelog",
        })
        context = sinks.context(ChangeSet(modified=["README.md", "CHANGELOG.md"]), fetcher)
        run_scan(context, DESCRIPTOR, oracle=WordListOracle(), config=config)

        assert [call[0] for call in fetcher.calls] == ["ignore_words.json", "README.md"]
        assert fetcher.calls[0][1] == {'owner': 'orta', 'repo': 'words', 'path': 'ignore_words.json'}
        assert len(sinks.messages) == 1
        assert [r.line_number for r in sinks.messages[0].rows] == [2]

    def test_all_ignored_means_no_report(self, config, sinks):
        fetcher = FakeFetcher({
            "ignore_words.json": settings_json(ignore=["wrold", "lien"]),
            "README.md": "Hello wrold.\nSecond lien here.",
        })
        result = run_scan(sinks.context(ChangeSet(modified=["README.md"]), fetcher), DESCRIPTOR,
                          oracle=WordListOracle(), config=config)
        assert sinks.messages == []
        assert result.files_scanned == ["README.md"]

    def test_malformed_descriptor_halts(self, config, sinks):
        fetcher = FakeFetcher({"README.md": "Hello wrold."})
        oracle = WordListOracle()
        scanner = Scanner(sinks.context(ChangeSet(modified=["README.md"]), fetcher), oracle, config)
        result = asyncio.run(scanner.scan("bad-descriptor"))

        assert result.aborted
        assert fetcher.calls == []
        assert oracle.checked == []
        assert sinks.messages == []
        assert len(sinks.failures) == 1
        failure = sinks.failures[0]
        assert failure.kind == FailureKind.SETTINGS_MALFORMED
        assert failure.is_scan_wide
        assert "bad-descriptor" in failure.message
        assert scanner.state == ScanState.DONE

    def test_invalid_settings_json_halts(self, config, sinks):
        fetcher = FakeFetcher({"ignore_words.json": "{oops", "README.md": "Hello wrold."})
        result = run_scan(sinks.context(ChangeSet(modified=["README.md"]), fetcher), DESCRIPTOR,
                          oracle=WordListOracle(), config=config)
        assert result.aborted
        assert [f.kind for f in sinks.failures] == [FailureKind.SETTINGS_MALFORMED]
        assert [call[0] for call in fetcher.calls] == ["ignore_words.json"]

    def test_settings_without_ignore_warns(self, config, sinks):
        fetcher = FakeFetcher({
            "ignore_words.json": settings_json(whitelist=["README.md"]),
            "README.md": "Hello wrold.",
        })
        result = run_scan(sinks.context(ChangeSet(modified=["README.md"]), fetcher), DESCRIPTOR,
                          oracle=WordListOracle(), config=config)

        assert len(sinks.warnings) == 1
        assert sinks.warnings[0].kind == WarningKind.SETTINGS_INCOMPLETE
        assert "ignore" in sinks.warnings[0].message
        # Whitelist is not applied either
        assert len(sinks.messages) == 1
        assert not result.failures

    def test_settings_fetch_failure_continues(self, config, sinks):
        fetcher = FakeFetcher({"README.md": "Hello wrold."})
        result = run_scan(sinks.context(ChangeSet(modified=["README.md"]), fetcher), DESCRIPTOR,
                          oracle=WordListOracle(), config=config)
        assert [f.kind for f in sinks.failures] == [FailureKind.CONTENT_FETCH_FAILED]
        assert sinks.failures[0].path == "ignore_words.json"
        assert len(sinks.messages) == 1
        assert not result.aborted

    def test_file_fetch_failure_is_per_file(self, config, sinks):
        fetcher = FakeFetcher({"a.md": "teh a", "c.md": "teh c"})
        change_set = ChangeSet(modified=["a.md", "b.md", "c.md"])
        result = run_scan(sinks.context(change_set, fetcher), oracle=WordListOracle(), config=config)

        assert [m.path for m in sinks.messages] == ["a.md", "c.md"]
        assert len(sinks.failures) == 1
        failure = sinks.failures[0]
        assert failure.kind == FailureKind.CONTENT_FETCH_FAILED
        assert not failure.is_scan_wide
        assert failure.path == "b.md"
        assert failure.message == "Network Error for b.md"
        assert failure.details['ref'] == "typo-fixes"
        assert '"path": "b.md"' in failure.to_markdown()
        assert result.files_scanned == ["a.md", "c.md"]
        assert not result.aborted

    def test_fetcher_exception_is_per_file(self, config, sinks):
        async def flaky(path, params):
            if path == "b.md":
                raise ConnectionError("reset")
            return "teh text"

        result = run_scan(sinks.context(ChangeSet(modified=["a.md", "b.md"]), flaky),
                          oracle=WordListOracle(), config=config)
        assert [m.path for m in sinks.messages] == ["a.md"]
        assert [f.path for f in result.failures] == ["b.md"]

    def test_empty_file_is_not_a_failure(self, config, sinks):
        fetcher = FakeFetcher({"empty.md": ""})
        result = run_scan(sinks.context(ChangeSet(created=["empty.md"]), fetcher),
                          oracle=WordListOracle(), config=config)
        assert sinks.failures == []
        assert sinks.messages == []
        assert result.files_scanned == ["empty.md"]

    def test_brackets_escaped_in_report(self, config, sinks):
        fetcher = FakeFetcher({"README.md": "See [docs] for teh details"})
        run_scan(sinks.context(ChangeSet(modified=["README.md"]), fetcher),
                 oracle=WordListOracle(), config=config)
        row = sinks.messages[0].rows[0]
        assert "[" not in row.rendered_snippet
        assert LEFT_SQUARE_BRACKET in row.rendered_snippet

    def test_concurrent_scan_keeps_file_order(self, sinks):
        config = ScanConfig(max_concurrent=3)
        fetcher = FakeFetcher(
            {"a.md": "teh a", "b.md": "teh b", "c.md": "teh c"},
            delays={"a.md": 0.05, "b.md": 0.02, "c.md": 0},
        )
        run_scan(sinks.context(ChangeSet(modified=["a.md", "b.md", "c.md"]), fetcher),
                 oracle=WordListOracle(), config=config)
        assert [m.path for m in sinks.messages] == ["a.md", "b.md", "c.md"]

    def test_no_markdown_files(self, config, sinks):
        fetcher = FakeFetcher({})
        result = run_scan(sinks.context(ChangeSet(modified=["setup.py"]), fetcher),
                          oracle=WordListOracle(), config=config)
        assert fetcher.calls == []
        assert result.to_dict()['reports'] == []

    def test_default_sinks_log(self, config):
        context = ScanContext(
            change_set=ChangeSet(modified=["a.md", "b.md"]),
            target=TARGET,
            fetch=FakeFetcher({"a.md": "teh"}),
        )
        result = run_scan(context, oracle=WordListOracle(), config=config)
        assert len(result.reports) == 1
        assert len(result.failures) == 1

    def test_oracle_crash_is_per_file(self, config, sinks):
        fetcher = FakeFetcher({"a.md": "teh a", "b.md": "boom", "c.md": "teh c"})
        result = run_scan(sinks.context(ChangeSet(modified=["a.md", "b.md", "c.md"]), fetcher),
                          oracle=CrashingOracle(), config=config)

        assert [m.path for m in sinks.messages] == ["a.md", "c.md"]
        assert len(sinks.failures) == 1
        failure = sinks.failures[0]
        assert failure.kind == FailureKind.SPELLCHECK_FAILED
        assert failure.path == "b.md"
        assert not failure.is_scan_wide
        assert "oracle bug" in failure.details['error']
        assert result.files_scanned == ["a.md", "c.md"]
        assert not result.aborted


class TestScannerState:
    """Scan-wide and per-file stages."""

    def test_file_states_under_concurrency(self, sinks):
        fetcher = FakeFetcher(
            {"a.md": "teh a", "c.md": "teh c"},
            delays={"a.md": 0.02},
        )
        context = sinks.context(ChangeSet(modified=["a.md", "b.md", "c.md"]), fetcher)
        scanner = Scanner(context, WordListOracle(), ScanConfig(max_concurrent=3))
        asyncio.run(scanner.scan())

        assert scanner.state == ScanState.DONE
        assert scanner.file_states == {
            "a.md": ScanState.DONE, "b.md": ScanState.DONE, "c.md": ScanState.DONE
        }

    def test_invalid_config_rejected(self, sinks):
        context = sinks.context(ChangeSet(modified=["a.md"]), FakeFetcher({}))
        with pytest.raises(ConfigurationError) as exc_info:
            Scanner(context, WordListOracle(), ScanConfig(max_concurrent=0))
        assert exc_info.value.code == "CONFIG_INVALID"
        assert exc_info.value.details['errors'] == ["max_concurrent must be at least 1"]
