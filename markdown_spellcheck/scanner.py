"""
Scan Orchestrator
=================
Drives one review submission end to end:

    collecting files -> resolving settings -> fetching content
    -> scanning -> reporting -> done

Everything the scan needs from the outside world comes in through a
ScanContext: the change set, the submission's location, a content-fetch
coroutine and three sinks (message / warn / fail). Failures are delivered
to the sinks, not raised to the caller.

Usage:
    context = ScanContext(
        change_set=ChangeSet(modified=["README.md"], created=["docs/new.md"]),
        target=ReviewTarget(owner="orta", repo="words", head_ref="typo-fixes"),
        fetch=GitHubContentClient().fetch,
    )
    result = run_scan(context, settings_descriptor="orta/words@ignore_words.json")
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config_logging import (
    ScanConfig, StructuredLogger, get_config, get_logger,
    SettingsMalformedError, SettingsIncompleteError, ContentFetchError, ConfigurationError
)
from .models import (
    ChangeSet, ReviewTarget, FileReport, ReportRow, ScanFailure, ScanWarning,
    ScanResult, ScanSettings, ScanState, FailureKind, WarningKind
)
from .report import build_rows, render_report
from .settings import parse_descriptor, parse_settings
from .spelling import SpellingOracle

__version__ = "1.0.0"

logger = get_logger('markdown_spellcheck.scanner')

PLUGIN_TAG = "`markdown-spellcheck`"

ContentFetcher = Callable[[str, Dict[str, Any]], Awaitable[Optional[str]]]


def log_report(report: FileReport):
    logger.info(f"Typos found in {report.path}", path=report.path, rows=len(report.rows))


def log_warning(warning: ScanWarning):
    logger.warning(warning.message, kind=warning.kind.value)


def log_failure(failure: ScanFailure):
    logger.error(failure.message, kind=failure.kind.value, path=failure.path)


@dataclass
class ScanContext:
    """Collaborators for a single scan. Replaces any process-wide handles."""
    change_set: ChangeSet
    target: ReviewTarget
    fetch: ContentFetcher
    message: Callable[[FileReport], None] = log_report
    warn: Callable[[ScanWarning], None] = log_warning
    fail: Callable[[ScanFailure], None] = log_failure


@dataclass
class _FileOutcome:
    path: str
    rows: Optional[List[ReportRow]] = None
    failure: Optional[ScanFailure] = None


class Scanner:
    """
    Spell checks the markdown files of one review submission.

    Per-file pipelines run under a semaphore of config.max_concurrent
    (1 means strictly sequential). Sink calls always happen in file order.

    `state` is the scan-wide stage. Each file's own stage is kept in
    `file_states`, since pipelines overlap when max_concurrent > 1.

    Raises:
        ConfigurationError: config fails validation
    """

    def __init__(
        self,
        context: ScanContext,
        oracle: Optional[SpellingOracle] = None,
        config: Optional[ScanConfig] = None
    ):
        self.context = context
        self.config = config or get_config()
        is_valid, errors = self.config.validate()
        if not is_valid:
            for error in errors:
                logger.error(f"Invalid configuration: {error}")
            raise ConfigurationError("Invalid scan configuration", errors=errors)
        self._oracle = oracle
        self.state = ScanState.COLLECTING_FILES
        self.file_states: Dict[str, ScanState] = {}

    @property
    def oracle(self) -> SpellingOracle:
        """The spelling oracle, created on first use."""
        if self._oracle is None:
            from .spelling import SymSpellOracle
            self._oracle = SymSpellOracle(
                ignore_numbers=self.config.ignore_numbers,
                ignore_acronyms=self.config.ignore_acronyms
            )
        return self._oracle

    def _enter(self, state: ScanState, path: Optional[str] = None, **context):
        if path is None:
            self.state = state
        else:
            self.file_states[path] = state
        logger.debug(f"Scan state: {state.value}", path=path, **context)

    # -------------------------------------------------------------------------
    # Sink delivery
    # -------------------------------------------------------------------------

    def _emit_report(self, result: ScanResult, report: FileReport):
        result.reports.append(report)
        self.context.message(report)

    def _emit_warning(self, result: ScanResult, warning: ScanWarning):
        result.warnings.append(warning)
        self.context.warn(warning)

    def _emit_failure(self, result: ScanResult, failure: ScanFailure):
        result.failures.append(failure)
        self.context.fail(failure)

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    async def _fetch(self, path: str, params: Dict[str, Any]) -> str:
        """
        Fetch through the context's fetcher.

        Raises:
            ContentFetchError: the fetcher returned nothing or raised
        """
        try:
            contents = await self.context.fetch(path, params)
        except Exception as e:
            logger.exception(f"Content fetch raised for {path}: {e}", path=path)
            raise ContentFetchError(f"Network Error for {path}", path=path, params=params) from e

        if contents is None:
            raise ContentFetchError(f"Network Error for {path}", path=path, params=params)
        return contents

    @staticmethod
    def _fetch_failure(error: ContentFetchError) -> ScanFailure:
        return ScanFailure(
            kind=FailureKind.CONTENT_FETCH_FAILED,
            message=error.message,
            path=error.details.get('path'),
            details=dict(error.details.get('params') or {})
        )

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def collect_files(self) -> List[str]:
        """Changed markdown files, modified first, in change-set order."""
        self._enter(ScanState.COLLECTING_FILES)
        extensions = tuple(self.config.markdown_extensions)
        return [f for f in self.context.change_set.all_files() if f.endswith(extensions)]

    async def resolve_settings(
        self,
        descriptor: Optional[str],
        result: ScanResult
    ) -> Optional[ScanSettings]:
        """
        Load ignore words and whitelisted files.

        Returns None when the scan has to stop.
        """
        self._enter(ScanState.RESOLVING_SETTINGS, descriptor=descriptor)
        if not descriptor:
            return ScanSettings.empty()

        try:
            location = parse_descriptor(descriptor)
        except SettingsMalformedError as e:
            self._emit_failure(result, ScanFailure(
                kind=FailureKind.SETTINGS_MALFORMED,
                message=f"{PLUGIN_TAG}: {e.message}"
            ))
            return None

        try:
            content = await self._fetch(location.path, location.to_params())
        except ContentFetchError as e:
            self._emit_failure(result, self._fetch_failure(e))
            return ScanSettings.empty()

        try:
            settings = parse_settings(content, descriptor)
        except SettingsMalformedError as e:
            self._emit_failure(result, ScanFailure(
                kind=FailureKind.SETTINGS_MALFORMED,
                message=f"{PLUGIN_TAG}: {e.message}",
                path=location.path
            ))
            return None
        except SettingsIncompleteError as e:
            self._emit_warning(result, ScanWarning(
                kind=WarningKind.SETTINGS_INCOMPLETE,
                message=f"{PLUGIN_TAG}: {e.message}"
            ))
            return ScanSettings.empty()

        logger.info("Spellcheck settings loaded", descriptor=descriptor,
                    ignore_words=len(settings.ignore_words),
                    whitelist_files=len(settings.whitelist_files))
        return settings

    async def _scan_file(
        self,
        path: str,
        settings: ScanSettings,
        semaphore: asyncio.Semaphore
    ) -> _FileOutcome:
        async with semaphore:
            self._enter(ScanState.FETCHING_CONTENT, path=path)
            try:
                contents = await self._fetch(path, self.context.target.location_params(path))
            except ContentFetchError as e:
                self._enter(ScanState.DONE, path=path)
                return _FileOutcome(path=path, failure=self._fetch_failure(e))

            self._enter(ScanState.SCANNING, path=path)
            try:
                misspellings = self.oracle.check(contents)
                rows = build_rows(contents, misspellings, settings.ignore_words,
                                  self.config.context_chars)
            except Exception as e:
                logger.exception(f"Spellcheck crashed on {path}: {e}", path=path)
                return _FileOutcome(path=path, failure=ScanFailure(
                    kind=FailureKind.SPELLCHECK_FAILED,
                    message=f"Spellcheck Error for {path}",
                    path=path,
                    details={'error': f"{type(e).__name__}: {e}"}
                ))
            finally:
                self._enter(ScanState.DONE, path=path)

            return _FileOutcome(path=path, rows=rows)

    async def scan(self, settings_descriptor: Optional[str] = None) -> ScanResult:
        """
        Run the whole scan.

        Args:
            settings_descriptor: Optional `owner/repo@path` of the settings JSON

        Returns:
            ScanResult with everything that was sent to the sinks
        """
        StructuredLogger.new_correlation_id()
        result = ScanResult()

        with logger.log_operation("spellcheck scan", descriptor=settings_descriptor):
            candidates = self.collect_files()

            settings = await self.resolve_settings(settings_descriptor, result)
            if settings is None:
                result.aborted = True
                self._enter(ScanState.DONE, aborted=True)
                return result

            files = [f for f in candidates if f not in settings.whitelist_files]
            logger.info(f"Scanning {len(files)} markdown file(s)",
                        candidates=len(candidates), whitelisted=len(candidates) - len(files))

            self._enter(ScanState.FETCHING_CONTENT)
            semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent))
            outcomes = await asyncio.gather(
                *(self._scan_file(path, settings, semaphore) for path in files)
            )

            self._enter(ScanState.REPORTING)
            for outcome in outcomes:
                if outcome.failure:
                    self._emit_failure(result, outcome.failure)
                    continue
                result.files_scanned.append(outcome.path)
                if outcome.rows:
                    self._emit_report(result, FileReport(
                        path=outcome.path,
                        rows=outcome.rows,
                        markdown=render_report(
                            outcome.path, outcome.rows,
                            self.context.target.file_url(outcome.path)
                        )
                    ))

            self._enter(ScanState.DONE)
        return result


def run_scan(
    context: ScanContext,
    settings_descriptor: Optional[str] = None,
    oracle: Optional[SpellingOracle] = None,
    config: Optional[ScanConfig] = None
) -> ScanResult:
    """Synchronous entry point: run a scan on a fresh event loop."""
    scanner = Scanner(context, oracle=oracle, config=config)
    return asyncio.run(scanner.scan(settings_descriptor))
