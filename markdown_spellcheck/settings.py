"""
Spellcheck Settings
===================
Parses the `owner/repo@path` descriptor that locates the settings
document, and the settings document itself:

    { "ignore": ["word", ...], "whitelistFiles": ["docs/file.md", ...] }
"""

import json
from typing import Any, Optional

from config_logging import SettingsMalformedError, SettingsIncompleteError
from .models import SettingsLocation, ScanSettings


def parse_descriptor(descriptor: str) -> SettingsLocation:
    """
    Split `owner/repo@path` into its parts.

    Raises:
        SettingsMalformedError: missing or repeated `@`, owner/repo not of the
            form `owner/repo`, or an empty part
    """
    if not descriptor or descriptor.count("@") != 1:
        raise SettingsMalformedError(
            f"Could not make a repo + file from {descriptor}",
            descriptor=descriptor
        )

    repo_part, path = descriptor.split("@")
    repo_bits = repo_part.split("/")
    if len(repo_bits) != 2 or not all(bit.strip() for bit in repo_bits) or not path.strip():
        raise SettingsMalformedError(
            f"Could not make a repo + file from {descriptor}",
            descriptor=descriptor
        )

    owner, repo = (bit.strip() for bit in repo_bits)
    return SettingsLocation(owner=owner, repo=repo, path=path.strip())


def _string_set(values: Any) -> frozenset:
    if not isinstance(values, list):
        return frozenset()
    return frozenset(v for v in values if isinstance(v, str))


def parse_settings(content: str, descriptor: Optional[str] = None) -> ScanSettings:
    """
    Parse a settings document.

    Raises:
        SettingsMalformedError: content is not valid JSON
        SettingsIncompleteError: the document has no usable `ignore` list
    """
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as e:
        raise SettingsMalformedError(
            f"Could not parse the spell-check settings JSON: {e}",
            descriptor=descriptor
        ) from e

    if not isinstance(data, dict) or not isinstance(data.get("ignore"), list):
        raise SettingsIncompleteError(
            "Could not find `ignore` inside the spell-check settings JSON",
            field="ignore"
        )

    ignore_words = frozenset(w.lower() for w in _string_set(data["ignore"]))
    return ScanSettings(
        ignore_words=ignore_words,
        whitelist_files=_string_set(data.get("whitelistFiles"))
    )
