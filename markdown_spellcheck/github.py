"""
GitHub Content Client
=====================
Default content-fetch collaborator: reads a file at a ref through the
GitHub contents API.

    GET {api_url}/repos/{owner}/{repo}/contents/{path}?ref={ref}

A fetch returns the decoded text, or None when anything goes wrong on the
way (connection error, timeout, non-200 status, missing content). It never
raises and never retries.
"""

import asyncio
import base64
import binascii
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from config_logging import ScanConfig, get_config, get_logger

__version__ = "1.0.0"

logger = get_logger('markdown_spellcheck.github')


class GitHubContentClient:
    """
    Fetches file contents from GitHub.

    Usage:
        client = GitHubContentClient()
        text = await client.fetch("README.md", {
            'owner': 'orta', 'repo': 'words', 'path': 'README.md', 'ref': 'main'
        })
    """

    USER_AGENT = "markdown-spellcheck"

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        session: Optional[requests.Session] = None
    ):
        self.config = config or get_config()
        self.session = session or requests.Session()
        self.session.headers.update(self._headers())

    def _headers(self) -> Dict[str, str]:
        headers = {
            'Accept': 'application/vnd.github+json',
            'User-Agent': self.USER_AGENT,
        }
        if self.config.github_token:
            headers['Authorization'] = f"Bearer {self.config.github_token}"
        return headers

    def contents_url(self, params: Dict[str, Any]) -> str:
        path = quote(str(params['path']).lstrip('/'))
        return f"{self.config.github_api_url}/repos/{params['owner']}/{params['repo']}/contents/{path}"

    def fetch_sync(self, path: str, params: Dict[str, Any]) -> Optional[str]:
        """Blocking fetch. See fetch()."""
        try:
            url = self.contents_url(params)
        except KeyError as e:
            logger.error(f"Missing location parameter {e} for {path}", path=path)
            return None

        query = {'ref': params['ref']} if params.get('ref') else None
        try:
            response = self.session.get(url, params=query, timeout=self.config.request_timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Timed out fetching {path}", path=path,
                         timeout=self.config.request_timeout)
            return None
        except requests.RequestException as e:
            logger.error(f"Request failed for {path}: {e}", path=path)
            return None

        if response.status_code != 200:
            logger.error(f"GitHub returned HTTP {response.status_code} for {path}",
                         path=path, status_code=response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.error(f"GitHub returned a non-JSON body for {path}", path=path)
            return None

        return self.decode_content(payload, path)

    @staticmethod
    def decode_content(payload: Any, path: str = "") -> Optional[str]:
        """
        Decode the base64 `content` field of a contents API response.

        An empty file has `content: ""` and decodes to "".
        """
        if not isinstance(payload, dict) or not isinstance(payload.get('content'), str):
            logger.error(f"No content in GitHub response for {path}", path=path)
            return None

        try:
            raw = base64.b64decode(payload['content'])
        except (binascii.Error, ValueError) as e:
            logger.error(f"Could not decode content for {path}: {e}", path=path)
            return None
        return raw.decode('utf-8', errors='replace')

    async def fetch(self, path: str, params: Dict[str, Any]) -> Optional[str]:
        """
        Fetch a file's text, or None on any network failure.

        The blocking request runs in a worker thread so the event loop stays free.
        """
        return await asyncio.to_thread(self.fetch_sync, path, params)

    __call__ = fetch

    def close(self):
        self.session.close()
