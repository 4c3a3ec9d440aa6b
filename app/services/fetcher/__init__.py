"""Multi-source video fetching.

Supported sources: Google Drive, SharePoint/OneDrive, Facebook-hosted
videos, YouTube, and direct URLs (including Dropbox sharing links).
"""

from app.services.fetcher.base import (
    DownloadedFile,
    FetchContext,
    FetchStrategy,
    classify_page_text,
    remediation_for,
)
from app.services.fetcher.downloader import StreamingDownloader
from app.services.fetcher.fetcher import SourceFetcher, build_strategy_table

__all__ = [
    "DownloadedFile",
    "FetchContext",
    "FetchStrategy",
    "SourceFetcher",
    "StreamingDownloader",
    "build_strategy_table",
    "classify_page_text",
    "remediation_for",
]
