"""
Remote dataset download.

Streams a remote file to local storage. There is no retry or backoff.
"""

import logging
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import requests

from ..config import DEFAULT_TIMEOUT, DOWNLOAD_CHUNK_SIZE

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ('http', 'https', 'ftp')
_FALLBACK_NAME = "download.geojson"


def is_remote(source: Union[str, Path]) -> bool:
    """Return True if source looks like a remote URL."""
    if isinstance(source, Path):
        return False
    return urlparse(str(source)).scheme.lower() in _REMOTE_SCHEMES


def _filename_from_url(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or _FALLBACK_NAME


def download_file(
    url: str,
    dest: Optional[Union[str, Path]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE
) -> Path:
    """
    Download a remote resource to a local path.
    
    Args:
        url: URL to download
        dest: Destination file or directory. A fresh temporary directory is
            used when omitted.
        timeout: Request timeout in seconds
        chunk_size: Size of the streamed chunks in bytes
        
    Returns:
        Path of the downloaded file
        
    Raises:
        ValueError: If url is not a remote URL
        requests.HTTPError: If the server answers with an error status
    """
    if not is_remote(url):
        raise ValueError(f"Not a remote URL: {url}")

    filename = _filename_from_url(url)
    if dest is None:
        target = Path(tempfile.mkdtemp(prefix="geocrs-")) / filename
    else:
        target = Path(dest)
        if target.is_dir():
            target = target / filename
    target.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Downloading %s to %s", url, target)
    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        try:
            with open(target, 'wb') as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
        except Exception:
            target.unlink(missing_ok=True)
            raise

    logger.debug("Downloaded %d bytes", target.stat().st_size)
    return target
