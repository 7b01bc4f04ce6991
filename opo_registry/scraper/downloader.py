"""HTTP fetch utilities built on httpx.

One :class:`httpx.Client` is created per run with :func:`create_client` and
passed explicitly to every fetch; nothing here keeps module-level handles.

Functions
---------
create_client : Client with the project User-Agent and redirects followed
fetch_json : GET a JSON document
fetch_bytes : GET raw content (workbooks)
fetch_first_available : Try candidate URLs in order, return the first usable one

Notes
-----
There is no retry or backoff: each candidate URL is tried once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from opo_registry.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

# Module-level logger for download operations
logger = setup_logging(__name__)


class SourceUnavailableError(RuntimeError):
    """No candidate location of a publication could be fetched."""

    def __init__(self, source: str, attempted: list[str]) -> None:
        self.source = source
        self.attempted = attempted
        super().__init__(f"{source}: no reachable URL among {len(attempted)} candidate(s)")


def create_client(user_agent: str, timeout: float = 60.0) -> httpx.Client:
    """Create the shared HTTP client for one run."""
    return httpx.Client(headers={"User-Agent": user_agent}, timeout=timeout, follow_redirects=True)


def fetch_json(
    client: httpx.Client,
    url: str,
    params: Mapping[str, Any] | None = None,
    timeout: float | None = None,
) -> Any:
    """GET ``url`` and decode its JSON body.

    Raises
    ------
    httpx.HTTPError
        On connection errors and 4xx/5xx responses.
    """
    logger.debug("GET %s %s", url, dict(params) if params else "")
    kwargs: dict[str, Any] = {"params": params}
    if timeout is not None:
        kwargs["timeout"] = timeout
    response = client.get(url, **kwargs)
    response.raise_for_status()
    return response.json()


def fetch_bytes(client: httpx.Client, url: str, timeout: float | None = None) -> bytes:
    """GET ``url`` and return the raw body.

    Raises
    ------
    httpx.HTTPError
        On connection errors and 4xx/5xx responses.
    """
    logger.info("Downloading: %s", url)
    response = client.get(url, timeout=timeout) if timeout is not None else client.get(url)
    response.raise_for_status()
    logger.info("Downloaded %d KB", len(response.content) // 1024)
    return response.content


def fetch_first_available(
    client: httpx.Client,
    urls: Iterable[str],
    source: str,
    timeout: float | None = None,
    parse: Callable[[bytes], Any] | None = None,
) -> tuple[str, Any]:
    """Download the first candidate URL that answers with a usable body.

    Parameters
    ----------
    client : httpx.Client
        Shared client.
    urls : Iterable[str]
        Candidate locations, most preferred first.
    source : str
        Source name used in logs and the raised error.
    timeout : float | None, optional
        Per-request timeout override.
    parse : Callable[[bytes], Any] | None, optional
        Applied to each body; a ``ValueError`` from it (an HTML error page
        served with status 200, say) fails that candidate like an HTTP error.

    Returns
    -------
    tuple[str, Any]
        The URL that answered and its content, parsed when ``parse`` is given.

    Raises
    ------
    SourceUnavailableError
        If every candidate fails.
    """
    attempted = []
    for url in urls:
        attempted.append(url)
        logger.info("Trying %s...", url)
        try:
            content = fetch_bytes(client, url, timeout=timeout)
        except httpx.HTTPError as e:
            logger.warning("%s: %s failed: %s", source, url, e)
            continue

        if parse is None:
            return url, content
        try:
            return url, parse(content)
        except ValueError as e:
            logger.warning("%s: %s returned an unreadable body: %s", source, url, e)

    raise SourceUnavailableError(source, attempted)
