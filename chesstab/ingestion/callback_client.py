# ==============================================================================
# callback_client.py
# ------------------------------------------------------------------------------
# Fetches supplemental per-game data ("callback records") by game identifier.
#
#   fetch_one   GET <root>/<id>; one retry after a 429; anything else that is
#               not a 200 with a JSON body → None
#   fetch_many  chunks of `batch_size` fetched concurrently; if the chunk as a
#               whole fails, each id in it is retried via `fetch_one`.
#               Pauses between chunks to stay under the rate limit.
#
# No error escapes this module: failed ids are simply missing from results.
# ==============================================================================

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from requests.exceptions import RequestException

from chesstab.utils.config import DEFAULT_BATCH_SIZE, Settings, load_settings
from chesstab.utils.logging_utils import setup_logger

LOGGER = setup_logger("callback_client")

CallbackRecord = Dict[str, Any]


class CallbackClient:
    """
    HTTP client for the callback endpoint.

    Sequential calls share one session; each concurrent worker request opens
    its own session from `session_factory` with the same headers.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.settings = settings or load_settings()
        self.session_factory = session_factory
        self.http = session_factory()
        self.http.headers.update(
            {
                "User-Agent": self.settings.user_agent,
                "Accept": "application/json",
            }
        )

    # --------------------------------------------------------------------------
    # Single requests
    # --------------------------------------------------------------------------

    def _url(self, identifier: str) -> str:
        return f"{self.settings.callback_root}/{identifier}"

    def _get(self, identifier: str) -> requests.Response:
        """Raw GET; network errors propagate to the caller."""
        return self.http.get(self._url(identifier), timeout=self.settings.timeout)

    def _get_isolated(self, identifier: str) -> requests.Response:
        """Raw GET on a worker-owned session."""
        session = self.session_factory()
        session.headers.update(self.http.headers)
        try:
            return session.get(self._url(identifier), timeout=self.settings.timeout)
        finally:
            session.close()

    def _decode(self, identifier: str, resp: requests.Response) -> Optional[CallbackRecord]:
        if resp.status_code != 200:
            LOGGER.warning("HTTP %s for game %s", resp.status_code, identifier)
            return None
        try:
            data = resp.json()
        except ValueError:
            LOGGER.warning("Malformed JSON for game %s", identifier)
            return None
        if not isinstance(data, dict):
            LOGGER.warning("Unexpected payload type for game %s", identifier)
            return None
        return data

    def fetch_one(self, identifier: str) -> Optional[CallbackRecord]:
        """Fetch one callback record, retrying once after a 429."""
        try:
            resp = self._get(identifier)
            if resp.status_code == 429:
                LOGGER.warning(
                    "Rate limit (429) on game %s – retrying in %s s",
                    identifier,
                    self.settings.rate_limit_backoff,
                )
                time.sleep(self.settings.rate_limit_backoff)
                resp = self._get(identifier)
            return self._decode(identifier, resp)
        except RequestException as exc:
            LOGGER.warning("Error fetching game %s: %s", identifier, exc)
        except Exception as exc:
            LOGGER.warning("Unexpected error fetching game %s: %s", identifier, exc)
        return None

    # --------------------------------------------------------------------------
    # Batches
    # --------------------------------------------------------------------------

    def _fetch_chunk(self, chunk: Sequence[str]) -> List[Optional[CallbackRecord]]:
        """
        Fetch a chunk all at once; fall back to one-at-a-time on failure.

        Results are aligned with `chunk` by index.
        """
        try:
            with ThreadPoolExecutor(max_workers=len(chunk)) as executor:
                responses = list(executor.map(self._get_isolated, chunk))
            return [self._decode(i, resp) for i, resp in zip(chunk, responses)]
        except Exception as exc:
            LOGGER.warning(
                "Batch fetch of %d games failed (%s) – falling back to sequential",
                len(chunk),
                exc,
            )
            return [self.fetch_one(identifier) for identifier in chunk]

    def fetch_many(
        self, identifiers: Sequence[str], batch_size: int = DEFAULT_BATCH_SIZE
    ) -> Dict[str, CallbackRecord]:
        """Fetch many ids; returns only the ids that produced a record."""
        results: Dict[str, CallbackRecord] = {}
        ids = list(identifiers)
        size = max(1, int(batch_size))
        chunks = [ids[i : i + size] for i in range(0, len(ids), size)]

        for n, chunk in enumerate(chunks, start=1):
            LOGGER.info("Fetching chunk %d/%d (%d games)", n, len(chunks), len(chunk))
            for identifier, record in zip(chunk, self._fetch_chunk(chunk)):
                if record is not None:
                    results[identifier] = record

            if n < len(chunks):
                time.sleep(self.settings.batch_pause)

        LOGGER.info("Fetched %d/%d callback records", len(results), len(ids))
        return results
