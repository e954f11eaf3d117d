import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


def clear_remote_store(url: str, timeout_s: float = 30.0, session: Optional[requests.Session] = None) -> Optional[str]:
    """Ask the ingestion endpoint to drop every stored record. Returns its confirmation text."""
    logger.info("Requesting erasure of old records from the remote store")
    http = session or requests
    try:
        response = http.get(url, params={"action": "clear_all_files"}, timeout=timeout_s)
    except requests.RequestException as e:
        logger.error(f"Clear request failed: {e}")
        return None

    if not response.ok:
        logger.error(f"Clear request returned {response.status_code}: {response.text}")
        return None

    logger.info(f"Clear request returned: {response.text}")
    return response.text
