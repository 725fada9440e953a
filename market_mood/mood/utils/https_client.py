import logging
from typing import Any, Optional

import requests

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def https_get(url, params=None, headers=None, timeout=DEFAULT_TIMEOUT, session=None) -> Optional[requests.Response]:
    """GET with a hard timeout; None on transport errors or non-2xx answers."""
    getter = session.get if session is not None else requests.get
    try:
        r = getter(url, params=params, headers=headers, timeout=timeout)
        r.raise_for_status()
        return r
    except requests.RequestException as e:
        log.warning("GET %s failed: %s", url, e)
        return None


def safe_json(resp) -> Optional[Any]:
    if resp is None:
        return None
    try:
        return resp.json()
    except ValueError:
        return None
