"""HTTP session setup shared by the NCBI clients."""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def build_session(user_agent: str, max_retries: int = 0) -> requests.Session:
    """Setup HTTP session with identifying headers and a retry strategy.

    Args:
        user_agent: User-Agent header sent with every request
        max_retries: Transport-level retries on 429/5xx responses. Callers
            with their own retry policy pass 0 so attempts are not multiplied.

    Returns:
        Configured session
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "application/json, application/xml;q=0.9, */*;q=0.8",
        }
    )

    return session
