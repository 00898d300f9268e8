from .base import ExternalServiceAdapter
import logging
from typing import Optional

from engine.errors import UpstreamError
from settings import settings


class SerperAdapter(ExternalServiceAdapter):
    """Google rank lookups through the Serper search API."""
    name = "Serper API"
    search_engine = "google_us_en"

    def __init__(self, api_key: str = None, url: str = None, timeout: float = None, session=None):
        super().__init__(timeout=timeout or settings.serper.timeout, session=session)
        self.api_key = settings.serper.api_key if api_key is None else api_key
        self.endpoint = url or settings.serper.url

    def health(self) -> bool:
        return bool(self.api_key)

    def lookup(self, keyword: str) -> Optional[dict]:
        """
        Position and link of the first organic result in the top 100, or None
        when nothing ranks. Does not match the result against a project domain.
        """
        if not self.api_key:
            raise UpstreamError("Serper API key is not configured.")
        response = self._request(
            "POST",
            self.endpoint,
            headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
            json={"q": keyword, "gl": "us", "hl": "en", "num": 100},
        )
        if not response.ok:
            logging.error(f"Serper API error for keyword \"{keyword}\": {response.status_code} {response.text}")
            raise UpstreamError(f"Serper API error for keyword \"{keyword}\" ({response.status_code})")
        organic = (self._json_or_raise(response, "search") or {}).get("organic") or []
        if not organic:
            return None
        first = organic[0]
        return {"position": first.get("position"), "link": first.get("link")}
