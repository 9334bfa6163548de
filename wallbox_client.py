import json
import logging
import urllib.parse as urlparse
from typing import Any, Dict, Optional, Union

import requests

from exceptions import ClientFailure, InvalidResponse
from status import convert_seconds, get_status_name
from token_manager import WallboxTokenManager
from transport import DEFAULT_RETRY_POLICY, RetryPolicy, send

API_URL = "https://api.wall-box.com"
LIST_URI = "/v3/chargers/groups"
CHARGER_STATUS_URI = "/chargers/status/"
CHARGER_ACTION_URI = "/v2/charger/"
SESSION_LIST_URI = "/v4/sessions/stats"


def _parse(body: str, url: str) -> Any:
    try:
        return json.loads(body)
    except ValueError as e:
        raise InvalidResponse(f"Invalid JSON from {url}: {e}") from e


class WallboxClient:
    """Client for the Wallbox charger API."""

    def __init__(
        self,
        token_manager: WallboxTokenManager,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        api_url: str = API_URL,
    ) -> None:
        self.token_manager = token_manager
        self.policy = policy
        self.timeout = timeout
        self.session = session
        self.api_url = api_url.rstrip("/")

    def _call(self, method: str, url: str, body: Optional[str] = None) -> str:
        token = self.token_manager.ensure_token()
        try:
            return self._send(method, url, token, body)
        except ClientFailure as e:
            if e.status_code != 401:
                raise
            logging.warning(f"401 Unauthorized on {url} - re-authenticating and retrying...")
            token = self.token_manager.force_reauth(stale_token=token)
            return self._send(method, url, token, body)

    def _send(self, method: str, url: str, token: str, body: Optional[str]) -> str:
        return send(
            method,
            url,
            headers=self.token_manager.bearer_headers(token),
            body=body,
            policy=self.policy,
            timeout=self.timeout,
            session=self.session,
        )

    def fetch_raw_status(self, charger_id: Union[int, str]) -> str:
        url = f"{self.api_url}{CHARGER_STATUS_URI}{charger_id}"
        logging.debug(f"Requesting status for charger {charger_id}")
        return self._call("GET", url)

    def fetch_usage_window(
        self,
        charger_id: Union[int, str],
        start: Union[int, str],
        end: Union[int, str],
        limit: Optional[int] = None,
    ) -> str:
        """Fetch charging sessions of a charger between two timestamps.

        Args:
            charger_id: Charger ID
            start: Window start, epoch seconds
            end: Window end, epoch seconds
            limit: Optional maximum number of sessions
        """
        params: Dict[str, Any] = {"charger": charger_id, "start_date": start, "end_date": end}
        if limit is not None:
            params["limit"] = limit
        url = f"{self.api_url}{SESSION_LIST_URI}?{urlparse.urlencode(params)}"
        return self._call("GET", url)

    def fetch_full_payload(self) -> str:
        return self._call("GET", f"{self.api_url}{LIST_URI}")

    def fetch_charger_data(self, charger_id: Union[int, str]) -> str:
        return self._call("GET", f"{self.api_url}{CHARGER_ACTION_URI}{charger_id}")

    def lock_charger(self, charger_id: Union[int, str]) -> None:
        logging.info(f"Locking charger {charger_id}")
        url = f"{self.api_url}{CHARGER_ACTION_URI}{charger_id}"
        self._call("PUT", url, body=json.dumps({"locked": 1}, separators=(",", ":")))

    def unlock_charger(self, charger_id: Union[int, str]) -> None:
        logging.info(f"Unlocking charger {charger_id}")
        url = f"{self.api_url}{CHARGER_ACTION_URI}{charger_id}"
        self._call("PUT", url, body=json.dumps({"locked": 0}, separators=(",", ":")))

    def get_charger_status(self, charger_id: Union[int, str]) -> Dict[str, Any]:
        url = f"{self.api_url}{CHARGER_STATUS_URI}{charger_id}"
        data = _parse(self.fetch_raw_status(charger_id), url)
        if not isinstance(data, dict):
            raise InvalidResponse(f"Unexpected status payload for charger {charger_id}")
        return data

    def get_status_code(self, charger_id: Union[int, str]) -> int:
        status = self.get_charger_status(charger_id)
        try:
            return int(status["status_id"])
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Invalid status response: {e!r}")
            raise InvalidResponse(f"Invalid status response for charger {charger_id}: {e!r}") from e

    def get_status_name(self, charger_id: Union[int, str]) -> str:
        return get_status_name(self.get_status_code(charger_id))

    def check_lock(self, charger_id: Union[int, str]) -> bool:
        status = self.get_charger_status(charger_id)
        try:
            return int(status["config_data"]["locked"]) == 1
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Invalid lock state for charger {charger_id}: {e!r}") from e

    def check_firmware_status(self, charger_id: Union[int, str]) -> str:
        status = self.get_charger_status(charger_id)
        try:
            software = status["config_data"]["software"]
            current = software["currentVersion"]
            latest = software["latestVersion"]
            update_available = software["updateAvailable"]
        except (KeyError, TypeError) as e:
            raise InvalidResponse(f"Invalid firmware data for charger {charger_id}: {e!r}") from e

        if current == latest and not update_available:
            return "Firmware up to date"
        return "Firmware needs updated"

    def get_last_charge_duration(self) -> str:
        url = f"{self.api_url}{LIST_URI}"
        data = _parse(self.fetch_full_payload(), url)
        try:
            seconds = int(data["result"]["groups"][0]["chargers"][0]["chargingTime"])
            return convert_seconds(seconds)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logging.error(f"Invalid groups response: {e!r}")
            raise InvalidResponse(f"No charging time in groups response: {e!r}") from e

    def _resume(self, charger_id: Union[int, str]) -> Dict[str, Any]:
        url = f"{self.api_url}{CHARGER_ACTION_URI}{charger_id}"
        data = _parse(self.fetch_charger_data(charger_id), url)
        try:
            return data["data"]["chargerData"]["resume"]
        except (KeyError, TypeError) as e:
            raise InvalidResponse(f"No resume data for charger {charger_id}: {e!r}") from e

    def get_total_charge_time(self, charger_id: Union[int, str]) -> str:
        resume = self._resume(charger_id)
        try:
            return convert_seconds(int(resume["chargingTime"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Invalid charging time for charger {charger_id}: {e!r}") from e

    def get_total_sessions(self, charger_id: Union[int, str]) -> int:
        resume = self._resume(charger_id)
        try:
            return int(resume["totalSessions"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Invalid session count for charger {charger_id}: {e!r}") from e
