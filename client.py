"""
HTTP client for a ledger served by api.py.

HttpLedger implements the Ledger interface with `requests`. Error responses
carry the exception class name, so callers see the same typed errors as with
an in-process LocalLedger.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Tuple

import requests

import settings
from errors import LedgerRejection, error_from_name
from fieldcodec import fields_from_hex, fields_to_hex, from_hex, to_hex
from grumpkin import Point
from ledger import GameState, Ledger
from phases import Phase
from santa import EMPTY_PAYLOAD

logger = logging.getLogger(__name__)


class HttpLedger(Ledger):
    """
    `session` may be any object with requests-style get/post methods
    (a requests.Session, or FastAPI's TestClient with base_url="").
    """

    def __init__(self, base_url: str = settings.LEDGER_URL, session: Optional[Any] = None,
                 timeout: float = settings.HTTP_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        if method == "GET":
            r = self.session.get(url, timeout=self.timeout)
        else:
            r = self.session.post(url, json=body or {}, timeout=self.timeout)
        logger.debug("%s %s -> %s", method, path, r.status_code)

        if r.status_code < 400:
            return r.json()

        try:
            detail = r.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            default = ValueError if r.status_code == 400 else LedgerRejection
            raise error_from_name(detail.get("error"), detail.get("message", ""), default)
        if r.status_code == 422:
            raise ValueError(f"request rejected by ledger: {detail}")
        raise LedgerRejection(f"ledger returned HTTP {r.status_code}: {detail}")

    # ---- queries ----

    def next_game_id(self) -> int:
        return int(self._request("GET", "/games/next")["game_id"])

    def get_game_state(self, game_id: int) -> GameState:
        return GameState.from_dict(self._request("GET", f"/games/{game_id}"))

    def _slot(self, game_id: int, slot: int) -> dict:
        return self._request("GET", f"/games/{game_id}/slots/{slot}")

    def is_slot_claimed(self, game_id: int, slot: int) -> bool:
        return bool(self._slot(game_id, slot)["claimed"])

    def get_slot_public_key(self, game_id: int, slot: int) -> Point:
        pk = self._slot(game_id, slot)["public_key"]
        if pk is None:
            raise error_from_name("SlotUnavailable", f"slot {slot} has no sender")
        # raises InvalidPointError for a key that is not on the curve
        return Point.from_fields(from_hex(pk["x"]), from_hex(pk["y"]))

    def get_slot_payload(self, game_id: int, slot: int) -> Tuple[int, ...]:
        payload = self._slot(game_id, slot)["payload"]
        if payload is None:
            return EMPTY_PAYLOAD
        return fields_from_hex(payload)

    # ---- mutations ----

    def create_game(self, caller: str, min_participants: int, max_participants: int) -> int:
        body = {"caller": caller, "min_participants": min_participants, "max_participants": max_participants}
        return int(self._request("POST", "/games", body)["game_id"])

    def enroll(self, game_id: int, secret: str) -> None:
        self._request("POST", f"/games/{game_id}/enroll", {"secret": secret})

    def register_sender(self, game_id: int, secret: str, slot: int, public_key: Point) -> None:
        body = {
            "secret": secret,
            "slot": slot,
            "public_key": {"x": to_hex(public_key.x), "y": to_hex(public_key.y)},
        }
        self._request("POST", f"/games/{game_id}/senders", body)

    def claim_receiver(
        self, game_id: int, secret: str, participant_count: int, payload: Sequence[int]
    ) -> int:
        body = {
            "secret": secret,
            "participant_count": participant_count,
            "payload": fields_to_hex(payload),
        }
        return int(self._request("POST", f"/games/{game_id}/receivers", body)["slot"])

    def advance_phase(self, game_id: int, caller: str) -> Phase:
        return Phase(self._request("POST", f"/games/{game_id}/advance", {"caller": caller})["phase"])
