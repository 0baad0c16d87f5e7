import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

import settings
from errors import (
    AdvanceRejected,
    DuplicateNullifier,
    GameNotFound,
    LedgerRejection,
    NotAuthorized,
    SantaError,
    SlotUnavailable,
    WrongPhase,
    error_name,
)
from fieldcodec import fields_from_hex, fields_to_hex, from_hex, to_hex
from grumpkin import Point
from ledger import Ledger, LocalLedger
from santa import PAYLOAD_FIELDS, is_empty

logger = logging.getLogger(__name__)

# --------------------------
# Request models
# --------------------------

class CallerRequest(BaseModel):
  caller: str = Field(min_length=1)

class CreateGameRequest(CallerRequest):
  min_participants: int = Field(ge=2)
  max_participants: int = Field(ge=2)

class PublicKeyModel(BaseModel):
  x: str
  y: str

class SecretRequest(BaseModel):
  secret: str = Field(min_length=1)

class RegisterSenderRequest(SecretRequest):
  slot: int = Field(ge=1)
  public_key: PublicKeyModel

class ClaimReceiverRequest(SecretRequest):
  participant_count: int = Field(ge=2)
  payload: List[str] = Field(min_length=PAYLOAD_FIELDS, max_length=PAYLOAD_FIELDS)


# --------------------------
# Error mapping
# --------------------------

STATUS_CODES = {
  GameNotFound: 404,
  NotAuthorized: 403,
  WrongPhase: 409,
  SlotUnavailable: 409,
  DuplicateNullifier: 409,
  AdvanceRejected: 409,
}


def _http_error(e: Exception) -> HTTPException:
  status = 400
  for cls, code in STATUS_CODES.items():
    if isinstance(e, cls):
      status = code
      break
  else:
    if isinstance(e, LedgerRejection):
      status = 409
  if status != 400:
    logger.warning("rejected: %s: %s", error_name(e), e)
  return HTTPException(status_code=status, detail={"error": error_name(e), "message": str(e)})


def _point(pk: PublicKeyModel) -> Point:
  return Point(from_hex(pk.x), from_hex(pk.y))


# --------------------------
# App
# --------------------------

def create_app(ledger: Optional[Ledger] = None) -> FastAPI:
  ledger = ledger if ledger is not None else LocalLedger(settings.LEDGER_FILE)
  app = FastAPI(title="Secret Santa Ledger")
  app.state.ledger = ledger

  # sync endpoints run in FastAPI's threadpool; LocalLedger locks internally

  @app.post("/games")
  def create_game(req: CreateGameRequest):
    try:
      game_id = ledger.create_game(req.caller, req.min_participants, req.max_participants)
      return {"status": "ok", "game_id": game_id}
    except (SantaError, ValueError) as e:
      raise _http_error(e)

  @app.get("/games/next")
  def next_game_id():
    return {"game_id": ledger.next_game_id()}

  @app.get("/games/{game_id}")
  def get_game(game_id: int):
    try:
      return ledger.get_game_state(game_id).to_dict()
    except SantaError as e:
      raise _http_error(e)

  @app.get("/games/{game_id}/slots/{slot}")
  def get_slot(game_id: int, slot: int):
    try:
      claimed = ledger.is_slot_claimed(game_id, slot)
      public_key = None
      if claimed:
        pk = ledger.get_slot_public_key(game_id, slot)
        public_key = {"x": to_hex(pk.x), "y": to_hex(pk.y)}
      payload = ledger.get_slot_payload(game_id, slot)
      return {
        "slot": slot,
        "claimed": claimed,
        "public_key": public_key,
        "payload": None if is_empty(payload) else fields_to_hex(payload),
      }
    except (SantaError, ValueError) as e:
      raise _http_error(e)

  @app.post("/games/{game_id}/enroll")
  def enroll(game_id: int, req: SecretRequest):
    try:
      ledger.enroll(game_id, req.secret)
      return {"status": "ok", "message": f"enrolled in game {game_id}"}
    except (SantaError, ValueError) as e:
      raise _http_error(e)

  @app.post("/games/{game_id}/senders")
  def register_sender(game_id: int, req: RegisterSenderRequest):
    try:
      ledger.register_sender(game_id, req.secret, req.slot, _point(req.public_key))
      return {"status": "ok", "slot": req.slot}
    except (SantaError, ValueError) as e:
      raise _http_error(e)

  @app.post("/games/{game_id}/receivers")
  def claim_receiver(game_id: int, req: ClaimReceiverRequest):
    try:
      payload = fields_from_hex(req.payload)
      slot = ledger.claim_receiver(game_id, req.secret, req.participant_count, payload)
      return {"status": "ok", "slot": slot}
    except (SantaError, ValueError) as e:
      raise _http_error(e)

  @app.post("/games/{game_id}/advance")
  def advance_phase(game_id: int, req: CallerRequest):
    try:
      phase = ledger.advance_phase(game_id, req.caller)
      return {"status": "ok", "phase": int(phase), "phase_name": phase.display_name}
    except SantaError as e:
      raise _http_error(e)

  return app


app = create_app()


if __name__ == "__main__":
  import uvicorn

  logging.basicConfig(level=settings.LOG_LEVEL)
  uvicorn.run(app, host=settings.HOST, port=settings.PORT)
