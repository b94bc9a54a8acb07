from __future__ import annotations

import json
import logging
from typing import Any, Dict
from urllib.parse import parse_qs

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from slack_sdk.signature import SignatureVerifier

from .agent.fast_path import parse_schedule_command
from .config import SLACK_SIGNING_SECRET
from .services import SCHEDULE_USAGE, AssistantService
from .utils import _log_debug

router = APIRouter()
logger = logging.getLogger(__name__)


def _service(request: Request) -> AssistantService:
  return request.app.state.services


async def _verified_body(request: Request) -> bytes:
  body = await request.body()
  secret = getattr(request.app.state, "signing_secret", SLACK_SIGNING_SECRET)
  if not secret:
    logger.warning("SLACK_SIGNING_SECRET missing; accepting unsigned Slack request")
    return body
  verifier = SignatureVerifier(secret)
  if not verifier.is_valid_request(body, dict(request.headers)):
    logger.warning("Rejected Slack request with an invalid signature")
    raise HTTPException(status_code=401, detail="Invalid Slack signature")
  return body


def _form_payload(body: bytes) -> Dict[str, Any]:
  parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
  return {key: values[0] if values else "" for key, values in parsed.items()}


@router.get("/")
def health() -> Dict[str, Any]:
  return {"ok": True, "service": "ops-assistant"}


@router.post("/slack/events")
async def slack_events(request: Request, background_tasks: BackgroundTasks):
  body = await _verified_body(request)
  try:
    payload = json.loads(body or b"{}")
  except json.JSONDecodeError:
    raise HTTPException(status_code=400, detail="Invalid JSON body")

  if payload.get("type") == "url_verification":
    return {"challenge": payload.get("challenge")}

  retry = request.headers.get("x-slack-retry-num")
  _log_debug(f"[slack] event {payload.get('event_id')} retry={retry}")
  service = _service(request)
  message = service.accept_event(payload)
  if message is not None:
    background_tasks.add_task(service.process_message, message)
  return {"ok": True}


@router.post("/slack/commands")
async def slack_commands(request: Request, background_tasks: BackgroundTasks):
  payload = _form_payload(await _verified_body(request))
  if payload.get("command") != "/schedule":
    return JSONResponse({"response_type": "ephemeral",
                         "text": f"I don't know the command {payload.get('command')}."})
  if parse_schedule_command(f"schedule {payload.get('text') or ''}") is None:
    return JSONResponse({"response_type": "ephemeral", "text": SCHEDULE_USAGE})
  background_tasks.add_task(_service(request).handle_command, payload)
  return Response(status_code=200)


@router.post("/slack/interactions")
async def slack_interactions(request: Request, background_tasks: BackgroundTasks):
  form = _form_payload(await _verified_body(request))
  try:
    payload = json.loads(form.get("payload") or "{}")
  except json.JSONDecodeError:
    raise HTTPException(status_code=400, detail="Invalid interaction payload")
  if payload.get("type") == "block_actions":
    background_tasks.add_task(_service(request).handle_interaction, payload)
  return Response(status_code=200)
