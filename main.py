import sys
import json
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from fastapi import FastAPI, HTTPException, Request, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

# LINE Bot SDK imports
from linebot import LineBotApi, WebhookHandler
from linebot.exceptions import InvalidSignatureError, LineBotApiError
from linebot.models import MessageEvent, TextMessage, ImageMessage

import config
import messages
from channel import CONFIRM_BUTTONS, COMMAND_BUTTONS, LineChannel
from controller import ConversationController
from errors import ExtractionError
from ledger import build_ledger
from scheduler import DailyFlushScheduler
from sessions import SessionStore
from vision import VisionExtractor

# ------------------------------------------------------------------------------
# Configure Logging (structured for Google Cloud, also works locally)
# ------------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

config.warn_missing()

# ------------------------------------------------------------------------------
# FastAPI Application
# ------------------------------------------------------------------------------
app = FastAPI()

# Enable CORS for all origins (customize as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------------------------------------------------------------
# Collaborators (built once, shared by the webhook and the daily auto-save)
# ------------------------------------------------------------------------------
line_bot_api = LineBotApi(config.ACCESS_TOKEN)
handler = WebhookHandler(config.SECRET_CHANNEL)

channel = LineChannel(line_bot_api, media_timeout=config.MEDIA_TIMEOUT)
extractor = VisionExtractor(config.OPENAI_API_KEY, model=config.OPENAI_MODEL, timeout=config.OPENAI_TIMEOUT)
ledger = build_ledger()
session_store = SessionStore()
controller = ConversationController(session_store, extractor, ledger, channel)
scheduler = DailyFlushScheduler(
    session_store, ledger, channel, flush_time=config.parse_flush_time(config.FLUSH_TIME)
)

# Photo analysis outlives the webhook request
executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="meal-photo")


def log_event(severity: str, message: str, **fields):
    """
    Logs a record in a structured JSON format for Cloud Logging.
    """
    log_data = {"severity": severity, "message": message, **fields}
    logging.info(json.dumps(log_data, ensure_ascii=False, default=str))


@app.on_event("startup")
async def startup_event():
    """Start the daily auto-save loop"""
    app.state.flush_task = asyncio.create_task(scheduler.run_forever())
    log_event("INFO", "Daily auto-save scheduled", flush_time=config.FLUSH_TIME)


@app.on_event("shutdown")
async def shutdown_event():
    flush_task = getattr(app.state, "flush_task", None)
    if flush_task:
        flush_task.cancel()
    executor.shutdown(wait=False)

# ------------------------------------------------------------------------------
# LINE Webhook Endpoint
# ------------------------------------------------------------------------------
@app.post("/webhook")
async def webhook(request: Request):
    """
    LINE Messaging API webhook endpoint.
    """
    signature = request.headers.get("X-Line-Signature", "")
    body = await request.body()

    try:
        await run_in_threadpool(handler.handle, body.decode("utf-8"), signature)
    except InvalidSignatureError:
        raise HTTPException(
            status_code=400,
            detail="Invalid signature. Check your channel access token/channel secret."
        )
    return "OK"

# ------------------------------------------------------------------------------
# /analyze Endpoint (Direct API for Testing)
# ------------------------------------------------------------------------------
@app.post("/analyze")
def analyze_image(file: UploadFile = File(...)):
    """
    Accepts an image upload and returns the estimated meal (via OpenAI).
    Nothing is added to any session.
    """
    image_data = file.file.read()
    try:
        entry = extractor.extract(image_data, file.content_type or "")
    except ExtractionError as e:
        raise HTTPException(status_code=502, detail=f"Error analyzing image: {e}")
    return entry.model_dump()

# ------------------------------------------------------------------------------
# Debug / health Endpoints
# ------------------------------------------------------------------------------
@app.post("/debug/flush")
def debug_flush():
    """
    Runs the daily auto-save right now.
    """
    flushed = scheduler.flush_all()
    return {"status": "success", "flushed": flushed}


@app.get("/health")
def health():
    return {"status": "ok", "sessions": len(session_store)}

# ------------------------------------------------------------------------------
# LINE TextMessage Handler
# ------------------------------------------------------------------------------
@handler.add(MessageEvent, message=TextMessage)
def handle_text_message(event: MessageEvent):
    """
    Handles commands: confirm, corrections, totals, save, help.
    """
    user_id = event.source.user_id
    try:
        reply = controller.handle_text(user_id, event.message.text)
    except Exception as e:
        log_event("ERROR", "Webhook error", user_id=user_id, error=str(e))
        reply = messages.GENERIC_FAILURE

    quick_replies = COMMAND_BUTTONS if reply == messages.HELP else None
    channel.reply(event.reply_token, reply, quick_replies=quick_replies)

# ------------------------------------------------------------------------------
# LINE ImageMessage Handler
# ------------------------------------------------------------------------------
@handler.add(MessageEvent, message=ImageMessage)
def handle_image_message(event: MessageEvent):
    """
    Acknowledges the photo right away, then analyzes it in the background
    and pushes the result.
    """
    try:
        channel.reply(event.reply_token, messages.ANALYZING)
    except LineBotApiError as e:
        log_event("ERROR", "Could not acknowledge photo", user_id=event.source.user_id, error=str(e))
    executor.submit(process_photo, event.source.user_id, event.message.id)


def process_photo(user_id: str, message_id: str):
    try:
        reply, awaiting = controller.handle_photo(user_id, message_id)
        quick_replies = CONFIRM_BUTTONS if awaiting else None
        log_event("INFO", "Meal photo analyzed", user_id=user_id, message_id=message_id)
    except Exception as e:
        log_event("ERROR", "Image analysis error", user_id=user_id, error=str(e))
        reply, quick_replies = messages.GENERIC_FAILURE, None

    try:
        channel.push(user_id, reply, quick_replies=quick_replies)
    except Exception as e:
        log_event("ERROR", "Could not push message", user_id=user_id, error=str(e))

# ------------------------------------------------------------------------------
# Uvicorn Entry Point (if running locally or Docker without Gunicorn)
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=config.PORT,
        log_level="info",
        timeout_keep_alive=0
    )
