"""
Summator Server

FastAPI server standing in for the browser host: message transport between
popup, caption page and background worker, option storage, and debug log
inspection.

Endpoints:
- POST /message: {action: start|stop|summarize}
- POST /mutations: Caption area change notifications
- GET /status: Recording flag
- GET /options, POST /options: Delivery credentials
- GET /logs, PUT /logs: Debug log buffer
- GET /health: Health check

Pipeline:
1. start: Begin capture session
2. mutations: Debounced, filtered, deduplicated into the transcript
3. stop: Return the transcript
4. summarize: Gemini summary -> Telegram, in the background
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Literal, Optional, Set

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .common.config import load_config, save_config, ensure_directories, SummatorConfig
from .common.storage import LocalStore
from .common.log_sink import RotatingLog
from .capture.nodes import CaptionNode, Mutation, MutationKind
from .capture.stream import MutationStream
from .capture.session import CaptureSession
from .delivery.pipeline import DeliveryPipeline


RECORDING_KEY = "is_recording"
EMPTY_TRANSCRIPT_STATUS = "No transcript captured (or empty)."

# Global state
config: Optional[SummatorConfig] = None
store: Optional[LocalStore] = None
debug_log: Optional[RotatingLog] = None
stream: Optional[MutationStream] = None
session: Optional[CaptureSession] = None
pipeline: Optional[DeliveryPipeline] = None
node_registry: Optional["NodeRegistry"] = None
_background_tasks: Set[asyncio.Task] = set()


class StoredRecordingFlag:
    """Recording indicator persisted for the popup to read"""

    def __init__(self, local_store: LocalStore):
        self._store = local_store

    def show(self) -> None:
        self._store.set(**{RECORDING_KEY: True})

    def hide(self) -> None:
        self._store.set(**{RECORDING_KEY: False})


# =============================================================================
# Request/Response Models
# =============================================================================

class MessageRequest(BaseModel):
    """Host message envelope"""
    action: Literal["start", "stop", "summarize"]
    transcript: Optional[str] = None


class NodePayload(BaseModel):
    """Caption node as seen by the page; id must be stable across requests"""
    id: str
    tag: Optional[str] = None
    text: str = ""
    parent: Optional["NodePayload"] = None


class MutationPayload(BaseModel):
    kind: MutationKind
    added_nodes: List[NodePayload] = Field(default_factory=list)
    target: Optional[NodePayload] = None


class MutationBatchRequest(BaseModel):
    mutations: List[MutationPayload]


class OptionsRequest(BaseModel):
    """Popup options form"""
    gemini_key: str = ""
    telegram_token: str = ""
    chat_id: str = ""


class LogsRequest(BaseModel):
    logs: str = ""


NodePayload.model_rebuild()


class NodeRegistry:
    """
    Resolves node payloads to stable CaptionNode objects.

    The batcher deduplicates by identity, so the same page node must map to
    the same object across requests. Text and tag are refreshed on every
    sighting. Cleared on start and stop, so it only holds the current
    session's nodes.
    """

    def __init__(self):
        self._nodes: Dict[str, CaptionNode] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def clear(self) -> None:
        self._nodes.clear()

    def resolve(self, payload: Optional[NodePayload]) -> Optional[CaptionNode]:
        if payload is None:
            return None

        node = self._nodes.get(payload.id)
        if node is None:
            node = CaptionNode(node_id=payload.id)
            self._nodes[payload.id] = node

        node.tag = payload.tag
        node.text = payload.text
        if payload.parent is not None:
            node.parent = self.resolve(payload.parent)
        return node

    def to_mutation(self, payload: MutationPayload) -> Mutation:
        return Mutation(
            kind=payload.kind,
            added_nodes=[self.resolve(n) for n in payload.added_nodes],
            target=self.resolve(payload.target),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, store, debug_log, stream, session, pipeline, node_registry

    print("[Summator] Starting up...")

    # Ensure directories exist
    ensure_directories()

    # Load config
    config = load_config()
    missing = config.missing_credentials()
    if missing:
        print(f"[Summator] Delivery not configured (missing: {', '.join(missing)})")
    else:
        print(f"[Summator] Delivery ready (model: {config.gemini.model})")

    store = LocalStore()
    debug_log = RotatingLog(store, max_chars=config.log.max_chars)

    stream = MutationStream()
    node_registry = NodeRegistry()
    session = CaptureSession(
        stream=stream,
        config=config.capture,
        indicator=StoredRecordingFlag(store),
    )
    print(f"[Summator] Capture ready (debounce: {config.capture.debounce_seconds}s, "
          f"history: {config.capture.history_size})")

    pipeline = DeliveryPipeline(log=debug_log)

    print("[Summator] Ready to receive messages")

    yield

    # Cleanup
    print("[Summator] Shutting down...")
    if session and session.is_recording:
        session.stop()
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


app = FastAPI(
    title="Summator",
    description="Live caption capture and meeting summary delivery",
    version="0.1.0",
    lifespan=lifespan
)


# =============================================================================
# Background Tasks
# =============================================================================

async def summarize_transcript(transcript: str) -> str:
    """
    Start delivery in the background and return its first status.

    The delivery keeps running after this returns; later outcomes are only
    visible in the debug log.
    """
    loop = asyncio.get_running_loop()
    first_status: asyncio.Future = loop.create_future()

    def on_status(status: str) -> None:
        if not first_status.done():
            first_status.set_result(status)

    def on_done(task: asyncio.Task) -> None:
        _background_tasks.discard(task)
        if first_status.done():
            return
        if task.cancelled():
            first_status.set_result("Error: delivery cancelled")
        elif task.exception() is not None:
            first_status.set_result(f"Error: {task.exception()}")
        else:
            first_status.set_result(task.result())

    task = asyncio.create_task(pipeline.deliver(transcript, on_status=on_status))
    _background_tasks.add(task)
    task.add_done_callback(on_done)

    return await first_status


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "summator",
        "initialized": session is not None,
        "recording": session.is_recording if session else False,
        "processing": pipeline.is_processing if pipeline else False,
    }


@app.post("/message")
async def message(request: MessageRequest):
    """
    Handle a host message.

    start/stop go to the capture session, summarize to the delivery pipeline.
    """
    if not session or not pipeline:
        raise HTTPException(status_code=503, detail="Not initialized")

    if request.action == "start":
        if session.start():
            node_registry.clear()
        return {"status": "started"}

    if request.action == "stop":
        transcript = session.stop()
        node_registry.clear()
        return {"status": "stopped", "transcript": transcript}

    transcript = request.transcript or ""
    if not transcript.strip():
        return {"status": EMPTY_TRANSCRIPT_STATUS}

    status = await summarize_transcript(transcript)
    return {"status": status}


@app.post("/mutations")
async def mutations(request: MutationBatchRequest):
    """Receive a burst of caption area changes (dropped while idle)"""
    if not stream or not node_registry:
        raise HTTPException(status_code=503, detail="Not initialized")

    if not stream.is_observed:
        return {"ok": True, "accepted": False}

    records = [node_registry.to_mutation(m) for m in request.mutations]
    accepted = stream.emit(records)
    return {"ok": True, "accepted": accepted}


@app.get("/status")
async def status():
    """Recording flag as last written by the session"""
    if not store:
        raise HTTPException(status_code=503, detail="Not initialized")

    return {"is_recording": bool(store.get(RECORDING_KEY, False))}


@app.get("/options")
async def get_options():
    """Current delivery credentials"""
    current = load_config()
    return {
        "gemini_key": current.gemini.api_key,
        "telegram_token": current.telegram.bot_token,
        "chat_id": current.telegram.chat_id,
    }


@app.post("/options")
async def set_options(request: OptionsRequest):
    """Save delivery credentials"""
    current = load_config()
    current.gemini.api_key = request.gemini_key
    current.telegram.bot_token = request.telegram_token
    current.telegram.chat_id = request.chat_id
    # Explicitly saved values are persisted even if an env var also sets them
    current._env_sourced_keys.clear()
    save_config(current)
    return {"status": "Options saved."}


@app.get("/logs")
async def get_logs():
    """Debug log buffer (newest first)"""
    if not debug_log:
        raise HTTPException(status_code=503, detail="Not initialized")

    return {"logs": debug_log.read()}


@app.put("/logs")
async def put_logs(request: LogsRequest):
    """Replace the debug log buffer; an empty string clears it"""
    if not debug_log:
        raise HTTPException(status_code=503, detail="Not initialized")

    debug_log.write(request.logs)
    return {"logs": debug_log.read()}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Summator server"""
    import uvicorn
    from dotenv import load_dotenv

    # Credentials may come from a .env file in the working directory
    load_dotenv()
    config = load_config()

    print(f"[Summator] Starting server on {config.server.host}:{config.server.port}")
    uvicorn.run(
        "summator.server:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
