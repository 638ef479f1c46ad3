import asyncio
import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

import assignments
import broadcasts
import claims
import database
import orders
import stats
from errors import CooldownActive, CoordinationError
from schemas import AppSettings, BroadcastTarget, Language, OrderItem
from settings import SettingsContext, update_settings
from views import BroadcastView, OrderView, WaiterView, bar_board, broadcast_views, waiter_board, waiter_view
from visibility import Role

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

def _feed_tick_seconds(raw: str) -> float:
    return min(max(float(raw), 1.0), 60.0)


FEED_TICK_SECONDS = _feed_tick_seconds(os.getenv("FEED_TICK_SECONDS", "30"))
FEED_CHANGE_STREAM = os.getenv("FEED_CHANGE_STREAM", "").lower() in ("1", "true", "yes")
WATCHED_COLLECTIONS = ("order", "broadcast", "waiterassignment", "settings")

settings_context = SettingsContext()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings_context.start()
    stop = threading.Event()
    if FEED_CHANGE_STREAM and database.db is not None:
        for name in WATCHED_COLLECTIONS:
            threading.Thread(target=database.watch_changes, args=(name, stop), daemon=True).start()
        logger.info("Watching change streams for %s", ", ".join(WATCHED_COLLECTIONS))
    yield
    stop.set()
    settings_context.stop()


app = FastAPI(title="Bar & Waiter Coordination API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CoordinationError)
async def coordination_error_handler(request: Request, exc: CoordinationError):
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, CooldownActive) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)}, headers=headers)


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Store unavailable"})


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": "Bar & Waiter Coordination API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()
        else:
            response["database"] = "⚠️  Available but not initialized"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
    return response


# ===================== Orders =====================
class CreateOrderRequest(BaseModel):
    table_number: int
    items: List[OrderItem]
    table_code: Optional[str] = None
    ordered_by: Optional[str] = None


class WaiterCallRequest(BaseModel):
    table_number: int
    table_code: Optional[str] = None


class ActorRequest(BaseModel):
    actor: str = Field(..., min_length=1)


@app.post("/orders")
def create_order(payload: CreateOrderRequest):
    if not payload.items:
        raise HTTPException(400, "Cart is empty")
    order_id, total = orders.place_order(payload.table_number, payload.items, payload.table_code, payload.ordered_by)
    return {"_id": order_id, "total": total}


@app.post("/orders/waiter-call")
def create_waiter_call(payload: WaiterCallRequest):
    call_id = orders.call_waiter(payload.table_number, settings_context.current, payload.table_code)
    return {"_id": call_id}


@app.get("/orders")
def list_orders():
    return orders.list_orders()


@app.get("/orders/{order_id}")
def get_order(order_id: str):
    order = database.get_document_by_id("order", order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@app.post("/orders/{order_id}/claim")
def claim_order(order_id: str, payload: ActorRequest):
    if not claims.claim(order_id, payload.actor):
        raise HTTPException(404, "Order not found")
    return {"claimed": True, "provisional": True}


@app.post("/orders/{order_id}/unclaim")
def unclaim_order(order_id: str):
    if not claims.unclaim(order_id):
        raise HTTPException(404, "Order not found")
    return {"claimed": False}


class HideRequest(BaseModel):
    actor: Optional[str] = None
    role: Optional[Role] = None


def _hide_role(payload: HideRequest) -> Role:
    if payload.role is not None:
        return payload.role
    stations = {station.name for station in settings_context.current.bar_stations}
    return Role.BAR if payload.actor in stations else Role.WAITER


@app.post("/orders/{order_id}/hide")
def hide_order(order_id: str, payload: HideRequest):
    if not claims.hide_from_bar(order_id, payload.actor, _hide_role(payload)):
        raise HTTPException(404, "Order not found")
    return {"hidden_from_bar": True}


@app.post("/orders/{order_id}/complete")
def complete_order(order_id: str, payload: ActorRequest):
    if not claims.complete(order_id, payload.actor):
        raise HTTPException(404, "Order not found")
    return {"completed_by_waiter": True}


@app.delete("/orders/{order_id}")
def dismiss_order(order_id: str):
    if not claims.dismiss(order_id):
        raise HTTPException(404, "Order not found")
    return {"deleted": True}


# ===================== Views =====================
def _waiter_tables(waiter_name: str) -> Optional[List[int]]:
    assignment = assignments.get(waiter_name)
    return assignment.tables if assignment else None


@app.get("/views/bar", response_model=List[OrderView])
def bar_view():
    return bar_board(orders.list_orders(), settings_context.current)


@app.get("/views/waiter/{waiter_name}", response_model=List[OrderView])
def waiter_orders_view(waiter_name: str):
    return waiter_board(orders.list_orders(), waiter_name, settings_context.current, _waiter_tables(waiter_name))


@app.get("/views/waiter/{waiter_name}/assignment", response_model=WaiterView)
def waiter_assignment_view(waiter_name: str):
    return waiter_view(waiter_name, assignments.get(waiter_name))


async def _receive_until_disconnect(websocket: WebSocket, changed: asyncio.Event):
    # any client message asks for a fresh snapshot
    while True:
        await websocket.receive_text()
        changed.set()


async def _stream(websocket: WebSocket, build):
    await websocket.accept()
    loop = asyncio.get_running_loop()
    changed = asyncio.Event()

    def on_change(_snapshot):
        loop.call_soon_threadsafe(changed.set)

    unsubscribers = [database.subscribe(name, on_change) for name in ("order", "settings", "waiterassignment")]
    receiver = asyncio.ensure_future(_receive_until_disconnect(websocket, changed))
    try:
        while True:
            views = await asyncio.to_thread(build)
            await websocket.send_json({"event": "snapshot", "data": [v.model_dump(mode="json") for v in views]})
            waiter = asyncio.ensure_future(changed.wait())
            done, _ = await asyncio.wait({waiter, receiver}, timeout=FEED_TICK_SECONDS, return_when=asyncio.FIRST_COMPLETED)
            waiter.cancel()
            if receiver in done:
                break
            changed.clear()
    except WebSocketDisconnect:
        pass
    finally:
        if receiver.done() and not receiver.cancelled():
            receiver.exception()
        receiver.cancel()
        for unsubscribe in unsubscribers:
            unsubscribe()
        logger.debug("Feed client disconnected")


@app.websocket("/ws/bar")
async def bar_feed(websocket: WebSocket):
    await _stream(websocket, lambda: bar_board(orders.list_orders(), settings_context.current))


@app.websocket("/ws/waiter/{waiter_name}")
async def waiter_feed(websocket: WebSocket, waiter_name: str):
    await _stream(
        websocket,
        lambda: waiter_board(orders.list_orders(), waiter_name, settings_context.current, _waiter_tables(waiter_name)),
    )


# ===================== Broadcasts =====================
class BroadcastRequest(BaseModel):
    message: str = Field(..., min_length=1)
    target: BroadcastTarget = "all"
    recipients: Optional[List[str]] = None


class ReadRequest(BaseModel):
    recipient: str


def _default_recipients(target: str) -> List[str]:
    current = settings_context.current
    known = assignments.list_assignments()
    recipients = []
    if target in ("all", "waiters"):
        recipients += [a.waiter_name for a in known]
    if target in ("all", "bars"):
        recipients += [station.name for station in current.bar_stations]
    if target in ("all", "tables"):
        tables = {n for a in known for n in a.tables} | {n for s in current.bar_stations for n in s.assigned_tables}
        recipients += [f"table-{n}" for n in sorted(tables)]
    return recipients


@app.post("/broadcasts")
def send_broadcast(payload: BroadcastRequest):
    recipients = payload.recipients if payload.recipients is not None else _default_recipients(payload.target)
    message_id = broadcasts.send(payload.message, recipients, payload.target)
    return {"_id": message_id, "recipients": recipients}


@app.get("/broadcasts")
def list_broadcasts():
    return broadcasts.list_messages()


@app.get("/broadcasts/unread/{recipient}")
def unread_broadcasts(recipient: str):
    return {"recipient": recipient, "unread_count": broadcasts.unread_count(recipient)}


@app.get("/broadcasts/for/{recipient}", response_model=List[BroadcastView])
def broadcasts_for(recipient: str):
    return broadcast_views(broadcasts.list_messages(), recipient)


@app.post("/broadcasts/{message_id}/read")
def read_broadcast(message_id: str, payload: ReadRequest):
    if not broadcasts.mark_read(message_id, payload.recipient):
        raise HTTPException(404, "Broadcast not found")
    return {"read": True}


@app.post("/broadcasts/{message_id}/clear")
def clear_broadcast(message_id: str):
    if not broadcasts.clear(message_id):
        raise HTTPException(404, "Broadcast not found")
    return {"active": False}


# ===================== Waiter Assignments =====================
class AssignmentRequest(BaseModel):
    tables: List[int]


@app.get("/assignments")
def list_waiter_assignments():
    return assignments.list_assignments()


@app.get("/assignments/{waiter_name}")
def get_waiter_assignment(waiter_name: str):
    assignment = assignments.get(waiter_name)
    if assignment is None:
        raise HTTPException(404, "Assignment not found")
    return assignment


@app.put("/assignments/{waiter_name}")
def save_waiter_assignment(waiter_name: str, payload: AssignmentRequest):
    return assignments.save(waiter_name, payload.tables)


@app.delete("/assignments/{waiter_name}")
def remove_waiter_assignment(waiter_name: str):
    if not assignments.remove(waiter_name):
        raise HTTPException(404, "Assignment not found")
    return {"deleted": True}


@app.get("/tables/{table_number}/waiters")
def table_waiters(table_number: int):
    return {"table_number": table_number, "waiters": assignments.waiters_for_table(table_number)}


# ===================== Settings =====================
class SettingsUpdate(BaseModel):
    language: Optional[Language] = None
    auto_hide_minutes: Optional[int] = Field(None, ge=0)
    waiter_call_cooldown_seconds: Optional[int] = Field(None, ge=0)
    waiter_min_auto_hide_minutes: Optional[int] = Field(None, ge=0)


@app.get("/settings", response_model=AppSettings)
def get_settings():
    return settings_context.current


@app.put("/settings", response_model=AppSettings)
def put_settings(payload: SettingsUpdate):
    return update_settings(payload.model_dump(exclude_none=True))


# ===================== Statistics =====================
@app.get("/statistics")
def get_statistics():
    return stats.get_statistics()


@app.get("/statistics/export", response_class=PlainTextResponse)
def export_statistics():
    content = "\ufeff" + stats.statistics_csv(stats.get_statistics())
    return PlainTextResponse(
        content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=statistik.csv"},
    )


@app.delete("/statistics")
def reset_statistics():
    stats.reset_statistics()
    return {"deleted": True}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
