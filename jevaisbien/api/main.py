import os

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from jevaisbien.db import get_client
from jevaisbien.runner.overdue.check import now_utc, run_once
from jevaisbien.runner.overdue.dispatch import (
    ALERT_FAILED_MESSAGE,
    default_transport,
    send_manual_alert,
)

app = FastAPI(title="Je Vais Bien API")

ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=ALLOWED_HEADERS,
)

TRIGGER_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


@app.options("/{path:path}")
def options(path: str):
    # CORSMiddleware only answers OPTIONS carrying Origin and Access-Control-Request-Method.
    return Response(status_code=200)


def require_admin(x_admin_key: str | None = Header(default=None)):
    admin_key = os.environ.get("ADMIN_API_KEY")
    if not admin_key or x_admin_key != admin_key:
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.get("/health")
def health():
    return {"ok": True}


@app.api_route("/check-overdue", methods=TRIGGER_METHODS)
def check_overdue():
    print("OVERDUE_TRIGGER source=http")
    try:
        result = run_once(get_client(), default_transport())
    except Exception as exc:
        print(f"OVERDUE_FAIL source=http err={type(exc).__name__}")
        return JSONResponse(status_code=500, content={"error": str(exc)})
    print(f"OVERDUE_DONE source=http alerts_sent={result.alerts_sent} reminders_sent={result.reminders_sent}")
    return {
        "success": True,
        "alertsSent": result.alerts_sent,
        "remindersSent": result.reminders_sent,
    }


class AlertRequest(BaseModel):
    userId: str
    userName: str | None = None
    contactEmail: str
    contactName: str | None = None
    hoursOverdue: int


@app.post("/send-alert", dependencies=[Depends(require_admin)])
def send_alert(payload: AlertRequest):
    try:
        ok = send_manual_alert(
            get_client(),
            default_transport(),
            user_id=payload.userId,
            user_name=payload.userName,
            contact_email=payload.contactEmail,
            contact_name=payload.contactName,
            hours_overdue=payload.hoursOverdue,
            now=now_utc(),
        )
    except Exception as exc:
        print(f"OVERDUE_MANUAL_ALERT_FAIL user_id={payload.userId} err={type(exc).__name__}")
        return JSONResponse(status_code=500, content={"error": str(exc)})
    if not ok:
        return JSONResponse(status_code=500, content={"error": ALERT_FAILED_MESSAGE})
    return {"success": True}
