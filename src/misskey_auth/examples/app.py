import logging
import secrets
import time
from contextlib import asynccontextmanager

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse
from starlette.routing import Route

from misskey_auth.context import FlowContext
from misskey_auth.handler import oauth_misskey_event_handler
from misskey_auth.models.errors import OAuth2Error
from misskey_auth.models.flow import AuthResult

SESSION_COOKIE = "session"

# Demo only: sessions live in process memory.
sessions: dict[str, dict] = {}


async def on_success(context: FlowContext, result: AuthResult):
    user = result.user
    session_id = secrets.token_urlsafe(32)
    sessions[session_id] = {
        "user": {
            "misskey": {
                "id": user.get("id"),
                "name": user.get("name"),
                "username": user.get("username"),
                "host": user.get("host"),
                "avatarUrl": user.get("avatarUrl"),
                "isBot": user.get("isBot"),
                "description": user.get("description"),
            }
        },
        "tokens": result.tokens,
        "loggedInAt": int(time.time() * 1000),
    }
    response = RedirectResponse("/login", status_code=302)
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


def on_error(context: FlowContext, error: OAuth2Error):
    logging.warning(f"Login failed: {error.message}")
    return RedirectResponse("/login", status_code=302)


async def login(request: Request):
    session = sessions.get(request.cookies.get(SESSION_COOKIE, ""))
    if session is None:
        return JSONResponse({"loggedIn": False, "login": "/auth/misskey"})
    return JSONResponse({"loggedIn": True, "user": session["user"]})


handler = oauth_misskey_event_handler(on_success=on_success, on_error=on_error)


@asynccontextmanager
async def lifespan(app: Starlette):
    yield
    await handler.close()


app = Starlette(
    routes=[
        handler.route("/auth/misskey"),
        Route("/login", login),
    ],
    lifespan=lifespan,
)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="127.0.0.1", port=8000)
