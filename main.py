import logging
import time

import uvicorn
from fastapi import FastAPI, Request

from routers.auth import auth_router
from routers.bindings import bindings_router
from settings import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("whitelist")


app = FastAPI(title="Game whitelist binding backend")


# --------- global request logger ----------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    ip = request.headers.get("x-forwarded-for") or (request.client.host if request.client else None)
    ua = request.headers.get("user-agent", "")
    log.info("REQ %s %s ip=%s ua=%s", request.method, request.url.path, ip, ua)

    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    log.info("RESP %s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.get("/health")
def health():
    return {"ok": True}


app.include_router(auth_router)
app.include_router(bindings_router)


def run():
    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
