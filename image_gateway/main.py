from __future__ import annotations

import logging

from fastapi import FastAPI

from image_gateway.config import get_settings
from image_gateway.handlers import optimize_handler

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Image Gateway API")

app.include_router(optimize_handler.router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


# -------- local dev entrypoint --------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
