import logging
import os

from fastapi.responses import PlainTextResponse

# La tienda es la app principal (rutas /api y /auth)
from storefront_app import app
from backoffice_app import app as backoffice_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# Healthcheck
@app.get("/healthz", response_class=PlainTextResponse)
def healthz():
    return "ok"


# Backoffice al final (catch-all)
app.mount("/", backoffice_app)
