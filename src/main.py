import logging
import os

import uvicorn
from dotenv import load_dotenv

from api.server import app
from shared.config import settings

load_dotenv()

if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    port = int(os.environ.get("PORT", 8000))
    logging.getLogger("api").info(f"Starting Feature Proximity API on port {port}...")
    uvicorn.run(app, host="0.0.0.0", port=port)
