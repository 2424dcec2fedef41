"""Local development entry point: ``python -m tutorbook.run``."""

import uvicorn

from .core.config import settings
from .core.logging import setup_logging
from .main import create_app

app = create_app()

if __name__ == "__main__":
    setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
