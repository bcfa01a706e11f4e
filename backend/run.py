#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Uses DATABASE_URL from the environment (or .env); without one the API
serves a local SQLite file that the app creates on startup.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn

if __name__ == "__main__":
    print("Starting FlightDesk development server")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level="info",
        timeout_graceful_shutdown=5,  # Force shutdown after 5s instead of hanging
    )
