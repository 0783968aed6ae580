#!/usr/bin/env python3
"""
Development server for fitplanner with auto-reload
"""

import uvicorn

if __name__ == "__main__":
    print("🚀 Starting fitplanner in development mode")
    print("📖 API docs on: http://localhost:8000/docs")
    print("💾 Database: DATABASE_URL or local SQLite (fitplanner.db)")
    print("🌱 Set FITPLANNER_SEED_CATALOG=1 to load the starter catalog")
    print("\n✋ Ctrl+C to stop\n")

    uvicorn.run(
        "fitplanner.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["fitplanner"],
        log_level="info"
    )
