"""
Run script to start the FastAPI server (no reload).
"""
import uvicorn

from app.config import settings


def main():
    """Start the Uvicorn server."""
    print(f"🚀 Starting {settings.PROJECT_NAME} API...")
    print("📖 API Documentation: http://localhost:8000/docs")
    print("📊 ReDoc: http://localhost:8000/redoc")
    print("-" * 50)

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,  # No reload for stability
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
