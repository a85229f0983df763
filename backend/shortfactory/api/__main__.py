"""API server entry point for python -m shortfactory.api"""
import uvicorn
from shortfactory.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "shortfactory.api.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
