import uvicorn

from devnews.config import settings

if __name__ == "__main__":
    uvicorn.run("devnews.main:app", host="0.0.0.0", port=settings.PORT)
