# backend/app/main.py
from fastapi import FastAPI

from backend.app.api.messages import router as messages_router

app = FastAPI(title="mail-panel API")
app.include_router(messages_router, prefix="/api")
