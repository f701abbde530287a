"""
FastAPI application for Verso.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

# Configure logging to show INFO from verso modules
logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")
logging.getLogger("verso").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware

from .routes import router

app = FastAPI(
    title="Verso",
    description="Reflection assistant: deterministic dialogue engine around an LLM",
    version="0.1.0",
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {"message": "Verso API", "docs": "/docs"}
