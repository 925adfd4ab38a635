from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
import logging

from quiz_api.config import MONGO_URL, MONGO_DB_NAME, LOG_LEVEL
from quiz_api.quiz.app import setup_quiz_routes, startup_quiz_system

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)

app = FastAPI(title="Quiz Session Engine")

# MongoDB Configuration
client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


@app.on_event("startup")
async def startup_event():
    await startup_quiz_system(db)


@app.on_event("shutdown")
async def shutdown_event():
    client.close()


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# ==================== ROUTER REGISTRATION ====================
setup_quiz_routes(app)
# ============================================================


@app.get("/health")
async def health():
    return {"status": "ok"}
