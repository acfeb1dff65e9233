from fastapi import FastAPI
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError
from contextlib import asynccontextmanager
from pathlib import Path
from datetime import datetime
import os
import logging

from tournament_endpoints import router as tournament_router, set_database as set_tournament_db
from tournament_store import MongoTournamentStore
from tournament_errors import StoreError


ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB connection settings
mongo_url = os.environ['MONGO_URL']
db_name = os.environ['DB_NAME']
cors_origins = os.environ.get('CORS_ORIGINS', '*').split(',')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global variables - will be initialized in lifespan
client = None
db = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown"""
    global client, db

    logger.info("🚀 Starting tournament service...")

    client = AsyncIOMotorClient(mongo_url)
    db = client[db_name]

    try:
        await client.admin.command('ping')
        logger.info("✅ MongoDB connection established")
        await MongoTournamentStore(db).ensure_indexes()
    except PyMongoError as e:
        logger.error(f"❌ MongoDB connection failed: {e}")
    except StoreError as e:
        logger.error(f"❌ Index setup failed: {e.message}")

    app.state.db = db
    app.state.client = client

    # Modüle database referansı gönder
    set_tournament_db(db)

    yield

    logger.info("🛑 Shutting down tournament service...")
    if client:
        client.close()
        logger.info("✅ MongoDB connection closed")


app = FastAPI(title="Tournament Engine API", lifespan=lifespan)


@app.get("/health")
async def root_health_check():
    """Health check endpoint for liveness/readiness probes"""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


app.include_router(tournament_router, prefix="/api", tags=["tournaments"])

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
