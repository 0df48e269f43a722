# backend/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

load_dotenv()

from config import settings
from database import init_db
from utils.errors import InventoryError, AuthenticationError

# Router imports
from routes.cart import router as cart_router
from routes.orders import router as orders_router
from routes.pos import router as pos_router
from routes.stock import router as stock_router
from routes.logs import router as logs_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Textile Inventory API", version="1.0.0", lifespan=lifespan)

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain failures share the {"detail": ...} body of HTTPException plus a machine code
@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Router registration
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(pos_router)
app.include_router(logs_router)

# Stock registration
app.include_router(stock_router, prefix="/stock")

@app.get("/")
def read_root():
    return {"message": "Textile Inventory API is running"}
