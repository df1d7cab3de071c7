from fastapi import FastAPI, Depends, HTTPException, Request, status, UploadFile, File, Form
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional
import contextlib
import logging
import os
import uuid

import auth, config, database, odometer, rewards, schemas
from errors import DomainError, NotFound, Conflict, DuplicateEmail, InsufficientBalance, UserNotFound
from storage import Storage, get_storage

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting EV rewards API (storage=%s)", config.STORAGE_BACKEND)
    if config.STORAGE_BACKEND == "sql":
        database.init_db()
    os.makedirs(config.MEDIA_DIR, exist_ok=True)
    yield
    database.engine.dispose()


app = FastAPI(title="EV Rewards API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    if isinstance(exc, NotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, Conflict):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    logger.warning("Domain error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})


@app.get("/")
def hello():
    return {"msg": "EV Rewards API"}


# User Endpoints
@app.get("/api/user/{email}", response_model=schemas.UserResponse)
def get_user(email: str, storage: Storage = Depends(get_storage),
             auth_email: Optional[str] = Depends(auth.get_authenticated_email)):
    auth.ensure_same_email(auth_email, email)
    user = storage.get_user_by_email(email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.post("/api/user", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(user_in: schemas.UserCreate, storage: Storage = Depends(get_storage),
                auth_email: Optional[str] = Depends(auth.get_authenticated_email)):
    auth.ensure_same_email(auth_email, user_in.email)
    try:
        return storage.create_user(
            name=user_in.name,
            vehicle_type=user_in.vehicle_type,
            email=user_in.email,
            rc_image_id=user_in.rc_image_id,
        )
    except DuplicateEmail:
        raise HTTPException(status_code=409, detail="User already exists")


@app.patch("/api/user/{user_id}", response_model=schemas.UserResponse)
def update_user(user_id: int, user_in: schemas.UserUpdate, storage: Storage = Depends(get_storage),
                auth_email: Optional[str] = Depends(auth.get_authenticated_email)):
    user = storage.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    auth.ensure_same_email(auth_email, user.email)

    updated = storage.update_user(user_id, **user_in.model_dump(exclude_unset=True))
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    return updated


# Upload Endpoints
@app.post("/api/upload", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_odometer(image: Optional[UploadFile] = File(None),
                    user_id: Optional[int] = Form(None, alias="userId"),
                    storage: Storage = Depends(get_storage)):
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")
    if user_id is None:
        raise HTTPException(status_code=400, detail="User ID is required")
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image uploads are accepted")

    data = image.file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Image is too large")
    odometer.ensure_image(data)

    user = storage.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    estimated_km = odometer.estimate_distance(image.filename)
    reward = rewards.compute_reward(estimated_km, user.vehicle_type)

    # Save image
    image_id = f"img_{uuid.uuid4().hex}"
    ext = os.path.splitext(image.filename or "")[1].lower()
    os.makedirs(config.MEDIA_DIR, exist_ok=True)
    file_path = os.path.join(config.MEDIA_DIR, image_id + ext)
    with open(file_path, "wb") as buffer:
        buffer.write(data)

    try:
        upload = storage.create_upload(user_id, image_id, estimated_km, reward)
    except UserNotFound:
        os.remove(file_path)
        raise HTTPException(status_code=404, detail="User not found")
    except Exception:
        os.remove(file_path)
        raise

    logger.info("Upload %s for user %s: %s km, reward %s", upload.id, user_id, estimated_km, reward.reward_inr)
    return upload


@app.get("/api/upload/{upload_id}", response_model=schemas.UploadResponse)
def get_upload(upload_id: int, storage: Storage = Depends(get_storage)):
    upload = storage.get_upload_by_id(upload_id)
    if not upload:
        raise HTTPException(status_code=404, detail="Upload not found")
    return upload


@app.get("/api/uploads/{user_id}", response_model=List[schemas.UploadResponse])
def get_uploads(user_id: int, storage: Storage = Depends(get_storage)):
    return storage.get_uploads_by_user_id(user_id)


@app.get("/api/stats/{user_id}", response_model=schemas.StatsResponse)
def get_stats(user_id: int, storage: Storage = Depends(get_storage)):
    return storage.get_user_stats(user_id)._asdict()


# Wallet Endpoints
@app.post("/api/withdraw", response_model=schemas.WithdrawResponse)
def withdraw(request_in: schemas.WithdrawRequest, storage: Storage = Depends(get_storage)):
    """
    Mock withdrawal. No payment gateway is called and the balance is not
    debited; the request is only checked against the current balance.
    """
    user = storage.get_user_by_id(request_in.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if request_in.amount > user.balance_inr:
        raise InsufficientBalance(request_in.amount, user.balance_inr)

    transaction_id = f"TXN{uuid.uuid4().hex[:12].upper()}"
    logger.info("Withdrawal %s requested by user %s: %s via %s",
                transaction_id, user.id, request_in.amount, request_in.method)
    return {
        "success": True,
        "message": f"Withdrawal of ₹{request_in.amount} via {request_in.method} initiated successfully",
        "transaction_id": transaction_id,
    }
