from fastapi import APIRouter

from app.config import APP_NAME

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": f"{APP_NAME} is running"}
