from fastapi import APIRouter, HTTPException

from smartcoffee.config import get_settings
from smartcoffee.api.brew import recommender
from smartcoffee.integrations import DeviceCommunicationError

router = APIRouter()


@router.get("/status")
async def get_device_status():
    """Current status of the coffee machine."""
    try:
        status = await recommender.client.get_status()
    except DeviceCommunicationError as e:
        raise HTTPException(status_code=502, detail=f"Coffee machine unavailable: {e}")
    return status.to_dict()


@router.get("/health")
async def get_device_health():
    """Health metrics reported by the coffee machine."""
    try:
        metrics = await recommender.client.get_health_metrics()
    except DeviceCommunicationError as e:
        raise HTTPException(status_code=502, detail=f"Coffee machine unavailable: {e}")
    return metrics


@router.get("/connection")
async def check_connection():
    """Test the connection and validate the configured device settings."""
    settings = get_settings()
    return {
        "device_url": settings.device_url,
        "connected": await recommender.client.test_connection(),
        "average_response_time": recommender.client.average_response_time,
        "settings_errors": settings.validate_device_settings()
    }
