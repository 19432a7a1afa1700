from .capture_service import CaptureService

__all__ = ["CaptureService"]
