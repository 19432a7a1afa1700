from .capture import CaptureDispatcher, CaptureHandler

__all__ = ["CaptureDispatcher", "CaptureHandler"]
