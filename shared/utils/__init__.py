from .common import decode_image, encode_image, monotonic

__all__ = ["monotonic", "encode_image", "decode_image"]
