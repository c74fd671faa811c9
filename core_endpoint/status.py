from enum import Enum


class HttpStatus(int, Enum):
    """HTTP status codes for API responses."""

    # Success
    OK = 200
    CREATED = 201

    # Client Error
    BAD_REQUEST = 400
    UNAUTHORIZED = 401

    # Server Error
    INTERNAL_SERVER_ERROR = 500
