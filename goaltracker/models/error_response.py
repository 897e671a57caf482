"""
Error body returned by every exception handler.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """
    JSON error body.

    Authentication failures always carry the same code and message for their
    group, so clients cannot learn why a credential was refused.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "status_code": 401,
                    "code": "UNAUTHENTICATED",
                    "message": "Could not validate credentials",
                },
                {
                    "status_code": 404,
                    "code": "RESOURCE_NOT_FOUND",
                    "message": "Goal with ID '6d1f...' not found",
                },
            ]
        }
    )

    status_code: int = Field(..., description="HTTP status code")
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Message safe to show to the caller")
    detail: str | None = Field(
        None, description="Internal detail, only present when DEBUG is on"
    )
