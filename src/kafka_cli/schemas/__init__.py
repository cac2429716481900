"""
Message schemas.

Schemas:
    messages.py - Message (consumed records), ProducedRecord (synthetic payload)

Design Decisions:
    - Pydantic for validation and JSON serialization
    - Payload bytes are kept verbatim; only properties are decoded
"""

from kafka_cli.schemas.messages import (
    Message,
    ProducedRecord,
    effective_timestamp,
    encode_headers,
    format_timestamp,
)

__all__ = [
    "Message",
    "ProducedRecord",
    "effective_timestamp",
    "encode_headers",
    "format_timestamp",
]
