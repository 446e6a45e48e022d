from __future__ import annotations

from .models import BufferedPayload, ByteStream

PAYLOAD_SIZE_LIMIT = 8_000_000


async def read_into_buffer(stream: ByteStream, max_size: int = PAYLOAD_SIZE_LIMIT) -> BufferedPayload:
    """Consume ``stream`` into memory, never holding more than ``max_size`` bytes.

    Returns a payload with ``overflow`` set (and no data) as soon as the next
    chunk would exceed the limit; the stream is closed at that point so the
    origin connection is released without reading the remainder.
    """
    received = bytearray()
    async for chunk in stream:
        if not chunk:
            continue
        if len(received) + len(chunk) > max_size:
            await stream.aclose()
            return BufferedPayload(overflow=True)
        received += chunk
    return BufferedPayload(data=bytes(received))
