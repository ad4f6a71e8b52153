"""
Response capture for ASGI ``send`` callables.

Wraps the real ``send`` so every message still reaches the client unchanged
while the status code and body bytes are recorded for persistence.
"""

from starlette.types import Message, Send


class ResponseCapture:
    """
    Decorator around an ASGI ``send`` callable.

    The first ``http.response.start`` fixes the status; later ones are
    ignored for capture purposes. If the handler writes a body without
    starting the response, the status defaults to 200. ``complete`` turns
    true once the final body chunk has been sent.
    """

    def __init__(self, send: Send):
        self._send = send
        self._status_code: int | None = None
        self._chunks: list[bytes] = []
        self.complete = False

    @property
    def status_code(self) -> int:
        return self._status_code if self._status_code is not None else 200

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def write_header(self, status_code: int) -> None:
        if self._status_code is None:
            self._status_code = status_code

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]
        if message_type == "http.response.start":
            self.write_header(message["status"])
        elif message_type == "http.response.body":
            self.write_header(200)
            body = message.get("body", b"")
            if body:
                self._chunks.append(body)
            if not message.get("more_body", False):
                self.complete = True
        await self._send(message)
