"""One-shot remote console client (Source RCON, as spoken by Minecraft servers).

Every call opens a fresh TCP session, authenticates, runs a single command,
reads a single reply and closes the session again, whatever happened.
"""
import asyncio
import logging
import struct
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from errors import RemoteProtocolError, RemoteTimeout, RemoteUnreachable

log = logging.getLogger("whitelist")

SERVERDATA_RESPONSE_VALUE = 0
SERVERDATA_AUTH_RESPONSE = 2
SERVERDATA_EXECCOMMAND = 2
SERVERDATA_AUTH = 3

# size field excludes itself: id + type + empty body + two NUL terminators
_HEADER = struct.Struct("<iii")
_MIN_PACKET_SIZE = 10
_MAX_PACKET_SIZE = 4096 + _MIN_PACKET_SIZE

_AUTH_ID = 1
_COMMAND_ID = 2


class RconConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(..., ge=1, le=65535)
    password: str = Field(..., repr=False)
    timeout: float = Field(5.0, gt=0)

    @classmethod
    def from_settings(cls, settings) -> "RconConfig":
        return cls(
            host=settings.rcon_host,
            port=settings.rcon_port,
            password=settings.rcon_password,
            timeout=settings.rcon_timeout_seconds,
        )


class Packet(NamedTuple):
    request_id: int
    packet_type: int
    body: str


def encode_packet(request_id: int, packet_type: int, body: str) -> bytes:
    payload = body.encode("utf-8") + b"\x00\x00"
    return _HEADER.pack(len(payload) + 8, request_id, packet_type) + payload


async def read_packet(reader: asyncio.StreamReader) -> Packet:
    """Read one framed packet; raise RemoteProtocolError on anything malformed."""
    try:
        raw_size = await reader.readexactly(4)
        (size,) = struct.unpack("<i", raw_size)
        if size < _MIN_PACKET_SIZE or size > _MAX_PACKET_SIZE:
            raise RemoteProtocolError(f"invalid packet size {size}")
        data = await reader.readexactly(size)
    except asyncio.IncompleteReadError as e:
        raise RemoteProtocolError("connection closed mid-packet") from e
    except ConnectionError as e:
        raise RemoteProtocolError(f"connection lost: {e}") from e

    request_id, packet_type = struct.unpack_from("<ii", data)
    if data[-2:] != b"\x00\x00":
        raise RemoteProtocolError("packet body is not NUL terminated")
    body = data[8:-2].decode("utf-8", errors="replace")
    return Packet(request_id, packet_type, body)


class RconClient:
    async def execute(self, config: RconConfig, command: str) -> str:
        reader, writer = await self._connect(config)
        try:
            await self._authenticate(reader, writer, config)
            await self._send(writer, config, _COMMAND_ID, SERVERDATA_EXECCOMMAND, command)
            reply = await self._bounded(read_packet(reader), config, "reading reply")
            if reply.request_id != _COMMAND_ID:
                raise RemoteProtocolError(f"reply id {reply.request_id} does not match command id")
            log.info("RCON %s:%s %r -> %r", config.host, config.port, command, reply.body)
            return reply.body
        finally:
            await self._close(writer)

    async def _connect(self, config: RconConfig):
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(config.host, config.port), timeout=config.timeout
            )
        except asyncio.TimeoutError as e:
            # the session was never established
            raise RemoteUnreachable(f"connecting to {config.host}:{config.port} timed out") from e
        except OSError as e:
            raise RemoteUnreachable(f"cannot connect to {config.host}:{config.port}: {e}") from e

    async def _authenticate(self, reader, writer, config: RconConfig) -> None:
        await self._send(writer, config, _AUTH_ID, SERVERDATA_AUTH, config.password, timeout_error=RemoteUnreachable)
        while True:
            packet = await self._bounded(read_packet(reader), config, "authenticating", RemoteUnreachable)
            # Source servers send an empty response value ahead of the auth response
            if packet.packet_type == SERVERDATA_RESPONSE_VALUE:
                continue
            if packet.packet_type != SERVERDATA_AUTH_RESPONSE:
                raise RemoteProtocolError(f"unexpected packet type {packet.packet_type} during auth")
            if packet.request_id == -1:
                raise RemoteUnreachable("authentication rejected by server")
            if packet.request_id != _AUTH_ID:
                raise RemoteProtocolError(f"auth reply id {packet.request_id} does not match")
            return

    async def _send(self, writer, config: RconConfig, request_id: int, packet_type: int, body: str,
                    timeout_error=RemoteTimeout) -> None:
        writer.write(encode_packet(request_id, packet_type, body))
        try:
            await self._bounded(writer.drain(), config, "sending", timeout_error)
        except ConnectionError as e:
            raise RemoteProtocolError(f"connection lost while sending: {e}") from e

    async def _bounded(self, awaitable, config: RconConfig, stage: str, timeout_error=RemoteTimeout):
        try:
            return await asyncio.wait_for(awaitable, timeout=config.timeout)
        except asyncio.TimeoutError as e:
            raise timeout_error(f"{stage} timed out after {config.timeout}s") from e

    async def _close(self, writer) -> None:
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            log.debug("RCON session close error ignored: %s", e)
