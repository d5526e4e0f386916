"""Operator pairing handshake with a freshly provisioned gateway.

The gateway may hold a first operator connection in a "pairing required"
state until the device is approved on the host. The handshake connects
once, answers the connect challenge, and approves the request id over
SSH if asked to. It never reconnects after the handshake has started.
"""

import asyncio
import json
import shlex
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import websockets
from websockets.exceptions import WebSocketException

from outpost_core.observability import get_logger
from outpost_core.protocols.remote import RemoteExecutor

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)

PROTOCOL_VERSION = 3
CONNECT_REQUEST_ID = "1"
CLIENT_ID = "outpost-provisioner"
CLIENT_VERSION = "1.0.0"
OPERATOR_SCOPES = (
    "operator.read",
    "operator.write",
    "operator.admin",
    "operator.approvals",
)

Connector = Callable[[str], Awaitable[Any]]


class PairingOutcome(str, Enum):
    """How the handshake ended."""

    CONNECTED = "connected"
    APPROVED = "approved"
    MISSING_REQUEST_ID = "missing_request_id"
    TIMED_OUT = "timed_out"
    UNREACHABLE = "unreachable"
    FAILED = "failed"


def gateway_ws_url(gateway_url: str, token: str) -> str:
    """Turn an http(s) gateway URL into its ws(s) control channel URL."""
    if gateway_url.startswith("https://"):
        base = "wss://" + gateway_url[len("https://"):]
    elif gateway_url.startswith("http://"):
        base = "ws://" + gateway_url[len("http://"):]
    else:
        base = gateway_url
    return f"{base}?token={quote(token, safe='')}"


def build_connect_request(token: str, platform: str = "server") -> dict[str, Any]:
    """Build the connect request sent in answer to ``connect.challenge``."""
    return {
        "type": "req",
        "id": CONNECT_REQUEST_ID,
        "method": "connect",
        "params": {
            "minProtocol": PROTOCOL_VERSION,
            "maxProtocol": PROTOCOL_VERSION,
            "client": {
                "id": CLIENT_ID,
                "version": CLIENT_VERSION,
                "platform": platform,
                "mode": "proxy",
            },
            "role": "operator",
            "scopes": list(OPERATOR_SCOPES),
            "caps": [],
            "commands": [],
            "permissions": {},
            "auth": {"token": token},
            "locale": "en-US",
            "userAgent": f"{CLIENT_ID}/{CLIENT_VERSION}",
        },
    }


def _pairing_request_id(frame: dict[str, Any]) -> tuple[bool, str | None]:
    error = frame.get("error")
    if not isinstance(error, dict) or error.get("message") != "pairing required":
        return False, None
    details = error.get("details")
    request_id = details.get("requestId") if isinstance(details, dict) else None
    return True, str(request_id) if request_id else None


async def _default_connect(url: str) -> Any:
    return await websockets.connect(url)


class PairingHandshake:
    """Drives the one-shot pairing exchange.

    Failures never propagate: the gateway is already verified healthy, so
    pairing is a convenience and the outcome is only logged.
    """

    def __init__(
        self,
        config: "Config",
        executor: RemoteExecutor,
        connect: Connector | None = None,
    ) -> None:
        """Initialize the handshake.

        Args:
            config: Application configuration
            executor: Remote executor used for the approval command
            connect: Opens a WebSocket for a URL (defaults to ``websockets.connect``)
        """
        self.timeouts = config.timeouts
        self.approve_command = config.remote.approve_command
        self.executor = executor
        self._connect = connect or _default_connect

    async def run(self, gateway_url: str, token: str, host: str, secret: str) -> PairingOutcome:
        """Run the handshake within the pairing budget."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeouts.pairing_timeout

        ws = await self._open(gateway_ws_url(gateway_url, token), deadline)
        if ws is None:
            logger.warning("Pairing skipped: gateway control channel unreachable", context={"gateway": gateway_url})
            return PairingOutcome.UNREACHABLE

        try:
            outcome = await self._exchange(ws, token, host, secret, deadline)
        except Exception as e:
            logger.warning("Pairing failed", context={"gateway": gateway_url}, error=e)
            outcome = PairingOutcome.FAILED
        finally:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("Error closing pairing connection", context={"reason": str(e)})

        if outcome is PairingOutcome.TIMED_OUT:
            logger.warning(
                "Pairing timed out",
                context={"gateway": gateway_url, "timeout_s": self.timeouts.pairing_timeout},
            )
        return outcome

    async def _open(self, url: str, deadline: float) -> Any | None:
        """Open the channel, retrying failed opens within the budget."""
        loop = asyncio.get_running_loop()
        attempts = max(1, self.timeouts.pairing_open_attempts)

        for attempt in range(1, attempts + 1):
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                return await asyncio.wait_for(self._connect(url), timeout=remaining)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.info(
                    "Could not open gateway control channel",
                    context={"attempt": attempt, "attempts": attempts, "reason": str(e)[:200]},
                )
            if attempt < attempts:
                pause = min(self.timeouts.pairing_open_retry_delay, deadline - loop.time())
                if pause > 0:
                    await asyncio.sleep(pause)
        return None

    async def _exchange(
        self,
        ws: Any,
        token: str,
        host: str,
        secret: str,
        deadline: float,
    ) -> PairingOutcome:
        loop = asyncio.get_running_loop()
        challenge_answered = False

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return PairingOutcome.TIMED_OUT
            try:
                raw = await asyncio.wait_for(
                    ws.recv(),
                    timeout=min(self.timeouts.pairing_receive_timeout, remaining),
                )
            except asyncio.TimeoutError:
                continue

            if not isinstance(raw, str):
                continue
            try:
                frame = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(frame, dict):
                continue

            if frame.get("event") == "connect.challenge":
                if not challenge_answered:
                    await ws.send(json.dumps(build_connect_request(token)))
                    challenge_answered = True
                continue

            if (
                frame.get("type") == "res"
                and frame.get("id") == CONNECT_REQUEST_ID
                and frame.get("error") is None
            ):
                logger.info("Pairing not required, operator connected")
                return PairingOutcome.CONNECTED

            pairing_required, request_id = _pairing_request_id(frame)
            if not pairing_required:
                continue
            if not request_id:
                logger.warning("Pairing required but no request id was given")
                return PairingOutcome.MISSING_REQUEST_ID

            await self.executor.run(host, secret, f"{self.approve_command} {shlex.quote(request_id)}")
            logger.info("Pairing request approved", context={"request_id": request_id})
            return PairingOutcome.APPROVED
