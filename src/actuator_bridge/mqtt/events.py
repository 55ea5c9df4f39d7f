"""Channel events delivered by the MQTT transport to the event dispatcher."""

from __future__ import annotations

import errno as errno_mod
from dataclasses import dataclass

import aiomqtt

__all__ = [
    "BridgeEvent",
    "Connected",
    "Disconnected",
    "MessageReceived",
    "Published",
    "Subscribed",
    "TransportError",
]


@dataclass(frozen=True, slots=True)
class Connected:
    pass


@dataclass(frozen=True, slots=True)
class Disconnected:
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class MessageReceived:
    topic: str
    payload: bytes

    @property
    def payload_len(self) -> int:
        return len(self.payload)


@dataclass(frozen=True, slots=True)
class Subscribed:
    msg_id: int | None = None


@dataclass(frozen=True, slots=True)
class Published:
    msg_id: int | None = None


@dataclass(frozen=True, slots=True)
class TransportError:
    """Transport failure with its diagnostic chain.

    Attributes:
        error_type: "tcp_transport" for socket/TLS failures, "connection_refused"
            when the broker answered with a non-zero return code
        tls_last_err: Last error reported by the TLS layer (0 when none)
        tls_stack_err: Error code from the TLS stack itself (0 when none)
        sock_errno: errno captured on the transport socket (0 when none)
        return_code: Broker CONNACK / reason code (0 when none)
        message: Human-readable description

    """

    error_type: str
    tls_last_err: int = 0
    tls_stack_err: int = 0
    sock_errno: int = 0
    return_code: int = 0
    message: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> TransportError:
        """Map an aiomqtt / socket exception onto the diagnostic fields."""
        if isinstance(exc, aiomqtt.MqttCodeError):
            rc = exc.rc
            code = rc if isinstance(rc, int) else getattr(rc, "value", 0)
            return cls("connection_refused", return_code=int(code or 0), message=str(exc))

        sock_errno = 0
        tls_last_err = 0
        cause: BaseException | None = exc
        while cause is not None:
            if isinstance(cause, OSError) and cause.errno:
                sock_errno = cause.errno
                # ssl.SSLError is an OSError subclass carrying the library reason code
                if type(cause).__module__ == "ssl":
                    tls_last_err = cause.errno
                    sock_errno = 0
                break
            cause = cause.__cause__ or cause.__context__
        if not sock_errno and "timed out" in str(exc).casefold():
            sock_errno = errno_mod.ETIMEDOUT
        return cls("tcp_transport", tls_last_err=tls_last_err, sock_errno=sock_errno, message=str(exc))


BridgeEvent = Connected | Disconnected | MessageReceived | Subscribed | Published | TransportError
