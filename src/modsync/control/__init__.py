"""Control layer — the build process's line protocol and its consumer."""

from modsync.control.channel import AckSink, ControlChannel, StreamAckSink
from modsync.control.messages import (
    ACK_TYPE,
    ConfigMessage,
    ControlMessage,
    NewModuleMessage,
    RemovedModulesMessage,
    UnknownMessage,
    encode_ack,
    parse_control_line,
)

__all__ = [
    "ACK_TYPE",
    "AckSink",
    "ConfigMessage",
    "ControlChannel",
    "ControlMessage",
    "NewModuleMessage",
    "RemovedModulesMessage",
    "StreamAckSink",
    "UnknownMessage",
    "encode_ack",
    "parse_control_line",
]
