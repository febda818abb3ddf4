"""Runestone protocol codec package."""

from .config import (
    DEFAULT_PROTOCOL_CONFIG,
    ConfigurationError,
    ProtocolConfig,
    RPCConfig,
    load_protocol_config,
    load_rpc_config,
)
from .flag import Flag
from .message import Message
from .model import MAX_SPACERS, Edict, Etching, MintTerms, Rune
from .runestone import Runestone, RunestoneError
from .seek_buffer import OutOfDataError, SeekBuffer
from .tag import Tag
from .transaction import Transaction, TransactionDecodeError, TxIn, TxOut
from .varint import (
    U128_MAX,
    UnterminatedVarIntError,
    VarIntError,
    VarIntOverflowError,
    decode_varint,
    encode_varint,
    read_varint,
    saturating_add,
)

__all__ = [
    "DEFAULT_PROTOCOL_CONFIG",
    "ConfigurationError",
    "ProtocolConfig",
    "RPCConfig",
    "load_protocol_config",
    "load_rpc_config",
    "Flag",
    "Message",
    "MAX_SPACERS",
    "Edict",
    "Etching",
    "MintTerms",
    "Rune",
    "Runestone",
    "RunestoneError",
    "OutOfDataError",
    "SeekBuffer",
    "Tag",
    "Transaction",
    "TransactionDecodeError",
    "TxIn",
    "TxOut",
    "U128_MAX",
    "UnterminatedVarIntError",
    "VarIntError",
    "VarIntOverflowError",
    "decode_varint",
    "encode_varint",
    "read_varint",
    "saturating_add",
]
