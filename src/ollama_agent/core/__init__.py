"""Turn execution core."""

from .extractor import AmbiguousMatch, MalformedArguments, NoToolFound, ToolCallExtractor
from .permissions import ApprovalRequest, PermissionGate
from .pipeline import TurnListener, TurnPipeline, TurnState
from .router import UtteranceRouter
from .session import Session, SessionSnapshot, Statistics, Turn, TurnError, TurnOutcome
from .stream import Cancelled, End, Fragment, GenerationStreamController, StreamError, StreamHandle
from .types import Classification, Direct, DirectCommand, ErrorKind, NaturalLanguage

__all__ = [
    "AmbiguousMatch",
    "ApprovalRequest",
    "Cancelled",
    "Classification",
    "Direct",
    "DirectCommand",
    "End",
    "ErrorKind",
    "Fragment",
    "GenerationStreamController",
    "MalformedArguments",
    "NaturalLanguage",
    "NoToolFound",
    "PermissionGate",
    "Session",
    "SessionSnapshot",
    "Statistics",
    "StreamError",
    "StreamHandle",
    "ToolCallExtractor",
    "Turn",
    "TurnError",
    "TurnListener",
    "TurnOutcome",
    "TurnPipeline",
    "TurnState",
    "UtteranceRouter",
]
