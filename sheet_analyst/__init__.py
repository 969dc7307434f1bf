"""Top-level package for Sheet Analyst.

This package turns a spreadsheet into statistics and a bounded text
digest, hands that digest to a large language model together with the
user's question and the conversation so far, and classifies everything
that can go wrong along the way.  See README.md for usage.
"""

from .analysis import ColumnStats, compute_column_stats, detect_anomalies
from .agent import ChatAgent
from .context import build_context, build_statistics_context
from .correlation import compute_correlations
from .data_handler import DataHandler, frame_to_grid
from .dataset import DataSet, InvalidDatasetError
from .gateway import AIGateway, ErrorKind, GatewayResult
from .history import ConversationTurn, JsonHistoryStore, append_exchange
from .prompt import PromptPayload, build_prompt
from .settings import Settings

__all__ = [
    "AIGateway",
    "ChatAgent",
    "ColumnStats",
    "ConversationTurn",
    "DataHandler",
    "DataSet",
    "ErrorKind",
    "GatewayResult",
    "InvalidDatasetError",
    "JsonHistoryStore",
    "PromptPayload",
    "Settings",
    "append_exchange",
    "build_context",
    "build_prompt",
    "build_statistics_context",
    "compute_column_stats",
    "compute_correlations",
    "detect_anomalies",
    "frame_to_grid",
]
