"""Chat agent orchestration over a spreadsheet.

The ``ChatAgent`` class glues together a ``DataHandler``, the
``AIGateway`` and the conversation history.  For each user question the
agent reads the settings, reads the sheet afresh, asks the gateway and
records the exchange.  Failures at any stage come back as a
``GatewayResult`` so the caller only ever deals with one result type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .data_handler import DataHandler
from .dataset import DataSet, InvalidDatasetError
from .gateway import CLEAR_HISTORY, AIGateway, ErrorKind, GatewayResult, command_result
from .history import ConversationTurn, JsonHistoryStore, append_exchange
from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ChatAgent:
    """Natural-language interface over a sheet.

    Parameters
    ----------
    data_handler : DataHandler, optional
        Loader for the sheet.  Without one, questions are sent with no
        dataset context.
    gateway : AIGateway, optional
        Gateway used to reach the model.
    settings_loader : callable, optional
        Returns the current ``Settings``; called once per question.
    history_store : JsonHistoryStore, optional
        Where the conversation is persisted when ``save_history`` is on.
    include_statistics : bool, optional
        If True, column statistics and correlations are added to the
        dataset context.
    debug : bool, optional
        If True, logs the dataset context built for each question.
    """

    data_handler: Optional[DataHandler] = None
    gateway: AIGateway = field(default_factory=AIGateway)
    settings_loader: Callable[[], Settings] = Settings.from_env
    history_store: Optional[JsonHistoryStore] = None
    include_statistics: bool = False
    debug: bool = False
    history: List[ConversationTurn] = field(default_factory=list)

    def _load_history(self, settings: Settings) -> List[ConversationTurn]:
        if settings.save_history and self.history_store is not None:
            try:
                return self.history_store.load()
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.warning("Ignoring unreadable history at %s: %s", self.history_store.path, exc)
                return []
        return list(self.history)

    def _store_history(self, settings: Settings, history: List[ConversationTurn]) -> None:
        self.history = history
        if settings.save_history and self.history_store is not None:
            try:
                self.history_store.save(history)
            except (OSError, TypeError) as exc:
                logger.warning("Could not save history to %s: %s", self.history_store.path, exc)

    def _clear_history(self, settings: Settings) -> None:
        self.history = []
        if settings.save_history and self.history_store is not None:
            try:
                self.history_store.clear()
            except OSError as exc:
                logger.warning("Could not clear history at %s: %s", self.history_store.path, exc)

    def _read_settings(self) -> Optional[Settings]:
        try:
            return self.settings_loader()
        except Exception:
            logger.exception("Could not read settings")
            return None

    def _load_dataset(self) -> Optional[DataSet]:
        if self.data_handler is None:
            return None
        return self.data_handler.load_dataset()

    def ask(self, question: str) -> GatewayResult:
        """Answer a natural-language question about the sheet.

        The exchange is appended to the history: the question always, the
        answer only when the call succeeded.  ``/clear`` empties the
        history and ``/help`` leaves it untouched.

        Parameters
        ----------
        question : str
            The user's natural-language question.

        Returns
        -------
        GatewayResult
            The answer or a classified failure.
        """
        local = command_result(question)
        if local is not None and local.action != CLEAR_HISTORY:
            return local

        settings = self._read_settings()
        if settings is None:
            return GatewayResult.failure(ErrorKind.UNEXPECTED_ERROR, raw_error="settings could not be read")
        if local is not None:
            self._clear_history(settings)
            return local

        history = self._load_history(settings)
        try:
            dataset = self._load_dataset()
        except (InvalidDatasetError, FileNotFoundError, ValueError) as exc:
            logger.warning("Could not load dataset: %s", exc)
            return GatewayResult.failure(ErrorKind.INVALID_DATASET, raw_error=str(exc), detail=str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while loading dataset")
            return GatewayResult.failure(ErrorKind.UNEXPECTED_ERROR, raw_error=f"{type(exc).__name__}: {exc}")

        if self.debug and dataset is not None:
            try:
                payload = self.gateway.build_payload(question, dataset, [], settings, self.include_statistics)
                logger.debug("Dataset context:\n%s", payload.dataset_context)
            except Exception:
                logger.exception("Could not render dataset context for debugging")
        result = self.gateway.ask(
            question,
            dataset=dataset,
            history=history,
            settings=settings,
            include_statistics=self.include_statistics,
        )
        self._store_history(settings, append_exchange(history, question, result))
        return result
