import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from app.agent.artifacts import AIResponse, ChartData
from app.core.errors import ChartServiceError
from app.models import ChartPublic, ChartSaveResponse, QuotaState

logger = logging.getLogger(__name__)


class ChartGenerator(Protocol):
    async def generate_chart(self, query: str, clarification_answer: str | None = None) -> AIResponse: ...


class ChartStore(Protocol):
    async def save_chart(
        self, chart_data: ChartData, *, user_id: str | None = None, anonymous_id: str | None = None
    ) -> ChartSaveResponse: ...

    async def list_charts(
        self, *, user_id: str | None = None, anonymous_id: str | None = None
    ) -> list[ChartPublic]: ...

    async def check_limit(
        self, *, user_id: str | None = None, anonymous_id: str | None = None
    ) -> QuotaState: ...

    async def migrate_anonymous_charts(self, *, user_id: str, anonymous_id: str) -> int: ...


@dataclass
class AssistantTurn:
    response: AIResponse
    saved: ChartSaveResponse | None = None
    save_error: ChartServiceError | None = None


class ChartAssistant:
    """
    One chat session: query -> optional single clarification round -> chart,
    followed by an auto-save of every generated chart.

    `autosave_failure` decides what a failed auto-save does: "log" keeps the
    generated chart, logs the error and records it on the turn; "raise"
    propagates the error to the caller.
    """

    def __init__(
        self,
        generator: ChartGenerator,
        store: ChartStore,
        *,
        anonymous_id: str,
        user_id: str | None = None,
        autosave: bool = True,
        autosave_failure: Literal["log", "raise"] = "log",
    ):
        self.generator = generator
        self.store = store
        self.anonymous_id = anonymous_id
        self.user_id = user_id
        self.autosave = autosave
        self.autosave_failure = autosave_failure
        self._pending_query: str | None = None

    @property
    def awaiting_clarification(self) -> bool:
        return self._pending_query is not None

    def _identity(self) -> dict[str, str | None]:
        if self.user_id:
            return {"user_id": self.user_id, "anonymous_id": None}
        return {"user_id": None, "anonymous_id": self.anonymous_id}

    async def ask(self, message: str) -> AssistantTurn:
        if self._pending_query is not None:
            # The message answers the pending question; history never goes deeper than one round.
            query, answer = self._pending_query, message
        else:
            query, answer = message, None

        response = await self.generator.generate_chart(query, answer)
        if response.needs_clarification:
            self._pending_query = query
            return AssistantTurn(response=response)

        self._pending_query = None
        turn = AssistantTurn(response=response)
        if self.autosave:
            await self._autosave(turn)
        return turn

    def reset(self) -> None:
        self._pending_query = None

    async def _autosave(self, turn: AssistantTurn) -> None:
        try:
            turn.saved = await self.store.save_chart(turn.response.chart_data, **self._identity())
        except ChartServiceError as e:
            if self.autosave_failure == "raise":
                raise
            logger.error("Auto-save failed, keeping the chart unsaved: %s", e.message)
            turn.save_error = e

    async def login(self, user_id: str) -> int:
        """Switch to an authenticated identity, moving anonymous charts over once."""
        if self.user_id == user_id:
            return 0
        migrated = await self.store.migrate_anonymous_charts(user_id=user_id, anonymous_id=self.anonymous_id)
        self.user_id = user_id
        logger.info("Logged in as %s; migrated %s anonymous chart(s)", user_id, migrated)
        return migrated

    def logout(self) -> None:
        self.user_id = None

    async def charts(self) -> list[ChartPublic]:
        return await self.store.list_charts(**self._identity())

    async def quota(self) -> QuotaState:
        return await self.store.check_limit(**self._identity())
