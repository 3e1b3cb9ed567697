"""Direct client: hands text straight to a registered agent and reads back its reply."""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path

from auditor.core.runtime import (
    MESSAGE_COMPLETION_FOOTER,
    AgentRuntime,
    MessageRecord,
    compose_context,
    generate_message_response,
    string_to_uuid,
)
from auditor.models.schemas import Content

logger = logging.getLogger(__name__)

REPORT_FILENAME = "report.md"

MESSAGE_TEMPLATE = "{{messageDirections}}\n{{recentMessages}}\n" + MESSAGE_COMPLETION_FOOTER


def write_report(report_path: Path, content: str) -> None:
    """Best-effort write of the audit report; failures are only logged."""
    try:
        Path(report_path, REPORT_FILENAME).write_text(content, encoding="utf-8")
    except OSError:
        logger.exception("Error writing report to %s", report_path)


class DirectClient:
    """Drives registered agents without any chat platform in between."""

    def __init__(self) -> None:
        self.agents: dict[uuid.UUID, AgentRuntime] = {}

    def register_agent(self, runtime: AgentRuntime) -> None:
        self.agents[runtime.agent_id] = runtime

    def unregister_agent(self, runtime: AgentRuntime) -> None:
        self.agents.pop(runtime.agent_id, None)

    async def stop(self) -> None:
        """Unregister every agent and close its store."""
        for runtime in list(self.agents.values()):
            self.unregister_agent(runtime)
            await runtime.database_adapter.close()

    def _first_agent(self) -> AgentRuntime | None:
        return next(iter(self.agents.values()), None)

    async def comment(self, comment: str) -> str | None:
        """Reply to a block of conversation text with the first registered agent."""
        runtime = self._first_agent()
        if runtime is None:
            logger.error("Agent not found.")
            return None

        try:
            response = await self._process_message(runtime, comment)
        except Exception:
            logger.exception("Error processing message")
            return None
        return response.text

    async def audit(self, report_path: Path, codes: list[str]) -> list[str] | None:
        """Audit source fragments in one message and return the report.

        All fragments go to the agent as a single message, so the result holds
        at most one report. The report is also written to
        ``<report_path>/report.md``.
        """
        runtime = self._first_agent()
        if runtime is None:
            logger.error("Agent not found.")
            return None

        reports: list[str] = []
        try:
            response = await self._process_message(runtime, "\n\n".join(codes))
            reports.append(response.text)
            write_report(report_path, response.text)
        except Exception:
            logger.exception("Error processing message")
        return reports

    async def _process_message(self, runtime: AgentRuntime, text: str) -> Content:
        room_id = string_to_uuid(f"cli-room-{runtime.agent_id}")
        user_id = string_to_uuid("cli-user")
        message_id = string_to_uuid(str(time.time_ns()))

        await runtime.ensure_connection(user_id, room_id, "User")

        message = MessageRecord(
            id=message_id,
            agent_id=runtime.agent_id,
            user_id=user_id,
            room_id=room_id,
            content=Content(text=text, source="cli"),
        )
        await runtime.message_manager.create_memory(message)

        state = await runtime.compose_state(message, agentName=runtime.character.name)
        context = compose_context(state, MESSAGE_TEMPLATE)

        response = await generate_message_response(runtime, context)

        await runtime.message_manager.create_memory(
            MessageRecord(
                id=string_to_uuid(f"{message_id}-response"),
                agent_id=runtime.agent_id,
                user_id=runtime.agent_id,
                room_id=room_id,
                content=response.model_copy(update={"in_reply_to": message_id, "source": "cli"}),
            )
        )
        return response
