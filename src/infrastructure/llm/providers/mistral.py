"""Mistral provider adapter with agent mode and tool file outputs."""

import mimetypes
from collections.abc import Mapping
from typing import Any

import structlog

from src.infrastructure.llm.protocol import FileFetcher
from src.infrastructure.llm.providers.base import (
    ChatCompletionsAdapter,
    build_messages,
)
from src.infrastructure.llm.schemas import (
    Attachment,
    CompletionRequest,
    Credential,
)

logger = structlog.get_logger()

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _content_type_for(filename: str, file_type: str | None) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        return guessed
    if file_type:
        guessed, _ = mimetypes.guess_type(f"file.{file_type}")
    return guessed or DEFAULT_CONTENT_TYPE


class MistralAdapter(ChatCompletionsAdapter):
    """Mistral chat and agent completions.

    A credential carrying an ``agent_id`` is sent to the agent endpoint,
    which brings its own instructions, so no system message is added.
    Other credentials use plain chat completions with the directive as the
    first message.

    Agent responses may interleave text chunks with ``tool_file`` chunks
    (for example a chart produced by the code interpreter). Text chunks are
    concatenated into the answer and each file is downloaded into an
    attachment.
    """

    name = "mistral"
    base_url = "https://api.mistral.ai/v1"
    default_model = "mistral-small-latest"
    # A 401/403 may only mean this key cannot use this agent.
    retry_unauthorized = True

    def build_request(
        self,
        credential: Credential,
        request: CompletionRequest,
        system_prompt: str,
    ) -> tuple[str, dict[str, Any]]:
        response_format = {"type": "text"}

        if credential.agent_id:
            return "/agents/completions", {
                "agent_id": credential.agent_id,
                "messages": build_messages(request, None),
                "max_tokens": self.max_tokens,
                "response_format": response_format,
            }

        return "/chat/completions", {
            "model": self.model,
            "messages": build_messages(request, system_prompt),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": response_format,
        }

    def error_message(self, body: Any, status: int) -> str:
        if isinstance(body, Mapping) and isinstance(body.get("detail"), str):
            return body["detail"]
        return super().error_message(body, status)

    async def parse_response(
        self,
        body: Mapping[str, Any],
        fetch_file: FileFetcher,
    ) -> tuple[str, list[Attachment]]:
        content = self._first_message(body).get("content")

        if isinstance(content, str):
            return content, []
        if not isinstance(content, list):
            return "", []

        texts: list[str] = []
        attachments: list[Attachment] = []

        for chunk in content:
            if not isinstance(chunk, Mapping):
                continue
            chunk_type = chunk.get("type")

            if chunk_type == "text" and isinstance(chunk.get("text"), str):
                texts.append(chunk["text"])
            elif chunk_type == "tool_file" and chunk.get("file_id"):
                attachment = await self._download_attachment(chunk, fetch_file)
                if attachment is not None:
                    attachments.append(attachment)

        return "".join(texts), attachments

    async def _download_attachment(
        self,
        chunk: Mapping[str, Any],
        fetch_file: FileFetcher,
    ) -> Attachment | None:
        file_id = str(chunk["file_id"])
        file_type = chunk.get("file_type")
        filename = chunk.get("file_name") or (
            f"{file_id}.{file_type}" if file_type else file_id
        )

        data = await fetch_file(f"/files/{file_id}/content")
        if data is None:
            logger.warning(
                "llm_attachment_skipped",
                provider=self.name,
                file_id=file_id,
            )
            return None

        return Attachment(
            filename=filename,
            content_type=_content_type_for(filename, file_type),
            data=data,
        )
