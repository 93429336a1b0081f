"""Client for the remote classification service.

This module talks to an OpenAI-compatible chat completions endpoint and turns
its answers into normalised moderation data:

- ``analyze`` classifies one message against the enabled rules, with recent
  channel context.
- ``analyze_for_purge`` reviews a batch of past messages in one request.
- ``summarize`` produces a moderator digest of a slice of channel history.

None of the three ever raises to the caller. Timeouts, transport errors and
unparseable answers degrade to a well-formed result carrying the error text,
so a classifier outage means "nothing flagged" rather than a crashed handler.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Sequence

import openai
from openai import AsyncOpenAI

from colorgg.ai import prompts
from colorgg.audit.audit_log import AuditLog
from colorgg.configuration.ai_settings import AISettings
from colorgg.datatypes.audit_datatypes import AIAnalysisEntry, ErrorEntry
from colorgg.datatypes.moderation_datatypes import (
    ChatSummary,
    ContextMessage,
    MessageSnapshot,
    PurgeResult,
    Rule,
    Verdict,
)
from colorgg.moderation.moderation_parsing import (
    extract_json_object,
    normalize_purge_result,
    normalize_verdict,
)
from colorgg.util.logger import get_logger

logger = get_logger("classifier")


class ClassifierClient:
    """Send moderation prompts to the classifier service and normalise the answers."""

    def __init__(
        self,
        ai_settings: AISettings,
        audit_log: AuditLog,
        client: Any | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=ai_settings.api_key,
            base_url=ai_settings.base_url,
            max_retries=0,
        )
        self._model_name = ai_settings.model_name
        self._request_timeout = ai_settings.request_timeout_seconds
        self._bulk_timeout = ai_settings.bulk_timeout_seconds
        self._json_mode = ai_settings.json_mode
        self._sampling = ai_settings.sampling_parameters
        self._audit = audit_log
        logger.info(
            "[CLASSIFIER] Initialized with base_url=%s, model=%s, timeout=%.0fs",
            ai_settings.base_url,
            self._model_name,
            self._request_timeout,
        )

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        timeout: float,
        json_mode: bool,
    ) -> str:
        """Run one chat completion and return the stripped text of the first choice."""
        request: Dict[str, Any] = dict(self._sampling)
        if json_mode and self._json_mode:
            request["response_format"] = {"type": "json_object"}

        response = await asyncio.wait_for(
            self._client.chat.completions.create(
                model=self._model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                timeout=timeout,
                **request,
            ),
            timeout=timeout,
        )
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise ValueError("Empty AI response")
        return content.strip()

    @staticmethod
    def _describe_failure(exc: BaseException, timeout: float) -> str:
        if isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError)):
            return f"request timed out after {timeout:.0f}s"
        return str(exc) or type(exc).__name__

    async def analyze(
        self,
        message: MessageSnapshot,
        channel_history: Sequence[ContextMessage],
        enabled_rules: Sequence[Rule],
        moderation_style: str = "balanced",
    ) -> Verdict:
        """Classify one message; returns an unflagged verdict on any failure."""
        if not enabled_rules:
            return Verdict(reasoning="No rules enabled")

        try:
            raw = await self._complete(
                prompts.build_system_prompt(enabled_rules, moderation_style),
                prompts.build_user_prompt(message, channel_history[-10:]),
                timeout=self._request_timeout,
                json_mode=True,
            )
            verdict = normalize_verdict(extract_json_object(raw))
        except Exception as exc:
            reason = self._describe_failure(exc, self._request_timeout)
            logger.error("[CLASSIFIER] Analysis failed for message %s: %s", message.message_id, reason)
            self._audit.record(ErrorEntry(error=reason, context="AI analysis failed"))
            return Verdict.failed(f"AI analysis failed: {reason}")

        logger.debug(
            "[CLASSIFIER] Message %s from %s: flagged=%s confidence=%.2f violations=%s",
            message.message_id,
            message.author_name,
            verdict.flagged,
            verdict.confidence,
            verdict.violations,
        )
        self._audit.record(
            AIAnalysisEntry(
                user_id=message.author_id,
                username=message.author_name,
                channel_id=message.channel_id,
                channel_name=message.channel_name,
                message_content=message.content,
                flagged=verdict.flagged,
                violations=list(verdict.violations),
                confidence=verdict.confidence,
                reasoning=verdict.reasoning,
            )
        )
        return verdict

    async def analyze_for_purge(
        self,
        messages: Sequence[ContextMessage],
        channel_name: str,
        enabled_rules: Sequence[Rule],
    ) -> PurgeResult:
        """Identify which of ``messages`` break the enabled rules."""
        if not messages:
            return PurgeResult(summary="No messages to analyze")

        try:
            raw = await self._complete(
                prompts.build_purge_system_prompt(enabled_rules),
                prompts.build_purge_user_prompt(messages, channel_name),
                timeout=self._bulk_timeout,
                json_mode=True,
            )
        except Exception as exc:
            reason = self._describe_failure(exc, self._bulk_timeout)
            logger.error("[CLASSIFIER] Purge analysis failed for #%s: %s", channel_name, reason)
            self._audit.record(ErrorEntry(error=reason, context="AI purge analysis failed"))
            return PurgeResult(summary=f"Analysis failed: {reason}")

        try:
            payload = extract_json_object(raw)
        except ValueError:
            logger.warning("[CLASSIFIER] Purge response for #%s had no JSON object", channel_name)
            return PurgeResult(summary="Could not parse AI response")

        result = normalize_purge_result(payload, len(messages))
        logger.info("[CLASSIFIER] Purge analysis of #%s flagged %d/%d messages", channel_name, result.total_flagged, len(messages))
        return result

    async def summarize(
        self,
        messages: Sequence[ContextMessage],
        channel_name: str,
        guild_name: str,
    ) -> ChatSummary:
        """Produce a moderator digest; the summary text carries the error on failure."""
        try:
            summary = await self._complete(
                prompts.build_summary_system_prompt(channel_name, guild_name),
                prompts.build_summary_user_prompt(messages, channel_name),
                timeout=self._bulk_timeout,
                json_mode=False,
            )
        except Exception as exc:
            reason = self._describe_failure(exc, self._bulk_timeout)
            logger.error("[CLASSIFIER] Summary failed for #%s: %s", channel_name, reason)
            self._audit.record(ErrorEntry(error=reason, context="AI chat summary failed"))
            summary = f"Summary failed: {reason}"

        return ChatSummary(
            summary=summary,
            channel_name=channel_name,
            guild_name=guild_name,
            message_count=len(messages),
        )
