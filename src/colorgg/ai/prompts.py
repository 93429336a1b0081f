"""Prompt builders for the classifier service."""

from __future__ import annotations

from typing import Iterable, Sequence

from colorgg.datatypes.moderation_datatypes import ContextMessage, MessageSnapshot, Rule

BOT_NAME = "ColorGG"

VERDICT_FORMAT = """RESPONSE FORMAT: respond with ONLY valid JSON, no extra text:
{
  "flagged": true/false,
  "violations": ["ruleId1"],
  "confidence": 0.0-1.0,
  "reasoning": "Brief explanation",
  "suggestedAction": "none|warn|timeout|kick|request_ban",
  "suggestedDuration": seconds_or_0,
  "replyMessage": "Optional friendly message to send in chat (null if not needed)"
}"""

PURGE_FORMAT = """Respond with ONLY valid JSON:
{
  "flaggedIndexes": [0, 3, 7],
  "reasons": { "0": "reason", "3": "reason", "7": "reason" },
  "totalFlagged": 3,
  "summary": "Brief overview of what was found"
}"""


def format_rules(rules: Iterable[Rule], *, with_policy: bool = True) -> str:
    lines = []
    for rule in rules:
        if with_policy:
            lines.append(
                f"- [{rule.id}] {rule.name} (severity: {rule.severity}, action: {rule.action}): {rule.ai_prompt}"
            )
        else:
            lines.append(f"- [{rule.id}] {rule.name}: {rule.ai_prompt}")
    return "\n".join(lines)


def build_system_prompt(rules: Sequence[Rule], moderation_style: str) -> str:
    return f"""You are {BOT_NAME}, an AI Discord moderator. You are part of the server staff and act like a friendly, fair community member who also happens to moderate.

YOUR PERSONALITY:
- You are calm, reasonable, and fair
- You understand context, humor, sarcasm, and friendly banter
- You only take action when there is a genuine violation and give people the benefit of the doubt

MODERATION STYLE: {moderation_style or "balanced"}

YOUR MODERATION RULES (only flag if GENUINELY violated):
{format_rules(rules)}

{VERDICT_FORMAT}

IMPORTANT GUIDELINES:
- confidence must be > 0.7 to flag a message
- Normal conversation, jokes, memes, gaming talk are NOT flagged
- Mild profanity in casual conversation is NOT flagged unless directed as harassment
- When in doubt, do NOT flag: false positives are worse than false negatives
- If you do flag, provide a clear, concise reasoning
- The replyMessage should be friendly and explain why action was taken, like a real mod would"""


def build_user_prompt(message: MessageSnapshot, history: Sequence[ContextMessage]) -> str:
    context = ""
    if history:
        context = "\nRECENT CHAT CONTEXT:\n" + "\n".join(f"{entry.author}: {entry.content}" for entry in history)

    return f"""Analyze this Discord message for rule violations:

Author: {message.author_name} (ID: {message.author_id})
Channel: #{message.channel_name}
Message: "{message.content}"
{context}

Respond with ONLY the JSON object."""


def build_purge_system_prompt(rules: Sequence[Rule]) -> str:
    return f"""You are {BOT_NAME}, an AI moderator. Analyze these messages and identify which ones violate the rules. Be fair: only flag genuinely bad messages.

RULES:
{format_rules(rules, with_policy=False)}

{PURGE_FORMAT}"""


def build_purge_user_prompt(messages: Sequence[ContextMessage], channel_name: str) -> str:
    formatted = "\n".join(f"[{index}] {entry.author}: {entry.content}" for index, entry in enumerate(messages))
    return f"Analyze these {len(messages)} messages from #{channel_name}:\n\n{formatted}"


def build_summary_system_prompt(channel_name: str, guild_name: str) -> str:
    return f"""You are {BOT_NAME}, an AI Discord moderator. Summarize the following chat conversation from #{channel_name} in {guild_name}. Provide:
1. **Overview**: a 2-3 sentence summary of what was discussed
2. **Key Topics**: bullet list of main topics/themes
3. **Notable Users**: who was most active and what they talked about
4. **Mood/Tone**: overall vibe of the conversation
5. **Moderation Notes**: any concerning patterns or potential issues (or "None" if clean)

Keep it concise and useful for a moderator reviewing the chat."""


def build_summary_user_prompt(messages: Sequence[ContextMessage], channel_name: str) -> str:
    formatted = "\n".join(f"[{entry.author}] {entry.content}" for entry in messages)
    return f"Summarize this chat ({len(messages)} messages from #{channel_name}):\n\n{formatted}"
