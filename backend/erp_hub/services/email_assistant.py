"""Prompt building for the email assistant and the ERP chat helper."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from erp_hub.services.llm_client import LLMClient


DEFAULT_SYSTEM_PROMPT = (
    "You are an expert email communication assistant for ERP system administrators. "
    "Provide professional, clear, and actionable responses."
)

ANALYZE_SYSTEM_PROMPT = (
    "You are an expert email communication analyst. "
    "Provide constructive feedback with specific, actionable recommendations."
)

ACTION_PROMPTS: Dict[str, str] = {
    "improve": (
        "Please improve this email draft while maintaining its professional tone and key information. "
        "Focus on clarity, structure, and readability:\n\n{content}"
    ),
    "shorten": "Please make this email more concise while preserving all essential information:\n\n{content}",
    "formal": "Please rewrite this email in a more formal, professional tone:\n\n{content}",
    "conversational": (
        "Please rewrite this email in a more conversational, friendly tone while maintaining "
        "professionalism:\n\n{content}"
    ),
    "analyze": (
        "Please analyze this email draft and provide feedback on:\n"
        "1. Clarity and readability\n2. Professional tone\n3. Structure and organization\n"
        "4. Completeness of information\n5. Suggested improvements\n\nEmail content:\n{content}"
    ),
    "generate_subject": (
        "Based on this email content, suggest 3 professional subject lines that are clear, "
        "specific, and compelling:\n\n{content}"
    ),
    "grammar_check": (
        "Please check this email for grammar, spelling, and punctuation errors. "
        "Provide the corrected version and list any changes made:\n\n{content}"
    ),
    "custom": "{instruction}\n\nEmail content:\n{content}",
}

SUPPORTED_ACTIONS = tuple(ACTION_PROMPTS)

CHAT_SYSTEM_PROMPT = """You are an ERP Email Assistant helping users write professional emails for the core team.

CURRENT ERP SYSTEM CONTEXT:
{context}

IMPORTANT GUIDELINES:
- The audience is the core ERP team
- Refer to readers as "team members", "core team", or "leadership team"
- Ask if meeting discussion notes should be included, and if so, integrate them smoothly
- Default to a professional but approachable tone unless specified otherwise

Your role:
- Help users draft emails about ERP status, issues, and updates
- Ask clarifying questions to understand what they want to communicate
- Suggest relevant information to include based on current ERP data
- Generate email drafts when requested
- Focus on the most important and recent information

Keep responses concise and actionable."""


class UnsupportedActionError(ValueError):
    pass


def build_email_prompt(action: str, content: str, context: Optional[Dict[str, Any]] = None) -> tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for an email action."""
    template = ACTION_PROMPTS.get(action)
    if template is None:
        raise UnsupportedActionError(
            f"Unknown action: {action}. Supported actions: {', '.join(SUPPORTED_ACTIONS)}"
        )
    instruction = (context or {}).get("instruction")
    if action == "custom" and not instruction:
        raise UnsupportedActionError("Custom action requires an instruction in context")
    system_prompt = ANALYZE_SYSTEM_PROMPT if action == "analyze" else DEFAULT_SYSTEM_PROMPT
    return system_prompt, template.format(content=content, instruction=instruction or "")


def run_email_action(llm: LLMClient, action: str, content: str, context: Optional[Dict[str, Any]] = None) -> str:
    system_prompt, prompt = build_email_prompt(action, content, context)
    return llm.complete(system_prompt, prompt, temperature=0.7, max_tokens=2000)


def chat(
    llm: LLMClient,
    message: str,
    conversation: List[Dict[str, str]],
    context: str,
) -> tuple[str, List[Dict[str, str]]]:
    """One assistant turn; returns the reply and the extended conversation."""
    history = [
        {"role": m.get("role", "user"), "content": m.get("content", "")}
        for m in conversation
        if m.get("role") in ("user", "assistant")
    ]
    messages = [{"role": "system", "content": CHAT_SYSTEM_PROMPT.format(context=context)}]
    messages += history
    messages.append({"role": "user", "content": message})
    reply = llm.chat(messages, temperature=0.7, max_tokens=1000)
    return reply, history + [{"role": "user", "content": message}, {"role": "assistant", "content": reply}]
