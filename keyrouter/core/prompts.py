"""
Prompt management.

This module provides a PromptManager class that builds the default
system prompt sent as a `developer` message at the start of every
conversation. Prompt text can be overridden under the `prompts` key of
the YAML configuration; built-in defaults are used otherwise.
"""

from typing import Dict, Optional

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional AI assistant for students, professionals, and teams.\n\n"
    "Response style:\n"
    "- Start with a brief, clear answer when possible\n"
    "- Explain further only when it improves understanding\n"
    "- Use bullet points when they make the answer clearer\n"
    "- Avoid filler and unnecessary length\n\n"
    "Tone: polite, neutral, supportive and confident; professional but not cold.\n\n"
    "Content:\n"
    "- Prefer simple, clear sentences and explain technical terms when you use them\n"
    "- Keep answers practical and actionable\n"
    "- Be open about limitations and offer next steps when something cannot be done\n"
    "- Do not mention which AI provider or model is answering"
)

DEFAULT_ADDITIONAL_GUIDANCE = (
    "When responding:\n"
    "- Focus on being helpful and accurate\n"
    "- Structure information logically\n"
    "- Give practical examples when they add value"
)


class PromptManager:
    """
    Store and compose the system prompt used for every conversation.

    Prompts can be configured in the YAML file under the `prompts` key
    (`system` and `additional`).
    """

    def __init__(self, prompts_cfg: Optional[Dict] = None) -> None:
        self.prompts_cfg = prompts_cfg or {}

    def get_system_prompt(
        self,
        user_instructions: Optional[str] = None,
        include_default_personality: bool = True,
    ) -> str:
        """
        Build the system prompt.

        Args:
            user_instructions: Extra instructions from the user, appended
                last when non-blank.
            include_default_personality: Whether to append the additional
                response guidance after the core prompt.

        Returns:
            A string containing the system prompt.
        """
        prompt = self.prompts_cfg.get("system", DEFAULT_SYSTEM_PROMPT)

        if include_default_personality:
            prompt += "\n\n" + self.prompts_cfg.get("additional", DEFAULT_ADDITIONAL_GUIDANCE)

        if user_instructions and user_instructions.strip():
            prompt += f"\n\nAdditional user instructions: {user_instructions.strip()}"

        return prompt
