from __future__ import annotations

_PROMPT_PREFIXES: dict[str, str] = {
    "summarize": "Please provide a concise summary of the following text:\n\n",
    "improve": "Please improve the writing quality, grammar, and clarity of the following text:\n\n",
    "generate_tags": (
        "Generate 5-8 relevant tags for the following content. "
        "Return only the tags as a comma-separated list:\n\n"
    ),
    "insights": (
        "Analyze the following text and provide insights about its key themes, tone, structure, "
        "and any notable patterns or issues. Format your response in a well-organized manner:\n\n"
    ),
}


def build_enhancement_prompt(action: str, content: str) -> str:
    prefix = _PROMPT_PREFIXES.get(str(action or ""))
    if prefix is None:
        return content
    return prefix + content


def build_chat_messages(prompt: str) -> list[dict[str, str]]:
    return [{"role": "user", "content": prompt}]
