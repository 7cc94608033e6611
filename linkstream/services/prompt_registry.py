"""Prompt templates and inventory helpers for LinkStream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


PROMPT_REGISTRY_VERSION = "2026-09-01"


PROMPT_EXPORT_SUMMARY = """You are an expert in LinkedIn data analysis. You will analyze the provided LinkedIn data and generate a summary of the user's LinkedIn activity, highlighting key trends and insights.

Here is the LinkedIn data:

{document}

Summary:"""

PROMPT_POST_SUGGESTIONS = """You are a social media expert specializing in creating engaging LinkedIn posts.

Based on the following prompt, generate {count} different LinkedIn post suggestions.

Prompt: {prompt}

Each suggestion should be concise and attention-grabbing, suitable for a professional audience.

Return ONLY valid JSON, without markdown or extra text, in exactly this format:
{{"suggestions": ["...", "..."]}}"""


@dataclass(frozen=True)
class PromptRecord:
    prompt_id: str
    name: str
    template: str


PROMPT_RECORDS: List[PromptRecord] = [
    PromptRecord("export_summary", "Export activity summary", PROMPT_EXPORT_SUMMARY),
    PromptRecord("post_suggestions", "LinkedIn post suggestions", PROMPT_POST_SUGGESTIONS),
]


def get_prompt_template(prompt_id: str) -> str:
    safe_id = str(prompt_id or "").strip()
    for record in PROMPT_RECORDS:
        if record.prompt_id == safe_id:
            return record.template
    raise KeyError(f"Unknown prompt id: {safe_id}")


def get_prompt_metadata() -> Dict[str, object]:
    return {
        "version": PROMPT_REGISTRY_VERSION,
        "count": len(PROMPT_RECORDS),
        "ids": [record.prompt_id for record in PROMPT_RECORDS],
    }
