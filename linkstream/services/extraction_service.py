"""Turn an export archive into a labeled text document and summarize it."""

import json
import re

from linkstream.services import archive_service
from linkstream.services.prompt_registry import get_prompt_template


EXPECTED_EXPORT_FILES = (
    ('Connections', 'Connections.csv'),
    ('Messages', 'messages.csv'),
    ('Articles', 'articles.csv'),
    ('Profile', 'Profile.json'),
)
DEFAULT_SUMMARY_MODEL = 'gemini-2.0-flash'
MAX_POST_SUGGESTIONS = 5


class SummarizationUnavailable(Exception):
    """Raised when no language-model client is configured."""


def extract_export_text(zip_bytes):
    """Concatenate the expected export files into one labeled document.

    Missing files contribute an empty section; the labels are always present.
    """
    archive = archive_service.open_archive(zip_bytes)
    sections = []
    for label, file_name in EXPECTED_EXPORT_FILES:
        text = archive_service.read_entry_text(archive, file_name)
        sections.append(f"{label}: {text}")
    return '\n'.join(sections)


def build_summary_prompt(document):
    return get_prompt_template('export_summary').format(document=document)


def generate_text(client, types_module, model, prompt_text, max_output_tokens=8192):
    config = types_module.GenerateContentConfig(max_output_tokens=max_output_tokens)
    response = client.models.generate_content(
        model=model,
        contents=[types_module.Content(role='user', parts=[types_module.Part.from_text(text=prompt_text)])],
        config=config,
    )
    return str(getattr(response, 'text', '') or '').strip()


def summarize_export(document, *, client, types_module, model=DEFAULT_SUMMARY_MODEL):
    if client is None:
        raise SummarizationUnavailable('AI summarization is not configured.')
    return generate_text(client, types_module, model or DEFAULT_SUMMARY_MODEL, build_summary_prompt(document))


def parse_suggestions(raw_text, count):
    text = str(raw_text or '').strip()
    fenced = re.match(r'^```(?:json)?\s*(.*?)\s*```$', text, re.S)
    if fenced:
        text = fenced.group(1)
    try:
        payload = json.loads(text)
    except ValueError:
        return []
    items = payload.get('suggestions', []) if isinstance(payload, dict) else []
    return [str(item).strip() for item in items if str(item).strip()][:count]


def suggest_posts(prompt, count, *, client, types_module, model=DEFAULT_SUMMARY_MODEL):
    if client is None:
        raise SummarizationUnavailable('AI suggestions are not configured.')
    safe_count = min(max(int(count or 3), 1), MAX_POST_SUGGESTIONS)
    prompt_text = get_prompt_template('post_suggestions').format(count=safe_count, prompt=prompt)
    raw = generate_text(client, types_module, model or DEFAULT_SUMMARY_MODEL, prompt_text, max_output_tokens=2048)
    return parse_suggestions(raw, safe_count)
