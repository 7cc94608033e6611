import json

import pytest

from linkstream.services import extraction_service
from linkstream.services.prompt_registry import get_prompt_metadata, get_prompt_template


class _Response:
    def __init__(self, text):
        self.text = text


class _Models:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        return _Response(self.text)


class _Client:
    def __init__(self, text):
        self.models = _Models(text)


class _Types:
    class GenerateContentConfig:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

    class Content:
        def __init__(self, role, parts):
            self.role = role
            self.parts = parts

    class Part:
        def __init__(self, text):
            self.text = text

        @classmethod
        def from_text(cls, text):
            return cls(text)


def test_registry_lists_known_prompts():
    metadata = get_prompt_metadata()

    assert metadata["ids"] == ["export_summary", "post_suggestions"]
    assert metadata["count"] == 2


def test_unknown_prompt_id_raises():
    with pytest.raises(KeyError):
        get_prompt_template("slide_extraction")


def test_summary_prompt_embeds_document():
    prompt = extraction_service.build_summary_prompt("Connections: Ada")

    assert prompt.startswith("You are an expert in LinkedIn data analysis.")
    assert "Here is the LinkedIn data:\n\nConnections: Ada\n\nSummary:" in prompt


def test_summarize_export_sends_single_user_turn():
    client = _Client("  A busy network.  ")

    summary = extraction_service.summarize_export("Connections: Ada", client=client, types_module=_Types, model="gemini-test")

    call = client.models.calls[0]
    assert summary == "A busy network."
    assert call["model"] == "gemini-test"
    assert call["contents"][0].role == "user"
    assert "Connections: Ada" in call["contents"][0].parts[0].text


def test_summarize_export_without_client_is_unavailable():
    with pytest.raises(extraction_service.SummarizationUnavailable):
        extraction_service.summarize_export("doc", client=None, types_module=_Types)


def test_suggest_posts_parses_fenced_json_and_caps_count():
    raw = "```json\n" + json.dumps({"suggestions": ["one", "two", "three", "four"]}) + "\n```"
    client = _Client(raw)

    suggestions = extraction_service.suggest_posts("hiring news", 2, client=client, types_module=_Types)

    assert suggestions == ["one", "two"]
    assert "generate 2 different LinkedIn post suggestions" in client.models.calls[0]["contents"][0].parts[0].text


def test_parse_suggestions_tolerates_non_json():
    assert extraction_service.parse_suggestions("not json at all", 3) == []
