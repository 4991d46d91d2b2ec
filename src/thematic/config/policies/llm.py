"""Runtime policy for calls to external embedding and text-generation backends."""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_LABEL_TEMPLATE = """\
You are assisting with reflexive thematic analysis.
Propose a concise theme label (at most six words) for the codes below.
Respond with the label only.

Codes:
{% for code in codes -%}
- {{ code.label }}{% if code.excerpt %}: "{{ code.excerpt }}"{% endif %}
{% endfor %}
Keywords: {{ keywords | join(", ") }}
"""


class LLMPolicy(BaseModel):
    """Timeouts and retry behaviour for collaborator calls."""

    request_timeout_seconds: float = Field(default=30.0, gt=0.0)
    retry_attempts: int = Field(default=2, ge=0)
    retry_backoff_seconds: float = Field(default=1.0, ge=0.0)
    max_label_words: int = Field(default=8, ge=1)
    label_template: str = Field(default=DEFAULT_LABEL_TEMPLATE, min_length=1)


__all__ = ["LLMPolicy", "DEFAULT_LABEL_TEMPLATE"]
