"""Prompt construction for image generation and policy validation."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from src.shared.batch.errors import ConfigurationError
from src.shared.clients.vertex_ai import MalformedOutputError

POLICY_PROMPT_TEMPLATE = """
You are a policy checker who checks one by one the policies on the images and highlights the issues with the images.
Here is a list of policies (one policy per line):
"<policies>"

Please check the image and if it violates any policy please highlight those violations.
If there are violations respond in the following JSON format (as a JSON array):
[
  {
    "policy": Violated policy text,
    "reasoning": Reason: Explanation why the image violates that policy
  },
  ...
]
If there are no violations respond with an empty JSON array: []
"""

FILE_NAME_LIMIT = 128

_JS_NAMED_GROUP = re.compile(r"\(\?<(?=[A-Za-z_])")
_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def compile_name_regex(pattern: str) -> Pattern[str]:
    """Compile an ad-group name pattern.

    ``(?<name>...)`` named groups are accepted as well as Python's
    ``(?P<name>...)``.
    """
    try:
        return re.compile(_JS_NAMED_GROUP.sub("(?P<", pattern))
    except re.error as exc:
        raise ConfigurationError(f"Invalid ad group name regex {pattern!r}: {exc}") from exc


def match_groups(name: str, regex: Pattern[str]) -> Optional[Dict[str, str]]:
    """Named groups of the first match in ``name``, or None without a match."""
    match = regex.search(name)
    if match is None:
        return None
    groups = {key: value for key, value in match.groupdict().items() if value is not None}
    return groups or None


def fill_template(template: str, values: Mapping[str, str]) -> str:
    """Replace ``${key}`` placeholders; unknown keys are left untouched."""

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        return values.get(key, match.group(0))

    return _PLACEHOLDER.sub(_replace, template)


def apply_translations(prompt: str, translations: Sequence[Tuple[str, str]]) -> str:
    for source, target in translations:
        if source:
            prompt = prompt.replace(source, target)
    return prompt


def build_text_prompt(context: str, prompt: str, keywords: Sequence[str], suffix: str = "") -> str:
    """Prompt asking the text model for an image prompt about ``keywords``."""
    parts = [context, prompt, ",".join(keywords)]
    text = " ".join(part for part in parts if part)
    if suffix:
        text += " " + suffix
    return text


def finalize_image_prompt(prompt: str, translations: Sequence[Tuple[str, str]], suffix: str) -> str:
    prompt = apply_translations(prompt.strip(), translations)
    if suffix:
        prompt += " " + suffix
    return prompt


def build_policy_prompt(policies: Sequence[str]) -> str:
    if not policies:
        raise ConfigurationError("At least one policy is required to validate images")
    return POLICY_PROMPT_TEMPLATE.replace("<policies>", "\n".join(policies))


def parse_policy_violations(text: str) -> List[Dict[str, Any]]:
    """Parse the model's violation list.

    Raises:
        MalformedOutputError: when the answer is not a JSON array
    """
    cleaned = _CODE_FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        return []
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"Policy check output is not valid JSON: {cleaned[:200]}") from exc
    if not isinstance(parsed, list):
        raise MalformedOutputError("Policy check output is not a JSON array")
    return [item for item in parsed if isinstance(item, dict)]


def image_file_name(ad_group_id: str, ad_group_name: str, timestamp_ms: int) -> str:
    """``{adGroupId}|{adGroupName}|{timestamp}`` trimmed to the ads file name limit.

    Slashes are removed from the name so it never adds a path segment.
    """
    ad_group_id = str(ad_group_id)
    stamp = str(timestamp_ms)
    name = ad_group_name.replace("/", "")
    name_limit = max(FILE_NAME_LIMIT - len(stamp) - len(ad_group_id) - 2, 0)
    return f"{ad_group_id}|{name[:name_limit]}|{stamp}"
