from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Prompt:
    name: str
    template: str


_AUGMENT_FIELDS = (
    '  "isLegitimate": boolean,\n'
    '  "contentIssues": ["specific content problems found"],\n'
    '  "suggestions": ["specific improvements needed"],\n'
    '  "lineNumbers": [line numbers where the issue occurs or the fix belongs],\n'
    '  "explanation": "brief explanation of the violation",\n'
    '  "codeSnippet": "exact content to add or modify"\n'
)

PROMPTS: Dict[str, Prompt] = {
    "content_validation": Prompt(
        name="content_validation",
        template=(
            "You are a {platform} compliance reviewer.\n"
            "Check whether the following {expected_type} file is legitimate, complete and not placeholder text.\n"
            "{type_guidance}\n"
            "File: {path}\n"
            "Content:\n```\n{content}\n```\n"
            "Respond ONLY with a single JSON object:\n"
            '{{"isValid": boolean, "issues": ["problems found"], "suggestions": ["improvements"]}}\n'
        ),
    ),
    "augment_batch": Prompt(
        name="augment_batch",
        template=(
            "You are a compliance expert for {check_type} app store policies.\n"
            "The following {count} compliance violations were detected by a deterministic rules engine.\n"
            "For EACH violation, validate the related file, pinpoint the lines involved and propose a concrete fix.\n\n"
            "{issues_block}\n\n"
            "Respond ONLY with a JSON array containing exactly {count} objects, one per violation, in the same order.\n"
            "Each object must have this structure:\n"
            "{{\n"
            '  "ruleId": "the violation\'s Rule ID",\n'
            + _AUGMENT_FIELDS.replace("{", "{{").replace("}", "}}")
            + "}}\n"
        ),
    ),
    "augment_single": Prompt(
        name="augment_single",
        template=(
            "You are a compliance expert for {check_type} app store policies.\n"
            "A compliance violation has been detected:\n\n"
            "{issue_block}\n\n"
            "Tasks:\n"
            "1. Validate whether the file content is legitimate and compliant\n"
            "2. Identify the exact line numbers where this rule is violated or where a fix should be added\n"
            "3. Provide a specific, actionable fix\n\n"
            "Respond ONLY with a single JSON object:\n"
            "{{\n"
            + _AUGMENT_FIELDS.replace("{", "{{").replace("}", "}}")
            + "}}\n"
        ),
    ),
    "issue_with_file": Prompt(
        name="issue_with_file",
        template=(
            "Rule ID: {rule_id}\n"
            "Category: {category}\n"
            "Severity: {severity}\n"
            "Description: {description}\n"
            "File: {file}\n"
            "Content (first {max_lines} lines, numbered):\n```\n{numbered_content}\n```"
        ),
    ),
    "issue_file_missing": Prompt(
        name="issue_file_missing",
        template=(
            "Rule ID: {rule_id}\n"
            "Category: {category}\n"
            "Severity: {severity}\n"
            "Description: {description}\n"
            "File: {file} (MISSING from the repository)\n"
            "The file does not exist. Generate the complete content for a new {file} that resolves this "
            "violation and return it as codeSnippet; use lineNumbers [1]."
        ),
    ),
}

CONTENT_TYPE_GUIDANCE: Dict[str, str] = {
    "privacy-policy": (
        "A legitimate privacy policy states what data is collected, how it is used and shared, "
        "retention, user rights and a contact point."
    ),
    "manifest": (
        "A legitimate manifest declares only the permissions the app needs and includes usage "
        "descriptions for sensitive permissions."
    ),
    "readme": (
        "A legitimate README describes what the app does, its main features and links to the "
        "privacy policy and support resources."
    ),
    "config": (
        "Legitimate package metadata has a real name, a meaningful description and no placeholder values."
    ),
}


def get_prompt(name: str) -> str:
    if name not in PROMPTS:
        raise KeyError(f"Unknown prompt: {name}")
    return PROMPTS[name].template


def render_prompt(name: str, **kwargs: object) -> str:
    return get_prompt(name).format(**kwargs)
