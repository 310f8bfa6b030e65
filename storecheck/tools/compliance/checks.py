from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, List, Literal, Mapping, Optional, Sequence, Tuple

from storecheck.schemas.compliance_schema import ComplianceIssue, Severity, SeveritySummary

logger = logging.getLogger(__name__)

Platform = Literal["APPLE_APP_STORE", "GOOGLE_PLAY_STORE", "CHROME_WEB_STORE", "ANY"]
CheckType = Literal["APPLE_APP_STORE", "GOOGLE_PLAY_STORE", "CHROME_WEB_STORE", "BOTH", "MOBILE_PLATFORMS"]

ANY_PLATFORM: Platform = "ANY"

# path -> content, or None when the file is absent
FileSnapshot = Mapping[str, Optional[str]]


@dataclass(frozen=True)
class ComplianceRule:
    rule_id: str
    platform: Platform
    severity: Severity
    category: str
    description: str
    violates: Callable[[FileSnapshot], bool]
    static_solution: str
    required_files: Tuple[str, ...] = ()


def freeze_snapshot(files: Mapping[str, Optional[str]]) -> FileSnapshot:
    return MappingProxyType(dict(files))


def platforms_for_check_type(check_type: str) -> Tuple[Platform, ...]:
    if check_type in {"BOTH", "MOBILE_PLATFORMS"}:
        return ("APPLE_APP_STORE", "GOOGLE_PLAY_STORE")
    if check_type in {"APPLE_APP_STORE", "GOOGLE_PLAY_STORE", "CHROME_WEB_STORE"}:
        return (check_type,)  # type: ignore[return-value]
    raise ValueError(f"Unknown check type: {check_type}")


def platform_label(check_type: str) -> str:
    """Human-readable platform name(s) for prompts, e.g. BOTH -> "APPLE_APP_STORE and GOOGLE_PLAY_STORE"."""
    return " and ".join(platforms_for_check_type(check_type))


def get_rules_for_platform(platform: str, registry: Optional[Sequence[ComplianceRule]] = None) -> List[ComplianceRule]:
    if registry is None:
        from storecheck.tools.compliance.store_rules import COMPLIANCE_RULES
        registry = COMPLIANCE_RULES
    return [r for r in registry if r.platform == platform or r.platform == ANY_PLATFORM]


def evaluate_rules(
    files: FileSnapshot,
    platform: str,
    registry: Optional[Sequence[ComplianceRule]] = None,
) -> List[ComplianceRule]:
    """
    Return the violated rules for `platform`, in registry order.
    A predicate that raises is logged and skipped; the scan continues.
    """
    violations: List[ComplianceRule] = []
    for rule in get_rules_for_platform(platform, registry):
        try:
            if rule.violates(files):
                violations.append(rule)
        except Exception:
            logger.exception("Error evaluating rule %s", rule.rule_id, extra={"rule_id": rule.rule_id})
    return violations


def evaluate_check(
    files: FileSnapshot,
    check_type: str,
    registry: Optional[Sequence[ComplianceRule]] = None,
) -> List[ComplianceRule]:
    """Evaluate every platform covered by `check_type`; wildcard rules appear once."""
    seen = set()
    out: List[ComplianceRule] = []
    for platform in platforms_for_check_type(check_type):
        for rule in evaluate_rules(files, platform, registry):
            if rule.rule_id in seen:
                continue
            seen.add(rule.rule_id)
            out.append(rule)
    return out


def find_relevant_file(rule: ComplianceRule, files: FileSnapshot) -> str:
    for path in rule.required_files:
        if files.get(path):
            return path

    category = rule.category.lower()
    if "privacy" in category:
        return "PRIVACY.md" if files.get("PRIVACY.md") else "README.md"
    if "permission" in category:
        return "AndroidManifest.xml" if files.get("AndroidManifest.xml") else "README.md"
    if "description" in category:
        return "README.md" if files.get("README.md") else "package.json"
    return "README.md"


def rule_to_issue(rule: ComplianceRule, files: FileSnapshot) -> ComplianceIssue:
    return ComplianceIssue(
        rule_id=rule.rule_id,
        severity=rule.severity,
        category=rule.category,
        description=rule.description,
        solution=rule.static_solution,
        file=find_relevant_file(rule, files),
    )


def summarize_severity(issues: Sequence[ComplianceIssue]) -> SeveritySummary:
    return SeveritySummary(
        total_issues=len(issues),
        high_severity=sum(1 for i in issues if i.severity == "high"),
        medium_severity=sum(1 for i in issues if i.severity == "medium"),
        low_severity=sum(1 for i in issues if i.severity == "low"),
    )
