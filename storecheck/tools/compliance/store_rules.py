from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple

from storecheck.tools.compliance.checks import ComplianceRule, FileSnapshot

RULESET_VERSION = "store_rules_v1"

TRACKING_LIBS = ("firebase", "analytics", "mixpanel", "amplitude", "segment")


def _text(files: FileSnapshot, *paths: str) -> str:
    """Content of the first present path, or ''."""
    for p in paths:
        content = files.get(p)
        if content:
            return content
    return ""


def _lower(files: FileSnapshot, *paths: str) -> str:
    return _text(files, *paths).lower()


def _load_json(files: FileSnapshot, path: str) -> Optional[Dict[str, Any]]:
    raw = files.get(path)
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _privacy_doc(files: FileSnapshot) -> str:
    return _lower(files, "PRIVACY.md", "privacy-policy.md")


# --- predicates: True means violation ---

def missing_privacy_policy(files: FileSnapshot) -> bool:
    readme = _lower(files, "README.md")
    has_privacy_url = "privacy" in readme and ("http://" in readme or "https://" in readme)
    has_privacy_file = bool(files.get("PRIVACY.md") or files.get("privacy-policy.md"))
    return not has_privacy_url and not has_privacy_file


def missing_data_collection_disclosure(files: FileSnapshot) -> bool:
    readme = _lower(files, "README.md")
    privacy = _privacy_doc(files)
    keywords = ("data collection", "collect data", "user data", "personal information")
    return not any(k in readme or k in privacy for k in keywords)


def missing_app_description(files: FileSnapshot) -> bool:
    readme = _text(files, "README.md")
    if len(readme) > 100:
        return False
    for path in ("app.json", "package.json"):
        parsed = _load_json(files, path)
        description = (parsed or {}).get("description")
        if isinstance(description, str) and len(description) > 20:
            return False
    return True


def undocumented_permissions(files: FileSnapshot) -> bool:
    readme = _lower(files, "README.md")
    manifest = _text(files, "AndroidManifest.xml")
    plist = _text(files, "Info.plist")
    has_permissions = "permission" in manifest or "Usage" in plist
    has_docs = "permission" in readme or "access" in readme
    return has_permissions and not has_docs


def undisclosed_third_party_sdks(files: FileSnapshot) -> bool:
    package = _load_json(files, "package.json") or {}
    deps = package.get("dependencies") or {}
    uses_tracking = isinstance(deps, dict) and any(
        lib in dep.lower() for dep in deps for lib in TRACKING_LIBS
    )
    readme = _lower(files, "README.md")
    privacy = _privacy_doc(files)
    disclosed = any(
        marker in doc for doc in (readme, privacy) for marker in ("third-party", "third party")
    )
    return uses_tracking and not disclosed


def missing_content_rating(files: FileSnapshot) -> bool:
    app = _load_json(files, "app.json") or {}
    if app.get("contentRating") or app.get("rating"):
        return False
    readme = _lower(files, "README.md")
    return not any(k in readme for k in ("rating", "age", "mature"))


def missing_data_safety_section(files: FileSnapshot) -> bool:
    readme = _lower(files, "README.md")
    privacy = _privacy_doc(files)
    keywords = ("data safety", "data security", "data protection", "secure data")
    return not any(k in readme or k in privacy for k in keywords)


def not_manifest_v3(files: FileSnapshot) -> bool:
    manifest = _load_json(files, "manifest.json")
    if manifest is None:
        return False  # not an extension repo
    return manifest.get("manifest_version") != 3


def missing_license(files: FileSnapshot) -> bool:
    return not files.get("LICENSE")


def missing_terms_of_service(files: FileSnapshot) -> bool:
    if files.get("terms-of-service.md"):
        return False
    readme = _lower(files, "README.md")
    return "terms of service" not in readme and "terms of use" not in readme


COMPLIANCE_RULES: Tuple[ComplianceRule, ...] = (
    # Apple App Store
    ComplianceRule(
        rule_id="AAS-001",
        platform="APPLE_APP_STORE",
        severity="high",
        category="Privacy Policy",
        description=(
            "No publicly accessible privacy policy URL is mentioned or provided in the repository files. "
            "A privacy policy is a mandatory requirement for all apps submitted to the Apple App Store "
            "(App Store Review Guideline 5.1.1)."
        ),
        violates=missing_privacy_policy,
        static_solution=(
            "Create a comprehensive privacy policy document, host it online at a stable URL, and include "
            "this URL in the app's metadata on App Store Connect and within the app itself. The policy "
            "should detail data collection, usage, and sharing practices."
        ),
        required_files=("README.md", "PRIVACY.md", "privacy-policy.md"),
    ),
    ComplianceRule(
        rule_id="AAS-002",
        platform="APPLE_APP_STORE",
        severity="high",
        category="Data Collection Disclosure",
        description=(
            "No explicit disclosure of what user data is collected, how it is used or stored, or whether "
            "it is shared with third parties. Required for the App Store privacy manifest "
            "(App Store Review Guideline 5.1.1, 5.1.2)."
        ),
        violates=missing_data_collection_disclosure,
        static_solution=(
            "Document all data collection practices: what is collected, why, how it is used, whether it "
            "is stored locally or transmitted, and whether it is shared with third parties."
        ),
        required_files=("README.md", "PRIVACY.md"),
    ),
    ComplianceRule(
        rule_id="AAS-003",
        platform="APPLE_APP_STORE",
        severity="medium",
        category="App Description",
        description=(
            "The app lacks a clear, comprehensive description of its functionality. App Store guidelines "
            "require accurate and detailed descriptions of app features."
        ),
        violates=missing_app_description,
        static_solution=(
            "Add a detailed description to README.md and app.json/package.json explaining what the app "
            "does, its main features, and how users interact with it."
        ),
        required_files=("README.md", "app.json", "package.json"),
    ),
    ComplianceRule(
        rule_id="AAS-004",
        platform="APPLE_APP_STORE",
        severity="medium",
        category="Third-party SDK Disclosure",
        description=(
            "The app appears to use third-party analytics or tracking SDKs but does not disclose their "
            "data collection practices. Apple requires disclosure of all third-party data collection."
        ),
        violates=undisclosed_third_party_sdks,
        static_solution=(
            "Document every third-party SDK the app uses and disclose their data collection practices "
            "in the privacy policy."
        ),
        required_files=("package.json", "README.md", "PRIVACY.md"),
    ),
    # Google Play Store
    ComplianceRule(
        rule_id="GPS-001",
        platform="GOOGLE_PLAY_STORE",
        severity="high",
        category="Privacy Policy",
        description=(
            "No privacy policy link is provided. Google Play requires all apps that collect user data "
            "to have a publicly accessible privacy policy."
        ),
        violates=missing_privacy_policy,
        static_solution=(
            "Create and host a privacy policy online, then add the URL to the Play Store listing and "
            "within the app itself."
        ),
        required_files=("README.md", "PRIVACY.md"),
    ),
    ComplianceRule(
        rule_id="GPS-002",
        platform="GOOGLE_PLAY_STORE",
        severity="high",
        category="Data Safety Section",
        description=(
            "Missing or incomplete Data Safety information. Google Play requires detailed disclosure of "
            "data collection and sharing practices."
        ),
        violates=missing_data_safety_section,
        static_solution=(
            "Complete the Data Safety section in Google Play Console and document the same practices "
            "in the repository."
        ),
        required_files=("README.md", "PRIVACY.md"),
    ),
    ComplianceRule(
        rule_id="GPS-003",
        platform="GOOGLE_PLAY_STORE",
        severity="medium",
        category="Permissions Documentation",
        description=(
            "The app requests permissions but does not document why each permission is needed. "
            "Google Play requires justification for all permissions."
        ),
        violates=undocumented_permissions,
        static_solution="Document each requested permission in README.md with why it is needed and how it is used.",
        required_files=("README.md", "AndroidManifest.xml"),
    ),
    ComplianceRule(
        rule_id="GPS-004",
        platform="GOOGLE_PLAY_STORE",
        severity="medium",
        category="Content Rating",
        description=(
            "No content rating information is provided. Google Play requires all apps to have an "
            "appropriate content rating."
        ),
        violates=missing_content_rating,
        static_solution=(
            "Complete the content rating questionnaire in Google Play Console and record the rating in "
            "the app metadata."
        ),
        required_files=("README.md", "app.json"),
    ),
    # Chrome Web Store
    ComplianceRule(
        rule_id="CWS-001",
        platform="CHROME_WEB_STORE",
        severity="high",
        category="Privacy Policy",
        description=(
            "No privacy policy is provided. The Chrome Web Store requires a privacy policy for any "
            "extension that handles user data."
        ),
        violates=missing_privacy_policy,
        static_solution="Publish a privacy policy and link it from the Chrome Web Store developer dashboard.",
        required_files=("README.md", "PRIVACY.md", "privacy-policy.md"),
    ),
    ComplianceRule(
        rule_id="CWS-002",
        platform="CHROME_WEB_STORE",
        severity="high",
        category="Manifest Version",
        description="The extension manifest does not declare manifest_version 3, which the Chrome Web Store requires.",
        violates=not_manifest_v3,
        static_solution='Migrate the extension to Manifest V3 and set "manifest_version": 3 in manifest.json.',
        required_files=("manifest.json",),
    ),
    # Any platform
    ComplianceRule(
        rule_id="GEN-001",
        platform="ANY",
        severity="low",
        category="License",
        description="No LICENSE file found. Store reviewers and users cannot tell under which terms the code is distributed.",
        violates=missing_license,
        static_solution="Add a LICENSE file at the repository root.",
        required_files=("LICENSE",),
    ),
    ComplianceRule(
        rule_id="GEN-002",
        platform="ANY",
        severity="low",
        category="Terms of Service",
        description="No terms of service are provided or referenced.",
        violates=missing_terms_of_service,
        static_solution="Add terms-of-service.md or link your terms of service from README.md.",
        required_files=("terms-of-service.md", "README.md"),
    ),
)
