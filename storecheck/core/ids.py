from __future__ import annotations
import re
import secrets

def _tok(nbytes: int = 12) -> str:
    return secrets.token_urlsafe(nbytes)

def new_run_id() -> str:
    return f"run_{_tok()}"

def content_rule_id(path: str) -> str:
    """Synthetic rule id for a content-validation finding, e.g. README.md -> CONTENT-README-MD."""
    name = path.rsplit("/", 1)[-1]
    slug = re.sub(r"[^A-Za-z0-9]+", "-", name).strip("-").upper()
    return f"CONTENT-{slug or 'FILE'}"
