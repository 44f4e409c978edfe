from __future__ import annotations

import re
from typing import Pattern, Sequence

# Key=value secrets as they appear in az output and connection strings
ENV_SECRET_PATTERNS: list[Pattern[str]] = [
    re.compile(r"\b(AccountKey|SharedAccessKey|client_secret|password)\s*[:=]\s*([^\s;\"']+)", re.I),
    re.compile(r"\b(AZURE_CLIENT_SECRET|AZURE_STORAGE_KEY)\s*=\s*([^\s]+)", re.I),
]

# SAS query strings on blob URLs
SAS_SIG_RE = re.compile(r"([?&]sig=)[^&\s\"']+", re.I)

BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9\-\._~\+\/]+=*", re.I)

# Flags whose following argv value is a secret
_SECRET_FLAGS = {"--password", "--sas-token", "--account-key", "--client-secret"}


def redact_text(text: str) -> str:
    out = text or ""

    for pat in ENV_SECRET_PATTERNS:
        out = pat.sub(r"\1=<REDACTED>", out)

    out = SAS_SIG_RE.sub(r"\1<REDACTED>", out)
    out = BEARER_RE.sub("Bearer <REDACTED>", out)
    return out


def redact_argv(argv: Sequence[str]) -> list[str]:
    """Redact argv for display; values after secret flags are masked."""
    out: list[str] = []
    hide_next = False
    for tok in argv:
        if hide_next:
            out.append("<REDACTED>")
            hide_next = False
            continue
        if tok.lower() in _SECRET_FLAGS:
            hide_next = True
        out.append(redact_text(tok))
    return out
