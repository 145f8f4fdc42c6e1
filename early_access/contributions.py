from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from early_access.errors import ValidationError
from early_access.util.time import utcnow_iso


MIN_LANGUAGES = 2


def _clean(value: Optional[str]) -> Optional[str]:
    v = (value or "").strip()
    return v or None


def normalize_languages(languages: Any) -> List[str]:
    if not isinstance(languages, (list, tuple)):
        raise ValidationError(f"At least {MIN_LANGUAGES} languages must be selected.")
    out = [str(lang).strip() for lang in languages if str(lang or "").strip()]
    if len(out) < MIN_LANGUAGES:
        raise ValidationError(f"At least {MIN_LANGUAGES} languages must be selected.")
    return out


def create_contribution(
    conn: Any,
    *,
    text: str,
    languages: Sequence[str],
    context: str | None = None,
    region: str | None = None,
    platform: str | None = None,
    age: str | None = None,
    user_email: str | None = None,
    user_name: str | None = None,
) -> Dict[str, Any]:
    """Validate and store a contribution. Returns {id, submitted_at}."""
    body = (text or "").strip()
    if not body:
        raise ValidationError("Text is required.")
    langs = normalize_languages(languages)

    submitted_at = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO contributions (
            text, languages_json, context, region, platform, age, user_email, user_name, submitted_at
        )
        VALUES (?,?,?,?,?,?,?,?,?)
        RETURNING id
        """,
        (
            body,
            json.dumps(langs, ensure_ascii=False),
            _clean(context),
            _clean(region),
            _clean(platform),
            _clean(age),
            _clean(user_email),
            _clean(user_name),
            submitted_at,
        ),
    ).fetchone()
    return {"id": int(row["id"]), "submitted_at": submitted_at}


def get_contribution(conn: Any, contribution_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM contributions WHERE id=?", (int(contribution_id),)).fetchone()
    if row is None:
        return None
    d = dict(row)
    d["languages"] = json.loads(d.pop("languages_json") or "[]")
    return d
