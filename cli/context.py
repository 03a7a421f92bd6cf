"""The identity the dashstore CLI acts as.

Saves record ``user_id`` as their author, every command is scoped to
``org_id``, and ``org_role`` decides which ACL-restricted dashboards a
search returns. The values persist in ``<cli_config_dir>/context.json``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from dashstore.config import settings
from dashstore.db.models import ROLE_ADMIN, SignedInUser


@dataclass
class CliContext:
    org_id: int = 1
    user_id: int = 0
    org_role: str = ROLE_ADMIN

    def signed_in_user(self) -> SignedInUser:
        return SignedInUser(user_id=self.user_id, org_id=self.org_id, org_role=self.org_role)

    def dumps(self) -> str:
        return json.dumps(asdict(self), indent=2, sort_keys=True)

    @classmethod
    def loads(cls, text: str) -> CliContext:
        """Parse saved JSON; unknown keys are dropped, junk yields defaults."""
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            return cls()
        if not isinstance(raw, dict):
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in known})


def _context_file() -> Path:
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Read the saved context, or the defaults when there is none."""
    path = _context_file()
    try:
        return CliContext.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    path = _context_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(ctx.dumps(), encoding="utf-8")
