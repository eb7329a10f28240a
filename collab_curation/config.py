import os
from dataclasses import dataclass

DEFAULT_SLOT_BUDGET = 20


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    # JSON backend used when no Supabase URL is configured
    data_path: str = "curation_data.json"
    mirror_path: str = "curation_mirror.json"
    slot_budget: int = DEFAULT_SLOT_BUDGET

    @property
    def use_supabase(self) -> bool:
        return bool(self.supabase_url)


def _slot_budget(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_SLOT_BUDGET
    return value if value >= 0 else DEFAULT_SLOT_BUDGET


def load_settings() -> Settings:
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", "").strip(),
        supabase_key=os.getenv("SUPABASE_KEY", "").strip(),
        data_path=os.getenv("CURATION_DATA_PATH", "").strip() or "curation_data.json",
        mirror_path=os.getenv("CURATION_MIRROR_PATH", "").strip()
        or "curation_mirror.json",
        slot_budget=_slot_budget(os.getenv("CURATION_SLOT_BUDGET", "").strip()),
    )
