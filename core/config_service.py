from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from core.policy_guard import ProtectionPolicy


class AppSettings(BaseModel):
    log_level: str = "INFO"
    log_path: str = "logs/record_guard.log"


class CollectionGuardSettings(BaseModel):
    immutable_fields: list[str] = Field(default_factory=list, description="empty = all non-system fields")


class Config(BaseModel):
    app: AppSettings = AppSettings()
    collections: Dict[str, CollectionGuardSettings] = Field(default_factory=dict)


class ConfigService:
    def __init__(self, default_path: Path = Path("config/guards.yaml")) -> None:
        self.default_path = default_path
        self.config = Config()
        self.last_loaded: Optional[Path] = None

    def load(self, path: Optional[Path] = None) -> Config:
        path = path or self.default_path
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        try:
            self.config = Config(**data)
            self.last_loaded = path
            return self.config
        except ValidationError as exc:
            raise ValueError(f"Config validation error: {exc}") from exc

    def save(self, path: Optional[Path] = None) -> Path:
        path = path or self.default_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(self.config.model_dump(), fh, allow_unicode=True)
        self.last_loaded = path
        return path

    def build_policies(self) -> Dict[str, ProtectionPolicy]:
        return {
            name: ProtectionPolicy.of(settings.immutable_fields)
            for name, settings in self.config.collections.items()
        }

    def active_config_name(self) -> str:
        return self.last_loaded.name if self.last_loaded else self.default_path.name
