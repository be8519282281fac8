"""
Configuration for md-feedback.

Nested dataclasses loaded from ``mdfeedback.yaml`` with environment
variable overrides, plus a lazily created global instance used by the
core functions when no explicit config is passed.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "mdfeedback.yaml"


@dataclass
class AnchorConfig:
    """Anchor resolution settings."""
    probe_radius: int = 10      # lines probed on each side of a stale anchor

    def __post_init__(self):
        self.probe_radius = max(0, int(self.probe_radius))


@dataclass
class DefaultsConfig:
    """Field defaults for memos migrated from legacy dialects."""
    owner: str = "human"
    source: str = "generic"
    color: str = "red"


@dataclass
class GrammarConfig:
    """Comment grammar settings."""
    banner_marker: str = "MD Feedback"


@dataclass
class CounterConfig:
    """Section detection for counters and checkpoints."""
    section_level: int = 2

    def __post_init__(self):
        self.section_level = max(1, min(6, int(self.section_level)))


@dataclass
class HandoffConfig:
    """Truncation lengths used by the handoff renderer."""
    decision_trunc: int = 60
    text_trunc: int = 80


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class WriteConfig:
    atomic: bool = True


@dataclass
class FeedbackConfig:
    """Top-level md-feedback configuration."""
    anchor: AnchorConfig = field(default_factory=AnchorConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    grammar: GrammarConfig = field(default_factory=GrammarConfig)
    counter: CounterConfig = field(default_factory=CounterConfig)
    handoff: HandoffConfig = field(default_factory=HandoffConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    write: WriteConfig = field(default_factory=WriteConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anchor": {"probe_radius": self.anchor.probe_radius},
            "defaults": {
                "owner": self.defaults.owner,
                "source": self.defaults.source,
                "color": self.defaults.color,
            },
            "grammar": {"banner_marker": self.grammar.banner_marker},
            "counter": {"section_level": self.counter.section_level},
            "handoff": {
                "decision_trunc": self.handoff.decision_trunc,
                "text_trunc": self.handoff.text_trunc,
            },
            "logging": {"level": self.logging.level},
            "write": {"atomic": self.write.atomic},
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FeedbackConfig":
        anchor_d = d.get("anchor") or {}
        defaults_d = d.get("defaults") or {}
        grammar_d = d.get("grammar") or {}
        counter_d = d.get("counter") or {}
        handoff_d = d.get("handoff") or {}
        logging_d = d.get("logging") or {}
        write_d = d.get("write") or {}
        return cls(
            anchor=AnchorConfig(
                probe_radius=anchor_d.get("probe_radius", 10),
            ),
            defaults=DefaultsConfig(
                owner=defaults_d.get("owner", "human"),
                source=defaults_d.get("source", "generic"),
                color=defaults_d.get("color", "red"),
            ),
            grammar=GrammarConfig(
                banner_marker=grammar_d.get("banner_marker", "MD Feedback"),
            ),
            counter=CounterConfig(
                section_level=counter_d.get("section_level", 2),
            ),
            handoff=HandoffConfig(
                decision_trunc=handoff_d.get("decision_trunc", 60),
                text_trunc=handoff_d.get("text_trunc", 80),
            ),
            logging=LoggingConfig(
                level=str(logging_d.get("level", "WARNING")).upper(),
            ),
            write=WriteConfig(
                atomic=bool(write_d.get("atomic", True)),
            ),
        )


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find mdfeedback.yaml by searching upward from start_path.

    Search order:
    1. start_path / mdfeedback.yaml
    2. start_path / .mdfeedback / mdfeedback.yaml
    3. Parent directories (up to 10 levels)
    4. ~/.config/mdfeedback/mdfeedback.yaml
    """
    current = Path(start_path or Path.cwd()).resolve()

    for _ in range(10):
        for candidate in (
            current / CONFIG_FILENAME,
            current / ".mdfeedback" / CONFIG_FILENAME,
        ):
            if candidate.exists():
                return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    user_config = Path.home() / ".config" / "mdfeedback" / CONFIG_FILENAME
    if user_config.exists():
        return user_config

    return None


def load_config(config_path: Optional[Path] = None) -> FeedbackConfig:
    """
    Load configuration from YAML with environment variable overrides.

    Environment variables override file values:
    - MDFEEDBACK_PROBE_RADIUS   -> anchor.probe_radius
    - MDFEEDBACK_DEFAULT_OWNER  -> defaults.owner
    - MDFEEDBACK_DEFAULT_SOURCE -> defaults.source
    - MDFEEDBACK_BANNER_MARKER  -> grammar.banner_marker
    - MDFEEDBACK_LOG_LEVEL      -> logging.level
    """
    config = FeedbackConfig()

    if config_path is None:
        config_path = find_config_file()

    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("top-level YAML value must be a mapping")
            config = FeedbackConfig.from_dict(data)
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
    else:
        logger.debug("No config file found, using defaults")

    return _apply_env_overrides(config)


def _apply_env_overrides(config: FeedbackConfig) -> FeedbackConfig:
    if os.environ.get("MDFEEDBACK_PROBE_RADIUS"):
        try:
            config.anchor = AnchorConfig(probe_radius=int(os.environ["MDFEEDBACK_PROBE_RADIUS"]))
        except ValueError:
            logger.warning("Ignoring non-integer MDFEEDBACK_PROBE_RADIUS")
    if os.environ.get("MDFEEDBACK_DEFAULT_OWNER"):
        config.defaults.owner = os.environ["MDFEEDBACK_DEFAULT_OWNER"]
    if os.environ.get("MDFEEDBACK_DEFAULT_SOURCE"):
        config.defaults.source = os.environ["MDFEEDBACK_DEFAULT_SOURCE"]
    if os.environ.get("MDFEEDBACK_BANNER_MARKER"):
        config.grammar.banner_marker = os.environ["MDFEEDBACK_BANNER_MARKER"]
    if os.environ.get("MDFEEDBACK_LOG_LEVEL"):
        config.logging.level = os.environ["MDFEEDBACK_LOG_LEVEL"].upper()
    return config


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_global_config: Optional[FeedbackConfig] = None


def get_feedback_config() -> FeedbackConfig:
    """Get global configuration (lazy-loaded default, no file lookup)."""
    global _global_config
    if _global_config is None:
        _global_config = FeedbackConfig()
    return _global_config


def set_feedback_config(config: Optional[FeedbackConfig]) -> None:
    """Set (or reset with None) the global configuration."""
    global _global_config
    _global_config = config
