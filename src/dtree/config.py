"""Engine configuration loading.

Reads optional user settings from ~/.config/dtree/config.yaml. Environment
variables (``DTREE_*``) take precedence over the file; built-in defaults
apply when neither is set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dtree.ids import DEFAULT_SEED
from dtree.observability.logging import get_logger

log = get_logger(__name__)

_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "dtree"

DEFAULT_WORKSPACE_TITLE = "Default"


@dataclass
class LayoutConfig:
    """Spatial placement rules for new and imported nodes.

    Attributes:
        default_x: X position of a node created without a parent.
        default_y: Y position of a node created without a parent.
        child_offset_y: Vertical distance between a parent and a new child.
        child_jitter_x: Half-width of the random horizontal jitter for a
            new child (the child lands within ``parent.x ± child_jitter_x``).
        merge_offset_x: Horizontal shift applied when merging nodes into an
            existing canvas.
        merge_offset_y: Vertical shift applied when merging nodes into an
            existing canvas.
    """

    default_x: float = 400
    default_y: float = 200
    child_offset_y: float = 180
    child_jitter_x: float = 110
    merge_offset_x: float = 100
    merge_offset_y: float = 100

    @property
    def merge_offset(self) -> tuple[float, float]:
        return (self.merge_offset_x, self.merge_offset_y)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LayoutConfig:
        """Create layout config from a dictionary, ignoring unknown keys."""
        known = {f: data[f] for f in cls.__dataclass_fields__ if f in data}
        return cls(**{k: float(v) for k, v in known.items()})


@dataclass
class WorkbenchConfig:
    """Configuration for a workspace registry and its facade.

    Attributes:
        layout: Node placement rules.
        id_seed: First value of the id counter.
        seed_demo_workspace: Whether a fresh registry starts with the demo graph.
        default_workspace_title: Title of the initial workspace.
    """

    layout: LayoutConfig = field(default_factory=LayoutConfig)
    id_seed: int = DEFAULT_SEED
    seed_demo_workspace: bool = True
    default_workspace_title: str = DEFAULT_WORKSPACE_TITLE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkbenchConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary with optional ``layout``, ``id_seed``,
                ``seed_demo_workspace`` and ``default_workspace_title`` keys.

        Returns:
            WorkbenchConfig instance.
        """
        return cls(
            layout=LayoutConfig.from_dict(dict(data.get("layout") or {})),
            id_seed=int(data.get("id_seed", DEFAULT_SEED)),
            seed_demo_workspace=bool(data.get("seed_demo_workspace", True)),
            default_workspace_title=str(
                data.get("default_workspace_title", DEFAULT_WORKSPACE_TITLE)
            ),
        )

    def apply_env(self) -> WorkbenchConfig:
        """Override fields from ``DTREE_*`` environment variables in place."""
        if seed := os.getenv("DTREE_ID_SEED"):
            self.id_seed = int(seed)
        if demo := os.getenv("DTREE_SEED_DEMO"):
            self.seed_demo_workspace = demo.lower() in ("1", "true", "yes", "on")
        if title := os.getenv("DTREE_DEFAULT_WORKSPACE_TITLE"):
            self.default_workspace_title = title
        return self


def load_config(config_dir: Path | None = None) -> WorkbenchConfig:
    """Load user configuration, falling back to defaults.

    Args:
        config_dir: Override config directory (for testing). Defaults to
            ``$DTREE_CONFIG_DIR`` or ~/.config/dtree/.

    Returns:
        WorkbenchConfig with environment overrides applied.
    """
    env_dir = os.getenv("DTREE_CONFIG_DIR")
    config_dir = config_dir or (Path(env_dir) if env_dir else _DEFAULT_CONFIG_DIR)
    config_path = config_dir / "config.yaml"

    if not config_path.exists():
        return WorkbenchConfig().apply_env()

    from ruamel.yaml import YAML
    from ruamel.yaml.error import YAMLError

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except OSError as e:
        log.warning("config_load_failed", path=str(config_path), error=str(e))
        return WorkbenchConfig().apply_env()
    except YAMLError as e:
        log.warning("config_parse_failed", path=str(config_path), error=str(e))
        return WorkbenchConfig().apply_env()

    # Let ValueError propagate - invalid values should surface clearly.
    config = WorkbenchConfig.from_dict(dict(data or {}))
    log.debug("config_loaded", path=str(config_path))
    return config.apply_env()
