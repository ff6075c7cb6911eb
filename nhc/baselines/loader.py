"""Load baseline configuration documents (YAML) into a sealed registry at startup.

Malformed documents fail startup; they never reach a request.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml
from pydantic import ValidationError

from nhc.baselines.registry import BaselineRegistry
from nhc.core.errors import ConfigurationError
from nhc.core.models import BaselineConfiguration
from nhc.evaluators.registry import EvaluatorRegistry, get_default_registry

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc or '<root>'}: {err.get('msg')}")
    return "; ".join(parts)


def parse_baseline_document(text: str, *, source: str = "<string>") -> BaselineConfiguration:
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{source}: invalid YAML: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigurationError(f"{source}: expected a mapping at the top level")
    try:
        return BaselineConfiguration.model_validate(doc)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: invalid baseline configuration: {_format_validation_error(e)}") from e


def load_baseline_file(path: PathLike) -> BaselineConfiguration:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"{p}: cannot read baseline configuration: {e}") from e
    return parse_baseline_document(text, source=str(p))


def _expand(paths: Iterable[PathLike]) -> List[Path]:
    out: List[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            out.extend(sorted(x for x in p.iterdir() if x.is_file() and x.suffix in (".yaml", ".yml")))
        elif p.exists():
            out.append(p)
        else:
            raise ConfigurationError(f"{p}: baseline configuration path does not exist")
    return out


def load_baseline_registry(
    paths: Iterable[PathLike],
    *,
    evaluators: Optional[EvaluatorRegistry] = None,
) -> BaselineRegistry:
    """
    Load every baseline document under `paths` (files or directories) and return a sealed registry.

    Raises ConfigurationError on the first malformed document, on duplicate names, or when no
    document was found at all.
    """
    registry = BaselineRegistry(evaluators=evaluators)
    seen: dict = {}
    for path in _expand(paths):
        cfg = load_baseline_file(path)
        name = cfg.configuration_name
        if name in seen:
            raise ConfigurationError(f"{path}: baseline {name!r} is already defined in {seen[name]}")
        try:
            registry.register(name, cfg)
        except ConfigurationError as e:
            raise ConfigurationError(f"{path}: {e.message}") from e
        seen[name] = path
        logger.info("Loaded baseline configuration %s from %s", name, path)

    if not seen:
        raise ConfigurationError("No baseline configurations found")
    registry.seal()
    return registry


def build_baseline(
    name: str,
    *,
    chain_id: Optional[str] = None,
    role_type: Optional[str] = None,
    pretty_name: Optional[str] = None,
    evaluator_names: Optional[Iterable[str]] = None,
    evaluators: Optional[EvaluatorRegistry] = None,
) -> BaselineConfiguration:
    """
    A starter baseline with default evaluator and runner arguments, for operators to edit.

    Every registered evaluator is enabled unless `evaluator_names` narrows the list.
    """
    evaluators = evaluators or get_default_registry()
    names = list(evaluator_names) if evaluator_names else evaluators.names()
    unknown = evaluators.unknown(names)
    if unknown:
        raise ConfigurationError(
            f"Unknown evaluators: {', '.join(unknown)} (known: {', '.join(evaluators.names())})"
        )
    doc: Dict[str, Any] = {
        "configuration_name": name,
        "configuration_name_pretty": pretty_name,
        "chain_id": chain_id,
        "role_type": role_type,
        "evaluators": names,
    }
    try:
        return BaselineConfiguration.model_validate(doc)
    except ValidationError as e:
        raise ConfigurationError(f"invalid baseline configuration: {_format_validation_error(e)}") from e


def dump_baseline_document(cfg: BaselineConfiguration) -> str:
    """YAML text that `parse_baseline_document` reads back into an equal configuration."""
    doc = cfg.model_dump(mode="json", exclude_none=True)
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)
