"""Registry of monitored eVaka instances.

The built-in list covers the production deployments. `INSTANCES_FILE` may
point at a JSON array with the same fields to monitor a different fleet::

    [{"name": "Espoo", "domain": "espoonvarhaiskasvatus.fi",
      "repository": "espoon-voltti/evaka", "kind": "Core"}]
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from evaka_monitor.config import ConfigurationError
from evaka_monitor.models import InstanceConfig, InstanceKind

log = logger.bind(module="instances")

__all__ = ["DEFAULT_INSTANCES", "filter_instances", "load_instances"]

_TREVAKA = "Tampere/trevaka"


def _trevaka(name: str, domain: str) -> InstanceConfig:
    return InstanceConfig(name=name, domain=domain, repository=_TREVAKA, kind=InstanceKind.WRAPPER)


DEFAULT_INSTANCES: tuple[InstanceConfig, ...] = (
    InstanceConfig(
        name="Espoo",
        domain="espoonvarhaiskasvatus.fi",
        repository="espoon-voltti/evaka",
        kind=InstanceKind.CORE,
    ),
    InstanceConfig(
        name="Oulu",
        domain="varhaiskasvatus.ouka.fi",
        repository="Oulunkaupunki/evakaoulu",
        kind=InstanceKind.WRAPPER,
    ),
    InstanceConfig(
        name="Turku",
        domain="evaka.turku.fi",
        repository="City-of-Turku/evakaturku",
        kind=InstanceKind.WRAPPER,
    ),
    _trevaka("Hämeenkyrö", "evaka.hameenkyro.fi"),
    _trevaka("Kangasala", "evaka.kangasala.fi"),
    _trevaka("Lempäälä", "evaka.lempaala.fi"),
    _trevaka("Nokia", "evaka.nokiankaupunki.fi"),
    _trevaka("Orivesi", "evaka.orivesi.fi"),
    _trevaka("Pirkkala", "evaka.pirkkala.fi"),
    _trevaka("Tampere", "varhaiskasvatus.tampere.fi"),
    _trevaka("Vesilahti", "evaka.vesilahti.fi"),
    _trevaka("Ylöjärvi", "evaka.ylojarvi.fi"),
)

_INSTANCE_LIST = TypeAdapter(list[InstanceConfig])


def load_instances(path: str | Path | None = None) -> tuple[InstanceConfig, ...]:
    """Return the configured instances, reading `path` when provided.

    Raises:
        ConfigurationError: When the file is missing, malformed, empty, or
            lists the same instance name twice.
    """

    if path is None or not str(path).strip():
        return DEFAULT_INSTANCES

    source = Path(path).expanduser()
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
        instances = tuple(_INSTANCE_LIST.validate_python(raw))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read instances file {source}: {exc}") from exc
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid instances file {source}: {exc}") from exc

    if not instances:
        raise ConfigurationError(f"Instances file {source} lists no instances.")
    names = [instance.name for instance in instances]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate instance names in {source}: {', '.join(duplicates)}")

    log.info("Loaded {} instances from {}", len(instances), source)
    return instances


def filter_instances(
    instances: Sequence[InstanceConfig],
    names: Iterable[str] | None,
) -> tuple[InstanceConfig, ...]:
    """Keep only instances whose name matches one of `names` (case-insensitive)."""

    wanted = {name.strip().casefold() for name in (names or ()) if name and name.strip()}
    if not wanted:
        return tuple(instances)
    selected = tuple(i for i in instances if i.name.casefold() in wanted)
    unknown = wanted - {i.name.casefold() for i in selected}
    if unknown:
        raise ConfigurationError(f"Unknown instance name(s): {', '.join(sorted(unknown))}")
    return selected
