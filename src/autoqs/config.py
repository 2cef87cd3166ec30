from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Mapping, Optional

from .generation import DEFAULT_MODEL
from .payload import parse_float
from .project_meta import DEFAULT_COUNTRY, MeasurementStandard, normalize_measurement_standard, resolve_country


_BOOLEAN_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration assembled from environment variables and CLI options."""

    base_dir: Path
    output_dir: Path
    country_code: str
    measurement_standard: MeasurementStandard
    model: str
    api_key_env: str
    max_retries: int
    initial_backoff_seconds: float
    temperature: float
    disable_ai: bool
    verbose: bool = False


def _to_path(value: object | None) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser().resolve()
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser().resolve()


def _to_int(value: object | None) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _to_float(value: object | None) -> Optional[float]:
    return parse_float(value, default=None)


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a runtime :class:`Config` from environment variables and CLI options."""

    base_dir = Path.cwd().resolve()
    default_output_dir = (base_dir / "outputs").resolve()

    output_dir = _to_path(env.get("AUTOQS_OUTPUT_DIR")) or default_output_dir
    country_code = resolve_country(env.get("AUTOQS_COUNTRY") or DEFAULT_COUNTRY.code).code
    measurement_standard = normalize_measurement_standard(env.get("AUTOQS_STANDARD")) or MeasurementStandard.NRM2
    model = (env.get("AUTOQS_MODEL") or "").strip() or DEFAULT_MODEL
    api_key_env = (env.get("AUTOQS_API_KEY_ENV") or "").strip() or "OPENAI_API_KEY"
    max_retries = _to_int(env.get("AUTOQS_MAX_RETRIES"))
    if max_retries is None or max_retries < 0:
        max_retries = 3
    initial_backoff = _to_float(env.get("AUTOQS_INITIAL_BACKOFF"))
    if initial_backoff is None or initial_backoff < 0:
        initial_backoff = 2.0
    temperature = _to_float(env.get("AUTOQS_TEMPERATURE"))
    if temperature is None:
        temperature = 0.05
    disable_ai = _flag(env.get("DISABLE_OPENAI"))
    verbose = False

    cli_ns = _namespace(cli_args)
    if getattr(cli_ns, "output_dir", None):
        output_dir = _to_path(cli_ns.output_dir) or output_dir
    if getattr(cli_ns, "country", None):
        country_code = resolve_country(cli_ns.country).code
    if getattr(cli_ns, "standard", None):
        measurement_standard = normalize_measurement_standard(cli_ns.standard) or measurement_standard
    if getattr(cli_ns, "model", None):
        model = str(cli_ns.model)
    if getattr(cli_ns, "max_retries", None) is not None:
        max_retries = max(0, int(cli_ns.max_retries))
    if getattr(cli_ns, "disable_ai", False):
        disable_ai = True
    if getattr(cli_ns, "verbose", False):
        verbose = bool(cli_ns.verbose)

    return Config(
        base_dir=base_dir,
        output_dir=output_dir,
        country_code=country_code,
        measurement_standard=measurement_standard,
        model=model,
        api_key_env=api_key_env,
        max_retries=max_retries,
        initial_backoff_seconds=initial_backoff,
        temperature=temperature,
        disable_ai=disable_ai,
        verbose=verbose,
    )


__all__ = ["Config", "load_config"]
