"""Validate and default the ``prometheus`` plugin configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
import re
from types import MappingProxyType
from typing import Any, Mapping, NoReturn
import uuid

from logger import log, parse_level
from metric.report import UNITS_PER_SECOND
from monitor.measurement import RunnerStatFields

PLUGIN_NAME = "prometheus"

CONFIG_TEST_NAME = "testName"
CONFIG_PUSH_GATEWAY_URL = "pushGatewayUrl"
CONFIG_STATIC_TAGS = "tags"
CONFIG_TEST_RUN_ID = "testRunId"
CONFIG_EXCLUDE_TEST_RUN_ID = "excludeTestRunId"
CONFIG_ENVIRONMENT = "environment"
CONFIG_CPU_LABEL = "cpu"
CONFIG_MEMORY_LABEL = "memory"
CONFIG_PENDING_REQUESTS_LABEL = "pendingRequests"
CONFIG_AVOIDED_SCENARIOS_LABEL = "avoidedScenarios"
CONFIG_BUCKETS = "buckets"
CONFIG_JOB_NAME = "jobName"
CONFIG_LATENCY_UNIT = "latencyUnit"
CONFIG_REQUIRE_TEST_NAME = "requireTestName"
CONFIG_LOG_LEVEL = "logLevel"

ENV_PUSH_GATEWAY_URL = "PUSH_GATEWAY_URL"

DEFAULT_JOB_NAME = "artillery"
DEFAULT_LATENCY_UNIT = "ns"
DEFAULT_BUCKETS = (0.01, 0.05, 0.10, 0.50, 1, 2, 5, 10, 30, 60, 120)

LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
# Set by the push path itself, so a tag may not override it.
RESERVED_LABELS = frozenset({"job"})

_TRUE = frozenset({"true", "yes", "on", "1"})
_FALSE = frozenset({"false", "no", "off", "0", ""})

MESSAGES = {
    "plugins_config_not_found": 'No "plugins" configuration found.',
    "plugin_config_is_required": "The configuration for %s is required.",
    "plugin_param_is_required": "The configuration parameter %s is required.",
    "plugin_param_or_env_is_required": (
        "The configuration parameter %s or environment variable %s is required."
    ),
}


class ConfigurationError(Exception):
    """Raised when the plugin configuration is missing or invalid."""


@dataclass(frozen=True, slots=True)
class ReporterConfig:
    test_name: str | None
    push_gateway_url: str
    static_tags: Mapping[str, str] = field(default_factory=dict)
    label_names: RunnerStatFields = field(default_factory=RunnerStatFields)
    buckets: tuple[float, ...] = DEFAULT_BUCKETS
    exclude_test_run_id: bool = False
    environment: str | None = None
    job_name: str = DEFAULT_JOB_NAME
    latency_unit: str = DEFAULT_LATENCY_UNIT
    require_test_name: bool = True
    log_level: str | None = None

    @property
    def test_run_id(self) -> str | None:
        return self.static_tags.get(CONFIG_TEST_RUN_ID)

    def default_labels(self) -> dict[str, str]:
        """Labels attached to every pushed series."""
        labels = dict(self.static_tags)
        if self.environment:
            labels["cluster"] = self.environment
        return labels


def _fail(message: str) -> NoReturn:
    log.error(message)
    raise ConfigurationError(message)


def _resolve_buckets(raw: Any) -> tuple[float, ...]:
    if raw is None:
        return DEFAULT_BUCKETS
    if isinstance(raw, (str, bytes)) or not isinstance(raw, (list, tuple)) or not raw:
        _fail(f"The configuration parameter {CONFIG_BUCKETS} must be a non-empty list of numbers.")
    try:
        buckets = tuple(float(edge) for edge in raw)
    except (TypeError, ValueError):
        _fail(f"The configuration parameter {CONFIG_BUCKETS} must be a non-empty list of numbers.")
    if any(lower >= upper for lower, upper in zip(buckets, buckets[1:])):
        _fail(f"The configuration parameter {CONFIG_BUCKETS} must be strictly increasing.")
    return buckets


def _resolve_flag(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        spelled = value.strip().lower()
        if spelled in _TRUE:
            return True
        if spelled in _FALSE:
            return False
    _fail(f"The configuration parameter {key} must be a boolean, got {value!r}.")


def _resolve_tags(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        _fail(f"The configuration parameter {CONFIG_STATIC_TAGS} must be a mapping.")
    tags: dict[str, str] = {}
    for key, value in raw.items():
        name = str(key)
        if not LABEL_NAME_RE.match(name) or name.startswith("__"):
            _fail(f"The tag '{name}' in {CONFIG_STATIC_TAGS} is not a valid Prometheus label name.")
        if name in RESERVED_LABELS:
            _fail(f"The tag '{name}' in {CONFIG_STATIC_TAGS} is reserved; use {CONFIG_JOB_NAME} instead.")
        tags[name] = str(value)
    return tags


def _resolve_gateway_url(raw: Mapping[str, Any]) -> str:
    url = raw.get(CONFIG_PUSH_GATEWAY_URL) or os.environ.get(ENV_PUSH_GATEWAY_URL)
    if not url:
        _fail(MESSAGES["plugin_param_or_env_is_required"] % (CONFIG_PUSH_GATEWAY_URL, ENV_PUSH_GATEWAY_URL))
    url = str(url).strip().rstrip("/")
    if "://" not in url:
        url = f"http://{url}"
    return url


def resolve(raw: Mapping[str, Any] | None) -> ReporterConfig:
    """Build a :class:`ReporterConfig` from the plugin's raw configuration.

    The caller's mapping is never modified.
    """
    if raw is None or not isinstance(raw, Mapping):
        _fail(MESSAGES["plugin_config_is_required"] % PLUGIN_NAME)

    require_test_name = _resolve_flag(raw, CONFIG_REQUIRE_TEST_NAME, True)
    test_name = raw.get(CONFIG_TEST_NAME)
    if not test_name and require_test_name:
        _fail(MESSAGES["plugin_param_is_required"] % CONFIG_TEST_NAME)

    push_gateway_url = _resolve_gateway_url(raw)

    static_tags = _resolve_tags(raw.get(CONFIG_STATIC_TAGS))
    if test_name:
        static_tags[CONFIG_TEST_NAME] = str(test_name)

    exclude_test_run_id = _resolve_flag(raw, CONFIG_EXCLUDE_TEST_RUN_ID, False)
    if not static_tags.get(CONFIG_TEST_RUN_ID) and not exclude_test_run_id:
        static_tags[CONFIG_TEST_RUN_ID] = str(uuid.uuid4())

    latency_unit = raw.get(CONFIG_LATENCY_UNIT) or DEFAULT_LATENCY_UNIT
    if latency_unit not in UNITS_PER_SECOND:
        _fail(
            f"The configuration parameter {CONFIG_LATENCY_UNIT} must be one of "
            f"{', '.join(UNITS_PER_SECOND)}."
        )

    label_names = RunnerStatFields(
        cpu=raw.get(CONFIG_CPU_LABEL) or RunnerStatFields.DEFAULT_CPU,
        memory=raw.get(CONFIG_MEMORY_LABEL) or RunnerStatFields.DEFAULT_MEMORY,
        pending_requests=(
            raw.get(CONFIG_PENDING_REQUESTS_LABEL) or RunnerStatFields.DEFAULT_PENDING_REQUESTS
        ),
        avoided_scenarios=(
            raw.get(CONFIG_AVOIDED_SCENARIOS_LABEL) or RunnerStatFields.DEFAULT_AVOIDED_SCENARIOS
        ),
    )

    log_level = raw.get(CONFIG_LOG_LEVEL) or None
    if log_level is not None:
        try:
            log_level = parse_level(log_level)
        except ValueError as exc:
            _fail(f"The configuration parameter {CONFIG_LOG_LEVEL} is invalid: {exc}")

    config = ReporterConfig(
        test_name=str(test_name) if test_name else None,
        push_gateway_url=push_gateway_url,
        static_tags=MappingProxyType(static_tags),
        label_names=label_names,
        buckets=_resolve_buckets(raw.get(CONFIG_BUCKETS)),
        exclude_test_run_id=exclude_test_run_id,
        environment=raw.get(CONFIG_ENVIRONMENT) or None,
        job_name=str(raw.get(CONFIG_JOB_NAME) or DEFAULT_JOB_NAME),
        latency_unit=latency_unit,
        require_test_name=require_test_name,
        log_level=log_level,
    )
    log.debug(
        f"Resolved configuration: gateway={config.push_gateway_url} "
        f"job={config.job_name} tags={dict(config.static_tags)}"
    )
    return config


def extract_plugin_config(script_config: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    """Return the ``plugins.prometheus`` section of a runner script."""
    if not isinstance(script_config, Mapping) or not script_config.get("plugins"):
        _fail(MESSAGES["plugins_config_not_found"])
    return script_config["plugins"].get(PLUGIN_NAME)
