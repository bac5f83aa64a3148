"""
Catalogues of well-known actions used by the cache-poisoning rule.

Two fixed lists, built once at import and never mutated:

  * cache-aware actions: actions that can restore a dependency/build cache,
    together with the input (if any) that turns caching on or off;
  * publisher actions: actions that push artifacts somewhere the outside
    world can fetch them from (package/image registries, GitHub Releases,
    cloud deployments).

Lookups ignore the pinned version, so `actions/cache@v4` matches the
`actions/cache` entry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from cacheguard.parser.workflow_parser import ActionRef, parse_action_ref


class CachePolarity(Enum):
    OPT_IN = "opt-in"     # a truthy value enables caching
    OPT_OUT = "opt-out"   # a truthy value disables caching


class ControlValue(Enum):
    BOOLEAN = "boolean"
    STRING = "string"     # any non-empty string (e.g. a package manager name)


@dataclass(frozen=True)
class FixedCacheAction:
    """An action that always restores a cache; nothing turns it off."""
    uses: ActionRef


@dataclass(frozen=True)
class ConfigurableCacheAction:
    """An action whose caching is driven by a single input."""
    uses: ActionRef
    control_input: str
    polarity: CachePolarity
    value_shape: ControlValue
    caching_by_default: bool


CacheAwareAction = Union[FixedCacheAction, ConfigurableCacheAction]


def _coordinate(uses: str) -> ActionRef:
    ref = parse_action_ref(uses, require_ref=False)
    if ref is None:
        raise ValueError(f"Invalid action coordinate in catalogue: {uses!r}")
    return ref


def _configurable(
    uses: str,
    control_input: str,
    polarity: CachePolarity,
    value_shape: ControlValue,
    caching_by_default: bool,
) -> ConfigurableCacheAction:
    return ConfigurableCacheAction(
        uses=_coordinate(uses),
        control_input=control_input,
        polarity=polarity,
        value_shape=value_shape,
        caching_by_default=caching_by_default,
    )


OPT_IN = CachePolarity.OPT_IN
OPT_OUT = CachePolarity.OPT_OUT
BOOLEAN = ControlValue.BOOLEAN
STRING = ControlValue.STRING

KNOWN_CACHE_AWARE_ACTIONS: tuple[CacheAwareAction, ...] = (
    # https://github.com/actions/cache/blob/main/action.yml
    _configurable("actions/cache", "lookup-only", OPT_OUT, BOOLEAN, True),
    # https://github.com/actions/setup-java/blob/main/action.yml
    _configurable("actions/setup-java", "cache", OPT_IN, STRING, False),
    # https://github.com/actions/setup-go/blob/main/action.yml
    _configurable("actions/setup-go", "cache", OPT_IN, BOOLEAN, True),
    # https://github.com/actions/setup-node/blob/main/action.yml
    _configurable("actions/setup-node", "cache", OPT_IN, STRING, False),
    # https://github.com/actions/setup-python/blob/main/action.yml
    _configurable("actions/setup-python", "cache", OPT_IN, STRING, False),
    # https://github.com/actions/setup-dotnet/blob/main/action.yml
    _configurable("actions/setup-dotnet", "cache", OPT_IN, BOOLEAN, False),
    # https://github.com/astral-sh/setup-uv/blob/main/action.yml
    # enable-cache accepts true/false/auto; "auto" (the default) caches on hosted runners.
    # Opt-in here on purpose: upstream listings record it as opt-out, but "true" enables caching.
    _configurable("astral-sh/setup-uv", "enable-cache", OPT_IN, STRING, True),
    # https://github.com/Swatinem/rust-cache/blob/master/action.yml
    _configurable("Swatinem/rust-cache", "lookup-only", OPT_OUT, BOOLEAN, True),
    # https://github.com/ruby/setup-ruby/blob/master/action.yml
    _configurable("ruby/setup-ruby", "bundler-cache", OPT_IN, BOOLEAN, False),
    # https://github.com/PyO3/maturin-action/blob/main/action.yml
    _configurable("PyO3/maturin-action", "sccache", OPT_IN, BOOLEAN, False),
    # https://github.com/Mozilla-Actions/sccache-action/blob/main/action.yml
    FixedCacheAction(_coordinate("Mozilla-Actions/sccache-action")),
)

KNOWN_PUBLISHER_ACTIONS: tuple[ActionRef, ...] = tuple(
    _coordinate(uses)
    for uses in (
        # Public packages and/or binary distribution channels
        "pypa/gh-action-pypi-publish",
        "rubygems/release-gem",
        "jreleaser/release-action",
        "goreleaser/goreleaser-action",
        # GitHub releases
        "softprops/action-gh-release",
        "release-drafter/release-drafter",
        "googleapis/release-please-action",
        # Container registries
        "docker/build-push-action",
        "redhat-actions/push-to-registry",
        # Cloud + edge providers
        "aws-actions/amazon-ecs-deploy-task-definition",
        "aws-actions/aws-cloudformation-github-deploy",
        "Azure/aci-deploy",
        "Azure/container-apps-deploy-action",
        "Azure/functions-action",
        "Azure/sql-action",
        "cloudflare/wrangler-action",
        "google-github-actions/deploy-appengine",
        "google-github-actions/deploy-cloudrun",
        "google-github-actions/deploy-cloud-functions",
    )
)


def find_cache_aware_action(uses: ActionRef) -> Optional[CacheAwareAction]:
    """Return the catalogue entry for `uses`, ignoring its pinned ref."""
    for action in KNOWN_CACHE_AWARE_ACTIONS:
        if uses.matches(action.uses):
            return action
    return None


def is_known_publisher(uses: ActionRef) -> bool:
    """True if `uses` is one of the well-known publishing actions."""
    return any(uses.matches(publisher) for publisher in KNOWN_PUBLISHER_ACTIONS)
