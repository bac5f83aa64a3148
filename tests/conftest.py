"""Shared fixtures for all tests."""

import os
import pytest

from cacheguard.parser import parse_workflow
from cacheguard.rules import run_all_rules


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures/.github/workflows")


@pytest.fixture
def fixtures_dir():
    """Path to the fixtures workflow directory."""
    return FIXTURES_DIR


@pytest.fixture
def release_workflow():
    """`on: release` workflow with an always-caching sccache step."""
    return parse_workflow(os.path.join(FIXTURES_DIR, "release-sccache.yml"))


@pytest.fixture
def tag_push_workflow():
    """Tag-push workflow with direct, conditional and opted-out caches."""
    return parse_workflow(os.path.join(FIXTURES_DIR, "tag-push.yml"))


@pytest.fixture
def publisher_workflow():
    """Pull-request/branch workflow whose job pushes a container image."""
    return parse_workflow(os.path.join(FIXTURES_DIR, "publisher-step.yml"))


@pytest.fixture
def pr_only_workflow():
    """Pull-request-only workflow; caches but never publishes."""
    return parse_workflow(os.path.join(FIXTURES_DIR, "pr-only.yml"))


@pytest.fixture
def tag_push_findings(tag_push_workflow):
    return run_all_rules(tag_push_workflow)
