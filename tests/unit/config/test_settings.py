"""Tests for YAML configuration loading, validation and env overrides."""

from pathlib import Path

import pytest
import yaml

from review_context.config import (
    PRChunkingSettings,
    ReviewContextConfig,
)
from review_context.config.defaults import (
    CONTEXT_OVERHEAD_TOKENS,
    DEFAULT_CHUNK_TOKEN_BUDGET,
    get_language_from_extension,
)
from review_context.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "REVIEW_CONTEXT_CHUNK_TOKEN_BUDGET",
        "REVIEW_CONTEXT_MAX_EXAMPLES",
        "REVIEW_CONTEXT_CONCURRENCY",
        "REVIEW_CONTEXT_CACHE_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = ReviewContextConfig()
    assert config.pr_chunking.chunk_token_budget == DEFAULT_CHUNK_TOKEN_BUDGET
    assert config.pr_chunking.context_overhead_tokens == CONTEXT_OVERHEAD_TOKENS
    assert config.cache_dir is None


def test_missing_file_yields_defaults(tmp_path):
    config = ReviewContextConfig.load(tmp_path / "absent.yaml")
    assert config.to_dict() == ReviewContextConfig().to_dict()


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "pr_chunking": {"chunk_token_budget": 20000, "review_concurrency": 5},
                "aggregation": {"max_examples": 12},
                "cache_dir": str(tmp_path / "cache"),
            }
        )
    )

    config = ReviewContextConfig.load(path)

    assert config.pr_chunking.chunk_token_budget == 20000
    assert config.pr_chunking.review_concurrency == 5
    assert config.aggregation.max_examples == 12
    assert config.cache_dir == Path(tmp_path / "cache")


def test_save_and_reload(tmp_path):
    original = ReviewContextConfig(
        pr_chunking=PRChunkingSettings(max_single_review_files=10)
    )
    path = tmp_path / "nested" / "config.yaml"
    original.save(path)

    reloaded = ReviewContextConfig.load(path, apply_env=False)

    assert reloaded.pr_chunking.max_single_review_files == 10
    assert reloaded.to_dict() == original.to_dict()


def test_env_overrides_file_values(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"pr_chunking": {"chunk_token_budget": 20000}}))
    monkeypatch.setenv("REVIEW_CONTEXT_CHUNK_TOKEN_BUDGET", "50000")
    monkeypatch.setenv("REVIEW_CONTEXT_MAX_EXAMPLES", "8")

    config = ReviewContextConfig.load(path)

    assert config.pr_chunking.chunk_token_budget == 50000
    assert config.aggregation.max_examples == 8


def test_env_override_ignored_when_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv("REVIEW_CONTEXT_CONCURRENCY", "9")
    config = ReviewContextConfig.load(tmp_path / "absent.yaml", apply_env=False)
    assert config.pr_chunking.review_concurrency == 3


def test_invalid_env_value(tmp_path, monkeypatch):
    monkeypatch.setenv("REVIEW_CONTEXT_CONCURRENCY", "many")
    with pytest.raises(ConfigError, match="REVIEW_CONTEXT_CONCURRENCY"):
        ReviewContextConfig.load(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("pr_chunking: [unclosed")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        ReviewContextConfig.load(path)


def test_non_mapping_root(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        ReviewContextConfig.load(path)


def test_unknown_section():
    with pytest.raises(ConfigError) as exc_info:
        ReviewContextConfig.from_dict({"embeddings": {}})
    assert exc_info.value.context["sections"] == ["embeddings"]


def test_unknown_key():
    with pytest.raises(ConfigError, match="pr_chunking"):
        ReviewContextConfig.from_dict({"pr_chunking": {"budget": 1}})


@pytest.mark.parametrize(
    "data",
    [
        {"pr_chunking": {"chunk_token_budget": 0}},
        {"pr_chunking": {"review_concurrency": -1}},
        {"chunking": {"min_chars": 500, "max_chars": 400}},
        {"pr_chunking": {"cross_chunk_similarity": 1.5}},
    ],
)
def test_validation_rejects_bad_values(data):
    with pytest.raises(ConfigError):
        ReviewContextConfig.from_dict(data)


def test_language_from_extension():
    assert get_language_from_extension(".PY") == "python"
    assert get_language_from_extension(".tsx") == "typescript"
    assert get_language_from_extension(".unknown") == "text"
