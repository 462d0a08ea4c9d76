"""Tests for input validation helpers."""

from __future__ import annotations

import pytest

from nodepool_migrator.validation import validate_kubernetes_version, validate_node_pool, validate_readiness_mode


class TestValidateNodePool:
    def test_valid_pool(self) -> None:
        validate_node_pool("userpool")

    def test_valid_short(self) -> None:
        validate_node_pool("a")

    def test_none_is_valid(self) -> None:
        validate_node_pool(None)

    def test_mixed_case_is_valid(self) -> None:
        validate_node_pool("Userpool1292")

    def test_invalid_starts_with_digit(self) -> None:
        with pytest.raises(ValueError, match="Invalid node pool"):
            validate_node_pool("1pool")

    def test_invalid_too_long(self) -> None:
        with pytest.raises(ValueError, match="Invalid node pool"):
            validate_node_pool("abcdefghijklm")  # 13 chars

    def test_invalid_special_chars(self) -> None:
        with pytest.raises(ValueError, match="Invalid node pool"):
            validate_node_pool("user-pool")

    def test_empty_string(self) -> None:
        with pytest.raises(ValueError, match="Invalid node pool"):
            validate_node_pool("")


class TestValidateKubernetesVersion:
    @pytest.mark.parametrize("version", ["1.29.2", "1.30", "1.28.15"])
    def test_valid(self, version: str) -> None:
        validate_kubernetes_version(version)

    @pytest.mark.parametrize("version", ["", "v1.29.2", "1.29.2-preview", "latest", "1"])
    def test_invalid(self, version: str) -> None:
        with pytest.raises(ValueError, match="Invalid Kubernetes version"):
            validate_kubernetes_version(version)


class TestValidateReadinessMode:
    @pytest.mark.parametrize("mode", ["fixed", "poll"])
    def test_valid(self, mode: str) -> None:
        validate_readiness_mode(mode)

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="fixed, poll"):
            validate_readiness_mode("wait")
