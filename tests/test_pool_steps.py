"""Tests for the control plane upgrade, pool clone, readiness wait, and pool deletion steps."""

from __future__ import annotations

import dataclasses
from unittest.mock import AsyncMock, patch

import pytest
from helpers import make_pool_node, make_spec

from nodepool_migrator.config import MigrationSettings
from nodepool_migrator.errors import ControlPlaneUpgradeFailed, PoolCloneFailed, PoolDeleteFailed, PoolNotReady
from nodepool_migrator.migration.cloner import NodePoolCloner
from nodepool_migrator.migration.control_plane import ControlPlaneUpgrader
from nodepool_migrator.migration.deleter import NodePoolDeleter
from nodepool_migrator.migration.readiness import ReadinessWaiter
from nodepool_migrator.models import MigrationPlan, NodePoolSpec


class TestControlPlaneUpgrader:
    async def test_upgrades_once(self, aks_client: AsyncMock) -> None:
        await ControlPlaneUpgrader(aks_client).upgrade("1.29.2")

        aks_client.upgrade_control_plane.assert_awaited_once_with("1.29.2")

    async def test_api_failure_raises(self, aks_client: AsyncMock) -> None:
        aks_client.upgrade_control_plane.side_effect = Exception("version 1.99.0 is not supported")

        with pytest.raises(ControlPlaneUpgradeFailed, match="1.99.0") as exc_info:
            await ControlPlaneUpgrader(aks_client).upgrade("1.99.0")
        assert exc_info.value.stage == "control-plane-upgrade"

    async def test_failed_provisioning_state_raises(self, aks_client: AsyncMock) -> None:
        aks_client.upgrade_control_plane.return_value = "Failed"

        with pytest.raises(ControlPlaneUpgradeFailed, match="state Failed"):
            await ControlPlaneUpgrader(aks_client).upgrade("1.29.2")


class TestNodePoolCloner:
    async def test_submits_identical_spec_under_new_name(
        self, aks_client: AsyncMock, pools: list[NodePoolSpec]
    ) -> None:
        pools[:] = [
            make_spec(
                name="nodepool1",
                vm_size="Standard_E8s_v5",
                count=None,
                autoscale_enabled=True,
                min_count=2,
                max_count=7,
                max_pods=50,
            )
        ]
        plan = MigrationPlan(source_pool="nodepool1", target_pool="Userpool1292", mode="User")

        target = await NodePoolCloner(aks_client).clone(plan)

        aks_client.get_node_pool_spec.assert_awaited_once_with("nodepool1")
        aks_client.create_node_pool.assert_awaited_once_with(target)
        assert target.name == "Userpool1292"
        assert target.model_dump(exclude={"name"}) == pools[0].model_dump(exclude={"name"})

    async def test_create_failure_raises(self, aks_client: AsyncMock) -> None:
        aks_client.create_node_pool.side_effect = Exception("QuotaExceeded")
        plan = MigrationPlan(source_pool="nodepool1", target_pool="Userpool1292", mode="User")

        with pytest.raises(PoolCloneFailed, match="QuotaExceeded") as exc_info:
            await NodePoolCloner(aks_client).clone(plan)
        assert exc_info.value.resource == "Userpool1292"

    async def test_describe_failure_raises_without_create(self, aks_client: AsyncMock) -> None:
        aks_client.get_node_pool_spec.side_effect = Exception("NotFound")
        plan = MigrationPlan(source_pool="nodepool1", target_pool="Userpool1292", mode="User")

        with pytest.raises(PoolCloneFailed):
            await NodePoolCloner(aks_client).clone(plan)
        aks_client.create_node_pool.assert_not_called()


class TestReadinessWaiter:
    async def test_fixed_mode_sleeps_configured_delay(
        self, aks_client: AsyncMock, core_client: AsyncMock, settings: MigrationSettings
    ) -> None:
        fixed = dataclasses.replace(settings, readiness_delay_seconds=240)
        with patch("nodepool_migrator.migration.readiness.asyncio.sleep", new=AsyncMock()) as sleep:
            await ReadinessWaiter(aks_client, core_client, fixed).wait(make_spec(name="Userpool1292"))

        sleep.assert_awaited_once_with(240)
        aks_client.get_node_pool_state.assert_not_called()

    async def test_poll_mode_returns_when_ready(
        self,
        aks_client: AsyncMock,
        core_client: AsyncMock,
        settings: MigrationSettings,
        pool_nodes: dict,
    ) -> None:
        pool_nodes["Userpool1292"] = [make_pool_node(f"aks-userpool1292-{i}", "Userpool1292") for i in range(3)]
        polling = dataclasses.replace(settings, readiness_mode="poll", readiness_timeout_seconds=60)

        await ReadinessWaiter(aks_client, core_client, polling).wait(make_spec(name="Userpool1292", count=3))

        aks_client.get_node_pool_state.assert_awaited_once_with("Userpool1292")

    async def test_poll_mode_backs_off_until_nodes_ready(
        self,
        aks_client: AsyncMock,
        core_client: AsyncMock,
        settings: MigrationSettings,
    ) -> None:
        aks_client.get_node_pool_state.side_effect = [
            {"provisioning_state": "Creating"},
            {"provisioning_state": "Succeeded"},
            {"provisioning_state": "Succeeded"},
        ]
        core_client.get_pool_nodes.side_effect = [
            [],
            [make_pool_node("n0", "Userpool1292"), make_pool_node("n1", "Userpool1292", ready=False)],
            [make_pool_node("n0", "Userpool1292"), make_pool_node("n1", "Userpool1292")],
        ]
        polling = dataclasses.replace(
            settings,
            readiness_mode="poll",
            readiness_timeout_seconds=3600,
            readiness_initial_backoff_seconds=10,
            readiness_max_backoff_seconds=15,
        )

        with patch("nodepool_migrator.migration.readiness.asyncio.sleep", new=AsyncMock()) as sleep:
            await ReadinessWaiter(aks_client, core_client, polling).wait(make_spec(name="Userpool1292", count=2))

        assert [c.args[0] for c in sleep.await_args_list] == [10, 15]

    async def test_autoscaled_pool_needs_min_count(
        self, aks_client: AsyncMock, core_client: AsyncMock, settings: MigrationSettings, pool_nodes: dict
    ) -> None:
        pool_nodes["Userpool1292"] = [make_pool_node("n0", "Userpool1292")]
        polling = dataclasses.replace(settings, readiness_mode="poll", readiness_timeout_seconds=60)
        spec = make_spec(name="Userpool1292", count=5, autoscale_enabled=True, min_count=1, max_count=5)

        await ReadinessWaiter(aks_client, core_client, polling).wait(spec)

    async def test_poll_mode_times_out(
        self, aks_client: AsyncMock, core_client: AsyncMock, settings: MigrationSettings
    ) -> None:
        aks_client.get_node_pool_state.return_value = {"provisioning_state": "Creating"}
        polling = dataclasses.replace(settings, readiness_mode="poll", readiness_timeout_seconds=0)

        with pytest.raises(PoolNotReady, match="not ready"):
            await ReadinessWaiter(aks_client, core_client, polling).wait(make_spec(name="Userpool1292"))

    @pytest.mark.parametrize("state", ["Failed", "Canceled"])
    async def test_terminal_provisioning_state_raises_immediately(
        self, aks_client: AsyncMock, core_client: AsyncMock, settings: MigrationSettings, state: str
    ) -> None:
        aks_client.get_node_pool_state.return_value = {"provisioning_state": state}
        polling = dataclasses.replace(settings, readiness_mode="poll", readiness_timeout_seconds=3600)

        with pytest.raises(PoolNotReady, match=f"ended in state {state}"):
            await ReadinessWaiter(aks_client, core_client, polling).wait(make_spec(name="Userpool1292"))

        aks_client.get_node_pool_state.assert_awaited_once()


class TestNodePoolDeleter:
    async def test_deletes_pool(self, aks_client: AsyncMock) -> None:
        assert await NodePoolDeleter(aks_client).delete("nodepool1") is None
        aks_client.delete_node_pool.assert_awaited_once_with("nodepool1")

    async def test_failure_is_returned_not_raised(self, aks_client: AsyncMock) -> None:
        aks_client.delete_node_pool.side_effect = Exception("Conflict")

        error = await NodePoolDeleter(aks_client).delete("nodepool1")

        assert isinstance(error, PoolDeleteFailed)
        assert error.resource == "nodepool1"
        assert "Conflict" in str(error)
