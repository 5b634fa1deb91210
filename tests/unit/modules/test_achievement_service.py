"""
Unit tests for AchievementService.

Covers the player board, manual grants and catalog administration.
"""

import pytest

from mahoya.domain.models import AchievementDefinition, PlayerStats, RequirementType
from mahoya.modules.achievements.service import AchievementService
from mahoya.modules.progression.service import ProgressionService
from mahoya.modules.shared.exceptions import ConflictError, NotFoundError, TransientIOError, ValidationError


@pytest.fixture
def achievements(fake_store, config, mock_event_bus, test_logger):
    fake_store.achievements = {
        "first-order": AchievementDefinition(
            id="first-order",
            name="Primeira Compra",
            requirement_type=RequirementType.ORDERS_COUNT,
            requirement_value=1,
            xp_reward=50,
        ),
        "ambassador": AchievementDefinition(
            id="ambassador",
            name="Embaixadora",
            requirement_type=RequirementType.MANUAL,
            xp_reward=300,
        ),
        "no-reward": AchievementDefinition(
            id="no-reward",
            name="Curiosa",
            requirement_type=RequirementType.MANUAL,
        ),
    }
    progression = ProgressionService(fake_store, config, mock_event_bus, test_logger)
    return AchievementService(fake_store, progression, config, mock_event_bus, test_logger)


@pytest.mark.unit
class TestBoard:
    async def test_board_combines_stats_and_records(self, achievements, fake_store):
        # Arrange
        await fake_store.insert_unlock("user-1", "ambassador")

        # Act
        board = await achievements.get_board("user-1", PlayerStats(orders_count=1))

        # Assert
        assert board.total == 3
        assert board.unlocked_count == 2

    async def test_pending_unlocks(self, achievements):
        pending = await achievements.pending_unlocks("user-1", PlayerStats(orders_count=4))

        assert [d.id for d in pending] == ["first-order"]


@pytest.mark.unit
class TestGrant:
    async def test_grant_records_unlock_and_awards_xp(self, achievements, fake_store, mock_event_bus):
        # Act
        unlock = await achievements.grant("user-1", "ambassador", granted_by="admin-1")

        # Assert
        assert unlock.achievement_id == "ambassador"
        assert fake_store.xp["user-1"] == (300, 2)
        names = [call.args[0] for call in mock_event_bus.publish.await_args_list]
        assert names == ["achievement.granted", "player.xp_added", "player.leveled_up"]

    async def test_grant_without_reward_skips_xp(self, achievements, fake_store):
        await achievements.grant("user-1", "no-reward")

        assert fake_store.xp == {}

    async def test_duplicate_grant_conflicts(self, achievements, fake_store):
        await achievements.grant("user-1", "ambassador")

        with pytest.raises(ConflictError):
            await achievements.grant("user-1", "ambassador")

        assert fake_store.xp["user-1"] == (300, 2)

    async def test_unknown_achievement(self, achievements):
        with pytest.raises(NotFoundError):
            await achievements.grant("user-1", "ghost")

    async def test_failed_grant_leaves_nothing_and_can_be_retried(self, achievements, fake_store, mock_event_bus):
        # Arrange
        fake_store.fail_xp_writes = 1

        # Act
        with pytest.raises(TransientIOError):
            await achievements.grant("user-1", "ambassador")
        unlock = await achievements.grant("user-1", "ambassador")

        # Assert
        assert unlock.achievement_id == "ambassador"
        assert list(fake_store.unlocks) == [("user-1", "ambassador")]
        assert fake_store.xp["user-1"] == (300, 2)
        names = [call.args[0] for call in mock_event_bus.publish.await_args_list]
        assert names == ["achievement.granted", "player.xp_added", "player.leveled_up"]


@pytest.mark.unit
class TestCatalogAdmin:
    async def test_create_appears_on_board(self, achievements, fake_store, mock_event_bus):
        # Act
        created = await achievements.create(
            "Colecionadora", "unique_products", 3, xp_reward=40, created_by="admin-1"
        )

        # Assert
        board = await achievements.get_board("user-1", PlayerStats(unique_product_count=3))
        assert created.requirement_type is RequirementType.UNIQUE_PRODUCTS
        assert board.total == 4
        assert mock_event_bus.publish.await_args.args[0] == "achievement.created"

    async def test_create_rejects_negative_reward(self, achievements, fake_store):
        with pytest.raises(ValidationError):
            await achievements.create("Negativa", xp_reward=-5)

        assert len(fake_store.achievements) == 3

    async def test_update_changes_reward_for_future_grants(self, achievements, fake_store, mock_event_bus):
        # Act
        updated = await achievements.update("ambassador", updated_by="admin-1", xp_reward=100, name="Madrinha")
        await achievements.grant("user-1", "ambassador")

        # Assert
        assert updated.name == "Madrinha"
        assert fake_store.xp["user-1"] == (100, 1)
        assert mock_event_bus.publish.await_args_list[0].args[1]["fields"] == ["name", "xp_reward"]

    async def test_update_unknown_field_rejected(self, achievements):
        with pytest.raises(ValidationError):
            await achievements.update("ambassador", id="renamed")

    async def test_update_without_changes_rejected(self, achievements):
        with pytest.raises(ValidationError):
            await achievements.update("ambassador")

    async def test_update_unknown_achievement(self, achievements):
        with pytest.raises(NotFoundError):
            await achievements.update("ghost", name="Fantasma")

    async def test_deactivate_hides_from_board_but_keeps_unlock(self, achievements, fake_store):
        await achievements.grant("user-1", "ambassador")

        await achievements.deactivate("ambassador", updated_by="admin-1")

        board = await achievements.get_board("user-1", PlayerStats())
        assert board.total == 2
        assert ("user-1", "ambassador") in fake_store.unlocks

    async def test_delete_removes_unlocks_but_keeps_xp(self, achievements, fake_store, mock_event_bus):
        # Arrange
        await achievements.grant("user-1", "ambassador")

        # Act
        await achievements.delete("ambassador", deleted_by="admin-1")

        # Assert
        assert "ambassador" not in fake_store.achievements
        assert fake_store.unlocks == {}
        assert fake_store.xp["user-1"] == (300, 2)
        assert mock_event_bus.publish.await_args.args[0] == "achievement.deleted"

    async def test_delete_unknown_achievement(self, achievements):
        with pytest.raises(NotFoundError):
            await achievements.delete("ghost")
