"""
Integration Tests for SqlAlchemyGamificationStore
=================================================

Purpose
-------
Verify the SQLAlchemy store against a real SQLite schema: record parsing,
uniqueness conflicts, single-use redemption, atomic XP increments and
error translation.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from mahoya.database.models import D20RollRecord, UserXP
from mahoya.database.store import GamificationStore, SqlAlchemyGamificationStore
from mahoya.domain.models import RequirementType
from mahoya.modules.achievements.service import AchievementService
from mahoya.modules.progression.service import ProgressionService
from mahoya.modules.promotion.engine import D20PromotionEngine, ServerRollStore
from mahoya.modules.shared.exceptions import (
    AlreadyUsedError,
    ConflictError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


async def insert_sample_roll(store, user_id="user-1", roll_result=7):
    return await store.insert_roll(user_id, roll_result, "MAHOYA10", "Essência Mística", "10% de desconto")


@pytest.mark.integration
@pytest.mark.database
class TestProtocol:
    def test_store_satisfies_protocol(self, sql_store):
        assert isinstance(sql_store, GamificationStore)


# ============================================================================
# ELIGIBILITY
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestEligibility:
    async def test_add_get_remove(self, sql_store):
        # Act
        grant = await sql_store.add_eligibility("user-1", enabled_by="admin-1")
        fetched = await sql_store.get_eligibility("user-1")

        # Assert
        assert grant.enabled_at == NOW
        assert fetched.enabled_by == "admin-1"
        assert await sql_store.remove_eligibility("user-1") is True
        assert await sql_store.get_eligibility("user-1") is None
        assert await sql_store.remove_eligibility("user-1") is False

    async def test_duplicate_conflicts(self, sql_store):
        await sql_store.add_eligibility("user-1")

        with pytest.raises(ConflictError):
            await sql_store.add_eligibility("user-1")

    async def test_list(self, sql_store):
        await sql_store.add_eligibility("user-1")
        await sql_store.add_eligibility("user-2")

        listed = await sql_store.list_eligibility()

        assert {grant.user_id for grant in listed} == {"user-1", "user-2"}


# ============================================================================
# ROLLS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestRolls:
    async def test_insert_and_read_back(self, sql_store):
        # Act
        await insert_sample_roll(sql_store)
        roll = await sql_store.get_roll("user-1")

        # Assert
        assert roll.roll_result == 7
        assert roll.created_at == NOW
        assert roll.created_at.tzinfo is not None
        assert roll.is_used is False

    async def test_second_insert_conflicts_and_keeps_first(self, sql_store):
        await insert_sample_roll(sql_store, roll_result=7)

        with pytest.raises(ConflictError):
            await insert_sample_roll(sql_store, roll_result=19)

        assert (await sql_store.get_roll("user-1")).roll_result == 7

    async def test_mark_used_once(self, sql_store):
        # Arrange
        await insert_sample_roll(sql_store)

        # Act
        used = await sql_store.mark_roll_used("user-1", "order-9")

        # Assert
        assert used.used_at == NOW
        assert used.used_in_order_id == "order-9"
        with pytest.raises(AlreadyUsedError):
            await sql_store.mark_roll_used("user-1", "order-10")
        assert (await sql_store.get_roll("user-1")).used_in_order_id == "order-9"

    async def test_mark_used_missing(self, sql_store):
        with pytest.raises(NotFoundError):
            await sql_store.mark_roll_used("nobody")

    async def test_delete(self, sql_store):
        await insert_sample_roll(sql_store)

        assert await sql_store.delete_roll("user-1") is True
        assert await sql_store.delete_roll("user-1") is False
        assert await sql_store.get_roll("user-1") is None

    async def test_malformed_row_rejected(self, sql_store, database):
        await insert_sample_roll(sql_store)
        async with database.get_transaction() as session:
            await session.execute(update(D20RollRecord).values(roll_result=42))

        with pytest.raises(ValidationError):
            await sql_store.get_roll("user-1")

    async def test_engine_round_trip(self, sql_store, config, mock_event_bus, test_logger):
        # Arrange
        await sql_store.add_eligibility("user-1")
        engine = D20PromotionEngine(ServerRollStore(sql_store), config, mock_event_bus, test_logger, dice=lambda: 20)

        # Act
        first = await engine.roll("user-1")
        second = await engine.roll("user-1")
        redeemed = await engine.redeem("user-1", "order-1")

        # Assert
        assert first.created is True
        assert second.created is False
        assert second.roll.prize_code == "CRITICO"
        assert redeemed.is_used is True


# ============================================================================
# ACHIEVEMENTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestAchievements:
    async def test_definitions_ordered_nulls_first_and_filtered(self, sql_store):
        # Arrange
        await sql_store.insert_achievement("Cinco Pedidos", "orders_count", 5)
        await sql_store.insert_achievement("Embaixadora", "manual")
        await sql_store.insert_achievement("Primeiro Pedido", "orders_count", 1)
        await sql_store.insert_achievement("Aposentada", "orders_count", 2, is_active=False)

        # Act
        active = await sql_store.list_achievement_definitions()
        everything = await sql_store.list_achievement_definitions(active_only=False)

        # Assert
        assert [d.name for d in active] == ["Embaixadora", "Primeiro Pedido", "Cinco Pedidos"]
        assert len(everything) == 4
        assert active[0].requirement_type is RequirementType.MANUAL

    async def test_unlock_conflict(self, sql_store):
        definition = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=100)
        await sql_store.insert_unlock("user-1", definition.id)

        with pytest.raises(ConflictError):
            await sql_store.insert_unlock("user-1", definition.id)

        unlocks = await sql_store.list_unlocks_for_user("user-1")
        assert [u.achievement_id for u in unlocks] == [definition.id]

    async def test_get_achievement(self, sql_store):
        definition = await sql_store.insert_achievement("Colecionadora", "unique_products", 10, xp_reward=40)

        fetched = await sql_store.get_achievement(definition.id)

        assert fetched == definition
        assert await sql_store.get_achievement("missing") is None

    async def test_update_fields(self, sql_store):
        definition = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=100)

        updated = await sql_store.update_achievement(definition.id, name="Madrinha", xp_reward=250, is_active=False)

        assert updated.name == "Madrinha"
        assert await sql_store.get_achievement(definition.id) == updated
        assert await sql_store.list_achievement_definitions() == []

    async def test_invalid_update_rolled_back(self, sql_store):
        definition = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=100)

        with pytest.raises(ValidationError):
            await sql_store.update_achievement(definition.id, name="Madrinha", xp_reward=-1)
        with pytest.raises(ValidationError):
            await sql_store.update_achievement(definition.id, id="other")

        assert await sql_store.get_achievement(definition.id) == definition

    async def test_update_missing(self, sql_store):
        with pytest.raises(NotFoundError):
            await sql_store.update_achievement("missing", name="Fantasma")

    async def test_delete_removes_unlocks(self, sql_store):
        # Arrange
        kept = await sql_store.insert_achievement("Primeiro Pedido", "orders_count", 1)
        doomed = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=100)
        await sql_store.insert_unlock("user-1", kept.id)
        await sql_store.insert_unlock("user-1", doomed.id)

        # Act
        deleted = await sql_store.delete_achievement(doomed.id)

        # Assert
        assert deleted is True
        assert await sql_store.get_achievement(doomed.id) is None
        assert [u.achievement_id for u in await sql_store.list_unlocks_for_user("user-1")] == [kept.id]
        assert await sql_store.delete_achievement(doomed.id) is False


# ============================================================================
# BENEFITS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestBenefits:
    async def test_insert_and_list(self, sql_store):
        benefit = await sql_store.insert_benefit(
            "user-1", "Cupom", discount_percent=10, valid_until=NOW + timedelta(days=7)
        )

        listed = await sql_store.list_benefits_for_user("user-1")

        assert listed == [benefit]
        assert listed[0].valid_until == NOW + timedelta(days=7)
        assert await sql_store.list_benefits_for_user("user-2") == []

    async def test_mark_used_once(self, sql_store):
        benefit = await sql_store.insert_benefit("user-1", "Cupom", discount_fixed=25)

        used = await sql_store.mark_benefit_used(benefit.id)

        assert used.is_used is True
        assert used.used_at == NOW
        with pytest.raises(AlreadyUsedError):
            await sql_store.mark_benefit_used(benefit.id)

    async def test_mark_used_missing(self, sql_store):
        with pytest.raises(NotFoundError):
            await sql_store.mark_benefit_used("missing")

    async def test_delete(self, sql_store):
        benefit = await sql_store.insert_benefit("user-1", "Cupom", discount_percent=10)

        assert await sql_store.delete_benefit(benefit.id) is True
        assert await sql_store.delete_benefit(benefit.id) is False
        assert await sql_store.get_benefit(benefit.id) is None


# ============================================================================
# TITLES AND XP
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestTitles:
    async def test_titles_sorted_and_upserted(self, sql_store):
        # Arrange
        await sql_store.save_title(5, "Aprendiz")
        await sql_store.save_title(1, "Novato")

        # Act
        renamed = await sql_store.save_title(5, "Feiticeira", "Nível cinco")

        # Assert
        titles = await sql_store.list_titles()
        assert [(t.level, t.title) for t in titles] == [(1, "Novato"), (5, "Feiticeira")]
        assert renamed.description == "Nível cinco"

    async def test_delete_title(self, sql_store):
        await sql_store.save_title(2, "Aprendiz")

        assert await sql_store.delete_title(2) is True
        assert await sql_store.delete_title(2) is False
        assert await sql_store.list_titles() == []

    async def test_blank_title_rejected(self, sql_store):
        with pytest.raises(ValidationError):
            await sql_store.save_title(3, "")

        assert await sql_store.list_titles() == []


@pytest.mark.integration
@pytest.mark.database
class TestXP:
    async def test_add_creates_then_increments(self, sql_store):
        # Act
        first = await sql_store.add_player_xp("user-1", 250)
        second = await sql_store.add_player_xp("user-1", 300, reason="order")

        # Assert
        assert first.level == 2
        assert second.total_xp == 550
        assert [e.event_name for e in second.clear_domain_events()] == ["player.xp_added", "player.leveled_up"]
        stored = await sql_store.get_player_xp("user-1")
        assert stored.total_xp == 550
        assert stored.level == 3
        assert stored.has_level_drift is False
        assert len(await sql_store.list_player_xp()) == 1

    async def test_stale_level_detected_on_load(self, sql_store, database):
        await sql_store.add_player_xp("user-1", 600)
        async with database.get_transaction() as session:
            await session.execute(update(UserXP).values(level=9))

        stored = await sql_store.get_player_xp("user-1")

        assert stored.level == 3
        assert stored.stored_level == 9
        assert stored.has_level_drift is True

    async def test_reconcile_rewrites_cached_level_only(self, sql_store, database):
        # Arrange
        await sql_store.add_player_xp("user-1", 600)
        async with database.get_transaction() as session:
            await session.execute(update(UserXP).values(level=9, current_xp=0))

        # Act
        reconciled = await sql_store.reconcile_player_level("user-1")

        # Assert
        assert reconciled.stored_level == 9
        stored = await sql_store.get_player_xp("user-1")
        assert (stored.total_xp, stored.stored_level) == (600, 3)
        assert await sql_store.reconcile_player_level("nobody") is None

    async def test_ranking_order(self, sql_store):
        for user_id, amount in [("a", 100), ("b", 900), ("c", 400)]:
            await sql_store.add_player_xp(user_id, amount)

        ranking = await sql_store.list_player_xp()

        assert [p.user_id for p in ranking] == ["b", "c", "a"]

    async def test_write_failure_leaves_total_unchanged(self, sql_store, mocker):
        await sql_store.add_player_xp("user-1", 100)
        mocker.patch.object(
            sql_store._xp, "flush", side_effect=OperationalError("UPDATE user_xp", {}, Exception("disk I/O error"))
        )

        with pytest.raises(TransientIOError):
            await sql_store.add_player_xp("user-1", 300)

        mocker.stopall()
        assert (await sql_store.get_player_xp("user-1")).total_xp == 100


@pytest.mark.integration
@pytest.mark.database
class TestConcurrentAwards:
    @pytest.fixture
    def progression(self, sql_store, config, mock_event_bus, test_logger):
        return ProgressionService(sql_store, config, mock_event_bus, test_logger)

    async def test_concurrent_awards_all_count(self, progression, sql_store):
        # Arrange
        await progression.award_xp("user-1", 100)

        # Act
        await asyncio.gather(progression.award_xp("user-1", 300), progression.award_xp("user-1", 50))

        # Assert
        stored = await sql_store.get_player_xp("user-1")
        assert stored.total_xp == 450
        assert stored.stored_level == 2

    async def test_concurrent_first_awards_create_one_row(self, progression, sql_store):
        await asyncio.gather(*(progression.award_xp("user-1", 100) for _ in range(4)))

        ranking = await sql_store.list_player_xp()
        assert [(p.user_id, p.total_xp, p.stored_level) for p in ranking] == [("user-1", 400, 2)]

    async def test_reconcile_racing_award_keeps_award(self, progression, sql_store, database):
        # Arrange
        await sql_store.add_player_xp("user-1", 950)
        async with database.get_transaction() as session:
            await session.execute(update(UserXP).values(level=1))

        # Act
        await asyncio.gather(progression.get_progress("user-1"), progression.award_xp("user-1", 100))

        # Assert
        stored = await sql_store.get_player_xp("user-1")
        assert stored.total_xp == 1050
        assert stored.has_level_drift is False


@pytest.mark.integration
@pytest.mark.database
class TestGrantAchievement:
    @pytest.fixture
    def achievements(self, sql_store, config, mock_event_bus, test_logger):
        progression = ProgressionService(sql_store, config, mock_event_bus, test_logger)
        return AchievementService(sql_store, progression, config, mock_event_bus, test_logger)

    async def test_unlock_and_xp_committed_together(self, sql_store):
        definition = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=300)

        unlock, progress = await sql_store.grant_achievement("user-1", definition.id, 300)

        assert unlock.unlocked_at == NOW
        assert progress.total_xp == 300
        assert (await sql_store.get_player_xp("user-1")).stored_level == 2

    async def test_zero_reward_writes_no_xp(self, sql_store):
        definition = await sql_store.insert_achievement("Curiosa", "manual")

        _, progress = await sql_store.grant_achievement("user-1", definition.id, 0)

        assert progress is None
        assert await sql_store.get_player_xp("user-1") is None

    async def test_duplicate_grant_pays_once(self, sql_store):
        definition = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=300)
        await sql_store.grant_achievement("user-1", definition.id, 300)

        with pytest.raises(ConflictError):
            await sql_store.grant_achievement("user-1", definition.id, 300)

        assert (await sql_store.get_player_xp("user-1")).total_xp == 300

    async def test_failed_xp_write_rolls_back_unlock(self, achievements, sql_store, mocker):
        # Arrange
        definition = await sql_store.insert_achievement("Embaixadora", "manual", xp_reward=300)
        mocker.patch.object(
            sql_store, "_add_xp", side_effect=OperationalError("UPDATE user_xp", {}, Exception("disk I/O error"))
        )

        # Act
        with pytest.raises(TransientIOError):
            await achievements.grant("user-1", definition.id)
        mocker.stopall()

        # Assert
        assert await sql_store.list_unlocks_for_user("user-1") == []
        assert await sql_store.get_player_xp("user-1") is None
        await achievements.grant("user-1", definition.id)
        assert (await sql_store.get_player_xp("user-1")).total_xp == 300
        assert len(await sql_store.list_unlocks_for_user("user-1")) == 1


# ============================================================================
# ERROR TRANSLATION
# ============================================================================


@pytest.mark.unit
class TestErrorTranslation:
    async def test_operational_error_becomes_transient(self, mocker):
        # Arrange
        database = mocker.MagicMock()
        failing_cm = mocker.MagicMock()
        failing_cm.__aenter__ = mocker.AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )
        failing_cm.__aexit__ = mocker.AsyncMock(return_value=False)
        database.get_transaction.return_value = failing_cm
        store = SqlAlchemyGamificationStore(database=database)

        # Act / Assert
        with pytest.raises(TransientIOError) as exc_info:
            await store.get_roll("user-1")
        assert exc_info.value.is_retryable is True
