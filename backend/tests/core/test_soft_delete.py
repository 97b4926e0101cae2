"""
Tests for soft delete infrastructure.

Tests cover:
- SoftDeleteMixin behavior (soft_delete, asoft_delete)
- SoftDeleteManager filtering
- SoftDeleteAllManager access to all records
- SoftDeleteQuerySet bulk soft delete
"""

import time

import pytest

from apps.facilities.models import Building
from tests.facilities.factories import BuildingFactory


@pytest.mark.django_db
class TestSoftDeleteMixin:
    """Tests for SoftDeleteMixin methods and properties."""

    def test_is_deleted_false_by_default(self) -> None:
        building = BuildingFactory.create()

        assert building.is_deleted is False
        assert building.deleted_at is None

    def test_soft_delete_sets_timestamp(self) -> None:
        building = BuildingFactory.create()

        building.soft_delete()

        building.refresh_from_db()
        assert building.is_deleted is True
        assert building.deleted_at is not None

    def test_soft_delete_updates_updated_at_and_version(self) -> None:
        building = BuildingFactory.create()
        original_updated_at = building.updated_at
        time.sleep(0.01)  # Ensure time difference

        building.soft_delete()

        building.refresh_from_db()
        assert building.updated_at > original_updated_at
        assert building.version == 2


@pytest.mark.django_db
class TestSoftDeleteManagers:
    """Tests for objects / all_objects managers."""

    def test_objects_excludes_soft_deleted(self) -> None:
        active = BuildingFactory.create()
        deleted = BuildingFactory.create()
        deleted.soft_delete()

        assert list(Building.objects.all()) == [active]

    def test_get_raises_for_deleted_record(self) -> None:
        building = BuildingFactory.create()
        building.soft_delete()

        with pytest.raises(Building.DoesNotExist):
            Building.objects.get(pk=building.pk)

    def test_all_objects_includes_deleted(self) -> None:
        BuildingFactory.create()
        deleted = BuildingFactory.create()
        deleted.soft_delete()

        assert Building.all_objects.count() == 2
        assert deleted in Building.all_objects.all()

    def test_bulk_soft_delete(self) -> None:
        BuildingFactory.create_batch(2, borough="queens")
        BuildingFactory.create(borough="brooklyn")

        count = Building.objects.filter(borough="queens").soft_delete()

        assert count == 2
        assert Building.objects.count() == 1
        assert Building.all_objects.count() == 3


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
async def test_asoft_delete() -> None:
    building = BuildingFactory.build()
    await building.asave()

    await building.asoft_delete()

    assert not await Building.objects.filter(pk=building.pk).aexists()
    assert await Building.all_objects.filter(pk=building.pk).aexists()
