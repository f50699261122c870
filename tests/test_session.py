"""
上传会话测试：文件导入、房间类型标注校验和清空
"""

import asyncio

import pytest

from conftest import SAMPLE_JPEG, FakeAsyncAdapter, FakeSyncAdapter, processing
from restager.core.exceptions import UnsupportedModeError, ValidationError
from restager.schemas.restage import DesignStyle, ProcessingStatus, RoomType, TransformationMode
from restager.services.session import RestageSession, UNLABELED_MESSAGE, detect_room_type_from_filename
from restager.services.task_poller import PollConfig


@pytest.mark.parametrize("filename, expected", [
    ("Master_Bedroom.JPG", RoomType.BEDROOM),
    ("bath-2.png", RoomType.BATHROOM),
    ("kitchen.webp", RoomType.KITCHEN),
    ("living-area.jpg", RoomType.LIVING_ROOM),
    ("dining.jpg", RoomType.DINING_ROOM),
    ("back_patio.jpg", RoomType.OUTSIDE_SPACE),
    ("IMG_0042.jpg", RoomType.BEDROOM),
])
def test_detect_room_type_from_filename(filename, expected):
    assert detect_room_type_from_filename(filename) is expected


class TestAddFiles:
    def test_replaces_images_and_detects_types(self):
        session = RestageSession(design_style=DesignStyle.COASTAL)
        session.add_files([("old.jpg", SAMPLE_JPEG)])

        images = session.add_files([("kitchen.png", SAMPLE_JPEG), ("patio.jpg", SAMPLE_JPEG, "image/jpeg")])

        assert session.images == images
        assert [image.room_type for image in images] == [RoomType.KITCHEN, RoomType.OUTSIDE_SPACE]
        assert images[0].mime_type == "image/png"
        assert all(image.design_style is DesignStyle.COASTAL for image in images)
        assert all(image.status is ProcessingStatus.IDLE for image in images)
        assert len({image.id for image in images}) == 2

    def test_rejects_too_many_files(self):
        session = RestageSession(max_files=2)
        with pytest.raises(ValidationError, match="maximum of 2 images"):
            session.add_files([(f"{i}.jpg", SAMPLE_JPEG) for i in range(3)])
        assert session.images == []


class TestLabeling:
    def test_other_requires_description(self):
        session = RestageSession()
        image = session.add_files([("room.jpg", SAMPLE_JPEG)])[0]

        session.update_image(image.id, room_type="Other - describe")
        assert image.room_type is RoomType.OTHER
        assert not session.all_labeled()
        assert session.eligible_images() == []

        session.update_image(image.id, custom_room_label="Home gym")
        assert session.all_labeled()
        assert session.eligible_images() == [image]

    def test_free_text_room_type_is_labeled(self):
        session = RestageSession()
        image = session.add_files([("room.jpg", SAMPLE_JPEG)])[0]
        session.update_image(image.id, room_type="Wine cellar")
        assert image.room_type == "Wine cellar"
        assert image.is_labeled

    def test_option_updates(self):
        session = RestageSession()
        image = session.add_files([("room.jpg", SAMPLE_JPEG)])[0]

        session.update_image(image.id, repaint=True, paint_color="navy", transformation_mode="redesign")

        assert image.options.repaint is True
        assert image.options.paint_color == "navy"
        assert image.options.transformation_mode is TransformationMode.REDESIGN

    def test_invalid_updates(self):
        session = RestageSession()
        image = session.add_files([("room.jpg", SAMPLE_JPEG)])[0]
        with pytest.raises(UnsupportedModeError):
            session.update_image(image.id, transformation_mode="teleport")
        with pytest.raises(ValidationError):
            session.update_image(image.id, favourite_colour="blue")
        with pytest.raises(ValidationError):
            session.update_image("missing", repaint=True)

    def test_set_design_style_applies_to_all(self):
        session = RestageSession()
        session.add_files([("a.jpg", SAMPLE_JPEG), ("b.jpg", SAMPLE_JPEG)])
        session.set_design_style(DesignStyle.SCANDINAVIAN)
        assert all(image.design_style is DesignStyle.SCANDINAVIAN for image in session.images)


class TestRestage:
    @pytest.mark.asyncio
    async def test_restage_all_skips_unlabeled(self, fast_poll):
        adapter = FakeSyncAdapter(image="https://cdn/out.png")
        session = RestageSession(adapter=adapter, poll_config=fast_poll)
        labeled, unlabeled = session.add_files([("bedroom.jpg", SAMPLE_JPEG), ("other.jpg", SAMPLE_JPEG)])
        session.update_image(unlabeled.id, room_type=RoomType.OTHER)

        processed = await session.restage_all()

        assert processed == [labeled]
        assert labeled.status is ProcessingStatus.DONE
        assert unlabeled.status is ProcessingStatus.ERROR
        assert unlabeled.error == UNLABELED_MESSAGE
        assert len(adapter.submitted) == 1
        assert session.completed_images() == [labeled]

    @pytest.mark.asyncio
    async def test_restage_one(self, fast_poll):
        adapter = FakeSyncAdapter(image="https://cdn/one.png")
        session = RestageSession(adapter=adapter, poll_config=fast_poll)
        first, second = session.add_files([("a.jpg", SAMPLE_JPEG), ("b.jpg", SAMPLE_JPEG)])

        await session.restage_one(second.id)

        assert second.status is ProcessingStatus.DONE
        assert first.status is ProcessingStatus.IDLE

    @pytest.mark.asyncio
    async def test_clear_all_cancels_in_flight_poll(self):
        adapter = FakeAsyncAdapter([processing()])
        session = RestageSession(adapter=adapter, poll_config=PollConfig(interval_ms=10, max_attempts=500))
        image = session.add_files([("bedroom.jpg", SAMPLE_JPEG)])[0]

        run = asyncio.ensure_future(session.restage_all())
        while not adapter.checked:
            await asyncio.sleep(0.005)
        session.clear_all(reason="user cleared")
        await asyncio.wait_for(run, timeout=2)

        assert session.images == []
        assert image.status is ProcessingStatus.IDLE
        assert image.restaged_image is None
        assert len(adapter.checked) < 500

    @pytest.mark.asyncio
    async def test_session_usable_after_clear(self, fast_poll):
        adapter = FakeSyncAdapter(image="https://cdn/new.png")
        session = RestageSession(adapter=adapter, poll_config=fast_poll)
        session.add_files([("a.jpg", SAMPLE_JPEG)])
        session.clear_all()

        image = session.add_files([("b.jpg", SAMPLE_JPEG)])[0]
        await session.restage_all()

        assert image.status is ProcessingStatus.DONE

    @pytest.mark.asyncio
    async def test_cancelled_batch_leaves_nothing_processing(self, fast_poll):
        adapter = FakeSyncAdapter(image="https://cdn/late.png")
        session = RestageSession(adapter=adapter, poll_config=fast_poll)
        session.add_files([("bedroom.jpg", SAMPLE_JPEG), ("kitchen.jpg", SAMPLE_JPEG)])
        session._cancel_event.set()

        processed = await session.restage_all()

        assert [image.status for image in processed] == [ProcessingStatus.IDLE, ProcessingStatus.IDLE]
        assert not session.is_processing
        assert adapter.submitted == []
