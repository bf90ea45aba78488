"""Tests for elepad.data.db — NotificationDB inbox and chat links."""

from elepad.data.models import NotificationRequest


def _request(user_id: str = "elder-1", title: str = "Pills", **kwargs) -> NotificationRequest:
    return NotificationRequest(
        user_id=user_id,
        event_type=kwargs.pop("event_type", "activity_reminder"),
        entity_type=kwargs.pop("entity_type", "activity"),
        entity_id=kwargs.pop("entity_id", "act-1"),
        title=title,
        **kwargs,
    )


class TestInbox:
    def test_create_notification(self, notification_db):
        created = notification_db.create_notification(_request(body="Two tablets"))
        assert created.read is False
        assert created.body == "Two tablets"
        stored = notification_db.list_for_user("elder-1")
        assert [n.id for n in stored] == [created.id]
        assert stored[0].event_type == "activity_reminder"

    def test_create_many_and_empty(self, notification_db):
        assert notification_db.create_notifications([]) == []
        created = notification_db.create_notifications(
            [_request(title="A"), _request(title="B"), _request(user_id="other", title="C")],
        )
        assert len(created) == 3
        assert notification_db.unread_count("elder-1") == 2

    def test_list_newest_first_with_paging(self, notification_db):
        for title in ("first", "second", "third"):
            notification_db.create_notification(_request(title=title))
        titles = [n.title for n in notification_db.list_for_user("elder-1")]
        assert titles == ["third", "second", "first"]
        page = notification_db.list_for_user("elder-1", limit=1, offset=1)
        assert [n.title for n in page] == ["second"]

    def test_mark_as_read_scoped_to_owner(self, notification_db):
        created = notification_db.create_notification(_request())
        assert notification_db.mark_as_read(created.id, "someone-else") is False
        assert notification_db.mark_as_read(created.id, "elder-1") is True
        assert notification_db.unread_count("elder-1") == 0

    def test_mark_all_as_read(self, notification_db):
        notification_db.create_notifications([_request(), _request(), _request(user_id="x")])
        assert notification_db.mark_all_as_read("elder-1") == 2
        assert notification_db.list_unread("elder-1") == []
        assert notification_db.unread_count("x") == 1

    def test_delete_notification(self, notification_db):
        created = notification_db.create_notification(_request())
        assert notification_db.delete_notification(created.id, "someone-else") is False
        assert notification_db.delete_notification(created.id, "elder-1") is True
        assert notification_db.list_for_user("elder-1") == []

    def test_actor_is_stored(self, notification_db):
        notification_db.create_notification(
            _request(event_type="mention", entity_type="memory", actor_id="family-1"),
        )
        stored = notification_db.list_for_user("elder-1")[0]
        assert stored.actor_id == "family-1"
        assert stored.entity_type == "memory"


class TestChatLinks:
    def test_link_and_lookup(self, notification_db):
        notification_db.link_chat("elder-1", 111)
        notification_db.link_chat("elder-1", 222)
        assert notification_db.chats_for_user("elder-1") == [111, 222]
        assert notification_db.user_for_chat(111) == "elder-1"

    def test_link_is_idempotent(self, notification_db):
        notification_db.link_chat("elder-1", 111)
        notification_db.link_chat("elder-1", 111)
        assert notification_db.chats_for_user("elder-1") == [111]

    def test_relinking_chat_moves_it(self, notification_db):
        notification_db.link_chat("elder-1", 111)
        notification_db.link_chat("family-1", 111)
        assert notification_db.user_for_chat(111) == "family-1"
        assert notification_db.chats_for_user("elder-1") == []

    def test_unlink(self, notification_db):
        notification_db.link_chat("elder-1", 111)
        assert notification_db.unlink_chat(111) is True
        assert notification_db.unlink_chat(111) is False
        assert notification_db.user_for_chat(111) is None
