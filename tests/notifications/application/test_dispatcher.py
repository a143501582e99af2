"""Tests for notification dispatch: recipients, shared inboxes, failures and retries."""

from types import SimpleNamespace

import pytest
from identity.profile import Profile, ProfileRole
from notifications.channel.fake_channel import FakeChannel
from notifications.dispatcher import NotificationDispatcher
from notifications.notification import (
    MISSING_EMAIL,
    Notification,
    NotificationStatus,
    NotificationType,
    Recipient,
)
from shared.database import session_scope
from shared.errors import Forbidden, NotFound, Unauthenticated, ValidationError

ORDER = SimpleNamespace(id="ord-1", customer_id="cust-001", tailor_id="tailor-001", customer_contact=None)


@pytest.fixture()
def channel():
    return FakeChannel()


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def dispatcher(profiles, channel, sleeps):
    return NotificationDispatcher(channel=channel, same_recipient_delay=0.5, sleep=sleeps.append)


def _record(notification_id):
    with session_scope() as session:
        return session.get(Notification, notification_id)


class TestNotify:
    def test_sends_and_records(self, dispatcher, channel):
        recipient = dispatcher.customer_of(ORDER)
        result = dispatcher.notify(NotificationType.ORDER_ACCEPTED, ORDER, recipient, {"status": "accepted"})

        assert result.success
        [message] = channel.delivered
        assert message["recipientEmail"] == "ada@example.com"
        assert message["recipientName"] == "Ada Obi"
        assert message["referenceId"] == "ord-1"

        record = _record(result.notification_id)
        assert record.status == NotificationStatus.SENT.value
        assert record.attempts == 1

    def test_missing_contact(self, dispatcher, channel):
        result = dispatcher.notify(NotificationType.ORDER_ACCEPTED, ORDER, Recipient(id="cust-001", email=None))

        assert not result.success
        assert result.error == MISSING_EMAIL
        assert result.error_code == "MissingContactInfo"
        assert channel.attempts == []
        assert _record(result.notification_id).status == NotificationStatus.FAILED.value

    def test_channel_failure_is_reported(self, dispatcher, channel):
        channel.configure(should_succeed=False, failure_reason="Mailbox full")
        result = dispatcher.notify(NotificationType.ORDER_ACCEPTED, ORDER, dispatcher.customer_of(ORDER))

        assert not result.success
        assert result.error == "Mailbox full"
        assert result.error_code == "DeliveryFailed"
        assert _record(result.notification_id).failure_reason == "Mailbox full"

    def test_channel_exception_is_contained(self, profiles, sleeps):
        class BrokenChannel(FakeChannel):
            def deliver(self, event):
                raise ConnectionError("socket closed")

        dispatcher = NotificationDispatcher(channel=BrokenChannel(), sleep=sleeps.append)
        result = dispatcher.notify(NotificationType.ORDER_ACCEPTED, ORDER, dispatcher.customer_of(ORDER))

        assert not result.success
        assert "socket closed" in result.error


class TestRecipients:
    def test_customer_fallback_email(self, profiles):
        with session_scope() as session:
            session.add(Profile(id="cust-777", email=None, first_name="Bola", role=ProfileRole.CUSTOMER.value))
        order = SimpleNamespace(id="ord-2", customer_id="cust-777", tailor_id="tailor-001", customer_contact="b@x.io")

        recipient = NotificationDispatcher(channel=FakeChannel()).customer_of(order)
        assert recipient.email == "b@x.io"
        assert recipient.name == "Bola"

    def test_unknown_tailor(self, profiles):
        order = SimpleNamespace(id="ord-3", customer_id="cust-001", tailor_id="ghost", customer_contact=None)

        recipient = NotificationDispatcher(channel=FakeChannel()).tailor_of(order)
        assert recipient.id == "ghost"
        assert not recipient.has_contact


class TestNotifyAll:
    def test_both_parties(self, dispatcher, channel, sleeps):
        report = dispatcher.notify_all(NotificationType.ORDER_PLACED, ORDER, extra={"totalAmount": 182.0})

        assert report.customer_result.success
        assert report.tailor_result.success
        assert [m["recipientEmail"] for m in channel.delivered] == ["ada@example.com", "kemi@stitches.example.com"]
        assert all("recipientRole" not in m["additionalData"] for m in channel.delivered)
        assert sleeps == []

    def test_shared_inbox_gets_role_marked_messages(self, dispatcher, channel, sleeps):
        shared = "Family@Example.com"
        customer = Recipient(id="cust-001", email=shared.lower(), name="Ada Obi")
        tailor = Recipient(id="tailor-001", email=shared, name="Kemi Bello")

        report = dispatcher.notify_all(NotificationType.ORDER_PLACED, ORDER, customer=customer, tailor=tailor)

        assert report.customer_result.success and report.tailor_result.success
        assert [m["additionalData"]["recipientRole"] for m in channel.delivered] == ["CUSTOMER", "TAILOR"]
        assert sleeps == [0.5]

    def test_one_failure_does_not_stop_the_other(self, dispatcher, channel):
        channel.fail_for("ada@example.com")

        report = dispatcher.notify_all(NotificationType.ORDER_DELIVERED, ORDER)

        assert not report.customer_result.success
        assert report.tailor_result.success
        assert report.as_dict()["customer"]["error_code"] == "DeliveryFailed"

    def test_missing_tailor_contact(self, dispatcher, channel):
        report = dispatcher.notify_all(
            NotificationType.ORDER_CANCELLED, ORDER, tailor=Recipient(id="tailor-001", email="")
        )

        assert report.customer_result.success
        assert report.tailor_result.error_code == "MissingContactInfo"


class TestRetry:
    def test_retry_failed_delivery(self, dispatcher, channel):
        channel.configure(should_succeed=False)
        failed = dispatcher.notify(NotificationType.ORDER_SHIPPED, ORDER, dispatcher.customer_of(ORDER))
        channel.configure(should_succeed=True)

        result = dispatcher.retry(failed.notification_id)

        assert result.success
        assert channel.delivered[-1]["type"] == "order_shipped"
        record = _record(failed.notification_id)
        assert record.status == NotificationStatus.SENT.value
        assert record.attempts == 2

    def test_retry_picks_up_fixed_profile(self, dispatcher, channel):
        with session_scope() as session:
            session.get(Profile, "cust-001").email = None
        failed = dispatcher.notify(NotificationType.ORDER_SHIPPED, ORDER, dispatcher.customer_of(ORDER))
        assert failed.error_code == "MissingContactInfo"

        with session_scope() as session:
            session.get(Profile, "cust-001").email = "ada.new@example.com"

        result = dispatcher.retry(failed.notification_id)
        assert result.success
        assert channel.delivered[-1]["recipientEmail"] == "ada.new@example.com"

    def test_retry_sent_notification(self, dispatcher):
        sent = dispatcher.notify(NotificationType.ORDER_SHIPPED, ORDER, dispatcher.customer_of(ORDER))
        with pytest.raises(ValidationError):
            dispatcher.retry(sent.notification_id)

    def test_retry_unknown(self, dispatcher):
        with pytest.raises(NotFound):
            dispatcher.retry("missing")


class TestViewable:
    @pytest.fixture()
    def notification_id(self, dispatcher):
        return dispatcher.notify(NotificationType.ORDER_SHIPPED, ORDER, dispatcher.customer_of(ORDER)).notification_id

    def test_recipient(self, dispatcher, notification_id):
        assert dispatcher.viewable(notification_id, "cust-001").recipient_id == "cust-001"

    def test_admin(self, dispatcher, notification_id):
        assert dispatcher.viewable(notification_id, "admin-001").id == notification_id

    @pytest.mark.parametrize("actor_id", ["tailor-001", "stranger"])
    def test_others_are_forbidden(self, dispatcher, notification_id, actor_id):
        with pytest.raises(Forbidden):
            dispatcher.viewable(notification_id, actor_id)

    def test_requires_actor(self, dispatcher, notification_id):
        with pytest.raises(Unauthenticated):
            dispatcher.viewable(notification_id, None)

    def test_unknown(self, dispatcher):
        with pytest.raises(NotFound):
            dispatcher.viewable("missing", "admin-001")
