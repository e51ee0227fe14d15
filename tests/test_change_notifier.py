import asyncio
import json
import threading

from services.inventory.change_notifier import ChangeEvent, ChangeNotifier, EventType
from services.inventory.dataset_store import DatasetStore


def test_sse_payload_carries_only_the_tag():
    event = ChangeEvent(EventType.UPDATED, version=7, snapshot=object())
    frame = event.to_sse()
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    assert json.loads(frame[len("data: "):]) == {"type": "updated"}


def test_subscribe_receives_connected_with_current_snapshot(inventory_csv):
    store = DatasetStore(ChangeNotifier())
    store.ingest(inventory_csv, "inventory.csv")
    current = store.snapshot()

    async def scenario():
        subscription = store.subscribe()
        return await asyncio.wait_for(subscription.get(), timeout=1)

    event = asyncio.run(scenario())
    assert event.type is EventType.CONNECTED
    assert event.version == 1
    assert event.snapshot is current


def test_writer_events_reach_subscribers(inventory_csv):
    store = DatasetStore(ChangeNotifier())

    async def scenario():
        subscription = store.subscribe()
        await subscription.get()  # connected
        store.ingest(inventory_csv, "inventory.csv")
        store.delete()
        first = await asyncio.wait_for(subscription.get(), timeout=1)
        second = await asyncio.wait_for(subscription.get(), timeout=1)
        return first, second

    first, second = asyncio.run(scenario())
    assert (first.type, first.version) == (EventType.UPDATED, 1)
    assert (second.type, second.version) == (EventType.DELETED, 2)
    assert first.snapshot is None


def test_publish_from_another_thread_is_delivered():
    notifier = ChangeNotifier()

    async def scenario():
        subscription = notifier.subscribe(lambda: None)
        await subscription.get()
        thread = threading.Thread(
            target=notifier.publish, args=(ChangeEvent(EventType.UPDATED, 1),)
        )
        thread.start()
        thread.join()
        return await asyncio.wait_for(subscription.get(), timeout=1)

    assert asyncio.run(scenario()).type is EventType.UPDATED


def test_slow_subscriber_drops_oldest_events():
    notifier = ChangeNotifier(max_pending=2)

    async def scenario():
        subscription = notifier.subscribe(lambda: None)
        for version in (1, 2, 3):
            notifier.publish(ChangeEvent(EventType.UPDATED, version))
        await asyncio.sleep(0)
        drained = [subscription.get_nowait() for _ in range(subscription.pending())]
        return subscription, drained

    subscription, drained = asyncio.run(scenario())
    assert [e.version for e in drained] == [2, 3]
    assert subscription.dropped == 2


def test_unsubscribed_observers_get_nothing():
    notifier = ChangeNotifier()

    async def scenario():
        subscription = notifier.subscribe(lambda: None)
        notifier.unsubscribe(subscription)
        delivered = notifier.publish(ChangeEvent(EventType.DELETED, 0))
        await asyncio.sleep(0)
        return subscription, delivered

    subscription, delivered = asyncio.run(scenario())
    assert delivered == 0
    assert subscription.pending() == 1  # only the connected event
    assert notifier.subscriber_count() == 0


def test_subscriber_on_closed_loop_is_removed():
    notifier = ChangeNotifier()

    async def scenario():
        notifier.subscribe(lambda: None)

    asyncio.run(scenario())
    assert notifier.subscriber_count() == 1

    assert notifier.publish(ChangeEvent(EventType.UPDATED, 1)) == 0
    assert notifier.subscriber_count() == 0


def test_write_committing_while_subscribing_is_not_missed(inventory_csv):
    class RacingStore(DatasetStore):
        raced = False

        def snapshot(self):
            current = super().snapshot()
            if not self.raced:
                # another writer commits right after the new subscriber read its snapshot
                self.raced = True
                writer = threading.Thread(target=self.ingest, args=(inventory_csv, "inventory.csv"))
                writer.start()
                writer.join()
            return current

    store = RacingStore(ChangeNotifier())

    async def scenario():
        subscription = store.subscribe()
        connected = await asyncio.wait_for(subscription.get(), timeout=1)
        updated = await asyncio.wait_for(subscription.get(), timeout=1)
        return connected, updated

    connected, updated = asyncio.run(scenario())
    assert (connected.type, connected.version) == (EventType.CONNECTED, 0)
    assert (updated.type, updated.version) == (EventType.UPDATED, 1)
    assert store.snapshot().version == 1
