"""
Demonstration script for real-time book notifications.

Run it to see subscribers receiving books as they are added.
"""

import asyncio
import logging

from api.operations import BookOperations
from api.schema import BookInput
from catalog.store import BookStore
from realtime.event_channel import EventChannel

# Configure logging to see what's happening
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)


async def _listen(name: str, feed, received: list) -> None:
    async for book in feed:
        print(f"  [{name}] received: {book}")
        received.append(book)


async def _run_book_sub_demo() -> None:
    operations = BookOperations(store=BookStore(), channel=EventChannel())

    print(f"Catalog starts with {operations.store.count()} books.\n")

    # Two subscribers registered before anything is added
    alice_feed = operations.book_sub()
    bob_feed = operations.book_sub()
    alice_received: list = []
    bob_received: list = []
    listeners = [
        asyncio.create_task(_listen("alice", alice_feed, alice_received)),
        asyncio.create_task(_listen("bob", bob_feed, bob_received)),
    ]

    print("-" * 70)
    print("ACTION: Adding 'Dune' with two subscribers listening")
    print("-" * 70 + "\n")
    dune = operations.add_book(BookInput(title="Dune", author="Frank Herbert", year=1965))
    await asyncio.sleep(0.01)

    print("\n" + "-" * 70)
    print("ACTION: Bob disconnects, then 'Hyperion' is added")
    print("-" * 70 + "\n")
    bob_feed.close()
    operations.add_book(BookInput(title="Hyperion", author="Dan Simmons", rating=4.3))
    await asyncio.sleep(0.01)

    print("\n" + "-" * 70)
    print("ACTION: Carol subscribes late; she does not see earlier books")
    print("-" * 70 + "\n")
    carol_feed = operations.book_sub()
    print(f"  [carol] pending events: {carol_feed.subscription.pending}")

    print("\n" + "-" * 70)
    print("ACTION: Searching for 'dune' right after the event")
    print("-" * 70 + "\n")
    print(f"  allBooks(search='dune') -> {[str(b) for b in operations.all_books('dune')]}")
    print(f"  getBook({dune.id[:8]}...) -> {operations.get_book(dune.id)}")

    # Shutdown: close every open stream
    operations.channel.close_all()
    await asyncio.gather(*listeners)

    print("\n" + "=" * 70)
    print("RESULTS")
    print("=" * 70)
    print(f"alice received {len(alice_received)} book(s): {[b.title for b in alice_received]}")
    print(f"bob received {len(bob_received)} book(s): {[b.title for b in bob_received]}")
    print(f"carol closed: {carol_feed.closed}")
    print()


def run_book_sub_demo():
    """
    Demonstrate the bookSub subscription.

    This shows:
    1. Two subscribers each get their own copy of a new book
    2. A closed subscriber stops receiving without affecting the other
    3. A late subscriber never sees books added before it subscribed
    4. The new book is already visible to queries when the event arrives
    """
    print("\n" + "=" * 70)
    print("DEMO: Real-time book notifications")
    print("=" * 70 + "\n")
    asyncio.run(_run_book_sub_demo())


if __name__ == "__main__":
    run_book_sub_demo()
