import asyncio
import logging
from app.models.outbox import OutboxEvent
from app.consumers.notification_consumer import HANDLERS
from app.core.db import init_db, close_db
from app.core.config import POLLING_INTERVAL, MAX_ATTEMPTS, BATCH_SIZE

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("outbox_poller")

async def dispatch_event(event: OutboxEvent):
    """
    Routes an OutboxEvent to its notification handler.
    Stands in for a message broker (like Kafka/RabbitMQ) dispatcher.
    """
    log.info(f"Poller DISPATCHING: {event.event_type} (ID: {event.id.hex[:8]}...)")

    handler = HANDLERS.get(event.event_type)
    if handler is None:
        log.warning(f"No handler found for event type: {event.event_type}")
        return
    await handler(event.payload, event.id)

async def poll_outbox_for_new_events() -> int:
    """
    Dispatches one batch of unpublished events, oldest first.
    Returns the number of events published.
    """
    # Select events that haven't been published and haven't exceeded max attempts
    events = await OutboxEvent.filter(published=False, attempts__lt=MAX_ATTEMPTS).limit(BATCH_SIZE).order_by('created_at')

    published = 0
    for event in events:
        try:
            await dispatch_event(event)

            event.published = True
            await event.save(update_fields=['published'])
            published += 1

        except Exception as e:
            event.attempts += 1
            event.last_error = str(e)
            await event.save(update_fields=['attempts', 'last_error'])
            log.exception(f"Delivery of event {event.id} failed (attempt {event.attempts}/{MAX_ATTEMPTS})")

    return published

async def start_outbox_poller():
    """Main loop for the poller service."""
    await init_db(generate_schemas=False)
    log.info("--- Outbox Poller Service Started ---")

    try:
        while True:
            try:
                await poll_outbox_for_new_events()
            except Exception as e:
                log.error(f"Poller encountered a critical DB error: {e}.")

            await asyncio.sleep(POLLING_INTERVAL)
    finally:
        await close_db()

if __name__ == "__main__":
    try:
        asyncio.run(start_outbox_poller())
    except KeyboardInterrupt:
        log.info("Poller service stopped.")
