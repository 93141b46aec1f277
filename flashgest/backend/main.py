import asyncio
import logging
import os
from dotenv import find_dotenv, load_dotenv

# настройки БД и жестов читаются из окружения при импорте модулей
load_dotenv(find_dotenv(usecwd=True))

from flashgest.backend.db import engine, Base  # noqa: E402
from flashgest.backend.db.requests import Storage  # noqa: E402
from flashgest.backend.ml.config import load_config  # noqa: E402
from flashgest.backend.ml.loop import GestureLoop  # noqa: E402
from flashgest.backend.review.session import ReviewSession, PresentationState  # noqa: E402

logger = logging.getLogger(__name__)

# без UI карточка считается перевёрнутой сразу после показа
AUTO_FLIP = os.getenv("FLASHGEST_AUTO_FLIP", "1") == "1"


async def main():
    Base.metadata.create_all(engine)

    storage = Storage()
    storage.populate_sample_cards()

    config = load_config()
    session = ReviewSession(storage, display_delay=float(config["review"]["display_delay_s"]))
    if not session.load():
        logger.info("nothing to review today")
        return

    gestures = GestureLoop(session, config=config, on_unavailable=logger.warning)
    task = gestures.start()

    shown = None
    try:
        while session.state is not PresentationState.FINISHED and not task.done():
            card = session.current
            if card is not None and card.id != shown:
                shown = card.id
                logger.info("card: %s", card.front)
                if AUTO_FLIP:
                    session.flip()
                    logger.info("answer: %s", card.back)
            await asyncio.sleep(0.1)
    finally:
        await gestures.stop()

    stats = session.stats()
    logger.info(
        "done: %d reviews, success %.0f%%, buckets %s",
        stats.total_practice_events, stats.success_rate, stats.cards_by_bucket,
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Exit")
