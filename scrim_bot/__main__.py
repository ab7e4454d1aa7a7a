"""Entry point for running the scrim bot via python -m scrim_bot"""

import asyncio

from scrim_bot.runtime import main

if __name__ == "__main__":
    asyncio.run(main())
