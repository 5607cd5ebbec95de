"""Entry point: python -m nitterwatch"""

import asyncio

from nitterwatch.app import NitterWatchApp


def main() -> None:
    app = NitterWatchApp()
    asyncio.run(app.start())


if __name__ == "__main__":
    main()
