from __future__ import annotations

from .bot import TuneBot


def main() -> None:
    bot = TuneBot()
    bot.run(bot.settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
