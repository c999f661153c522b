"""Entry point for `tsmkit-play` or `python -m tsmkit_play`."""

from tsmkit_play.cli import main

if __name__ == "__main__":
    main()
